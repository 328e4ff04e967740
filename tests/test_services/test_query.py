"""Tests for pagination, sorting and the query assembler."""
import math

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.services.geo_service import EARTH_RADIUS_M, GeoPredicate
from app.services.query_service import (
    MAX_OFFSET,
    PageResult,
    Pagination,
    find_nearby,
    list_agent_properties,
    parse_sort,
    run_query,
)
from tests.conftest import add_property


class TestPagination:
    def test_defaults(self):
        p = Pagination.from_params(None, None, settings)
        assert (p.page, p.limit, p.offset) == (1, 10, 0)

    def test_offset(self):
        p = Pagination.from_params("3", "5", settings)
        assert p.offset == 10

    @pytest.mark.parametrize("page,limit", [("0", "0"), ("-2", "-7")])
    def test_coerced_to_positive(self, page, limit):
        p = Pagination.from_params(page, limit, settings)
        assert (p.page, p.limit) == (1, 1)

    def test_garbage_falls_back_to_defaults(self):
        p = Pagination.from_params("two", "ten", settings)
        assert (p.page, p.limit) == (1, 10)

    def test_limit_capped(self):
        assert Pagination.from_params("1", "100000", settings).limit == settings.max_page_size

    @pytest.mark.parametrize("page", ["1000000000000000000", "1e30"])
    def test_huge_page_keeps_offset_in_range(self, page):
        p = Pagination.from_params(page, "10", settings)
        assert p.offset <= MAX_OFFSET
        assert p.page > 1


class TestPageResult:
    @pytest.mark.parametrize("total,limit,pages", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (11, 5, 3)])
    def test_pages(self, total, limit, pages):
        assert PageResult(items=[], total=total, page=1, limit=limit).pages == pages


class TestParseSort:
    def test_default_newest_first(self):
        clauses = parse_sort(None)
        assert str(clauses[0]) == "properties.created_at DESC"

    def test_multiple_fields(self):
        clauses = parse_sort("-price,title")
        assert [str(c) for c in clauses[:2]] == ["properties.price DESC", "properties.title ASC"]

    def test_unknown_fields_fall_back(self):
        clauses = parse_sort("agent_id,-hacked")
        assert str(clauses[0]) == "properties.created_at DESC"


@pytest.mark.asyncio
async def test_page_and_total_are_consistent(db_session: AsyncSession):
    for i in range(8):
        await add_property(db_session, title=f"p{i}")

    result = await run_query(db_session, [], Pagination(page=2, limit=3))
    assert result.total == 8
    assert result.pages == 3
    assert len(result.items) == 3

    last = await run_query(db_session, [], Pagination(page=3, limit=3))
    assert len(last.items) == 2


@pytest.mark.asyncio
async def test_find_nearby_annotates_distance(db_session: AsyncSession):
    await add_property(db_session, title="a", latitude=40.01, longitude=-70.0)
    await add_property(db_session, title="b", latitude=40.0, longitude=-70.0)
    await add_property(db_session, title="c", latitude=41.0, longitude=-70.0)

    matches = await find_nearby(db_session, GeoPredicate(40.0, -70.0, 5000), limit=10)
    assert [m.property.title for m in matches] == ["b", "a"]
    assert matches[0].distance == 0.0
    assert matches[1].distance == pytest.approx(1112, abs=2)


@pytest.mark.asyncio
async def test_find_nearby_limit(db_session: AsyncSession):
    for i in range(4):
        await add_property(db_session, latitude=40.0 + i * 0.001, longitude=-70.0)
    matches = await find_nearby(db_session, GeoPredicate(40.0, -70.0, 5000), limit=2)
    assert len(matches) == 2


@pytest.mark.asyncio
async def test_list_agent_properties(db_session: AsyncSession):
    await add_property(db_session, agent_id="agent-1")
    await add_property(db_session, agent_id="agent-2")
    result = await list_agent_properties(db_session, "agent-2", Pagination())
    assert result.total == 1
    assert result.items[0].property.agent_id == "agent-2"


@pytest.mark.asyncio
async def test_distance_of_one_degree_latitude(db_session: AsyncSession):
    await add_property(db_session, latitude=1.0, longitude=0.0)
    matches = await find_nearby(db_session, GeoPredicate(0.0, 0.0, 200_000), limit=10)
    assert matches[0].distance == pytest.approx(EARTH_RADIUS_M * math.pi / 180)


@pytest.mark.asyncio
async def test_radius_boundary_is_inclusive(db_session: AsyncSession):
    await add_property(db_session, latitude=40.03, longitude=-70.0)
    exact = (await find_nearby(db_session, GeoPredicate(40.0, -70.0, 10_000), limit=1))[0].distance

    assert len(await find_nearby(db_session, GeoPredicate(40.0, -70.0, exact), limit=10)) == 1
    assert await find_nearby(db_session, GeoPredicate(40.0, -70.0, exact - 1), limit=10) == []


@pytest.mark.asyncio
async def test_rows_without_location_never_match(db_session: AsyncSession):
    await add_property(db_session, title="nowhere")
    await add_property(db_session, title="here", latitude=40.0, longitude=-70.0)
    matches = await find_nearby(db_session, GeoPredicate(40.0, -70.0, 30_000_000), limit=10)
    assert [m.property.title for m in matches] == ["here"]


@pytest.mark.asyncio
async def test_whole_earth_radius_pages_in_sql(db_session: AsyncSession):
    """Only the bounding NOT NULL checks remain; count and page still come from SQL."""
    for i, (lat, lng) in enumerate([(0.0, 0.0), (45.0, 90.0), (-45.0, -90.0), (0.0, 180.0), (60.0, 10.0)]):
        await add_property(db_session, title=f"p{i}", latitude=lat, longitude=lng)

    geo = GeoPredicate(0.0, 0.0, 30_000_000)
    result = await run_query(db_session, [], Pagination(page=2, limit=2), geo=geo)

    assert result.total == 5
    assert result.pages == 3
    assert len(result.items) == 2
    distances = [m.distance for m in result.items]
    assert distances == sorted(distances)

    first = await run_query(db_session, [], Pagination(page=1, limit=2), geo=geo)
    assert first.items[0].property.title == "p0"
    assert first.items[-1].distance <= distances[0]


@pytest.mark.asyncio
async def test_antipodal_point_is_within_half_circumference(db_session: AsyncSession):
    await add_property(db_session, latitude=0.0, longitude=180.0)
    matches = await find_nearby(db_session, GeoPredicate(0.0, 0.0, math.pi * EARTH_RADIUS_M + 1), limit=1)
    assert matches[0].distance == pytest.approx(math.pi * EARTH_RADIUS_M)
