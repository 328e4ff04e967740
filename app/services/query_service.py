"""Query assembler — combines attribute and geo predicates with sorting
and pagination, and runs them against the property table.

Count, ordering and page slicing always happen in SQL. With a proximity
predicate the rows are ordered nearest first and carry their distance.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple, Optional, Sequence

from sqlalchemy import Select, and_, asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.models.property_model import Property
from app.services.filter_service import build_attribute_filters
from app.services.geo_service import GeoPredicate, parse_near_location

SORT_FIELDS = {
    "createdAt": Property.created_at,
    "price": Property.price,
    "bedrooms": Property.bedrooms,
    "bathrooms": Property.bathrooms,
    "area": Property.area,
    "title": Property.title,
}
DEFAULT_SORT = "-createdAt"
# Largest OFFSET the database drivers accept (signed 64-bit).
MAX_OFFSET = 2**63 - 1


class Match(NamedTuple):
    property: Property
    distance: Optional[float] = None


def _positive_int(value: Any, default: int) -> int:
    if value is None or str(value).strip() == "":
        return default
    try:
        number = int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return default
    return max(number, 1)


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_params(cls, page: Any, limit: Any, settings: Settings) -> "Pagination":
        """Coerce raw page/limit into positive ints (limit capped, offset kept
        within what the database accepts)."""
        limit = min(_positive_int(limit, settings.default_page_size), settings.max_page_size)
        page = min(_positive_int(page, 1), MAX_OFFSET // limit + 1)
        return cls(page=page, limit=limit)


@dataclass
class PageResult:
    items: list[Match]
    total: int
    page: int
    limit: int
    pages: int = field(init=False)

    def __post_init__(self):
        self.pages = math.ceil(self.total / self.limit) if self.total > 0 else 0


def parse_sort(raw: Optional[str]):
    """Parse ``"-createdAt,price"`` into ORDER BY clauses over allowed fields.

    Unknown fields are skipped; when nothing usable remains the default
    (newest first) applies.
    """
    clauses = []
    for token in (raw or "").split(","):
        token = token.strip()
        if not token:
            continue
        descending = token.startswith("-")
        column = SORT_FIELDS.get(token.lstrip("-+"))
        if column is None:
            continue
        clauses.append(desc(column) if descending else asc(column))
    if not clauses:
        clauses.append(desc(Property.created_at))
    clauses.append(asc(Property.id))
    return clauses


def _apply_filters(query: Select, filters: Sequence) -> Select:
    if filters:
        query = query.where(and_(*filters))
    return query


def _where(filters: Sequence, geo: Optional[GeoPredicate]) -> list:
    if geo is None:
        return list(filters)
    return [*filters, *geo.within_clauses()]


async def _nearest(
    db: AsyncSession,
    clauses: Sequence,
    geo: GeoPredicate,
    offset: int,
    limit: int,
) -> list[Match]:
    """Rows matching ``clauses``, nearest first (ties newest first)."""
    distance = geo.distance_expression().label("distance")
    query = _apply_filters(select(Property, distance), clauses)
    query = query.order_by(distance.asc(), desc(Property.created_at), asc(Property.id))
    rows = (await db.execute(query.offset(offset).limit(limit))).all()
    return [Match(prop, float(dist)) for prop, dist in rows]


async def run_query(
    db: AsyncSession,
    filters: Sequence,
    pagination: Pagination,
    sort: Optional[str] = None,
    geo: Optional[GeoPredicate] = None,
) -> PageResult:
    """Execute one filtered, sorted, paginated query."""
    clauses = _where(filters, geo)
    count_query = _apply_filters(select(func.count(Property.id)), clauses)
    total = (await db.execute(count_query)).scalar_one()

    if geo is not None:
        items = await _nearest(db, clauses, geo, pagination.offset, pagination.limit)
    else:
        query = _apply_filters(select(Property), clauses)
        query = query.order_by(*parse_sort(sort)).offset(pagination.offset).limit(pagination.limit)
        items = [Match(p) for p in (await db.execute(query)).scalars().all()]

    return PageResult(
        items=items,
        total=total,
        page=pagination.page,
        limit=pagination.limit,
    )


async def search_properties(db: AsyncSession, params: Mapping[str, Any], settings: Settings) -> PageResult:
    """Search entry point fed with the raw query string mapping."""
    pagination = Pagination.from_params(params.get("page"), params.get("limit"), settings)
    filters = build_attribute_filters(params)

    geo = None
    near = str(params.get("nearLocation") or "").strip()
    if near:
        geo = parse_near_location(near, settings.default_near_distance_m)

    return await run_query(db, filters, pagination, sort=params.get("sort"), geo=geo)


async def find_nearby(db: AsyncSession, geo: GeoPredicate, limit: int) -> list[Match]:
    """Map lookups: proximity only, nearest first."""
    return await _nearest(db, _where([], geo), geo, 0, limit)


async def list_agent_properties(
    db: AsyncSession,
    agent_id: str,
    pagination: Pagination,
    sort: Optional[str] = None,
) -> PageResult:
    """Listings owned by one agent, newest first by default."""
    return await run_query(db, [Property.agent_id == agent_id], pagination, sort=sort)
