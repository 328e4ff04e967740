"""Properties API router — search, proximity lookups, stats and owner-only mutations.
/api/v1/properties"""
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentPrincipal, get_db, get_property_service, get_settings
from app.api.responses import ok, pagination_of
from app.config import Settings, settings
from app.schemas.base_schema import ApiResponse
from app.schemas.property_schema import PropertyCreate, PropertyRead, PropertyTypeStats
from app.services.geo_service import parse_proximity
from app.services.ownership_service import ensure_can_create
from app.services.property_service import PropertyService, parse_property_data
from app.services.query_service import (
    PageResult,
    Pagination,
    find_nearby,
    list_agent_properties,
    search_properties,
)
from app.services.stats_service import property_type_stats

router = APIRouter()

Service = Annotated[PropertyService, Depends(get_property_service)]
AppSettings = Annotated[Settings, Depends(get_settings)]


def _page_items(result: PageResult) -> list[PropertyRead]:
    return [PropertyRead.from_model(m.property, m.distance) for m in result.items]


@router.get("", response_model=ApiResponse[List[PropertyRead]])
async def search(
    request: Request,
    app_settings: AppSettings,
    db: AsyncSession = Depends(get_db),
):
    """Search properties with the raw query string.

    Filters: propertyType (comma list), status, minPrice, maxPrice, city,
    state, minBedrooms, maxBedrooms, bedrooms (N+), bathrooms (N+),
    nearLocation ("lat,lng[,metres]"). Paging: page, limit. Ordering: sort
    (e.g. "-createdAt,price"); proximity searches are nearest first.
    """
    result = await search_properties(db, request.query_params, app_settings)
    return ok(_page_items(result), "Properties retrieved successfully", request, pagination_of(result))


@router.get("/nearby", response_model=ApiResponse[List[PropertyRead]])
async def nearby(
    request: Request,
    app_settings: AppSettings,
    db: AsyncSession = Depends(get_db),
    latitude: Optional[str] = Query(None),
    longitude: Optional[str] = Query(None),
    distance: Optional[str] = Query(None, description="Radius in metres"),
    limit: int = Query(50, ge=1, le=settings.max_nearby_results),
):
    """Properties around a point, nearest first (map view)."""
    geo = parse_proximity(latitude, longitude, distance, app_settings.default_near_distance_m)
    matches = await find_nearby(db, geo, limit)
    items = [PropertyRead.from_model(m.property, m.distance) for m in matches]
    return ok(items, "Nearby properties retrieved successfully", request)


@router.get("/stats", response_model=ApiResponse[List[PropertyTypeStats]])
async def stats(request: Request, db: AsyncSession = Depends(get_db)):
    """Count and price figures per property type."""
    return ok(await property_type_stats(db), "Property stats retrieved successfully", request)


@router.get("/mine", response_model=ApiResponse[List[PropertyRead]])
async def my_properties(
    request: Request,
    principal: CurrentPrincipal,
    app_settings: AppSettings,
    db: AsyncSession = Depends(get_db),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
):
    """Listings owned by the authenticated agent."""
    pagination = Pagination.from_params(page, limit, app_settings)
    result = await list_agent_properties(db, principal.id, pagination, sort)
    return ok(_page_items(result), "Properties retrieved successfully", request, pagination_of(result))


@router.get("/{property_id}", response_model=ApiResponse[PropertyRead])
async def get_property(property_id: UUID, request: Request, service: Service):
    """Get a single property by ID."""
    prop = await service.get(property_id)
    return ok(PropertyRead.from_model(prop), "Property retrieved successfully", request)


@router.post("", response_model=ApiResponse[PropertyRead], status_code=201)
async def create_property(
    request: Request,
    principal: CurrentPrincipal,
    service: Service,
    property_data: str = Form(..., alias="propertyData"),
    images: Optional[List[UploadFile]] = File(None),
):
    """Create a listing (multipart: ``propertyData`` JSON + ``images`` files)."""
    # reject plain users before looking at the payload
    ensure_can_create(principal)
    payload = parse_property_data(PropertyCreate, property_data)
    prop = await service.create(principal, payload, images)
    return ok(PropertyRead.from_model(prop), "Property created successfully", request)


@router.patch("/{property_id}", response_model=ApiResponse[PropertyRead])
async def update_property(
    property_id: UUID,
    request: Request,
    principal: CurrentPrincipal,
    service: Service,
    property_data: Optional[str] = Form(None, alias="propertyData"),
    coordinates: Optional[str] = Form(None, description="'lng,lat'"),
    images: Optional[List[UploadFile]] = File(None),
):
    """Partially update a listing; new images are appended to the existing ones."""
    prop = await service.update(property_id, principal, property_data, images, coordinates)
    return ok(PropertyRead.from_model(prop), "Property updated successfully", request)


@router.delete("/{property_id}", response_model=ApiResponse[dict], status_code=200)
async def delete_property(property_id: UUID, request: Request, principal: CurrentPrincipal, service: Service):
    """Delete a listing and release its stored images."""
    failed = await service.delete(property_id, principal)
    return ok(
        {"id": str(property_id), "unreleasedImages": failed},
        "Property deleted successfully",
        request,
    )
