"""Pydantic schemas for Property API requests and responses.

JSON bodies use camelCase (``propertyType``, ``zipCode``, ``createdAt``);
image references keep the storage provider's ``public_id`` / ``url`` keys.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.property_model import Property

PropertyType = Literal["house", "apartment", "commercial"]
PropertyStatus = Literal["available", "sold", "rented", "pending"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class Address(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class GeoPoint(BaseModel):
    """GeoJSON point, coordinates are [longitude, latitude]."""
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2)


class Amenity(CamelModel):
    name: str = Field(..., min_length=1)
    distance: Optional[float] = Field(None, ge=0)


class ImageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    public_id: str
    url: str


def _unique_features(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    seen: list[str] = []
    for item in value:
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    return seen


class PropertyCreate(CamelModel):
    """Metadata sent as the ``propertyData`` field of a create request."""
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    address: Address = Address()
    price: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    property_type: PropertyType
    status: PropertyStatus = "available"
    bedrooms: int = Field(0, ge=0)
    bathrooms: int = Field(0, ge=0)
    area: Optional[float] = Field(None, gt=0)
    features: List[str] = []
    amenities: List[Amenity] = []
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("features")
    @classmethod
    def dedupe_features(cls, v: List[str]) -> List[str]:
        return _unique_features(v)


class PropertyUpdate(CamelModel):
    """Merge-patch for an existing property.

    Only the fields declared here can change; ``agent``, ``images``, ``id``
    and ``createdAt`` are not patchable. Location goes through the separate
    ``coordinates`` form field.
    """
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    address: Optional[Address] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=14, decimal_places=2)
    property_type: Optional[PropertyType] = None
    status: Optional[PropertyStatus] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, gt=0)
    features: Optional[List[str]] = None
    amenities: Optional[List[Amenity]] = None

    @field_validator("features")
    @classmethod
    def dedupe_features(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _unique_features(v)


class PropertyRead(CamelModel):
    """Schema for property responses."""
    id: UUID
    title: str
    description: Optional[str] = None
    address: Address
    location: Optional[GeoPoint] = None
    price: float
    property_type: str
    status: str
    bedrooms: int
    bathrooms: int
    area: Optional[float] = None
    images: List[ImageRead] = []
    features: List[str] = []
    amenities: List[Amenity] = []
    agent: str
    created_at: datetime
    updated_at: datetime
    distance: Optional[float] = Field(None, description="Metres from the query point (proximity searches only)")

    @classmethod
    def from_model(cls, prop: Property, distance: Optional[float] = None) -> "PropertyRead":
        location = None
        if prop.has_location:
            location = GeoPoint(coordinates=[prop.longitude, prop.latitude])
        return cls(
            id=prop.id,
            title=prop.title,
            description=prop.description,
            address=Address(
                street=prop.street,
                city=prop.city,
                state=prop.state,
                zip_code=prop.zip_code,
                country=prop.country,
            ),
            location=location,
            price=float(prop.price),
            property_type=prop.property_type,
            status=prop.status,
            bedrooms=prop.bedrooms or 0,
            bathrooms=prop.bathrooms or 0,
            area=prop.area,
            images=[ImageRead.model_validate(img) for img in prop.images],
            features=list(prop.features or []),
            amenities=[Amenity.model_validate(a) for a in (prop.amenities or [])],
            agent=prop.agent_id,
            created_at=prop.created_at,
            updated_at=prop.updated_at,
            distance=round(distance, 1) if distance is not None else None,
        )


class PropertyTypeStats(CamelModel):
    """Aggregate figures for one property type."""
    property_type: str
    count: int
    avg_price: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
