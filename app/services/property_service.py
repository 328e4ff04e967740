"""Property mutation service — create, update and delete with ownership
checks and image side effects.

Write ordering:
1. authorization (role on create, ownership on update/delete)
2. input that can be rejected locally (payload, image presence, coordinates)
3. storage uploads
4. database commit; on failure the fresh uploads are released again
"""
from datetime import datetime, timezone
from typing import Optional, Sequence, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.security import Principal
from app.models.property_image_model import PropertyImage
from app.models.property_model import Property
from app.schemas.property_schema import PropertyCreate, PropertyUpdate
from app.services.geo_service import parse_coordinates
from app.services.image_service import ImageCoordinator, ImageUpload, StoredImage
from app.services.ownership_service import ensure_can_create, ensure_owner

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# Columns a merge-patch may touch, and which of them reject null.
PATCHABLE_FIELDS = (
    "title", "description", "price", "property_type", "status",
    "bedrooms", "bathrooms", "area", "features", "amenities",
)
NON_NULLABLE_FIELDS = {"title", "price", "property_type", "status", "bedrooms", "bathrooms"}
ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")


def parse_property_data(model: Type[M], raw: str) -> M:
    """Validate the JSON carried in a multipart ``propertyData`` field."""
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'propertyData'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError("Invalid propertyData: " + "; ".join(errors), detail=errors)


def _present(uploads: Optional[Sequence[ImageUpload]]) -> list[ImageUpload]:
    """Drop empty multipart parts (no filename)."""
    return [u for u in (uploads or []) if getattr(u, "filename", None)]


def _image_rows(stored: Sequence[StoredImage], start: int = 0) -> list[PropertyImage]:
    return [
        PropertyImage(public_id=img.public_id, url=img.url, position=start + i)
        for i, img in enumerate(stored)
    ]


class PropertyService:
    def __init__(self, db: AsyncSession, images: ImageCoordinator):
        self.db = db
        self.images = images

    async def get(self, property_id: UUID) -> Property:
        result = await self.db.execute(select(Property).where(Property.id == property_id))
        prop = result.scalar_one_or_none()
        if not prop:
            raise NotFoundError(f"Property {property_id} not found")
        return prop

    async def _commit_or_release(self, stored: Sequence[StoredImage]) -> None:
        try:
            await self.db.commit()
        except Exception:
            logger.exception("Commit failed, releasing %d new image(s)", len(stored))
            await self.db.rollback()
            await self.images.release(stored)
            raise

    async def create(
        self,
        principal: Principal,
        data: PropertyCreate,
        uploads: Optional[Sequence[ImageUpload]],
    ) -> Property:
        ensure_can_create(principal)

        files = _present(uploads)
        if not files:
            raise ValidationError("At least one property image is required")

        stored = await self.images.upload_all(files)

        prop = Property(
            title=data.title,
            description=data.description,
            street=data.address.street,
            city=data.address.city,
            state=data.address.state,
            zip_code=data.address.zip_code,
            country=data.address.country,
            price=data.price,
            property_type=data.property_type,
            status=data.status,
            bedrooms=data.bedrooms,
            bathrooms=data.bathrooms,
            area=data.area,
            features=list(data.features),
            amenities=[a.model_dump() for a in data.amenities],
            agent_id=principal.id,
        )
        if data.latitude is not None and data.longitude is not None:
            prop.latitude = data.latitude
            prop.longitude = data.longitude
        prop.images = _image_rows(stored)

        self.db.add(prop)
        await self._commit_or_release(stored)

        logger.info(
            "Property created with %d image(s)", len(stored),
            extra={"property_id": str(prop.id), "principal_id": principal.id},
        )
        return prop

    @staticmethod
    def _check_patch(changes: dict) -> None:
        for name in NON_NULLABLE_FIELDS:
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name} cannot be null")

    @staticmethod
    def _apply_patch(prop: Property, changes: dict) -> None:
        for name in PATCHABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name in ("features", "amenities"):
                value = list(value or [])
            setattr(prop, name, value)

        if "address" in changes:
            address = changes["address"]
            if address is None:
                address = {field: None for field in ADDRESS_FIELDS}
            for field in ADDRESS_FIELDS:
                if field in address:
                    setattr(prop, field, address[field])

    async def update(
        self,
        property_id: UUID,
        principal: Principal,
        property_data: Optional[str] = None,
        uploads: Optional[Sequence[ImageUpload]] = None,
        coordinates: Optional[str] = None,
    ) -> Property:
        """Merge-patch a listing. ``property_data`` is the raw ``propertyData``
        JSON; it is only parsed once the caller is known to own the listing."""
        prop = await self.get(property_id)
        ensure_owner(prop, principal)

        patch = parse_property_data(PropertyUpdate, property_data) if property_data else None

        location = None
        if coordinates and coordinates.strip():
            location = parse_coordinates(coordinates)

        changes = patch.model_dump(exclude_unset=True) if patch else {}
        self._check_patch(changes)

        stored = await self.images.upload_all(_present(uploads))

        self._apply_patch(prop, changes)
        if location is not None:
            prop.longitude, prop.latitude = location

        # New images always go after the existing ones.
        start = max((img.position for img in prop.images), default=-1) + 1
        prop.images.extend(_image_rows(stored, start))
        prop.updated_at = datetime.now(timezone.utc)

        await self._commit_or_release(stored)

        logger.info(
            "Property updated (%d field(s), %d new image(s))", len(changes), len(stored),
            extra={"property_id": str(prop.id), "principal_id": principal.id},
        )
        return prop

    async def delete(self, property_id: UUID, principal: Principal) -> list[str]:
        """Release every image, then remove the record.

        Returns the public ids storage failed to delete; those failures are
        logged but do not keep the record alive.
        """
        prop = await self.get(property_id)
        ensure_owner(prop, principal)

        failed = await self.images.release(list(prop.images))
        if failed:
            logger.warning(
                "Deleting property with %d unreleased image(s)", len(failed),
                extra={"property_id": str(prop.id), "failed": failed},
            )

        await self.db.delete(prop)
        await self.db.commit()

        logger.info(
            "Property deleted",
            extra={"property_id": str(property_id), "principal_id": principal.id},
        )
        return failed
