"""SQLAlchemy models for the property listings service."""
from app.models.property_model import Property
from app.models.property_image_model import PropertyImage

__all__ = [
    "Property",
    "PropertyImage",
]
