"""Attribute filter builder — raw query parameters to SQL predicates.

Recognized keys: propertyType, status, minPrice, maxPrice, city, state,
minBedrooms, maxBedrooms, bedrooms, bathrooms. Anything else is ignored,
and a value that does not convert to a number drops only its own filter.
"""
import math
from typing import Any, Mapping, Optional

from sqlalchemy import ColumnElement

from app.models.property_model import Property


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_number(value: Any) -> Optional[float]:
    text = _as_text(value)
    if text is None:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_attribute_filters(params: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Translate a query-parameter mapping into a list of AND-able clauses.

    An empty list means "no constraint".
    """
    filters: list[ColumnElement[bool]] = []

    property_type = _as_text(params.get("propertyType"))
    if property_type:
        types = [t.strip() for t in property_type.split(",") if t.strip()]
        if types:
            filters.append(Property.property_type.in_(types))

    status = _as_text(params.get("status"))
    if status:
        filters.append(Property.status == status)

    min_price = _as_number(params.get("minPrice"))
    if min_price is not None:
        filters.append(Property.price >= min_price)
    max_price = _as_number(params.get("maxPrice"))
    if max_price is not None:
        filters.append(Property.price <= max_price)

    city = _as_text(params.get("city"))
    if city:
        filters.append(Property.city.ilike(_like_pattern(city), escape="\\"))
    state = _as_text(params.get("state"))
    if state:
        filters.append(Property.state.ilike(_like_pattern(state), escape="\\"))

    # "bedrooms" is the "N+" shorthand and wins over an explicit range
    at_least_bedrooms = _as_number(params.get("bedrooms"))
    if at_least_bedrooms is not None:
        filters.append(Property.bedrooms >= at_least_bedrooms)
    else:
        min_bedrooms = _as_number(params.get("minBedrooms"))
        if min_bedrooms is not None:
            filters.append(Property.bedrooms >= min_bedrooms)
        max_bedrooms = _as_number(params.get("maxBedrooms"))
        if max_bedrooms is not None:
            filters.append(Property.bedrooms <= max_bedrooms)

    bathrooms = _as_number(params.get("bathrooms"))
    if bathrooms is not None:
        filters.append(Property.bathrooms >= bathrooms)

    return filters
