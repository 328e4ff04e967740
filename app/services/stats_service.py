"""Read-only aggregation of stored properties by type."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.property_model import Property
from app.schemas.property_schema import PropertyTypeStats


async def property_type_stats(db: AsyncSession) -> list[PropertyTypeStats]:
    q = (
        select(
            Property.property_type,
            func.count(Property.id),
            func.avg(Property.price),
            func.min(Property.price),
            func.max(Property.price),
        )
        .group_by(Property.property_type)
        .order_by(Property.property_type)
    )
    rows = (await db.execute(q)).all()
    return [
        PropertyTypeStats(
            property_type=property_type,
            count=count,
            avg_price=float(avg_price) if avg_price is not None else None,
            min_price=float(min_price) if min_price is not None else None,
            max_price=float(max_price) if max_price is not None else None,
        )
        for property_type, count, avg_price, min_price, max_price in rows
    ]
