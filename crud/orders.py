# crud/orders.py

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import models
import schemas


def _with_children(query):
    return query.options(
        selectinload(models.Order.line_items),
        selectinload(models.Order.tracking_events),
    )


async def get_order(db: AsyncSession, order_id: str) -> Optional[models.Order]:
    """Looks an order up by its marketplace order id."""
    result = await db.execute(_with_children(select(models.Order)).where(models.Order.order_id == order_id))
    return result.scalar_one_or_none()


async def get_order_by_shipment_id(db: AsyncSession, shipment_id: str) -> Optional[models.Order]:
    result = await db.execute(
        _with_children(select(models.Order)).where(models.Order.shipment_id == str(shipment_id))
    )
    return result.scalars().first()


async def create_order(db: AsyncSession, data: schemas.OrderCreate) -> models.Order:
    address = data.shipping_address
    order = models.Order(
        order_id=data.order_id,
        user_id=data.user_id,
        seller_id=data.seller_id,
        customer_name=data.customer_name,
        customer_email=data.customer_email,
        customer_phone=data.customer_phone,
        address_line=address.address_line,
        city=address.city,
        pincode=address.pincode,
        state=address.state,
        country=address.country,
        total=data.total,
        payment_method=data.payment_method,
        status="Placed",
        shipping_status="ORDERED",
        line_items=[
            models.LineItem(
                name=item.name,
                sku=item.sku,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
            )
            for item in data.items
        ],
        tracking_events=[],
    )
    db.add(order)
    await db.commit()
    return await get_order(db, data.order_id)


async def list_orders_pending_awb(db: AsyncSession) -> List[models.Order]:
    """Orders with a Shiprocket shipment that still have no AWB and are not cancelled."""
    result = await db.execute(
        _with_children(select(models.Order))
        .where(
            models.Order.shipment_id.is_not(None),
            models.Order.shiprocket_order_id.is_not(None),
            models.Order.awb_number.is_(None),
            models.Order.status != "Cancelled",
        )
        .order_by(models.Order.created_at, models.Order.id)
    )
    return list(result.scalars().all())
