import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

import models
from services.shiprocket import CourierService, ShipmentService
from services.shiprocket.schemas import (
    AutoAssignResult,
    ShipmentItem,
    ShipmentOrder,
    ShipmentResult,
    ShippingAddress,
)


def build_shipment_order(order: models.Order) -> ShipmentOrder:
    """Turns a stored order into the input of the shipment creator."""
    return ShipmentOrder(
        order_id=order.order_id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        shipping_address=ShippingAddress(
            address_line=order.address_line,
            city=order.city,
            pincode=order.pincode,
            state=order.state,
            country=order.country,
        ),
        items=[
            ShipmentItem(
                name=item.name,
                sku=item.sku,
                id=item.product_id,
                quantity=item.quantity,
                price=item.price,
            )
            for item in order.line_items
        ],
        total=order.total,
        payment_method=order.payment_method,
        seller_id=order.seller_id,
    )


async def create_shipment_for_order(db: AsyncSession, shipments: ShipmentService, order: models.Order) -> ShipmentResult:
    """
    Creates the Shiprocket shipment and writes the outcome back on the order.
    A failed shipment is recorded on the order, never raised.
    """
    result = await shipments.create_shipment(build_shipment_order(order))
    now = datetime.now(timezone.utc)

    if result.success:
        order.shiprocket_order_id = result.shiprocket_order_id
        order.shipment_id = result.shipment_id
        order.awb_number = result.awb_number
        order.courier_name = result.courier_name
        order.estimated_delivery = result.estimated_delivery
        order.shiprocket_error = None
        logging.info(f"Order {order.order_id} linked to Shiprocket shipment {result.shipment_id}")
    else:
        order.shiprocket_error = result.error
        logging.error(f"Shiprocket shipment failed for order {order.order_id}: {result.error}")

    order.shiprocket_created_at = now
    await db.commit()
    return result


async def apply_courier_assignment(db: AsyncSession, order: models.Order, result: AutoAssignResult) -> models.Order:
    if result.success:
        order.awb_number = result.awb_number
        order.courier_name = result.courier_name
        order.courier_id = result.courier_id
        order.courier_rate = result.courier_rate
        order.estimated_delivery_days = result.estimated_delivery_days
        order.courier_assigned_at = datetime.now(timezone.utc)
        order.shiprocket_error = None
        logging.info(f"Courier {result.courier_name} assigned to order {order.order_id}, AWB {result.awb_number}")
    else:
        order.shiprocket_error = result.error
        logging.warning(f"Courier assignment failed for order {order.order_id}: {result.error}")

    await db.commit()
    return order


async def assign_courier_for_order(
    db: AsyncSession,
    couriers: CourierService,
    order: models.Order,
    initial_delay: float = 0,
) -> AutoAssignResult:
    if not (order.shiprocket_order_id and order.shipment_id):
        return AutoAssignResult.failed("Order has no Shiprocket shipment")

    result = await couriers.auto_assign_courier_and_generate_awb(
        order.shiprocket_order_id,
        order.shipment_id,
        internal_order_id=order.order_id,
        initial_delay=initial_delay,
    )
    await apply_courier_assignment(db, order, result)
    return result
