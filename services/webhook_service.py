import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

import models
from crud import orders as crud_orders
from services.shiprocket.status import is_regression, map_shiprocket_status


class WebhookOutcome(str, Enum):
    OK = "ok"
    MISSING_SHIPMENT_ID = "missing_shipment_id"
    ORDER_NOT_FOUND = "order_not_found"


def _tracking_events(payload: Dict[str, Any]):
    events = payload.get("tracking_data")
    if not isinstance(events, list):
        return []
    return [
        models.TrackingEvent(
            date=_text(event.get("date")),
            status=_text(event.get("status")),
            location=_text(event.get("location")),
            remarks=_text(event.get("remarks")),
        )
        for event in events
        if isinstance(event, dict)
    ]


def _text(value: Any):
    return None if value is None else str(value)


async def process_status_webhook(db: AsyncSession, payload: Dict[str, Any]) -> WebhookOutcome:
    """Applies a Shiprocket status update to the order owning the shipment."""
    shipment_id = payload.get("shipment_id")
    if shipment_id is None or shipment_id == "":
        logging.warning("Webhook: payload without shipment_id ignored.")
        return WebhookOutcome.MISSING_SHIPMENT_ID

    order = await crud_orders.get_order_by_shipment_id(db, str(shipment_id))
    if not order:
        logging.warning(f"Webhook: no order found for shipment {shipment_id}.")
        return WebhookOutcome.ORDER_NOT_FOUND

    new_status = map_shiprocket_status(payload.get("current_status"))
    if is_regression(order.shipping_status, new_status):
        # The latest event wins even when it moves the order backwards.
        logging.warning(
            f"Webhook: order {order.order_id} moves back from {order.shipping_status} to {new_status.value}"
        )

    order.shipping_status = new_status.value
    order.shiprocket_updated_at = datetime.now(timezone.utc)
    if payload.get("estimated_delivery_date"):
        order.estimated_delivery = str(payload["estimated_delivery_date"])

    events = _tracking_events(payload)
    order.tracking_events.extend(events)

    await db.commit()
    logging.info(
        f"Webhook: order {order.order_id} updated to {new_status.value} "
        f"({payload.get('current_status')}), {len(events)} tracking event(s) added."
    )
    return WebhookOutcome.OK
