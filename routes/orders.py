# routes/orders.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

import background
import models
import schemas
from crud import orders as crud_orders
from database import get_db
from dependencies import get_order_or_404, get_shiprocket
from services import shipping_service
from services.shiprocket import ErrorKind, Shiprocket
from services.shiprocket.schemas import OperationResult
from settings import settings

router = APIRouter()

CANCELLABLE_STATUSES = {"Placed", "Processing", "Pending"}

# HTTP status used when a Shiprocket operation fails, by error kind
ERROR_STATUS = {
    ErrorKind.CONFIGURATION: 503,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMIT: 429,
}


def failure_response(result: OperationResult, message: str) -> JSONResponse:
    status_code = ERROR_STATUS.get(result.error_kind, 502)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": result.error, "details": result.details},
    )


def schedule_auto_assign(background_tasks: BackgroundTasks, shiprocket: Shiprocket, order: models.Order):
    if order.shipment_id and order.shiprocket_order_id and not order.awb_number:
        background_tasks.add_task(
            background.auto_assign_in_background,
            shiprocket.couriers,
            order.order_id,
            settings.AUTO_ASSIGN_DELAY_SECONDS,
        )


@router.post("", status_code=201, response_model=schemas.OrderPlaced)
async def place_order(
    data: schemas.OrderCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    """
    Stores the order, creates its Shiprocket shipment and schedules courier
    assignment. The order is kept even when the shipment could not be created.
    """
    if await crud_orders.get_order(db, data.order_id):
        raise HTTPException(status_code=409, detail=f"Order {data.order_id} already exists")

    order = await crud_orders.create_order(db, data)
    logging.info(f"Order {order.order_id} placed ({len(order.line_items)} item(s), total {order.total}).")

    result = await shipping_service.create_shipment_for_order(db, shiprocket.shipments, order)
    if result.success:
        schedule_auto_assign(background_tasks, shiprocket, order)

    return schemas.OrderPlaced(
        success=True,
        order_id=order.order_id,
        shipment_created=result.success,
        shipment_id=order.shipment_id,
        message="Order placed successfully" if result.success else "Order placed, shipment pending",
    )


@router.get("/{order_id}", response_model=schemas.OrderRead)
async def read_order(order: models.Order = Depends(get_order_or_404)):
    return order


@router.post("/{order_id}/shipment")
async def create_order_shipment(
    background_tasks: BackgroundTasks,
    order: models.Order = Depends(get_order_or_404),
    db: AsyncSession = Depends(get_db),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    """Retries shipment creation for an order whose first attempt failed."""
    if order.status == "Cancelled":
        return JSONResponse(status_code=400, content={"success": False, "message": "Order is cancelled"})
    if order.shipment_id:
        return JSONResponse(
            status_code=409,
            content={"success": False, "message": "Shipment already exists", "shipment_id": order.shipment_id},
        )

    result = await shipping_service.create_shipment_for_order(db, shiprocket.shipments, order)
    if not result.success:
        return failure_response(result, "Failed to create shipment")

    schedule_auto_assign(background_tasks, shiprocket, order)
    return {"success": True, **result.model_dump(exclude={"success", "error", "error_kind", "details"})}


@router.post("/{order_id}/assign-courier")
async def assign_order_courier(
    order: models.Order = Depends(get_order_or_404),
    db: AsyncSession = Depends(get_db),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    if not order.shipment_id:
        return JSONResponse(status_code=400, content={"success": False, "message": "Order has no shipment"})
    if order.awb_number:
        return {"success": True, "awb_number": order.awb_number, "courier_name": order.courier_name}

    result = await shipping_service.assign_courier_for_order(db, shiprocket.couriers, order)
    if not result.success:
        return failure_response(result, "Failed to assign courier")
    return result.model_dump(exclude={"error", "error_kind", "details"})


@router.get("/{order_id}/tracking")
async def get_order_tracking(
    order: models.Order = Depends(get_order_or_404),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    if not order.shipment_id:
        return JSONResponse(status_code=400, content={"success": False, "message": "Order has no shipment"})

    result = await shiprocket.shipments.get_shipment_tracking(order.shipment_id)
    if not result.success:
        return failure_response(result, "Tracking not available")
    return {"success": True, "shipping_status": order.shipping_status, "tracking": result.tracking}


@router.post("/{order_id}/verify-awb")
async def verify_order_awb(
    order: models.Order = Depends(get_order_or_404),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    if not order.shipment_id:
        return JSONResponse(status_code=400, content={"success": False, "message": "Order has no shipment"})

    result = await shiprocket.couriers.verify_awb_generation(
        order.shipment_id,
        max_attempts=settings.AWB_VERIFY_ATTEMPTS,
        delay=settings.AWB_VERIFY_DELAY_SECONDS,
    )
    if not result.success:
        return failure_response(result, "AWB not verified")
    return {"success": True, "tracking": result.tracking}


@router.get("/{order_id}/label")
async def get_order_label(
    order: models.Order = Depends(get_order_or_404),
    db: AsyncSession = Depends(get_db),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    if not order.shipment_id or not order.awb_number:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "No shipment or AWB available for this order"},
        )

    result = await shiprocket.shipments.get_shipping_label([order.shipment_id])
    if not result.success:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Failed to fetch label", "error": result.error},
        )

    order.label_url = result.label_url
    await db.commit()
    return {"success": True, "label_url": result.label_url}


@router.post("/{order_id}/cancel")
async def cancel_order(
    order: models.Order = Depends(get_order_or_404),
    db: AsyncSession = Depends(get_db),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    """
    Cancels the order locally. The Shiprocket order is cancelled as well when
    one exists; a vendor failure does not block the local cancellation.
    """
    if order.status == "Cancelled":
        return JSONResponse(status_code=400, content={"success": False, "message": "Order is already cancelled"})
    if order.status not in CANCELLABLE_STATUSES:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": f"Order cannot be cancelled. Current status: {order.status}"},
        )

    shipment_cancelled = False
    if order.shiprocket_order_id:
        result = await shiprocket.shipments.cancel_order(order.shiprocket_order_id, order.order_id)
        shipment_cancelled = result.success
        if not result.success:
            logging.warning(f"Shiprocket cancellation failed for order {order.order_id}: {result.error}")

    order.status = "Cancelled"
    order.cancelled_at = datetime.now(timezone.utc)
    await db.commit()
    return {"success": True, "message": "Order cancelled successfully", "shipment_cancelled": shipment_cancelled}
