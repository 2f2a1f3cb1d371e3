# background.py
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from crud import orders as crud_orders
from database import AsyncSessionLocal
from services import shipping_service
from services.shiprocket import CourierService
from settings import settings


async def auto_assign_in_background(couriers: CourierService, order_id: str, initial_delay: float = 3.0):
    """Assigns a courier to a freshly created shipment, in its own session."""
    logging.info(f"Background courier assignment started for order {order_id}.")
    async with AsyncSessionLocal() as session:
        try:
            order = await crud_orders.get_order(session, order_id)
            if not order:
                logging.warning(f"Background courier assignment: order {order_id} not found.")
                return
            result = await shipping_service.assign_courier_for_order(session, couriers, order, initial_delay)
        except Exception as e:
            logging.error(f"Background courier assignment failed for order {order_id}: {e}", exc_info=True)
            await session.rollback()
            return

    if result.success:
        logging.info(f"✅ AWB {result.awb_number} generated for order {order_id}.")
    else:
        logging.warning(f"AWB not generated for order {order_id}: {result.error}")


async def assign_pending_awbs(session: AsyncSession, couriers: CourierService) -> int:
    """Sweeps orders that have a shipment but no AWB yet. Returns how many got one."""
    pending = await crud_orders.list_orders_pending_awb(session)
    if not pending:
        return 0

    logging.info(f"Found {len(pending)} order(s) waiting for an AWB.")
    assigned = 0
    for order in pending:
        result = await shipping_service.assign_courier_for_order(session, couriers, order)
        if result.success:
            assigned += 1
    logging.info(f"AWB sweep finished: {assigned}/{len(pending)} order(s) assigned.")
    return assigned


async def run_periodic_task(interval_minutes: int, task_function, task_name: str):
    """Runs a function every `interval_minutes` minutes."""
    logging.info(f"Periodic task '{task_name}' started, running every {interval_minutes} minutes.")
    while True:
        try:
            async with AsyncSessionLocal() as session:
                await task_function(session)
                await session.commit()
        except Exception as e:
            logging.error(f"Error in periodic task '{task_name}': {e}", exc_info=True)

        await asyncio.sleep(interval_minutes * 60)


def start_background_tasks(couriers: CourierService) -> list:
    """
    Creates and starts the periodic background tasks. Returns the created
    tasks so the caller can cancel them on shutdown.
    """
    tasks = []
    if settings.AWB_SWEEP_INTERVAL_MINUTES <= 0:
        logging.info("Pending AWB sweep disabled.")
        return tasks

    logging.info("Initialising background tasks...")
    tasks.append(asyncio.create_task(run_periodic_task(
        interval_minutes=settings.AWB_SWEEP_INTERVAL_MINUTES,
        task_function=lambda session: assign_pending_awbs(session, couriers),
        task_name="Pending AWB sweep"
    )))
    return tasks
