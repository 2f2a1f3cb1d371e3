# scripts/assign_couriers.py
import argparse
import asyncio
import sys
from pathlib import Path

# Root directory on the path so the application modules import
sys.path.append(str(Path(__file__).resolve().parent.parent))

from tqdm.asyncio import tqdm

from crud import orders as crud_orders
from database import AsyncSessionLocal, init_db
from services import shipping_service
from services.shiprocket import Shiprocket, select_best_courier
from services.shiprocket.schemas import AutoAssignResult
from settings import settings


def describe_courier(courier, selected: bool) -> str:
    marker = "*" if selected else " "
    recommended = " [recommended]" if courier.recommended else ""
    return (
        f"  {marker} {courier.name} (id {courier.id}): rate {courier.rate}, "
        f"{courier.estimated_delivery_days or '?'} days, rating {courier.rating}, "
        f"COD {'yes' if courier.cod_available else 'no'}{recommended}"
    )


async def assign_order(session, shiprocket: Shiprocket, order, prefer_recommended: bool, dry_run: bool) -> bool:
    couriers = await shiprocket.couriers.get_available_couriers(order.shiprocket_order_id)
    if not couriers.success:
        tqdm.write(f"{order.order_id}: {couriers.error}")
        return False

    best = select_best_courier(couriers.couriers, prefer_recommended=prefer_recommended)
    tqdm.write(f"{order.order_id} (shipment {order.shipment_id}): {len(couriers.couriers)} courier(s)")
    for courier in couriers.couriers:
        tqdm.write(describe_courier(courier, courier is best))

    if dry_run or best is None:
        return False

    assignment = await shiprocket.couriers.assign_courier(order.shipment_id, best.id, order.order_id)
    if assignment.success:
        result = AutoAssignResult(
            success=True,
            awb_number=assignment.awb_number,
            courier_name=assignment.courier_name or best.name,
            courier_id=best.id,
            courier_rate=best.rate,
            estimated_delivery_days=best.estimated_delivery_days,
        )
    else:
        result = AutoAssignResult.failed(assignment.error, kind=assignment.error_kind, details=assignment.details)

    await shipping_service.apply_courier_assignment(session, order, result)
    tqdm.write(f"  -> {'AWB ' + str(result.awb_number) if result.success else 'failed: ' + str(result.error)}")
    return result.success


async def main(prefer_recommended: bool, dry_run: bool) -> int:
    await init_db()
    shiprocket = Shiprocket.from_settings(settings)
    if not shiprocket.enabled:
        print("Shiprocket is not configured. Set SHIPROCKET_EMAIL and SHIPROCKET_PASSWORD.")
        await shiprocket.aclose()
        return 1

    try:
        async with AsyncSessionLocal() as session:
            pending = await crud_orders.list_orders_pending_awb(session)
            if not pending:
                print("No orders are waiting for an AWB.")
                return 0

            print(f"Found {len(pending)} order(s) without an AWB.")
            assigned = 0
            for order in tqdm(pending, desc="Assigning couriers"):
                if await assign_order(session, shiprocket, order, prefer_recommended, dry_run):
                    assigned += 1
    finally:
        await shiprocket.aclose()

    if dry_run:
        print("Dry run, nothing was assigned.")
    else:
        print(f"Assigned {assigned} / {len(pending)} order(s).")
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Assign couriers to orders that have a shipment but no AWB.")
    parser.add_argument(
        "--prefer-recommended",
        action="store_true",
        default=settings.COURIER_PREFER_RECOMMENDED,
        help="pick the courier Shiprocket recommends instead of best rating / lowest rate",
    )
    parser.add_argument("--dry-run", action="store_true", help="only list the courier options")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    sys.exit(asyncio.run(main(args.prefer_recommended, args.dry_run)))
