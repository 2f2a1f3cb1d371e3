# services/shiprocket/couriers.py

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from pydantic import ValidationError as SchemaError

from .client import ShiprocketClient
from .errors import ErrorKind, ShiprocketError
from .schemas import (
    AssignAwbResponse,
    AssignmentResult,
    AutoAssignResult,
    Courier,
    CouriersResult,
    TrackingResult,
)
from .shipments import ShipmentService


def select_best_courier(couriers: Sequence[Courier], prefer_recommended: bool = False) -> Optional[Courier]:
    """
    Picks the courier for a shipment.

    Only couriers quoting a delivery estimate are considered; among them the
    highest rating wins and equal ratings go to the cheaper rate. When no
    courier is serviceable, or none of them is rated, the first courier of
    the input list is returned. With `prefer_recommended` the first
    courier flagged as recommended by Shiprocket wins outright.
    """
    if not couriers:
        return None

    if prefer_recommended:
        recommended = next((c for c in couriers if c.recommended), None)
        if recommended:
            return recommended

    serviceable = [c for c in couriers if c.estimated_delivery_days]
    if not serviceable or all(c.rating is None for c in serviceable):
        return couriers[0]

    def rank(courier: Courier):
        rate = courier.rate if courier.rate is not None else float("inf")
        return (-(courier.rating or 0), rate)

    # min() keeps the first of equal keys, so input order breaks remaining ties.
    return min(serviceable, key=rank)


def parse_couriers(raw: Any) -> List[Courier]:
    if not isinstance(raw, list):
        return []
    couriers = []
    for entry in raw:
        try:
            couriers.append(Courier.model_validate(entry))
        except SchemaError:
            logging.warning(f"Skipping malformed courier entry: {entry}")
    return couriers


class CourierService:
    """Courier lookup, selection and AWB assignment for created shipments."""

    def __init__(
        self,
        client: ShiprocketClient,
        shipments: ShipmentService,
        *,
        prefer_recommended: bool = False,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.client = client
        self.shipments = shipments
        self.prefer_recommended = prefer_recommended
        self._sleep = sleep or asyncio.sleep

    async def get_available_couriers(self, shiprocket_order_id: str) -> CouriersResult:
        if not self.client.enabled:
            return CouriersResult.failed("Service disabled", kind=ErrorKind.CONFIGURATION)

        logging.info(f"Fetching couriers for Shiprocket order {shiprocket_order_id}...")
        try:
            data = await self.client.request(
                "/courier/serviceability/",
                params={"order_id": shiprocket_order_id},
                retries=2,
                method="GET",
                order_id=shiprocket_order_id,
            )
        except ShiprocketError as e:
            logging.error(f"Courier fetch error for order {shiprocket_order_id}: {e.message}")
            return CouriersResult.from_error(e)

        body = data.get("data") if isinstance(data, dict) else None
        raw = body.get("available_courier_companies") if isinstance(body, dict) else None
        couriers = parse_couriers(raw)
        if not couriers:
            return CouriersResult.failed("No couriers available", kind=ErrorKind.NOT_FOUND, details=data)
        return CouriersResult(success=True, couriers=couriers)

    async def assign_courier(self, shipment_id: str, courier_id: int, order_id: Optional[str] = None) -> AssignmentResult:
        if not self.client.enabled:
            return AssignmentResult.failed("Service disabled", kind=ErrorKind.CONFIGURATION)

        logging.info(f"Assigning courier {courier_id} to shipment {shipment_id}...")
        try:
            data = await self.client.request(
                "/courier/assign/awb",
                {"shipment_id": shipment_id, "courier_id": courier_id},
                retries=3,
                order_id=order_id or shipment_id,
            )
            assigned = AssignAwbResponse.model_validate(data).assigned
        except ShiprocketError as e:
            logging.error(f"Courier assignment error for shipment {shipment_id}: {e.message}")
            return AssignmentResult.from_error(e)
        except SchemaError:
            assigned = None

        if not assigned:
            logging.error(f"AWB not assigned for shipment {shipment_id}: {data}")
            return AssignmentResult.failed("Failed to assign AWB", kind=ErrorKind.API, details=data)

        return AssignmentResult(success=True, awb_number=assigned.awb_code, courier_name=assigned.courier_name)

    async def verify_awb_generation(self, shipment_id: str, max_attempts: int = 5, delay: float = 3.0) -> TrackingResult:
        """Polls tracking until it shows up, at most `max_attempts` times."""
        if not self.client.enabled:
            return TrackingResult.failed("Service disabled", kind=ErrorKind.CONFIGURATION)

        for attempt in range(1, max_attempts + 1):
            logging.info(f"Verifying AWB for shipment {shipment_id} (attempt {attempt}/{max_attempts})...")
            tracking = await self.shipments.get_shipment_tracking(shipment_id)
            if tracking.success and tracking.tracking:
                return tracking
            if attempt < max_attempts:
                await self._sleep(delay)

        return TrackingResult.failed("Timeout verifying AWB", kind=ErrorKind.TRANSIENT_NETWORK)

    async def auto_assign_courier_and_generate_awb(
        self,
        shiprocket_order_id: str,
        shipment_id: str,
        internal_order_id: Optional[str] = None,
        initial_delay: float = 3.0,
    ) -> AutoAssignResult:
        """
        Couriers -> selection -> assignment, one request after the other.

        Shiprocket needs a moment after order creation before serviceability
        answers for the new order, hence `initial_delay`.
        """
        if not self.client.enabled:
            return AutoAssignResult.failed("Service disabled", kind=ErrorKind.CONFIGURATION)

        internal_order_id = internal_order_id or shiprocket_order_id
        logging.info(f"Starting automatic courier assignment for order {internal_order_id}...")
        try:
            if initial_delay > 0:
                await self._sleep(initial_delay)

            couriers = await self.get_available_couriers(shiprocket_order_id)
            if not couriers.success:
                return AutoAssignResult.failed(
                    "No couriers available for this order", kind=couriers.error_kind, details=couriers.details
                )

            best = select_best_courier(couriers.couriers, prefer_recommended=self.prefer_recommended)
            if best is None:
                return AutoAssignResult.failed("Failed to select best courier", kind=ErrorKind.NOT_FOUND)

            logging.info(
                f"Selected courier {best.name} (rate {best.rate}, {best.estimated_delivery_days} days, "
                f"rating {best.rating}) for order {internal_order_id}"
            )

            assignment = await self.assign_courier(shipment_id, best.id, internal_order_id)
            if not assignment.success:
                return AutoAssignResult.failed(assignment.error, kind=assignment.error_kind, details=assignment.details)
        except Exception as e:
            logging.error(f"Automatic courier assignment failed for order {internal_order_id}: {e}", exc_info=True)
            return AutoAssignResult.failed(str(e))

        logging.info(f"AWB generated for order {internal_order_id}: {assignment.awb_number}")
        return AutoAssignResult(
            success=True,
            awb_number=assignment.awb_number,
            courier_name=assignment.courier_name or best.name,
            courier_id=best.id,
            courier_rate=best.rate,
            estimated_delivery_days=best.estimated_delivery_days,
        )
