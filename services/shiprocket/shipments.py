# services/shiprocket/shipments.py

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import ValidationError as SchemaError

from .client import ShiprocketClient
from .errors import ErrorKind, ShiprocketError
from .schemas import (
    AdhocOrderItem,
    AdhocOrderPayload,
    CancelResult,
    CreateOrderResponse,
    LabelResponse,
    LabelResult,
    PackageDimensions,
    PickupAddress,
    PickupLocationsResponse,
    PickupResult,
    ShipmentItem,
    ShipmentOrder,
    ShipmentResult,
    TrackingResult,
)

DEFAULT_PICKUP_LOCATION = "Primary"
DEFAULT_STATE = "Karnataka"
DEFAULT_COUNTRY = "India"


def split_name(full_name: Optional[str]) -> Tuple[str, str]:
    parts = (full_name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def format_price(price: float) -> str:
    """500.0 -> '500', 499.5 -> '499.5'."""
    if float(price).is_integer():
        return str(int(price))
    return str(price)


def _item_sku(item: ShipmentItem, position: int) -> str:
    return item.sku or item.id or f"SKU-{position}"


class ShipmentService:
    """Creates and manages Shiprocket orders (shipments) for internal orders."""

    def __init__(
        self,
        client: ShiprocketClient,
        *,
        default_pickup_location: str = DEFAULT_PICKUP_LOCATION,
        default_state: str = DEFAULT_STATE,
        default_country: str = DEFAULT_COUNTRY,
        package: Optional[PackageDimensions] = None,
    ):
        self.client = client
        self.default_pickup_location = default_pickup_location
        self.default_state = default_state
        self.default_country = default_country
        self.package = package or PackageDimensions()

    def _disabled(self, result_cls):
        return result_cls.failed("Shiprocket service is disabled", kind=ErrorKind.CONFIGURATION)

    async def resolve_pickup_location(self, seller_id: Optional[str] = None) -> str:
        """
        Seller orders ship from `Seller_<sellerId>`. Otherwise the first pickup
        address registered on the account is used, and the configured default
        when the lookup fails or returns nothing.
        """
        if seller_id:
            return f"Seller_{seller_id}"

        try:
            data = await self.client.request("/settings/company/pickup", retries=1, method="GET")
            location = PickupLocationsResponse.model_validate(data).first_location()
        except (ShiprocketError, SchemaError) as e:
            logging.error(f"Failed to fetch pickup locations, using fallback '{self.default_pickup_location}': {e}")
            return self.default_pickup_location

        if not location:
            logging.warning(f"No pickup locations found via API, using fallback '{self.default_pickup_location}'")
            return self.default_pickup_location

        logging.info(f"Using pickup location from Shiprocket: {location}")
        return location

    def build_order_payload(self, order: ShipmentOrder, pickup_location: str) -> AdhocOrderPayload:
        first_name, last_name = split_name(order.customer_name)
        address = order.shipping_address

        return AdhocOrderPayload(
            order_id=order.order_id,
            order_date=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            pickup_location=pickup_location,
            billing_customer_name=first_name,
            billing_last_name=last_name,
            billing_address=address.address_line,
            billing_city=address.city,
            billing_pincode=address.pincode,
            # Shiprocket rejects orders without a state.
            billing_state=address.state or self.default_state,
            billing_country=address.country or self.default_country,
            billing_email=order.customer_email,
            billing_phone=order.customer_phone,
            shipping_is_billing=True,
            order_items=[
                AdhocOrderItem(
                    name=item.name,
                    sku=_item_sku(item, position),
                    units=item.quantity,
                    selling_price=format_price(item.price),
                )
                for position, item in enumerate(order.items, start=1)
            ],
            payment_method="COD" if order.payment_method.upper() == "COD" else "Prepaid",
            sub_total=order.total,
            length=self.package.length,
            breadth=self.package.breadth,
            height=self.package.height,
            weight=self.package.weight,
        )

    async def create_shipment(self, order: ShipmentOrder) -> ShipmentResult:
        if not self.client.enabled:
            return self._disabled(ShipmentResult)

        logging.info(f"Creating Shiprocket shipment for order {order.order_id}...")
        try:
            pickup_location = await self.resolve_pickup_location(order.seller_id)
            payload = self.build_order_payload(order, pickup_location)
            data = await self.client.request(
                "/orders/create/adhoc",
                payload.model_dump(),
                retries=3,
                order_id=order.order_id,
            )
        except ShiprocketError as e:
            logging.error(f"Shipment creation failed for order {order.order_id}: {e.message} (status {e.status_code})")
            return ShipmentResult.from_error(e)
        except Exception as e:
            logging.error(f"Unexpected error creating shipment for order {order.order_id}: {e}", exc_info=True)
            return ShipmentResult.failed(str(e))

        if not data:
            logging.error(f"Shipment creation failed for order {order.order_id}: no data in response")
            return ShipmentResult.failed("No data in Shiprocket response", kind=ErrorKind.API)

        try:
            response = CreateOrderResponse.model_validate(data)
        except SchemaError:
            logging.error(f"Unexpected Shiprocket response for order {order.order_id}: {data}")
            return ShipmentResult.failed("Unexpected Shiprocket response", kind=ErrorKind.API, details=data)

        # Error bodies can come back with HTTP 200; a created shipment always has both ids.
        if not response.order_id or not response.shipment_id:
            logging.error(f"Shiprocket response without order/shipment id for order {order.order_id}: {data}")
            return ShipmentResult.failed("Unexpected Shiprocket response", kind=ErrorKind.API, details=data)

        logging.info(
            f"Shipment created for order {order.order_id}: shiprocket order {response.order_id}, "
            f"shipment {response.shipment_id}, AWB {response.awb_code or 'Pending'}, "
            f"courier {response.courier_name or 'Pending'}"
        )
        return ShipmentResult(
            success=True,
            shiprocket_order_id=response.order_id,
            shipment_id=response.shipment_id,
            awb_number=response.awb_code,
            courier_name=response.courier_name or None,
            estimated_delivery=response.estimated_delivery_date or None,
        )

    async def create_pickup_address(self, address: PickupAddress) -> PickupResult:
        if not self.client.enabled:
            return self._disabled(PickupResult)

        logging.info(f"Creating pickup address: {address.pickup_location}...")
        try:
            data = await self.client.request(
                "/settings/company/addpickup",
                address.model_dump(),
                retries=3,
                order_id=address.pickup_location,
            )
        except ShiprocketError as e:
            logging.error(f"Pickup address creation error for {address.pickup_location}: {e.message} (status {e.status_code})")
            return PickupResult.from_error(e)

        if isinstance(data, dict) and data.get("success"):
            logging.info(f"Pickup address {address.pickup_location} created ({address.city}, {address.state})")
            return PickupResult(
                success=True,
                pickup_id=data.get("pickup_id"),
                message=data.get("message") or "Pickup address created successfully",
            )

        logging.error(f"Pickup address creation failed: {data}")
        message = data.get("message") if isinstance(data, dict) else None
        return PickupResult.failed(message or "Failed to create pickup address", kind=ErrorKind.API, details=data)

    async def cancel_order(self, shiprocket_order_id: str, internal_order_id: Optional[str] = None) -> CancelResult:
        """Cancels by Shiprocket *order* id; the cancel endpoint does not accept shipment ids."""
        if not self.client.enabled:
            return self._disabled(CancelResult)

        logging.info(f"Cancelling Shiprocket order {shiprocket_order_id} (internal: {internal_order_id})...")
        try:
            data = await self.client.request(
                "/orders/cancel",
                {"ids": [shiprocket_order_id]},
                retries=3,
                order_id=internal_order_id or shiprocket_order_id,
            )
        except ShiprocketError as e:
            logging.error(f"Order cancellation error for {internal_order_id} / {shiprocket_order_id}: {e.message}")
            return CancelResult.from_error(e)

        if not data:
            return CancelResult.failed("Failed to cancel order", kind=ErrorKind.API)

        logging.info(f"Order {internal_order_id} cancelled in Shiprocket (order {shiprocket_order_id})")
        message = data.get("message") if isinstance(data, dict) else None
        return CancelResult(success=True, message=message or "Order cancelled successfully", data=data)

    async def get_shipment_tracking(self, shipment_id: str) -> TrackingResult:
        if not self.client.enabled:
            return self._disabled(TrackingResult)

        logging.info(f"Fetching tracking for shipment {shipment_id}...")
        try:
            data = await self.client.request(
                f"/courier/track/shipment/{shipment_id}",
                retries=1,
                method="GET",
                order_id=shipment_id,
            )
        except ShiprocketError as e:
            logging.error(f"Tracking fetch error for shipment {shipment_id}: {e.message} (status {e.status_code})")
            return TrackingResult.from_error(e)

        tracking = data.get("tracking_data") if isinstance(data, dict) else None
        if not tracking or not isinstance(tracking, dict) or tracking.get("error"):
            return TrackingResult.failed("No tracking data available", kind=ErrorKind.NOT_FOUND, details=data)

        return TrackingResult(success=True, tracking=data)

    async def get_shipping_label(self, shipment_ids: List[str]) -> LabelResult:
        if not self.client.enabled:
            return self._disabled(LabelResult)
        if not shipment_ids:
            return LabelResult.failed("No shipment ids given", kind=ErrorKind.VALIDATION)

        logging.info(f"Fetching shipping label for shipments: {', '.join(map(str, shipment_ids))}...")
        try:
            data = await self.client.request(
                "/courier/generate/label",
                {"shipment_id": list(shipment_ids)},
                retries=3,
                order_id=shipment_ids[0],
            )
            response = LabelResponse.model_validate(data)
        except ShiprocketError as e:
            logging.error(f"Shipping label fetch error: {e.message}")
            return LabelResult.from_error(e)
        except SchemaError:
            return LabelResult.failed("Failed to generate label", kind=ErrorKind.API, details=data)

        if response.label_created == 1 and response.label_url:
            return LabelResult(success=True, label_url=response.label_url, message="Label generated successfully")
        return LabelResult.failed("Failed to generate label", kind=ErrorKind.API, details=data)
