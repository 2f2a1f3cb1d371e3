# services/shiprocket/__init__.py

from dataclasses import dataclass
from typing import Any, Optional

from .client import DEFAULT_API_URL, ShiprocketClient
from .couriers import CourierService, select_best_courier
from .errors import ErrorKind, ShiprocketError
from .schemas import PackageDimensions
from .shipments import ShipmentService
from .status import InternalStatus, map_shiprocket_status
from .webhook import verify_webhook_signature


@dataclass
class Shiprocket:
    """
    Everything the app needs to talk to Shiprocket, sharing one client
    (and therefore one token cache). Built once at startup and injected.
    """
    client: ShiprocketClient
    shipments: ShipmentService
    couriers: CourierService
    webhook_secret: Optional[str] = None

    @classmethod
    def from_settings(cls, settings, **client_kwargs: Any) -> "Shiprocket":
        client = ShiprocketClient.from_settings(settings, **client_kwargs)
        shipments = ShipmentService(
            client,
            default_pickup_location=settings.SHIPROCKET_DEFAULT_PICKUP_LOCATION,
            default_state=settings.SHIPROCKET_DEFAULT_STATE,
            default_country=settings.SHIPROCKET_DEFAULT_COUNTRY,
            package=settings.SHIPROCKET_PACKAGE,
        )
        couriers = CourierService(
            client,
            shipments,
            prefer_recommended=settings.COURIER_PREFER_RECOMMENDED,
            sleep=client_kwargs.get("sleep"),
        )
        return cls(client=client, shipments=shipments, couriers=couriers, webhook_secret=settings.SHIPROCKET_WEBHOOK_SECRET)

    @property
    def enabled(self) -> bool:
        return self.client.enabled

    def verify_webhook(self, payload: Any, signature: Optional[str]) -> bool:
        return verify_webhook_signature(payload, signature, self.webhook_secret)

    async def aclose(self):
        await self.client.aclose()


__all__ = [
    "DEFAULT_API_URL",
    "CourierService",
    "ErrorKind",
    "InternalStatus",
    "PackageDimensions",
    "ShipmentService",
    "Shiprocket",
    "ShiprocketClient",
    "ShiprocketError",
    "map_shiprocket_status",
    "select_best_courier",
    "verify_webhook_signature",
]
