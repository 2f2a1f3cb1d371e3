# services/shiprocket/status.py

import logging
from enum import Enum
from typing import Optional


class InternalStatus(str, Enum):
    """The five delivery stages shown to customers, in lifecycle order."""
    ORDERED = "ORDERED"
    PACKING = "PACKING"
    SHIPPING = "SHIPPING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"


SHIPROCKET_STATUS_MAP = {
    "NEW": InternalStatus.PACKING,
    "PENDING": InternalStatus.PACKING,
    "READY_TO_SHIP": InternalStatus.PACKING,
    "SHIPPED": InternalStatus.SHIPPING,
    "IN_TRANSIT": InternalStatus.SHIPPING,
    "PICKUP_SCHEDULED": InternalStatus.SHIPPING,
    "PICKUP_COMPLETE": InternalStatus.SHIPPING,
    "OUT_FOR_DELIVERY": InternalStatus.OUT_FOR_DELIVERY,
    "DELIVERED": InternalStatus.DELIVERED,
}

_STAGE_ORDER = list(InternalStatus)


def map_shiprocket_status(shiprocket_status: Optional[str]) -> InternalStatus:
    """Maps a Shiprocket status (any case) to the internal stage; unknown values fall back to ORDERED."""
    if not shiprocket_status or not isinstance(shiprocket_status, str):
        return InternalStatus.ORDERED

    stage = SHIPROCKET_STATUS_MAP.get(shiprocket_status.upper())
    if stage is None:
        logging.warning(f"Unknown Shiprocket status: {shiprocket_status}, defaulting to ORDERED")
        return InternalStatus.ORDERED
    return stage


def is_regression(previous: Optional[str], new: InternalStatus) -> bool:
    """True when `new` is an earlier stage than `previous`."""
    try:
        previous_stage = InternalStatus(previous)
    except ValueError:
        return False
    return _STAGE_ORDER.index(new) < _STAGE_ORDER.index(previous_stage)
