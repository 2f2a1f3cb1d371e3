# services/shiprocket/schemas.py
"""
Wire schemas for the Shiprocket endpoints we call, plus the result objects
returned by every public operation of the integration.
"""

from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from .errors import ErrorKind, ShiprocketError


def _stringify(value: Any) -> Optional[str]:
    # Shiprocket mixes ints and strings for ids; empty strings mean "not yet".
    if value is None or value == "":
        return None
    return str(value)


def _flag(value: Any) -> bool:
    return value is True or value == 1


IdStr = Annotated[Optional[str], BeforeValidator(_stringify)]
Flag = Annotated[bool, BeforeValidator(_flag)]


# --- Input: an internal order, as the order store hands it over ---

class ShippingAddress(BaseModel):
    address_line: str
    city: str
    pincode: IdStr
    state: Optional[str] = None
    country: Optional[str] = None


class ShipmentItem(BaseModel):
    name: str
    sku: Optional[str] = None
    id: IdStr = None
    quantity: int
    price: float


class ShipmentOrder(BaseModel):
    order_id: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: ShippingAddress
    items: List[ShipmentItem]
    total: float
    payment_method: str
    seller_id: Optional[str] = None


class PackageDimensions(BaseModel):
    """Fixed package used for every shipment (cm / kg)."""
    length: float = 10
    breadth: float = 10
    height: float = 10
    weight: float = 0.5


# --- Requests ---

class AdhocOrderItem(BaseModel):
    name: str
    sku: str
    units: int
    selling_price: str
    discount: str = ""
    tax: str = ""
    hsn: str = ""


class AdhocOrderPayload(BaseModel):
    order_id: str
    order_date: str
    pickup_location: str
    billing_customer_name: str
    billing_last_name: str
    billing_address: str
    billing_city: str
    billing_pincode: Optional[str]
    billing_state: str
    billing_country: str
    billing_email: Optional[str]
    billing_phone: Optional[str]
    shipping_is_billing: bool = True
    order_items: List[AdhocOrderItem]
    payment_method: str
    sub_total: float
    length: float
    breadth: float
    height: float
    weight: float


class PickupAddress(BaseModel):
    pickup_location: str
    name: str
    email: str
    phone: str
    address: str
    address_2: str = ""
    city: str
    state: str
    country: str
    pin_code: str


# --- Responses ---

class CreateOrderResponse(BaseModel):
    order_id: IdStr = None
    shipment_id: IdStr = None
    status: Optional[str] = None
    awb_code: IdStr = None
    courier_name: Optional[str] = None
    estimated_delivery_date: Optional[str] = None


class PickupLocationEntry(BaseModel):
    pickup_location: Optional[str] = None


class PickupLocationsData(BaseModel):
    shipping_address: List[PickupLocationEntry] = []


class PickupLocationsResponse(BaseModel):
    data: Optional[PickupLocationsData] = None

    def first_location(self) -> Optional[str]:
        if not self.data:
            return None
        for entry in self.data.shipping_address:
            if entry.pickup_location:
                return entry.pickup_location
        return None


class Courier(BaseModel):
    """One entry of `available_courier_companies`."""
    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(alias="courier_company_id")
    name: str = Field("", alias="courier_name")
    rate: Optional[float] = None
    estimated_delivery_days: IdStr = None
    rating: Optional[float] = None
    cod_available: Flag = Field(False, alias="cod")
    recommended: Flag = Field(False, alias="is_recommended")

    @field_validator("rate", "rating", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        return None if value == "" else value


class AwbAssignData(BaseModel):
    awb_assign_status: Optional[int] = None
    awb_code: IdStr = None
    courier_name: Optional[str] = None
    courier_company_id: Optional[int] = None


class AwbAssignEnvelope(BaseModel):
    data: Optional[AwbAssignData] = None


class AssignAwbResponse(BaseModel):
    response: Optional[AwbAssignEnvelope] = None

    @property
    def assigned(self) -> Optional[AwbAssignData]:
        data = self.response.data if self.response else None
        if data and data.awb_assign_status == 1:
            return data
        return None


class LabelResponse(BaseModel):
    label_created: Optional[int] = None
    label_url: Optional[str] = None


# --- Results ---

class OperationResult(BaseModel):
    """Uniform outcome of a public operation; failures never raise."""
    success: bool
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    details: Any = None

    @classmethod
    def failed(cls, error: str, kind: Optional[ErrorKind] = None, details: Any = None):
        return cls(success=False, error=error, error_kind=kind, details=details)

    @classmethod
    def from_error(cls, exc: ShiprocketError):
        return cls.failed(exc.message, kind=exc.kind, details=exc.details)


class ShipmentResult(OperationResult):
    shiprocket_order_id: Optional[str] = None
    shipment_id: Optional[str] = None
    awb_number: Optional[str] = None
    courier_name: Optional[str] = None
    estimated_delivery: Optional[str] = None


class PickupResult(OperationResult):
    pickup_id: Optional[Any] = None
    message: Optional[str] = None


class CancelResult(OperationResult):
    message: Optional[str] = None
    data: Any = None


class TrackingResult(OperationResult):
    tracking: Optional[dict] = None


class LabelResult(OperationResult):
    label_url: Optional[str] = None
    message: Optional[str] = None


class CouriersResult(OperationResult):
    couriers: List[Courier] = []


class AssignmentResult(OperationResult):
    awb_number: Optional[str] = None
    courier_name: Optional[str] = None


class AutoAssignResult(OperationResult):
    awb_number: Optional[str] = None
    courier_name: Optional[str] = None
    courier_id: Optional[int] = None
    courier_rate: Optional[float] = None
    estimated_delivery_days: Optional[str] = None
