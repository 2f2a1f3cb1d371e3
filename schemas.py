from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

from services.shiprocket.schemas import PickupAddress, ShippingAddress

# --- Requests ---

class LineItemCreate(BaseModel):
    name: str
    sku: Optional[str] = None
    product_id: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)

class OrderCreate(BaseModel):
    order_id: str
    user_id: Optional[str] = None
    seller_id: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: ShippingAddress
    items: List[LineItemCreate] = Field(..., min_length=1)
    total: float
    payment_method: str = "COD"

class PickupAddressCreate(BaseModel):
    """Seller pickup address; the location name defaults to Seller_<seller_id>."""
    seller_id: Optional[str] = None
    pickup_location: Optional[str] = None
    name: str
    email: str
    phone: str
    address: str
    address_2: str = ""
    city: str
    state: str
    country: str
    pin_code: str

    def to_pickup_address(self) -> PickupAddress:
        location = self.pickup_location or (f"Seller_{self.seller_id}" if self.seller_id else None)
        data = self.model_dump(exclude={"seller_id", "pickup_location"})
        return PickupAddress(pickup_location=location or "", **data)

# --- Responses ---

class LineItemRead(BaseModel):
    name: str
    sku: Optional[str]
    quantity: int
    price: float

    model_config = ConfigDict(from_attributes=True)

class TrackingEventRead(BaseModel):
    date: Optional[str]
    status: Optional[str]
    location: Optional[str]
    remarks: Optional[str]

    model_config = ConfigDict(from_attributes=True)

class OrderRead(BaseModel):
    order_id: str
    customer_name: str
    total: float
    payment_method: str
    status: str
    shipping_status: str
    shiprocket_order_id: Optional[str]
    shipment_id: Optional[str]
    awb_number: Optional[str]
    courier_name: Optional[str]
    estimated_delivery: Optional[str]
    label_url: Optional[str]
    shiprocket_error: Optional[str]
    created_at: Optional[datetime]
    line_items: List[LineItemRead] = []
    tracking_events: List[TrackingEventRead] = []

    # Reads straight from the SQLAlchemy objects
    model_config = ConfigDict(from_attributes=True)

class OrderPlaced(BaseModel):
    success: bool
    order_id: str
    shipment_created: bool
    shipment_id: Optional[str] = None
    message: str
