from sqlalchemy import (
    Column, Integer, String, DateTime, Float, ForeignKey, Text
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone

Base = declarative_base()

# Timestamps are set in Python so they stay loaded after a commit.
def utcnow():
    return datetime.now(timezone.utc)

# -----------------
# ORDER STORE
# -----------------

class Order(Base):
    """A marketplace order together with its Shiprocket shipment fields."""
    __tablename__ = 'orders'
    id = Column(Integer, primary_key=True)
    order_id = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, index=True)
    seller_id = Column(String)

    customer_name = Column(String, nullable=False)
    customer_email = Column(String)
    customer_phone = Column(String)
    address_line = Column(String, nullable=False)
    city = Column(String, nullable=False)
    pincode = Column(String, nullable=False)
    state = Column(String)
    country = Column(String)

    total = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False, default="COD")
    status = Column(String, nullable=False, default="Placed")
    shipping_status = Column(String, nullable=False, default="ORDERED")

    # Shiprocket
    shiprocket_order_id = Column(String)
    shipment_id = Column(String, index=True)
    awb_number = Column(String)
    courier_name = Column(String)
    courier_id = Column(Integer)
    courier_rate = Column(Float)
    estimated_delivery = Column(String)
    estimated_delivery_days = Column(String)
    label_url = Column(String)
    shiprocket_error = Column(Text)
    shiprocket_created_at = Column(DateTime(timezone=True))
    shiprocket_updated_at = Column(DateTime(timezone=True))
    courier_assigned_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    line_items = relationship("LineItem", back_populates="order", cascade="all, delete-orphan")
    tracking_events = relationship(
        "TrackingEvent", back_populates="order", cascade="all, delete-orphan", order_by="TrackingEvent.id"
    )

class LineItem(Base):
    """One product line of an order."""
    __tablename__ = 'line_items'
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False)
    product_id = Column(String)
    sku = Column(String, index=True)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    order = relationship("Order", back_populates="line_items")

class TrackingEvent(Base):
    """Tracking scan delivered by a Shiprocket webhook."""
    __tablename__ = 'tracking_events'
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False)
    date = Column(String)
    status = Column(String)
    location = Column(String)
    remarks = Column(Text)
    received_at = Column(DateTime(timezone=True), default=utcnow)
    order = relationship("Order", back_populates="tracking_events")
