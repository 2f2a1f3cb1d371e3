# dependencies.py
from fastapi import Request, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession

import models
from crud import orders as crud_orders
from database import get_db
from services.shiprocket import Shiprocket


def get_shiprocket(request: Request) -> Shiprocket:
    """Returns the Shiprocket services built at startup."""
    return request.app.state.shiprocket


async def get_order_or_404(order_id: str, db: AsyncSession = Depends(get_db)) -> models.Order:
    """Loads an order by its id, 404 when it does not exist."""
    order = await crud_orders.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order
