# routes/sellers.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

import schemas
from dependencies import get_shiprocket
from routes.orders import failure_response
from services.shiprocket import Shiprocket

router = APIRouter()


@router.post("/pickup-address")
async def create_pickup_address(data: schemas.PickupAddressCreate, shiprocket: Shiprocket = Depends(get_shiprocket)):
    """Registers a seller's pickup address with Shiprocket (named Seller_<seller_id> by default)."""
    address = data.to_pickup_address()
    if not address.pickup_location:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "pickup_location or seller_id is required"},
        )

    result = await shiprocket.shipments.create_pickup_address(address)
    if not result.success:
        return failure_response(result, result.error or "Failed to create pickup address")
    return {
        "success": True,
        "pickup_location": address.pickup_location,
        "pickup_id": result.pickup_id,
        "message": result.message,
    }
