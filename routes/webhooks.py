# routes/webhooks.py
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from dependencies import get_shiprocket
from services import webhook_service
from services.shiprocket import Shiprocket
from services.webhook_service import WebhookOutcome

router = APIRouter()

OUTCOME_RESPONSES = {
    WebhookOutcome.OK: (200, {"success": True, "message": "Order status updated"}),
    WebhookOutcome.MISSING_SHIPMENT_ID: (400, {"success": False, "message": "Missing shipment_id"}),
    WebhookOutcome.ORDER_NOT_FOUND: (404, {"success": False, "message": "Order not found"}),
}


@router.post("/shiprocket")
async def shiprocket_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    shiprocket: Shiprocket = Depends(get_shiprocket),
):
    """
    Shiprocket status updates. The signature is checked against the raw body
    before anything in it is trusted.
    """
    raw_body = await request.body()
    signature = request.headers.get("X-Shiprocket-Signature")

    if not shiprocket.verify_webhook(raw_body, signature):
        logging.warning("Webhook: rejected Shiprocket callback with missing or invalid signature.")
        return JSONResponse(status_code=403, content={"success": False, "message": "Invalid signature"})

    try:
        payload = json.loads(raw_body)
    except ValueError:
        return JSONResponse(status_code=400, content={"success": False, "message": "Invalid JSON body"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"success": False, "message": "Invalid JSON body"})

    outcome = await webhook_service.process_status_webhook(db, payload)
    status_code, content = OUTCOME_RESPONSES[outcome]
    return JSONResponse(status_code=status_code, content=content)
