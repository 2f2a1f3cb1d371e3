# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from background import start_background_tasks
from database import init_db
from routes import orders, sellers, webhooks
from services.shiprocket import Shiprocket
from settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the tables and the Shiprocket services on startup, starts the
    background tasks, and closes everything on shutdown.
    """
    await init_db()
    app.state.shiprocket = Shiprocket.from_settings(settings)
    tasks = start_background_tasks(app.state.shiprocket.couriers)
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        await app.state.shiprocket.aclose()


app = FastAPI(title="Shipments", lifespan=lifespan)

# Include all the different routes from other files
app.include_router(orders.router, prefix="/orders", tags=["orders"])
app.include_router(sellers.router, prefix="/seller", tags=["sellers"])
app.include_router(webhooks.router, prefix="/webhook", tags=["webhooks"])


@app.get("/health")
async def health(request: Request):
    shiprocket = getattr(request.app.state, "shiprocket", None)
    return {"status": "ok", "shiprocket_enabled": bool(shiprocket and shiprocket.enabled)}
