from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from services.shiprocket import CourierService, ShipmentService, ShiprocketClient

API_PREFIX = "/v1/external"


class FakeShiprocketApi:
    """
    httpx.MockTransport handler standing in for the Shiprocket API.

    Responses are queued per (method, path); the last one repeats. A queued
    exception is raised instead of answering.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.login_calls = []
        self.login_responses = [httpx.Response(200, json={"token": "token-1"})]

    def add(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)

    def calls_to(self, path):
        return [call for call in self.calls if call.url.path == API_PREFIX + path]

    def _next(self, queue):
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def __call__(self, request: httpx.Request):
        path = request.url.path[len(API_PREFIX):]
        if path == "/auth/login":
            self.login_calls.append(request)
            response = self._next(self.login_responses)
        else:
            self.calls.append(request)
            queue = self.routes.get((request.method, path))
            if queue is None:
                return httpx.Response(404, json={"message": f"no route for {request.method} {path}"})
            response = self._next(queue)

        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return response


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def api():
    return FakeShiprocketApi()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
async def http_client(api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    yield client
    await client.aclose()


@pytest.fixture
def client(http_client, clock, fake_sleep):
    return ShiprocketClient(
        "ops@example.com",
        "s3cret",
        client=http_client,
        clock=clock,
        sleep=fake_sleep,
    )


@pytest.fixture
def shipments(client):
    return ShipmentService(client)


@pytest.fixture
def couriers(client, shipments, fake_sleep):
    return CourierService(client, shipments, sleep=fake_sleep)


# --- Order store ---

@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


def order_payload(order_id="ORD-001", **overrides):
    data = {
        "order_id": order_id,
        "user_id": "U1",
        "seller_id": "S1",
        "customer_name": "Asha Rao",
        "customer_email": "asha@example.com",
        "customer_phone": "9876543210",
        "shipping_address": {
            "address_line": "12 MG Road",
            "city": "Bengaluru",
            "pincode": "560001",
            "state": "Karnataka",
            "country": "India",
        },
        "items": [{"name": "Shirt", "sku": "SH1", "quantity": 2, "price": 500}],
        "total": 1000,
        "payment_method": "COD",
    }
    data.update(overrides)
    return data


def courier_entry(courier_id, name, rate=None, rating=None, days="3", recommended=0, cod=1):
    return {
        "courier_company_id": courier_id,
        "courier_name": name,
        "rate": rate,
        "rating": rating,
        "estimated_delivery_days": days,
        "is_recommended": recommended,
        "cod": cod,
    }


def awb_assigned(awb="AWB123", courier_name="Delhivery"):
    return {
        "awb_assign_status": 1,
        "response": {"data": {"awb_assign_status": 1, "awb_code": awb, "courier_name": courier_name}},
    }
