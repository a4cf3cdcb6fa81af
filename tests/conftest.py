"""Shared fixtures: an app wired to mongomock and in-process fakes.

The fakes stand in for the Razorpay and Google collaborators so tests are
deterministic and never touch the network.
"""

import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from config import Settings
from errors import AuthError, UpstreamError
from main import create_app
from payments import generate_signature

SECRET = "s3cr3t"


class FakeGateway:
    """Gateway stub that echoes the requested amount like Razorpay does."""

    key_id = "rzp_test_key"

    def __init__(self):
        self.calls = []
        self.fail = False
        self._ids = itertools.count(1)

    def create_order(self, amount, currency, receipt, notes=None):
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt, "notes": notes})
        if self.fail:
            raise UpstreamError("Error creating order")
        return {"id": f"order_{next(self._ids)}", "amount": amount, "currency": currency, "receipt": receipt, "status": "created"}

    def ping(self):
        return True


class FakeIdentity:
    """Identity stub keyed by raw token string."""

    def __init__(self):
        self.tokens = {}

    def verify(self, token):
        try:
            return self.tokens[token]
        except KeyError:
            raise AuthError("Invalid token")


@pytest.fixture
def settings():
    return Settings(
        razorpay_key_id=FakeGateway.key_id,
        razorpay_key_secret=SECRET,
        mongo_uri="mongodb://localhost:27017",
        google_client_id="client-123.apps.googleusercontent.com",
        jwt_secret="jwt-test-secret",
    )


@pytest.fixture
def db():
    handle = mongomock.MongoClient()["checkout"]
    database.ensure_indexes(handle)
    return handle


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def identity():
    idp = FakeIdentity()
    idp.tokens["google-token-alice"] = {
        "sub": "google-sub-alice",
        "email": "alice@example.com",
        "name": "Alice",
        "picture": "https://example.com/alice.png",
    }
    return idp


@pytest.fixture
def app(settings, db, gateway, identity):
    return create_app(settings, db=db, gateway=gateway, identity=identity)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login(client):
    """Sign in through the Google endpoint and return the bearer header."""

    def _login(token="google-token-alice"):
        r = client.post("/auth/google", json={"token": token})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['token']}"}

    return _login


@pytest.fixture
def order_payload():
    return {
        "products": [
            {"productId": "tee-01", "name": "Ekta Tee", "size": "M", "qty": 2, "price": 199.995},
            {"name": "Tote Bag", "quantity": 1, "price": 100.0, "image": "https://example.com/tote.png"},
        ],
        "summary": {"subtotal": 449.99, "shipping": 50.0, "total": 499.99},
        "customer": {
            "name": "Alice",
            "email": "alice@example.com",
            "phone": "+91 90000 00000",
            "address": "1 MG Road",
            "city": "Bengaluru",
            "state": "KA",
            "pincode": "560001",
        },
    }


@pytest.fixture
def sign(settings):
    def _sign(order_id, payment_id):
        return generate_signature(settings.razorpay_key_secret, order_id, payment_id)

    return _sign
