import pytest
from fastapi.testclient import TestClient

from inspector.app.crypto.manifest_cipher import encrypt_manifest
from inspector.app.main import create_app
from inspector.app.registry.resolver import OrderRecord
from inspector.app.schemas.manifest import ParcelManifest
from inspector.tests.fixtures.fakes import ORDER_ID, SECRET, FakeOrderLookup, make_config


@pytest.fixture
def lookup():
    return FakeOrderLookup(
        {ORDER_ID: OrderRecord(id=ORDER_ID, quantity=3, product_name="Desk Lamp")}
    )


@pytest.fixture
def client(lookup):
    app = create_app(config=make_config(), lookup=lookup)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_verify_encrypted_payload(client):
    manifest = ParcelManifest(product_name="Kettle", quantity=1, order_id="ORD-7")

    response = client.post(
        "/verify",
        json={"payload": encrypt_manifest(manifest, SECRET)},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "verified"
    assert body["manifest"]["product_name"] == "Kettle"
    assert body["manifest"]["quantity"] == 1
    assert body["manifest"]["order_id"] == "ORD-7"


def test_verify_public_link(client, lookup):
    response = client.post(
        "/verify",
        json={"payload": f"https://parcels.example/verify/{ORDER_ID}"},
    )

    body = response.json()
    assert body["kind"] == "verified"
    assert body["manifest"]["product_name"] == "Desk Lamp"
    assert lookup.calls == [ORDER_ID]


def test_rejected_payload_is_a_normal_response(client):
    response = client.post("/verify", json={"payload": "not a parcel code"})

    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "failed"
    assert body["reason"] == "decryption_failed"
    assert body["detail"]


def test_unknown_order_is_reported(client):
    response = client.post(
        "/verify",
        json={"payload": "https://parcels.example/verify/missing-order"},
    )

    assert response.json() == {
        "kind": "failed",
        "reason": "order_not_found",
        "detail": "Order not found in public registry.",
    }


@pytest.mark.parametrize(
    "body",
    [{"payload": ""}, {}, {"payload": "x", "extra": 1}],
)
def test_invalid_request_body(client, body):
    response = client.post("/verify", json=body)

    assert response.status_code == 422
