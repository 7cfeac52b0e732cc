from urllib.parse import quote

import pytest

from inspector.app.coordinator.payload_verifier import PayloadVerifier
from inspector.app.crypto.manifest_cipher import encrypt_manifest
from inspector.app.registry.resolver import OrderRecord, RegistryResolver
from inspector.app.schemas.manifest import ParcelManifest
from inspector.app.schemas.outcome import ErrorKind, Failed, Verified
from inspector.tests.fixtures.fakes import ORDER_ID, SECRET, FakeOrderLookup

pytestmark = pytest.mark.anyio

MANIFEST = ParcelManifest(product_name="iPhone 15 Pro Max", quantity=5, order_id=ORDER_ID)


def _verifier(lookup=None):
    return PayloadVerifier(
        secret=SECRET,
        resolver=RegistryResolver(lookup or FakeOrderLookup()),
    )


def _cipher_with_plus():
    cipher_text = encrypt_manifest(MANIFEST, SECRET)
    while "+" not in cipher_text:
        cipher_text = encrypt_manifest(MANIFEST, SECRET)
    return cipher_text


# ---------------------------------------------------------------------------
# Public links
# ---------------------------------------------------------------------------

async def test_public_link_resolves_exactly_once():
    lookup = FakeOrderLookup(
        {ORDER_ID: OrderRecord(id=ORDER_ID, quantity=5, product_name="Widget")}
    )

    outcome = await _verifier(lookup).verify(f"https://site/verify/{ORDER_ID}")

    assert isinstance(outcome, Verified)
    assert outcome.manifest.order_id == ORDER_ID
    assert outcome.manifest.product_name == "Widget"
    assert lookup.calls == [ORDER_ID]


async def test_public_link_for_absent_order_fails():
    lookup = FakeOrderLookup()

    outcome = await _verifier(lookup).verify(f"https://site/verify/{ORDER_ID}")

    assert outcome == Failed(
        reason=ErrorKind.ORDER_NOT_FOUND,
        detail="Order not found in public registry.",
    )
    assert lookup.calls == [ORDER_ID]


async def test_public_link_with_registry_down_fails():
    outcome = await _verifier(FakeOrderLookup(unavailable=True)).verify(
        f"https://site/verify/{ORDER_ID}"
    )

    assert isinstance(outcome, Failed)
    assert outcome.reason == ErrorKind.REGISTRY_UNAVAILABLE


async def test_malformed_public_link_fails_without_lookup():
    lookup = FakeOrderLookup()

    outcome = await _verifier(lookup).verify("https://site/verify/")

    assert isinstance(outcome, Failed)
    assert outcome.reason == ErrorKind.MALFORMED_PUBLIC_LINK
    assert lookup.calls == []


# ---------------------------------------------------------------------------
# Encrypted payloads
# ---------------------------------------------------------------------------

async def test_raw_ciphertext_is_verified():
    outcome = await _verifier().verify(encrypt_manifest(MANIFEST, SECRET))

    assert outcome == Verified(manifest=MANIFEST)


async def test_encrypted_link_survives_plus_to_space_corruption():
    cipher_text = _cipher_with_plus()
    # Literal '+' left in the query string is decoded to a space.
    url = f"https://site/scan?data={quote(cipher_text, safe='+/=')}"

    outcome = await _verifier().verify(url)

    assert outcome == Verified(manifest=MANIFEST)


async def test_encrypted_link_with_percent_encoding_is_verified():
    cipher_text = _cipher_with_plus()
    url = f"https://site/scan?data={quote(cipher_text, safe='')}"

    outcome = await _verifier().verify(url)

    assert outcome == Verified(manifest=MANIFEST)


async def test_encrypted_link_encoded_twice_is_verified():
    cipher_text = _cipher_with_plus()
    url = f"https://site/scan?data={quote(quote(cipher_text, safe=''), safe='')}"

    outcome = await _verifier().verify(url)

    assert outcome == Verified(manifest=MANIFEST)


async def test_pasted_ciphertext_with_spaces_is_repaired():
    mangled = _cipher_with_plus().replace("+", " ")

    outcome = await _verifier().verify(mangled)

    assert outcome == Verified(manifest=MANIFEST)


async def test_payload_sealed_with_another_secret_is_never_verified():
    cipher_text = encrypt_manifest(MANIFEST, "ANOTHER_SECRET")

    outcome = await _verifier().verify(cipher_text)

    assert isinstance(outcome, Failed)
    assert outcome.reason in {
        ErrorKind.DECRYPTION_FAILED,
        ErrorKind.INVALID_MANIFEST_STRUCTURE,
    }


@pytest.mark.parametrize(
    "raw",
    ["hello", "Just some words", "EAN-13 4006381333931", "https://example.com/"],
)
async def test_unstructured_text_is_never_verified(raw):
    outcome = await _verifier().verify(raw)

    assert isinstance(outcome, Failed)
    assert outcome.reason in {
        ErrorKind.DECRYPTION_FAILED,
        ErrorKind.INVALID_MANIFEST_STRUCTURE,
    }


# ---------------------------------------------------------------------------
# Backstop
# ---------------------------------------------------------------------------

async def test_unclassified_error_becomes_unknown_scan_error():
    lookup = FakeOrderLookup(error=RuntimeError("driver exploded"))

    outcome = await _verifier(lookup).verify(f"https://site/verify/{ORDER_ID}")

    assert isinstance(outcome, Failed)
    assert outcome.reason == ErrorKind.UNKNOWN_SCAN_ERROR
    assert "driver exploded" not in outcome.detail
