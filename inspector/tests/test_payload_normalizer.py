from urllib.parse import quote

import pytest

from inspector.app.decoding.normalizer import classify_payload, normalize_payload
from inspector.app.errors import MalformedPublicLink
from inspector.app.schemas.payload import EncryptedLink, PublicLink, RawCipherText

ORDER_ID = "550e8400-e29b-41d4-a716-446655440000"
CIPHER = "U2FsdGVkX1+vupppZksvRf5pq5g5XjFRlipRkwB0K1Y="


# ---------------------------------------------------------------------------
# Rule 1: public links
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw",
    [
        f"https://site/verify/{ORDER_ID}",
        f"https://site/verify/{ORDER_ID}/",
        f"https://site/verify/{ORDER_ID}?ref=label",
        f"https://site/verify/{ORDER_ID}#top",
        f"/verify/{ORDER_ID}",
    ],
)
def test_public_link_extracts_order_id(raw):
    result = classify_payload(raw)

    assert isinstance(result, PublicLink)
    assert result.order_id == ORDER_ID
    assert result.source == raw


@pytest.mark.parametrize(
    "raw",
    [
        "https://site/verify/",
        "https://site/verify/?ref=label",
        "https://site/verify//extra",
    ],
)
def test_public_link_without_order_id_is_malformed(raw):
    with pytest.raises(MalformedPublicLink):
        classify_payload(raw)


def test_data_parameter_takes_priority_over_verify_marker():
    raw = f"https://site/verify/{ORDER_ID}?data={CIPHER}"

    result = classify_payload(raw)

    assert isinstance(result, EncryptedLink)


# ---------------------------------------------------------------------------
# Rule 2: encrypted links
# ---------------------------------------------------------------------------

def test_literal_plus_in_data_parameter_is_restored():
    # A URL decoder turns every literal '+' into a space.
    raw = f"https://site/scan?data={CIPHER}"

    result = classify_payload(raw)

    assert isinstance(result, EncryptedLink)
    assert result.cipher_text == CIPHER


def test_percent_encoded_data_parameter_is_decoded():
    encoded = CIPHER.replace("+", "%2B").replace("/", "%2F").replace("=", "%3D")
    raw = f"https://site/scan?data={encoded}"

    result = classify_payload(raw)

    assert isinstance(result, EncryptedLink)
    assert result.cipher_text == CIPHER


def test_double_percent_encoded_data_parameter_is_decoded():
    encoded = quote(quote(CIPHER, safe=""), safe="")
    raw = f"https://site/scan?data={encoded}"

    result = classify_payload(raw)

    assert isinstance(result, EncryptedLink)
    assert result.cipher_text == CIPHER


def test_data_parameter_among_others():
    raw = f"https://site/scan?lang=en&data={CIPHER}&v=2"

    result = classify_payload(raw)

    assert isinstance(result, EncryptedLink)
    assert result.cipher_text == CIPHER


def test_empty_data_parameter_is_still_an_encrypted_link():
    result = classify_payload("https://site/scan?data=")

    assert isinstance(result, EncryptedLink)
    assert result.cipher_text == ""


# ---------------------------------------------------------------------------
# Rules 3 and 4: raw ciphertext
# ---------------------------------------------------------------------------

def test_spaces_in_bare_ciphertext_are_repaired():
    mangled = CIPHER.replace("+", " ")

    result = classify_payload(mangled)

    assert isinstance(result, RawCipherText)
    assert result.cipher_text == CIPHER


def test_bare_ciphertext_is_unmodified():
    result = classify_payload(CIPHER)

    assert isinstance(result, RawCipherText)
    assert result.cipher_text == CIPHER


def test_url_with_spaces_but_no_data_is_left_alone():
    raw = "https://site/other page"

    result = classify_payload(raw)

    assert isinstance(result, RawCipherText)
    assert result.cipher_text == raw


def test_unbalanced_bracket_does_not_raise():
    raw = "http://[not-a-host/scan"

    result = classify_payload(raw)

    assert isinstance(result, RawCipherText)


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw",
    [
        f"https://site/verify/{ORDER_ID}",
        f"https://site/verify/{ORDER_ID}?ref=1",
        f"https://site/scan?data={CIPHER}",
        f"https://site/scan?data={CIPHER.replace('+', '%2B')}",
        CIPHER,
        CIPHER.replace("+", " "),
        "hello world",
        "https://site/other page",
        "",
        "   ",
        "plain-text",
        "https://s/scan?data=%3Fdata%3Dabc",
        f"https://s/scan?data={quote(f'https://t/scan?data={CIPHER}', safe='')}",
        f"https://site/scan?data={quote(quote(CIPHER, safe=''), safe='')}",
    ],
)
def test_normalize_is_idempotent(raw):
    once = normalize_payload(raw)

    assert normalize_payload(once) == once


def test_nested_data_link_normalizes_to_innermost_value():
    assert normalize_payload("https://s/scan?data=%3Fdata%3Dabc") == "abc"
