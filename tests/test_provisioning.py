"""Tests for pairing URI building and QR rendering."""
import base64
from urllib.parse import parse_qs, unquote, urlparse

import pytest

from backend.app.security.provisioning import build_uri, qr_code_base64
from backend.app.security.totp import TotpPolicy, generate_secret


def test_uri_carries_secret_label_and_issuer():
    secret = generate_secret()
    uri = build_uri("alice", "Warden", secret)

    parsed = urlparse(uri)
    assert parsed.scheme == "otpauth"
    assert parsed.netloc == "totp"
    assert parsed.path == "/Warden:alice"
    query = parse_qs(parsed.query)
    assert query["secret"] == [secret]
    assert query["issuer"] == ["Warden"]


def test_label_is_percent_encoded():
    uri = build_uri("alice smith@example.com", "Acme Corp", generate_secret())
    assert "alice%20smith%40example.com" in uri
    assert "Acme%20Corp" in uri
    assert " " not in uri


def test_label_cannot_inject_parameters():
    secret = generate_secret()
    uri = build_uri("mallory&secret=AAAA&issuer=Evil", "Warden", secret)

    query = parse_qs(urlparse(uri).query)
    assert query["secret"] == [secret]
    assert query["issuer"] == ["Warden"]


def test_colon_in_label_is_encoded():
    uri = build_uri("bob:ops", "Warden", generate_secret())
    path = urlparse(uri).path

    assert path == "/Warden:bob%3Aops"
    assert unquote(path.split(":", 1)[1]) == "bob:ops"


def test_colon_in_issuer_is_encoded():
    path = urlparse(build_uri("alice", "Ware:den", generate_secret())).path
    assert path == "/Ware%3Aden:alice"


def test_slash_in_label_stays_in_label():
    secret = generate_secret()
    uri = build_uri("a/b?x", "Warden", secret)
    parsed = urlparse(uri)

    assert "a/b" not in uri
    assert parsed.path == "/Warden:a%2Fb%3Fx"
    assert parse_qs(parsed.query)["secret"] == [secret]


@pytest.mark.parametrize("label,issuer", [
    ("", "Warden"),
    ("alice", ""),
])
def test_empty_label_or_issuer_rejected(label, issuer):
    with pytest.raises(ValueError):
        build_uri(label, issuer, generate_secret())


def test_non_default_policy_is_advertised():
    uri = build_uri("alice", "Warden", generate_secret(), TotpPolicy(digits=8, interval=60))
    query = parse_qs(urlparse(uri).query)
    assert query["digits"] == ["8"]
    assert query["period"] == ["60"]


def test_qr_code_is_png():
    png = base64.b64decode(qr_code_base64(build_uri("alice", "Warden", generate_secret())))
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
