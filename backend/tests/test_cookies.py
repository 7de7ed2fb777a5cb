from datetime import datetime, timedelta, timezone

import pytest
from starlette.requests import Request
from starlette.responses import Response

from app.core.cookies import (
    SESSION_COOKIE_NAME,
    CookieOptions,
    SessionEncodeError,
    SignedCookieStore,
    decode_values,
    encode_values,
)
from app.core.sessions import SessionData

SECRET = b"cookie-secret"


def _request_with_cookie(value: str | None) -> Request:
    headers = []
    if value is not None:
        headers.append((b"cookie", f"{SESSION_COOKIE_NAME}={value}".encode("latin-1")))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "query_string": b""})


def test_encode_decode_roundtrip():
    values = {"user_id": "u1", "email": "a@x.com", "expires_at": 1700000000, "flag": True, "note": "héllo"}
    raw = encode_values(SECRET, values)

    assert raw.count(".") == 1
    assert decode_values(SECRET, raw) == values


def test_every_single_byte_tamper_is_rejected():
    raw = encode_values(SECRET, {"user_id": "u1", "expires_at": 1700000000})

    for i, ch in enumerate(raw):
        replacement = "A" if ch != "A" else "B"
        tampered = raw[:i] + replacement + raw[i + 1 :]
        assert decode_values(SECRET, tampered) is None, f"tamper at {i} accepted"


@pytest.mark.parametrize(
    "raw",
    ["", ".", "abc", "a.b.c", "sig.", ".payload", "not base64!.also not", "éé.é"],
)
def test_malformed_values_decode_to_none(raw):
    assert decode_values(SECRET, raw) is None


def test_wrong_secret_is_rejected():
    raw = encode_values(SECRET, {"user_id": "u1"})
    assert decode_values(b"other-secret", raw) is None


def test_signed_non_object_payload_is_rejected():
    raw = encode_values(SECRET, ["not", "a", "map"])  # type: ignore[arg-type]
    assert decode_values(SECRET, raw) is None


def test_load_missing_or_invalid_cookie_returns_empty_session():
    store = SignedCookieStore(SECRET)

    assert store.load(_request_with_cookie(None)) == {}
    assert store.load(_request_with_cookie("garbage")) == {}
    forged = encode_values(b"attacker", {"user_id": "admin"})
    assert store.load(_request_with_cookie(forged)) == {}


def test_save_then_load_through_headers():
    store = SignedCookieStore(SECRET)
    resp = Response()
    store.save(resp, {"user_id": "u1"}, CookieOptions(max_age=60, secure=True, samesite="none"))

    header = resp.headers["set-cookie"]
    lowered = header.lower()
    assert "httponly" in lowered
    assert "secure" in lowered
    assert "samesite=none" in lowered
    assert "max-age=60" in lowered
    assert "path=/" in lowered

    value = header.split(";", 1)[0].split("=", 1)[1]
    assert store.load(_request_with_cookie(value)) == {"user_id": "u1"}


def test_save_rejects_unserializable_and_oversized_values():
    store = SignedCookieStore(SECRET)

    with pytest.raises(SessionEncodeError):
        store.save(Response(), {"when": datetime.now()}, CookieOptions(max_age=60))
    with pytest.raises(SessionEncodeError):
        store.save(Response(), {"blob": "x" * 5000}, CookieOptions(max_age=60))


def test_delete_expires_cookie_immediately():
    store = SignedCookieStore(SECRET)
    resp = Response()
    store.delete(resp)

    header = resp.headers["set-cookie"].lower()
    assert header.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "max-age=0" in header


def test_delete_repeats_the_flags_the_cookie_was_set_with():
    store = SignedCookieStore(SECRET)
    resp = Response()
    store.delete(resp, CookieOptions(max_age=60, secure=True, samesite="none"))

    header = resp.headers["set-cookie"].lower()
    assert "max-age=0" in header
    assert "secure" in header
    assert "samesite=none" in header
    assert "httponly" in header


def test_empty_secret_is_refused():
    with pytest.raises(ValueError):
        SignedCookieStore("")


def test_expired_session_is_detected_even_with_valid_signature():
    past = datetime.now(timezone.utc) - timedelta(seconds=5)
    values = {"user_id": "u1", "email": "a@x.com", "expires_at": int(past.timestamp())}
    decoded = decode_values(SECRET, encode_values(SECRET, values))

    sess = SessionData.from_values(decoded)
    assert sess is not None
    assert sess.is_expired()


def test_session_values_roundtrip_and_shape_checks():
    expires = datetime(2030, 1, 1, tzinfo=timezone.utc)
    sess = SessionData(user_id="u1", email="a@x.com", name="A", picture="p", expires_at=expires)

    again = SessionData.from_values(sess.to_values())
    assert again == sess
    assert not again.is_expired(now=datetime(2029, 12, 31, tzinfo=timezone.utc))

    assert SessionData.from_values({}) is None
    assert SessionData.from_values({"user_id": "", "expires_at": 1}) is None
    assert SessionData.from_values({"user_id": "u1"}) is None
    assert SessionData.from_values({"user_id": "u1", "expires_at": "soon"}) is None
    assert SessionData.from_values({"user_id": "u1", "expires_at": True}) is None
