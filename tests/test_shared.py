import json
import logging
from datetime import timedelta

import pytest

from shared.logging_config import JSONFormatter
from shared.security_config import sanitize_input, sanitize_list, validate_password_strength
from shared.utils import (
    AppException, NotFoundException, UnauthorizedException,
    create_access_token, create_refresh_token, verify_token, verify_refresh_token
)


def test_sanitize_input():
    assert sanitize_input("  <script>x</script> ") == "&lt;script&gt;x&lt;/script&gt;"
    assert sanitize_input(None) is None
    assert sanitize_list(None) is None
    assert sanitize_list([" a ", "<b>"]) == ["a", "&lt;b&gt;"]


@pytest.mark.parametrize("password, ok", [
    ("Password123", True),
    ("password123", False),
    ("PASSWORD123", False),
    ("Password", False),
    ("Pass1", False),
])
def test_password_strength(password, ok):
    assert validate_password_strength(password) is ok


def test_tokens_round_trip_with_their_own_secret():
    access = create_access_token({"sub": "alice"})
    refresh = create_refresh_token({"sub": "alice"})

    claims = verify_token(access)
    assert claims["sub"] == "alice"
    assert "jti" in claims
    assert verify_refresh_token(refresh)["sub"] == "alice"

    with pytest.raises(UnauthorizedException):
        verify_token(refresh)
    with pytest.raises(UnauthorizedException):
        verify_refresh_token(access)


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "alice"}, expires_delta=timedelta(minutes=-1))
    with pytest.raises(UnauthorizedException):
        verify_token(token)


def test_exception_codes():
    assert NotFoundException().status_code == 404
    assert NotFoundException().code == "not_found"
    assert UnauthorizedException().headers == {"WWW-Authenticate": "Bearer"}
    assert AppException(code="custom").code == "custom"
    assert AppException().code == "app_error"


def test_json_formatter_includes_extra_fields():
    record = logging.makeLogRecord({
        "name": "marketplace-service",
        "levelno": logging.INFO,
        "levelname": "INFO",
        "msg": "Order created",
        "order_id": "abc",
        "total_amount": 160.0,
    })

    payload = json.loads(JSONFormatter("marketplace-service").format(record))

    assert payload["service"] == "marketplace-service"
    assert payload["message"] == "Order created"
    assert payload["order_id"] == "abc"
    assert payload["total_amount"] == 160.0
    assert "msg" not in payload
