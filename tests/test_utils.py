"""
Tests for shared helpers: error formatting, validators, tokens, rate limiting, date math and the test runner script.
"""

import json
import sys
from types import SimpleNamespace
from datetime import date, datetime, timedelta, timezone

import pytest
from jose import JWTError

import run_tests

from rental_api.middleware.request_context import FixedWindowRateLimiter
from rental_api.services.error_handler import ErrorHandlerService
from rental_api.services.rent_request import add_months, parse_uuid
from rental_api.utils.auth import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    verify_token,
)
from rental_api.utils.exceptions import (
    InvalidStatusTransitionError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from rental_api.utils.timeutils import ensure_utc, today_utc
from rental_api.utils.validators import ValidationUtils


class TestErrorHandlerService:
    """Test error envelope formatting."""

    def test_format_error_response(self):
        response = ErrorHandlerService.format_error_response(
            error_code="TEST_ERROR",
            message="Test error message",
            details=[{"field": "body -> email", "message": "Invalid"}],
            request_id="ab12cd34"
        )

        error = response["error"]
        assert error["code"] == "TEST_ERROR"
        assert error["message"] == "Test error message"
        assert error["request_id"] == "ab12cd34"
        assert error["details"] == [{"field": "body -> email", "message": "Invalid"}]
        assert error["timestamp"].endswith("Z")

    def test_format_without_details(self):
        response = ErrorHandlerService.format_error_response("NOT_FOUND", "Missing")
        assert "details" not in response["error"]

    def test_handle_api_exception(self):
        response = ErrorHandlerService.handle_api_exception(NotFoundError("Contract", "42"))

        body = json.loads(response.body)
        assert response.status_code == 404
        assert body["error"]["code"] == "NOT_FOUND"
        assert response.headers["X-Request-ID"] == body["error"]["request_id"]

    def test_validation_error_includes_field_errors(self):
        exception = ValidationError("Bad input", field_errors=[{"field": "timezone", "message": "Unknown"}])
        body = json.loads(ErrorHandlerService.handle_api_exception(exception).body)

        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"][0]["field"] == "timezone"

    def test_rate_limit_keeps_retry_after_header(self):
        response = ErrorHandlerService.handle_api_exception(RateLimitExceededError(17))
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "17"

    def test_invalid_transition_code(self):
        exception = InvalidStatusTransitionError("Rent request", "rejected", "accepted")
        assert exception.status_code == 409
        assert exception.error_code == "INVALID_STATUS_TRANSITION"
        assert "rejected" in exception.detail


class TestValidationUtils:
    """Test field-level validators."""

    def test_normalize_email(self):
        assert ValidationUtils.normalize_email("  Lina@Example.COM ") == "lina@example.com"

    def test_invalid_email(self):
        with pytest.raises(ValueError):
            ValidationUtils.normalize_email("not-an-email")

    @pytest.mark.parametrize("raw,expected", [
        ("+962 79 123 4567", "+962791234567"),
        ("+1 (555) 123-4567", "+15551234567"),
    ])
    def test_normalize_phone_number(self, raw, expected):
        assert ValidationUtils.normalize_phone_number(raw) == expected

    @pytest.mark.parametrize("raw", ["", "12", "call me", "+0123456789"])
    def test_invalid_phone_number(self, raw):
        with pytest.raises(ValueError):
            ValidationUtils.normalize_phone_number(raw)

    def test_validate_timezone_name(self):
        assert ValidationUtils.validate_timezone_name("Asia/Amman") == "Asia/Amman"
        with pytest.raises(ValueError):
            ValidationUtils.validate_timezone_name("Mars/Olympus")

    def test_clean_text(self):
        assert ValidationUtils.clean_text("  Leaking tap  ", "title") == "Leaking tap"
        assert ValidationUtils.clean_text(None, "title") is None
        with pytest.raises(ValueError):
            ValidationUtils.clean_text("<script>alert(1)</script>", "title")
        with pytest.raises(ValueError):
            ValidationUtils.clean_text("   ", "title")


class TestTokens:
    """Test JWT and password helpers."""

    def test_access_token_round_trip(self):
        token = create_access_token("5b0c1f0e-8d55-4c43-9f57-3a2f3c1b9d10", "lina@example.com", "renter")
        payload = verify_token(token)

        assert payload.email == "lina@example.com"
        assert payload.role == "renter"

    def test_refresh_token_rejected_as_access(self):
        token = create_refresh_token("5b0c1f0e-8d55-4c43-9f57-3a2f3c1b9d10", "lina@example.com")

        with pytest.raises(JWTError):
            verify_token(token, "access")
        assert verify_token(token, "refresh").role is None

    def test_expired_token(self):
        token = create_access_token(
            "5b0c1f0e-8d55-4c43-9f57-3a2f3c1b9d10", "lina@example.com", "renter",
            expires_delta=timedelta(seconds=-5)
        )
        with pytest.raises(JWTError):
            verify_token(token)

    def test_password_hashing(self):
        hashed = hash_password("s3cret-pass")
        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong-pass", hashed)

    def test_short_password_rejected(self):
        with pytest.raises(ValueError):
            hash_password("short")


class TestFixedWindowRateLimiter:
    """Test the in-process rate limiter."""

    def test_blocks_after_limit(self):
        limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60)
        limiter.hit("10.0.0.1", now=1000.0)
        limiter.hit("10.0.0.1", now=1001.0)

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.hit("10.0.0.1", now=1010.0)
        assert exc_info.value.headers["Retry-After"] == "50"

    def test_clients_counted_separately(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60)
        limiter.hit("10.0.0.1", now=1000.0)
        limiter.hit("10.0.0.2", now=1000.0)

    def test_window_resets(self):
        limiter = FixedWindowRateLimiter(max_requests=1, window_seconds=60)
        limiter.hit("10.0.0.1", now=1000.0)
        limiter.hit("10.0.0.1", now=1060.0)


class TestDateHelpers:
    """Test contract date arithmetic and UTC helpers."""

    @pytest.mark.parametrize("start,months,expected", [
        (date(2026, 1, 15), 12, date(2027, 1, 15)),
        (date(2026, 1, 31), 1, date(2026, 2, 28)),
        (date(2028, 1, 31), 1, date(2028, 2, 29)),
        (date(2026, 11, 30), 3, date(2027, 2, 28)),
    ])
    def test_add_months(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_parse_uuid(self):
        assert str(parse_uuid("5b0c1f0e-8d55-4c43-9f57-3a2f3c1b9d10", "property_id")) == \
            "5b0c1f0e-8d55-4c43-9f57-3a2f3c1b9d10"

        with pytest.raises(ValidationError) as exc_info:
            parse_uuid("not-a-uuid", "property_id")
        assert exc_info.value.field_errors == [{"field": "property_id", "message": "Must be a UUID"}]

    def test_ensure_utc(self):
        naive = datetime(2026, 3, 10, 12, 0)
        assert ensure_utc(naive) == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert ensure_utc(None) is None

    def test_today_utc(self):
        late = datetime(2026, 3, 10, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert today_utc(late) == date(2026, 3, 11)


class TestRunTestsScript:
    """Test the pytest command built by run_tests.py."""

    def _run(self, monkeypatch, *argv):
        calls = []

        def fake_run(command, env):
            calls.append((command, env))
            return SimpleNamespace(returncode=0)

        monkeypatch.setattr(run_tests.subprocess, "run", fake_run)
        monkeypatch.setattr(sys, "argv", ["run_tests.py", *argv])
        assert run_tests.main() == 0
        return calls[0]

    def test_coverage_flag(self, monkeypatch):
        command, env = self._run(monkeypatch, "--coverage")

        assert command[-2:] == ["--cov=rental_api", "--cov-report=term-missing"]
        assert "tests/" in command
        assert env["ENVIRONMENT"] == "testing"
        assert env["NOTIFICATIONS_DRY_RUN"] == "true"

    def test_without_coverage(self, monkeypatch):
        command, _ = self._run(monkeypatch, "-k", "digest")

        assert not any(part.startswith("--cov") for part in command)
        assert command[-2:] == ["-k", "digest"]
