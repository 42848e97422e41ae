"""Tests for the hookrelay exception hierarchy."""

import pytest

from hookrelay.exceptions import (
    ConfigurationError,
    NotFoundError,
    RelayError,
    StorageError,
    ValidationError,
)


class TestRelayError:
    """Tests for the base RelayError class."""

    def test_error_message(self):
        """Should store and return message."""
        error = RelayError("Something went wrong")
        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_error_code(self):
        error = RelayError("test")
        assert error.code == "relay_error"

    def test_to_dict(self):
        """Should convert to API-friendly dict."""
        result = RelayError("Something went wrong").to_dict()
        assert result == {
            "error": {
                "code": "relay_error",
                "message": "Something went wrong",
            }
        }

    def test_inheritance(self):
        """All custom exceptions should inherit from RelayError."""
        exceptions = [
            ValidationError("field", "invalid"),
            NotFoundError("event", "evt_1"),
            StorageError("failed"),
            ConfigurationError("missing"),
        ]
        for exc in exceptions:
            assert isinstance(exc, RelayError)
            assert isinstance(exc, Exception)


class TestValidationError:
    """Tests for ValidationError."""

    def test_field_and_message(self):
        error = ValidationError("gateway_url", "must be an http or https URL")
        assert error.field == "gateway_url"
        assert error.message == "gateway_url: must be an http or https URL"
        assert error.code == "validation_error"

    def test_to_dict_includes_field(self):
        result = ValidationError("gateway_url", "bad").to_dict()
        assert result["error"]["code"] == "validation_error"
        assert result["error"]["field"] == "gateway_url"


class TestNotFoundError:
    """Tests for NotFoundError."""

    def test_resource_info(self):
        error = NotFoundError("event", "evt_123")
        assert error.resource_type == "event"
        assert error.resource_id == "evt_123"
        assert error.message == "event not found: evt_123"

    def test_to_dict_includes_resource_info(self):
        result = NotFoundError("event", "evt_456").to_dict()
        assert result["error"]["code"] == "not_found"
        assert result["error"]["resource_type"] == "event"
        assert result["error"]["resource_id"] == "evt_456"


class TestSimpleErrors:
    """Tests for error types with just messages."""

    def test_storage_error(self):
        error = StorageError("disk full")
        assert error.code == "storage_error"
        assert error.message == "disk full"

    def test_configuration_error(self):
        error = ConfigurationError("bad path")
        assert error.code == "configuration_error"

    def test_catch_all_relay_errors(self):
        """Every relay error can be caught with the base class."""
        for error in [ValidationError("f", "m"), NotFoundError("t", "i"), StorageError("m")]:
            with pytest.raises(RelayError):
                raise error
