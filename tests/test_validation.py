"""Tests for input validation."""

import pytest

from pierre_diffs.utils.error_handling import DecodingError
from pierre_diffs.utils.validation import (
    ValidationError,
    optional_bool,
    optional_string,
    require_mapping,
    require_string,
    validate_hostname,
    validate_network_config,
    validate_port,
)


class TestValidatePort:
    def test_valid(self):
        assert validate_port(8765) == 8765
        assert validate_port(" 9000 ") == 9000

    @pytest.mark.parametrize("port", [0, 65536, "", "abc", True, 1.5])
    def test_invalid(self, port):
        with pytest.raises(ValidationError):
            validate_port(port)


class TestValidateHostname:
    @pytest.mark.parametrize("host", ["localhost", "127.0.0.1", "::1", "renderer.example.com"])
    def test_valid(self, host):
        assert validate_hostname(host) == host

    def test_normalizes_case(self):
        assert validate_hostname(" LocalHost ") == "localhost"

    @pytest.mark.parametrize("host", ["", "   ", "bad host", "-leading.example", "a" * 254, "x\ny"])
    def test_invalid(self, host):
        with pytest.raises(ValidationError):
            validate_hostname(host)

    def test_network_config(self):
        assert validate_network_config("localhost", "8080") == ("localhost", 8080)


class TestPayloadFields:
    def test_require_mapping(self):
        assert require_mapping({"a": 1}) == {"a": 1}
        with pytest.raises(DecodingError, match="payload must be a JSON object"):
            require_mapping([1])

    def test_require_string(self):
        assert require_string({"k": "v"}, "k") == "v"
        with pytest.raises(DecodingError, match="Missing required field 'k'"):
            require_string({"k": None}, "k")
        with pytest.raises(DecodingError, match="must be a string"):
            require_string({"k": 1}, "k")

    def test_optional_fields(self):
        assert optional_string({}, "k") is None
        assert optional_bool({"k": True}, "k") is True
        with pytest.raises(DecodingError):
            optional_bool({"k": "true"}, "k")
        with pytest.raises(DecodingError):
            optional_string({"k": 3}, "k")
