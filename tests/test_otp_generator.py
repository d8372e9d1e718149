"""Tests for passcode generation."""

from unittest.mock import patch

from delivery_auth.services.otp_generator import generate_code


def test_codes_are_four_digits_in_range():
    for _ in range(2000):
        code = generate_code()
        assert len(code) == 4
        assert code.isdigit()
        assert 1000 <= int(code) <= 9999


def test_range_endpoints_are_reachable():
    with patch("delivery_auth.services.otp_generator.secrets.randbelow", return_value=0) as rb:
        assert generate_code() == "1000"
    rb.assert_called_once_with(9000)

    with patch("delivery_auth.services.otp_generator.secrets.randbelow", return_value=8999):
        assert generate_code() == "9999"
