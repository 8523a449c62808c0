"""Tests for the cipher codec."""

import base64
import json

import pytest

from kanakku.models.result import FailureKind
from kanakku.security import CipherCodec


class TestCipherRoundTrip:
    """Encode/decode behaviour with the default and custom keys."""

    def test_decode_reverses_encode(self):
        """Test that a structured value survives encode then decode."""
        codec = CipherCodec()
        value = {"name": "Asha", "amount": 12.5, "tags": ["a", "b"], "active": True}

        result = codec.decode(codec.encode(value))

        assert result.success
        assert result.value == value

    def test_unicode_text_survives(self):
        """Test that non-ASCII text round-trips through UTF-8."""
        codec = CipherCodec()
        value = {"name": "கணக்கு வழக்கு", "currency": "₹"}

        assert codec.decode(codec.encode(value)).value == value

    def test_output_is_base64_text(self):
        """Test that cipher text is printable base64."""
        cipher_text = CipherCodec().encode({"a": 1})
        assert base64.b64decode(cipher_text, validate=True)

    def test_output_matches_xor_then_base64(self):
        """Test the wire format: compact JSON, XOR with the key, base64."""
        codec = CipherCodec(secret_key="k")
        expected = base64.b64encode(
            bytes(b ^ ord("k") for b in json.dumps({"a": 1}, separators=(",", ":")).encode())
        ).decode()

        assert codec.encode({"a": 1}) == expected

    def test_custom_key_overrides_default(self):
        """Test that a value encoded with a password decodes only with it."""
        codec = CipherCodec()
        cipher_text = codec.encode({"a": 1}, key="secret")

        assert codec.decode(cipher_text, key="secret").value == {"a": 1}
        assert codec.decode(cipher_text).failure == FailureKind.DECODE_FAILURE


class TestCipherFailures:
    """Bad input never raises; it fails with DECODE_FAILURE."""

    @pytest.mark.parametrize("cipher_text", ["", "   ", None])
    def test_empty_input(self, cipher_text):
        """Test that empty input is a decode failure."""
        result = CipherCodec().decode(cipher_text)
        assert result.failure == FailureKind.DECODE_FAILURE

    def test_not_base64(self):
        """Test that garbage text is a decode failure."""
        result = CipherCodec().decode("not base64 at all!!")
        assert not result.success
        assert result.failure == FailureKind.DECODE_FAILURE

    def test_base64_of_non_json(self):
        """Test that valid base64 hiding non-JSON bytes is a decode failure."""
        garbage = base64.b64encode(b"\x00\x01\x02plain bytes").decode()
        assert CipherCodec().decode(garbage).failure == FailureKind.DECODE_FAILURE

    def test_xor_requires_key(self):
        """Test that an empty XOR key is refused."""
        with pytest.raises(ValueError):
            CipherCodec.xor_bytes(b"data", b"")

    def test_xor_repeats_key(self):
        """Test that the key repeats cyclically over the data."""
        assert CipherCodec.xor_bytes(b"abc", b"k") == bytes([0x61 ^ 0x6B, 0x62 ^ 0x6B, 0x63 ^ 0x6B])
        assert CipherCodec.xor_bytes(CipherCodec.xor_bytes(b"hello", b"ky"), b"ky") == b"hello"
