"""
Unit tests for callback signing.
"""

import hashlib

from apply4me.modules.applications.signature import (
    build_signing_string,
    encode_uri_component,
    generate_signature,
    verify_signature,
)


def md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


class TestEncodeUriComponent:
    def test_space_is_percent_encoded(self):
        assert encode_uri_component("a b") == "a%20b"

    def test_unreserved_marks_are_kept(self):
        assert encode_uri_component("-_.!~*'()") == "-_.!~*'()"

    def test_reserved_characters_are_encoded(self):
        assert encode_uri_component("a&b=c/d+e") == "a%26b%3Dc%2Fd%2Be"

    def test_non_ascii_is_utf8_encoded(self):
        assert encode_uri_component("é") == "%C3%A9"


class TestBuildSigningString:
    def test_keys_sorted_and_signature_dropped(self):
        params = {"status": "failed", "signature": "abc", "id": "pf_123"}
        assert build_signing_string(params) == "id=pf_123&status=failed"

    def test_passphrase_appended_encoded(self):
        params = {"id": "pf_123"}
        assert build_signing_string(params, "my pass") == "id=pf_123&passphrase=my%20pass"

    def test_metadata_is_compact_sorted_json(self):
        params = {"metadata": {"b": 1, "a": "x y"}}
        assert (
            build_signing_string(params)
            == "metadata=%7B%22a%22%3A%22x%20y%22%2C%22b%22%3A1%7D"
        )

    def test_none_signs_as_empty(self):
        assert build_signing_string({"id": "pf_1", "note": None}) == "id=pf_1&note="


class TestGenerateSignature:
    def test_empty_params_without_passphrase(self):
        assert generate_signature({}) == md5("")

    def test_known_params(self):
        params = {"id": "pf_123", "status": "failed"}
        assert generate_signature(params) == md5("id=pf_123&status=failed")

    def test_passphrase_changes_signature(self):
        params = {"id": "pf_123", "status": "failed"}
        assert generate_signature(params, "secret") == md5(
            "id=pf_123&status=failed&passphrase=secret"
        )
        assert generate_signature(params, "secret") != generate_signature(params)


class TestVerifySignature:
    def test_valid_signature(self):
        params = {"id": "pf_123", "status": "successful"}
        params["signature"] = generate_signature(params, "secret")
        assert verify_signature(params, "secret") is True

    def test_uppercase_signature_is_accepted(self):
        params = {"id": "pf_123", "status": "successful"}
        params["signature"] = generate_signature(params).upper()
        assert verify_signature(params) is True

    def test_tampered_field_is_rejected(self):
        params = {"id": "pf_123", "status": "failed"}
        params["signature"] = generate_signature(params, "secret")
        params["status"] = "successful"
        assert verify_signature(params, "secret") is False

    def test_wrong_passphrase_is_rejected(self):
        params = {"id": "pf_123", "status": "failed"}
        params["signature"] = generate_signature(params, "secret")
        assert verify_signature(params, "other") is False

    def test_missing_signature_is_rejected(self):
        assert verify_signature({"id": "pf_123", "status": "failed"}) is False

    def test_non_string_signature_is_rejected(self):
        assert verify_signature({"id": "pf_123", "signature": 42}) is False

    def test_non_ascii_signature_does_not_raise(self):
        assert verify_signature({"id": "pf_123", "signature": "ü" * 32}) is False
