"""Tests for AWS Signature Version 4 signing."""

from datetime import UTC, datetime

import pytest
import structlog

from src.ecsbridge.aws.signer import (
    RequestSigner,
    build_signing_context,
    canonical_query_string,
    derive_signing_key,
    sha256_hex,
)
from src.ecsbridge.observability.logger import TRACE

EXAMPLE_SECRET = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
EMPTY_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@pytest.fixture
def vanilla_clock():
    return lambda: datetime(2015, 8, 30, 12, 36, 0, tzinfo=UTC)


class TestPrimitives:
    def test_empty_payload_hash(self):
        assert sha256_hex("") == EMPTY_HASH
        assert sha256_hex(b"") == EMPTY_HASH

    def test_derive_signing_key_documented_example(self):
        key = derive_signing_key(EXAMPLE_SECRET, "20120215", "us-east-1", "iam")
        assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"

    def test_canonical_query_sorted_and_encoded(self):
        assert canonical_query_string("Param2=value2&Param1=value1") == (
            "Param1=value1&Param2=value2"
        )
        assert canonical_query_string("a=b c&a=a/b") == "a=a%2Fb&a=b%20c"
        assert canonical_query_string("") == ""


class TestSigningContext:
    def test_host_and_date_injected(self):
        context = build_signing_context(
            "post",
            "https://ecs.us-east-1.amazonaws.com",
            {"Content-Type": " application/x-amz-json-1.1 "},
            "{}",
            "us-east-1",
            "ecs",
            datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC),
        )
        assert context.method == "POST"
        assert context.canonical_uri == "/"
        assert context.signed_headers == "content-type;host;x-amz-date"
        assert context.canonical_headers == (
            "content-type:application/x-amz-json-1.1\n"
            "host:ecs.us-east-1.amazonaws.com\n"
            "x-amz-date:20240115T120000Z\n"
        )
        assert context.credential_scope == "20240115/us-east-1/ecs/aws4_request"

    def test_string_to_sign_layout(self):
        context = build_signing_context(
            "GET", "https://example.amazonaws.com/", {}, "", "us-east-1", "service",
            datetime(2015, 8, 30, 12, 36, 0, tzinfo=UTC),
        )
        lines = context.string_to_sign().split("\n")
        assert lines[0] == "AWS4-HMAC-SHA256"
        assert lines[1] == "20150830T123600Z"
        assert lines[2] == "20150830/us-east-1/service/aws4_request"
        assert lines[3] == sha256_hex(context.canonical_request())

    def test_non_default_port_kept_in_host(self):
        context = build_signing_context(
            "GET", "http://localhost:4566/", {}, "", "us-east-1", "ecs",
            datetime(2024, 1, 1, tzinfo=UTC),
        )
        assert ("host", "localhost:4566") in context.headers


class TestRequestSigner:
    def test_get_vanilla_reference_signature(self, vanilla_clock):
        signer = RequestSigner("AKIDEXAMPLE", EXAMPLE_SECRET, "us-east-1", "service", vanilla_clock)
        headers = signer.sign("GET", "https://example.amazonaws.com/", {})
        assert headers["Authorization"] == (
            "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/service/aws4_request, "
            "SignedHeaders=host;x-amz-date, "
            "Signature=5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31"
        )
        assert headers["x-amz-date"] == "20150830T123600Z"
        assert headers["host"] == "example.amazonaws.com"

    def test_deterministic_for_fixed_clock(self, fixed_clock):
        signer = RequestSigner("AKID", "secret", "us-east-1", "ecs", fixed_clock)
        args = ("POST", "https://ecs.us-east-1.amazonaws.com", {"x-amz-target": "T"}, '{"a": 1}')
        assert signer.sign(*args) == signer.sign(*args)

    def test_payload_changes_signature(self, fixed_clock):
        signer = RequestSigner("AKID", "secret", "us-east-1", "ecs", fixed_clock)
        url = "https://ecs.us-east-1.amazonaws.com"
        first = signer.sign("POST", url, {}, '{"cluster": "prod"}')
        second = signer.sign("POST", url, {}, '{"cluster": "stage"}')
        assert first["Authorization"] != second["Authorization"]

    def test_secret_not_exposed(self, fixed_clock):
        signer = RequestSigner("AKID", "super-secret", "us-east-1", "ecs", fixed_clock)
        headers = signer.sign("POST", "https://ecs.us-east-1.amazonaws.com", {}, "{}")
        assert all("super-secret" not in value for value in headers.values())

    def test_canonical_request_logged_at_trace(self, fixed_clock, caplog):
        structlog.reset_defaults()
        caplog.set_level(TRACE)
        signer = RequestSigner("AKID", "secret", "us-east-1", "ecs", fixed_clock)

        signer.sign("POST", "https://ecs.us-east-1.amazonaws.com", {}, "{}")

        [record] = [r for r in caplog.records if r.levelno == TRACE]
        assert "Canonical request built" in record.getMessage()
        assert "AWS4-HMAC-SHA256" in record.getMessage()
