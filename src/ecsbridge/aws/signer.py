"""AWS Signature Version 4 request signing.

Reference: https://docs.aws.amazon.com/general/latest/gr/sigv4_signing.html

The signature is computed in four stages:

1. Canonical request
   method, canonical URI, canonical query, canonical headers, signed header
   list and the hex SHA-256 of the payload, joined by newlines.

2. String to sign
   algorithm, request datetime, credential scope
   (date/region/service/aws4_request) and the hex SHA-256 of the
   canonical request.

3. Signing key
   HMAC-SHA256 chained over "AWS4" + secret, date, region, service and
   the "aws4_request" terminator.

4. Signature
   hex HMAC-SHA256 of the string to sign under the signing key, placed in
   the Authorization header together with the access key id, credential
   scope and signed header list.

Every byte matters: the remote side recomputes the same digest and rejects
the request (HTTP 403) on any difference. The request datetime must also be
within five minutes of the server clock.
"""

import hashlib
import hmac
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import parse_qsl, quote, urlsplit

from ..constants import AMZ_DATE_FORMAT, SIGNING_ALGORITHM, SIGNING_TERMINATOR
from ..observability.logger import TRACE

# Stdlib logger: structlog has no name for the custom TRACE level
logger = logging.getLogger(__name__)


def sha256_hex(data: str | bytes) -> str:
    """Hex encoded SHA-256 digest of a str (UTF-8) or bytes value."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def hmac_sha256(key: bytes, data: str) -> bytes:
    """Raw HMAC-SHA256 of a UTF-8 string."""
    return hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """
    Derive the date-scoped signing key.

    Args:
        secret_key: AWS secret access key
        date: Request date as YYYYMMDD
        region: AWS region (e.g. "us-east-1")
        service: Service name (e.g. "ecs")

    Returns:
        32 byte signing key
    """
    k_date = hmac_sha256(f"AWS4{secret_key}".encode(), date)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, SIGNING_TERMINATOR)


def _uri_encode(value: str) -> str:
    # RFC 3986 unreserved characters stay as-is, everything else is %XX
    return quote(value, safe="-_.~")


def canonical_query_string(query: str) -> str:
    """
    Build the canonical query string.

    Parameter names and values are trimmed, URI encoded and sorted by name
    (then value, for repeated names).

    Args:
        query: Raw query string without the leading "?"

    Returns:
        Canonical query string ("" when there are no parameters)
    """
    if not query:
        return ""
    pairs = [
        (_uri_encode(key.strip()), _uri_encode(value.strip()))
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return "&".join(f"{key}={value}" for key, value in sorted(pairs))


def _host_header(url: str) -> str:
    parts = urlsplit(url)
    host = parts.hostname or ""
    default_port = {"https": 443, "http": 80}.get(parts.scheme)
    if parts.port and parts.port != default_port:
        return f"{host}:{parts.port}"
    return host


@dataclass(frozen=True)
class SigningContext:
    """
    Everything the signature is derived from for one request.

    Built fresh for each request; nothing in here is reused.
    """

    amz_date: str
    region: str
    service: str
    method: str
    canonical_uri: str
    canonical_query: str
    headers: tuple[tuple[str, str], ...]  # lower-cased, trimmed, sorted
    payload_hash: str

    @property
    def date(self) -> str:
        return self.amz_date.split("T", 1)[0]

    @property
    def credential_scope(self) -> str:
        return f"{self.date}/{self.region}/{self.service}/{SIGNING_TERMINATOR}"

    @property
    def canonical_headers(self) -> str:
        # Every header line ends with a newline, including the last one
        return "".join(f"{name}:{value}\n" for name, value in self.headers)

    @property
    def signed_headers(self) -> str:
        return ";".join(name for name, _ in self.headers)

    def canonical_request(self) -> str:
        return "\n".join(
            [
                self.method,
                self.canonical_uri,
                self.canonical_query,
                self.canonical_headers,
                self.signed_headers,
                self.payload_hash,
            ]
        )

    def string_to_sign(self) -> str:
        return "\n".join(
            [
                SIGNING_ALGORITHM,
                self.amz_date,
                self.credential_scope,
                sha256_hex(self.canonical_request()),
            ]
        )


def build_signing_context(
    method: str,
    url: str,
    headers: Mapping[str, str],
    payload: str | bytes,
    region: str,
    service: str,
    now: datetime,
) -> SigningContext:
    """
    Canonicalize a request.

    The host and x-amz-date headers are added when the caller did not
    supply them.

    Args:
        method: HTTP method
        url: Full request URL
        headers: Request headers (any case)
        payload: Fully materialized request body
        region: AWS region
        service: AWS service name
        now: Request time (converted to UTC)

    Returns:
        SigningContext for the request
    """
    amz_date = now.astimezone(UTC).strftime(AMZ_DATE_FORMAT)
    parts = urlsplit(url)

    header_map: dict[str, str] = {}
    for name, value in headers.items():
        header_map[name.strip().lower()] = " ".join(str(value).split())
    header_map.setdefault("host", _host_header(url))
    header_map.setdefault("x-amz-date", amz_date)

    return SigningContext(
        amz_date=header_map["x-amz-date"],
        region=region,
        service=service,
        method=method.upper(),
        canonical_uri=parts.path or "/",
        canonical_query=canonical_query_string(parts.query),
        headers=tuple(sorted(header_map.items())),
        payload_hash=sha256_hex(payload),
    )


class RequestSigner:
    """
    Signs requests for one service in one region.

    Example:
        signer = RequestSigner(access_key, secret_key, "us-east-1", "ecs")
        headers = signer.sign("POST", url, {"content-type": ...}, body)
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        region: str,
        service: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the signer.

        Args:
            access_key: AWS access key id
            secret_key: AWS secret access key
            region: AWS region
            service: AWS service name used in the credential scope
            clock: Returns the current time; injectable for deterministic signing
        """
        self.access_key = access_key
        self._secret_key = secret_key
        self.region = region
        self.service = service
        self._clock = clock or (lambda: datetime.now(UTC))

    def signature(self, context: SigningContext) -> str:
        """Hex signature for a canonicalized request."""
        signing_key = derive_signing_key(
            self._secret_key, context.date, context.region, context.service
        )
        return hmac.new(
            signing_key, context.string_to_sign().encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def authorization_header(self, context: SigningContext) -> str:
        """Authorization header value for a canonicalized request."""
        return (
            f"{SIGNING_ALGORITHM} "
            f"Credential={self.access_key}/{context.credential_scope}, "
            f"SignedHeaders={context.signed_headers}, "
            f"Signature={self.signature(context)}"
        )

    def sign(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        payload: str | bytes = "",
    ) -> dict[str, str]:
        """
        Sign a request.

        Args:
            method: HTTP method
            url: Full request URL
            headers: Headers to sign
            payload: Request body, already serialized

        Returns:
            Headers to send: the signed headers (lower-cased, including host
            and x-amz-date) plus Authorization
        """
        context = build_signing_context(
            method, url, headers, payload, self.region, self.service, self._clock()
        )
        if logger.isEnabledFor(TRACE):
            logger.log(
                TRACE,
                "Canonical request built:\n%s\nString to sign:\n%s",
                context.canonical_request(),
                context.string_to_sign(),
            )
        signed = dict(context.headers)
        signed["Authorization"] = self.authorization_header(context)
        return signed
