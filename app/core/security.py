"""
Shared-secret checks for machine-to-machine endpoints and Vipps webhook authentication.
"""
import base64
import hashlib
import hmac
from typing import Mapping, Optional


def bearer_matches(authorization: Optional[str], secret: Optional[str]) -> bool:
    """Constant-time check of an `Authorization: Bearer <secret>` header."""
    if not secret or not authorization:
        return False
    expected = f"Bearer {secret}"
    return hmac.compare_digest(authorization.encode(), expected.encode())


def content_sha256(body: bytes) -> str:
    return base64.b64encode(hashlib.sha256(body).digest()).decode()


def vipps_signature(secret: str, method: str, path_and_query: str, date: str, host: str, content_hash: str) -> str:
    string_to_sign = f"{method}\n{path_and_query}\n{date};{host};{content_hash}"
    digest = hmac.new(secret.encode(), string_to_sign.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_vipps_webhook(
    body: bytes,
    headers: Mapping[str, str],
    path_and_query: str,
    secret: Optional[str],
    method: str = "POST",
) -> bool:
    """
    Verify a Vipps webhook (HMAC-SHA256 scheme).

    Required headers: x-ms-date, x-ms-content-sha256, host and
    Authorization: HMAC-SHA256 SignedHeaders=x-ms-date;host;x-ms-content-sha256&Signature=<b64>
    """
    if not secret:
        return False

    date = headers.get("x-ms-date")
    claimed_hash = headers.get("x-ms-content-sha256")
    host = headers.get("host")
    authorization = headers.get("authorization")
    if not (date and claimed_hash and host and authorization):
        return False

    if not hmac.compare_digest(content_sha256(body), claimed_hash):
        return False

    signature = None
    for part in authorization.split("&"):
        if part.startswith("Signature="):
            signature = part[len("Signature="):]
    if not signature:
        return False

    expected = vipps_signature(secret, method, path_and_query, date, host, claimed_hash)
    return hmac.compare_digest(expected, signature)
