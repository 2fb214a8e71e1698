"""
Apple App Store Server API — JWT signing
========================================
Every call to the App Store Server API carries a short-lived bearer token
signed with the team's App Store Connect API key.

The token is a 3-part base64url string (header.payload.signature).
The signature is ES256 (ECDSA P-256 + SHA-256), encoded as raw R || S.

Ref: https://developer.apple.com/documentation/appstoreserverapi/generating_json_web_tokens_for_api_requests
"""

import base64
import json
import time
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

APPLE_AUDIENCE = "appstoreconnect-v1"
JWT_EXPIRATION_TIME = 7200  # seconds
CLOCK_SKEW_SEC = 60


class AppleCredentialsError(Exception):
    pass


@dataclass(frozen=True)
class AppleCredentials:
    key_id: str
    issuer_id: str
    bundle_id: str
    private_key: str  # PKCS#8 PEM

    @classmethod
    def from_values(cls, key_id: str, issuer_id: str, bundle_id: str, private_key: str) -> "AppleCredentials":
        missing = [
            name for name, value in (
                ("APPLE_KEY_ID", key_id),
                ("APPLE_ISSUER_ID", issuer_id),
                ("APPLE_BUNDLE_ID", bundle_id),
                ("APPLE_PRIVATE_KEY", private_key),
            )
            if not value
        ]
        if missing:
            raise AppleCredentialsError(
                f"Missing required Apple credentials. Set {', '.join(missing)} environment variables."
            )
        return cls(key_id=key_id, issuer_id=issuer_id, bundle_id=bundle_id, private_key=private_key)

    def signing_key(self) -> ec.EllipticCurvePrivateKey:
        try:
            key = serialization.load_pem_private_key(self.private_key.encode(), password=None)
        except (ValueError, TypeError) as e:
            raise AppleCredentialsError(f"Cannot load Apple private key: {e}")
        if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
            raise AppleCredentialsError("Apple private key must be an EC P-256 key")
        return key


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    padding = 4 - len(s) % 4
    if padding != 4:
        s += "=" * padding
    return base64.urlsafe_b64decode(s)


def _json_segment(obj: dict[str, Any]) -> str:
    return _b64url_encode(json.dumps(obj, separators=(",", ":")).encode())


def generate_apple_jwt(credentials: AppleCredentials, now: int | None = None) -> str:
    """Sign an App Store Server API bearer token valid for JWT_EXPIRATION_TIME seconds."""
    issued_at = int(time.time()) if now is None else now
    header = {"alg": "ES256", "kid": credentials.key_id, "typ": "JWT"}
    claims = {
        "iss": credentials.issuer_id,
        "iat": issued_at,
        "exp": issued_at + JWT_EXPIRATION_TIME,
        "aud": APPLE_AUDIENCE,
        "bid": credentials.bundle_id,
    }
    signing_input = f"{_json_segment(header)}.{_json_segment(claims)}"

    der_sig = credentials.signing_key().sign(signing_input.encode(), ec.ECDSA(hashes.SHA256()))

    # DER → raw R || S (32 bytes each), as JWS expects
    r, s = decode_dss_signature(der_sig)
    raw_sig = r.to_bytes(32, "big") + s.to_bytes(32, "big")
    return f"{signing_input}.{_b64url_encode(raw_sig)}"


def verify_apple_jwt(token: str, credentials: AppleCredentials, now: int | None = None) -> dict[str, Any]:
    """
    Re-verify a token produced by generate_apple_jwt before it is sent to Apple.

    Checks, in order:
      1. Structure and ES256 header
      2. Signature against the credentials' public key
      3. iss / aud / exp claims
      4. kid and bid match the configured credentials
      5. iat is not more than CLOCK_SKEW_SEC in the future

    Returns the decoded claims on success.
    Raises ValueError with a descriptive message on any failure.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Invalid JWT: expected header.payload.signature")

    header_b64, payload_b64, sig_b64 = parts

    # ── Decode header + claims ────────────────────────────────────────────────
    try:
        header = json.loads(_b64url_decode(header_b64))
        claims = json.loads(_b64url_decode(payload_b64))
    except Exception:
        raise ValueError("Cannot decode JWT header or payload")

    if header.get("alg") != "ES256":
        raise ValueError(f"Unexpected JWT algorithm: {header.get('alg')}")

    # ── Verify signature ──────────────────────────────────────────────────────
    raw_sig = _b64url_decode(sig_b64)
    if len(raw_sig) != 64:
        raise ValueError(f"Unexpected ES256 signature length: {len(raw_sig)} (expected 64)")

    r = int.from_bytes(raw_sig[:32], "big")
    s = int.from_bytes(raw_sig[32:], "big")
    der_sig = encode_dss_signature(r, s)

    public_key = credentials.signing_key().public_key()
    try:
        public_key.verify(der_sig, f"{header_b64}.{payload_b64}".encode(), ec.ECDSA(hashes.SHA256()))
    except InvalidSignature:
        raise ValueError("JWT signature is invalid")

    # ── Claims ────────────────────────────────────────────────────────────────
    current = int(time.time()) if now is None else now

    if claims.get("iss") != credentials.issuer_id:
        raise ValueError("Issuer mismatch")
    if claims.get("aud") != APPLE_AUDIENCE:
        raise ValueError("Audience mismatch")
    exp = claims.get("exp")
    if not isinstance(exp, int) or exp <= current:
        raise ValueError("Token expired")
    if header.get("kid") != credentials.key_id:
        raise ValueError("Key ID mismatch")
    if claims.get("bid") != credentials.bundle_id:
        raise ValueError("Bundle ID mismatch")
    iat = claims.get("iat")
    if isinstance(iat, int) and iat > current + CLOCK_SKEW_SEC:
        raise ValueError("Token issued in the future")

    return claims


def decode_jws_payload(jws: str) -> dict[str, Any]:
    """
    Decode the payload segment of a JWS returned by Apple.
    The signature is NOT checked; the payload came over TLS from Apple directly.
    """
    parts = jws.split(".")
    if len(parts) != 3:
        raise ValueError("Invalid JWS format")
    try:
        payload = json.loads(_b64url_decode(parts[1]))
    except Exception:
        raise ValueError("Cannot decode JWS payload")
    if not isinstance(payload, dict):
        raise ValueError("JWS payload is not an object")
    return payload
