from __future__ import annotations

import base64
import hashlib
import hmac
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from newsadmin.logging import get_logger
from newsadmin.service.errors import ExpiredTokenError, InvalidTokenError

logger = get_logger(__name__)

GUEST_ROLE = "guest"

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TokenClaims:
    subject_id: str
    role: str
    is_guest: bool = False
    jti: Optional[str] = None
    expires_at: Optional[datetime] = None


class TokenCodec:
    """Issue and verify compact HS256 bearer tokens.

    Tokens are stateless: validity is decided by signature, issuer,
    audience and expiry alone.
    """

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        audience: str,
        ttl: timedelta = timedelta(days=7),
        clock: Optional[Clock] = None,
    ) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        self._secret = secret.encode()
        self.issuer = issuer
        self.audience = audience
        self.ttl = ttl
        self._clock = clock or _utcnow

    def _now(self) -> datetime:
        return self._clock()

    @staticmethod
    def _encode_segment(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")

    @staticmethod
    def _decode_segment(segment: str) -> bytes:
        padding = "=" * ((4 - len(segment) % 4) % 4)
        return base64.urlsafe_b64decode(segment + padding)

    def _sign(self, signing_input: str) -> str:
        digest = hmac.new(self._secret, signing_input.encode(), hashlib.sha256).digest()
        return self._encode_segment(digest)

    def _encode(self, payload: dict[str, Any]) -> str:
        header = {"alg": self.algorithm, "typ": "JWT"}
        header_enc = self._encode_segment(json.dumps(header, separators=(",", ":")).encode())
        payload_enc = self._encode_segment(json.dumps(payload, separators=(",", ":")).encode())
        signing_input = f"{header_enc}.{payload_enc}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def _claims(self, subject: str, role: str, **extra: Any) -> dict[str, Any]:
        now = self._now()
        payload = {
            "iss": self.issuer,
            "aud": self.audience,
            "sub": subject,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
            "jti": str(uuid.uuid4()),
        }
        payload.update(extra)
        return payload

    def issue(self, subject_id: str, role: str) -> str:
        return self._encode(self._claims(subject_id, role))

    def issue_guest(self, guest_id: str) -> str:
        return self._encode(self._claims(guest_id, GUEST_ROLE, guest=True))

    def verify(self, token: str) -> TokenClaims:
        """Decode ``token`` or raise InvalidTokenError / ExpiredTokenError."""
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except (AttributeError, ValueError):
            raise InvalidTokenError() from None

        # Reject anything but HS256 before touching the signature
        try:
            header = json.loads(self._decode_segment(header_b64))
        except (ValueError, TypeError):
            logger.warning("jwt_header_decode_failed")
            raise InvalidTokenError() from None
        if not isinstance(header, dict) or header.get("alg") != self.algorithm:
            logger.warning(
                "jwt_invalid_algorithm",
                alg=header.get("alg") if isinstance(header, dict) else None,
            )
            raise InvalidTokenError()

        expected = self._sign(f"{header_b64}.{payload_b64}").encode()
        if not hmac.compare_digest(expected, sig_b64.encode("utf-8", "surrogatepass")):
            logger.warning("jwt_signature_mismatch")
            raise InvalidTokenError()
        try:
            payload = json.loads(self._decode_segment(payload_b64))
        except (ValueError, TypeError) as exc:
            logger.warning("jwt_payload_decode_failed", error=str(exc))
            raise InvalidTokenError() from None
        if not isinstance(payload, dict):
            raise InvalidTokenError()

        if payload.get("iss") != self.issuer:
            raise InvalidTokenError()
        aud = payload.get("aud")
        if isinstance(aud, str):
            valid_aud = aud == self.audience
        elif isinstance(aud, list):
            valid_aud = self.audience in aud
        else:
            valid_aud = False
        if not valid_aud:
            raise InvalidTokenError()

        subject = payload.get("sub")
        role = payload.get("role")
        if not isinstance(subject, str) or not subject or not isinstance(role, str):
            raise InvalidTokenError()
        try:
            exp_ts = float(payload["exp"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError() from None
        if exp_ts <= self._now().timestamp():
            raise ExpiredTokenError()

        return TokenClaims(
            subject_id=subject,
            role=role,
            is_guest=bool(payload.get("guest")),
            jti=payload.get("jti"),
            expires_at=datetime.fromtimestamp(exp_ts, tz=timezone.utc),
        )


__all__ = ["GUEST_ROLE", "TokenClaims", "TokenCodec"]
