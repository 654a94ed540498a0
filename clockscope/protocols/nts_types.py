"""NTS (Network Time Security) diagnostic types and error classification."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class NtsErrorKind(str, Enum):
    """Machine-readable NTS failure categories."""

    KE_HANDSHAKE_FAILED = "ke_handshake_failed"
    CERTIFICATE_INVALID = "certificate_invalid"
    MISSING_COOKIES = "missing_cookies"
    AEAD_FAILURE = "aead_failure"
    MISSING_AUTHENTICATOR = "missing_authenticator"
    INVALID_UNIQUE_ID = "invalid_unique_id"
    INVALID_ORIGIN_TIMESTAMP = "invalid_origin_timestamp"
    MALFORMED_EXTENSIONS = "malformed_extensions"
    UNAUTHENTICATED_RESPONSE = "unauthenticated_response"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"

    @property
    def is_security_failure(self) -> bool:
        """True when the server answered but the answer could not be trusted."""
        return self in _SECURITY_FAILURES


_SECURITY_FAILURES = frozenset(
    {
        NtsErrorKind.AEAD_FAILURE,
        NtsErrorKind.MISSING_AUTHENTICATOR,
        NtsErrorKind.UNAUTHENTICATED_RESPONSE,
        NtsErrorKind.INVALID_UNIQUE_ID,
        NtsErrorKind.INVALID_ORIGIN_TIMESTAMP,
    }
)

# Checked in order: specific patterns before generic ones, so that
# "malformed certificate" is a certificate problem, not an extension problem.
_CLASSIFICATION_RULES = (
    (("aead", "authentication tag"), NtsErrorKind.AEAD_FAILURE),
    (("authenticator",), NtsErrorKind.MISSING_AUTHENTICATOR),
    (("unique identifier", "uid"), NtsErrorKind.INVALID_UNIQUE_ID),
    (("origin timestamp", "replay"), NtsErrorKind.INVALID_ORIGIN_TIMESTAMP),
    (("cookie",), NtsErrorKind.MISSING_COOKIES),
    (("certificate", "cert"), NtsErrorKind.CERTIFICATE_INVALID),
    (("extension", "malformed"), NtsErrorKind.MALFORMED_EXTENSIONS),
    (("handshake", "nts-ke", "tls"), NtsErrorKind.KE_HANDSHAKE_FAILED),
    (("timeout", "timed out"), NtsErrorKind.TIMEOUT),
    (("network", "connection", "refused"), NtsErrorKind.NETWORK),
)


def classify_nts_error(message: str) -> NtsErrorKind:
    """Map a backend error message onto an :class:`NtsErrorKind`."""
    lowered = message.lower()
    for needles, kind in _CLASSIFICATION_RULES:
        if any(needle in lowered for needle in needles):
            return kind
    return NtsErrorKind.UNKNOWN


@dataclass(frozen=True)
class NtsError:
    kind: NtsErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


@dataclass(frozen=True)
class NtsValidationOutcome:
    """Whether the time response was cryptographically authenticated."""

    authenticated: bool
    error: Optional[NtsError] = None

    @classmethod
    def success(cls) -> "NtsValidationOutcome":
        return cls(authenticated=True)

    @classmethod
    def failure(cls, error: NtsError) -> "NtsValidationOutcome":
        return cls(authenticated=False, error=error)

    def to_dict(self) -> dict:
        result: dict = {"authenticated": self.authenticated}
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


@dataclass(frozen=True)
class NtsKeData:
    """Key-exchange diagnostics reported by the NTS backend."""

    ke_duration_ms: float
    cookie_count: int
    aead_algorithm: str
    ntp_server: str
    cookie_sizes: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ke_duration_ms": self.ke_duration_ms,
            "cookie_count": self.cookie_count,
            "cookie_sizes": list(self.cookie_sizes),
            "aead_algorithm": self.aead_algorithm,
            "ntp_server": self.ntp_server,
        }
