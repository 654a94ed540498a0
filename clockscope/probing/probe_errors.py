"""Error taxonomy shared by the parser, resolver, protocol probes and CLI."""

from enum import Enum
from typing import Optional


class ProbeErrorKind(str, Enum):
    """Failure categories for a single probe attempt."""

    DNS = "dns"
    NETWORK = "network"
    PROTOCOL = "protocol"
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    OTHER = "other"


class ProbeError(Exception):
    """A failed probe attempt, tagged with its :class:`ProbeErrorKind`.

    One class for every failure kind; callers branch on ``kind`` rather than
    on subclasses.
    """

    def __init__(self, kind: ProbeErrorKind, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.target = target

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return f"ProbeError({self.kind.name}, {self.message!r})"

    def with_target(self, target: str) -> "ProbeError":
        """Return a copy of this error attributed to ``target``."""
        return ProbeError(self.kind, self.message, target=target)

    @classmethod
    def dns(cls, message: str) -> "ProbeError":
        return cls(ProbeErrorKind.DNS, message)

    @classmethod
    def network(cls, message: str) -> "ProbeError":
        return cls(ProbeErrorKind.NETWORK, message)

    @classmethod
    def protocol(cls, message: str) -> "ProbeError":
        return cls(ProbeErrorKind.PROTOCOL, message)

    @classmethod
    def authentication(cls, message: str) -> "ProbeError":
        return cls(ProbeErrorKind.AUTHENTICATION, message)

    @classmethod
    def timeout(cls, message: str = "timeout") -> "ProbeError":
        return cls(ProbeErrorKind.TIMEOUT, message)

    @classmethod
    def other(cls, message: str) -> "ProbeError":
        return cls(ProbeErrorKind.OTHER, message)


class UsageError(ValueError):
    """Contradictory or invalid arguments, detected before any network activity."""


_EXIT_CODES = {
    ProbeErrorKind.DNS: 2,
    ProbeErrorKind.TIMEOUT: 3,
    ProbeErrorKind.NETWORK: 1,
    ProbeErrorKind.PROTOCOL: 1,
    ProbeErrorKind.AUTHENTICATION: 1,
    ProbeErrorKind.OTHER: 1,
}


def exit_code_for(error: ProbeError) -> int:
    """Process exit code for an interactive-mode probe failure."""
    return _EXIT_CODES[error.kind]
