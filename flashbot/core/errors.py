"""Exception hierarchy for relay signing, encoding and transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union


class FlashbotError(Exception):
    """Base class for every error raised while talking to a relay."""


class KeyMissing(FlashbotError):
    """Raised when a request must be signed but the key pair is incomplete."""


class UnsupportedOperation(FlashbotError):
    """Raised when an endpoint is asked for a call outside its capabilities."""


class UnsupportedNetwork(FlashbotError, ValueError):
    """Raised when no default relay is known for a network id."""


class EncodeError(FlashbotError):
    """Raised when request parameters cannot be serialized."""


class DecodeError(FlashbotError):
    """Raised when a relay reply matches none of the expected shapes."""

    def __init__(self, message: str, body: Union[bytes, str] = b"") -> None:
        self.body = body
        text = body if isinstance(body, str) else body.decode("utf-8", errors="replace")
        super().__init__(f"{message}: {text}")


class RelayError(FlashbotError):
    """A well-formed reply that reports a failure."""

    def __init__(
        self,
        code: int,
        message: str,
        *,
        block_number: Optional[int] = None,
        tx_index: Optional[int] = None,
        revert: str = "",
        gas_used: Optional[int] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.block_number = block_number
        self.tx_index = tx_index
        self.revert = revert
        self.gas_used = gas_used

        text = f"relay returned an error code:{code} message:{message} block:{block_number}"
        if tx_index is not None:
            text += f" tx:{tx_index} revert:{revert!r} gasUsed:{gas_used}"
        super().__init__(text)


class TransportError(FlashbotError):
    """Network failure, timeout or non-2xx HTTP status."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        method: str = "",
        status: Optional[int] = None,
        body: str = "",
    ) -> None:
        self.url = url
        self.method = method
        self.status = status
        self.body = body

        text = message
        if status is not None:
            text += f" status:{status}"
        if body:
            text += f" respBody:{body}"
        if method:
            text += f" reqMethod:{method}"
        if url:
            text += f" url:{url}"
        super().__init__(text)


@dataclass(frozen=True)
class RelayFailure:
    """One relay's contribution to an aggregated broadcast error."""

    relay_url: str
    error: FlashbotError

    @property
    def kind(self) -> str:
        return type(self.error).__name__

    def __str__(self) -> str:
        return f"{self.relay_url}: {self.kind}: {self.error}"


class AggregateRelayError(FlashbotError):
    """Every per-relay failure of a broadcast, one entry per failing relay."""

    def __init__(self, failures: Sequence[RelayFailure], attempted: int) -> None:
        self.failures: Tuple[RelayFailure, ...] = tuple(failures)
        self.attempted = attempted
        lines = "; ".join(str(failure) for failure in self.failures)
        super().__init__(f"{len(self.failures)} of {attempted} relays failed: {lines}")

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and len(self.failures) == self.attempted

    @property
    def relay_urls(self) -> Tuple[str, ...]:
        return tuple(failure.relay_url for failure in self.failures)

    def for_relay(self, relay_url: str) -> Optional[FlashbotError]:
        for failure in self.failures:
            if failure.relay_url == relay_url:
                return failure.error
        return None


__all__ = [
    "AggregateRelayError",
    "DecodeError",
    "EncodeError",
    "FlashbotError",
    "KeyMissing",
    "RelayError",
    "RelayFailure",
    "TransportError",
    "UnsupportedNetwork",
    "UnsupportedOperation",
]
