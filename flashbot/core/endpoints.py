"""Static descriptions of relay endpoints and their capabilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from flashbot.core.errors import UnsupportedNetwork

METHOD_SEND_BUNDLE = "eth_sendBundle"
METHOD_CALL_BUNDLE = "eth_callBundle"
METHOD_ESTIMATE_GAS_BUNDLE = "eth_estimateGasBundle"
METHOD_SEND_PRIVATE_TX = "eth_sendPrivateTransaction"
METHOD_CANCEL_PRIVATE_TX = "eth_cancelPrivateTransaction"
METHOD_BUNDLE_STATS = "flashbots_getBundleStats"
METHOD_USER_STATS = "flashbots_getUserStats"


@dataclass(frozen=True)
class RelayEndpoint:
    """Capabilities of a single relay.

    Different relays use different method names, so the send and call
    methods can be overridden per endpoint.
    """

    url: str
    supports_simulation: bool = False
    send_method: Optional[str] = None
    call_method: Optional[str] = None
    custom_headers: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("relay url can't be empty")
        headers = dict(self.custom_headers)
        for name, value in headers.items():
            # HTTP header fields go on the wire as latin-1.
            try:
                name.encode("latin-1")
                value.encode("latin-1")
            except UnicodeEncodeError as exc:
                raise ValueError(f"custom header {name!r} for {self.url} is not latin-1 encodable") from exc
        # Freeze the headers so a shared endpoint can't be mutated between calls.
        object.__setattr__(self, "custom_headers", MappingProxyType(headers))

    def send_method_name(self) -> str:
        return self.send_method or METHOD_SEND_BUNDLE

    def call_method_name(self) -> str:
        return self.call_method or METHOD_CALL_BUNDLE


DEFAULT_RELAY_URLS: Dict[int, str] = {
    1: "https://relay.flashbots.net",
    5: "https://relay-goerli.flashbots.net",
    11155111: "https://relay-sepolia.flashbots.net",
}

SECONDARY_RELAYS: Dict[int, Tuple[RelayEndpoint, ...]] = {
    1: (
        RelayEndpoint(url="https://api.edennetwork.io/v1/bundle"),
        RelayEndpoint(url="https://mev-relay.ethermine.org"),
        RelayEndpoint(url="https://bundle.miningdao.io"),
    ),
}


def relay_url_default(network_id: int) -> str:
    try:
        return DEFAULT_RELAY_URLS[network_id]
    except KeyError:
        raise UnsupportedNetwork(f"network id not supported id:{network_id}") from None


def default_endpoint(network_id: int) -> RelayEndpoint:
    """The primary Flashbots relay for ``network_id``; it supports simulation."""
    return RelayEndpoint(url=relay_url_default(network_id), supports_simulation=True)


def all_endpoints(network_id: int) -> Tuple[RelayEndpoint, ...]:
    """Primary relay followed by every known secondary relay."""
    return (default_endpoint(network_id),) + SECONDARY_RELAYS.get(network_id, ())


__all__ = [
    "DEFAULT_RELAY_URLS",
    "METHOD_BUNDLE_STATS",
    "METHOD_CALL_BUNDLE",
    "METHOD_CANCEL_PRIVATE_TX",
    "METHOD_ESTIMATE_GAS_BUNDLE",
    "METHOD_SEND_BUNDLE",
    "METHOD_SEND_PRIVATE_TX",
    "METHOD_USER_STATS",
    "RelayEndpoint",
    "SECONDARY_RELAYS",
    "all_endpoints",
    "default_endpoint",
    "relay_url_default",
]
