"""Relay endpoint descriptor tests."""

import pytest

from flashbot.core.endpoints import (
    RelayEndpoint,
    all_endpoints,
    default_endpoint,
    relay_url_default,
)
from flashbot.core.errors import UnsupportedNetwork


def test_default_endpoint_supports_simulation():
    endpoint = default_endpoint(1)
    assert endpoint.url == "https://relay.flashbots.net"
    assert endpoint.supports_simulation


def test_goerli_default():
    assert relay_url_default(5) == "https://relay-goerli.flashbots.net"


def test_unknown_network():
    with pytest.raises(UnsupportedNetwork):
        default_endpoint(99)


def test_mainnet_has_secondary_relays_without_simulation():
    endpoints = all_endpoints(1)
    assert endpoints[0] == default_endpoint(1)
    assert len(endpoints) == 4
    assert not any(endpoint.supports_simulation for endpoint in endpoints[1:])


def test_testnet_has_only_primary():
    assert all_endpoints(5) == (default_endpoint(5),)


def test_method_defaults_and_overrides():
    plain = RelayEndpoint(url="https://relay.example")
    assert plain.send_method_name() == "eth_sendBundle"
    assert plain.call_method_name() == "eth_callBundle"
    custom = RelayEndpoint(url="https://relay.example", send_method="a", call_method="b")
    assert custom.send_method_name() == "a"
    assert custom.call_method_name() == "b"


def test_custom_headers_are_read_only():
    headers = {"X-Key": "1"}
    endpoint = RelayEndpoint(url="https://relay.example", custom_headers=headers)
    headers["X-Key"] = "2"
    assert endpoint.custom_headers["X-Key"] == "1"
    with pytest.raises(TypeError):
        endpoint.custom_headers["X-Key"] = "3"


def test_empty_url_rejected():
    with pytest.raises(ValueError):
        RelayEndpoint(url="")


@pytest.mark.parametrize("headers", [{"X-K": "ключ"}, {"X-Ключ": "1"}])
def test_non_latin1_headers_rejected(headers):
    with pytest.raises(ValueError, match="latin-1"):
        RelayEndpoint(url="https://relay.example", custom_headers=headers)


def test_latin1_header_accepted():
    endpoint = RelayEndpoint(url="https://relay.example", custom_headers={"X-Name": "café"})
    assert endpoint.custom_headers["X-Name"] == "café"
