"""Direct relay client tests against a recorded fake session."""

import pytest
import requests

from flashbot.core.client import SIGNATURE_HEADER, SIMULATION_BLOCK, DirectRelayClient, RelayResult
from flashbot.core.codec import BundleResult, CallTx, SendAccepted
from flashbot.core.endpoints import RelayEndpoint
from flashbot.core.errors import DecodeError, KeyMissing, RelayError, TransportError, UnsupportedOperation
from flashbot.core.signer import KeyPair, recover_signer

from .conftest import BUNDLE, FakeResponse, FakeSession, json_reply


def test_send_bundle_posts_signed_request(make_client, key):
    client, session = make_client("https://relay.example", json_reply({"bundleHash": "0xabc"}))

    result = client.send_bundle(BUNDLE, 100, timeout=3)

    assert len(session.calls) == 1
    call = session.calls[0]
    assert call["url"] == "https://relay.example"
    assert call["timeout"] == 3
    assert call["verify"] is True
    assert call["headers"]["content-type"] == "application/json"
    assert call["headers"]["Accept"] == "application/json"
    assert recover_signer(call["data"], call["headers"][SIGNATURE_HEADER]) == key.address

    body = session.body()
    assert body["method"] == "eth_sendBundle"
    assert body["params"] == [{"blockNumber": "0x64", "stateBlockNumber": "latest", "txs": BUNDLE}]

    assert isinstance(result, RelayResult)
    assert result.relay_url == "https://relay.example"
    assert result.block_number == 100
    assert result.bundle_hash == "0xabc"


def test_boolean_send_reply_has_empty_hash(make_client):
    client, _ = make_client("https://relay.example", json_reply(True))
    result = client.send_bundle(BUNDLE, 1)
    assert result.response == SendAccepted(accepted=True)
    assert result.bundle_hash == ""


def test_custom_headers_are_sent(make_client):
    client, session = make_client(
        "https://relay.example", json_reply(True), custom_headers={"X-Api-Key": "secret"}
    )
    client.send_bundle(BUNDLE, 1)
    assert session.calls[0]["headers"]["X-Api-Key"] == "secret"


def test_send_method_override(make_client):
    client, session = make_client("https://relay.example", json_reply(True), send_method="eth_sendBundleV2")
    result = client.send_bundle(BUNDLE, 1)
    assert session.body()["method"] == "eth_sendBundleV2"
    assert result.method == "eth_sendBundleV2"


def test_call_bundle_targets_far_future_block(make_client):
    client, session = make_client("https://relay.example", json_reply({"bundleHash": "0x01"}))
    result = client.call_bundle(BUNDLE)
    params = session.body()["params"][0]
    assert session.body()["method"] == "eth_callBundle"
    assert params["blockNumber"] == hex(SIMULATION_BLOCK) == "0x5af3107a4000"
    assert params["stateBlockNumber"] == "latest"
    assert result.block_number == SIMULATION_BLOCK


def test_call_method_override(make_client):
    client, session = make_client("https://relay.example", json_reply({}), call_method="eth_simulate")
    client.call_bundle(BUNDLE)
    assert session.body()["method"] == "eth_simulate"


def test_call_bundle_without_simulation_makes_no_request(make_client):
    client, session = make_client("https://relay.example", supports_simulation=False)
    with pytest.raises(UnsupportedOperation):
        client.call_bundle(BUNDLE)
    assert session.calls == []


@pytest.mark.parametrize("key", [None, KeyPair()])
def test_missing_key_makes_no_request(key):
    session = FakeSession(json_reply(True))
    client = DirectRelayClient(RelayEndpoint(url="https://relay.example"), key, session=session)
    with pytest.raises(KeyMissing):
        client.send_bundle(BUNDLE, 1)
    assert session.calls == []


def test_non_2xx_is_transport_error_with_body(make_client):
    client, _ = make_client("https://relay.example", FakeResponse(403, "signer not allowed"))
    with pytest.raises(TransportError) as excinfo:
        client.send_bundle(BUNDLE, 1)
    error = excinfo.value
    assert error.status == 403
    assert error.body == "signer not allowed"
    assert error.method == "eth_sendBundle"
    assert error.url == "https://relay.example"
    assert "signer not allowed" in str(error)


@pytest.mark.parametrize(
    "exc",
    [requests.Timeout("read timed out"), requests.ConnectionError("refused")],
)
def test_network_failures_are_transport_errors(make_client, exc):
    client, _ = make_client("https://relay.example", exc)
    with pytest.raises(TransportError) as excinfo:
        client.send_bundle(BUNDLE, 1)
    assert excinfo.value.status is None
    assert excinfo.value.__cause__ is exc


def test_relay_error_reply(make_client):
    client, _ = make_client("https://relay.example", json_reply(error={"code": -32602, "message": "invalid block"}))
    with pytest.raises(RelayError) as excinfo:
        client.send_bundle(BUNDLE, 5)
    assert excinfo.value.code == -32602
    assert excinfo.value.block_number == 5


def test_undecodable_reply(make_client):
    client, _ = make_client("https://relay.example", FakeResponse(200, "ok"))
    with pytest.raises(DecodeError) as excinfo:
        client.send_bundle(BUNDLE, 5)
    assert excinfo.value.body == b"ok"


def test_default_timeout_and_tls_flag(key):
    session = FakeSession(json_reply(True))
    client = DirectRelayClient(
        RelayEndpoint(url="https://relay.example"), key, session=session, default_timeout=2.5, verify_tls=False
    )
    client.send_bundle(BUNDLE, 1)
    assert session.calls[0]["timeout"] == 2.5
    assert session.calls[0]["verify"] is False


def test_estimate_gas_bundle(make_client):
    client, session = make_client("https://relay.example", json_reply({"totalGasUsed": 46000}))
    tx = CallTx(
        from_address="0x" + "11" * 20,
        to_address="0x" + "22" * 20,
        data=b"\x01",
    )
    result = client.estimate_gas_bundle([tx], 12)
    assert session.body()["method"] == "eth_estimateGasBundle"
    assert session.body()["params"][0]["txs"][0]["data"] == "0x01"
    assert isinstance(result.response, BundleResult)
    assert result.response.total_gas_used == 46000


def test_get_bundle_stats(make_client):
    client, session = make_client("https://relay.example", json_reply({"isSimulated": True}))
    stats = client.get_bundle_stats("0xabc", 10)
    assert session.body()["method"] == "flashbots_getBundleStats"
    assert session.body()["params"] == [{"blockNumber": "0xa", "bundleHash": "0xabc"}]
    assert stats.is_simulated


def test_get_user_stats(make_client):
    client, session = make_client("https://relay.example", json_reply({"allTimeGasSimulated": "99"}))
    stats = client.get_user_stats(10)
    assert session.body()["method"] == "flashbots_getUserStats"
    assert stats.all_time_gas_simulated == 99


def test_private_transaction_round(make_client):
    client, session = make_client("https://relay.example", json_reply("0xfeed"), json_reply(True))
    assert client.send_private_transaction("0xdeadbeef", 20, fast=True) == "0xfeed"
    assert session.body(0)["method"] == "eth_sendPrivateTransaction"
    assert client.cancel_private_transaction("0xfeed") is True
    assert session.body(1) == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "eth_cancelPrivateTransaction",
        "params": [{"txHash": "0xfeed"}],
    }


def test_close_leaves_injected_session_open(make_client):
    client, session = make_client()
    with client:
        pass
    assert session.closed is False


def test_rejects_non_positive_timeout(key):
    with pytest.raises(ValueError):
        DirectRelayClient(RelayEndpoint(url="https://relay.example"), key, default_timeout=0)
