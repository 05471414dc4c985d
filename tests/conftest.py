"""Shared fakes for relay tests."""

import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from flashbot.core.client import DirectRelayClient
from flashbot.core.endpoints import RelayEndpoint
from flashbot.core.signer import KeyPair

PRIVATE_KEY = "0x" + "11" * 32
BUNDLE = ["0x02f86b0180843b9aca00", "0xdeadbeef", "0x01c0ffee"]


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Union[bytes, str] = b"") -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.status_code = status_code
        self.content = body
        self.text = body.decode("utf-8")


def json_reply(result: Any = None, error: Optional[Dict[str, Any]] = None, status: int = 200) -> FakeResponse:
    envelope: Dict[str, Any] = {"jsonrpc": "2.0", "id": 1}
    if error is not None:
        envelope["error"] = error
    else:
        envelope["result"] = result
    return FakeResponse(status, json.dumps(envelope))


Reply = Union[FakeResponse, Exception, Callable[..., FakeResponse]]


class FakeSession:
    """Stands in for ``requests.Session``; records every POST."""

    def __init__(self, *replies: Reply) -> None:
        self.replies: List[Reply] = list(replies)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def post(self, url, data=None, headers=None, timeout=None, verify=True):
        call = {"url": url, "data": data, "headers": headers, "timeout": timeout, "verify": verify}
        self.calls.append(call)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(call)
        return reply

    def close(self) -> None:
        self.closed = True

    def body(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.calls[index]["data"])


@pytest.fixture
def key() -> KeyPair:
    return KeyPair.from_private_key(PRIVATE_KEY)


@pytest.fixture
def make_client(key):
    def _make(
        url: str = "https://relay.example",
        *replies: Reply,
        supports_simulation: bool = True,
        **endpoint_kwargs: Any,
    ):
        session = FakeSession(*(replies or (json_reply({"bundleHash": "0xabc"}),)))
        endpoint = RelayEndpoint(url=url, supports_simulation=supports_simulation, **endpoint_kwargs)
        return DirectRelayClient(endpoint, key, session=session), session

    return _make
