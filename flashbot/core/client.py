"""Authenticated JSON-RPC client for a single relay."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

import requests

from flashbot.core import codec
from flashbot.core.codec import BundleResult, BundleStats, CallKind, CallTx, RelayResponse, UserStats
from flashbot.core.endpoints import (
    METHOD_BUNDLE_STATS,
    METHOD_CANCEL_PRIVATE_TX,
    METHOD_ESTIMATE_GAS_BUNDLE,
    METHOD_SEND_PRIVATE_TX,
    METHOD_USER_STATS,
    RelayEndpoint,
)
from flashbot.core.errors import TransportError, UnsupportedOperation
from flashbot.core.signer import KeyPair, sign_payload
from flashbot.core.utils import get_logger, truncate

SIGNATURE_HEADER = "X-Flashbots-Signature"

# Simulation runs against "latest" state, so the nominal target block only has
# to be far enough ahead that no relay rejects it as already mined.
SIMULATION_BLOCK = 100_000_000_000_000

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class RelayResult:
    """Successful reply of one relay to one bundle call."""

    relay_url: str
    method: str
    block_number: int
    response: RelayResponse

    @property
    def bundle_hash(self) -> str:
        if isinstance(self.response, BundleResult):
            return self.response.bundle_hash
        return ""

    @property
    def ok(self) -> bool:
        return True

    def raise_for_errors(self) -> None:
        """A direct result only exists on success; kept for parity with broadcasts."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relay": self.relay_url,
            "method": self.method,
            "blockNumber": self.block_number,
            "bundleHash": self.bundle_hash,
            "response": self.response.to_dict(),
        }


class RelayClient(Protocol):
    """Bundle operations shared by the direct and fan-out clients."""

    def send_bundle(self, bundle: Sequence[str], target_block: int, timeout: Optional[float] = None) -> Any:
        ...

    def call_bundle(self, bundle: Sequence[str], timeout: Optional[float] = None) -> Any:
        ...

    def estimate_gas_bundle(
        self, txs: Sequence[CallTx], target_block: int, timeout: Optional[float] = None
    ) -> Any:
        ...

    def get_bundle_stats(self, bundle_hash: str, block_number: int, timeout: Optional[float] = None) -> BundleStats:
        ...


class DirectRelayClient:
    """Talks to exactly one relay endpoint.

    Every call is encoded, signed and posted once; failures are raised as
    ``FlashbotError`` subclasses and never retried.
    """

    def __init__(
        self,
        endpoint: RelayEndpoint,
        key: Optional[KeyPair] = None,
        *,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        verify_tls: bool = True,
    ) -> None:
        if endpoint is None:
            raise ValueError("endpoint can't be empty")
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self._endpoint = endpoint
        self._key = key
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()
        self._logger = logger or get_logger("flashbot.client")
        self._default_timeout = default_timeout
        self._verify_tls = verify_tls

    @property
    def endpoint(self) -> RelayEndpoint:
        return self._endpoint

    @property
    def url(self) -> str:
        return self._endpoint.url

    @property
    def verify_tls(self) -> bool:
        return self._verify_tls

    @property
    def address(self) -> Optional[str]:
        return self._key.address if self._key else None

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "DirectRelayClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def send_bundle(
        self, bundle: Sequence[str], target_block: int, timeout: Optional[float] = None
    ) -> RelayResult:
        """Submit ``bundle`` for inclusion in ``target_block``."""
        method = self._endpoint.send_method_name()
        params = codec.bundle_params(bundle, target_block)
        return self._bundle_call(CallKind.SEND_BUNDLE, method, params, target_block, timeout)

    def call_bundle(self, bundle: Sequence[str], timeout: Optional[float] = None) -> RelayResult:
        """Simulate ``bundle`` on top of the latest state."""
        if not self._endpoint.supports_simulation:
            raise UnsupportedOperation(f"doesn't support simulations relay:{self.url}")
        method = self._endpoint.call_method_name()
        params = codec.bundle_params(bundle, SIMULATION_BLOCK)
        return self._bundle_call(CallKind.CALL_BUNDLE, method, params, SIMULATION_BLOCK, timeout)

    def estimate_gas_bundle(
        self, txs: Sequence[CallTx], target_block: int, timeout: Optional[float] = None
    ) -> RelayResult:
        params = codec.estimate_params(txs, target_block)
        return self._bundle_call(
            CallKind.ESTIMATE_GAS_BUNDLE, METHOD_ESTIMATE_GAS_BUNDLE, params, target_block, timeout
        )

    def get_bundle_stats(
        self, bundle_hash: str, block_number: int, timeout: Optional[float] = None
    ) -> BundleStats:
        params = codec.stats_params(bundle_hash, block_number)
        return self._request(CallKind.BUNDLE_STATS, METHOD_BUNDLE_STATS, params, block_number, timeout)

    def get_user_stats(self, block_number: int, timeout: Optional[float] = None) -> UserStats:
        params = codec.user_stats_params(block_number)
        return self._request(CallKind.USER_STATS, METHOD_USER_STATS, params, block_number, timeout)

    def send_private_transaction(
        self, tx: str, max_block_number: int, fast: bool = False, timeout: Optional[float] = None
    ) -> str:
        """Send one signed transaction privately; returns its hash."""
        params = codec.private_tx_params(tx, max_block_number, fast=fast)
        response = self._request(CallKind.PRIVATE_TX, METHOD_SEND_PRIVATE_TX, params, max_block_number, timeout)
        return response.tx_hash

    def cancel_private_transaction(self, tx_hash: str, timeout: Optional[float] = None) -> bool:
        params = codec.cancel_private_tx_params(tx_hash)
        response = self._request(CallKind.CANCEL_PRIVATE_TX, METHOD_CANCEL_PRIVATE_TX, params, None, timeout)
        return response.accepted

    def _bundle_call(
        self,
        kind: CallKind,
        method: str,
        params: Mapping[str, Any],
        block_number: int,
        timeout: Optional[float],
    ) -> RelayResult:
        response = self._request(kind, method, params, block_number, timeout)
        result = RelayResult(relay_url=self.url, method=method, block_number=block_number, response=response)
        self._logger.info(
            "%s accepted by %s block=%s bundleHash=%s", method, self.url, block_number, result.bundle_hash or "-"
        )
        return result

    def _request(
        self,
        kind: CallKind,
        method: str,
        params: Mapping[str, Any],
        block_number: Optional[int],
        timeout: Optional[float],
    ) -> Any:
        body = self._post(method, params, timeout)
        return codec.decode(kind, body, block_number)

    def _headers(self, payload: bytes) -> Dict[str, str]:
        headers = {
            "content-type": "application/json",
            "Accept": "application/json",
            SIGNATURE_HEADER: sign_payload(payload, self._key),
        }
        headers.update(self._endpoint.custom_headers)
        return headers

    def _post(self, method: str, params: Mapping[str, Any], timeout: Optional[float]) -> bytes:
        payload = codec.encode(method, params)
        headers = self._headers(payload)
        timeout = self._default_timeout if timeout is None else timeout

        self._logger.debug("POST %s method=%s body=%s", self.url, method, truncate(payload.decode("utf-8")))
        try:
            response = self._session.post(
                self.url,
                data=payload,
                headers=headers,
                timeout=timeout,
                verify=self._verify_tls,
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"relay request timed out after {timeout}s", url=self.url, method=method
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(f"relay request failed: {exc}", url=self.url, method=method) from exc

        if response.status_code // 100 != 2:
            raise TransportError(
                "bad response",
                url=self.url,
                method=method,
                status=response.status_code,
                body=response.text,
            )
        return response.content


__all__ = [
    "DEFAULT_TIMEOUT",
    "DirectRelayClient",
    "RelayClient",
    "RelayResult",
    "SIGNATURE_HEADER",
    "SIMULATION_BLOCK",
]
