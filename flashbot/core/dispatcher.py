"""Fan a bundle out to several relays and merge their answers."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from flashbot.core.client import DirectRelayClient, RelayResult
from flashbot.core.codec import BundleStats, CallTx, RelayResponse, UserStats
from flashbot.core.endpoints import RelayEndpoint, all_endpoints
from flashbot.core.errors import (
    AggregateRelayError,
    FlashbotError,
    RelayFailure,
    TransportError,
    UnsupportedOperation,
)
from flashbot.core.signer import KeyPair
from flashbot.core.utils import get_logger

_Attempt = Union[RelayResult, FlashbotError]


@dataclass(frozen=True)
class AggregateOutcome:
    """Merged view of one broadcast.

    ``results`` keeps every successful reply keyed by relay url in the order
    the relays were given. ``representative`` is the last of them and
    ``hash_label`` concatenates ``"<url><bundle hash>, "`` for each.
    A non-empty ``results`` together with an ``error`` means partial success.
    """

    results: Dict[str, RelayResult] = field(default_factory=dict)
    error: Optional[AggregateRelayError] = None
    skipped: Tuple[str, ...] = ()

    @property
    def representative(self) -> Optional[RelayResult]:
        if not self.results:
            return None
        return list(self.results.values())[-1]

    @property
    def hash_label(self) -> str:
        return "".join(f"{url}{result.bundle_hash}, " for url, result in self.results.items())

    @property
    def bundle_hash(self) -> str:
        return self.hash_label

    @property
    def response(self) -> Optional[RelayResponse]:
        representative = self.representative
        return representative.response if representative else None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.results)

    @property
    def partial(self) -> bool:
        return self.error is not None and bool(self.results)

    def raise_for_errors(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bundleHash": self.hash_label,
            "results": [result.to_dict() for result in self.results.values()],
            "errors": [
                {"relay": failure.relay_url, "kind": failure.kind, "message": str(failure.error)}
                for failure in (self.error.failures if self.error else ())
            ],
            "skipped": list(self.skipped),
        }


class FanoutRelayClient:
    """Sends the same bundle to every configured relay.

    Relays are contacted in the given order, one at a time unless
    ``max_workers`` is above one. One relay's failure never stops the
    broadcast; failures are collected into an ``AggregateRelayError``.
    """

    def __init__(
        self,
        clients: Sequence[DirectRelayClient],
        *,
        logger: Optional[logging.Logger] = None,
        max_workers: int = 1,
    ) -> None:
        if not clients:
            raise ValueError("should provide at least one relay client")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        urls = [client.url for client in clients]
        if len(set(urls)) != len(urls):
            raise ValueError(f"duplicate relay urls: {urls}")
        self._clients: Tuple[DirectRelayClient, ...] = tuple(clients)
        self._logger = logger or get_logger("flashbot.dispatcher")
        self._max_workers = max_workers

    @classmethod
    def from_endpoints(
        cls,
        endpoints: Sequence[RelayEndpoint],
        key: Optional[KeyPair],
        *,
        logger: Optional[logging.Logger] = None,
        max_workers: int = 1,
        **client_kwargs: Any,
    ) -> "FanoutRelayClient":
        clients = [DirectRelayClient(endpoint, key, logger=logger, **client_kwargs) for endpoint in endpoints]
        return cls(clients, logger=logger, max_workers=max_workers)

    @classmethod
    def for_network(cls, network_id: int, key: Optional[KeyPair], **kwargs: Any) -> "FanoutRelayClient":
        """Every known relay for ``network_id``."""
        return cls.from_endpoints(all_endpoints(network_id), key, **kwargs)

    @property
    def clients(self) -> Tuple[DirectRelayClient, ...]:
        return self._clients

    def close(self) -> None:
        for client in self._clients:
            client.close()

    def __enter__(self) -> "FanoutRelayClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def broadcast_send(
        self,
        bundle: Sequence[str],
        target_block: int,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> AggregateOutcome:
        bundle = tuple(bundle)
        return self._broadcast(
            "send_bundle",
            self._clients,
            lambda client: client.send_bundle(bundle, target_block, timeout),
            cancel,
        )

    def broadcast_call(
        self,
        bundle: Sequence[str],
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> AggregateOutcome:
        bundle = tuple(bundle)
        capable = [client for client in self._clients if client.endpoint.supports_simulation]
        skipped = tuple(client.url for client in self._clients if not client.endpoint.supports_simulation)
        for url in skipped:
            self._logger.debug("call_bundle skipped for %s: simulation not supported", url)
        outcome = self._broadcast(
            "call_bundle",
            capable,
            lambda client: client.call_bundle(bundle, timeout),
            cancel,
        )
        return AggregateOutcome(results=outcome.results, error=outcome.error, skipped=skipped)

    def broadcast_estimate(
        self,
        txs: Sequence[CallTx],
        target_block: int,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> AggregateOutcome:
        txs = tuple(txs)
        capable = [client for client in self._clients if client.endpoint.supports_simulation]
        skipped = tuple(client.url for client in self._clients if not client.endpoint.supports_simulation)
        outcome = self._broadcast(
            "estimate_gas_bundle",
            capable,
            lambda client: client.estimate_gas_bundle(txs, target_block, timeout),
            cancel,
        )
        return AggregateOutcome(results=outcome.results, error=outcome.error, skipped=skipped)

    def send_bundle(
        self, bundle: Sequence[str], target_block: int, timeout: Optional[float] = None
    ) -> AggregateOutcome:
        return self.broadcast_send(bundle, target_block, timeout)

    def call_bundle(self, bundle: Sequence[str], timeout: Optional[float] = None) -> AggregateOutcome:
        return self.broadcast_call(bundle, timeout)

    def estimate_gas_bundle(
        self, txs: Sequence[CallTx], target_block: int, timeout: Optional[float] = None
    ) -> AggregateOutcome:
        return self.broadcast_estimate(txs, target_block, timeout)

    def get_bundle_stats(
        self, bundle_hash: str, block_number: int, timeout: Optional[float] = None
    ) -> BundleStats:
        """Ask simulation-capable relays in order and return the first answer."""
        return self._first_answer(
            "get_bundle_stats", lambda client: client.get_bundle_stats(bundle_hash, block_number, timeout)
        )

    def get_user_stats(self, block_number: int, timeout: Optional[float] = None) -> UserStats:
        return self._first_answer("get_user_stats", lambda client: client.get_user_stats(block_number, timeout))

    def _first_answer(self, operation: str, call: Callable[[DirectRelayClient], Any]) -> Any:
        # Stats live on the Flashbots relays, which are the simulation-capable ones.
        failures: List[RelayFailure] = []
        capable = [client for client in self._clients if client.endpoint.supports_simulation]
        if not capable:
            raise UnsupportedOperation(f"{operation} needs a relay that supports simulation")
        for client in capable:
            try:
                return call(client)
            except FlashbotError as exc:
                self._logger.warning("%s failed on %s: %s", operation, client.url, exc)
                failures.append(RelayFailure(relay_url=client.url, error=exc))
        raise AggregateRelayError(failures, attempted=len(capable))

    def _broadcast(
        self,
        operation: str,
        clients: Sequence[DirectRelayClient],
        call: Callable[[DirectRelayClient], RelayResult],
        cancel: Optional[threading.Event],
    ) -> AggregateOutcome:
        attempts = self._run(clients, call, cancel)

        results: Dict[str, RelayResult] = {}
        failures: List[RelayFailure] = []
        for client, attempt in zip(clients, attempts):
            if isinstance(attempt, RelayResult):
                results[client.url] = attempt
            else:
                self._logger.warning("%s failed on %s: %s", operation, client.url, attempt)
                failures.append(RelayFailure(relay_url=client.url, error=attempt))

        error = AggregateRelayError(failures, attempted=len(clients)) if failures else None
        if results and error is not None:
            self._logger.warning(
                "%s partially succeeded: %s of %s relays failed", operation, len(failures), len(clients)
            )
        return AggregateOutcome(results=results, error=error)

    def _run(
        self,
        clients: Sequence[DirectRelayClient],
        call: Callable[[DirectRelayClient], RelayResult],
        cancel: Optional[threading.Event],
    ) -> List[_Attempt]:
        def attempt(client: DirectRelayClient) -> _Attempt:
            if cancel is not None and cancel.is_set():
                return TransportError("broadcast cancelled before contacting relay", url=client.url)
            try:
                return call(client)
            except FlashbotError as exc:
                return exc

        if self._max_workers == 1 or len(clients) < 2:
            return [attempt(client) for client in clients]

        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(clients))) as pool:
            # map() yields in submission order, which keeps the merge deterministic.
            return list(pool.map(attempt, clients))


__all__ = ["AggregateOutcome", "FanoutRelayClient"]
