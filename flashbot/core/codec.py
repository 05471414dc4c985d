"""JSON-RPC envelope encoding and relay response decoding.

Relays disagree on the shape of a successful ``eth_sendBundle`` reply: the
Flashbots relay answers with an object carrying ``bundleHash`` while others
answer with a bare ``true``. Each call kind therefore lists its response
variants in the order they are tried; the first variant whose decoder
accepts the ``result`` member wins, and a reply that fits none of them is a
``DecodeError`` carrying the raw body.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from web3 import Web3

from flashbot.core.errors import DecodeError, EncodeError, RelayError
from flashbot.core.utils import encode_uint, hex_to_bytes, lookup, parse_quantity

JSONRPC_VERSION = "2.0"
STATE_BLOCK_LATEST = "latest"


class CallKind(Enum):
    SEND_BUNDLE = "sendBundle"
    CALL_BUNDLE = "callBundle"
    ESTIMATE_GAS_BUNDLE = "estimateGasBundle"
    BUNDLE_STATS = "getBundleStats"
    USER_STATS = "getUserStats"
    PRIVATE_TX = "sendPrivateTransaction"
    CANCEL_PRIVATE_TX = "cancelPrivateTransaction"


# Requests


@dataclass(frozen=True)
class RelayRequest:
    """One JSON-RPC request; params are wrapped in a single-element list."""

    method: str
    params: Mapping[str, Any]
    request_id: int = 1
    version: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jsonrpc": self.version,
            "id": self.request_id,
            "method": self.method,
            "params": [dict(self.params)],
        }


@dataclass(frozen=True)
class CallTx:
    """Unsigned call used by ``eth_estimateGasBundle``."""

    from_address: str
    to_address: str
    data: bytes = b""


def encode_request(request: RelayRequest) -> bytes:
    """Serialize ``request`` to the compact JSON body that gets signed and sent."""
    try:
        return json.dumps(request.to_dict(), separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"marshaling {request.method} params: {exc}") from exc


def encode(method: str, params: Mapping[str, Any], request_id: int = 1) -> bytes:
    return encode_request(RelayRequest(method=method, params=params, request_id=request_id))


def _block_hex(block_number: int) -> str:
    try:
        return encode_uint(block_number)
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"invalid block number {block_number!r}: {exc}") from exc


def _validate_bundle(bundle: Sequence[str]) -> List[str]:
    if isinstance(bundle, (str, bytes)):
        raise EncodeError("bundle must be a sequence of hex transactions, not a single string")
    txs = list(bundle)
    if not txs:
        raise EncodeError("bundle must contain at least one transaction")
    for index, tx in enumerate(txs):
        if not isinstance(tx, str) or not tx.startswith("0x"):
            raise EncodeError(f"bundle tx #{index} is not a 0x-prefixed hex string: {tx!r}")
        try:
            raw = hex_to_bytes(tx)
        except ValueError as exc:
            raise EncodeError(f"bundle tx #{index} is not valid hex: {exc}") from exc
        if not raw:
            raise EncodeError(f"bundle tx #{index} is empty")
    return txs


def bundle_params(bundle: Sequence[str], block_number: int) -> Dict[str, Any]:
    return {
        "blockNumber": _block_hex(block_number),
        "stateBlockNumber": STATE_BLOCK_LATEST,
        "txs": _validate_bundle(bundle),
    }


def estimate_params(txs: Sequence[CallTx], block_number: int) -> Dict[str, Any]:
    if not txs:
        raise EncodeError("gas estimate needs at least one transaction")
    encoded = []
    for index, tx in enumerate(txs):
        try:
            encoded.append(
                {
                    "from": Web3.to_checksum_address(tx.from_address),
                    "to": Web3.to_checksum_address(tx.to_address),
                    "data": Web3.to_hex(tx.data),
                }
            )
        except (TypeError, ValueError) as exc:
            raise EncodeError(f"estimate tx #{index}: {exc}") from exc
    return {
        "blockNumber": _block_hex(block_number),
        "stateBlockNumber": STATE_BLOCK_LATEST,
        "txs": encoded,
    }


def stats_params(bundle_hash: str, block_number: int) -> Dict[str, Any]:
    if not bundle_hash:
        raise EncodeError("bundle hash can't be empty")
    return {"blockNumber": _block_hex(block_number), "bundleHash": bundle_hash}


def user_stats_params(block_number: int) -> Dict[str, Any]:
    return {"blockNumber": _block_hex(block_number)}


def private_tx_params(tx: str, max_block_number: int, fast: bool = False) -> Dict[str, Any]:
    (signed,) = _validate_bundle([tx])
    return {
        "tx": signed,
        "maxBlockNumber": _block_hex(max_block_number),
        "preferences": {"fast": bool(fast)},
    }


def cancel_private_tx_params(tx_hash: str) -> Dict[str, Any]:
    if not tx_hash:
        raise EncodeError("tx hash can't be empty")
    return {"txHash": tx_hash}


# Responses


@dataclass(frozen=True)
class TxResult:
    tx_hash: str = ""
    from_address: str = ""
    to_address: str = ""
    gas_price: int = 0
    gas_used: int = 0
    value: str = ""
    coinbase_diff: int = 0
    eth_sent_to_coinbase: int = 0
    gas_fees: int = 0
    error: str = ""
    revert: str = ""

    @property
    def failed(self) -> bool:
        return bool(self.error or self.revert)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "txHash": self.tx_hash,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "gasPrice": str(self.gas_price),
            "gasUsed": self.gas_used,
            "value": self.value,
            "coinbaseDiff": str(self.coinbase_diff),
            "ethSentToCoinbase": str(self.eth_sent_to_coinbase),
            "gasFees": str(self.gas_fees),
        }
        if self.error:
            data["error"] = self.error
        if self.revert:
            data["revert"] = self.revert
        return data


@dataclass(frozen=True)
class BundleResult:
    """Object-shaped result of ``eth_callBundle`` and, on some relays, ``eth_sendBundle``."""

    bundle_hash: str = ""
    bundle_gas_price: int = 0
    coinbase_diff: int = 0
    eth_sent_to_coinbase: int = 0
    gas_fees: int = 0
    state_block_number: int = 0
    total_gas_used: int = 0
    results: Tuple[TxResult, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bundleHash": self.bundle_hash,
            "bundleGasPrice": str(self.bundle_gas_price),
            "coinbaseDiff": str(self.coinbase_diff),
            "ethSentToCoinbase": str(self.eth_sent_to_coinbase),
            "gasFees": str(self.gas_fees),
            "stateBlockNumber": self.state_block_number,
            "totalGasUsed": self.total_gas_used,
            "results": [result.to_dict() for result in self.results],
        }


@dataclass(frozen=True)
class SendAccepted:
    """Bare boolean result."""

    accepted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"accepted": self.accepted}


@dataclass(frozen=True)
class PrivateTxAccepted:
    tx_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {"txHash": self.tx_hash}


@dataclass(frozen=True)
class BundleStats:
    is_simulated: bool = False
    is_high_priority: bool = False
    is_sent_to_miners: bool = False
    simulated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    sent_to_miners_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "isSimulated": self.is_simulated,
            "isHighPriority": self.is_high_priority,
            "isSentToMiners": self.is_sent_to_miners,
            "simulatedAt": _iso(self.simulated_at),
            "submittedAt": _iso(self.submitted_at),
            "sentToMinersAt": _iso(self.sent_to_miners_at),
        }


@dataclass(frozen=True)
class UserStats:
    is_high_priority: bool = False
    all_time_miner_payments: int = 0
    all_time_gas_simulated: int = 0
    last_7d_miner_payments: int = 0
    last_7d_gas_simulated: int = 0
    last_1d_miner_payments: int = 0
    last_1d_gas_simulated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isHighPriority": self.is_high_priority,
            "allTimeMinerPayments": str(self.all_time_miner_payments),
            "allTimeGasSimulated": str(self.all_time_gas_simulated),
            "last7dMinerPayments": str(self.last_7d_miner_payments),
            "last7dGasSimulated": str(self.last_7d_gas_simulated),
            "last1dMinerPayments": str(self.last_1d_miner_payments),
            "last1dGasSimulated": str(self.last_1d_gas_simulated),
        }


RelayResponse = Union[BundleResult, SendAccepted, PrivateTxAccepted, BundleStats, UserStats]


class _ShapeMismatch(Exception):
    """A variant decoder does not accept the ``result`` member."""


def _require_mapping(result: Any) -> Mapping[str, Any]:
    if not isinstance(result, Mapping):
        raise _ShapeMismatch(f"expected an object, got {type(result).__name__}")
    return result


def _quantity(data: Mapping[str, Any], key: str) -> int:
    try:
        return parse_quantity(lookup(data, key))
    except (TypeError, ValueError) as exc:
        raise _ShapeMismatch(f"field {key}: {exc}") from exc


def _text(data: Mapping[str, Any], key: str) -> str:
    value = lookup(data, key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise _ShapeMismatch(f"field {key}: expected a string")
    return str(value)


def _flag(data: Mapping[str, Any], key: str) -> bool:
    value = lookup(data, key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise _ShapeMismatch(f"field {key}: expected a boolean")
    return value


_FRACTION = re.compile(r"\.(\d+)")


def _timestamp(data: Mapping[str, Any], key: str) -> Optional[datetime]:
    value = lookup(data, key)
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise _ShapeMismatch(f"field {key}: expected an RFC3339 timestamp")
    # fromisoformat wants exactly microseconds; relays send anything up to nanoseconds.
    text = _FRACTION.sub(lambda match: "." + match.group(1).ljust(6, "0")[:6], value.strip(), count=1)
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise _ShapeMismatch(f"field {key}: {exc}") from exc


def _decode_tx_result(entry: Any) -> TxResult:
    entry = _require_mapping(entry)
    return TxResult(
        tx_hash=_text(entry, "txHash"),
        from_address=_text(entry, "fromAddress"),
        to_address=_text(entry, "toAddress"),
        gas_price=_quantity(entry, "gasPrice"),
        gas_used=_quantity(entry, "gasUsed"),
        value=_text(entry, "value"),
        coinbase_diff=_quantity(entry, "coinbaseDiff"),
        eth_sent_to_coinbase=_quantity(entry, "ethSentToCoinbase"),
        gas_fees=_quantity(entry, "gasFees"),
        error=_text(entry, "error"),
        revert=_text(entry, "revert"),
    )


def _decode_bundle_result(result: Any) -> BundleResult:
    data = _require_mapping(result)
    entries = lookup(data, "results") or []
    if not isinstance(entries, list):
        raise _ShapeMismatch("field results: expected a list")
    return BundleResult(
        bundle_hash=_text(data, "bundleHash"),
        bundle_gas_price=_quantity(data, "bundleGasPrice"),
        coinbase_diff=_quantity(data, "coinbaseDiff"),
        eth_sent_to_coinbase=_quantity(data, "ethSentToCoinbase"),
        gas_fees=_quantity(data, "gasFees"),
        state_block_number=_quantity(data, "stateBlockNumber"),
        total_gas_used=_quantity(data, "totalGasUsed"),
        results=tuple(_decode_tx_result(entry) for entry in entries),
    )


def _decode_boolean(result: Any) -> SendAccepted:
    if not isinstance(result, bool):
        raise _ShapeMismatch(f"expected a boolean, got {type(result).__name__}")
    return SendAccepted(accepted=result)


def _decode_private_tx(result: Any) -> PrivateTxAccepted:
    if isinstance(result, Mapping):
        result = lookup(result, "txHash")
    if not isinstance(result, str) or not result:
        raise _ShapeMismatch("expected a transaction hash")
    return PrivateTxAccepted(tx_hash=result)


def _decode_bundle_stats(result: Any) -> BundleStats:
    data = _require_mapping(result)
    return BundleStats(
        is_simulated=_flag(data, "isSimulated"),
        is_high_priority=_flag(data, "isHighPriority"),
        is_sent_to_miners=_flag(data, "isSentToMiners"),
        simulated_at=_timestamp(data, "simulatedAt"),
        submitted_at=_timestamp(data, "submittedAt"),
        sent_to_miners_at=_timestamp(data, "sentToMinersAt"),
    )


def _decode_user_stats(result: Any) -> UserStats:
    data = _require_mapping(result)
    return UserStats(
        is_high_priority=_flag(data, "isHighPriority"),
        all_time_miner_payments=_quantity(data, "allTimeMinerPayments"),
        all_time_gas_simulated=_quantity(data, "allTimeGasSimulated"),
        last_7d_miner_payments=_quantity(data, "last7dMinerPayments"),
        last_7d_gas_simulated=_quantity(data, "last7dGasSimulated"),
        last_1d_miner_payments=_quantity(data, "last1dMinerPayments"),
        last_1d_gas_simulated=_quantity(data, "last1dGasSimulated"),
    )


_Variant = Tuple[str, Callable[[Any], RelayResponse]]

RESPONSE_VARIANTS: Dict[CallKind, Tuple[_Variant, ...]] = {
    CallKind.SEND_BUNDLE: (("bundle result", _decode_bundle_result), ("boolean", _decode_boolean)),
    CallKind.CALL_BUNDLE: (("bundle result", _decode_bundle_result),),
    CallKind.ESTIMATE_GAS_BUNDLE: (("bundle result", _decode_bundle_result),),
    CallKind.BUNDLE_STATS: (("bundle stats", _decode_bundle_stats),),
    CallKind.USER_STATS: (("user stats", _decode_user_stats),),
    CallKind.PRIVATE_TX: (("tx hash", _decode_private_tx),),
    CallKind.CANCEL_PRIVATE_TX: (("boolean", _decode_boolean),),
}


def _raise_for_envelope_error(envelope: Mapping[str, Any], block_number: Optional[int]) -> None:
    error = lookup(envelope, "error")
    if not isinstance(error, Mapping):
        return
    try:
        code = parse_quantity(lookup(error, "code"))
    except (TypeError, ValueError):
        code = -1
    if code != 0:
        raise RelayError(code, str(lookup(error, "message", "") or ""), block_number=block_number)


def _raise_for_tx_errors(result: BundleResult, block_number: Optional[int]) -> None:
    for index, tx in enumerate(result.results):
        if tx.failed:
            raise RelayError(
                0,
                tx.error or "transaction reverted",
                block_number=block_number,
                tx_index=index,
                revert=tx.revert,
                gas_used=tx.gas_used,
            )


def decode(kind: CallKind, body: bytes, block_number: Optional[int] = None) -> RelayResponse:
    """Decode a relay reply for a call of ``kind``.

    Raises ``RelayError`` for a non-zero ``error.code`` or a failing
    transaction inside an otherwise successful bundle result, and
    ``DecodeError`` when the body is not JSON or fits no known shape.
    """
    try:
        envelope = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"unmarshal {kind.value} response", body) from exc
    if not isinstance(envelope, Mapping):
        raise DecodeError(f"unmarshal {kind.value} response: not a JSON object", body)

    _raise_for_envelope_error(envelope, block_number)

    result = lookup(envelope, "result")
    mismatches = []
    for name, decoder in RESPONSE_VARIANTS[kind]:
        try:
            response = decoder(result)
        except _ShapeMismatch as exc:
            mismatches.append(f"{name}: {exc}")
            continue
        if isinstance(response, BundleResult):
            _raise_for_tx_errors(response, block_number)
        return response

    raise DecodeError(f"unmarshal {kind.value} response ({'; '.join(mismatches)})", body)


__all__ = [
    "BundleResult",
    "BundleStats",
    "CallKind",
    "CallTx",
    "PrivateTxAccepted",
    "RESPONSE_VARIANTS",
    "RelayRequest",
    "RelayResponse",
    "SendAccepted",
    "TxResult",
    "UserStats",
    "bundle_params",
    "cancel_private_tx_params",
    "decode",
    "encode",
    "encode_request",
    "estimate_params",
    "private_tx_params",
    "stats_params",
    "user_stats_params",
]
