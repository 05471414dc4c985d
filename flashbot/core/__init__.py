"""Core relay protocol: signing, wire codec, clients and dispatch."""

from .client import DirectRelayClient, RelayClient, RelayResult, SIMULATION_BLOCK
from .codec import (
    BundleResult,
    BundleStats,
    CallKind,
    CallTx,
    PrivateTxAccepted,
    SendAccepted,
    TxResult,
    UserStats,
    decode,
    encode,
)
from .dispatcher import AggregateOutcome, FanoutRelayClient
from .endpoints import RelayEndpoint, all_endpoints, default_endpoint
from .errors import (
    AggregateRelayError,
    DecodeError,
    EncodeError,
    FlashbotError,
    KeyMissing,
    RelayError,
    RelayFailure,
    TransportError,
    UnsupportedNetwork,
    UnsupportedOperation,
)
from .signer import KeyPair, recover_signer, sign_payload
from .transactions import SignedTx, build_signed_access_list_transaction, build_signed_transaction

__all__ = [
    "AggregateOutcome",
    "AggregateRelayError",
    "BundleResult",
    "BundleStats",
    "CallKind",
    "CallTx",
    "DecodeError",
    "DirectRelayClient",
    "EncodeError",
    "FanoutRelayClient",
    "FlashbotError",
    "KeyMissing",
    "KeyPair",
    "PrivateTxAccepted",
    "RelayClient",
    "RelayEndpoint",
    "RelayError",
    "RelayFailure",
    "RelayResult",
    "SIMULATION_BLOCK",
    "SendAccepted",
    "SignedTx",
    "TransportError",
    "TxResult",
    "UnsupportedNetwork",
    "UnsupportedOperation",
    "UserStats",
    "all_endpoints",
    "build_signed_access_list_transaction",
    "build_signed_transaction",
    "decode",
    "default_endpoint",
    "encode",
    "recover_signer",
    "sign_payload",
]
