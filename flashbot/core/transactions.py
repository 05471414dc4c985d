"""Signed transaction helpers for assembling bundles."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

from eth_account import Account
from web3 import Web3

from flashbot.core.utils import hex_to_bytes


@dataclass(frozen=True)
class SignedTx:
    """Raw transaction ready to be placed in a bundle."""

    raw: str
    tx_hash: str
    nonce: int


def _calldata(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = hex_to_bytes(data)
    return Web3.to_hex(data)


def _sign(tx: Dict[str, Any], private_key: str) -> SignedTx:
    signed = Account.sign_transaction(tx, private_key)
    return SignedTx(
        raw=Web3.to_hex(signed.raw_transaction),
        tx_hash=Web3.to_hex(signed.hash),
        nonce=tx["nonce"],
    )


def build_signed_transaction(
    *,
    chain_id: int,
    data: Union[bytes, str],
    gas_limit: int,
    base_fee: int,
    tip: int,
    to: str,
    nonce: int,
    private_key: str,
    value: int = 0,
) -> SignedTx:
    """Sign an EIP-1559 transaction paying ``base_fee + tip`` at most."""
    if base_fee < 0 or tip < 0:
        raise ValueError("fees must be non-negative")
    tx = {
        "type": 2,
        "chainId": chain_id,
        "nonce": nonce,
        "maxFeePerGas": base_fee + tip,
        "maxPriorityFeePerGas": tip,
        "gas": gas_limit,
        "to": Web3.to_checksum_address(to),
        "value": value,
        "data": _calldata(data),
    }
    return _sign(tx, private_key)


def build_signed_access_list_transaction(
    *,
    chain_id: int,
    data: Union[bytes, str],
    gas_limit: int,
    gas_price: int,
    to: str,
    nonce: int,
    private_key: str,
    value: int = 0,
) -> SignedTx:
    """Sign a legacy-priced (EIP-2930 access list) transaction."""
    if gas_price < 0:
        raise ValueError("gas price must be non-negative")
    tx = {
        "type": 1,
        "chainId": chain_id,
        "nonce": nonce,
        "gasPrice": gas_price,
        "gas": gas_limit,
        "to": Web3.to_checksum_address(to),
        "value": value,
        "data": _calldata(data),
        "accessList": [],
    }
    return _sign(tx, private_key)


__all__ = ["SignedTx", "build_signed_access_list_transaction", "build_signed_transaction"]
