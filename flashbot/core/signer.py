"""Relay authentication: the ``X-Flashbots-Signature`` header."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from flashbot.core.errors import KeyMissing


@dataclass(frozen=True)
class KeyPair:
    """secp256k1 private key plus the address derived from it."""

    private_key: Optional[str] = field(default=None, repr=False)
    address: Optional[str] = None

    @classmethod
    def from_private_key(cls, private_key: str) -> "KeyPair":
        """Derive the checksum address for ``private_key``."""
        key = private_key.strip()
        if not key.startswith("0x"):
            key = f"0x{key}"
        account = Account.from_key(key)
        return cls(private_key=key, address=account.address)

    def __post_init__(self) -> None:
        if self.private_key and self.address:
            derived = Account.from_key(self.private_key).address
            if derived.lower() != self.address.lower():
                raise ValueError(f"address {self.address} does not belong to the private key")

    @property
    def complete(self) -> bool:
        return bool(self.private_key) and bool(self.address)


def payload_digest(payload: bytes) -> str:
    """0x-prefixed keccak256 of the request body, the text that gets signed."""
    return Web3.to_hex(Web3.keccak(payload))


def sign_payload(payload: bytes, key: Optional[KeyPair]) -> str:
    """Return ``"<address>:<signature>"`` for ``payload``.

    The signature is an EIP-191 personal-message signature over the hex
    string of ``keccak256(payload)``. eth_account uses RFC6979 nonces, so
    the same payload and key always give the same header. The last byte
    of the signature is v in {27, 28}; relays also accept the 0/1 form.
    """
    if key is None or not key.complete:
        raise KeyMissing("private or public key is not set")

    message = encode_defunct(text=payload_digest(payload))
    signed = Account.sign_message(message, private_key=key.private_key)
    return f"{key.address}:{Web3.to_hex(signed.signature)}"


def recover_signer(payload: bytes, header: str) -> str:
    """Recover the checksum address that produced ``header`` for ``payload``."""
    address, sep, signature = header.partition(":")
    if not sep or not address or not signature:
        raise ValueError(f"malformed signature header: {header!r}")
    message = encode_defunct(text=payload_digest(payload))
    return Account.recover_message(message, signature=signature)


__all__ = ["KeyPair", "payload_digest", "recover_signer", "sign_payload"]
