#!/usr/bin/env python3
"""Simulate, then submit, a one-transaction approve() bundle to every relay."""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from web3 import Web3

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from flashbot.config import FlashbotConfig, load_config
from flashbot.contracts import load_contract_abi
from flashbot.core.dispatcher import FanoutRelayClient
from flashbot.core.signer import KeyPair
from flashbot.core.transactions import build_signed_transaction

load_dotenv()

GAS_LIMIT = 3_000_000
GAS_PRICE = 10 * 10**9
BLOCKS_AHEAD = 10

# Some ERC20 token with an approve function.
CONTRACT_ADDRESSES = {
    1: "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",
    5: "0xf74a5ca65e4552cff0f13b116113ccb493c580c5",
}
SPENDER = "0xd2ebc17f4dae9e512cae16da5ea9f55b7f65a623"


def open_relays(config: FlashbotConfig, key: KeyPair) -> FanoutRelayClient:
    return FanoutRelayClient.from_endpoints(
        config.relays,
        key,
        max_workers=config.defaults.max_workers,
        default_timeout=config.defaults.timeout,
        verify_tls=config.defaults.verify_tls,
    )


def main() -> None:
    config = load_config()
    rpc_url = os.getenv("RPC_URL")
    private_key = os.getenv("PRIVATE_KEY")
    if not rpc_url or not private_key:
        print("❌ Error: RPC_URL and PRIVATE_KEY must be set")
        sys.exit(1)

    web3 = Web3(Web3.HTTPProvider(rpc_url))
    if not web3.is_connected():
        raise ConnectionError(f"Failed to connect to RPC: {rpc_url}")
    network_id = web3.eth.chain_id
    token = CONTRACT_ADDRESSES.get(network_id)
    if token is None:
        raise ValueError(f"network id not supported id:{network_id}")

    key = KeyPair.from_private_key(private_key)
    print(f"🔍 Signing as {key.address} on network {network_id}")

    contract = web3.eth.contract(address=Web3.to_checksum_address(token), abi=load_contract_abi("erc20_approve.json"))
    data = contract.encode_abi("approve", args=[Web3.to_checksum_address(SPENDER), 1])

    with open_relays(config, key) as relays:
        nonce = web3.eth.get_transaction_count(key.address)
        tx = build_signed_transaction(
            chain_id=network_id,
            data=data,
            gas_limit=GAS_LIMIT,
            base_fee=GAS_PRICE,
            tip=0,
            to=token,
            nonce=nonce,
            private_key=key.private_key,
        )
        print(f"📞 Simulating {tx.tx_hash}")
        simulation = relays.broadcast_call([tx.raw])
        print(f"   {simulation.to_dict()}")
        simulation.raise_for_errors()

        block_number = web3.eth.block_number
        for offset in range(1, BLOCKS_AHEAD):
            outcome = relays.broadcast_send([tx.raw], block_number + offset)
            print(f"📤 Block {block_number + offset}: {outcome.hash_label or '-'}")
            if outcome.error is not None:
                print(f"⚠️  {outcome.error}")

    print("\n✅ Bundle submitted.")


if __name__ == "__main__":
    main()
