"""web3.py client for the on-chain PredictionDAO contract."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from eth_account import Account
from web3 import AsyncWeb3
from web3.logs import DISCARD

from predictiondao.chain.abi import PREDICTION_DAO_ABI
from predictiondao.chain.client import ChainPrediction
from predictiondao.config import AppConfig
from predictiondao.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_chain_prediction(raw: tuple) -> ChainPrediction:
    # Struct field order: id, creator, title, description, category, endTime,
    # isActive, isApproved, totalVotes, yesVotes, noVotes, createdAt
    return ChainPrediction(
        id=int(raw[0]),
        creator=str(raw[1]),
        title=raw[2],
        description=raw[3],
        category=raw[4],
        end_time=int(raw[5]),
        is_active=bool(raw[6]),
        is_approved=bool(raw[7]),
        yes_votes=int(raw[9]),
        no_votes=int(raw[10]),
        created_at=int(raw[11]),
    )


class Web3PredictionContract:
    """Reads and signed writes against the PredictionDAO contract.

    Every failure, from connection errors to reverted transactions, is
    raised as UpstreamUnavailable.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        *,
        private_key: str = "",
        chain_id: int = 16,
    ) -> None:
        self._w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._address = AsyncWeb3.to_checksum_address(contract_address)
        self._contract = self._w3.eth.contract(address=self._address, abi=PREDICTION_DAO_ABI)
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        # Nonce assignment and broadcast must not interleave between writes.
        self._send_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self._address

    @property
    def can_write(self) -> bool:
        return self._account is not None

    async def _guard(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except UpstreamUnavailable:
            raise
        except Exception as exc:
            raise UpstreamUnavailable(operation, str(exc) or type(exc).__name__) from exc

    async def _transact(self, operation: str, fn) -> dict:
        if self._account is None:
            raise UpstreamUnavailable(operation, "no signing key configured")

        async def _send() -> dict:
            async with self._send_lock:
                nonce = await self._w3.eth.get_transaction_count(self._account.address, "pending")
                tx = await fn.build_transaction({
                    "from": self._account.address,
                    "nonce": nonce,
                    "chainId": self._chain_id,
                })
                signed = self._account.sign_transaction(tx)
                tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash)
            if receipt["status"] != 1:
                raise UpstreamUnavailable(operation, f"transaction {tx_hash.hex()} reverted")
            return receipt

        return await self._guard(operation, _send)

    async def create_prediction(
        self, title: str, description: str, category: str, voting_period_seconds: int,
    ) -> int | None:
        receipt = await self._transact(
            "createPrediction",
            self._contract.functions.createPrediction(
                title, description, category, voting_period_seconds,
            ),
        )
        events = self._contract.events.PredictionCreated().process_receipt(receipt, errors=DISCARD)
        if not events:
            logger.warning("createPrediction mined without a PredictionCreated event")
            return None
        return int(events[0]["args"]["predictionId"])

    async def vote(self, prediction_id: int, support: bool) -> str:
        receipt = await self._transact(
            "vote", self._contract.functions.vote(prediction_id, support),
        )
        return receipt["transactionHash"].hex()

    async def get_active_predictions(self) -> list[ChainPrediction]:
        raw = await self._guard(
            "getActivePredictions",
            lambda: self._contract.functions.getActivePredictions().call(),
        )
        return [_to_chain_prediction(r) for r in raw]

    async def get_approved_predictions(self) -> list[ChainPrediction]:
        raw = await self._guard(
            "getApprovedPredictions",
            lambda: self._contract.functions.getApprovedPredictions().call(),
        )
        return [_to_chain_prediction(r) for r in raw]

    async def get_prediction_count(self) -> int:
        count = await self._guard(
            "getPredictionCount",
            lambda: self._contract.functions.getPredictionCount().call(),
        )
        return int(count)

    async def is_available(self) -> bool:
        try:
            await self._w3.eth.block_number
            return True
        except Exception:
            logger.warning("Chain RPC health check failed", exc_info=True)
            return False


def build_chain_client(config: AppConfig) -> Web3PredictionContract | None:
    """Build the contract client, or None when no chain is configured."""
    if not config.chain_rpc_url or not config.dao_contract_address:
        logger.info("No chain RPC/contract configured; running on the database alone")
        return None
    client = Web3PredictionContract(
        config.chain_rpc_url,
        config.dao_contract_address,
        private_key=config.chain_private_key,
        chain_id=config.chain_id,
    )
    logger.info(
        "PredictionDAO contract client ready at %s (chain %d, writes %s)",
        client.address, config.chain_id, "enabled" if client.can_write else "disabled",
    )
    return client
