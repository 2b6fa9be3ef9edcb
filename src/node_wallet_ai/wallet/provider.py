"""Solana JSON-RPC provider built on ``solana-py``'s async client."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature

from node_wallet_ai.wallet.clusters import Cluster

logger = logging.getLogger("node_wallet_ai.wallet.provider")


@dataclass
class SignatureInfo:
    """One entry of an address's signature history."""

    signature: str
    slot: int
    block_time: int | None
    failed: bool
    confirmation_status: str | None = None


class SolanaProvider:
    """Read and submit operations against a single RPC endpoint.

    The underlying :class:`AsyncClient` is created lazily so that building a
    provider never touches the network.
    """

    def __init__(self, cluster: Cluster, rpc_url: str | None = None, timeout: float = 30.0) -> None:
        self.cluster = cluster
        self.endpoint = rpc_url or cluster.rpc_url
        self.timeout = timeout
        self._client: AsyncClient | None = None

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(self.endpoint, commitment=Confirmed, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, pubkey: Pubkey) -> int:
        """Balance of *pubkey* in lamports."""
        resp = await self.client.get_balance(pubkey, commitment=Confirmed)
        return resp.value

    async def get_latest_blockhash(self) -> Hash:
        resp = await self.client.get_latest_blockhash(commitment=Confirmed)
        return resp.value.blockhash

    async def get_fee_for_message(self, message: Message) -> int | None:
        """Fee in lamports the cluster would charge for *message*, if it can tell."""
        resp = await self.client.get_fee_for_message(message, commitment=Confirmed)
        return resp.value

    async def get_signatures(self, pubkey: Pubkey, limit: int = 10) -> list[SignatureInfo]:
        resp = await self.client.get_signatures_for_address(pubkey, limit=limit, commitment=Confirmed)
        results = []
        for item in resp.value:
            status = item.confirmation_status
            results.append(
                SignatureInfo(
                    signature=str(item.signature),
                    slot=item.slot,
                    block_time=item.block_time,
                    failed=item.err is not None,
                    confirmation_status=str(status).rsplit(".", 1)[-1].lower() if status is not None else None,
                )
            )
        return results

    async def get_transaction_fee(self, signature: str) -> int | None:
        """Fee paid by a confirmed transaction, or ``None`` if unavailable."""
        resp = await self.client.get_transaction(
            Signature.from_string(signature),
            commitment=Confirmed,
            max_supported_transaction_version=0,
        )
        tx = resp.value
        if tx is None or tx.transaction.meta is None:
            return None
        return tx.transaction.meta.fee

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def submit_and_confirm(self, raw_transaction: bytes) -> str:
        """Submit a signed transaction and wait for ``confirmed`` commitment.

        Returns the transaction signature as a base58 string.

        Raises
        ------
        RuntimeError
            If the transaction lands but reports an execution error.
        """
        resp = await self.client.send_raw_transaction(
            raw_transaction,
            opts=TxOpts(skip_confirmation=True, preflight_commitment=Confirmed),
        )
        signature = resp.value
        logger.info(f"Submitted transaction {signature}, awaiting confirmation")

        confirmation = await self.client.confirm_transaction(signature, commitment=Confirmed)
        statuses = confirmation.value
        if statuses and statuses[0] is not None and statuses[0].err is not None:
            raise RuntimeError(f"Transaction {signature} failed: {statuses[0].err}")
        return str(signature)
