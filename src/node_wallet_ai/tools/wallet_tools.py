"""AI-facing wallet tools.

Balance, address, history and address validation are read-only.
``create_sol_transfer`` is the only tool that can move funds, and only when
called with ``execute=true``; without it the tool returns a cost preview and
never signs or submits anything.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from solders.pubkey import Pubkey

from node_wallet_ai.nodes.store import NodeGraphStore, resolve_by_name
from node_wallet_ai.storage.models import NodeKind, PersonNode
from node_wallet_ai.tools.rate_limiter import RateLimiter
from node_wallet_ai.tools.registry import ToolRegistry
from node_wallet_ai.wallet.clusters import Cluster, lamports_to_sol, sol_to_lamports
from node_wallet_ai.wallet.executor import (
    WalletExecutor,
    WalletNotConnectedError,
    is_valid_address,
    parse_pubkey,
)

logger = logging.getLogger("node_wallet_ai.tools.wallet")

TRANSFER_BUCKET = "ai_transfers"
NOT_CONNECTED = str(WalletNotConnectedError())


def format_sol(amount: float | Decimal) -> str:
    """Render a user-supplied SOL amount without trailing zeros (``0.5``, ``1``)."""
    return f"{float(amount):g}"


def _format_block_time(block_time: int | None) -> str:
    if block_time is None:
        return "Unknown"
    return datetime.fromtimestamp(block_time, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def register_wallet_tools(
    registry: ToolRegistry,
    executor: WalletExecutor,
    store: NodeGraphStore,
    cluster: Cluster,
    limiter: RateLimiter,
    max_history: int = 50,
) -> None:
    """Register the wallet tool family into *registry*."""

    def _resolve_recipient(recipient: str) -> tuple[Pubkey, PersonNode | None]:
        """Accept a base58 address or the name of an accessible contact with a wallet."""
        try:
            pubkey = parse_pubkey(recipient)
        except ValueError:
            candidates = [
                n for n in store.get_llm_accessible_nodes()
                if isinstance(n, PersonNode) and n.wallet_address
            ]
            person = resolve_by_name(recipient, candidates, NodeKind.PERSON)
            if person is None:
                raise ValueError(
                    f"Invalid recipient '{recipient}': not a Solana address "
                    f"or an accessible contact with a wallet."
                ) from None
            return parse_pubkey(person.wallet_address), person
        accessible = store.get_llm_accessible_nodes()
        return pubkey, store.find_by_wallet(str(pubkey), accessible)

    @registry.tool(
        "get_wallet_balance",
        "Get the SOL balance of the connected wallet.",
        {"type": "object", "properties": {}, "required": []},
    )
    async def get_wallet_balance() -> str:
        if not executor.is_connected:
            return NOT_CONNECTED
        lamports = await executor.refresh_balance()
        return (
            "Wallet Balance:\n"
            f"Address: {executor.public_key}\n"
            f"Balance: {lamports_to_sol(lamports):.6f} SOL\n"
            f"Network: {executor.endpoint}"
        )

    @registry.tool(
        "get_wallet_address",
        "Get the public address of the connected wallet.",
        {"type": "object", "properties": {}, "required": []},
    )
    def get_wallet_address() -> str:
        if not executor.is_connected:
            return NOT_CONNECTED
        return f"Wallet Address: {executor.public_key}"

    @registry.tool(
        "get_transaction_history",
        "Get recent transaction history for the connected wallet.",
        {
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": f"Number of transactions to fetch (1-{max_history})",
                    "default": 10,
                    "minimum": 1,
                    "maximum": max_history,
                }
            },
            "required": [],
        },
    )
    async def get_transaction_history(limit: int = 10) -> str:
        if not executor.is_connected:
            return NOT_CONNECTED
        limit = max(1, min(int(limit), max_history))
        signatures = await executor.get_history(limit)
        if not signatures:
            return "No transaction history found for this wallet."

        async def _fee(signature: str) -> str:
            try:
                fee = await executor.provider.get_transaction_fee(signature)
            except Exception as e:
                logger.debug(f"Could not fetch fee for {signature}: {e}")
                return "Unknown"
            return "Unknown" if fee is None else f"{lamports_to_sol(fee):.9f}"

        fees = await asyncio.gather(*(_fee(s.signature) for s in signatures))
        lines = [f"Recent Transactions ({len(signatures)}):"]
        for info, fee in zip(signatures, fees):
            status = "Failed" if info.failed else "Success"
            lines.append(
                f"• {info.signature[:12]}... | {status} | "
                f"{_format_block_time(info.block_time)} | Fee: {fee} SOL"
            )
        return "\n".join(lines)

    @registry.tool(
        "validate_wallet_address",
        "Validate whether a string is a valid Solana wallet address.",
        {
            "type": "object",
            "properties": {
                "address": {"type": "string", "description": "Solana wallet address to validate"}
            },
            "required": ["address"],
        },
    )
    def validate_wallet_address(address: str) -> str:
        verdict = "Valid Solana address" if is_valid_address(address) else "Invalid address format"
        return f"Address Validation: {address}\n{verdict}"

    @registry.tool(
        "create_sol_transfer",
        (
            "Preview or execute a SOL transfer. Always call first with execute=false to "
            "show the user the cost, and only call with execute=true after the user "
            "explicitly confirms."
        ),
        {
            "type": "object",
            "properties": {
                "recipient": {
                    "type": "string",
                    "description": "Recipient wallet address, or the name of an accessible contact with a wallet",
                },
                "amount": {"type": "number", "description": "Amount of SOL to transfer (> 0)"},
                "execute": {
                    "type": "boolean",
                    "description": "true to sign and send, false (default) for a preview only",
                    "default": False,
                },
            },
            "required": ["recipient", "amount"],
        },
    )
    async def create_sol_transfer(recipient: str, amount: float, execute: bool = False) -> str:
        # Input checks happen before any network call.
        try:
            amount_dec = Decimal(str(amount))
        except InvalidOperation:
            return f"Error: amount must be a number, got '{amount}'."
        if not amount_dec.is_finite() or amount_dec <= 0:
            return "Error: Transfer amount must be greater than 0."
        lamports = sol_to_lamports(amount_dec)
        if lamports <= 0:
            return "Error: Transfer amount is smaller than one lamport."
        try:
            to, person = _resolve_recipient(str(recipient))
        except ValueError as e:
            return f"Error: {e}"

        if not executor.is_connected:
            return NOT_CONNECTED

        shown_amount = format_sol(amount_dec)
        to_label = f"{person.name} ({to})" if person is not None else str(to)
        action = "executing" if execute else "previewing"
        try:
            balance = await executor.refresh_balance()
            if balance < lamports:
                return (
                    f"Insufficient balance. Current: {lamports_to_sol(balance):.6f} SOL, "
                    f"Required: {shown_amount} SOL"
                )

            if not execute:
                fee = lamports_to_sol(await executor.estimate_fee(to, lamports))
                return (
                    "SOL Transfer Preview:\n"
                    f"From: {executor.public_key}\n"
                    f"To: {to_label}\n"
                    f"Amount: {shown_amount} SOL\n"
                    f"Estimated Fee: {fee:.9f} SOL\n"
                    f"Total Cost: {amount_dec + fee:.9f} SOL\n\n"
                    "To execute this transfer, call this tool again with execute=true"
                )

            if not limiter.check(TRANSFER_BUCKET):
                return (
                    "Error executing transfer: AI transfer limit reached for this hour. "
                    "Ask the user to send it manually or try again in "
                    f"{limiter.retry_after_minutes(TRANSFER_BUCKET)} minute(s)."
                )
            logger.info(f"Executing transfer of {lamports} lamports to {to}")
            signature = await executor.transfer(to, lamports)
            limiter.record(TRANSFER_BUCKET)
        except WalletNotConnectedError:
            return NOT_CONNECTED
        except Exception as e:
            logger.error(f"Error {action} transfer to {to}: {e}")
            return f"Error {action} transfer: {e}"

        if person is not None:
            try:
                store.record_transaction(person.id)
            except KeyError:
                logger.warning(f"Contact {person.id} vanished before the transfer was recorded")
        return (
            "SOL Transfer Successful!\n"
            f"From: {executor.public_key}\n"
            f"To: {to_label}\n"
            f"Amount: {shown_amount} SOL\n"
            f"Transaction Signature: {signature}\n"
            f"View on explorer: {cluster.explorer_tx_url(signature)}"
        )
