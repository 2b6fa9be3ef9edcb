"""Wallet transaction executor.

Owns the RPC provider and, while connected, one signing backend. The
connection lifecycle is ``disconnected -> connecting -> connected ->
disconnected``; nothing is signed unless the state is ``connected``.
Amounts are handled in lamports throughout.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from node_wallet_ai.wallet.backends import BackendKind, WalletBackend
from node_wallet_ai.wallet.clusters import DEFAULT_FEE_LAMPORTS
from node_wallet_ai.wallet.provider import SignatureInfo, SolanaProvider

logger = logging.getLogger("node_wallet_ai.wallet.executor")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class WalletNotConnectedError(RuntimeError):
    """Raised when a wallet operation needs a connection and there is none."""

    def __init__(self, message: str = "Wallet not connected. Please connect your wallet first.") -> None:
        super().__init__(message)


@dataclass
class WalletState:
    """Snapshot of the executor's connection state."""

    status: ConnectionState = ConnectionState.DISCONNECTED
    backend: BackendKind | None = None
    public_key: str | None = None
    balance: int | None = None  # lamports
    accounts: list[str] = field(default_factory=list)
    active_account_index: int = 0
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.status == ConnectionState.CONNECTED

    @property
    def connecting(self) -> bool:
        return self.status == ConnectionState.CONNECTING


@dataclass
class TransferQuote:
    """Cost estimate for a transfer. Produced without signing or submitting anything."""

    sender: str
    recipient: str
    lamports: int
    fee_lamports: int
    balance: int

    @property
    def total_lamports(self) -> int:
        return self.lamports + self.fee_lamports

    @property
    def sufficient(self) -> bool:
        return self.balance >= self.lamports


def parse_pubkey(address: str) -> Pubkey:
    """Parse a base58 address. Raises ``ValueError`` if it is malformed."""
    try:
        return Pubkey.from_string(address.strip())
    except Exception:
        raise ValueError(f"Invalid Solana address: {address}") from None


def is_valid_address(address: str) -> bool:
    """True for well-formed addresses that lie on the ed25519 curve (wallet accounts)."""
    try:
        return parse_pubkey(address).is_on_curve()
    except ValueError:
        return False


def build_transfer(sender: Pubkey, recipient: Pubkey, lamports: int, blockhash: Hash) -> Transaction:
    """Build an unsigned system-program transfer with *sender* as fee payer."""
    instruction = transfer(
        TransferParams(from_pubkey=sender, to_pubkey=recipient, lamports=lamports)
    )
    message = Message.new_with_blockhash([instruction], sender, blockhash)
    return Transaction.new_unsigned(message)


class WalletExecutor:
    """Connects a signing backend to the RPC provider and executes transfers."""

    def __init__(self, provider: SolanaProvider) -> None:
        self.provider = provider
        self._backend: WalletBackend | None = None
        self._state = WalletState()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> WalletState:
        s = self._state
        return WalletState(
            status=s.status,
            backend=s.backend,
            public_key=s.public_key,
            balance=s.balance,
            accounts=list(s.accounts),
            active_account_index=s.active_account_index,
            error=s.error,
        )

    @property
    def is_connected(self) -> bool:
        return self._state.status == ConnectionState.CONNECTED and self._backend is not None

    @property
    def public_key(self) -> Pubkey | None:
        if not self.is_connected or self._state.public_key is None:
            return None
        return Pubkey.from_string(self._state.public_key)

    @property
    def endpoint(self) -> str:
        return self.provider.endpoint

    def _require_connected(self) -> Pubkey:
        pubkey = self.public_key
        if pubkey is None:
            raise WalletNotConnectedError()
        return pubkey

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self, backend: WalletBackend) -> WalletState:
        """Authorize *backend*, read the initial balance and become ``connected``.

        Raises
        ------
        RuntimeError
            If authorization or the initial balance read fails. The executor
            is left ``disconnected`` with ``state.error`` set.
        """
        if self._backend is backend:
            self._backend = None
        elif self._backend is not None:
            await self.disconnect()

        self._state = WalletState(status=ConnectionState.CONNECTING, backend=backend.kind)
        try:
            accounts = await backend.authorize()
            if not accounts:
                raise RuntimeError("Wallet returned no accounts.")
            balance = await self.provider.get_balance(accounts[0])
        except Exception as exc:
            try:
                await backend.deauthorize()
            except Exception as e:
                logger.warning(f"Cleanup after failed connect raised: {e}")
            self._state = WalletState(error=str(exc))
            logger.error(f"Wallet connection via {backend.kind.value} failed: {exc}")
            raise RuntimeError(f"Wallet connection failed: {exc}") from exc

        self._backend = backend
        self._state = WalletState(
            status=ConnectionState.CONNECTED,
            backend=backend.kind,
            public_key=str(accounts[0]),
            balance=balance,
            accounts=[str(a) for a in accounts],
            active_account_index=0,
        )
        logger.info(f"Wallet connected via {backend.kind.value}: {accounts[0]} ({balance} lamports)")
        return self.state

    async def disconnect(self) -> None:
        """Tear down the backend. Always ends ``disconnected``."""
        backend, self._backend = self._backend, None
        if backend is not None:
            try:
                await backend.deauthorize()
            except Exception as e:
                logger.warning(f"Error while disconnecting {backend.kind.value} backend: {e}")
        self._state = WalletState()
        logger.info("Wallet disconnected")

    async def close(self) -> None:
        await self.disconnect()
        await self.provider.close()

    # ------------------------------------------------------------------
    # Balances and accounts
    # ------------------------------------------------------------------

    async def refresh_balance(self) -> int:
        """Re-read the active account's balance (lamports). Connection state is unchanged."""
        pubkey = self._require_connected()
        balance = await self.provider.get_balance(pubkey)
        self._state.balance = balance
        return balance

    async def switch_account(self, index: int) -> WalletState:
        """Make ``accounts[index]`` the active account and read its balance.

        Raises
        ------
        WalletNotConnectedError
            If not connected.
        ValueError
            If *index* is out of range.
        """
        self._require_connected()
        accounts = self._state.accounts
        if not 0 <= index < len(accounts):
            raise ValueError(f"Account index {index} out of range (0-{len(accounts) - 1}).")
        balance = await self.provider.get_balance(Pubkey.from_string(accounts[index]))
        self._state.active_account_index = index
        self._state.public_key = accounts[index]
        self._state.balance = balance
        logger.info(f"Switched to account {index}: {accounts[index]}")
        return self.state

    async def get_history(self, limit: int = 10) -> list[SignatureInfo]:
        pubkey = self._require_connected()
        return await self.provider.get_signatures(pubkey, limit=limit)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def estimate_fee(self, recipient: Pubkey, lamports: int) -> int:
        """Fee in lamports for a transfer, falling back to the default fee."""
        sender = self._require_connected()
        blockhash = await self.provider.get_latest_blockhash()
        message = build_transfer(sender, recipient, lamports, blockhash).message
        try:
            fee = await self.provider.get_fee_for_message(message)
        except Exception as e:
            logger.warning(f"Fee estimation failed, using default: {e}")
            fee = None
        return fee if fee is not None else DEFAULT_FEE_LAMPORTS

    async def quote_transfer(self, recipient: Pubkey, lamports: int) -> TransferQuote:
        """Read balance and fee for a prospective transfer. Never signs or submits."""
        sender = self._require_connected()
        balance = await self.refresh_balance()
        fee = await self.estimate_fee(recipient, lamports)
        return TransferQuote(
            sender=str(sender),
            recipient=str(recipient),
            lamports=lamports,
            fee_lamports=fee,
            balance=balance,
        )

    async def sign_and_send(self, transaction: Transaction) -> str:
        """Sign with the active backend, submit, and wait for ``confirmed``.

        Returns the transaction signature. There is no retry: a failure
        surfaces as ``RuntimeError`` and the caller must start over.
        """
        account = self._require_connected()
        assert self._backend is not None
        try:
            signed = await self._backend.sign(transaction, account)
            signature = await self.provider.submit_and_confirm(bytes(signed))
        except Exception as exc:
            logger.error(f"Transaction failed: {exc}")
            raise RuntimeError(f"Transaction failed: {exc}") from exc

        logger.info(f"Transaction confirmed: {signature}")
        try:
            await self.refresh_balance()
        except Exception as e:
            logger.warning(f"Balance refresh after transfer failed: {e}")
        return signature

    async def transfer(self, recipient: Pubkey, lamports: int) -> str:
        """Send *lamports* from the active account to *recipient*."""
        if lamports <= 0:
            raise ValueError("Transfer amount must be positive.")
        sender = self._require_connected()
        blockhash = await self.provider.get_latest_blockhash()
        tx = build_transfer(sender, recipient, lamports, blockhash)
        return await self.sign_and_send(tx)
