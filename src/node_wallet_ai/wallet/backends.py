"""Signing backends.

Every backend answers the same two questions: which accounts may we use
(``authorize``) and how is a transaction signed (``sign``). The executor
picks one at connect time and never branches on the backend kind again.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from node_wallet_ai.config import WalletConfig, is_unresolved
from node_wallet_ai.wallet.bridge import WalletBridgeClient, WalletBridgeError
from node_wallet_ai.wallet.keystore import keypair_from_secret

logger = logging.getLogger("node_wallet_ai.wallet.backends")


class BackendKind(str, Enum):
    EXTENSION = "extension"
    MOBILE = "mobile"
    KEYPAIR = "keypair"


class WalletBackend(ABC):
    """One way of reaching a user's signing keys."""

    kind: BackendKind

    @abstractmethod
    async def authorize(self) -> list[Pubkey]:
        """Obtain permission to use the wallet; returns the usable accounts."""

    @abstractmethod
    async def sign(self, transaction: Transaction, account: Pubkey) -> Transaction:
        """Return *transaction* signed by *account*."""

    async def deauthorize(self) -> None:
        """Release backend resources. Safe to call more than once."""


class KeypairBackend(WalletBackend):
    """Signs in-process with a keypair derived from a user-supplied secret."""

    kind = BackendKind.KEYPAIR

    def __init__(self, secret: str | None = None, keypair: Keypair | None = None) -> None:
        if secret is None and keypair is None:
            raise ValueError("KeypairBackend needs a secret or a keypair.")
        self._secret = secret
        self._keypair = keypair
        self._authorized = False

    async def authorize(self) -> list[Pubkey]:
        if self._keypair is None:
            self._keypair = keypair_from_secret(self._secret or "")
            # Drop the encoded copy once the keypair exists.
            self._secret = None
        self._authorized = True
        return [self._keypair.pubkey()]

    async def sign(self, transaction: Transaction, account: Pubkey) -> Transaction:
        if not self._authorized or self._keypair is None:
            raise RuntimeError("Keypair backend is not authorized.")
        if account != self._keypair.pubkey():
            raise RuntimeError(f"Keypair does not control account {account}")
        transaction.sign([self._keypair], transaction.message.recent_blockhash)
        return transaction

    async def deauthorize(self) -> None:
        self._authorized = False


class ExtensionBackend(WalletBackend):
    """Delegates to a browser-extension wallet through the wallet bridge."""

    kind = BackendKind.EXTENSION

    def __init__(self, bridge: WalletBridgeClient) -> None:
        self.bridge = bridge
        self._connected = False

    async def authorize(self) -> list[Pubkey]:
        keys = await self.bridge.connect()
        self._connected = True
        return [Pubkey.from_string(k) for k in keys]

    async def sign(self, transaction: Transaction, account: Pubkey) -> Transaction:
        if not self._connected:
            raise RuntimeError("Wallet extension is not connected.")
        signed = await self.bridge.sign_transaction(bytes(transaction), str(account))
        return Transaction.from_bytes(signed)

    async def deauthorize(self) -> None:
        if not self._connected:
            return
        self._connected = False
        try:
            await self.bridge.disconnect()
        except WalletBridgeError as e:
            logger.warning(f"Extension disconnect failed: {e}")


class MobileAdapterBackend(WalletBackend):
    """Delegates to a mobile wallet through the mobile wallet adapter bridge."""

    kind = BackendKind.MOBILE

    def __init__(self, bridge: WalletBridgeClient, cluster: str, identity: dict[str, str]) -> None:
        self.bridge = bridge
        self.cluster = cluster
        self.identity = identity
        self._auth_token: str | None = None

    async def authorize(self) -> list[Pubkey]:
        keys, token = await self.bridge.authorize(self.cluster, self.identity)
        self._auth_token = token
        return [Pubkey.from_string(k) for k in keys]

    async def sign(self, transaction: Transaction, account: Pubkey) -> Transaction:
        if self._auth_token is None:
            raise RuntimeError("Mobile wallet is not authorized.")
        signed = await self.bridge.sign_transactions([bytes(transaction)], self._auth_token)
        if not signed:
            raise WalletBridgeError("Mobile wallet returned no signed transaction.")
        return Transaction.from_bytes(signed[0])

    async def deauthorize(self) -> None:
        token, self._auth_token = self._auth_token, None
        if token is None:
            return
        try:
            await self.bridge.deauthorize(token)
        except WalletBridgeError as e:
            logger.warning(f"Mobile wallet deauthorize failed: {e}")


def build_backend(
    wallet_config: WalletConfig,
    secret: str | None = None,
    keypair: Keypair | None = None,
) -> WalletBackend:
    """Create the backend named by ``wallet_config.backend``.

    For the keypair backend an explicit *keypair* wins, then *secret*, then
    ``wallet_config.secret_key``.
    """
    kind = BackendKind(wallet_config.backend.strip().lower())
    if kind == BackendKind.KEYPAIR:
        if keypair is not None:
            return KeypairBackend(keypair=keypair)
        key = secret or wallet_config.secret_key
        if not key or is_unresolved(key):
            raise ValueError(
                "No secret key configured. Set wallet.secret_key (e.g. ${SOLANA_SECRET_KEY}) "
                "or pass one explicitly."
            )
        return KeypairBackend(secret=key)

    bridge = WalletBridgeClient(wallet_config.bridge_url, timeout=wallet_config.request_timeout)
    if kind == BackendKind.EXTENSION:
        return ExtensionBackend(bridge)
    return MobileAdapterBackend(
        bridge,
        cluster=wallet_config.cluster,
        identity={
            "name": wallet_config.app_identity_name,
            "uri": wallet_config.app_identity_uri,
        },
    )
