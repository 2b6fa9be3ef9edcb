"""HTTP client for out-of-process wallets.

Browser-extension wallets and mobile wallet adapters keep their keys in
another process. A small local bridge (a browser page or a companion app)
exposes them over HTTP; this module talks to that bridge with ``httpx``.
Transactions cross the boundary base64-encoded.
"""

from __future__ import annotations

import base64
import logging

import httpx

logger = logging.getLogger("node_wallet_ai.wallet.bridge")


class WalletBridgeError(RuntimeError):
    """The bridge refused a request or the user rejected it in their wallet."""


class WalletBridgeClient:
    """Thin async client for a wallet bridge at *base_url*."""

    def __init__(self, base_url: str, timeout: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        # Signing waits on a human approving in their wallet.
        self.timeout = timeout

    async def _post(self, path: str, payload: dict) -> dict:
        async with httpx.AsyncClient() as client:
            try:
                resp = await client.post(
                    f"{self.base_url}{path}",
                    json=payload,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as exc:
                raise WalletBridgeError(f"Wallet bridge unreachable at {self.base_url}: {exc}") from exc
        if resp.status_code >= 400:
            try:
                data = resp.json()
                detail = data.get("error") or data
            except Exception:
                detail = resp.text
            raise WalletBridgeError(f"Wallet bridge error ({resp.status_code}): {detail}")
        return resp.json()

    # ------------------------------------------------------------------
    # Browser extension
    # ------------------------------------------------------------------

    async def connect(self) -> list[str]:
        """Ask the extension for permission; returns the exposed public keys."""
        data = await self._post("/connect", {})
        keys = data.get("publicKeys") or ([data["publicKey"]] if data.get("publicKey") else [])
        if not keys:
            raise WalletBridgeError("Wallet extension did not return a public key.")
        return keys

    async def sign_transaction(self, transaction: bytes, public_key: str) -> bytes:
        data = await self._post(
            "/sign_transaction",
            {
                "transaction": base64.b64encode(transaction).decode("ascii"),
                "publicKey": public_key,
            },
        )
        return base64.b64decode(data["signedTransaction"])

    async def disconnect(self) -> None:
        await self._post("/disconnect", {})

    # ------------------------------------------------------------------
    # Mobile wallet adapter
    # ------------------------------------------------------------------

    async def authorize(self, cluster: str, identity: dict[str, str]) -> tuple[list[str], str]:
        """Run the adapter's authorize flow; returns ``(public_keys, auth_token)``."""
        data = await self._post("/authorize", {"cluster": cluster, "identity": identity})
        accounts = [a["address"] if isinstance(a, dict) else a for a in data.get("accounts", [])]
        if not accounts:
            raise WalletBridgeError("Mobile wallet authorized no accounts.")
        return accounts, data.get("authToken", "")

    async def sign_transactions(self, transactions: list[bytes], auth_token: str) -> list[bytes]:
        data = await self._post(
            "/sign_transactions",
            {
                "authToken": auth_token,
                "payloads": [base64.b64encode(t).decode("ascii") for t in transactions],
            },
        )
        return [base64.b64decode(p) for p in data.get("signedPayloads", [])]

    async def deauthorize(self, auth_token: str) -> None:
        await self._post("/deauthorize", {"authToken": auth_token})
