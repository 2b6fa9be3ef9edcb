"""Cluster definitions for supported Solana networks."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

LAMPORTS_PER_SOL = 1_000_000_000

# Used when the RPC node cannot price a message.
DEFAULT_FEE_LAMPORTS = 5_000


@dataclass(frozen=True)
class Cluster:
    """A Solana cluster."""

    name: str
    rpc_url: str
    explorer_url: str = "https://solscan.io"

    def explorer_tx_url(self, signature: str) -> str:
        """Link to a transaction on the block explorer."""
        suffix = "" if self.name == "mainnet-beta" else f"?cluster={self.name}"
        return f"{self.explorer_url}/tx/{signature}{suffix}"


CLUSTERS: dict[str, Cluster] = {
    "devnet": Cluster(
        name="devnet",
        rpc_url="https://api.devnet.solana.com",
    ),
    "testnet": Cluster(
        name="testnet",
        rpc_url="https://api.testnet.solana.com",
    ),
    "mainnet-beta": Cluster(
        name="mainnet-beta",
        rpc_url="https://api.mainnet-beta.solana.com",
    ),
}


def get_cluster(name: str) -> Cluster:
    """Get a cluster by name. Raises ``KeyError`` if not found."""
    if name not in CLUSTERS:
        raise KeyError(
            f"Unknown cluster '{name}'. Available: {list_cluster_names()}"
        )
    return CLUSTERS[name]


def list_cluster_names() -> list[str]:
    """Return the names of all supported clusters."""
    return list(CLUSTERS.keys())


# ------------------------------------------------------------------
# Unit conversion (display boundary only)
# ------------------------------------------------------------------

def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


def sol_to_lamports(amount: float | str | Decimal) -> int:
    """Convert a SOL amount to lamports, rounding half up to the nearest lamport."""
    value = Decimal(str(amount)) * LAMPORTS_PER_SOL
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))
