"""Keypair loading for the in-process signing backend.

Secrets are accepted in the formats wallets commonly export them in:
base58 (Phantom / Solflare export), base64, or a JSON byte array as written
by ``solana-keygen`` (``id.json``). Either the full 64-byte secret key or the
32-byte seed works.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path

import base58
from solders.keypair import Keypair


def _keypair_from_bytes(raw: bytes) -> Keypair:
    if len(raw) == 64:
        return Keypair.from_bytes(raw)
    if len(raw) == 32:
        return Keypair.from_seed(raw)
    raise ValueError(f"Secret key must be 32 or 64 bytes, got {len(raw)}")


def keypair_from_secret(secret: str) -> Keypair:
    """Derive a :class:`~solders.keypair.Keypair` from a user-supplied secret.

    Parameters
    ----------
    secret:
        Base58 string, base64 string, or JSON array of byte values.

    Returns
    -------
    Keypair
        The decoded keypair.

    Raises
    ------
    ValueError
        If the secret cannot be decoded in any supported format.
    """
    secret = secret.strip()
    if not secret:
        raise ValueError("Secret key is empty.")

    if secret.startswith("["):
        try:
            values = json.loads(secret)
            return _keypair_from_bytes(bytes(values))
        except (json.JSONDecodeError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid JSON secret key: {exc}") from exc

    try:
        raw = base58.b58decode(secret)
    except ValueError:
        raw = b""
    if len(raw) in (32, 64):
        try:
            return _keypair_from_bytes(raw)
        except ValueError:
            pass

    try:
        raw = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Secret key is not valid base58, base64 or a JSON byte array.") from None
    return _keypair_from_bytes(raw)


def load_keypair_file(path: Path) -> Keypair:
    """Load a ``solana-keygen`` style JSON keypair file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the file content is not a valid secret key.
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"No keypair file at {path}")
    return keypair_from_secret(path.read_text(encoding="utf-8"))


def save_keypair_file(keypair: Keypair, path: Path) -> None:
    """Write *keypair* as a JSON byte array (the ``solana-keygen`` format)."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(list(bytes(keypair))), encoding="utf-8")
    path.chmod(0o600)
