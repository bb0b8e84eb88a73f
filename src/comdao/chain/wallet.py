"""
Local signer key management.

The key is optional: without one, transactions go through the node's own
unlocked accounts. When present it is read from PRIVATE_KEY in the
environment or in a .env file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount


def load_private_key(env_path: Optional[Path] = None) -> Optional[str]:
    """
    Load private key from a .env file or the environment.

    Args:
        env_path: Path to .env file (default: ./.env when present)

    Returns:
        0x-prefixed hex private key, or None if PRIVATE_KEY is not set
    """
    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)

    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        return None

    # Ensure 0x prefix
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key

    return private_key


def get_account(private_key: str) -> LocalAccount:
    return Account.from_key(private_key)


def get_address(private_key: str) -> str:
    """Checksummed address for a private key."""
    return get_account(private_key).address
