"""
Runtime settings from the environment (and an optional .env file).

The RPC endpoint follows the deployment config: a host and port, defaulting
to a local node on 8545, unless a full COMDAO_RPC_URL is given.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .chain.wallet import load_private_key
from .orchestrator.confirm import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT

DEFAULT_RPC_HOST = "localhost"
DEFAULT_RPC_PORT = 8545

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    network_id: Optional[str] = None
    synchronization_timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    extended_results: bool = False
    from_address: Optional[str] = None
    private_key: Optional[str] = None

    def default_options(self) -> dict[str, Any]:
        return {"from": self.from_address} if self.from_address else {}


def get_rpc_url() -> str:
    """COMDAO_RPC_URL, else http://COMDAO_RPC_HOST:COMDAO_RPC_PORT."""
    url = os.environ.get("COMDAO_RPC_URL")
    if url:
        return url.strip()
    host = os.environ.get("COMDAO_RPC_HOST", DEFAULT_RPC_HOST)
    port = int(os.environ.get("COMDAO_RPC_PORT", str(DEFAULT_RPC_PORT)))
    return f"http://{host}:{port}"


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """
    Load settings from the environment.

    Args:
        env_path: Optional .env file; values already in the environment win.
    """
    if env_path is not None and env_path.exists():
        load_dotenv(env_path, override=False)

    return Settings(
        rpc_url=get_rpc_url(),
        network_id=os.environ.get("COMDAO_NETWORK") or None,
        synchronization_timeout=_float_env("COMDAO_SYNC_TIMEOUT", DEFAULT_TIMEOUT),
        poll_interval=_float_env("COMDAO_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        extended_results=os.environ.get("COMDAO_EXTENDED_RESULTS", "").strip().lower() in _TRUTHY,
        from_address=os.environ.get("COMDAO_FROM") or None,
        private_key=load_private_key(env_path),
    )
