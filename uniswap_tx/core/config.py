import json
import os
from pathlib import Path
from typing import Any

from uniswap_tx.core.constants.base import (
    DEFAULT_DEADLINE_SECONDS,
    DEFAULT_MAX_MINING_TIME,
    DEFAULT_MINING_POLL_INTERVAL,
)
from uniswap_tx.core.constants.contracts import UNISWAP_V3_DEPLOYMENTS

_CONFIG_ENV_KEYS = ("UNISWAP_TX_CONFIG_PATH", "UNISWAP_TX_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    return json.loads(cfg_path.read_text())


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    This allows code that imported CONFIG at module import time to see updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def _by_chain(mapping: dict[Any, Any], chain_id: int) -> Any:
    value = mapping.get(str(chain_id))
    if value is None:
        value = mapping.get(chain_id)  # allow int keys
    return value


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("rpc_urls", {})


def get_rpc_url(chain_id: int) -> str:
    rpcs = _by_chain(get_rpc_urls(), chain_id)
    if rpcs is None:
        raise ValueError(f"No RPCs configured for chain ID {chain_id}")
    if isinstance(rpcs, str):
        return rpcs
    if not rpcs:
        raise ValueError(f"No RPCs configured for chain ID {chain_id}")
    return rpcs[0]


def get_deployment(chain_id: int) -> dict[str, str]:
    builtin = UNISWAP_V3_DEPLOYMENTS.get(int(chain_id), {})
    override = _by_chain(CONFIG.get("deployments", {}), chain_id) or {}
    merged = {**builtin, **override}
    if "position_manager" not in merged or "factory" not in merged:
        raise ValueError(f"No Uniswap v3 deployment known for chain ID {chain_id}")
    return merged


def get_execution_defaults() -> dict[str, float]:
    execution = CONFIG.get("execution", {})
    return {
        "max_mining_time_s": float(
            execution.get("max_mining_time_s", DEFAULT_MAX_MINING_TIME)
        ),
        "mining_poll_interval_s": float(
            execution.get("mining_poll_interval_s", DEFAULT_MINING_POLL_INTERVAL)
        ),
        "deadline_s": int(execution.get("deadline_s", DEFAULT_DEADLINE_SECONDS)),
    }
