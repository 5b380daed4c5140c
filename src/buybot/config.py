from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

from eth_utils import is_address, to_checksum_address

from .domain.classify import DEFAULT_THRESHOLDS, Classifier
from .domain.value_types import Address
from .errors import ConfigError
from .presentation.messages import DEFAULT_EXPLORER

_BOT_TOKEN_RE = re.compile(r"^\d+:[A-Za-z0-9_-]+$")
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(slots=True, frozen=True)
class Settings:
    """Everything read from the environment, built once at startup."""
    rpc_url: str
    pair_address: Address
    tracked_address: Address
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None
    poll_interval_ms: int = 6_000
    confirmations: int = 2
    classifier: Classifier = field(default_factory=Classifier)
    symbol_aliases: dict[str, str] = field(default_factory=dict)
    explorer_url: str = DEFAULT_EXPLORER
    resolve_buyer: bool = True
    dry_run: bool = False

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000

    @classmethod
    def from_env(cls, env: Mapping[str, str], *, dry_run: bool = False) -> "Settings":
        rpc_url = _required(env, "RPC_URL")
        if not rpc_url.startswith(("http://", "https://")):
            raise ConfigError(f"RPC_URL must be an http(s) URL, got {rpc_url!r}")

        tracked_key = "TRACKED_TOKEN_ADDRESS" if env.get("TRACKED_TOKEN_ADDRESS") else "FROG_ADDRESS"
        token = env.get("TELEGRAM_BOT_TOKEN") or None
        chat_id = env.get("TELEGRAM_CHAT_ID") or None
        if not dry_run:
            if not token or not chat_id:
                raise ConfigError("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are required (or use --dry-run)")
            if not _BOT_TOKEN_RE.match(token):
                raise ConfigError("TELEGRAM_BOT_TOKEN is malformed (expected '<id>:<secret>')")

        confirmations = _int(env, "CONFIRMATIONS", 2)
        if confirmations < 0:
            raise ConfigError("CONFIRMATIONS must be >= 0")
        poll_ms = _int(env, "POLL_INTERVAL_MS", 6_000)
        if poll_ms <= 0:
            raise ConfigError("POLL_INTERVAL_MS must be > 0")

        return cls(
            rpc_url=rpc_url,
            pair_address=parse_address(_required(env, "PAIR_ADDRESS"), "PAIR_ADDRESS"),
            tracked_address=parse_address(_required(env, tracked_key, "TRACKED_TOKEN_ADDRESS"), tracked_key),
            telegram_bot_token=token,
            telegram_chat_id=chat_id,
            poll_interval_ms=poll_ms,
            confirmations=confirmations,
            classifier=classifier_from_env(env),
            symbol_aliases=parse_aliases(env.get("SYMBOL_ALIASES", "")),
            explorer_url=env.get("EXPLORER_URL") or DEFAULT_EXPLORER,
            resolve_buyer=_bool(env, "RESOLVE_BUYER", True),
            dry_run=dry_run,
        )


def classifier_from_env(env: Mapping[str, str]) -> Classifier:
    strategy = (env.get("MAGNITUDE_STRATEGY") or "ladder").strip().lower()
    if strategy not in ("ladder", "linear"):
        raise ConfigError(f"MAGNITUDE_STRATEGY must be 'ladder' or 'linear', got {strategy!r}")
    raw = env.get("TIER_THRESHOLDS")
    thresholds = parse_thresholds(raw) if raw else DEFAULT_THRESHOLDS

    c = Classifier(
        thresholds=thresholds,
        strategy=strategy,  # type: ignore[arg-type]
        ladder_base=_float(env, "LADDER_BASE", 100),
        ladder_slots=_int(env, "LADDER_SLOTS", 10),
        meter_step=_float(env, "METER_STEP", 500),
        meter_max=_int(env, "METER_MAX", 20),
    )
    if c.ladder_base <= 0 or c.ladder_slots <= 0:
        raise ConfigError("LADDER_BASE and LADDER_SLOTS must be > 0")
    if c.meter_step <= 0 or c.meter_max <= 0:
        raise ConfigError("METER_STEP and METER_MAX must be > 0")
    return c


# ---------------------------- parsers -----------------------------------------

def parse_address(value: str, name: str) -> Address:
    v = value.strip()
    if not is_address(v):
        raise ConfigError(f"{name} is not a valid address: {value!r}")
    return Address(to_checksum_address(v))

def parse_thresholds(value: str) -> tuple[float, ...]:
    """'100,1000,10000,50000' → lower bounds of the four upper tiers."""
    try:
        out = tuple(float(p) for p in value.replace(" ", "").split(",") if p)
    except ValueError:
        raise ConfigError(f"TIER_THRESHOLDS must be numbers, got {value!r}") from None
    if len(out) != len(DEFAULT_THRESHOLDS):
        raise ConfigError(f"TIER_THRESHOLDS needs {len(DEFAULT_THRESHOLDS)} values, got {len(out)}")
    if out[0] <= 0 or any(b <= a for a, b in zip(out, out[1:])):
        raise ConfigError(f"TIER_THRESHOLDS must be positive and strictly ascending, got {value!r}")
    return out

def parse_aliases(value: str) -> dict[str, str]:
    """'WSEI=SEI,WETH=ETH' → {'WSEI': 'SEI', 'WETH': 'ETH'}."""
    out: dict[str, str] = {}
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        src, sep, dst = part.partition("=")
        if not sep or not src.strip() or not dst.strip():
            raise ConfigError(f"SYMBOL_ALIASES entry {part!r} must look like FROM=TO")
        out[src.strip()] = dst.strip()
    return out

def _required(env: Mapping[str, str], key: str, label: str | None = None) -> str:
    v = (env.get(key) or "").strip()
    if not v:
        raise ConfigError(f"{label or key} is required")
    return v

def _int(env: Mapping[str, str], key: str, default: int) -> int:
    v = env.get(key)
    if v is None or not v.strip():
        return default
    try:
        return int(v)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {v!r}") from None

def _float(env: Mapping[str, str], key: str, default: float) -> float:
    v = env.get(key)
    if v is None or not v.strip():
        return default
    try:
        return float(v)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {v!r}") from None

def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    v = (env.get(key) or "").strip().lower()
    if not v:
        return default
    if v in _TRUE: return True
    if v in _FALSE: return False
    raise ConfigError(f"{key} must be true/false, got {v!r}")
