"""Service configuration.

Environment variables only (optionally loaded from `.env`). Invalid values fail
at startup rather than silently falling back.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from engine.core.rules import DEFAULT_RULES_PATH
from moderation.core.env import load_env_if_present


@dataclass(frozen=True, slots=True)
class Settings:
    rate_limit_per_hour: int = 1000
    scorer_url: Optional[str] = None
    scorer_timeout_seconds: float = 2.0
    rules_path: Path = DEFAULT_RULES_PATH
    rule_threshold_step: float = 0.05
    rule_threshold_min: float = 0.3
    rule_threshold_max: float = 0.95
    alert_confidence_floor: float = 0.7
    reputation_cache_ttl_seconds: float = 300.0
    redis_url: Optional[str] = None


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    v = os.environ.get(name)
    if v is None or v == "":
        return default
    try:
        n = int(v)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name}; must be integer.") from e
    if n < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}.")
    return n


def _env_float(name: str, default: float, *, lo: float = 0.0, hi: Optional[float] = None) -> float:
    v = os.environ.get(name)
    if v is None or v == "":
        return default
    try:
        f = float(v)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name}; must be a number.") from e
    if f < lo or (hi is not None and f > hi):
        raise RuntimeError(f"{name} must be within [{lo}, {hi if hi is not None else 'inf'}].")
    return f


def get_settings() -> Settings:
    load_env_if_present()
    lo = _env_float("MOD_RULE_THRESHOLD_MIN", 0.3, hi=1.0)
    hi = _env_float("MOD_RULE_THRESHOLD_MAX", 0.95, hi=1.0)
    if lo > hi:
        raise RuntimeError("MOD_RULE_THRESHOLD_MIN must not exceed MOD_RULE_THRESHOLD_MAX.")
    rules_path = os.environ.get("MOD_RULES_PATH")
    return Settings(
        rate_limit_per_hour=_env_int("MOD_RATE_LIMIT_PER_HOUR", 1000),
        scorer_url=os.environ.get("MOD_SCORER_URL") or None,
        scorer_timeout_seconds=_env_float("MOD_SCORER_TIMEOUT_SECONDS", 2.0, lo=0.05),
        rules_path=Path(rules_path) if rules_path else DEFAULT_RULES_PATH,
        rule_threshold_step=_env_float("MOD_RULE_THRESHOLD_STEP", 0.05, hi=0.2),
        rule_threshold_min=lo,
        rule_threshold_max=hi,
        alert_confidence_floor=_env_float("MOD_ALERT_CONFIDENCE_FLOOR", 0.7, hi=1.0),
        reputation_cache_ttl_seconds=_env_float("MOD_REPUTATION_CACHE_TTL_SECONDS", 300.0),
        redis_url=os.environ.get("REDIS_URL") or None,
    )
