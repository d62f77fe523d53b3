from __future__ import annotations

"""Signal scorer port and the score bundle it produces."""

from dataclasses import dataclass, field
from typing import Protocol


def clamp01(value: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if v != v:  # NaN
        return 0.0
    return max(0.0, min(1.0, v))


@dataclass(frozen=True, slots=True)
class SignalScores:
    """Independent 0..1 risk signals for one piece of content."""

    spam: float
    toxicity: float
    quality: float
    cultural_adjustment: float = 0.0
    flags: dict[str, bool] = field(default_factory=dict)
    language: str = "en"

    def clamped(self) -> "SignalScores":
        return SignalScores(
            spam=clamp01(self.spam),
            toxicity=clamp01(self.toxicity),
            quality=clamp01(self.quality),
            cultural_adjustment=clamp01(self.cultural_adjustment),
            flags={str(k): bool(v) for k, v in (self.flags or {}).items()},
            language=self.language or "en",
        )

    def active_flags(self) -> list[str]:
        return sorted(k for k, v in self.flags.items() if v)


class SignalScorer(Protocol):
    """Anything that turns text into SignalScores.

    Implementations raise ScorerUnavailable on failure or timeout.
    """

    def score(self, text: str, *, content_type: str) -> SignalScores: ...
