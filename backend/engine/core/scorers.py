"""Signal scorer implementations.

HeuristicSignalScorer:
- Deterministic keyword / pattern scoring. No ML, no network.
- Used when no remote scorer is configured, and as the reference scorer in tests.

HttpSignalScorer:
- Delegates to a remote classification service over HTTP.
- Any transport error, timeout or malformed payload raises ScorerUnavailable so
  the caller can fail safe.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

import httpx

from engine.core.errors import ScorerUnavailable
from engine.core.signals import SignalScores, clamp01

logger = logging.getLogger(__name__)


PROMOTIONAL_PHRASES = (
    "special discount",
    "limited offer",
    "limited time offer",
    "special deal",
    "visit now",
    "buy now",
    "click here",
    "act now",
    "call now",
    "order now",
    "free gift",
    "earn money",
    "make money fast",
    "work from home",
    "risk free",
    "jaldi karo",
    "paisa kamao",
    "offer hai",
)
PROMOTIONAL_WORDS = (
    "discount",
    "offer",
    "deal",
    "sale",
    "buy",
    "sell",
    "price",
    "cheap",
    "promotion",
    "free",
    "sasta",
    "muft",
    "chhoot",
)

HARASSMENT_TERMS = (
    "stupid",
    "idiot",
    "dumb",
    "moron",
    "loser",
    "pathetic",
    "worthless",
    "shut up",
    "get lost",
    "nobody likes you",
    "bewakoof",
    "pagal",
    "ullu",
    "gadha",
)
THREAT_TERMS = (
    "i will kill",
    "i'll kill",
    "kill you",
    "hurt you",
    "you should die",
    "i will find you",
    "watch your back",
)
ANIMAL_ABUSE_TERMS = (
    "beat the dog",
    "beat your dog",
    "kick the cat",
    "let it starve",
    "abandon your pet",
    "torture",
)
PROFANITY_TERMS = ("damn", "crap", "hell", "bloody")
MISINFORMATION_TERMS = (
    "vaccines cause",
    "miracle cure",
    "doctors don't want you to know",
    "guaranteed cure",
)
HINGLISH_MARKERS = ("yaar", "bhai", "arre", "accha", "acha", "kya", "nahi", "matlab", "bahut", "theek")

_URL_RE = re.compile(r"(https?://\S+|www\.\S+)", re.IGNORECASE)
_SHORTENER_RE = re.compile(r"\b(bit\.ly|tinyurl\.com|goo\.gl|t\.co)/", re.IGNORECASE)
_PHONE_RE = re.compile(r"\+?\d[\d\s-]{8,}\d")
_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.]+")
_REPEAT_RE = re.compile(r"(.)\1{4,}")
_DEVANAGARI_RE = re.compile(r"[ऀ-ॿ]")
_LATIN_RE = re.compile(r"[A-Za-z]")
_SENTENCE_RE = re.compile(r"[.!?]+")


def _compile_terms(terms: Iterable[str]) -> list[re.Pattern[str]]:
    return [re.compile(r"\b" + re.escape(t) + r"\b", re.IGNORECASE) for t in terms]


def _count_hits(pats: list[re.Pattern[str]], text: str) -> int:
    return sum(1 for p in pats if p.search(text))


_PROMO_PHRASES = _compile_terms(PROMOTIONAL_PHRASES)
_PROMO_WORDS = _compile_terms(PROMOTIONAL_WORDS)
_HARASSMENT = _compile_terms(HARASSMENT_TERMS)
_THREATS = _compile_terms(THREAT_TERMS)
_ANIMAL_ABUSE = _compile_terms(ANIMAL_ABUSE_TERMS)
_PROFANITY = _compile_terms(PROFANITY_TERMS)
_MISINFORMATION = _compile_terms(MISINFORMATION_TERMS)
_HINGLISH = _compile_terms(HINGLISH_MARKERS)


def caps_ratio(text: str) -> float:
    letters = [c for c in text if c.isalpha() and c.isascii()]
    if len(letters) < 10:
        return 0.0
    return sum(1 for c in letters if c.isupper()) / len(letters)


def count_words(text: str) -> int:
    return len([w for w in re.split(r"\s+", text.strip()) if w])


class HeuristicSignalScorer:
    """Local keyword/pattern scorer.

    Weights are intentionally coarse; the rule engine and reputation tiers do
    the fine-grained work.
    """

    def score(self, text: str, *, content_type: str) -> SignalScores:
        t = (text or "").strip()
        flags: dict[str, bool] = {}

        spam = 0.0
        phrase_hits = _count_hits(_PROMO_PHRASES, t)
        word_hits = _count_hits(_PROMO_WORDS, t)
        spam += 0.25 * phrase_hits + 0.08 * word_hits
        flags["promotional"] = phrase_hits >= 1 or word_hits >= 3

        if t.count("!") >= 3:
            spam += 0.15
            flags["excessive_punctuation"] = True

        ratio = caps_ratio(t)
        if ratio > 0.3:
            spam += 0.15
            flags["excessive_caps"] = True

        urls = _URL_RE.findall(t)
        if urls:
            spam += min(0.4, 0.2 * len(urls))
            flags["has_links"] = True
        if _SHORTENER_RE.search(t):
            spam += 0.2
            flags["url_shortener"] = True
        if _PHONE_RE.search(t) or _EMAIL_RE.search(t):
            spam += 0.2
            flags["contact_info"] = True
        if _REPEAT_RE.search(t):
            spam += 0.1

        toxicity = 0.0
        harassment = _count_hits(_HARASSMENT, t)
        if harassment:
            toxicity += 0.2 * harassment
            flags["harassment"] = True
        if _count_hits(_THREATS, t):
            toxicity += 0.45
            flags["threat"] = True
        if _count_hits(_ANIMAL_ABUSE, t):
            toxicity += 0.45
            flags["animal_abuse"] = True
        profanity = _count_hits(_PROFANITY, t)
        if profanity:
            toxicity += 0.1 * profanity
            flags["profanity"] = True
        if _count_hits(_MISINFORMATION, t):
            toxicity += 0.3
            flags["misinformation"] = True
        if ratio > 0.6:
            toxicity += 0.1

        words = count_words(t)
        sentences = len([s for s in _SENTENCE_RE.split(t) if s.strip()])
        quality = 0.5 + 0.3 * min(1.0, words / 40.0)
        if sentences >= 2:
            quality += 0.1
        if words < 4:
            quality -= 0.2
        if ratio > 0.3:
            quality -= 0.2
        quality -= 0.3 * clamp01(spam)

        has_devanagari = bool(_DEVANAGARI_RE.search(t))
        has_latin = bool(_LATIN_RE.search(t))
        bilingual = has_devanagari and has_latin
        regional = _count_hits(_HINGLISH, t) >= 2
        adjustment = 0.0
        if bilingual:
            adjustment += 0.25
            flags["bilingual"] = True
        if regional:
            adjustment += 0.15
            flags["regional_idiom"] = True

        if bilingual or regional:
            language = "hinglish"
        elif has_devanagari:
            language = "hi"
        else:
            language = "en"

        return SignalScores(
            spam=spam,
            toxicity=toxicity,
            quality=quality,
            cultural_adjustment=min(0.4, adjustment),
            flags=flags,
            language=language,
        ).clamped()


class HttpSignalScorer:
    """Remote scorer over HTTP.

    Expected response body:
      {"spam": float, "toxicity": float, "quality": float,
       "cultural_adjustment": float, "flags": {name: bool}, "language": str}
    """

    REQUIRED_FIELDS = ("spam", "toxicity", "quality")

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 2.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._url = url
        self._client = httpx.Client(timeout=timeout_seconds, transport=transport)

    def close(self) -> None:
        self._client.close()

    def score(self, text: str, *, content_type: str) -> SignalScores:
        try:
            response = self._client.post(self._url, json={"text": text, "content_type": content_type})
            response.raise_for_status()
            payload: Any = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Signal scorer timed out: {self._url}")
            raise ScorerUnavailable("Signal scorer timed out.") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Signal scorer failed: {type(e).__name__}: {e}")
            raise ScorerUnavailable("Signal scorer request failed.") from e

        if not isinstance(payload, dict) or any(k not in payload for k in self.REQUIRED_FIELDS):
            raise ScorerUnavailable("Signal scorer returned an incomplete payload.")

        raw_flags = payload.get("flags") or {}
        if not isinstance(raw_flags, dict):
            raw_flags = {}
        return SignalScores(
            spam=payload["spam"],
            toxicity=payload["toxicity"],
            quality=payload["quality"],
            cultural_adjustment=payload.get("cultural_adjustment", 0.0),
            flags=raw_flags,
            language=str(payload.get("language") or "en"),
        ).clamped()
