"""Brand strength heuristics for a candidate business name.

Scores are 0-100. Everything is computed locally from the name itself.
"""

from __future__ import annotations

import re
from typing import Any

POSITIVE = frozenset({
    "bright", "happy", "prime", "smart", "fresh", "pure", "golden", "bloom", "joy",
    "trust", "vital", "nova", "spark", "sun", "glow", "zen", "apex", "summit",
})
NEGATIVE = frozenset({"cheap", "bad", "dead", "fail", "poor", "ugly", "toxic", "broke", "dark"})
COMMON_WORDS = frozenset({
    "solutions", "group", "services", "global", "consulting", "tech", "digital",
    "enterprises", "company", "co", "inc", "llc", "international",
})
VOWELS = set("aeiouy")


def count_syllables(word: str) -> int:
    groups = re.findall(r"[aeiouy]+", word.lower())
    count = len(groups)
    if word.lower().endswith("e") and count > 1:
        count -= 1
    return max(1, count)


def _clamp(value: float) -> int:
    return int(max(0, min(100, round(value))))


class BrandAnalyzer:
    async def analyze(self, name: str, industry: str | None = None) -> dict[str, Any]:
        words = re.findall(r"[a-z]+", name.lower())
        letters = "".join(words)

        hits_pos = sum(1 for w in words if w in POSITIVE)
        hits_neg = sum(1 for w in words if w in NEGATIVE)
        sentiment_score = _clamp(60 + 15 * hits_pos - 30 * hits_neg)
        sentiment = {
            "score": sentiment_score,
            "label": "positive" if sentiment_score >= 70 else "negative" if sentiment_score < 40 else "neutral",
        }

        syllables = sum(count_syllables(w) for w in words) if words else 0
        # Long consonant runs are hard to say.
        clusters = re.findall(r"[^aeiouy\W\d_]{4,}", letters)
        pronunciation_score = _clamp(100 - max(0, syllables - 3) * 12 - len(clusters) * 15)
        pronunciation = {
            "score": pronunciation_score,
            "syllables": syllables,
            "difficulty": "easy" if pronunciation_score >= 75 else "moderate" if pronunciation_score >= 50 else "hard",
        }

        length = len(letters)
        keyword_match = bool(industry) and any(
            w in letters for w in re.findall(r"[a-z]{3,}", (industry or "").lower())
        )
        seo_score = 100 - abs(length - 10) * 5 + (10 if keyword_match else 0)
        seo = {"score": _clamp(seo_score), "length": length, "keywordMatch": keyword_match}

        generic = [w for w in words if w in COMMON_WORDS]
        competitor_score = _clamp(85 - 20 * len(generic) + (10 if len(words) == 1 and length >= 5 else 0))
        competitor = {
            "score": competitor_score,
            "distinctiveness": "high" if competitor_score >= 75 else "medium" if competitor_score >= 50 else "low",
            "genericTerms": generic,
        }

        overall = _clamp(
            sentiment_score * 0.25 + pronunciation_score * 0.25 + seo["score"] * 0.25 + competitor_score * 0.25
        )
        return {
            "sentiment": sentiment,
            "pronunciation": pronunciation,
            "seo": seo,
            "competitor": competitor,
            "overallScore": overall,
        }
