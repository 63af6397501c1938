"""Business name generator.

Combines keywords from the description with style-specific affixes. No
network access; ``seed`` makes the output reproducible.
"""

from __future__ import annotations

import random
import re

STOPWORDS = frozenset({
    "a", "an", "and", "the", "for", "of", "to", "in", "on", "with", "my", "our",
    "that", "this", "is", "are", "we", "i", "business", "company", "service", "services",
})

STYLE_AFFIXES: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "modern": (("Neo", "Nova", "Zen"), ("ly", "ify", "io", "Lab", "Hub")),
    "classic": (("Royal", "Heritage", "Golden"), ("& Co", "House", "Works", "Guild")),
    "creative": (("Bright", "Spark", "Wild"), ("Studio", "Craft", "Bloom", "Nest")),
    "professional": (("Prime", "Apex", "Summit"), ("Group", "Partners", "Solutions", "Consulting")),
    "playful": (("Happy", "Bubbly", "Sunny"), ("oo", "Pop", "Buddy", "Land")),
    "caribbean": (("Island", "Coral", "Tropic"), ("Breeze", "Bay", "Cove", "Vibes")),
}
DEFAULT_STYLE = "modern"

SYNONYMS: dict[str, tuple[str, ...]] = {
    "food": ("Feast", "Bite", "Kitchen", "Plate"),
    "coffee": ("Brew", "Roast", "Bean", "Cup"),
    "tech": ("Byte", "Code", "Pixel", "Logic"),
    "clean": ("Fresh", "Spark", "Pure", "Shine"),
    "fitness": ("Fit", "Pulse", "Strong", "Move"),
    "beauty": ("Glow", "Luxe", "Bella", "Radiant"),
    "travel": ("Voyage", "Roam", "Trek", "Journey"),
    "money": ("Capital", "Ledger", "Coin", "Wealth"),
    "garden": ("Bloom", "Leaf", "Grove", "Sprout"),
    "pet": ("Paw", "Tail", "Fur", "Whisker"),
}

MAX_NAMES = 8


def keywords(text: str) -> list[str]:
    words = re.findall(r"[A-Za-z]+", text.lower())
    seen: dict[str, None] = {}
    for word in words:
        if word not in STOPWORDS and len(word) > 2:
            seen.setdefault(word, None)
    return list(seen)


class NameGenerator:
    """Word-combination name generator."""

    def __init__(self, seed: int | None = None) -> None:
        self._seed = seed

    async def generate(
        self,
        description: str,
        industry: str | None = None,
        style: str | None = None,
        include_synonyms: bool = False,
        advanced: bool = False,
    ) -> list[str]:
        rng = random.Random(self._seed)
        words = keywords(description)
        if industry:
            words.extend(w for w in keywords(industry) if w not in words)
        if not words:
            words = ["venture"]
        roots = [w.capitalize() for w in words]
        if include_synonyms:
            for word in words:
                roots.extend(SYNONYMS.get(word, ()))

        prefixes, suffixes = STYLE_AFFIXES.get((style or DEFAULT_STYLE).lower(), STYLE_AFFIXES[DEFAULT_STYLE])
        candidates: list[str] = []
        for root in roots:
            suffix = rng.choice(suffixes)
            # Lowercase suffixes fuse with the root ("Brewly"), others stand apart ("Brew Studio").
            candidates.append(f"{root}{suffix}" if suffix[0].islower() else f"{root} {suffix}")
            candidates.append(f"{rng.choice(prefixes)} {root}")
        if len(roots) > 1:
            candidates.append(f"{roots[0]}{roots[1]}")
        if advanced:
            # Portmanteaus of adjacent roots.
            for left, right in zip(roots, roots[1:]):
                candidates.append(left[: max(2, len(left) // 2 + 1)] + right[len(right) // 2 :].lower())

        unique = list(dict.fromkeys(c.strip() for c in candidates if c.strip()))
        rng.shuffle(unique)
        return unique[:MAX_NAMES]
