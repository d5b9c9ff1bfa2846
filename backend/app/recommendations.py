from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional, Sequence

from .config import settings
from .models import ClothingOut

SEASONS = ("spring", "summer", "autumn", "winter")

OCCASION_TAGS: dict[str, list[str]] = {
    "casual": ["casual", "everyday", "comfortable"],
    "work": ["formal", "business", "office"],
    "formal": ["formal", "evening", "gown"],
    "sport": ["sport", "gym", "comfortable"],
    "party": ["party", "fashion", "statement"],
    "outdoor": ["outdoor", "windproof", "comfortable"],
}

COMPLEMENTARY: dict[str, list[str]] = {
    "top": ["bottom", "shoes", "accessory"],
    "bottom": ["top", "shoes", "accessory"],
    "dress": ["outerwear", "shoes", "accessory"],
    "outerwear": ["top", "bottom", "shoes"],
    "shoes": ["top", "bottom", "dress"],
    "accessory": ["top", "bottom", "dress"],
}

# Basic colour pairing table; lookups are symmetric
HARMONIES: dict[str, list[str]] = {
    "black": ["white", "gray", "red", "blue", "yellow", "pink"],
    "white": ["black", "gray", "blue", "red", "green", "purple"],
    "gray": ["black", "white", "blue", "pink", "yellow"],
    "red": ["black", "white", "gray", "blue"],
    "blue": ["white", "black", "gray", "yellow", "orange"],
    "green": ["white", "black", "yellow", "brown"],
    "yellow": ["black", "white", "blue", "gray"],
    "orange": ["blue", "white", "black", "brown"],
    "purple": ["white", "black", "gray", "yellow"],
    "pink": ["white", "gray", "black"],
    "brown": ["white", "green", "orange", "yellow"],
}


@dataclass
class Recommendation:
    items: list[ClothingOut]
    reason: str
    score: float


def current_season(today: Optional[dt.date] = None) -> str:
    month = (today or dt.date.today()).month
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"


def colors_harmonious(a: str, b: str) -> bool:
    a, b = a.strip().lower(), b.strip().lower()
    return b in HARMONIES.get(a, []) or a in HARMONIES.get(b, [])


def match_score(base: ClothingOut, other: ClothingOut) -> float:
    score = 0.5
    if colors_harmonious(base.color, other.color):
        score += 0.3
    if set(base.seasons) & set(other.seasons):
        score += 0.2
    common = [t for t in base.tags if t in other.tags]
    if common:
        score += min(0.2, len(common) * 0.1)
    return min(1.0, score)


class RecommendationEngine:
    def __init__(self, max_items: Optional[int] = None, outfit_max_items: Optional[int] = None) -> None:
        self.max_items = int(max_items or settings.get("recommendations.max_items", 10))
        self.outfit_max_items = int(outfit_max_items or settings.get("recommendations.outfit_max_items", 5))

    def by_season(self, items: Sequence[ClothingOut], season: Optional[str] = None) -> list[Recommendation]:
        season = season or current_season()
        matched = [i for i in items if season in i.seasons]
        return [Recommendation(items=matched[: self.max_items], reason=f"Suited to {season}", score=0.9)]

    def outfit(self, base: ClothingOut, items: Sequence[ClothingOut]) -> list[Recommendation]:
        results: list[Recommendation] = []
        for target in COMPLEMENTARY.get(base.category, []):
            candidates = [
                i
                for i in items
                if i.id != base.id and i.category == target and set(i.seasons) & set(base.seasons)
            ]
            scored = [(match_score(base, i), i) for i in candidates]
            scored = [s for s in scored if s[0] > 0.5]
            # stable sort keeps catalog order among equal scores
            scored.sort(key=lambda s: s[0], reverse=True)
            if scored:
                results.append(
                    Recommendation(
                        items=[i for _, i in scored[: self.outfit_max_items]],
                        reason=f'Colour and style match "{base.name}"',
                        score=scored[0][0],
                    )
                )
        return results

    def by_occasion(self, items: Sequence[ClothingOut], occasion: str) -> list[Recommendation]:
        tags = OCCASION_TAGS.get(occasion)
        if tags is None:
            raise ValueError(f"unknown occasion: {occasion}")
        matched = [i for i in items if occasion in i.occasions or any(t in i.tags for t in tags)]
        return [Recommendation(items=matched[: self.max_items], reason=f"Good for {occasion} occasions", score=0.85)]

    def underutilized(self, items: Sequence[ClothingOut]) -> Recommendation:
        ordered = sorted(items, key=lambda i: i.wear_count)
        return Recommendation(
            items=ordered[: self.max_items],
            reason="Rarely worn lately, worth another try",
            score=0.7,
        )
