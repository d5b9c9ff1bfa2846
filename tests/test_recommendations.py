"""Rule-based outfit recommendation tests."""

import datetime as dt

import pytest

from backend.app.models import ClothingOut
from backend.app.recommendations import (
    RecommendationEngine,
    colors_harmonious,
    current_season,
    match_score,
)


def item(id, category, color="black", seasons=("spring",), tags=(), occasions=(), wear_count=0, name=None):
    return ClothingOut(
        id=id,
        name=name or id,
        category=category,
        color=color,
        seasons=list(seasons),
        tags=list(tags),
        occasions=list(occasions),
        wear_count=wear_count,
    )


@pytest.mark.parametrize(
    "month, season",
    [(1, "winter"), (3, "spring"), (5, "spring"), (6, "summer"), (9, "autumn"), (11, "autumn"), (12, "winter")],
)
def test_current_season(month, season):
    assert current_season(dt.date(2024, month, 15)) == season


def test_colour_harmony_is_symmetric():
    assert colors_harmonious("pink", "blue") == colors_harmonious("blue", "pink")
    assert colors_harmonious("Black ", "white")
    assert not colors_harmonious("red", "green")


def test_match_score():
    base = item("a", "top", "red", seasons=["summer"], tags=["casual", "cotton", "basic"])
    other = item("b", "bottom", "blue", seasons=["summer"], tags=["casual", "cotton", "basic"])
    # 0.5 + 0.3 colour + 0.2 season + 0.2 tags, capped at 1
    assert match_score(base, other) == pytest.approx(1.0)
    plain = item("c", "bottom", "green", seasons=["winter"])
    assert match_score(base, plain) == pytest.approx(0.5)


def test_by_season_caps_items():
    items = [item(str(i), "top", seasons=["summer"]) for i in range(15)] + [item("w", "top", seasons=["winter"])]
    [rec] = RecommendationEngine(max_items=10).by_season(items, "summer")
    assert len(rec.items) == 10
    assert all("summer" in i.seasons for i in rec.items)
    assert rec.score == pytest.approx(0.9)


def test_outfit_picks_complementary_categories():
    base = item("base", "top", "white", seasons=["summer"])
    items = [
        base,
        item("jeans", "bottom", "blue", seasons=["summer"]),
        item("skirt", "bottom", "green", seasons=["summer"]),
        item("boots", "shoes", "black", seasons=["summer"]),
        item("coat", "outerwear", "black", seasons=["summer"]),
        item("winter-pants", "bottom", "black", seasons=["winter"]),
    ]
    recs = RecommendationEngine().outfit(base, items)
    by_ids = [[i.id for i in r.items] for r in recs]
    assert by_ids == [["jeans", "skirt"], ["boots"]]
    assert recs[0].score == pytest.approx(1.0)


def test_outfit_limits_results():
    base = item("base", "top", "white", seasons=["summer"])
    items = [item(f"b{i}", "bottom", "black", seasons=["summer"]) for i in range(8)]
    [rec] = RecommendationEngine(outfit_max_items=5).outfit(base, items)
    assert len(rec.items) == 5


def test_by_occasion_matches_tags_or_occasions():
    items = [
        item("suit", "top", tags=["business"]),
        item("gown", "dress", occasions=["work"]),
        item("hoodie", "top", tags=["casual"]),
    ]
    [rec] = RecommendationEngine().by_occasion(items, "work")
    assert [i.id for i in rec.items] == ["suit", "gown"]
    assert rec.score == pytest.approx(0.85)


def test_unknown_occasion():
    with pytest.raises(ValueError):
        RecommendationEngine().by_occasion([], "wedding-on-mars")


def test_underutilized_orders_by_wear_count():
    items = [item("a", "top", wear_count=5), item("b", "top", wear_count=0), item("c", "top", wear_count=2)]
    rec = RecommendationEngine().underutilized(items)
    assert [i.id for i in rec.items] == ["b", "c", "a"]
    assert rec.score == pytest.approx(0.7)
