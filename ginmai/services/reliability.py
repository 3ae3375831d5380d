# Reliability scorer: pure function over cumulative user stats

from dataclasses import dataclass

NEW_USER_MIN_MEALS = 3
WARNING_MIN_MEALS = 5

# (threshold, label, badge), highest first; below the last threshold -> Warning
LABEL_THRESHOLDS = (
    (0.95, "Reliable", "⭐"),
    (0.80, "Good", "✅"),
    (0.60, "Fair", "👍"),
)

DESCRIPTIONS: dict[str, str] = {
    "New": "New to GinMai",
    "Reliable": "Very reliable - rarely misses meals",
    "Good": "Generally reliable",
    "Fair": "Sometimes doesn't show up",
    "Warning": "Often doesn't show up",
}


@dataclass(frozen=True)
class Reliability:
    meals_completed: int
    no_shows: int
    total_meals: int
    score: float
    percentage: int
    label: str
    badge: str

    @property
    def description(self) -> str:
        return DESCRIPTIONS[self.label]

    @property
    def should_show_warning(self) -> bool:
        return self.total_meals >= WARNING_MIN_MEALS and self.score < 0.60


def score(hosted: int, joined: int, no_shows: int) -> Reliability:
    """
    Reliability from stats. Total for any non-negative input; no_shows above the
    meal count clamps the score to 0.0 (Warning once the user is past New).
    """
    hosted = max(hosted, 0)
    joined = max(joined, 0)
    no_shows = max(no_shows, 0)

    total = hosted + joined
    completed = max(total - no_shows, 0)
    value = completed / total if total > 0 else 1.0

    if total < NEW_USER_MIN_MEALS:
        label, badge = "New", "🆕"
    else:
        label, badge = "Warning", "⚠️"
        for threshold, name, icon in LABEL_THRESHOLDS:
            if value >= threshold:
                label, badge = name, icon
                break

    return Reliability(
        meals_completed=completed,
        no_shows=no_shows,
        total_meals=total,
        score=value,
        percentage=round(value * 100),
        label=label,
        badge=badge,
    )
