"""Grading engine: letter grades from raw market and repository metrics.

Every function here is pure and deterministic so grades can be recomputed
from stored fields at any time and tested in isolation.

Crypto Scoring:
    Four independent signals, each worth 0-25 points:

    - Market cap tier (USD): >100B, >10B, >1B, >100M, otherwise
    - 24h % change: >10, >5, >0, >-5, >-10, otherwise
    - 24h volume tier (USD): >5B, >1B, >500M, >100M, otherwise
    - Market-cap rank: <=10, <=25, <=50, <=100, otherwise

    The 0-100 total maps to A+ .. D through descending thresholds.

Repository Grading:
    Stars, forks and days since last update each map to a letter through
    their own 8-bucket table. Cost and barrier to entry are constants
    unless curated data overrides them.

Note: grades are a heuristic for ranking what to read first, not an
investment signal.
"""

# (threshold, letter) pairs, checked in order
SCORE_GRADES: list[tuple[int, str]] = [
    (85, "A+"),
    (75, "A"),
    (65, "A-"),
    (55, "B+"),
    (45, "B"),
    (35, "B-"),
    (25, "C+"),
    (15, "C"),
]
LOWEST_GRADE = "D"

STAR_GRADES: list[tuple[int, str]] = [
    (50_000, "A+"),
    (25_000, "A"),
    (10_000, "A-"),
    (5_000, "B+"),
    (2_000, "B"),
    (1_000, "B-"),
    (500, "C+"),
]

FORK_GRADES: list[tuple[int, str]] = [
    (10_000, "A+"),
    (5_000, "A"),
    (2_000, "A-"),
    (1_000, "B+"),
    (500, "B"),
    (200, "B-"),
    (100, "C+"),
]

# Upper bounds in days; finer near "recent"
ACTIVITY_GRADES: list[tuple[float, str]] = [
    (7, "A+"),
    (14, "A"),
    (30, "A-"),
    (60, "B+"),
    (90, "B"),
    (180, "B-"),
    (365, "C+"),
]
FLOOR_GRADE = "C"

DEFAULT_BARRIER_GRADE = "B+"
DEFAULT_COST_GRADE = "A"

TOOL_GRADE_KEYS = ("Barrier to Entry", "Cost", "Efficiency", "Speed", "Community")


def _market_cap_points(market_cap: float) -> int:
    if market_cap > 100_000_000_000:
        return 25
    if market_cap > 10_000_000_000:
        return 20
    if market_cap > 1_000_000_000:
        return 15
    if market_cap > 100_000_000:
        return 10
    return 5


def _change_points(change_24h: float) -> int:
    if change_24h > 10:
        return 25
    if change_24h > 5:
        return 20
    if change_24h > 0:
        return 15
    if change_24h > -5:
        return 10
    if change_24h > -10:
        return 5
    return 0


def _volume_points(volume_24h: float) -> int:
    if volume_24h > 5_000_000_000:
        return 25
    if volume_24h > 1_000_000_000:
        return 20
    if volume_24h > 500_000_000:
        return 15
    if volume_24h > 100_000_000:
        return 10
    return 5


def _rank_points(market_cap_rank: int | None) -> int:
    # Unranked coins score like the long tail
    if market_cap_rank is None:
        return 5
    if market_cap_rank <= 10:
        return 25
    if market_cap_rank <= 25:
        return 20
    if market_cap_rank <= 50:
        return 15
    if market_cap_rank <= 100:
        return 10
    return 5


def crypto_score(
    market_cap: float,
    change_24h: float,
    volume_24h: float,
    market_cap_rank: int | None,
) -> int:
    """Weighted 0-100 score over the four crypto signals."""
    return (
        _market_cap_points(market_cap)
        + _change_points(change_24h)
        + _volume_points(volume_24h)
        + _rank_points(market_cap_rank)
    )


def score_to_letter(score: int) -> str:
    """Map a 0-100 score to a letter grade.

    Example:
        >>> score_to_letter(85)
        'A+'
        >>> score_to_letter(84)
        'A'
    """
    for threshold, letter in SCORE_GRADES:
        if score >= threshold:
            return letter
    return LOWEST_GRADE


def grade_reasoning(
    change_24h: float,
    volume_24h: float,
    market_cap_rank: int | None,
) -> str:
    """Assemble the short justification shown next to a grade."""
    reasons: list[str] = []

    if change_24h > 5:
        reasons.append("strong bullish momentum")
    elif change_24h > 0:
        reasons.append("positive price action")
    elif change_24h > -5:
        reasons.append("stable price performance")
    else:
        reasons.append("recent price decline")

    if volume_24h > 1_000_000_000:
        reasons.append("high trading volume")

    if market_cap_rank is not None:
        if market_cap_rank <= 10:
            reasons.append("top tier market cap")
        elif market_cap_rank <= 50:
            reasons.append("established market presence")

    return ", ".join(reasons) or "mixed market signals"


def grade_crypto(
    market_cap: float,
    change_24h: float,
    volume_24h: float,
    market_cap_rank: int | None,
) -> tuple[str, str]:
    """Grade a crypto asset.

    Returns:
        (letter, reasoning) tuple

    Example:
        >>> grade_crypto(150e9, 12, 6e9, 3)
        ('A+', 'strong bullish momentum, high trading volume, top tier market cap')
    """
    score = crypto_score(market_cap, change_24h, volume_24h, market_cap_rank)
    return score_to_letter(score), grade_reasoning(change_24h, volume_24h, market_cap_rank)


def target_price(price: float, change_24h: float) -> float:
    """Project a target price from 24h momentum.

    Positive momentum is amplified (x1.2), negative momentum damped (x0.8).
    """
    momentum = change_24h or 0.0
    if momentum > 0:
        multiplier = 1 + (momentum / 100) * 1.2
    else:
        multiplier = 1 + (momentum / 100) * 0.8
    return round(price * multiplier, 2)


def _letter_at_least(value: float, table: list[tuple[int, str]]) -> str:
    for threshold, letter in table:
        if value >= threshold:
            return letter
    return FLOOR_GRADE


def grade_stars(stars: int) -> str:
    """Popularity grade from star count."""
    return _letter_at_least(stars, STAR_GRADES)


def grade_forks(forks: int) -> str:
    """Adoption grade from fork count."""
    return _letter_at_least(forks, FORK_GRADES)


def grade_activity(days_since_update: float) -> str:
    """Freshness grade from days since the last update."""
    for limit, letter in ACTIVITY_GRADES:
        if days_since_update <= limit:
            return letter
    return FLOOR_GRADE


def grade_repository(
    stars: int,
    forks: int,
    days_since_update: float,
    overrides: dict[str, str] | None = None,
) -> dict[str, str]:
    """Build the five-grade map for a repository-backed tool.

    Args:
        stars: Star count (popularity signal)
        forks: Fork count (adoption signal)
        days_since_update: Days since the repository was last updated
        overrides: Curated grades replacing the computed or constant ones

    Returns:
        Mapping of each name in TOOL_GRADE_KEYS to a letter
    """
    grades = {
        "Barrier to Entry": DEFAULT_BARRIER_GRADE,
        "Cost": DEFAULT_COST_GRADE,
        "Efficiency": grade_forks(forks),
        "Speed": grade_activity(days_since_update),
        "Community": grade_stars(stars),
    }
    if overrides:
        grades.update({k: v for k, v in overrides.items() if k in grades})
    return grades
