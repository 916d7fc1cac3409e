"""Tests for the grading engine."""

import pytest

from grading import (
    DEFAULT_BARRIER_GRADE,
    DEFAULT_COST_GRADE,
    TOOL_GRADE_KEYS,
    crypto_score,
    grade_activity,
    grade_crypto,
    grade_forks,
    grade_reasoning,
    grade_repository,
    grade_stars,
    score_to_letter,
    target_price,
)


class TestCryptoScore:
    def test_top_asset_scores_full_marks(self):
        assert crypto_score(150e9, 12, 6e9, 3) == 100

    def test_long_tail_asset_scores_minimum(self):
        # 5 + 0 + 5 + 5
        assert crypto_score(50e6, -15, 10e6, 500) == 15

    def test_unranked_scores_like_long_tail(self):
        assert crypto_score(50e6, -15, 10e6, None) == crypto_score(50e6, -15, 10e6, 101)

    @pytest.mark.parametrize("market_cap,points", [
        (100e9 + 1, 25),
        (100e9, 20),
        (10e9, 15),
        (1e9, 10),
        (100e6, 5),
    ])
    def test_market_cap_boundaries_are_strict(self, market_cap, points):
        # Zero out the other signals: change -10 -> 0, volume tiny -> 5, rank 1000 -> 5
        assert crypto_score(market_cap, -10, 0, 1000) == points + 0 + 5 + 5

    @pytest.mark.parametrize("rank,points", [(10, 25), (11, 20), (25, 20), (50, 15), (100, 10), (101, 5)])
    def test_rank_boundaries_are_inclusive(self, rank, points):
        assert crypto_score(0, -10, 0, rank) == 5 + 0 + 5 + points


class TestScoreToLetter:
    @pytest.mark.parametrize("score,letter", [
        (100, "A+"), (85, "A+"), (84, "A"), (75, "A"), (65, "A-"), (55, "B+"),
        (45, "B"), (35, "B-"), (25, "C+"), (15, "C"), (14, "D"), (0, "D"),
    ])
    def test_thresholds(self, score, letter):
        assert score_to_letter(score) == letter


class TestGradeReasoning:
    def test_all_positive_clauses(self):
        assert grade_reasoning(12, 6e9, 3) == (
            "strong bullish momentum, high trading volume, top tier market cap"
        )

    def test_established_presence(self):
        assert grade_reasoning(1, 5e8, 30) == "positive price action, established market presence"

    def test_stable_and_decline(self):
        assert grade_reasoning(-2, 0, 200) == "stable price performance"
        assert grade_reasoning(-5, 0, 200) == "recent price decline"

    def test_grade_crypto_combines_letter_and_reasoning(self):
        letter, reasoning = grade_crypto(150e9, 12, 6e9, 3)
        assert letter == "A+"
        assert reasoning.count(", ") == 2


class TestTargetPrice:
    def test_positive_momentum_amplified(self):
        assert target_price(100.0, 10) == 112.0

    def test_negative_momentum_damped(self):
        assert target_price(100.0, -10) == 92.0

    def test_zero_change_keeps_price(self):
        assert target_price(123.456, 0) == 123.46


class TestRepositoryGrades:
    @pytest.mark.parametrize("stars,letter", [
        (50_000, "A+"), (49_999, "A"), (25_000, "A"), (10_000, "A-"), (5_000, "B+"),
        (2_000, "B"), (1_000, "B-"), (500, "C+"), (499, "C"), (0, "C"),
    ])
    def test_star_tiers(self, stars, letter):
        assert grade_stars(stars) == letter

    @pytest.mark.parametrize("forks,letter", [
        (10_000, "A+"), (5_000, "A"), (2_000, "A-"), (1_000, "B+"),
        (500, "B"), (200, "B-"), (100, "C+"), (99, "C"),
    ])
    def test_fork_tiers(self, forks, letter):
        assert grade_forks(forks) == letter

    @pytest.mark.parametrize("days,letter", [
        (0, "A+"), (7, "A+"), (7.5, "A"), (14, "A"), (30, "A-"), (60, "B+"),
        (90, "B"), (180, "B-"), (365, "C+"), (366, "C"), (float("inf"), "C"),
    ])
    def test_activity_tiers(self, days, letter):
        assert grade_activity(days) == letter

    def test_repository_grade_map_has_all_keys(self):
        grades = grade_repository(60_000, 150, 3)
        assert tuple(grades) == TOOL_GRADE_KEYS
        assert grades == {
            "Barrier to Entry": DEFAULT_BARRIER_GRADE,
            "Cost": DEFAULT_COST_GRADE,
            "Efficiency": "C+",
            "Speed": "A+",
            "Community": "A+",
        }

    def test_overrides_replace_known_keys_only(self):
        grades = grade_repository(0, 0, 400, overrides={"Cost": "C", "Unknown": "A"})
        assert grades["Cost"] == "C"
        assert "Unknown" not in grades
