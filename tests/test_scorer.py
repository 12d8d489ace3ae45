import pytest

from tokenradar.detection.scorer import ViralScorer
from tokenradar.models import ScoreSignals


@pytest.fixture
def scorer():
    return ViralScorer({})


def test_honeypot_scores_zero_despite_everything_else(scorer):
    signals = ScoreSignals(
        liquidity=500_000,
        has_website=True,
        has_twitter=True,
        has_telegram=True,
        security_score=100,
        social_buzz=35,
        age_minutes=30,
        is_honeypot=True,
    )

    breakdown = scorer.score(signals)

    assert breakdown.total == 0
    assert breakdown.liquidity == 0
    assert breakdown.social_presence == 0
    assert "🚨 HONEYPOT" in breakdown.warnings


def test_best_possible_token_caps_at_100(scorer):
    signals = ScoreSignals(
        liquidity=150_000,
        has_website=True,
        has_twitter=True,
        has_telegram=True,
        security_score=100,
        social_buzz=35,
        social_mentions=12,
        age_minutes=60,
    )

    breakdown = scorer.score(signals)

    assert breakdown.total == 100
    assert breakdown.social_buzz == 35
    assert breakdown.security == 25
    assert breakdown.liquidity == 20
    assert breakdown.social_presence == 10
    assert breakdown.timing == 10
    assert any("VIRAL" in s for s in breakdown.strengths)


def test_out_of_range_inputs_stay_bounded(scorer):
    high = scorer.score(ScoreSignals(social_buzz=10_000, security_score=10_000, liquidity=1e12))
    low = scorer.score(ScoreSignals(social_buzz=-50, security_score=-100, liquidity=-5))

    assert 0 <= high.total <= 100
    assert high.social_buzz == 35
    assert high.security == 25
    assert low.total == 0


@pytest.mark.parametrize("liquidity,points", [
    (150_000, 20),
    (100_000, 15),
    (60_000, 15),
    (25_000, 10),
    (20_000, 0),
    (0, 0),
])
def test_liquidity_bands(scorer, liquidity, points):
    assert scorer.score(ScoreSignals(liquidity=liquidity)).liquidity == points


@pytest.mark.parametrize("age,points", [
    (None, 0),
    (3, 6),
    (10, 10),
    (120, 10),
    (121, 0),
])
def test_timing(scorer, age, points):
    assert scorer.score(ScoreSignals(age_minutes=age)).timing == points


def test_concentrated_holder_costs_security_points(scorer):
    breakdown = scorer.score(ScoreSignals(security_score=100, top_holder_pct=45.0))

    assert breakdown.security == 20
    assert any("Top holder" in w for w in breakdown.warnings)


def test_total_rounds_half_up(scorer):
    # 42 * 0.25 = 10.5
    assert scorer.score(ScoreSignals(security_score=42)).total == 11


def test_social_presence_points(scorer):
    assert scorer.score(ScoreSignals(has_twitter=True)).social_presence == 4
    assert scorer.score(ScoreSignals(has_website=True, has_telegram=True)).social_presence == 6


def test_scoring_is_configurable():
    scorer = ViralScorer({"scoring": {"twitter_points": 8, "liquidity_bands": [[1000, 5]]}})

    breakdown = scorer.score(ScoreSignals(has_twitter=True, liquidity=2000))

    assert breakdown.social_presence == 8
    assert breakdown.liquidity == 5
