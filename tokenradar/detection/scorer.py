"""Viral-potential scoring for tokens."""
from tokenradar.models import ScoreBreakdown, ScoreSignals

MAX_SCORE = 100


class ViralScorer:
    """Turns a token's signals into a bounded score with display notes. No I/O."""

    def __init__(self, config: dict):
        """Initialize with configuration."""
        scoring = config.get("scoring", {})

        # Security
        self.security_cap = scoring.get("security_cap", 25)
        self.security_weight = scoring.get("security_weight", 0.25)
        self.strong_security = scoring.get("strong_security", 80)
        self.top_holder_threshold = scoring.get("top_holder_threshold_pct", 30)
        self.top_holder_penalty = scoring.get("top_holder_penalty", 5)

        # Liquidity bands, highest first: (floor_usd, points)
        self.liquidity_bands = [tuple(b) for b in scoring.get(
            "liquidity_bands", [(100_000, 20), (50_000, 15), (20_000, 10)]
        )]

        # Social presence
        self.website_points = scoring.get("website_points", 3)
        self.twitter_points = scoring.get("twitter_points", 4)
        self.telegram_points = scoring.get("telegram_points", 3)

        # Social buzz
        self.buzz_cap = scoring.get("social_buzz_cap", 35)
        self.viral_buzz = scoring.get("viral_buzz", 30)

        # Timing
        self.optimal_min_age = scoring.get("optimal_min_age_minutes", 10)
        self.optimal_max_age = scoring.get("optimal_max_age_minutes", 120)
        self.optimal_points = scoring.get("optimal_timing_points", 10)
        self.early_points = scoring.get("early_timing_points", 6)

    def score(self, signals: ScoreSignals) -> ScoreBreakdown:
        breakdown = ScoreBreakdown()

        # Scam veto: nothing else counts
        if signals.is_honeypot:
            breakdown.warnings.append("🚨 HONEYPOT")
            return breakdown

        # 1. Social buzz
        if signals.social_buzz:
            breakdown.social_buzz = max(0, min(self.buzz_cap, signals.social_buzz))
            if breakdown.social_buzz >= self.viral_buzz:
                breakdown.strengths.append(f"🔥 VIRAL ({signals.social_mentions} mentions)")

        # 2. Security
        security = min(self.security_cap, max(0.0, signals.security_score) * self.security_weight)
        if signals.top_holder_pct > self.top_holder_threshold:
            security = max(0.0, security - self.top_holder_penalty)
            breakdown.warnings.append(f"⚠️ Top holder: {signals.top_holder_pct:.1f}%")
        breakdown.security = security
        if signals.security_score >= self.strong_security:
            breakdown.strengths.append("✅ Strong security")

        # 3. Liquidity
        breakdown.liquidity = self._liquidity_points(signals.liquidity)
        if self.liquidity_bands and signals.liquidity > self.liquidity_bands[0][0]:
            breakdown.strengths.append(f"💰 ${signals.liquidity / 1000:,.0f}k liquidity")

        # 4. Social presence
        breakdown.social_presence = (
            (self.website_points if signals.has_website else 0)
            + (self.twitter_points if signals.has_twitter else 0)
            + (self.telegram_points if signals.has_telegram else 0)
        )

        # 5. Timing
        breakdown.timing = self._timing_points(signals.age_minutes)
        if breakdown.timing == self.optimal_points and self.optimal_points:
            breakdown.strengths.append("⏰ Optimal timing")

        total = (
            breakdown.social_buzz + breakdown.security + breakdown.liquidity
            + breakdown.social_presence + breakdown.timing
        )
        # Half-up rounding
        breakdown.total = min(MAX_SCORE, int(max(0.0, total) + 0.5))
        return breakdown

    def _liquidity_points(self, liquidity: float) -> int:
        for floor, points in self.liquidity_bands:
            if liquidity > floor:
                return points
        return 0

    def _timing_points(self, age_minutes) -> int:
        if age_minutes is None:
            return 0
        if self.optimal_min_age <= age_minutes <= self.optimal_max_age:
            return self.optimal_points
        if age_minutes < self.optimal_min_age:
            return self.early_points
        return 0
