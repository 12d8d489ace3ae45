"""Security gate: classifies a token before it is scored."""
from typing import Any, Optional

import structlog

from tokenradar.models import SecurityVerdict

logger = structlog.get_logger()

BURN_ADDRESSES = ("1111111111111111111111111111111", "null", "0x0000000000000000000000000000000000000000")


class SecurityGate:
    """Maps a provider's security record to a 0-100 score and a pass/flag/reject status."""

    def __init__(self, config: dict, client=None):
        security = config.get("security", {})

        self.client = client
        self.neutral_score = security.get("neutral_score", 40)
        self.top_holder_warn_pct = security.get("top_holder_warn_pct", 30)
        self.mintable_penalty = security.get("mintable_penalty", 30)

    async def assess(self, address: str) -> Optional[SecurityVerdict]:
        """Verdict for a token, or None when the provider has nothing to say."""
        if self.client is None:
            return None
        try:
            raw = await self.client.token_security(address)
        except Exception as e:
            logger.warning("security_check_failed", address=address, error=str(e))
            return None
        if not raw:
            logger.debug("security_unavailable", address=address)
            return None

        try:
            return self.evaluate(address, raw)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("security_parse_failed", address=address, error=str(e))
            return None

    def evaluate(self, address: str, raw: dict[str, Any]) -> SecurityVerdict:
        """Pure mapping from a raw security record to a verdict."""
        honeypot = _flag(raw.get("is_honeypot"))
        mintable = _flag(raw.get("is_mintable"))
        top_pct = _top_percent(raw.get("holders"))
        lp_pct = _top_percent(raw.get("lp_holders"))
        holder_count = int(float(raw.get("holder_count") or 0))
        lp_locked = _lp_locked(raw.get("lp_holders"))

        verdict = SecurityVerdict(
            address=address,
            score=self._score(honeypot, mintable, top_pct, lp_pct, holder_count),
            top_holder_pct=top_pct,
            holder_count=holder_count,
            is_honeypot=honeypot,
            is_mintable=mintable,
            lp_locked=lp_locked,
        )

        if honeypot:
            verdict.issues.append("🚨 HONEYPOT - Cannot sell!")
        if mintable:
            verdict.warnings.append("⚠️ Mintable")
        if top_pct > self.top_holder_warn_pct:
            verdict.warnings.append(f"⚠️ Top holder owns {top_pct:.1f}%")
        if raw.get("lp_holders") and not lp_locked:
            verdict.warnings.append("⚠️ LP not locked")

        if raw.get("is_honeypot") in ("0", 0, False):
            verdict.strengths.append("✅ Not a honeypot")
        if raw.get("holders") and top_pct < 10:
            verdict.strengths.append("✅ Well distributed")
        if lp_locked:
            verdict.strengths.append("✅ LP locked")
        if holder_count > 200:
            verdict.strengths.append(f"✅ {holder_count} holders")

        if verdict.issues:
            verdict.status = "reject"
        elif verdict.warnings:
            verdict.status = "flag"
        return verdict

    def _score(self, honeypot: bool, mintable: bool, top_pct: float, lp_pct: float, holders: int) -> int:
        if honeypot:
            return 0

        score = 100
        if mintable:
            score -= self.mintable_penalty

        if top_pct > 50:
            score -= 30
        elif top_pct > 40:
            score -= 20
        elif top_pct > 30:
            score -= 15
        elif top_pct > 20:
            score -= 10

        if lp_pct > 90:
            score -= 25
        elif lp_pct > 80:
            score -= 15

        if holders < 10:
            score -= 20
        elif holders < 50:
            score -= 10
        elif holders < 100:
            score -= 5

        return max(0, score)


def _flag(value: Any) -> bool:
    return str(value).strip() in ("1", "true", "True")


def _top_percent(entries: Any) -> float:
    """Share of the first entry, as a percentage (provider reports fractions)."""
    if not entries:
        return 0.0
    return float(entries[0].get("percent") or 0) * 100


def _lp_locked(lp_holders: Any) -> bool:
    if not lp_holders:
        return False
    top = (lp_holders[0].get("address") or "").lower()
    return any(burn in top for burn in BURN_ADDRESSES)
