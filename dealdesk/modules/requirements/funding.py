"""Funding-amount normalisation into the ordered FundingTier buckets."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from dealdesk.models.enums import FundingTier

# Exclusive upper bounds; anything at or above the last bound is OVER_50M.
TIER_BREAKPOINTS: list[tuple[Decimal, FundingTier]] = [
    (Decimal("500000"), FundingTier.UNDER_500K),
    (Decimal("2000000"), FundingTier.FROM_500K_TO_2M),
    (Decimal("10000000"), FundingTier.FROM_2M_TO_10M),
    (Decimal("50000000"), FundingTier.FROM_10M_TO_50M),
]

_TIER_KEYS = {tier.value: tier for tier in FundingTier}
_NUMERIC_TOKEN = re.compile(r"\d[\d,]*(?:\.\d+)?")
_NON_NUMERIC = re.compile(r"[^0-9.]")


def tier_for_amount(amount: Decimal | int | float) -> FundingTier | None:
    """Bucket a parsed amount. Monotonic: a larger amount never gets a lower tier.

    NaN and infinite amounts are unreadable and return None.
    """
    value = Decimal(str(amount))
    if not value.is_finite():
        return None
    for upper_bound, tier in TIER_BREAKPOINTS:
        if value < upper_bound:
            return tier
    return FundingTier.OVER_50M


def _parse(text: str) -> Decimal | None:
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def normalize_funding_tier(raw: str | FundingTier | int | float | None) -> FundingTier | None:
    """Map a free-form capital request to a tier, or None when it cannot be read.

    Accepts a tier key ("2m_10m"), a plain amount ("$2,500,000") or a range
    ("$50,000,000 - $100,000,000", bucketed by its first figure). Never falls
    back to a default tier.
    """
    if raw is None:
        return None
    if isinstance(raw, FundingTier):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return tier_for_amount(raw)

    text = str(raw).strip()
    if not text:
        return None
    if text.lower() in _TIER_KEYS:
        return _TIER_KEYS[text.lower()]

    tokens = _NUMERIC_TOKEN.findall(text)
    if not tokens:
        return None

    if len(tokens) == 1:
        amount = _parse(_NON_NUMERIC.sub("", text))
        if amount is not None:
            return tier_for_amount(amount)

    # Range-style input: only the first figure counts.
    amount = _parse(tokens[0].replace(",", ""))
    if amount is None:
        return None
    return tier_for_amount(amount)
