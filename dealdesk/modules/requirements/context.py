"""Deal context resolution: the two facts the catalog predicates need."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from dealdesk.models.enums import FundingTier
from dealdesk.modules.requirements.funding import normalize_funding_tier


@dataclass(frozen=True)
class DealContext:
    """Derived per-deal snapshot. None means unknown."""

    asset_type: str | None = None
    funding_tier: FundingTier | None = None


def _first_present(*values: Any) -> Any:
    for value in values:
        if isinstance(value, str):
            value = value.strip()
        if value:
            return value
    return None


def _first_asset(data: dict[str, Any]) -> str | None:
    assets = data.get("assets")
    if isinstance(assets, (list, tuple)) and assets:
        return assets[0]
    return None


def resolve_asset_type(deal_data: dict[str, Any], company_data: dict[str, Any]) -> str | None:
    """Deal-level values win over the owning company's profile."""
    return _first_present(
        deal_data.get("assetType"),
        _first_asset(deal_data),
        company_data.get("assetType"),
        _first_asset(company_data),
    )


def resolve_funding_amount(
    capital_amount: str | None,
    deal_data: dict[str, Any],
    company_data: dict[str, Any],
) -> str | None:
    return _first_present(
        capital_amount,
        deal_data.get("fundingAmount"),
        company_data.get("capitalAmount"),
    )


def resolve_deal_context(deal: Any, company: Any | None = None) -> DealContext:
    """Build a DealContext from a deal record and its owning company.

    Reads ``capital_amount`` and ``qualification_data`` attributes only; either
    record may be partially populated. Pure.
    """
    deal_data = getattr(deal, "qualification_data", None) or {}
    company_data = (getattr(company, "qualification_data", None) or {}) if company else {}

    amount = resolve_funding_amount(getattr(deal, "capital_amount", None), deal_data, company_data)
    return DealContext(
        asset_type=resolve_asset_type(deal_data, company_data),
        funding_tier=normalize_funding_tier(amount),
    )
