"""Progressive disclosure of deal data to partners, by release access level."""

from __future__ import annotations

from dealdesk.models.core import Deal
from dealdesk.models.deal_releases import DealRelease
from dealdesk.models.enums import AccessLevel
from dealdesk.modules.deal_releases.schemas import ContactInfo, PartnerDealView
from dealdesk.modules.requirements.context import resolve_deal_context

# Sections unlocked at each level, cumulative in level order.
SECTIONS: dict[AccessLevel, tuple[str, ...]] = {
    AccessLevel.SUMMARY: ("summary",),
    AccessLevel.FULL: ("company", "considerations", "portfolio_metrics", "contact"),
    AccessLevel.DOCUMENTS: ("documents",),
}


def get_access_level(release: DealRelease) -> AccessLevel:
    return release.access_level


def visible_sections(level: AccessLevel) -> list[str]:
    return [s for lvl in AccessLevel if lvl.rank <= level.rank for s in SECTIONS[lvl]]


def locked_sections(level: AccessLevel) -> list[str]:
    return [s for lvl in AccessLevel if lvl.rank > level.rank for s in SECTIONS[lvl]]


def can_access(release: DealRelease, required: AccessLevel) -> bool:
    return get_access_level(release).rank >= required.rank


def partner_deal_view(
    deal: Deal,
    release: DealRelease,
    document_counts: dict[str, int] | None = None,
) -> PartnerDealView:
    """Build the partner-facing view of ``deal``, hiding what ``release`` does not unlock."""
    level = get_access_level(release)
    context = resolve_deal_context(deal, deal.company)

    view = PartnerDealView(
        release_id=release.id,
        deal_id=deal.id,
        status=release.status,
        access_level=level,
        released_at=release.released_at,
        release_notes=release.release_notes,
        partner_notes=release.partner_notes,
        qualification_code=deal.qualification_code,
        qualification_tier=deal.qualification_tier,
        overall_score=deal.overall_score,
        funding_tier=context.funding_tier,
        opportunity_size=deal.opportunity_size,
        geographic_focus=deal.geographic_focus,
        asset_classes=list(deal.asset_classes or []),
        strengths=list(deal.strengths or []),
        locked_sections=locked_sections(level),
    )

    if level.rank >= AccessLevel.FULL.rank:
        company = deal.company
        view.company_name = company.name if company else None
        view.company_description = company.description if company else None
        view.capital_amount = deal.capital_amount
        view.considerations = list(deal.considerations or [])
        view.next_steps = list(deal.next_steps or [])
        view.portfolio_metrics = dict(deal.portfolio_metrics or {})
        view.contact = ContactInfo(
            name=deal.contact_name,
            email=deal.contact_email,
            phone=deal.contact_phone,
        )

    if level.rank >= AccessLevel.DOCUMENTS.rank:
        view.document_counts = dict(document_counts or {})

    return view
