"""Tests for deal releases: partner status machine, access levels and the access log."""

import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import text

from dealdesk.core.exceptions import (
    AccessLockedError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from dealdesk.models.core import FundingPartner
from dealdesk.models.enums import AccessLevel, DealReleaseStatus, PartnerAction, PartnerStatus
from dealdesk.modules.checklist import service as checklist_service
from dealdesk.modules.deal_releases import service, transitions
from dealdesk.modules.deal_releases.disclosure import locked_sections, partner_deal_view, visible_sections
from dealdesk.modules.deal_releases.service import Actor
from tests.conftest import ADMIN_USER_ID, PARTNER_ID, PARTNER_USER_ID

pytestmark = pytest.mark.anyio

S = DealReleaseStatus
PARTNER_ACTOR = Actor(user_id=PARTNER_USER_ID, ip_address="203.0.113.7", user_agent="pytest")


async def _set_state(db, release, status, access_level=None):
    release.status = status
    if access_level is not None:
        release.access_level = access_level
    await db.commit()
    await db.refresh(release)


async def _actions(db, deal_id):
    return [log.action for log in await service.list_access_logs(db, deal_id)]


# ── Partner flow ──────────────────────────────────────────────────────────────


async def test_view_then_interest_scenario(db, release):
    await service.mark_viewed(db, release, PARTNER_ACTOR)
    assert release.status == S.VIEWED
    assert release.first_viewed_at is not None
    first_viewed_at = release.first_viewed_at

    await service.express_interest(db, release, PARTNER_ACTOR)

    assert release.status == S.INTERESTED
    assert release.access_level == AccessLevel.FULL
    assert release.interest_expressed_at is not None
    assert release.first_viewed_at == first_viewed_at

    logs = await service.list_access_logs(db, release.deal_id)
    assert [log.action for log in logs] == [
        PartnerAction.VIEWED_SUMMARY,
        PartnerAction.EXPRESSED_INTEREST,
    ]
    assert logs[1].details["previous_status"] == "viewed"
    assert logs[1].details["new_status"] == "interested"
    assert logs[1].user_id == PARTNER_USER_ID
    assert logs[1].ip_address == "203.0.113.7"


async def test_interest_straight_from_pending(db, release):
    await service.express_interest(db, release)
    assert release.status == S.INTERESTED
    assert release.access_level == AccessLevel.FULL


async def test_interest_keeps_documents_access(db, release):
    await _set_state(db, release, S.VIEWED, AccessLevel.DOCUMENTS)

    await service.express_interest(db, release)

    assert release.access_level == AccessLevel.DOCUMENTS


async def test_interest_is_idempotent(db, release):
    await service.express_interest(db, release)
    await service.express_interest(db, release)

    assert await _actions(db, release.deal_id) == [PartnerAction.EXPRESSED_INTEREST]


@pytest.mark.parametrize("status", [S.REVIEWING, S.DUE_DILIGENCE, S.TERM_SHEET, S.PASSED, S.FUNDED])
async def test_interest_refused_after_interest_stage(db, release, status):
    await _set_state(db, release, status)
    with pytest.raises(InvalidStateTransitionError):
        await service.express_interest(db, release)


async def test_mark_viewed_is_noop_after_pending(db, release):
    await _set_state(db, release, S.INTERESTED, AccessLevel.FULL)

    await service.mark_viewed(db, release)

    assert release.status == S.INTERESTED
    assert release.first_viewed_at is None
    assert await _actions(db, release.deal_id) == []


async def test_mark_viewed_refused_on_closed_release(db, release):
    await _set_state(db, release, S.PASSED)
    with pytest.raises(InvalidStateTransitionError):
        await service.mark_viewed(db, release)


@pytest.mark.parametrize("status", sorted(transitions.ACTIVE_STATUSES, key=lambda s: s.value))
async def test_pass_from_any_open_status(db, release, status):
    await _set_state(db, release, status, AccessLevel.FULL)

    await service.pass_deal(db, release, reason="  Outside our mandate  ", actor=PARTNER_ACTOR)

    assert release.status == S.PASSED
    assert release.pass_reason == "Outside our mandate"
    assert release.passed_at is not None
    assert release.access_level == AccessLevel.FULL

    with pytest.raises(InvalidStateTransitionError):
        await service.pass_deal(db, release)

    logs = await service.list_access_logs(db, release.deal_id)
    assert [log.action for log in logs] == [PartnerAction.PASSED]
    assert logs[0].details["pass_reason"] == "Outside our mandate"
    assert logs[0].details["previous_status"] == status.value


async def test_pass_without_reason(db, release):
    await service.pass_deal(db, release, reason="   ")
    assert release.pass_reason is None


async def test_start_due_diligence_unlocks_documents(db, release):
    await service.express_interest(db, release)

    await service.start_due_diligence(db, release, PARTNER_ACTOR)

    assert release.status == S.DUE_DILIGENCE
    assert release.access_level == AccessLevel.DOCUMENTS
    assert await _actions(db, release.deal_id) == [
        PartnerAction.EXPRESSED_INTEREST,
        PartnerAction.ADDED_NOTE,
    ]


async def test_due_diligence_needs_interest_first(db, release):
    await _set_state(db, release, S.VIEWED)
    with pytest.raises(InvalidStateTransitionError):
        await service.start_due_diligence(db, release)


async def test_add_note(db, release):
    await service.add_note(db, release, "  Follow up on loss history ")
    assert release.partner_notes == "Follow up on loss history"
    assert release.status == S.PENDING

    await service.add_note(db, release, "Follow up on loss history")
    assert await _actions(db, release.deal_id) == [PartnerAction.ADDED_NOTE]


async def test_add_note_validation(db, release):
    with pytest.raises(ValidationError):
        await service.add_note(db, release, "   ")

    await _set_state(db, release, S.FUNDED)
    with pytest.raises(InvalidStateTransitionError):
        await service.add_note(db, release, "Too late")


# ── Access-gated actions ──────────────────────────────────────────────────────


async def test_record_access_requires_full(db, release):
    with pytest.raises(AccessLockedError):
        await service.record_access(db, release, PartnerAction.VIEWED_FULL)

    await service.express_interest(db, release)
    entry = await service.record_access(db, release, PartnerAction.DOWNLOADED_PACKAGE, PARTNER_ACTOR)

    assert entry.action == PartnerAction.DOWNLOADED_PACKAGE
    assert entry.details["access_level"] == "full"


async def test_document_download_requires_documents_level(db, release):
    document_id = uuid.uuid4()
    await _set_state(db, release, S.INTERESTED, AccessLevel.FULL)
    with pytest.raises(AccessLockedError):
        await service.record_access(
            db, release, PartnerAction.DOWNLOADED_DOCUMENT, document_id=document_id
        )

    await _set_state(db, release, S.INTERESTED, AccessLevel.DOCUMENTS)
    entry = await service.record_access(
        db, release, PartnerAction.DOWNLOADED_DOCUMENT, document_id=document_id
    )
    assert entry.details["document_id"] == str(document_id)


async def test_record_access_rejects_status_actions(db, release):
    with pytest.raises(ValidationError):
        await service.record_access(db, release, PartnerAction.PASSED)


# ── Admin operations ──────────────────────────────────────────────────────────


async def test_create_release(db, deal, partner):
    release = await service.create_release(
        db,
        deal_id=deal.id,
        partner_id=partner.id,
        released_by=ADMIN_USER_ID,
        release_notes="Good fit for the bridge book",
    )
    assert release.status == S.PENDING
    assert release.access_level == AccessLevel.SUMMARY
    assert release.released_at is not None

    with pytest.raises(ValidationError):
        await service.create_release(
            db, deal_id=deal.id, partner_id=partner.id, released_by=ADMIN_USER_ID
        )


async def test_create_release_checks_partner_and_deal(db, deal):
    inactive = FundingPartner(name="Dormant LP", slug="dormant-lp", status=PartnerStatus.INACTIVE)
    db.add(inactive)
    await db.commit()

    with pytest.raises(ValidationError):
        await service.create_release(
            db, deal_id=deal.id, partner_id=inactive.id, released_by=ADMIN_USER_ID
        )
    with pytest.raises(NotFoundError):
        await service.create_release(
            db, deal_id=uuid.uuid4(), partner_id=inactive.id, released_by=ADMIN_USER_ID
        )


async def test_admin_transition_moves_forward_and_skips(db, release):
    await _set_state(db, release, S.INTERESTED, AccessLevel.FULL)

    await service.admin_transition(db, release.id, S.DUE_DILIGENCE, notes="Docs requested")
    assert release.status == S.DUE_DILIGENCE
    assert release.access_level == AccessLevel.DOCUMENTS

    await service.admin_transition(db, release.id, S.FUNDED)
    assert release.status == S.FUNDED

    logs = await service.list_access_logs(db, release.deal_id)
    assert [log.action for log in logs] == [PartnerAction.ADDED_NOTE, PartnerAction.ADDED_NOTE]
    assert logs[0].details == {
        "previous_status": "interested",
        "new_status": "due_diligence",
        "notes": "Docs requested",
        "pass_reason": None,
    }


async def test_admin_term_sheet_is_logged_as_term_sheet(db, release):
    await _set_state(db, release, S.REVIEWING, AccessLevel.FULL)

    await service.admin_transition(db, release.id, S.TERM_SHEET)

    assert await _actions(db, release.deal_id) == [PartnerAction.SUBMITTED_TERM_SHEET]


async def test_admin_transition_refuses_backwards_and_early_moves(db, release):
    with pytest.raises(InvalidStateTransitionError):
        await service.admin_transition(db, release.id, S.REVIEWING)

    await _set_state(db, release, S.DUE_DILIGENCE, AccessLevel.DOCUMENTS)
    with pytest.raises(InvalidStateTransitionError):
        await service.admin_transition(db, release.id, S.REVIEWING)


@pytest.mark.parametrize("target", [S.PENDING, S.VIEWED, S.INTERESTED, S.PASSED])
async def test_admin_transition_targets(db, release, target):
    with pytest.raises(ValidationError):
        await service.admin_transition(db, release.id, target)


async def test_admin_transition_to_current_status_is_noop(db, release):
    await _set_state(db, release, S.REVIEWING, AccessLevel.FULL)
    await service.admin_transition(db, release.id, S.REVIEWING)
    assert await _actions(db, release.deal_id) == []


async def test_set_access_level_allows_downgrade(db, release):
    await service.express_interest(db, release)

    await service.set_access_level(db, release.id, AccessLevel.SUMMARY, notes="NDA lapsed")

    assert release.access_level == AccessLevel.SUMMARY
    assert release.status == S.INTERESTED
    logs = await service.list_access_logs(db, release.deal_id)
    assert logs[-1].details["previous_access_level"] == "full"
    assert logs[-1].details["new_access_level"] == "summary"


async def test_unknown_release(db):
    with pytest.raises(NotFoundError):
        await service.get_release(db, uuid.uuid4())


# ── Concurrency ───────────────────────────────────────────────────────────────


async def test_stale_interest_after_concurrent_pass_is_refused(db, session_factory, release):
    async with session_factory() as other:
        fresh = await service.get_release(other, release.id)
        await service.pass_deal(other, fresh, reason="Committee declined")

    # ``release`` still reads pending in this session.
    assert release.status == S.PENDING
    with pytest.raises(InvalidStateTransitionError):
        await service.express_interest(db, release)

    assert release.status == S.PASSED
    assert release.access_level == AccessLevel.SUMMARY


async def test_stale_actions_already_done_are_noops(db, session_factory, release):
    async with session_factory() as other:
        fresh = await service.get_release(other, release.id)
        await service.express_interest(other, fresh)

    await service.mark_viewed(db, release)
    assert release.status == S.INTERESTED

    await service.express_interest(db, release)
    assert release.access_level == AccessLevel.FULL
    assert await _actions(db, release.deal_id) == [PartnerAction.EXPRESSED_INTEREST]


# ── Reads and disclosure ──────────────────────────────────────────────────────


async def test_partner_lookups(db, deal, release):
    assert (await service.get_partner_release(db, PARTNER_ID, deal.id)).id == release.id
    with pytest.raises(NotFoundError):
        await service.get_partner_release(db, uuid.uuid4(), deal.id)

    assert [r.id for r in await service.list_releases_for_partner(db, PARTNER_ID)] == [release.id]
    assert await service.list_releases_for_partner(db, PARTNER_ID, status=S.PASSED) == []


def test_dashboard_stats():
    releases = [
        SimpleNamespace(status=s)
        for s in (S.PENDING, S.PENDING, S.VIEWED, S.INTERESTED, S.REVIEWING,
                  S.DUE_DILIGENCE, S.TERM_SHEET, S.PASSED, S.FUNDED)
    ]

    stats = service.dashboard_stats(releases)

    assert stats.total == 9
    assert stats.new == 2
    assert stats.in_progress == 3
    assert stats.due_diligence == 1
    assert stats.passed == 1
    assert stats.funded == 1


def test_sections_are_cumulative():
    assert visible_sections(AccessLevel.SUMMARY) == ["summary"]
    assert locked_sections(AccessLevel.SUMMARY) == [
        "company", "considerations", "portfolio_metrics", "contact", "documents",
    ]
    assert locked_sections(AccessLevel.FULL) == ["documents"]
    assert locked_sections(AccessLevel.DOCUMENTS) == []


async def test_summary_view_hides_company_and_contact(db, deal, release):
    view = partner_deal_view(deal, release)

    assert view.qualification_code == "DD-2026-0042"
    assert view.funding_tier.value == "10m_50m"
    assert view.strengths == ["Seasoned sponsor", "Low historical loss rate"]
    assert view.company_name is None
    assert view.capital_amount is None
    assert view.contact is None
    assert view.document_counts is None
    assert "contact" in view.locked_sections


async def test_full_view_reveals_company_but_not_documents(db, deal, release):
    await service.express_interest(db, release)

    view = await service.build_partner_view(db, release)

    assert view.company_name == "Harbor Commercial Lending"
    assert view.capital_amount == "$25,000,000"
    assert view.contact.email == "dana@harbor.test"
    assert view.portfolio_metrics["default_rate"] == "0.8%"
    assert view.document_counts is None
    assert view.locked_sections == ["documents"]


async def test_documents_view_counts_received_documents(db, deal, catalog, release):
    await checklist_service.set_uploaded(db, deal.id, catalog["audit"].id, uuid.uuid4())
    await checklist_service.set_uploaded(db, deal.id, catalog["appraisal"].id, uuid.uuid4())
    await checklist_service.waive(db, deal.id, catalog["formation"].id, reason="On file")
    await _set_state(db, release, S.DUE_DILIGENCE, AccessLevel.DOCUMENTS)

    view = await service.build_partner_view(db, release)

    assert view.document_counts == {"financials": 1, "property": 1}
    assert view.locked_sections == []


# ── Access log failures ───────────────────────────────────────────────────────


async def _break_access_log(db):
    await db.execute(text("DROP TABLE partner_access_logs"))
    await db.commit()


async def test_failed_log_write_keeps_interest(db, release):
    await _break_access_log(db)

    returned = await service.express_interest(db, release, PARTNER_ACTOR)

    assert returned.status == S.INTERESTED
    assert returned.access_level == AccessLevel.FULL
    assert returned.interest_expressed_at is not None


async def test_failed_log_write_keeps_pass_and_admin_moves(db, release):
    await _set_state(db, release, S.INTERESTED, AccessLevel.FULL)
    await _break_access_log(db)

    moved = await service.admin_transition(db, release.id, S.DUE_DILIGENCE)
    assert moved.status == S.DUE_DILIGENCE
    assert moved.access_level == AccessLevel.DOCUMENTS

    passed = await service.pass_deal(db, release, reason="Closed fund")
    assert passed.status == S.PASSED
    assert passed.pass_reason == "Closed fund"


async def test_failed_access_record_returns_none(db, release):
    await _set_state(db, release, S.INTERESTED, AccessLevel.FULL)
    await _break_access_log(db)

    assert await service.record_access(db, release, PartnerAction.VIEWED_FULL) is None
    assert release.access_level == AccessLevel.FULL
