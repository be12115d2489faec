"""String enums shared by models, schemas and services."""

import enum


# ── Identity ─────────────────────────────────────────────────────────────────


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    CLIENT = "client"
    PARTNER = "partner"


class PartnerStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ── Requirement catalog ──────────────────────────────────────────────────────


class RequirementCategory(str, enum.Enum):
    # Declaration order is the checklist display order.
    CORPORATE = "corporate"
    FINANCIALS = "financials"
    LEGAL = "legal"
    DUE_DILIGENCE = "due_diligence"
    LOAN_TAPE = "loan_tape"
    PROPERTY = "property"
    PERSONAL = "personal"
    OTHER = "other"

    @property
    def rank(self) -> int:
        return _CATEGORY_ORDER.index(self)


_CATEGORY_ORDER = list(RequirementCategory)


class AssetClass(str, enum.Enum):
    RESIDENTIAL_RE = "residential_re"
    COMMERCIAL_RE = "commercial_re"
    CONSUMER_LOANS = "consumer_loans"
    SMB_LOANS = "smb_loans"
    AUTO_LOANS = "auto_loans"
    EQUIPMENT_FINANCE = "equipment_finance"
    FACTORING = "factoring"
    CRYPTO_LENDING = "crypto_lending"
    OTHER = "other"


class FundingTier(str, enum.Enum):
    # Declaration order is the total order used by minimum-tier predicates.
    UNDER_500K = "under_500k"
    FROM_500K_TO_2M = "500k_2m"
    FROM_2M_TO_10M = "2m_10m"
    FROM_10M_TO_50M = "10m_50m"
    OVER_50M = "over_50m"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)


_TIER_ORDER = list(FundingTier)


# ── Checklist ────────────────────────────────────────────────────────────────


class ChecklistItemStatus(str, enum.Enum):
    PENDING = "pending"
    UPLOADED = "uploaded"
    APPROVED = "approved"
    WAIVED = "waived"


# ── Deal releases ────────────────────────────────────────────────────────────


class AccessLevel(str, enum.Enum):
    SUMMARY = "summary"
    FULL = "full"
    DOCUMENTS = "documents"

    @property
    def rank(self) -> int:
        return _ACCESS_ORDER.index(self)


_ACCESS_ORDER = list(AccessLevel)


class DealReleaseStatus(str, enum.Enum):
    PENDING = "pending"
    VIEWED = "viewed"
    INTERESTED = "interested"
    REVIEWING = "reviewing"
    DUE_DILIGENCE = "due_diligence"
    TERM_SHEET = "term_sheet"
    PASSED = "passed"
    FUNDED = "funded"


class PartnerAction(str, enum.Enum):
    VIEWED_SUMMARY = "viewed_summary"
    VIEWED_FULL = "viewed_full"
    DOWNLOADED_PACKAGE = "downloaded_package"
    DOWNLOADED_DOCUMENT = "downloaded_document"
    EXPRESSED_INTEREST = "expressed_interest"
    PASSED = "passed"
    SUBMITTED_TERM_SHEET = "submitted_term_sheet"
    ADDED_NOTE = "added_note"
