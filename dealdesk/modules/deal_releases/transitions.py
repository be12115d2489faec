"""Deal release lifecycle: which status may follow which, and who may move it.

    pending -> viewed -> interested -> reviewing -> due_diligence -> term_sheet -> funded
    any non-terminal status -> passed

``passed`` and ``funded`` are terminal.
"""

from dealdesk.models.enums import AccessLevel, DealReleaseStatus

S = DealReleaseStatus

TERMINAL_STATUSES = frozenset({S.PASSED, S.FUNDED})
ACTIVE_STATUSES = frozenset(s for s in S if s not in TERMINAL_STATUSES)

# Statuses from which a partner's first look or interest still changes something.
VIEWABLE_STATUSES = frozenset({S.PENDING})
INTEREST_SOURCES = frozenset({S.PENDING, S.VIEWED})
DUE_DILIGENCE_SOURCES = frozenset({S.INTERESTED, S.REVIEWING})

# Ordered stages after interest; admins move releases forward along this line.
PIPELINE = (S.INTERESTED, S.REVIEWING, S.DUE_DILIGENCE, S.TERM_SHEET, S.FUNDED)
ADMIN_TARGETS = frozenset(PIPELINE[1:])

# Minimum access a status carries with it.
STATUS_ACCESS_FLOOR: dict[DealReleaseStatus, AccessLevel] = {
    S.INTERESTED: AccessLevel.FULL,
    S.DUE_DILIGENCE: AccessLevel.DOCUMENTS,
}


def is_terminal(status: DealReleaseStatus) -> bool:
    return status in TERMINAL_STATUSES


def admin_sources(target: DealReleaseStatus) -> frozenset[DealReleaseStatus]:
    """Statuses an admin may advance from to reach ``target`` (skips allowed)."""
    if target not in ADMIN_TARGETS:
        return frozenset()
    return frozenset(PIPELINE[: PIPELINE.index(target)])


def raise_access(current: AccessLevel, status: DealReleaseStatus) -> AccessLevel:
    """Access level after entering ``status``; never lowers the current level."""
    floor = STATUS_ACCESS_FLOOR.get(status)
    if floor is None or current.rank >= floor.rank:
        return current
    return floor
