"""Intersect the requirement catalog with a deal's context."""

from __future__ import annotations

from collections.abc import Iterable

from dealdesk.models.checklist import RequirementDefinition
from dealdesk.modules.requirements.context import DealContext


def filter_eligible(
    context: DealContext,
    definitions: Iterable[RequirementDefinition],
) -> list[RequirementDefinition]:
    """Definitions that apply to the deal, in the order given."""
    return [definition for definition in definitions if definition.matches(context)]


def is_eligible(context: DealContext, definition: RequirementDefinition) -> bool:
    return definition.is_active and definition.matches(context)
