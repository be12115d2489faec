"""Import all models so Base.metadata is complete for create_all and alembic."""

from dealdesk.models.base import BaseModel, ModelMixin, TimestampedModel  # noqa: F401
from dealdesk.models.checklist import DealChecklistStatus, RequirementDefinition  # noqa: F401
from dealdesk.models.core import Company, Deal, FundingPartner  # noqa: F401
from dealdesk.models.deal_releases import DealRelease, PartnerAccessLog  # noqa: F401
