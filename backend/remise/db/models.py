from remise.tenants.models import Tenant  # noqa: F401
from remise.auth.models import AuthToken, User  # noqa: F401
from remise.items.models import Item  # noqa: F401
from remise.evidence.models import Evidence  # noqa: F401
from remise.categories.models import Category  # noqa: F401
from remise.audit.models import AuditLog  # noqa: F401
from remise.notes.models import InvestigationNote  # noqa: F401
from remise.cases.models import (  # noqa: F401
    Case,
    CasePermission,
    CaseSuspect,
    CaseTimelineEvent,
    CaseUpdate,
)
