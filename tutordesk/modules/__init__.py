"""Domain modules package."""

from tutordesk.modules.approvals import models as approvals_models  # noqa: F401
from tutordesk.modules.audit import models as audit_models  # noqa: F401
from tutordesk.modules.catalog import models as catalog_models  # noqa: F401
from tutordesk.modules.credits import models as credits_models  # noqa: F401
from tutordesk.modules.identity import models as identity_models  # noqa: F401
from tutordesk.modules.learners import models as learners_models  # noqa: F401
from tutordesk.modules.lessons import models as lessons_models  # noqa: F401
from tutordesk.modules.notifications import models as notifications_models  # noqa: F401
from tutordesk.modules.packages import models as packages_models  # noqa: F401
