"""Domain modules package."""

from app.modules.cohorts import models as cohorts_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.notifications import models as notifications_models  # noqa: F401
from app.modules.outbox import models as outbox_models  # noqa: F401
from app.modules.rescheduling import models as rescheduling_models  # noqa: F401
from app.modules.students import models as students_models  # noqa: F401
from app.modules.teachers import models as teachers_models  # noqa: F401
