# Gym access events: database models
# Import all models here for SQLAlchemy discovery

from gym_access.models.raw_event import RawEvent                   # noqa
from gym_access.models.person_mapping import PersonMapping         # noqa
from gym_access.models.attendance_record import AttendanceRecord   # noqa
from gym_access.models.access_denial_log import AccessDenialLog    # noqa
from gym_access.models.access_integration import AccessIntegration # noqa
from gym_access.models.sync_log import SyncLog                     # noqa
from gym_access.models.processing_job import ProcessingJob         # noqa
