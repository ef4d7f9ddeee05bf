# Import models here so Alembic can discover them via metadata
from .user import User, UserSession  # noqa: F401
from .advertiser import Advertiser  # noqa: F401
from .publisher import Publisher  # noqa: F401
from .offer import Offer  # noqa: F401
from .creative_request import CreativeRequest  # noqa: F401
from .request_status_history import RequestStatusHistory  # noqa: F401
from .creative import Creative  # noqa: F401
from .background_job import BackgroundJob  # noqa: F401
from .background_job_event import BackgroundJobEvent  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
from .idempotency_key import IdempotencyKey  # noqa: F401
from .system_state import SystemState  # noqa: F401
from .external_task import ExternalTask  # noqa: F401
from .sync_history import SyncHistory  # noqa: F401
