from bizhub.models.user import User  # noqa: F401
from bizhub.models.invoice import (  # noqa: F401
    Invoice,
    InvoiceItem,
    InvoicePayment,
    InvoiceStatus,
    TransactionType,
)
from bizhub.models.activity_log import ActivityLog, ActionType, EntityType  # noqa: F401
from bizhub.models.system_setting import SystemSetting  # noqa: F401
