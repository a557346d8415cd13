"""Central model registry; import all models so Alembic autodiscover works."""

from purchasing.database import Base  # noqa: F401

from purchasing.models.user import User, UserRole  # noqa: F401
from purchasing.models.vendor import Vendor, CatalogStatus  # noqa: F401
from purchasing.models.item import Item  # noqa: F401
from purchasing.models.purchase_order import (  # noqa: F401
    Currency,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
    RequestType,
)
from purchasing.models.change_request import (  # noqa: F401
    CatalogEntityType,
    ChangeRequest,
    ChangeRequestStatus,
    OperationType,
)
from purchasing.models.audit_log import AuditLog  # noqa: F401
