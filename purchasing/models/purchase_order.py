import enum
import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Numeric,
    DateTime,
    Date,
    Text,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from purchasing.database import Base, utcnow


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "draft"
    UNDER_ASSISTANT_REVIEW = "under_assistant_review"
    REJECTED_BY_ASSISTANT = "rejected_by_assistant"
    UNDER_MANAGER_REVIEW = "under_manager_review"
    REJECTED_BY_MANAGER = "rejected_by_manager"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RequestType(str, enum.Enum):
    PURCHASE = "purchase"
    MAINTENANCE = "maintenance"


class Currency(str, enum.Enum):
    SYP = "SYP"
    USD = "USD"


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    request_type: Mapped[str] = mapped_column(String(20), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(200), nullable=False)
    execution_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(
        String(50), default=PurchaseOrderStatus.DRAFT.value
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    supplier_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("vendors.id")
    )
    attachment_url: Mapped[Optional[str]] = mapped_column(Text)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="chk_po_total_non_negative"),
        Index("idx_po_status", "status"),
        Index("idx_po_created_by", "created_by"),
        Index("idx_po_supplier", "supplier_id"),
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("items.id")
    )
    item_code: Mapped[Optional[str]] = mapped_column(String(50))
    item_name: Mapped[Optional[str]] = mapped_column(String(200))
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(30), nullable=False)
    received_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 3))
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    line_total: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_number", name="uq_po_item_line"),
        CheckConstraint("quantity > 0", name="chk_po_item_qty"),
        CheckConstraint("price IS NULL OR price >= 0", name="chk_po_item_price"),
        Index("idx_po_items_po", "purchase_order_id"),
    )
