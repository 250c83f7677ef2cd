import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)

from portal.core.clock import utcnow
from portal.db.db import Base


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    expired = "expired"


class PaymentTransaction(Base):
    __tablename__ = "billing_transaction_accounts"

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("account.id"), nullable=False, index=True
    )
    username = Column(String(50), nullable=False)
    package = Column(String(50), nullable=False)
    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    status = Column(
        Enum(PaymentStatus, native_enum=False, length=20),
        default=PaymentStatus.pending,
        nullable=False,
        index=True,
    )
    # memo the player types into the bank transfer, e.g. "TLTH alice 167469704"
    transaction_code = Column(String(100), unique=True, nullable=False)
    qr_code_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    bank_transaction_id = Column(String(100), nullable=True)


class BillingPackage(Base):
    __tablename__ = "billing_package"

    id = Column(Integer, primary_key=True, autoincrement=True)
    package_code = Column(String(50), unique=True, nullable=False)
    package_name = Column(String(100), nullable=False)
    silver_amount = Column(Integer, nullable=False, default=0)
    bonus_silver = Column(Integer, nullable=False, default=0)
    price_vnd = Column(Integer, nullable=False, default=0)
    is_popular = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=True)
