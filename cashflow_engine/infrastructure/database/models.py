"""SQLAlchemy ORM models for transactions, recurring templates and installment plans"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    Enum,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from cashflow_engine.domain.models import Frequency, InstallmentStatus, TransactionType

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class TransactionRecord(Base):
    """Confirmed or scheduled transaction"""

    __tablename__ = "financial_transaction"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transaction_amount_positive"),
        CheckConstraint(
            "installment_id IS NULL OR recurring_source_id IS NULL",
            name="ck_transaction_single_origin",
        ),
        CheckConstraint(
            "NOT is_scheduled OR scheduled_date IS NOT NULL",
            name="ck_transaction_scheduled_date",
        ),
        UniqueConstraint("recurring_source_id", "date", name="uq_transaction_recurring_occurrence"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    description = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    type = Column(Enum(TransactionType, native_enum=False, length=16), nullable=False)
    date = Column(Date, nullable=False, index=True)
    is_scheduled = Column(Boolean, nullable=False, default=False)
    scheduled_date = Column(Date, nullable=True, index=True)
    category_id = Column(Text, nullable=False)
    credit_card_id = Column(Text, nullable=True)
    installment_id = Column(String(36), ForeignKey("installment.id", ondelete="SET NULL"), nullable=True)
    recurring_source_id = Column(
        String(36), ForeignKey("recurring_transaction.id", ondelete="SET NULL"), nullable=True
    )
    user_id = Column(Text, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    installment = relationship("InstallmentRecord", back_populates="transactions")
    recurring_source = relationship("RecurringTransactionRecord", back_populates="transactions")


class RecurringTransactionRecord(Base):
    """Template generating transactions on a frequency"""

    __tablename__ = "recurring_transaction"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_recurring_amount_positive"),
        CheckConstraint("next_due_date >= start_date", name="ck_recurring_next_due_after_start"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    description = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    type = Column(Enum(TransactionType, native_enum=False, length=16), nullable=False)
    frequency = Column(Enum(Frequency, native_enum=False, length=16), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    category_id = Column(Text, nullable=False)
    credit_card_id = Column(Text, nullable=True)
    user_id = Column(Text, nullable=False, index=True)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("TransactionRecord", back_populates="recurring_source")


class InstallmentRecord(Base):
    """Installment plan with payment progress"""

    __tablename__ = "installment"
    __table_args__ = (
        CheckConstraint("total_cents > 0", name="ck_installment_total_positive"),
        CheckConstraint("installments >= 2", name="ck_installment_count"),
        CheckConstraint(
            "current_installment >= 0 AND current_installment <= installments",
            name="ck_installment_progress",
        ),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    description = Column(Text, nullable=False)
    total_cents = Column(BigInteger, nullable=False)
    installments = Column(Integer, nullable=False)
    current_installment = Column(Integer, nullable=False, default=0)
    status = Column(
        Enum(InstallmentStatus, native_enum=False, length=16),
        nullable=False,
        default=InstallmentStatus.ACTIVE,
    )
    start_date = Column(Date, nullable=False)
    category_id = Column(Text, nullable=False)
    credit_card_id = Column(Text, nullable=True)
    user_id = Column(Text, nullable=False, index=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("TransactionRecord", back_populates="installment")

    __mapper_args__ = {"version_id_col": version}
