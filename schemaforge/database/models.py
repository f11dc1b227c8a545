"""
SQLAlchemy Models for SchemaForge

Tables:
1. accounts - per-account credit balance and billing policy
2. credit_reservations - reserve/commit/refund state for each billed request
3. credit_transactions - append-only audit trail of every balance change
4. schema_generations - one row per generation request (the GenerationRecord)
5. url_library - catalog of URLs an account has generated schemas for

Portable across PostgreSQL and SQLite (local dev and tests).
"""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text,
    ForeignKey, Enum, Index, CheckConstraint, UniqueConstraint,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp (columns are stored without tz info)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class GenerationStatus(enum.Enum):
    """Lifecycle status of a generation record"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class ReservationStatus(enum.Enum):
    """Fate of a credit reservation. Only RESERVED may transition."""
    RESERVED = "reserved"
    COMMITTED = "committed"
    REFUNDED = "refunded"


class TransactionType(enum.Enum):
    """Kind of balance change recorded in the audit trail"""
    PURCHASE = "purchase"
    GRANT = "grant"
    USAGE = "usage"
    REFUND = "refund"


class BillingPolicy(enum.Enum):
    """Whether generations for an account consume credits"""
    METERED = "metered"
    EXEMPT = "exempt"    # Trial / internal accounts


# =============================================================================
# BILLING TABLES
# =============================================================================

class Account(Base):
    """Billing account - one credit ledger per account"""
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=True)

    # Ledger
    credit_balance = Column(Integer, nullable=False, default=0)
    total_credits_used = Column(Integer, nullable=False, default=0)
    billing_policy = Column(Enum(BillingPolicy), nullable=False, default=BillingPolicy.METERED)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="ck_account_balance_non_negative"),
    )


class CreditReservation(Base):
    """A tentative deduction awaiting exactly one of commit or refund"""
    __tablename__ = "credit_reservations"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)

    amount = Column(Integer, nullable=False)
    status = Column(Enum(ReservationStatus), nullable=False, default=ReservationStatus.RESERVED)
    description = Column(String(500))
    refund_reason = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    resolved_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_reservation_amount_positive"),
        Index("idx_reservation_account_status", "account_id", "status"),
    )


class CreditTransaction(Base):
    """Audit trail of balance changes (signed amounts)"""
    __tablename__ = "credit_transactions"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    reservation_id = Column(String(36), ForeignKey("credit_reservations.id"), nullable=True)

    transaction_type = Column(Enum(TransactionType), nullable=False)
    amount = Column(Integer, nullable=False)  # negative for usage
    description = Column(String(500))

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_transaction_account_time", "account_id", "created_at"),
    )


# =============================================================================
# GENERATION TABLES
# =============================================================================

class GenerationRecord(Base):
    """Persisted outcome of one generation request"""
    __tablename__ = "schema_generations"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)

    # Request
    url = Column(Text, nullable=False)
    requested_type = Column(String(100), nullable=False)
    final_type = Column(String(100))
    live_type = Column(String(100))  # type slot held while pending or successful and not deleted
    request_options = Column(JSONType, default=dict)

    # Outcome
    status = Column(Enum(GenerationStatus), nullable=False, default=GenerationStatus.PENDING)
    candidates = Column(JSONType, default=list)
    score = Column(JSONType, nullable=True)
    """
    SchemaScore.to_dict() of the primary candidate:
    {"overall_score": 82, "breakdown": {...}, "suggestions": [...], ...}
    """

    # Refinement / soft delete
    refinement_count = Column(Integer, nullable=False, default=0)
    deletion_count = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False)

    # Failure diagnostics
    failure_reason = Column(String(50))
    failure_stage = Column(String(50))
    failure_step = Column(Integer)
    error_message = Column(Text)  # internal only, never returned to callers

    # Bookkeeping
    ai_model_provider = Column(String(50))
    credits_used = Column(Integer, nullable=False, default=0)
    processing_time_ms = Column(Integer)
    source_metadata = Column(JSONType, nullable=True)
    """
    Verification subset of the fact sheet, used as original facts for refinement:
    {"title": "...", "author": "...", "date_published": "...", "site_name": "..."}
    """

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("deletion_count <= 1", name="ck_generation_deletion_cap"),
        CheckConstraint("refinement_count >= 0", name="ck_generation_refinements"),
        UniqueConstraint("account_id", "url", "live_type", name="uq_generation_live_type"),
        Index("idx_generation_account_url", "account_id", "url"),
        Index("idx_generation_account_time", "account_id", "created_at"),
        Index("idx_generation_status", "status"),
    )


class LibraryUrl(Base):
    """URLs an account has successfully generated schemas for"""
    __tablename__ = "url_library"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)

    url = Column(Text, nullable=False)
    base_domain = Column(String(255), nullable=False)
    path = Column(Text, nullable=False, default="/")
    depth = Column(Integer, nullable=False, default=0)

    schema_types = Column(JSONType, default=list)
    generation_count = Column(Integer, nullable=False, default=0)
    last_generated_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint("account_id", "url", name="uq_library_account_url"),
        Index("idx_library_domain", "account_id", "base_domain"),
    )
