"""
SchemaForge Database Layer

Usage:
    from schemaforge.database import (
        # Session management
        init_db, create_db_engine, create_session_factory, session_scope,

        # Models
        Account, GenerationRecord, CreditReservation,

        # Repository
        RecordStore,
    )

    engine = create_db_engine("sqlite:///schemaforge.db")
    init_db(engine)
    store = RecordStore(create_session_factory(engine))
"""

# Models
from .models import (
    Base,
    Account,
    CreditReservation,
    CreditTransaction,
    GenerationRecord,
    LibraryUrl,
    # Enums
    GenerationStatus,
    ReservationStatus,
    TransactionType,
    BillingPolicy,
)

# Session management
from .session import (
    get_database_url,
    create_db_engine,
    get_engine,
    create_session_factory,
    get_session_factory,
    session_scope,
    init_db,
    check_db_connection,
)

# Repository
from .repository import RecordStore, record_to_dict

__all__ = [
    # Models
    "Base",
    "Account",
    "CreditReservation",
    "CreditTransaction",
    "GenerationRecord",
    "LibraryUrl",
    # Enums
    "GenerationStatus",
    "ReservationStatus",
    "TransactionType",
    "BillingPolicy",
    # Session
    "get_database_url",
    "create_db_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "session_scope",
    "init_db",
    "check_db_connection",
    # Repository
    "RecordStore",
    "record_to_dict",
]
