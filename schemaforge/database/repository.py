"""
Repository Layer - Clean Interface for Generation Records

Provides the record store consumed by the pipeline:
- create / update / get keyed by record id
- per-URL lookups for the duplicate, regeneration and type-cap rules
- optimistic refinement writes (content and score in one statement)
- soft delete, history, stats and failure summaries
- URL library bookkeeping

Handles all SQLAlchemy complexity internally.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import GenerationRecord, GenerationStatus, LibraryUrl, utcnow
from .session import SessionFactory, session_scope
from ..models.errors import (
    DeletionLimitReached,
    DuplicateSchemaType,
    RecordAccessDenied,
    RecordNotFound,
    RegenerationLimitReached,
)
from ..utils.urls import extract_base_domain, extract_path, path_depth

logger = logging.getLogger(__name__)


class RecordStore:
    """
    Keyed persistence for GenerationRecord rows.

    Usage:
        store = RecordStore(session_factory)
        record_id = store.create(account_id, url, "Article")
        store.update(record_id, status=GenerationStatus.SUCCESS)
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory

    def scope(self):
        """Transactional session scope for this store's database."""
        return session_scope(self._session_factory)

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(
        self,
        account_id: str,
        url: str,
        requested_type: str,
        options: Optional[Dict[str, Any]] = None,
        deletion_count: int = 0,
        ai_model_provider: Optional[str] = None,
        claim_type: Optional[str] = None,
    ) -> str:
        """
        Create a pending generation record.

        Args:
            claim_type: Schema type slot to hold for this URL while the record
                is live. None for Auto requests, whose type is claimed on success.

        Returns:
            Id of the created record

        Raises:
            DuplicateSchemaType if another live record already holds the slot
        """
        try:
            with self.scope() as db:
                record = GenerationRecord(
                    account_id=account_id,
                    url=url,
                    requested_type=requested_type,
                    live_type=claim_type,
                    request_options=dict(options or {}),
                    status=GenerationStatus.PENDING,
                    candidates=[],
                    deletion_count=deletion_count,
                    ai_model_provider=ai_model_provider,
                )
                db.add(record)
                db.flush()
                record_id = record.id
        except IntegrityError:
            if claim_type and self._slot_taken(account_id, url, claim_type):
                raise DuplicateSchemaType(
                    f'Schema type "{claim_type}" already exists for this URL',
                    schema_type=claim_type,
                )
            raise

        logger.info(f"Created generation record {record_id} for {url} ({requested_type})")
        return record_id

    def claim_success(
        self,
        db: Session,
        record_id: str,
        account_id: str,
        url: str,
        final_type: str,
        **fields: Any,
    ) -> bool:
        """
        Mark a record successful and hold its final type slot, inside the
        caller's transaction.

        A soft-deleted record of the same type makes this the one allowed
        regeneration (deletion_count 1).

        Returns:
            True if another successful record already paid for this URL

        Raises:
            DuplicateSchemaType / RegenerationLimitReached when a live record
            already holds the slot
        """
        regenerated = db.execute(
            select(func.count())
            .select_from(GenerationRecord)
            .where(
                GenerationRecord.account_id == account_id,
                GenerationRecord.url == url,
                GenerationRecord.id != record_id,
                GenerationRecord.is_deleted.is_(True),
                GenerationRecord.status != GenerationStatus.FAILED,
                func.coalesce(GenerationRecord.final_type, GenerationRecord.requested_type) == final_type,
            )
        ).scalar() or 0

        try:
            self._apply_update(db, record_id, dict(
                fields,
                status=GenerationStatus.SUCCESS,
                final_type=final_type,
                live_type=final_type,
                deletion_count=1 if regenerated else 0,
            ))
        except IntegrityError:
            db.rollback()
            holder = db.execute(
                select(GenerationRecord.deletion_count).where(
                    GenerationRecord.account_id == account_id,
                    GenerationRecord.url == url,
                    GenerationRecord.live_type == final_type,
                )
            ).scalar()
            if holder:
                raise RegenerationLimitReached(
                    f'Schema type "{final_type}" has already been regenerated once for this URL',
                    schema_type=final_type,
                )
            raise DuplicateSchemaType(
                f'Schema type "{final_type}" already exists for this URL',
                schema_type=final_type,
            )

        paid_before = db.execute(
            select(func.count())
            .select_from(GenerationRecord)
            .where(
                GenerationRecord.account_id == account_id,
                GenerationRecord.url == url,
                GenerationRecord.id != record_id,
                GenerationRecord.status == GenerationStatus.SUCCESS,
            )
        ).scalar() or 0
        return paid_before > 0

    def discard(self, record_id: str) -> None:
        """Remove a pending record whose request was rejected."""
        with self.scope() as db:
            db.execute(
                delete(GenerationRecord)
                .where(
                    GenerationRecord.id == record_id,
                    GenerationRecord.status == GenerationStatus.PENDING,
                )
                .execution_options(synchronize_session=False)
            )
        logger.info(f"Discarded rejected generation record {record_id}")

    def _slot_taken(self, account_id: str, url: str, schema_type: str) -> bool:
        with self.scope() as db:
            return db.execute(
                select(GenerationRecord.id).where(
                    GenerationRecord.account_id == account_id,
                    GenerationRecord.url == url,
                    GenerationRecord.live_type == schema_type,
                )
            ).first() is not None

    def update(self, record_id: str, db: Optional[Session] = None, **fields: Any) -> None:
        """
        Update fields on a record.

        When `db` is given the update joins that session's transaction
        (the caller commits); otherwise it runs in its own transaction.
        """
        if db is not None:
            self._apply_update(db, record_id, fields)
            return

        with self.scope() as own_db:
            self._apply_update(own_db, record_id, fields)

    @staticmethod
    def _apply_update(db: Session, record_id: str, fields: Dict[str, Any]) -> None:
        result = db.execute(
            update(GenerationRecord)
            .where(GenerationRecord.id == record_id)
            .values(**fields, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise RecordNotFound(f"Schema record {record_id} not found")

    def get(self, record_id: str) -> Optional[GenerationRecord]:
        """Get a record by id (detached, safe to read after the session closes)."""
        with self.scope() as db:
            return db.get(GenerationRecord, record_id)

    def get_owned(self, record_id: str, account_id: Optional[str]) -> GenerationRecord:
        """Get a record and verify the account owns it."""
        record = self.get(record_id)
        if record is None:
            raise RecordNotFound(f"Schema record {record_id} not found")
        if account_id is not None and record.account_id != account_id:
            raise RecordAccessDenied("Access denied to this schema record")
        return record

    def find_for_url(self, account_id: str, url: str) -> List[GenerationRecord]:
        """
        All non-failed records for an account and URL, oldest first.

        Includes soft-deleted rows; callers decide what counts as active.
        """
        with self.scope() as db:
            rows = db.execute(
                select(GenerationRecord)
                .where(
                    GenerationRecord.account_id == account_id,
                    GenerationRecord.url == url,
                    GenerationRecord.status != GenerationStatus.FAILED,
                )
                .order_by(GenerationRecord.created_at)
            ).scalars().all()
            return list(rows)

    # =========================================================================
    # REFINEMENT AND SOFT DELETE
    # =========================================================================

    def apply_refinement(
        self,
        record_id: str,
        expected_count: int,
        candidates: List[Dict[str, Any]],
        score: Dict[str, Any],
    ) -> bool:
        """
        Persist refined candidates and their score in one conditional write.

        The write only lands if the record's refinement count still equals
        `expected_count`; the count is incremented in the same statement.

        Returns:
            True if the write landed, False if another refinement won the race
        """
        with self.scope() as db:
            result = db.execute(
                update(GenerationRecord)
                .where(
                    GenerationRecord.id == record_id,
                    GenerationRecord.refinement_count == expected_count,
                )
                .values(
                    candidates=candidates,
                    score=score,
                    refinement_count=expected_count + 1,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            landed = result.rowcount == 1

        if not landed:
            logger.warning(
                f"Refinement write rejected for {record_id}: "
                f"refinement count changed since it was read ({expected_count})"
            )
        return landed

    def soft_delete(self, record_id: str, account_id: Optional[str] = None) -> GenerationRecord:
        """
        Soft delete a schema type, enabling exactly one regeneration.

        Raises:
            RecordNotFound, RecordAccessDenied, DeletionLimitReached
        """
        record = self.get_owned(record_id, account_id)

        with self.scope() as db:
            result = db.execute(
                update(GenerationRecord)
                .where(
                    GenerationRecord.id == record_id,
                    GenerationRecord.deletion_count == 0,
                    GenerationRecord.is_deleted.is_(False),
                )
                .values(deletion_count=1, is_deleted=True, live_type=None, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            deleted = result.rowcount == 1

        if not deleted:
            raise DeletionLimitReached(
                "This schema type has already been deleted once and cannot be deleted again",
                record_id=record_id,
            )

        logger.info(f"Soft deleted schema type {record.requested_type} for {record.url}")
        return self.get(record_id)

    # =========================================================================
    # HISTORY AND STATS
    # =========================================================================

    def list_history(
        self,
        account_id: str,
        page: int = 1,
        page_size: int = 20,
        include_deleted: bool = False,
    ) -> Dict[str, Any]:
        """Paginated generation history, newest first."""
        page = max(1, page)
        page_size = max(1, min(page_size, 100))

        with self.scope() as db:
            query = select(GenerationRecord).where(GenerationRecord.account_id == account_id)
            if not include_deleted:
                query = query.where(GenerationRecord.is_deleted.is_(False))

            total = db.execute(
                select(func.count()).select_from(query.subquery())
            ).scalar() or 0

            rows = db.execute(
                query.order_by(GenerationRecord.created_at.desc(), GenerationRecord.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).scalars().all()

            items = [record_to_dict(row) for row in rows]

        return {
            "items": items,
            "page": page,
            "page_size": page_size,
            "total": total,
            "has_more": page * page_size < total,
        }

    def get_stats(self, account_id: str) -> Dict[str, Any]:
        """Per-account generation statistics."""
        with self.scope() as db:
            rows = db.execute(
                select(
                    GenerationRecord.status,
                    GenerationRecord.final_type,
                    GenerationRecord.requested_type,
                    GenerationRecord.processing_time_ms,
                    GenerationRecord.credits_used,
                ).where(GenerationRecord.account_id == account_id)
            ).all()

        total = len(rows)
        successful = [r for r in rows if r.status == GenerationStatus.SUCCESS]
        failed = sum(1 for r in rows if r.status == GenerationStatus.FAILED)
        timings = [r.processing_time_ms for r in successful if r.processing_time_ms is not None]
        type_counts = Counter(r.final_type or r.requested_type for r in successful)

        return {
            "total_generations": total,
            "successful": len(successful),
            "failed": failed,
            "success_rate": round(len(successful) / total * 100, 1) if total else 0.0,
            "average_processing_time_ms": round(sum(timings) / len(timings)) if timings else None,
            "credits_used": sum(r.credits_used or 0 for r in rows),
            "top_schema_types": [
                {"schema_type": schema_type, "count": count}
                for schema_type, count in type_counts.most_common(5)
            ],
        }

    def get_failure_summary(self, account_id: Optional[str] = None) -> Dict[str, Any]:
        """Failed generations grouped by taxonomy reason and stage."""
        with self.scope() as db:
            query = (
                select(
                    GenerationRecord.failure_reason,
                    GenerationRecord.failure_stage,
                    func.count().label("count"),
                )
                .where(GenerationRecord.status == GenerationStatus.FAILED)
                .group_by(GenerationRecord.failure_reason, GenerationRecord.failure_stage)
            )
            if account_id:
                query = query.where(GenerationRecord.account_id == account_id)
            rows = db.execute(query).all()

        by_reason: Counter = Counter()
        by_stage: Counter = Counter()
        for reason, stage, count in rows:
            by_reason[reason or "unknown"] += count
            by_stage[stage or "unknown"] += count

        return {
            "total_failures": sum(by_reason.values()),
            "by_reason": dict(by_reason.most_common()),
            "by_stage": dict(by_stage.most_common()),
        }

    # =========================================================================
    # URL LIBRARY
    # =========================================================================

    def upsert_library_url(self, account_id: str, url: str, schema_type: Optional[str] = None) -> str:
        """
        Add a URL to the account's library or refresh its entry.

        Returns:
            Id of the library entry
        """
        with self.scope() as db:
            entry = db.execute(
                select(LibraryUrl).where(
                    LibraryUrl.account_id == account_id,
                    LibraryUrl.url == url,
                )
            ).scalar_one_or_none()

            if entry is None:
                path = extract_path(url)
                entry = LibraryUrl(
                    account_id=account_id,
                    url=url,
                    base_domain=extract_base_domain(url),
                    path=path,
                    depth=path_depth(path),
                    schema_types=[],
                    generation_count=0,
                )
                db.add(entry)

            types = list(entry.schema_types or [])
            if schema_type and schema_type not in types:
                types.append(schema_type)
            entry.schema_types = types
            entry.generation_count = (entry.generation_count or 0) + 1
            entry.last_generated_at = utcnow()
            db.flush()
            entry_id = entry.id

        logger.debug(f"URL library updated for {url}")
        return entry_id


def record_to_dict(record: GenerationRecord) -> Dict[str, Any]:
    """Serialize a record for API responses (internal error text excluded)."""
    return {
        "id": record.id,
        "account_id": record.account_id,
        "url": record.url,
        "requested_type": record.requested_type,
        "final_type": record.final_type,
        "status": record.status.value if record.status else None,
        "candidates": record.candidates or [],
        "score": record.score,
        "refinement_count": record.refinement_count,
        "deletion_count": record.deletion_count,
        "is_deleted": record.is_deleted,
        "failure_reason": record.failure_reason,
        "failure_stage": record.failure_stage,
        "failure_step": record.failure_step,
        "credits_used": record.credits_used,
        "processing_time_ms": record.processing_time_ms,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }
