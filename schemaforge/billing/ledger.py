"""
Credit Reservation Ledger

Exactly-once billing for work that may fail partway through:

    token = ledger.reserve(account_id, 1)      # atomic decrement-if-sufficient
    try:
        ... paid work ...
        ledger.commit(token)                   # make the deduction permanent
    except Exception:
        ledger.refund(token, reason="ai_error")  # restore the balance
        raise

Every balance mutation is a single conditional UPDATE checked by row count,
never a read-then-write pair, so concurrent reservations against the same
account cannot overdraw it. Reservation fate (committed / refunded) is a
conditional transition out of RESERVED, so commit and refund are each
idempotent and mutually exclusive.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..database.models import (
    Account,
    BillingPolicy,
    CreditReservation,
    CreditTransaction,
    ReservationStatus,
    TransactionType,
    utcnow,
)
from ..database.session import SessionFactory, session_scope
from ..models.errors import SchemaForgeError

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class LedgerError(SchemaForgeError):
    """Base class for ledger failures."""
    code = "ledger_error"


class InsufficientFunds(LedgerError):
    """Balance is lower than the requested reservation."""
    code = "insufficient_credits"

    def __init__(self, account_id: str, required: int, available: int):
        super().__init__(
            f"Insufficient credits: {required} required, {available} available",
            required=required,
            available=available,
        )
        self.account_id = account_id
        self.required = required
        self.available = available


class AccountNotFound(LedgerError):
    code = "account_not_found"


class ReservationConflict(LedgerError):
    """Commit after refund, refund after commit, or unknown reservation."""
    code = "reservation_conflict"


@dataclass(frozen=True)
class ReservationToken:
    """Handle for one outstanding reservation."""
    reservation_id: str
    account_id: str
    amount: int


# =============================================================================
# LEDGER
# =============================================================================

class CreditLedger:
    """
    Per-account integer credit balance with reserve/commit/refund.

    Usage:
        ledger = CreditLedger(session_factory)
        token = ledger.reserve("acct-1", 1, description="Schema generation")
        ledger.commit(token)
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def open_account(
        self,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        initial_balance: int = 0,
        billing_policy: BillingPolicy = BillingPolicy.METERED,
    ) -> str:
        """Create an account, optionally seeding its balance with a grant."""
        with self._scope() as db:
            account = Account(
                email=email,
                credit_balance=0,
                total_credits_used=0,
                billing_policy=billing_policy,
            )
            if account_id:
                account.id = account_id
            db.add(account)
            db.flush()
            account_id = account.id

        if initial_balance:
            self.grant(account_id, initial_balance, description="Initial balance")

        logger.info(f"Opened account {account_id} ({billing_policy.value})")
        return account_id

    def balance(self, account_id: str) -> int:
        with self._scope() as db:
            value = db.execute(
                select(Account.credit_balance).where(Account.id == account_id)
            ).scalar_one_or_none()
        if value is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return value

    def get_policy(self, account_id: str) -> BillingPolicy:
        with self._scope() as db:
            policy = db.execute(
                select(Account.billing_policy).where(Account.id == account_id)
            ).scalar_one_or_none()
        if policy is None:
            raise AccountNotFound(f"Account {account_id} not found")
        return policy

    def grant(
        self,
        account_id: str,
        amount: int,
        transaction_type: TransactionType = TransactionType.GRANT,
        description: Optional[str] = None,
    ) -> int:
        """
        Add credits to an account (purchase or grant).

        Returns:
            New balance
        """
        if amount <= 0:
            raise ValueError("Grant amount must be positive")

        with self._scope() as db:
            result = db.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(credit_balance=Account.credit_balance + amount, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise AccountNotFound(f"Account {account_id} not found")

            db.add(CreditTransaction(
                account_id=account_id,
                transaction_type=transaction_type,
                amount=amount,
                description=description or f"{transaction_type.value.title()} of {amount} credits",
            ))
            new_balance = db.execute(
                select(Account.credit_balance).where(Account.id == account_id)
            ).scalar_one()

        logger.info(f"Granted {amount} credits to {account_id} (balance {new_balance})")
        return new_balance

    # =========================================================================
    # RESERVE / COMMIT / REFUND
    # =========================================================================

    def reserve(
        self,
        account_id: str,
        amount: int = 1,
        description: Optional[str] = None,
        policy: Optional[BillingPolicy] = None,
        already_paid: bool = False,
    ) -> Optional[ReservationToken]:
        """
        Atomically take `amount` credits from the balance if it is sufficient.

        Args:
            account_id: Account to charge
            amount: Credits to reserve
            description: Audit description
            policy: Billing policy for this request (defaults to the account's)
            already_paid: The unit of work is covered by an earlier charge

        Returns:
            ReservationToken, or None when billing is skipped (exempt / already paid)

        Raises:
            InsufficientFunds, AccountNotFound
        """
        if amount <= 0:
            raise ValueError("Reservation amount must be positive")

        if policy is None:
            policy = self.get_policy(account_id)

        if policy == BillingPolicy.EXEMPT:
            logger.info(f"Billing exempt for {account_id}, skipping reservation")
            return None
        if already_paid:
            logger.info(f"Work already paid for by {account_id}, skipping reservation")
            return None

        with self._scope() as db:
            result = db.execute(
                update(Account)
                .where(Account.id == account_id, Account.credit_balance >= amount)
                .values(
                    credit_balance=Account.credit_balance - amount,
                    total_credits_used=Account.total_credits_used + amount,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                available = db.execute(
                    select(Account.credit_balance).where(Account.id == account_id)
                ).scalar_one_or_none()
                if available is None:
                    raise AccountNotFound(f"Account {account_id} not found")
                raise InsufficientFunds(account_id, amount, available)

            reservation = CreditReservation(
                account_id=account_id,
                amount=amount,
                status=ReservationStatus.RESERVED,
                description=description,
            )
            db.add(reservation)
            db.flush()

            db.add(CreditTransaction(
                account_id=account_id,
                reservation_id=reservation.id,
                transaction_type=TransactionType.USAGE,
                amount=-amount,
                description=description,
            ))
            token = ReservationToken(reservation.id, account_id, amount)

        logger.info(f"Reserved {amount} credit(s) for {account_id}: {token.reservation_id}")
        return token

    def commit(self, token: ReservationToken, db: Optional[Session] = None) -> bool:
        """
        Make a reservation's deduction permanent.

        When `db` is given the transition joins that session's transaction.

        Returns:
            True if committed now, False if it was already committed

        Raises:
            ReservationConflict if the reservation was refunded or is unknown
        """
        if db is not None:
            return self._commit(db, token)
        with self._scope() as own_db:
            return self._commit(own_db, token)

    def _commit(self, db: Session, token: ReservationToken) -> bool:
        if self._transition(db, token, ReservationStatus.COMMITTED):
            logger.info(f"Committed reservation {token.reservation_id}")
            return True

        status = self._status(db, token)
        if status == ReservationStatus.COMMITTED:
            return False
        raise ReservationConflict(
            f"Cannot commit reservation {token.reservation_id}: {status.value if status else 'unknown'}"
        )

    def refund(self, token: ReservationToken, reason: str, db: Optional[Session] = None) -> bool:
        """
        Restore a reservation's amount to the balance and record why.

        Returns:
            True if refunded now, False if it was already refunded

        Raises:
            ReservationConflict if the reservation was committed or is unknown
        """
        if db is not None:
            return self._refund(db, token, reason)
        with self._scope() as own_db:
            return self._refund(own_db, token, reason)

    def _refund(self, db: Session, token: ReservationToken, reason: str) -> bool:
        if not self._transition(db, token, ReservationStatus.REFUNDED, refund_reason=reason):
            status = self._status(db, token)
            if status == ReservationStatus.REFUNDED:
                return False
            raise ReservationConflict(
                f"Cannot refund reservation {token.reservation_id}: {status.value if status else 'unknown'}"
            )

        db.execute(
            update(Account)
            .where(Account.id == token.account_id)
            .values(
                credit_balance=Account.credit_balance + token.amount,
                total_credits_used=Account.total_credits_used - token.amount,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        db.add(CreditTransaction(
            account_id=token.account_id,
            reservation_id=token.reservation_id,
            transaction_type=TransactionType.REFUND,
            amount=token.amount,
            description=f"Refund: {reason}",
        ))
        logger.info(f"Refunded reservation {token.reservation_id} ({reason})")
        return True

    @staticmethod
    def _transition(db: Session, token: ReservationToken, target: ReservationStatus, **values) -> bool:
        result = db.execute(
            update(CreditReservation)
            .where(
                CreditReservation.id == token.reservation_id,
                CreditReservation.status == ReservationStatus.RESERVED,
            )
            .values(status=target, resolved_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _status(db: Session, token: ReservationToken) -> Optional[ReservationStatus]:
        return db.execute(
            select(CreditReservation.status).where(CreditReservation.id == token.reservation_id)
        ).scalar_one_or_none()
