"""Persistence collaborator for principals and payments.

Every call runs in its own short transaction and translates driver failures
into portal error kinds. Status changes go through :meth:`PortalStore.transition`,
a single conditional UPDATE, so a transition commits completely or not at all.
"""
from contextlib import contextmanager
from typing import Dict, List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import joinedload

from payportal.errors import Conflict, PortalError, StoreTimeout, StoreUnavailable
from payportal.models import Customer, Payment, Staff
from payportal.sessions import PrincipalKind

logger = structlog.get_logger(__name__)

_TIMEOUT_MARKERS = ("locked", "timeout", "timed out", "canceling statement")


@contextmanager
def translate_errors(operation: str, conflict_message: Optional[str] = None):
    try:
        yield
    except PortalError:
        raise
    except IntegrityError as exc:
        logger.warning("store_integrity_error", operation=operation, error=str(exc.orig))
        raise Conflict(conflict_message) from exc
    except PoolTimeoutError as exc:
        logger.error("store_timeout", operation=operation, error=str(exc))
        raise StoreTimeout() from exc
    except OperationalError as exc:
        detail = str(exc.orig).lower()
        if any(marker in detail for marker in _TIMEOUT_MARKERS):
            logger.error("store_timeout", operation=operation, error=detail)
            raise StoreTimeout() from exc
        logger.error("store_unavailable", operation=operation, error=detail)
        raise StoreUnavailable() from exc
    except SQLAlchemyError as exc:
        logger.error("store_unavailable", operation=operation, error=str(exc))
        raise StoreUnavailable() from exc


class PortalStore:
    def __init__(self, session_factory):
        self._sessions = session_factory

    # Principals

    def add_customer(self, customer: Customer) -> Customer:
        with translate_errors("add_customer", "Account number already registered"):
            with self._sessions.begin() as db:
                db.add(customer)
        return customer

    def add_staff(self, staff: Staff) -> Staff:
        with translate_errors("add_staff", "Username or employee id already in use"):
            with self._sessions.begin() as db:
                db.add(staff)
        return staff

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        with translate_errors("get_customer"):
            with self._sessions() as db:
                return db.get(Customer, customer_id)

    def get_staff(self, staff_id: str) -> Optional[Staff]:
        with translate_errors("get_staff"):
            with self._sessions() as db:
                return db.get(Staff, staff_id)

    def find_principal(self, kind: PrincipalKind, principal_id: str):
        if kind is PrincipalKind.CUSTOMER:
            return self.get_customer(principal_id)
        return self.get_staff(principal_id)

    def find_customer_by_account_number(self, account_number: str) -> Optional[Customer]:
        with translate_errors("find_customer"):
            with self._sessions() as db:
                return db.execute(
                    select(Customer).filter_by(account_number=account_number)
                ).scalar_one_or_none()

    def find_staff_by_username(self, username: str) -> Optional[Staff]:
        with translate_errors("find_staff"):
            with self._sessions() as db:
                return db.execute(
                    select(Staff).filter_by(username=username)
                ).scalar_one_or_none()

    # Payments

    def add_payment(self, payment: Payment) -> Payment:
        """Insert ``payment`` unless its customer already has a pending
        payment to the same beneficiary account.

        The partial unique index on pending payments makes the check and the
        insert one atomic step.
        """
        with translate_errors("add_payment", "A pending payment to this beneficiary account already exists"):
            with self._sessions.begin() as db:
                db.add(payment)
        return payment

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        with translate_errors("get_payment"):
            with self._sessions() as db:
                return db.get(Payment, payment_id, options=[joinedload(Payment.customer)])

    def list_payments(self, status: Optional[str] = None) -> List[Payment]:
        query = select(Payment).options(joinedload(Payment.customer))
        if status is not None:
            query = query.filter_by(status=status)
        query = query.order_by(Payment.created_at.desc())

        with translate_errors("list_payments"):
            with self._sessions() as db:
                return list(db.execute(query).scalars().all())

    def transition(self, payment_id: str, expected_status: str, values: Dict) -> bool:
        """Apply ``values`` only if the payment is still in ``expected_status``.

        Returns False when no row matched, i.e. the payment is gone or another
        writer moved it first.
        """
        statement = (
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with translate_errors("transition", "Network transaction id already in use"):
            with self._sessions.begin() as db:
                result = db.execute(statement)
                return result.rowcount == 1
