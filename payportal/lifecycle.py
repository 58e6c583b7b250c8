"""
Payment lifecycle engine.

Owns the payment status state machine:

    pending --verify--> verified --submit--> submitted --(network ack)--> completed
    pending --reject--> rejected
    verified --reject--> rejected

Every status change is written together with its audit record (who, which
employee id, when, notes) in one conditional update, so a transition either
lands completely or not at all and two concurrent writers cannot both win.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog

from payportal import network
from payportal.errors import (
    Conflict,
    InvalidTransition,
    NotFound,
    NotSubmitted,
    Unauthenticated,
    ValidationFailed,
)
from payportal.models import Payment
from payportal.sessions import Principal, PrincipalKind
from payportal.store import PortalStore
from payportal.validation import DECISION, PAYMENT, validate

logger = structlog.get_logger(__name__)

TRANSACTION_ID_ATTEMPTS = 3


class PaymentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: Dict[PaymentStatus, set] = {
    PaymentStatus.PENDING: {PaymentStatus.VERIFIED, PaymentStatus.REJECTED},
    PaymentStatus.VERIFIED: {PaymentStatus.SUBMITTED, PaymentStatus.REJECTED},
    PaymentStatus.SUBMITTED: {PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.REJECTED: set(),
}


class Decision(str, Enum):
    VERIFY = "verify"
    REJECT = "reject"


DECISION_OUTCOMES = {
    Decision.VERIFY: PaymentStatus.VERIFIED,
    Decision.REJECT: PaymentStatus.REJECTED,
}


def validate_transition(current: str, new: PaymentStatus) -> None:
    """Raise when a transition is not allowed by the state machine."""
    try:
        allowed = ALLOWED_TRANSITIONS[PaymentStatus(current)]
    except ValueError:
        allowed = set()
    if new not in allowed:
        raise InvalidTransition(f"Payment cannot move from {current} to {new.value}")


def _utcnow():
    return datetime.now(timezone.utc)


class PaymentLifecycle:
    def __init__(self, store: PortalStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or _utcnow

    @staticmethod
    def _require_staff(actor: Principal) -> None:
        if actor is None or actor.kind is not PrincipalKind.STAFF:
            raise Unauthenticated()

    def create(self, customer: Principal, fields: Mapping[str, Any]) -> str:
        if customer is None or customer.kind is not PrincipalKind.CUSTOMER:
            raise Unauthenticated()

        cleaned = validate(fields, PAYMENT)
        payment = Payment(
            id=str(uuid.uuid4()),
            customer_id=customer.id,
            status=PaymentStatus.PENDING.value,
            created_at=self.clock(),
            **cleaned,
        )
        self.store.add_payment(payment)

        logger.info("payment_created", payment_id=payment.id, customer_id=customer.id)
        return payment.id

    def get(self, payment_id: str) -> Payment:
        try:
            uuid.UUID(str(payment_id))
        except ValueError:
            raise NotFound("Payment not found")

        payment = self.store.get_payment(str(payment_id))
        if payment is None:
            raise NotFound("Payment not found")
        return payment

    def _apply(self, payment: Payment, new_status: PaymentStatus, values: Dict) -> Payment:
        validate_transition(payment.status, new_status)

        values = dict(values, status=new_status.value)
        if not self.store.transition(payment.id, payment.status, values):
            # another writer moved it between our read and the update
            logger.warning("payment_transition_lost", payment_id=payment.id, target=new_status.value)
            raise InvalidTransition("Payment already processed")

        return self.get(payment.id)

    def decide(self, payment_id: str, actor: Principal, action: str,
               notes: Optional[str] = None) -> Payment:
        self._require_staff(actor)

        raw = {"action": action}
        if notes is not None:
            raw["notes"] = notes
        cleaned = validate(raw, DECISION, optional=("notes",))
        decision = Decision(cleaned["action"])

        payment = self.get(payment_id)
        if payment.status != PaymentStatus.PENDING.value:
            raise InvalidTransition("Payment already processed")

        updated = self._apply(payment, DECISION_OUTCOMES[decision], {
            "verified_by": actor.id,
            "verified_employee_id": actor.record.employee_id,
            "verified_at": self.clock(),
            "verification_notes": cleaned.get("notes", ""),
        })

        logger.info(
            "payment_decided",
            payment_id=updated.id,
            decision=decision.value,
            employee_id=actor.record.employee_id,
        )
        return updated

    def submit_to_network(self, payment_id: str, actor: Principal) -> Payment:
        self._require_staff(actor)

        payment = self.get(payment_id)
        if payment.status != PaymentStatus.VERIFIED.value:
            raise InvalidTransition("Payment must be verified before submission")

        for attempt in range(1, TRANSACTION_ID_ATTEMPTS + 1):
            submitted_at = self.clock()
            transaction_id = network.new_transaction_id()
            values = {
                "submitted_by": actor.id,
                "submitted_employee_id": actor.record.employee_id,
                "submitted_at": submitted_at,
            }
            values.update(network.submission_record(transaction_id, submitted_at))
            try:
                updated = self._apply(payment, PaymentStatus.SUBMITTED, values)
                break
            except Conflict:
                logger.warning("network_transaction_id_collision", payment_id=payment.id, attempt=attempt)
                if attempt == TRANSACTION_ID_ATTEMPTS:
                    raise

        logger.info(
            "payment_submitted",
            payment_id=updated.id,
            transaction_id=updated.network_transaction_id,
            employee_id=actor.record.employee_id,
        )
        return updated

    def get_network_status(self, payment_id: str) -> Dict[str, Any]:
        payment = self.get(payment_id)
        details = payment.network_details
        if details is None:
            raise NotSubmitted()
        return {
            "payment_id": payment.id,
            "status": payment.status,
            "network_details": details,
        }

    def list(self, status: Optional[str] = None) -> List[Payment]:
        if status is not None:
            try:
                status = PaymentStatus(status).value
            except ValueError:
                raise ValidationFailed([("status", "must be one of: " + ", ".join(s.value for s in PaymentStatus))])
        return self.store.list_payments(status)
