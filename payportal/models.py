import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import relationship

from payportal.database import Base


def _new_id():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value is not None else None


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String(100), nullable=False)
    id_number = Column(String(13), nullable=False)
    account_number = Column(String(20), unique=True, index=True, nullable=False)
    password_hash = Column(Text, nullable=False)

    payments = relationship("Payment", back_populates="customer")

    def to_dict(self):
        # national id and hash never leave the server
        return {
            "id": self.id,
            "full_name": self.full_name,
            "account_number": self.account_number,
        }


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(20), unique=True, index=True, nullable=False)
    employee_id = Column(String(9), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default="admin")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    def to_dict(self):
        return {
            "username": self.username,
            "employee_id": self.employee_id,
            "full_name": self.full_name,
            "role": self.role,
        }


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        # one open request per customer and beneficiary account
        Index(
            "uq_payments_pending_beneficiary",
            "customer_id",
            "beneficiary_account",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    customer_id = Column(String(36), ForeignKey("customers.id"), index=True, nullable=False)
    amount = Column(String(32), nullable=False)                 # decimal string, stored verbatim
    currency = Column(String(3), nullable=False)
    provider = Column(String(10), nullable=False)
    beneficiary_name = Column(String(100), nullable=False)
    beneficiary_account = Column(String(20), nullable=False)
    swift_code = Column(String(11), nullable=False)
    status = Column(String(20), index=True, nullable=False)    # pending | verified | submitted | completed | rejected
    created_at = Column(DateTime(timezone=True), index=True, nullable=False, default=_now)

    verified_by = Column(String(36), ForeignKey("staff.id"))
    verified_employee_id = Column(String(9))
    verified_at = Column(DateTime(timezone=True))
    verification_notes = Column(Text)

    submitted_by = Column(String(36), ForeignKey("staff.id"))
    submitted_employee_id = Column(String(9))
    submitted_at = Column(DateTime(timezone=True))

    network_transaction_id = Column(String(40), unique=True)
    network_submitted_at = Column(DateTime(timezone=True))
    network_status = Column(String(20))                         # pending | accepted | rejected
    network_response_code = Column(String(40))
    network_response_message = Column(Text)

    customer = relationship("Customer", back_populates="payments")

    @property
    def verification(self):
        if self.verified_at is None:
            return None
        return {
            "staff_id": self.verified_by,
            "employee_id": self.verified_employee_id,
            "verified_at": _iso(self.verified_at),
            "notes": self.verification_notes,
        }

    @property
    def submission(self):
        if self.submitted_at is None:
            return None
        return {
            "staff_id": self.submitted_by,
            "employee_id": self.submitted_employee_id,
            "submitted_at": _iso(self.submitted_at),
        }

    @property
    def network_details(self):
        if self.network_transaction_id is None:
            return None
        return {
            "transaction_id": self.network_transaction_id,
            "submission_date": _iso(self.network_submitted_at),
            "status": self.network_status,
            "response_code": self.network_response_code,
            "response_message": self.network_response_message,
        }

    def to_dict(self, include_customer=False):
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount": self.amount,
            "currency": self.currency,
            "provider": self.provider,
            "beneficiary_name": self.beneficiary_name,
            "beneficiary_account": self.beneficiary_account,
            "swift_code": self.swift_code,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "verification": self.verification,
            "submission": self.submission,
            "network_details": self.network_details,
        }
        if include_customer and self.customer is not None:
            data["customer"] = self.customer.to_dict()
        return data
