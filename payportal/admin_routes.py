from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Response

from payportal.auth import (
    clear_session_cookies,
    current_staff,
    get_services,
    set_session_cookies,
    staff_mutation,
)
from payportal.errors import Unauthenticated
from payportal.lifecycle import PaymentStatus
from payportal.sessions import Principal, PrincipalKind
from payportal.validation import DECISION, STAFF_LOGIN, validate

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin")


@router.post("/login")
def login(response: Response, payload: Dict[str, Any] = Body(...), services=Depends(get_services)):
    fields = validate(payload, STAFF_LOGIN)
    credentials = services.staff_credentials

    staff = services.store.find_staff_by_username(fields["username"])
    digest = staff.password_hash if staff is not None else credentials.dummy_digest
    if not credentials.verify(fields["password"], digest) or staff is None:
        logger.info("staff_login_failed")
        raise Unauthenticated("Invalid credentials")

    issued = services.authenticator.issue(PrincipalKind.STAFF, staff.id, staff.role)
    csrf_token = services.gate.issue(issued.claims.session_id)
    namespace = services.authenticator.namespaces[PrincipalKind.STAFF]
    set_session_cookies(response, namespace, issued, csrf_token, services.settings.secure_cookies)

    logger.info("staff_logged_in", employee_id=staff.employee_id)
    return {
        "message": "Logged in successfully",
        "admin": staff.to_dict(),
        "csrf_token": csrf_token,
    }


@router.post("/logout")
def logout(response: Response, services=Depends(get_services)):
    namespace = services.authenticator.namespaces[PrincipalKind.STAFF]
    clear_session_cookies(response, namespace, services.settings.secure_cookies)
    return {"message": "Logged out successfully"}


@router.get("/csrf-token")
def csrf_token(staff: Principal = Depends(current_staff), services=Depends(get_services)):
    return {"csrf_token": services.gate.issue(staff.session_id)}


@router.get("/me")
def me(staff: Principal = Depends(current_staff)):
    return {"admin": staff.record.to_dict()}


@router.get("/payments")
def list_payments(
    status: Optional[str] = None,
    staff: Principal = Depends(current_staff),
    services=Depends(get_services),
):
    payments = services.lifecycle.list(status)
    return [p.to_dict(include_customer=True) for p in payments]


@router.get("/payments/pending")
def list_pending_payments(staff: Principal = Depends(current_staff), services=Depends(get_services)):
    payments = services.lifecycle.list(PaymentStatus.PENDING.value)
    return [p.to_dict(include_customer=True) for p in payments]


@router.get("/payments/{payment_id}")
def get_payment(payment_id: str, staff: Principal = Depends(current_staff), services=Depends(get_services)):
    return services.lifecycle.get(payment_id).to_dict(include_customer=True)


@router.post("/payments/{payment_id}/verify")
def decide_payment(
    payment_id: str,
    payload: Dict[str, Any] = Body(...),
    staff: Principal = Depends(staff_mutation),
    services=Depends(get_services),
):
    fields = validate(payload, DECISION, optional=("notes",))
    payment = services.lifecycle.decide(payment_id, staff, fields["action"], fields.get("notes"))
    outcome = "verified" if payment.status == PaymentStatus.VERIFIED.value else "rejected"
    return {"message": f"Payment {outcome} successfully", "payment": payment.to_dict()}


@router.post("/payments/{payment_id}/submit")
def submit_payment(payment_id: str, staff: Principal = Depends(staff_mutation), services=Depends(get_services)):
    payment = services.lifecycle.submit_to_network(payment_id, staff)
    return {"message": "Payment submitted to the settlement network", "payment": payment.to_dict()}


@router.get("/payments/{payment_id}/network-status")
def network_status(payment_id: str, staff: Principal = Depends(current_staff), services=Depends(get_services)):
    return services.lifecycle.get_network_status(payment_id)
