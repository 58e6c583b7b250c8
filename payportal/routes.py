from typing import Any, Dict

import structlog
from fastapi import APIRouter, Body, Depends, Response

from payportal.auth import (
    clear_session_cookies,
    current_customer,
    customer_mutation,
    get_services,
    set_session_cookies,
)
from payportal.errors import Unauthenticated
from payportal.models import Customer
from payportal.sessions import Principal, PrincipalKind
from payportal.validation import CUSTOMER_LOGIN, REGISTRATION, validate

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/register", status_code=201)
def register(payload: Dict[str, Any] = Body(...), services=Depends(get_services)):
    fields = validate(payload, REGISTRATION)

    customer = Customer(
        full_name=fields["full_name"],
        id_number=fields["id_number"],
        account_number=fields["account_number"],
        password_hash=services.customer_credentials.hash(fields["password"]),
    )
    services.store.add_customer(customer)

    logger.info("customer_registered", customer_id=customer.id)
    return {"message": "Registered"}


@router.post("/login")
def login(response: Response, payload: Dict[str, Any] = Body(...), services=Depends(get_services)):
    fields = validate(payload, CUSTOMER_LOGIN)
    credentials = services.customer_credentials

    customer = services.store.find_customer_by_account_number(fields["account_number"])
    if customer is None or customer.full_name != fields["full_name"]:
        credentials.verify(fields["password"], credentials.dummy_digest)
        logger.info("customer_login_failed")
        raise Unauthenticated("Invalid credentials")

    if not credentials.verify(fields["password"], customer.password_hash):
        logger.info("customer_login_failed", customer_id=customer.id)
        raise Unauthenticated("Invalid credentials")

    issued = services.authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")
    csrf_token = services.gate.issue(issued.claims.session_id)
    namespace = services.authenticator.namespaces[PrincipalKind.CUSTOMER]
    set_session_cookies(response, namespace, issued, csrf_token, services.settings.secure_cookies)

    logger.info("customer_logged_in", customer_id=customer.id)
    return {"message": "Logged in", "csrf_token": csrf_token}


@router.post("/logout")
def logout(response: Response, services=Depends(get_services)):
    namespace = services.authenticator.namespaces[PrincipalKind.CUSTOMER]
    clear_session_cookies(response, namespace, services.settings.secure_cookies)
    return {"message": "Logged out"}


@router.get("/csrf-token")
def csrf_token(customer: Principal = Depends(current_customer), services=Depends(get_services)):
    return {"csrf_token": services.gate.issue(customer.session_id)}


@router.get("/me")
def me(customer: Principal = Depends(current_customer)):
    return {"user": customer.record.to_dict()}


@router.post("/payment", status_code=201)
def create_payment(
    payload: Dict[str, Any] = Body(...),
    customer: Principal = Depends(customer_mutation),
    services=Depends(get_services),
):
    payment_id = services.lifecycle.create(customer, payload)
    return {"message": "Payment created", "id": payment_id, "status": "pending"}
