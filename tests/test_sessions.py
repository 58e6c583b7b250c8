from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from payportal.errors import Unauthenticated
from payportal.sessions import PrincipalKind, SessionAuthenticator


@pytest.fixture
def authenticator(services):
    return services.authenticator


def test_customer_session_round_trip(authenticator, customer):
    issued = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")

    principal = authenticator.authenticate(issued.token, PrincipalKind.CUSTOMER)

    assert principal.kind is PrincipalKind.CUSTOMER
    assert principal.id == customer.id
    assert principal.record.account_number == customer.account_number
    assert principal.session_id == issued.claims.session_id


def test_session_lifetimes_per_namespace(authenticator, customer, staff):
    now = datetime.now(timezone.utc)
    customer_session = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer", now=now)
    staff_session = authenticator.issue(PrincipalKind.STAFF, staff.id, "admin", now=now)

    assert customer_session.claims.expires_at - now == timedelta(hours=1)
    assert staff_session.claims.expires_at - now == timedelta(hours=8)


def test_each_session_gets_a_fresh_id(authenticator, customer):
    first = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")
    second = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")
    assert first.claims.session_id != second.claims.session_id


def test_expired_token_is_rejected(authenticator, customer):
    issued = authenticator.issue(
        PrincipalKind.CUSTOMER,
        customer.id,
        "customer",
        now=datetime.now(timezone.utc) - timedelta(hours=2),
    )

    with pytest.raises(Unauthenticated):
        authenticator.authenticate(issued.token, PrincipalKind.CUSTOMER)


def test_customer_token_is_refused_by_staff_namespace(authenticator, customer):
    issued = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")

    with pytest.raises(Unauthenticated):
        authenticator.authenticate(issued.token, PrincipalKind.STAFF)


def test_token_signed_with_another_key_is_rejected(settings, services, customer):
    foreign = SessionAuthenticator(
        settings.model_copy(update={"jwt_secret": "some-other-secret-value"}),
        services.store.find_principal,
    )
    issued = foreign.issue(PrincipalKind.CUSTOMER, customer.id, "customer")

    with pytest.raises(Unauthenticated):
        services.authenticator.authenticate(issued.token, PrincipalKind.CUSTOMER)


def test_tampered_claims_are_rejected(authenticator, settings, customer, staff):
    issued = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")
    header, payload, signature = issued.token.split(".")
    forged_payload = jwt.encode(
        {"sub": staff.id, "kind": "customer", "sid": "x", "aud": "payportal:customer",
         "exp": 9999999999},
        "wrong-key-wrong-key",
    ).split(".")[1]

    with pytest.raises(Unauthenticated):
        authenticator.authenticate(".".join([header, forged_payload, signature]), PrincipalKind.CUSTOMER)


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_missing_or_garbage_token(authenticator, token):
    with pytest.raises(Unauthenticated):
        authenticator.authenticate(token, PrincipalKind.CUSTOMER)


def test_token_for_missing_principal_is_rejected(settings, customer):
    authenticator = SessionAuthenticator(settings, lambda kind, principal_id: None)
    issued = authenticator.issue(PrincipalKind.CUSTOMER, customer.id, "customer")

    # signature and expiry are fine, the principal is gone
    claims = authenticator.decode(issued.token, PrincipalKind.CUSTOMER)
    assert claims.principal_id == customer.id

    with pytest.raises(Unauthenticated) as exc_info:
        authenticator.resolve(claims)
    assert exc_info.value.message == "Invalid token"
