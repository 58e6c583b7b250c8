import pytest
from fastapi.testclient import TestClient

from payportal.config import Settings
from payportal.main import create_app
from payportal.models import Customer, Staff
from payportal.sessions import Principal, PrincipalKind

CUSTOMER_NAME = "Thandi Mokoena"
CUSTOMER_ACCOUNT = "1234567890"
CUSTOMER_PASSWORD = "correct horse battery"
STAFF_USERNAME = "admin"
STAFF_PASSWORD = "staff-password-123"

PAYMENT_FIELDS = {
    "amount": "100.00",
    "currency": "ZAR",
    "provider": "SWIFT",
    "beneficiary_name": "Sipho Dlamini",
    "beneficiary_account": "9876543210",
    "swift_code": "SBZAZAJJ",
}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'portal.db'}",
        jwt_secret="test-jwt-secret-0123456789",
        csrf_secret="test-csrf-secret-0123456789",
        customer_hash_rounds=10,
        staff_hash_rounds=10,
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def customer(services):
    return services.store.add_customer(Customer(
        full_name=CUSTOMER_NAME,
        id_number="9001015800085",
        account_number=CUSTOMER_ACCOUNT,
        password_hash=services.customer_credentials.hash(CUSTOMER_PASSWORD),
    ))


@pytest.fixture
def staff(services):
    return services.store.add_staff(Staff(
        username=STAFF_USERNAME,
        employee_id="EMP000001",
        full_name="System Administrator",
        password_hash=services.staff_credentials.hash(STAFF_PASSWORD),
        role="admin",
    ))


@pytest.fixture
def customer_principal(customer):
    return Principal(PrincipalKind.CUSTOMER, customer.id, "customer", customer, "customer-session")


@pytest.fixture
def staff_principal(staff):
    return Principal(PrincipalKind.STAFF, staff.id, staff.role, staff, "staff-session")


@pytest.fixture
def customer_login(client, customer):
    """Log the seeded customer in and return the anti-forgery header."""
    def login():
        response = client.post("/login", json={
            "full_name": CUSTOMER_NAME,
            "account_number": CUSTOMER_ACCOUNT,
            "password": CUSTOMER_PASSWORD,
        })
        assert response.status_code == 200
        return {"X-CSRF-Token": response.json()["csrf_token"]}
    return login


@pytest.fixture
def staff_login(client, staff):
    def login():
        response = client.post("/api/admin/login", json={
            "username": STAFF_USERNAME,
            "password": STAFF_PASSWORD,
        })
        assert response.status_code == 200
        return {"X-CSRF-Token": response.json()["csrf_token"]}
    return login
