from conftest import CUSTOMER_NAME


def test_full_payment_lifecycle_integration(client, services, customer_login, staff_login):
    """
    Test the full lifecycle:
    1. Customer creates a payment (API -> DB)
    2. Staff verifies it
    3. Staff submits it to the settlement network
    4. Staff reads back the network status
    """

    # --- 1. CREATE PAYMENT ---
    customer_headers = customer_login()
    payload = {
        "amount": "100.00",
        "currency": "ZAR",
        "provider": "SWIFT",
        "beneficiary_name": "Sipho Dlamini",
        "beneficiary_account": "1234567890",
        "swift_code": "SBZAZAJJ",
    }
    response = client.post("/payment", json=payload, headers=customer_headers)

    assert response.status_code == 201
    payment_id = response.json()["id"]

    # --- 2. VERIFY ---
    staff_headers = staff_login()

    fetched = client.get(f"/api/admin/payments/{payment_id}").json()
    for name, value in payload.items():
        assert fetched[name] == value
    assert fetched["status"] == "pending"
    assert fetched["customer"]["full_name"] == CUSTOMER_NAME

    verify_response = client.post(
        f"/api/admin/payments/{payment_id}/verify",
        json={"action": "verify"},
        headers=staff_headers,
    )
    assert verify_response.status_code == 200
    verified = verify_response.json()["payment"]
    assert verified["status"] == "verified"
    assert verified["verification"]["employee_id"] == "EMP000001"
    assert verified["network_details"] is None

    # --- 3. SUBMIT ---
    submit_response = client.post(f"/api/admin/payments/{payment_id}/submit", headers=staff_headers)

    assert submit_response.status_code == 200
    submitted = submit_response.json()["payment"]
    assert submitted["status"] == "submitted"
    assert submitted["submission"]["employee_id"] == "EMP000001"
    assert submitted["network_details"]["status"] == "pending"
    assert submitted["network_details"]["transaction_id"]

    # --- 4. NETWORK STATUS ---
    status_response = client.get(f"/api/admin/payments/{payment_id}/network-status")

    assert status_response.status_code == 200
    assert status_response.json() == {
        "payment_id": payment_id,
        "status": "submitted",
        "network_details": submitted["network_details"],
    }

    # Verify database state
    stored = services.lifecycle.get(payment_id)
    assert stored.status == "submitted"
    assert stored.amount == "100.00"


def test_transaction_ids_are_unique_across_payments(client, services, customer_login, staff_login):
    customer_headers = customer_login()
    ids = []
    for account in ("1111111111", "2222222222", "3333333333"):
        response = client.post(
            "/payment",
            json={
                "amount": "10",
                "currency": "USD",
                "provider": "SWIFT",
                "beneficiary_name": "Jane Doe",
                "beneficiary_account": account,
                "swift_code": "CHASUS33XXX",
            },
            headers=customer_headers,
        )
        ids.append(response.json()["id"])

    staff_headers = staff_login()
    transaction_ids = set()
    for payment_id in ids:
        client.post(f"/api/admin/payments/{payment_id}/verify", json={"action": "verify"}, headers=staff_headers)
        submitted = client.post(f"/api/admin/payments/{payment_id}/submit", headers=staff_headers).json()
        transaction_ids.add(submitted["payment"]["network_details"]["transaction_id"])

    assert len(transaction_ids) == 3


def test_submit_is_impossible_without_verification(client, services, customer_login, staff_login):
    customer_headers = customer_login()
    payload = {
        "amount": "250.75",
        "currency": "EUR",
        "provider": "SWIFT",
        "beneficiary_name": "Hans Muller",
        "beneficiary_account": "4444444444",
        "swift_code": "DEUTDEFF",
    }
    payment_id = client.post("/payment", json=payload, headers=customer_headers).json()["id"]

    staff_headers = staff_login()
    response = client.post(f"/api/admin/payments/{payment_id}/submit", headers=staff_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_transition"
    assert services.lifecycle.get(payment_id).network_details is None
