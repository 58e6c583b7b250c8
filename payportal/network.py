import secrets
import time

PROCESSING_CODE = "PROCESSING"
PROCESSING_MESSAGE = "Payment is being processed by the settlement network"


def new_transaction_id() -> str:
    return f"SWIFT{int(time.time() * 1000)}{secrets.token_hex(5).upper()}"


def submission_record(transaction_id: str, submitted_at):
    """Initial network-side state of a freshly submitted payment."""
    return {
        "network_transaction_id": transaction_id,
        "network_submitted_at": submitted_at,
        "network_status": "pending",
        "network_response_code": PROCESSING_CODE,
        "network_response_message": PROCESSING_MESSAGE,
    }
