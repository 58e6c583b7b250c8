"""ASGI entry point: ``uvicorn payportal.asgi:app``."""
from payportal.main import create_app

app = create_app()
