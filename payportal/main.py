from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payportal.admin_routes import router as admin_router
from payportal.config import Settings
from payportal.csrf import HEADER_NAME, AntiForgeryGate
from payportal.database import Base, build_engine, build_session_factory
from payportal.errors import PortalError, ValidationFailed
from payportal.lifecycle import PaymentLifecycle
from payportal.logging_config import setup_logging
from payportal.passwords import CredentialStore
from payportal.routes import router
from payportal.sessions import SessionAuthenticator
from payportal.store import PortalStore

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    store: PortalStore
    customer_credentials: CredentialStore
    staff_credentials: CredentialStore
    authenticator: SessionAuthenticator
    gate: AntiForgeryGate
    lifecycle: PaymentLifecycle


def build_services(settings: Settings, session_factory) -> Services:
    store = PortalStore(session_factory)
    return Services(
        settings=settings,
        store=store,
        customer_credentials=CredentialStore(settings.customer_hash_rounds),
        staff_credentials=CredentialStore(settings.staff_hash_rounds),
        authenticator=SessionAuthenticator(settings, store.find_principal),
        gate=AntiForgeryGate(settings),
        lifecycle=PaymentLifecycle(store),
    )


async def portal_error_handler(request: Request, exc: PortalError):
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_failed", method=request.method, path=request.url.path, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def request_shape_handler(request: Request, exc: RequestValidationError):
    # bodies that are not a JSON object never reach the field validator
    return await portal_error_handler(request, ValidationFailed([("body", "must be a JSON object")]))


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("request_crashed", method=request.method, path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error", "code": "internal_error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings)

    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)

    app = FastAPI(title="Payment Initiation Portal")
    app.state.services = build_services(settings, build_session_factory(engine))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", HEADER_NAME],
    )
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, request_shape_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    app.include_router(router)
    app.include_router(admin_router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        # method and path only, never headers or bodies
        response = await call_next(request)
        logger.info("request", method=request.method, path=request.url.path, status=response.status_code)
        return response

    logger.info("portal_started")
    return app
