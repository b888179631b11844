from __future__ import annotations

from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tenantforge.apps.api.errors import (
    dependency_cycle_exception_handler,
    http_exception_handler,
    registry_unavailable_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from tenantforge.apps.api.response import API_VERSION, REQUEST_ID_HEADER
from tenantforge.apps.api.routes.assembly import router as assembly_router
from tenantforge.apps.api.routes.health import router as health_router
from tenantforge.apps.api.routes.provisioning import router as provisioning_router
from tenantforge.core.config import get_settings
from tenantforge.core.errors import DependencyCycleError, RegistryUnavailableError
from tenantforge.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="TenantForge API")

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(DependencyCycleError)
    async def _dependency_cycle_exception_handler(request: Request, exc: DependencyCycleError):
        return await dependency_cycle_exception_handler(request, exc)

    @app.exception_handler(RegistryUnavailableError)
    async def _registry_unavailable_exception_handler(request: Request, exc: RegistryUnavailableError):
        return await registry_unavailable_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    # Unversioned /health stays for load balancers; everything else lives under /v1.
    app.include_router(health_router)
    app.include_router(health_router, prefix=f"/{API_VERSION}")
    app.include_router(provisioning_router, prefix=f"/{API_VERSION}")
    app.include_router(assembly_router, prefix=f"/{API_VERSION}")

    app.state.app_name = get_settings().app_name
    return app


app = create_app()
