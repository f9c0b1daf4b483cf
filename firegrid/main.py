import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from firegrid.api.dependencies import build_services
from firegrid.api.routes import router
from firegrid.database import init_db
from firegrid.datasources.base import DocumentStore
from firegrid.errors import FiregridError
from firegrid.settings import Settings, get_settings
from firegrid.widgets.config import WidgetConfigValidationError

logger = logging.getLogger(__name__)


def _resolve_cors_origins(settings: Settings) -> list[str]:
    if settings.cors_origins:
        return settings.cors_origins
    if settings.environment in {"development", "test"}:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    return []


def create_app(settings: Settings | None = None, store: DocumentStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    services = build_services(settings, store)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if services.engine is not None:
            init_db(services.engine)
        yield
        # Pending autosaves are written before the process exits
        await services.sessions.close_all()

    docs_enabled = settings.environment != "production"
    app = FastAPI(
        title="Firegrid",
        description="Dashboard widget computation and autosave service",
        version="0.1.0",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_resolve_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(FiregridError)
    async def handle_firegrid_error(_request: Request, exc: FiregridError) -> JSONResponse:
        logger.warning(
            "firegrid.handled_error | %s",
            {
                "error_id": exc.error_id,
                "code": exc.code,
                "status_code": exc.status_code,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": exc.message, "error_id": exc.error_id}},
        )

    @app.exception_handler(WidgetConfigValidationError)
    async def handle_widget_validation_error(_request: Request, exc: WidgetConfigValidationError) -> JSONResponse:
        error_id = str(uuid.uuid4())
        detail = exc.to_detail()
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": "widget_config_invalid",
                    "message": detail["message"],
                    "error_id": error_id,
                    "field_errors": detail["field_errors"],
                }
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(_request: Request, exc: Exception) -> JSONResponse:
        error_id = str(uuid.uuid4())
        logger.exception("firegrid.unhandled_error | %s", {"error_id": error_id})
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "Unexpected internal error",
                    "error_id": error_id,
                }
            },
        )

    app.include_router(router)
    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run("firegrid.main:app", host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


app = create_app()


if __name__ == "__main__":
    run()
