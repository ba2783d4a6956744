from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.tbms.api import api_router
from app.tbms.core.config import settings
from app.tbms.core.context import build_backend_context
from app.tbms.core.errors import setup_exception_handlers
from app.tbms.core.logging import configure_logging
from app.tbms.db.session import SessionLocal
from app.tbms.middleware.observability import ObservabilityMiddleware
from app.tbms.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)
    app.state.backend = build_backend_context(SessionLocal)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ALLOW_ORIGINS.split(",") if origin.strip()],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
