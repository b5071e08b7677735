from fastapi import FastAPI

from app.stockflow.api import api_router
from app.stockflow.core.config import settings
from app.stockflow.core.errors import setup_exception_handlers
from app.stockflow.core.logging import configure_logging
from app.stockflow.middleware.caller import CallerContextMiddleware
from app.stockflow.middleware.observability import ObservabilityMiddleware
from app.stockflow.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(CallerContextMiddleware)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
