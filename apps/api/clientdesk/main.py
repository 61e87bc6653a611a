from contextlib import asynccontextmanager
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

import clientdesk.models  # noqa: F401
from clientdesk.api.routes import router as api_router
from clientdesk.core.config import get_settings
from clientdesk.core.database import init_db
from clientdesk.core.errors import register_exception_handlers
from clientdesk.logging import configure_logging
from clientdesk.middleware.correlation_id import CorrelationIdMiddleware
from clientdesk.middleware.rate_limit import MutationRateLimitMiddleware
from clientdesk.middleware.request_logging import RequestLoggingMiddleware
from clientdesk.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("clientdesk.lifecycle")
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    Path(settings.upload_path).mkdir(parents=True, exist_ok=True)
    logger.info("system_started", extra={"path": settings.upload_path})
    yield
    logger.info("system_stopped")


app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
register_exception_handlers(app)
app.add_middleware(MutationRateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router)

if settings.otel_enabled:
    setup_otel()

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
