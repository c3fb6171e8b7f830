import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contractor_ai.api.v1.router import api_v1_router
from contractor_ai.core.config import settings, validate_settings_for_production
from contractor_ai.core.logging import setup_logging
from contractor_ai.core.metrics import PrometheusMiddleware, metrics_response
from contractor_ai.gateway.exceptions import GatewayError
from contractor_ai.gateway.gateway import AIGateway
from contractor_ai.gateway.types import GatewayConfig

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


def create_app(gateway: AIGateway | None = None) -> FastAPI:
    """Build the FastAPI app.

    A prebuilt ``gateway`` is attached immediately so in-process test
    transports, which skip lifespan events, can still reach it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        validate_settings_for_production()
        if getattr(app.state, "gateway", None) is None:
            config = GatewayConfig.from_settings(settings)
            app.state.gateway = AIGateway(config)
            logger.info(
                "AI gateway ready (cost_saver=%s, concurrency=%d, model=%s, price_model=%s)",
                config.cost_saver,
                config.queue_concurrency,
                config.openai_model,
                config.openai_price_model,
            )
            if not config.openai_api_key:
                logger.warning("OPENAI_API_KEY is not set; AI operations will fail")

        yield

        # Shutdown
        logger.info("Contractor AI gateway shut down")

    app = FastAPI(
        title="Contractor AI Gateway",
        description="Scope-of-work generation and material price lookup for contractors",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.app_debug else None,
        redoc_url="/api/redoc" if settings.app_debug else None,
    )
    app.state.gateway = gateway

    @app.exception_handler(GatewayError)
    async def _gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected body on %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    # Log unhandled exceptions; the client only sees a generic message
    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
        logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
        return JSONResponse(status_code=500, content={"error": "Unexpected error"})

    app.add_middleware(PrometheusMiddleware)

    # CORS — parse allowed_origins from settings (comma-separated)
    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_v1_router)

    @app.get("/api/v1/health")
    async def health():
        return {"status": "ok", "gateway": app.state.gateway is not None}

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_response()

    return app


app = create_app()
