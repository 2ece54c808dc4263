import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from utils import config
from utils.errors import BridgeError
from utils.limiter import limiter
from utils.logger import setup_logging, RequestContextLogMiddleware

from routers.health import router as health_router
from routers.registry import router as registry_router
from routers.webhooks import router as webhooks_router

from services.form_registry import FormRegistry
from services.ingestion_service import IngestionController, RowSink
from services.registry_service import RegistryController
from services.sheets_service import GoogleSheetsSink, ServiceAccountTokenProvider
from utils.formsg_crypto import FormSGCrypto

setup_logging()
logger = logging.getLogger("bridge")


def create_app(
    registry: Optional[FormRegistry] = None,
    crypto: Optional[FormSGCrypto] = None,
    sink: Optional[RowSink] = None,
    admin_secret: Optional[str] = None,
) -> FastAPI:
    """Wire the registry, crypto and sheet sink into an app. Defaults come from the environment."""
    # an empty registry is falsy (__len__), so test against None
    if registry is None:
        registry = FormRegistry(config.REGISTRY_PATH)
    if crypto is None:
        crypto = FormSGCrypto(config.FORMSG_PUBLIC_KEY, config.FORMSG_SIGNATURE_MAX_AGE_MS)
    if sink is None:
        tokens = ServiceAccountTokenProvider(config.GOOGLE_SERVICE_ACCOUNT_FILE, timeout=config.SHEETS_TIMEOUT_SECONDS)
        sink = GoogleSheetsSink(tokens, timeout=config.SHEETS_TIMEOUT_SECONDS)
    admin_secret = config.ADMIN_SECRET if admin_secret is None else admin_secret

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Registry must be on disk before the first request is served
        registry.load()
        if not admin_secret:
            logger.warning("ADMIN_SECRET not set; POST /add will reject every request")
        yield

    app = FastAPI(title="FormSG Sheets Bridge", lifespan=lifespan)
    app.state.registry = registry
    app.state.ingestion = IngestionController(registry, crypto, sink)
    app.state.registry_controller = RegistryController(registry, admin_secret)
    app.state.limiter = limiter

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        logging.getLogger("bridge.errors").info(
            "%s %s -> %s stage=%s message=%s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.stage or "-",
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"message": "Invalid request"})

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(status_code=429, content={"message": "Rate limit exceeded"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logging.getLogger("bridge").exception("Unhandled error")
        return JSONResponse(status_code=500, content={"message": "Server error"})

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestContextLogMiddleware)

    # Fixed paths first: /{sheet_id} and /{form_id} match anything
    app.include_router(health_router)
    app.include_router(registry_router)
    app.include_router(webhooks_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=config.PORT)
