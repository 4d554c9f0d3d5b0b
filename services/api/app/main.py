"""felixmart API service entrypoint."""

from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.api.app.config import Settings, cors_origins_from_env, get_settings
from services.api.app.db.init_db import init_db
from services.api.app.logging_config import get_logger, setup_logging
from services.api.app.routers.cart import router as cart_router
from services.api.app.routers.checkout import router as checkout_router
from services.api.app.routers.functions import router as functions_router
from services.api.app.routers.order import router as order_router

log = get_logger(__name__)

app = FastAPI(title="felixmart API")

# Origins are fixed when the module loads; FELIXMART_CORS_ORIGINS must be set before import.
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(cors_origins_from_env()),
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(functions_router)
app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(cart_router)


@app.on_event("startup")
def _startup() -> None:
    setup_logging()
    settings = Settings.from_env()
    app.state.settings = settings
    init_db()
    log.info(
        f"felixmart API started: payment_mode={settings.payment_mode} "
        f"cashfree_env={settings.cashfree_env}"
    )


@app.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict:
    return {
        "status": "OK",
        "mock_mode": settings.mock_mode,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
