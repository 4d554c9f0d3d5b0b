from __future__ import annotations

import os

from services.api.app.db.database import get_engine
from services.api.app.db.models import Base
from services.api.app.logging_config import get_logger

log = get_logger(__name__)


def init_db() -> None:
    if os.getenv("FELIXMART_DB_AUTO_CREATE", "true").strip().lower() not in {
        "1",
        "true",
        "yes",
        "y",
    }:
        log.info("FELIXMART_DB_AUTO_CREATE disabled; skipping table creation")
        return

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    log.info("Order store tables ensured on %s", engine.url.render_as_string(hide_password=True))
