from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from .config import Settings, get_settings
from .database import create_store
from .log import configure_logging
from .routers import users, groups, transactions

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, json=settings.render_json_logs)
        store = create_store(settings)
        store.init_db()
        app.state.store = store
        logger.info("app_started", env=settings.app_env)
        try:
            yield
        finally:
            store.dispose()
            logger.info("app_stopped")

    app = FastAPI(title="Split Ledger API", version="1.0.0", lifespan=lifespan)

    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(groups.router, prefix="/groups", tags=["groups"])
    app.include_router(transactions.router, prefix="/transactions", tags=["transactions"])

    @app.get("/")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().app_port)
