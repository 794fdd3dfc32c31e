import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from seamless_wallet.api import seamless as seamless_api_router
from seamless_wallet.config.settings import settings
from seamless_wallet.database import Base, engine
# register every model on Base before create_all
from seamless_wallet import models  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting seamless wallet ({settings.ENVIRONMENT})")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created (or already present)")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}", exc_info=True)
        raise
    yield
    logger.info("Shutting down seamless wallet")
    engine.dispose()


app = FastAPI(
    title="Seamless Wallet API",
    description="Provider callback endpoints for the seamless wallet: balance, debit, credit and rollback.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(seamless_api_router.router)


@app.get("/", tags=["Root"])
async def read_root():
    return {"message": "Seamless wallet is running"}


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("seamless_wallet.main:app", host="0.0.0.0", port=port, reload=settings.DEBUG)
