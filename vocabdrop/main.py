import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from vocabdrop.config import settings
from vocabdrop.db import Base, engine
from vocabdrop.routers import delivery_settings, jobs, subscriptions, webhooks
from vocabdrop.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        Base.metadata.create_all(bind=engine)
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(title="VocabDrop", lifespan=lifespan)

app.include_router(jobs.router)
app.include_router(delivery_settings.router)
app.include_router(subscriptions.router)
app.include_router(webhooks.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


def run():
    """Serve the API; the `vocabdrop` console script."""
    uvicorn.run("vocabdrop.main:app", host=settings.host, port=settings.port)
