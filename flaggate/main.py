from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flaggate.logging import configure_logging
from flaggate.metrics import setup_metrics
from flaggate.routers.flags import router as flags_router
from flaggate.routers.health import router as health_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # configured at startup, not import, so embedding the engine leaves logging alone
    configure_logging()
    logger.info("service_started", title=app.title, version=app.version)
    yield


app = FastAPI(title="Flag Gate", version="0.1.0", lifespan=lifespan)

# SDK clients call from arbitrary origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(flags_router)
setup_metrics(app)
