"""
DogCatify lifecycle service - FastAPI application entry point.
CORS enabled; health check at GET /health; DB initialized on startup.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dogcatify import config
from dogcatify.db import init_db
from dogcatify.api.routes import router as api_router
from dogcatify.api.webhook import router as webhook_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize DB and any startup resources."""
    init_db()
    yield


app = FastAPI(
    title="DogCatify Lifecycle",
    description="Bookings, orders and medical alerts for the pet services marketplace.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api", tags=["api"])
app.include_router(webhook_router, prefix="/api", tags=["webhook"])


@app.get("/health")
def health():
    """Health check for load balancers and readiness probes."""
    return {"status": "ok"}
