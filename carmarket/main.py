# carmarket/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from carmarket.config import ALLOWED_ORIGINS
from carmarket.logging_config import setup_logging
from carmarket.middleware import RequestIDMiddleware
from carmarket.routes.health import router as health_router
from carmarket.routes.listings import router as listings_router
from carmarket.routes.metrics import router as metrics_router

# Initialize structured logging
setup_logging(process="api")
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Carmarket Listing API",
    description="Vehicle listing lifecycle: create, sell, relist, delete, boost and search",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(listings_router, prefix="/api", tags=["Listings"])
