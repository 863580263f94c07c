import logging
import time
from datetime import datetime

import pytz
import redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import auth, courier, orders, reports, websocket
from .config import settings
from .core.exceptions import CourierDeskError
from .core.logging_config import setup_logging
from .services.redis import redis_client

logger = logging.getLogger(__name__)

setup_logging()

app = FastAPI(title="Courier Desk API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add response time header"""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


@app.exception_handler(CourierDeskError)
async def courier_desk_error_handler(request: Request, exc: CourierDeskError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(auth.router)
app.include_router(orders.router)
app.include_router(courier.router)
app.include_router(reports.router)
app.include_router(websocket.router)


@app.on_event("startup")
async def startup_event():
    """Check the Redis connection on startup"""
    try:
        redis_client.ping()
        logger.info("Redis connected successfully")
    except redis.RedisError as e:
        logger.warning("Redis connection failed: %s", e)


@app.on_event("shutdown")
async def shutdown_event():
    try:
        redis_client.client.close()
        logger.info("Redis connection closed")
    except redis.RedisError as e:
        logger.warning("Redis close failed: %s", e)


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now(pytz.UTC).isoformat()
    }
