import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from . import auth, config, reviews, tours, users
from .database import ensure_indexes, get_db
from .errors import register_error_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(get_db(("tours", "users", "reviews")))
    yield


app = FastAPI(title="Tourbook API", lifespan=lifespan)

limiter = Limiter(key_func=get_remote_address, default_limits=[config.RATE_LIMIT])
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - start) * 1000
    logger.info("%s %s %d %.3f ms", request.method, request.url.path, response.status_code, elapsed)
    return response


os.makedirs(os.path.join(config.PUBLIC_DIR, "img"), exist_ok=True)
app.mount("/img", StaticFiles(directory=os.path.join(config.PUBLIC_DIR, "img")), name="img")

app.include_router(tours.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(reviews.router, prefix="/api/v1/reviews")

register_error_handlers(app)
