import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from comment_api.cache import cache
from comment_api.config import settings
from comment_api.database import get_db, ping_store
from comment_api.exceptions import (
    CommentNotFoundError,
    CommentValidationError,
    StoreUnavailableError,
)
from comment_api.middleware import TimingMiddleware
from comment_api.routers import comments, metrics
from comment_api.schemas import HealthResponse

VERSION = "1.0.0"

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the app keeps serving from the store without Redis.
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Comment API",
    description="Comment resource with a cache-aside list endpoint",
    version=VERSION,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(comments.router)
app.include_router(metrics.router)

# Error mapping
@app.exception_handler(CommentNotFoundError)
async def comment_not_found_handler(request: Request, exc: CommentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": "Comment not found"})

@app.exception_handler(CommentValidationError)
async def comment_validation_handler(request: Request, exc: CommentValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": [
                {"loc": ["body", field], "msg": exc.message, "type": "value_error"}
                for field in exc.fields
            ]
        },
    )

@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error("Request %s %s failed, store unavailable", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Store unavailable"})

@app.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)):
    store_ok = await ping_store(db)
    return HealthResponse(
        status="healthy" if store_ok else "degraded",
        version=VERSION,
        store=store_ok,
        cache=await cache.ping(),
    )
