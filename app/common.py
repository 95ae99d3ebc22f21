import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import engine
from app.dependencies import get_container
from app.init_db import init_models
from app.utils.exceptions import FeedException
from app.utils.security import decode_access_token

logger = logging.getLogger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.environment != "production":
        logger.info("Development mode - creating missing tables")
        await init_models()
    else:
        logger.info("Production mode - schema is managed by alembic")
    container = get_container()

    yield

    # Shutdown
    if container.runner.pending:
        logger.info(f"Waiting for {container.runner.pending} deferred moderation tasks")
        await container.runner.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    await engine.dispose()


app = FastAPI(lifespan=lifespan)
security = HTTPBearer(auto_error=False)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
@app.exception_handler(FeedException)
async def infrastructure_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} failed: {exc!r}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Dependency to get current user from token
async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> dict:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        logger.info("Rejected invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {
        "uid": payload["userId"],
        "email": payload.get("email"),
        "role": payload.get("role", "user"),
    }
