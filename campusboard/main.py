"""CampusBoard - FastAPI application"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import ResponseValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .database import init_db
from .exceptions import AppError
from .middleware.logging_middleware import RequestLoggingMiddleware
from .routers import api_router, websocket
from .utils.logging_config import setup_logging

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    _ = app
    setup_logging(settings.log_level, settings.log_dir, "campusboard", sql_echo=settings.debug)
    await init_db()
    logger.info("database initialised")

    yield

    logger.info("application shutdown")


app = FastAPI(
    title=settings.app_name,
    description="""
# CampusBoard API

Campus forum backend: forums, comments, announcements, aggregated
notifications with live push, moderation and reports.

## Authentication

JWT bearer token in the request header:
```
Authorization: Bearer <your_token>
```

Browser tabs that hold a forum socket may also send `X-Session-Id`; room
events carry it back as `sessionId` so the tab can ignore its own echo.
""",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Users", "description": "Profiles, follows and subscriptions"},
        {"name": "Forum", "description": "Forums, comments, likes"},
        {"name": "Notifications", "description": "Aggregated notifications"},
        {"name": "Reports", "description": "Content reports"},
        {"name": "Admin", "description": "Moderation and report handling"},
        {"name": "WebSocket", "description": "Live push"},
    ],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("app error path=%s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(ResponseValidationError)
async def response_validation_exception_handler(request: Request, exc: ResponseValidationError):
    logger.exception("Response validation error path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": exc.errors() if settings.debug else "Internal server error"},
    )

app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")
app.include_router(websocket.router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("campusboard.main:app", host="0.0.0.0", port=8000, reload=True)
