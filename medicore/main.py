# FILE: medicore/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medicore.api.exception_handlers import register_exception_handlers
from medicore.api.router import api_router
from medicore.core.config import settings
from medicore.core.logging import configure_logging
from medicore.db.base import Base
from medicore.db.session import engine

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("medicore")

app = FastAPI(
    title=settings.PROJECT_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global OPTIONS handler
@app.options("/{rest_of_path:path}")
async def cors_preflight_handler(rest_of_path: str, request: Request):
    origin = request.headers.get("origin")
    allowed_origins = settings.BACKEND_CORS_ORIGINS

    headers = {
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": request.headers.get("access-control-request-headers", "*"),
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }

    # Only echo origin if it is in the allowed list
    if origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin

    return JSONResponse(status_code=200, content={"message": "preflight ok"}, headers=headers)


register_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.on_event("startup")
def _create_tables():
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
        logger.info("Pharmacy tables ensured on %s", engine.url.render_as_string(hide_password=True))


# Health
@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} API running", "version": "v1"}
