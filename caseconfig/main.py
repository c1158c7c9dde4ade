# caseconfig/main.py
import os
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError

# Rate limiting
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from .db import get_catalog_provider
from .routes import router, limiter

# =========================
# Environment & Constants
# =========================
ALLOWED = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")
SERVICE_VERSION = "v1"

# =========================
# Logging
# =========================
logger = logging.getLogger("caseconfig")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

# =========================
# App Setup
# =========================
app = FastAPI(title="Case Configuration API")
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in ALLOWED.split(",") if o.strip()],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

logger.info("Catalog provider: %s", get_catalog_provider())

# =========================
# Routes
# =========================
@app.get("/health")
def health():
    return {"status": "ok", "version": SERVICE_VERSION, "catalog_provider": get_catalog_provider()}

# =========================
# Error Handlers
# =========================
@app.exception_handler(HTTPException)
async def http_exc_handler(request, exc: HTTPException):
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return await http_exception_handler(request, exc)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    return JSONResponse(status_code=422, content={"error": {"code": "VALIDATION_ERROR", "message": "Invalid input."}})

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request, exc):
    return JSONResponse(status_code=429, content={"error": {"code": "RATE_LIMITED", "message": "Too many requests. Please slow down."}})
