"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from snaptag.database import SessionLocal
from snaptag.exceptions import SnaptagError
from snaptag.settings import settings

# Import all routers
from snaptag.routers import images, tags

app = FastAPI(
    title="SnapTag",
    description="Image catalogue with tag search and tag suggestions",
    version="0.1.0"
)
logger = logging.getLogger(__name__)


@app.exception_handler(SnaptagError)
async def snaptag_error_handler(request: Request, exc: SnaptagError):
    """Translate domain errors into JSON responses carrying their kind."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


_allowed_origins = [settings.app_url]
if settings.is_development:
    # Allow any localhost port during local development
    _allowed_origins += [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(images.router)
app.include_router(tags.router)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint with DB connectivity verification."""
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"Database unavailable: {exc}")
    finally:
        db.close()
