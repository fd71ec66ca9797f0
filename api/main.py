"""
Checkout Funnel API - Main Application.

FastAPI application serving the pricing/payment endpoints under /api and
the buyer-facing funnel steps under /{product}/...
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import __version__
from repositories.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Checkout Funnel API",
    description="Pricing, payment and one-click upsell sequencing for single-product checkout funnels",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_envelope(path: str) -> dict:
    """Routes that answer with a boolean flag keep it on error bodies too."""
    if path.endswith("/validate-coupon"):
        return {"valid": False}
    if path.endswith("/charge-upsell"):
        return {"success": False}
    return {}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    logger.info(f"Rejected request to {request.url.path}: {len(details)} validation error(s)")
    body = _error_envelope(request.url.path)
    body.update({"error": "Invalid request data", "details": details})
    return JSONResponse(status_code=400, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = _error_envelope(request.url.path)
    body["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    body = _error_envelope(request.url.path)
    body["error"] = "Internal server error"
    return JSONResponse(status_code=500, content=body)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "checkout-funnel-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Checkout Funnel API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers; /api routes must be registered before the
# catch-all funnel paths.
from api.routers import coupons, funnel, payments, quotes

app.include_router(payments.router, prefix="/api", tags=["Payments"])
app.include_router(coupons.router, prefix="/api", tags=["Coupons"])
app.include_router(quotes.router, prefix="/api", tags=["Quotes"])
app.include_router(funnel.router, tags=["Funnel"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
