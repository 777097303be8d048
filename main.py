import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

import models  # noqa: F401  registers tables on Base.metadata
from api import auth_routes, chat_routes, doctor_routes, medical_image_routes, organization_routes, patient_routes
from config import CORS_ORIGINS, DEBUG, ENVIRONMENT, LOG_LEVEL
from database import engine, Base
from grading import get_grader
from rate_limit import limiter, rate_limit_exceeded_handler

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ------------------------
# Database setup
# ------------------------
Base.metadata.create_all(bind=engine)

# ------------------------
# FastAPI app
# ------------------------
app = FastAPI(title="Liver Fibrosis Assessment API")

# ------------------------
# Rate limiting
# ------------------------
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# ------------------------
# CORS
# ------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------
# Load grader on startup
# ------------------------
@app.on_event("startup")
async def startup_event():
    get_grader()
    logger.info("API started (environment=%s)", ENVIRONMENT)


# ============================================================
# ERROR ENVELOPE
# ============================================================
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def _validation_message(errors) -> str:
    messages = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "form")]
        field = ".".join(location)
        messages.append(f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid request"))
    return "; ".join(messages) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": _validation_message(exc.errors())})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"success": False, "message": "Server error"}
    if DEBUG:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# ============================================================
# ROUTERS
# ============================================================
app.include_router(auth_routes.router)
app.include_router(doctor_routes.router)
app.include_router(organization_routes.router)
app.include_router(patient_routes.router)
app.include_router(medical_image_routes.router)
app.include_router(chat_routes.router)


# ============================================================
# HEALTH
# ============================================================
@app.get("/health")
@limiter.exempt
async def health(request: Request):
    return {"success": True, "message": "Server is running", "environment": ENVIRONMENT}


@app.get("/api/health")
@limiter.exempt
async def api_health(request: Request):
    return {"success": True, "message": "API is healthy"}


@app.get("/")
@limiter.exempt
async def root(request: Request):
    return {"success": True, "message": "Liver Fibrosis Assessment API"}


# ============================================================
# RUN
# ============================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
