import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import ALLOWED_ORIGINS, LOG_LEVEL

# Import all models first to ensure SQLAlchemy metadata is properly initialized
from src.models import db as models_db
from src.models.auth_models import User
from src.models_permit import Permit
from src.models_audit import AuditLog

# Import routers after models
from src.api.permits import router as permits_router
from src.api.audit_logs import router as audit_logs_router
from src.api.users import router as users_router

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Development convenience; production schemas come from the Alembic revisions
    models_db.Base.metadata.create_all(bind=models_db.engine)
    yield


app = FastAPI(title="Permit Tracker API", lifespan=lifespan)

# CORS middleware must be added before routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

def make_cors_response(request: Request, status_code: int, content: dict):
    """Helper function to create JSONResponse with CORS headers."""
    origin = request.headers.get("origin")
    headers = {}
    if origin in ALLOWED_ORIGINS:
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return JSONResponse(status_code=status_code, content=content, headers=headers)

def jsonable_errors(exc: RequestValidationError):
    # ctx may carry exception instances that JSONResponse cannot encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]

# Exception handlers to ensure CORS headers are always present
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors (422) with CORS headers."""
    logger.warning(f"Validation error: {exc.errors()}")
    return make_cors_response(
        request,
        422,
        {"detail": jsonable_errors(exc)}
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return make_cors_response(
        request,
        exc.status_code,
        {"detail": exc.detail}
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return make_cors_response(
        request,
        500,
        {"detail": f"Internal server error: {str(exc)}"}
    )

@app.get("/health")
def health():
    return {"ok": True, "origins": ALLOWED_ORIGINS}

app.include_router(permits_router)
app.include_router(audit_logs_router)
app.include_router(users_router)
