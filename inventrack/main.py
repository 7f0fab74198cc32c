import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from inventrack.core.config import settings
from inventrack.core.database import init_db
from inventrack.core.exceptions import InvenTrackError
from inventrack.core.logging_config import setup_logging
from inventrack.routers import bill, branch, inventory, report

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# 1. LIFESPAN MANAGER (The Startup/Shutdown Logic)
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- STARTUP ---
    setup_logging(settings.LOG_LEVEL)
    logger.info("Initialization started")
    await init_db()
    logger.info("Connected to database '%s'", settings.DATABASE_NAME)

    yield

    # --- SHUTDOWN ---
    logger.info("System shutting down")

# ---------------------------------------------------------
# 2. APP INITIALIZATION
# ---------------------------------------------------------
app = FastAPI(
    title=settings.APP_NAME,
    lifespan=lifespan,
    description="API for Multi-Branch Retail Inventory & Billing"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------
# 3. ERROR RESPONSES ({"success": false, "message": ...})
# ---------------------------------------------------------
@app.exception_handler(InvenTrackError)
async def inventrack_error_handler(request: Request, exc: InvenTrackError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Validation error: " + ", ".join(f"{e['field']}: {e['message']}" for e in errors),
            "errors": errors,
        },
    )

# ---------------------------------------------------------
# 4. ROUTERS
# ---------------------------------------------------------
app.include_router(branch.router, prefix="/branches", tags=["Branch Management"])
app.include_router(inventory.router, prefix="/inventory", tags=["Inventory Management"])
app.include_router(bill.router, prefix="/bills", tags=["Billing"])
app.include_router(report.router, prefix="/reports", tags=["Reports"])

# ---------------------------------------------------------
# 5. BASIC ROUTES (Health Checks)
# ---------------------------------------------------------
@app.get("/", tags=["System"])
async def root():
    """Root endpoint to verify the API is online."""
    return {
        "system": settings.APP_NAME,
        "status": "Online",
        "documentation": "/docs"
    }

@app.get("/health", tags=["System"])
async def health_check():
    """Used by Docker/Kubernetes to check if the app is alive."""
    return {"status": "ok"}
