import time

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from medicare.config import get_settings
from medicare.database import close_db, init_db, ping_db
from medicare.utils.logger import get_logger
from medicare.rate_limit import limiter

logger = get_logger("main")
settings = get_settings()

# Routers
from medicare.routers import auth as auth_router
from medicare.routers import doctors as doctors_router
from medicare.routers import appointments as appointments_router
from medicare.routers import doctor_appointments as doctor_appointments_router
from medicare.routers import beds as beds_router
from medicare.routers import reviews as reviews_router
from medicare.routers import records as records_router

app = FastAPI(
    title="MediCare API",
    debug=settings.APP_DEBUG,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Enable JWT Bearer Auth in Swagger
app.openapi_schema = None


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version="1.0.0",
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})
    # keep the OAuth2PasswordBearer scheme, add a plain bearer one next to it
    security_schemes["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }

    for path in openapi_schema.get("paths", {}):
        for method in openapi_schema["paths"][path]:
            operation = openapi_schema["paths"][path][method]
            operation["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router.router)
app.include_router(auth_router.account_router)
app.include_router(auth_router.doctor_router)
app.include_router(auth_router.doctor_account_router)
app.include_router(doctors_router.router)
app.include_router(appointments_router.slots_router)
app.include_router(appointments_router.router)
app.include_router(doctor_appointments_router.router)
app.include_router(beds_router.router)
app.include_router(beds_router.patient_router)
app.include_router(beds_router.admin_router)
app.include_router(reviews_router.router)
app.include_router(records_router.router)


# Error handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.detail, "status_code": exc.status_code},
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()} - Path: {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"success": False, "detail": jsonable_errors(exc), "status_code": 422},
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "detail": "Internal server error", "status_code": 500},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic puts the raw exception object in ctx for some errors
    return [
        {k: v for k, v in err.items() if k != "ctx"}
        for err in exc.errors()
    ]


# Middleware Logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Time: {process_time:.3f}s"
    )
    return response


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/readyz")
async def readyz():
    if not await ping_db():
        raise HTTPException(status_code=503, detail="Database not ready")
    return {"status": "ok", "database": "up"}


@app.on_event("startup")
async def on_startup():
    from medicare.repositories.mongo import mongo_store

    await init_db()
    app.state.store = mongo_store()
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")


@app.on_event("shutdown")
async def on_shutdown():
    close_db()
    logger.info(f"{settings.APP_NAME} stopped")
