import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import tasktracker.models.task  # noqa: F401  registers every model on Base.metadata
from tasktracker.config import CORS_ORIGIN, LOG_LEVEL, UPLOAD_DIR
from tasktracker.database import Base, engine
from tasktracker.errors import AppError, ValidationError
from tasktracker.realtime.notifier import NotificationRouter
from tasktracker.realtime.registry import ConnectionRegistry
from tasktracker.realtime.transport import WebSocketTransport
from tasktracker.routers import auth, collaboration, realtime, tasks, teams, users
from tasktracker.utils.files import BlobStore

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Task Tracker API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One registry/transport pair per process, shared by the websocket endpoint
# and the services through app.state.
app.state.registry = ConnectionRegistry()
app.state.transport = WebSocketTransport()
app.state.notifier = NotificationRouter(app.state.registry, app.state.transport)
app.state.blob_store = BlobStore(UPLOAD_DIR)
app.state.blob_store.ensure_root()

# API routers
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(teams.router, prefix="/api")
app.include_router(collaboration.router, prefix="/api")
app.include_router(realtime.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed)
    return response


def _failure(status_code: int, message: str, errors=None) -> JSONResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return _failure(exc.status_code, exc.message, errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return _failure(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"
    return _failure(exc.status_code, message)


# Generic error handler to return JSON errors for unexpected exceptions
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _failure(500, "Internal server error")


@app.get("/health")
def health():
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "connections": len(app.state.transport),
        "registeredUsers": len(app.state.registry),
    }


@app.get("/")
def index():
    return {
        "success": True,
        "message": "Welcome to Task Tracker API",
        "version": app.version,
        "endpoints": {
            "auth": "/api/auth",
            "users": "/api/users",
            "tasks": "/api/tasks",
            "teams": "/api/teams",
            "collaboration": "/api/tasks/{taskId}/comments and /api/tasks/{taskId}/attachments",
            "websocket": "/ws",
        },
    }
