# mysecrets/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from mysecrets.core.base import Base
from mysecrets.core.config import load_master_key, require_jwt_secret, settings
from mysecrets.core.database import engine
from mysecrets.core.errors import InvalidToken, Unauthenticated, VaultError
from mysecrets.models import audit_event, refresh_token, secret, user  # noqa: F401
from mysecrets.routes.auth import router as auth_router
from mysecrets.routes.export import router as export_router
from mysecrets.routes.secrets import router as secrets_router
from mysecrets.services.refresh_tokens import clear_refresh_cookie

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

require_jwt_secret()
load_master_key()

Base.metadata.create_all(bind=engine)

app = FastAPI(title="My Secrets")
logger.info(
    "Startup config: ENV=%s google_login=%s access_minutes=%s refresh_days=%s",
    settings.ENV,
    bool(settings.GOOGLE_CLIENT_ID),
    settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    settings.REFRESH_TOKEN_EXPIRE_DAYS,
)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


@app.exception_handler(VaultError)
def vault_error_handler(request: Request, exc: VaultError):  # noqa: ARG001
    payload: dict = {"error": _error_code(exc.status_code), "message": exc.message}
    if exc.details:
        payload["details"] = exc.details

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    response = JSONResponse(status_code=exc.status_code, content=payload, headers=headers)

    # A rejected refresh token is dead; drop it from the browser too.
    if isinstance(exc, InvalidToken):
        clear_refresh_cookie(response)
    return response


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    detail = exc.detail
    message: str
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    payload: dict = {"error": _error_code(exc.status_code), "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


def _jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic v2 may put the raw exception object under "ctx"
    out = []
    for err in exc.errors():
        err = dict(err)
        ctx = err.get("ctx")
        if isinstance(ctx, dict):
            err["ctx"] = {k: str(v) for k, v in ctx.items()}
        out.append(err)
    return out


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    return JSONResponse(
        status_code=422,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request payload",
            "details": {"errors": _jsonable_errors(exc)},
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(secrets_router)
app.include_router(export_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
