import logging
from pathlib import Path
from urllib.parse import urlsplit

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.trustedhost import TrustedHostMiddleware

from ground.config import settings
from ground.errors import GroundError, NotAuthenticated, RateLimited
from ground.routers import auth, files, pages, system, users
from ground.services import security
from ground.services.audit import request_ip
from ground.services.ratelimit import login_rate_limiter

logger = logging.getLogger(__name__)

_IS_DEV = settings.environment.strip().lower() in {"dev", "development"}
_PACKAGE_ROOT = Path(__file__).resolve().parent

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if _IS_DEV else None,
    redoc_url="/redoc" if _IS_DEV else None,
    openapi_url="/openapi.json" if _IS_DEV else None,
)

_MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
_LOGIN_PATH = "/api/login"
_CSRF_EXEMPT_PATHS = {_LOGIN_PATH}
_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "base-uri 'self'; "
    "connect-src 'self'; "
    "form-action 'self'; "
    "frame-ancestors 'self'; "
    "img-src 'self' data: blob:; "
    "media-src 'self' blob:; "
    "object-src 'none'; "
    "script-src 'self'; "
    "style-src 'self' 'unsafe-inline'"
)


_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "same-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Cross-Origin-Opener-Policy": "same-origin",
}


class _AccessFilter(logging.Filter):
    """Keeps asset requests out of the uvicorn access log."""

    def filter(self, record: logging.LogRecord) -> bool:
        args = record.args if isinstance(record.args, tuple) else ()
        return not (len(args) >= 3 and str(args[2]).startswith("/static/"))


def _has_session_cookie(request: Request) -> bool:
    return bool((request.cookies.get(security.USER_TOKEN_COOKIE) or "").strip('" '))


def _request_hosts(request: Request) -> set[str]:
    candidates = (
        request.headers.get("host"),
        (request.headers.get("x-forwarded-host") or "").split(",", 1)[0],
        request.url.netloc,
    )
    return {value.strip().lower() for value in candidates if value and value.strip()}


def _same_origin(request: Request) -> bool:
    source = (request.headers.get("origin") or request.headers.get("referer") or "").strip()
    parsed = urlsplit(source)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return False
    return parsed.netloc.lower() in _request_hosts(request)


def _apply_security_headers(request: Request, response) -> None:
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if "text/html" in response.headers.get("content-type", "").lower():
        response.headers.setdefault("Content-Security-Policy", _CONTENT_SECURITY_POLICY)
    if not request.url.path.startswith("/static/"):
        response.headers.setdefault("Cache-Control", "no-store")


logging.getLogger("uvicorn.access").addFilter(_AccessFilter())

trusted_hosts = [host.strip() for host in settings.trusted_hosts.split(",") if host.strip()]
if trusted_hosts:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)


def _error_response(exc: GroundError) -> JSONResponse:
    response = JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
    if isinstance(exc, NotAuthenticated):
        security.remove_user_token(response)
    return response


@app.middleware("http")
async def _security_middleware(request: Request, call_next):
    path = request.url.path or "/"
    method = request.method.upper()

    if method == "POST" and path == _LOGIN_PATH:
        client_ip = request.client.host if request.client else "unknown"
        if not login_rate_limiter.hit(client_ip):
            logger.warning("login rate limit hit ip=%s", client_ip)
            return _error_response(RateLimited())

    if (
        settings.csrf_protection_enabled
        and method in _MUTATING_METHODS
        and path.startswith("/api/")
        and path not in _CSRF_EXEMPT_PATHS
        and _has_session_cookie(request)
    ):
        if not _same_origin(request):
            return JSONResponse(status_code=403, content={"detail": "CSRF validation failed."})

    response = await call_next(request)
    _apply_security_headers(request, response)
    return response


@app.exception_handler(GroundError)
async def _ground_error_handler(request: Request, exc: GroundError):
    requestor = getattr(request.state, "requestor", None)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "%s %s failed ip=%s requestor=%s status=%s error=%s",
        request.method,
        request.url.path,
        request_ip(request) or "-",
        requestor.username if requestor else "-",
        exc.status_code,
        exc.detail,
    )
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s invalid body: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "Invalid body provided."})


@app.exception_handler(OSError)
async def _os_error_handler(request: Request, exc: OSError):
    logger.error("%s %s filesystem error: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Filesystem operation failed."})


app.mount("/static", StaticFiles(directory=str(_PACKAGE_ROOT / "static")), name="static")

app.include_router(auth.router)
app.include_router(files.router)
app.include_router(users.router)
app.include_router(system.router)
app.include_router(pages.router)
