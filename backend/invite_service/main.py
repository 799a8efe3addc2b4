# backend/invite_service/main.py

import logging
import traceback
import time
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException

from invite_service.api.v1 import health, invites
from invite_service.core.config import Settings, get_settings
from invite_service.core.errors import (
    InviteError,
    InviteErrorCode,
    StoreUnavailable,
    install_request_id_logging,
    log_exception_with_context,
)
from invite_service.core.rate_limit import SimpleRateLimiter, client_ip
from invite_service.core.request_context import set_request_id, get_request_id
from invite_service.services.invites import InviteStore

logger = logging.getLogger("invite_service")

_logging_configured = False


def _record_factory_with_request_id():
    # LogRecordFactory runs for EVERY record, globally, so request_id always
    # exists even on third-party loggers that never see RequestIdFilter.
    old_factory = logging.getLogRecordFactory()

    def _record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return record

    return _record_factory


def configure_logging(level: str = "INFO") -> None:
    """
    Install the request-id aware format once per process; the level is
    applied on every call so each create_app(settings) honours LOG_LEVEL.
    """
    global _logging_configured
    if _logging_configured:
        logging.getLogger().setLevel(level.upper())
        return

    logging.setLogRecordFactory(_record_factory_with_request_id())
    logging.basicConfig(
        level=level.upper(),
        format="%(levelname)s %(name)s request_id=%(request_id)s %(message)s",
    )
    install_request_id_logging()
    _logging_configured = True


def _get_request_id(request: Request) -> str:
    """
    Use an incoming request id if present (common in proxies),
    otherwise generate one. Keep it short but collision-resistant.
    """
    incoming = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
    if incoming and incoming.strip():
        return incoming.strip()[:128]
    return uuid.uuid4().hex  # 32 chars


def _rid_from_request(request: Request) -> str:
    # Prefer request.state (set by middleware), fall back to request_context, then generate.
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid.strip():
        return rid
    rid2 = get_request_id()
    if rid2 and rid2 != "-":
        return rid2
    return uuid.uuid4().hex


def _error_payload(code: str, message: str, request_id: str, extra: Optional[dict] = None) -> dict:
    """
    Standardized error contract:
    - status/error: the FAILED envelope that invite clients parse
    - code/message/request_id: stable machine-readable fields
    - detail: {code, message} for generic HTTP clients
    """
    payload: dict[str, Any] = {
        "status": "FAILED",
        "error": message,
        "code": code,
        "message": message,
        "request_id": request_id,
        "detail": {"code": code, "message": message},
    }
    if extra:
        payload.update(extra)
    return payload


def _http_exception_payload(exc: HTTPException, *, request_id: str) -> dict:
    """
    Build a structured error payload for HTTPException.

    - If exc.detail is a dict, preserve it and MERGE it into payload["detail"],
      so handlers can raise HTTPException(503, detail={"store": "down", ...}).
    - If exc.detail is a string, it becomes the message.
    """
    code = f"HTTP_{exc.status_code}"

    if isinstance(exc.detail, dict):
        msg = exc.detail.get("message")
        if not isinstance(msg, str) or not msg.strip():
            msg = "Request failed."

        merged_detail: dict[str, Any] = {"code": code, "message": msg}
        merged_detail.update(exc.detail)

        return _error_payload(code=code, message=msg, request_id=request_id, extra={"detail": merged_detail})

    msg = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return _error_payload(code=code, message=msg, request_id=request_id)


def _json_error(status_code: int, payload: dict, request_id: str, headers: Optional[dict] = None) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=payload, headers=headers)
    resp.headers["X-Request-ID"] = request_id
    return resp


# --- Exception handlers (standardized error contract) ---
async def http_exception_handler(request: Request, exc: HTTPException):
    request_id = _rid_from_request(request)
    payload = _http_exception_payload(exc, request_id=request_id)
    return _json_error(exc.status_code, payload, request_id, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _rid_from_request(request)
    # Malformed invite bodies are a client error (400), full details kept for debugging.
    payload = _error_payload(
        code=InviteErrorCode.VALIDATION_ERROR.value,
        message="Validation error. Check request body/query parameters.",
        request_id=request_id,
        extra={"errors": jsonable_encoder(exc.errors())},
    )
    return _json_error(400, payload, request_id)


async def invite_error_handler(request: Request, exc: InviteError):
    request_id = _rid_from_request(request)

    if isinstance(exc, StoreUnavailable):
        log_exception_with_context(
            "Invite store fault",
            request_id=request_id,
            extra={"method": request.method, "path": request.url.path},
        )

    payload = _error_payload(code=exc.code.value, message=exc.message, request_id=request_id)
    return _json_error(exc.status_code, payload, request_id)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[InviteStore] = None,
) -> FastAPI:
    """
    Build the FastAPI app around one explicitly owned InviteStore.

    Tests pass their own store (e.g. with a fake clock) and settings;
    the module-level `app` below uses the environment.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    enable_docs = settings.enable_docs
    logger.info("Startup: environment=%s enable_docs=%s", settings.environment, enable_docs)

    app = FastAPI(
        title="Invite Service",
        description="Issues and validates time-limited onboarding invites",
        version="0.1.0",
        openapi_url="/swagger.json" if enable_docs else None,
        docs_url="/docs" if enable_docs else None,
        redoc_url="/redoc" if enable_docs else None,
    )

    app.state.settings = settings
    app.state.invite_store = store if store is not None else InviteStore()
    app.state.validate_limiter = SimpleRateLimiter(
        "invite_validate",
        settings.validate_rate_limit,
        settings.validate_rate_window,
        trust_proxy_headers=settings.trust_proxy_headers,
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(InviteError, invite_error_handler)

    slow_http_ms = float(settings.slow_http_ms)
    trust_proxy_headers = settings.trust_proxy_headers

    # --- Observability middleware: request id + timing + structured logs ---
    @app.middleware("http")
    async def request_observability(request: Request, call_next):
        request_id = _get_request_id(request)
        request.state.request_id = request_id
        set_request_id(request_id)

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = getattr(response, "status_code", 200) or 200
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            # Handled errors never get here; this is the last line for true
            # unhandled exceptions: log full traceback, answer with a JSON 500.
            logger.error(
                "Unhandled error method=%s path=%s error=%s",
                request.method,
                request.url.path,
                str(e),
            )
            logger.error(traceback.format_exc())

            payload = _error_payload(
                code=InviteErrorCode.INTERNAL_ERROR.value,
                message="Internal Server Error",
                request_id=request_id,
            )
            status_code = 500
            return _json_error(500, payload, request_id)

        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0

            # "Structured" log line (key=value) so it's grep-friendly.
            log_fn = logger.warning if duration_ms >= slow_http_ms else logger.info
            log_fn(
                "req method=%s path=%s status=%s duration_ms=%.2f ip=%s ua=%s",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                client_ip(request, trust_proxy_headers),
                (request.headers.get("user-agent") or "").replace(" ", "_")[:200],
            )
            set_request_id(None)

    # --- CORS setup ---
    allowed = settings.origins_list()
    logger.info("CORS allow_origins=%s", allowed)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(invites.router, prefix=settings.api_prefix)

    return app


app = create_app()
