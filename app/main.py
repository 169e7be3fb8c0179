import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Path, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from app.core.config import CERTIFICATE_ID_PATTERN, SERVICE_NAME, VERIFICATION_CODE_PATTERN
from app.logging_config import configure_logging
from app.certverify.api_models import (
    BulkVerificationRequest,
    ErrorCode,
    SignatureVerificationRequest,
    VerificationOutcome,
    VerificationRequest,
)
from app.certverify.bulk import get_bulk_coordinator
from app.certverify.clients import get_certificate_client, get_university_client
from app.certverify.exceptions import RateLimitExceededError
from app.certverify.rate_limit import rate_limit_bulk, rate_limit_verify
from app.certverify.verify import get_orchestrator

configure_logging()
log = logging.getLogger("certverify")

_started_at = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the orchestrator (and its signature primitives) before serving
    orchestrator = get_orchestrator()
    log.info(f"{SERVICE_NAME} ready (verifier={type(orchestrator).__name__})")
    yield


app = FastAPI(title="Certificate Verification Service", version="0.1.0", lifespan=lifespan)


def _envelope(
    success: bool,
    message: str,
    data: Any = None,
    errors: Optional[List[dict]] = None,
    code: Optional[str] = None,
    status_code: int = 200,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content: dict = {"success": success, "message": message, "data": data}
    if code is not None:
        content["code"] = code
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _outcome_response(outcome: VerificationOutcome) -> JSONResponse:
    message = (
        "Certificate verified successfully"
        if outcome.valid
        else "Certificate verification failed"
    )
    return _envelope(True, message, outcome.to_wire())


def _client_extra(request: Request, route: str) -> dict:
    return {
        "request_id": request.headers.get("X-Request-ID", "-"),
        "route": route,
        "remote_addr": request.client.host if request.client else "-",
    }


# =============================================================================
# Error Handlers
# =============================================================================


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": str(err.get("msg", "")).removeprefix("Value error, "),
        }
        for err in exc.errors()
    ]
    message = errors[0]["message"] if errors else "Validation failed"
    log.info(f"request_rejected errors={len(errors)}", extra=_client_extra(request, request.url.path))
    return _envelope(
        False, message, errors=errors, code=ErrorCode.VALIDATION_FAILED, status_code=400
    )


@app.exception_handler(RateLimitExceededError)
async def rate_limit_handler(request: Request, exc: RateLimitExceededError):
    log.info("request_throttled", extra=_client_extra(request, request.url.path))
    return _envelope(
        False,
        exc.message,
        code=exc.code,
        status_code=429,
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("unhandled_error", extra=_client_extra(request, request.url.path))
    return _envelope(
        False, "An unexpected error occurred", code=ErrorCode.INTERNAL_ERROR, status_code=500
    )


@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(
        f"request_complete status={resp.status_code} duration_ms={duration_ms}",
        extra={**_client_extra(request, request.url.path), "method": request.method,
               "duration_ms": duration_ms},
    )
    return resp


# =============================================================================
# Verification Endpoints
# =============================================================================


@app.post("/api/verify", dependencies=[Depends(rate_limit_verify)])
async def verify(req: VerificationRequest, request: Request):
    orchestrator = get_orchestrator()
    if req.certificate_id:
        outcome = await orchestrator.verify_by_id(req.certificate_id)
    else:
        outcome = await orchestrator.verify_by_code(req.verification_code)
    log.info(f"verify_called valid={outcome.valid}", extra=_client_extra(request, "/api/verify"))
    return _outcome_response(outcome)


@app.post("/api/verify/bulk", dependencies=[Depends(rate_limit_bulk)])
async def verify_bulk(req: BulkVerificationRequest, request: Request):
    result = await get_bulk_coordinator().verify_bulk(req.certificates)
    log.info(
        f"verify_bulk_called total={result.total_requested} valid={result.valid_certificates}",
        extra=_client_extra(request, "/api/verify/bulk"),
    )
    return _envelope(
        True,
        f"Bulk verification completed. {result.valid_certificates}/"
        f"{result.total_requested} certificates are valid.",
        result.to_wire(),
    )


@app.post("/api/verify/signature", dependencies=[Depends(rate_limit_verify)])
async def verify_signature(req: SignatureVerificationRequest, request: Request):
    """Verify a detached signature against a university's key on record."""
    result = await get_orchestrator().verify_signature(
        req.certificate_hash, req.digital_signature, req.university_id
    )
    log.info(
        f"verify_signature_called valid={result.valid}",
        extra=_client_extra(request, "/api/verify/signature"),
    )
    message = (
        "Digital signature verified successfully"
        if result.valid
        else "Digital signature verification failed"
    )
    return _envelope(True, message, result.to_wire())


@app.get("/api/verify/code/{verification_code}", dependencies=[Depends(rate_limit_verify)])
async def verify_by_code(
    request: Request,
    verification_code: str = Path(pattern=VERIFICATION_CODE_PATTERN),
):
    outcome = await get_orchestrator().verify_by_code(verification_code)
    log.info(f"verify_by_code_called valid={outcome.valid}",
             extra=_client_extra(request, "/api/verify/code"))
    return _outcome_response(outcome)


@app.get("/api/verify/{certificate_id}", dependencies=[Depends(rate_limit_verify)])
async def verify_by_id(
    request: Request,
    certificate_id: str = Path(pattern=CERTIFICATE_ID_PATTERN),
):
    outcome = await get_orchestrator().verify_by_id(certificate_id)
    log.info(f"verify_by_id_called valid={outcome.valid}",
             extra=_client_extra(request, "/api/verify"))
    return _outcome_response(outcome)


# =============================================================================
# Health and Operator Endpoints
# =============================================================================


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/health/live")
def health_live():
    return {"alive": True, "service": SERVICE_NAME, "uptime_seconds": int(time.time() - _started_at)}


@app.get("/health/ready")
async def health_ready():
    """Readiness: both collaborator services must answer."""
    certificate_ok, university_ok = await asyncio.gather(
        get_certificate_client().is_reachable(),
        get_university_client().is_reachable(),
    )
    ready = certificate_ok and university_ok
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "ready": ready,
            "dependencies": {
                "certificate-service": "up" if certificate_ok else "down",
                "university-service": "up" if university_ok else "down",
            },
        },
    )


@app.get("/version")
def version():
    # GIT_SHA is injected at deploy time
    return {"git_sha": os.getenv("GIT_SHA", "unknown")}


def _admin_disabled() -> Optional[JSONResponse]:
    # Read at call time so a config reload takes effect without a restart
    from app.core.config import ADMIN_ENDPOINT_ENABLED

    if ADMIN_ENDPOINT_ENABLED:
        return None
    return JSONResponse(status_code=404, content={"detail": "Admin endpoint disabled"})


@app.get("/admin")
def admin():
    """Return all configurable items for operator visibility.

    Gated by ADMIN_ENDPOINT_ENABLED (default: True for dev, False for prod).
    """
    from app.core.config import (
        BULK_CONCURRENCY,
        BULK_MAX_ITEMS_LIMIT,
        BULK_RATE_LIMIT_MAX_REQUESTS,
        CERTIFICATE_HASH_PATTERN,
        CERTIFICATE_SERVICE_URL,
        LOOKUP_TIMEOUT_SECONDS,
        MAX_BULK_VERIFICATION,
        RATE_LIMIT_MAX_REQUESTS,
        RATE_LIMIT_WINDOW_SECONDS,
        SIGNATURE_ALGORITHM,
        UNIVERSITY_SERVICE_URL,
        VERIFICATION_TIMEOUT_SECONDS,
    )

    disabled = _admin_disabled()
    if disabled is not None:
        return disabled

    return {
        "normative": {
            "signature_algorithm": SIGNATURE_ALGORITHM,
            "bulk_max_items_limit": BULK_MAX_ITEMS_LIMIT,
            "certificate_id_pattern": CERTIFICATE_ID_PATTERN,
            "certificate_hash_pattern": CERTIFICATE_HASH_PATTERN,
            "verification_code_pattern": VERIFICATION_CODE_PATTERN,
        },
        "policy": {
            "lookup_timeout_seconds": LOOKUP_TIMEOUT_SECONDS,
            "verification_timeout_seconds": VERIFICATION_TIMEOUT_SECONDS,
            "max_bulk_verification": MAX_BULK_VERIFICATION,
            "bulk_concurrency": BULK_CONCURRENCY,
            "rate_limit_window_seconds": RATE_LIMIT_WINDOW_SECONDS,
            "rate_limit_max_requests": RATE_LIMIT_MAX_REQUESTS,
            "bulk_rate_limit_max_requests": BULK_RATE_LIMIT_MAX_REQUESTS,
        },
        "services": {
            "certificate_service_url": CERTIFICATE_SERVICE_URL,
            "university_service_url": UNIVERSITY_SERVICE_URL,
        },
        "environment": {
            "log_level": logging.getLogger().getEffectiveLevel(),
            "log_level_name": logging.getLevelName(logging.getLogger().getEffectiveLevel()),
        },
    }


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LogLevelRequest(BaseModel):
    level: str

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level. Must be one of: {', '.join(LOG_LEVELS)}")
        return level


@app.post("/admin/log-level")
def set_log_level(req: LogLevelRequest):
    """Change the root log level at runtime.

    Every module logger is left at NOTSET, so the root level governs the
    whole service. Gated by ADMIN_ENDPOINT_ENABLED.
    """
    disabled = _admin_disabled()
    if disabled is not None:
        return disabled

    logging.getLogger().setLevel(req.level)
    log.warning(f"Log level changed to {req.level}")
    return _envelope(True, f"Log level set to {req.level}", {"logLevel": req.level})
