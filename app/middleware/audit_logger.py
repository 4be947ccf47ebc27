"""
Audit logging middleware for evidence endpoints.

Each request moves through ARRIVED -> (response produced) -> LOGGED. Fields
are derived from the request (actor, action type, resource ids, source IP)
and the observed response (status code, JSON payload), then handed to the
audit writer as a detached task. The response is never held back waiting
for the write, and any failure in this layer is logged and dropped.

The derivation helpers and ``AuditInterceptor`` are framework-neutral; only
``AuditLogMiddleware`` knows about Starlette.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from app.config.logger import app_logger
from app.config.settings import settings
from app.models.audit_log import ActionStatus, ActionType, UNKNOWN_IP, UNKNOWN_ROLE
from app.services.audit_logger import AuditLogWriter

SENSITIVE_FIELDS = ("password", "token", "secret", "key", "fileData", "file_data")
REDACTED = "[REDACTED]"
TRUNCATED_SUFFIX = "...[TRUNCATED]"

ANONYMOUS_USER = "anonymous"
WALLET_HEADER = "x-user-wallet"

EVIDENCE_ID_FIELDS = ("evidenceId", "evidence_id")
CASE_ID_FIELDS = ("caseId", "case_id")

# Checked in order; the first matching path fragment wins.
PATH_ACTIONS: Tuple[Tuple[str, ActionType], ...] = (
    ("/verify", ActionType.VERIFY),
    ("/download", ActionType.DOWNLOAD),
    ("/transfer", ActionType.TRANSFER),
    ("/custody", ActionType.CHAIN_OF_CUSTODY),
)

METHOD_ACTIONS: Dict[str, ActionType] = {
    "POST": ActionType.CREATE,
    "GET": ActionType.ACCESS,
    "PUT": ActionType.MODIFY,
    "PATCH": ActionType.MODIFY,
    "DELETE": ActionType.DELETE,
}

MAX_BODY_CAPTURE_BYTES = 1024 * 1024


# ============================================
# Field derivation
# ============================================

def get_client_ip(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """Resolve the caller's address, honoring proxy headers.

    Precedence: first X-Forwarded-For entry, X-Real-IP, transport peer, "unknown".
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if client_host:
        return client_host

    return UNKNOWN_IP


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def get_user_info(
    user: Any,
    headers: Mapping[str, str],
    user_role: Optional[str] = None,
) -> Tuple[str, str]:
    """Return ``(user_id, user_role)`` for the request.

    An authenticated identity (``request.state.user``) wins; otherwise the
    wallet header is trusted as-is with an unresolved role.
    """
    if user is not None:
        user_id = _field(user, "wallet_address") or _field(user, "id")
        role = _field(user, "role") or "user"
        if user_id:
            return str(user_id), str(role)

    wallet = headers.get(WALLET_HEADER)
    return (wallet or ANONYMOUS_USER), (user_role or UNKNOWN_ROLE)


def get_action_type(method: str, path: str) -> ActionType:
    """Map an HTTP method and path to an audit action type."""
    for fragment, action_type in PATH_ACTIONS:
        if fragment in path:
            return action_type
    return METHOD_ACTIONS.get(method.upper(), ActionType.ACCESS)


def get_resource_id(
    names: Sequence[str],
    path_params: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    query_params: Optional[Mapping[str, Any]] = None,
) -> Optional[str]:
    """First non-empty value for any of ``names``: path params, then body, then query."""
    sources: List[Any] = [path_params, body if isinstance(body, Mapping) else None, query_params]
    for source in sources:
        if not source:
            continue
        for name in names:
            value = source.get(name)
            if value not in (None, ""):
                return str(value)
    return None


def sanitize_body(body: Any, max_length: int = 500) -> Dict[str, Any]:
    """Copy of a request body with secrets redacted and long strings truncated."""
    if not isinstance(body, Mapping):
        return {}

    sanitized = dict(body)

    for name in SENSITIVE_FIELDS:
        if sanitized.get(name):
            sanitized[name] = REDACTED

    for name, value in sanitized.items():
        if isinstance(value, str) and len(value) > max_length:
            sanitized[name] = value[:max_length] + TRUNCATED_SUFFIX

    return sanitized


def evidence_id_from_payload(payload: Any, fallback: Optional[str] = None) -> Optional[str]:
    """Evidence id reported by a response payload (e.g. a newly created record)."""
    if isinstance(payload, Mapping):
        evidence = payload.get("evidence")
        if isinstance(evidence, Mapping):
            for name in ("id", "evidence_id"):
                if evidence.get(name):
                    return str(evidence[name])
        if payload.get("evidenceId"):
            return str(payload["evidenceId"])
    return fallback


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 400


# ============================================
# Interceptor core
# ============================================

@dataclass
class RequestContext:
    """What the interceptor knows about an in-flight request."""

    method: str
    path: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query_params: Mapping[str, Any] = field(default_factory=dict)
    path_params: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    client_host: Optional[str] = None
    user: Any = None
    user_role: Optional[str] = None
    started: float = field(default_factory=time.perf_counter)


@dataclass
class ObservedResponse:
    """Outcome of a request as seen by the response hook."""

    status_code: int
    payload: Any = None


class AuditInterceptor:
    """Turns observed requests into fire-and-forget audit writes."""

    def __init__(
        self,
        writer: AuditLogWriter,
        log_on_request: bool = False,
        log_on_response: bool = True,
        exclude_paths: Iterable[str] = (),
        max_field_length: int = 500,
    ):
        self.writer = writer
        self.log_on_request = log_on_request
        self.log_on_response = log_on_response
        self.exclude_paths = list(exclude_paths)
        self.max_field_length = max_field_length

    def is_excluded(self, path: str) -> bool:
        """Whether ``path`` is an excluded path or one of its sub-paths.

        Matching is by leading path segments only; the query string is
        never consulted.
        """
        for excluded in self.exclude_paths:
            prefix = excluded.rstrip("/")
            if not prefix:
                continue
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return False

    def build_event(self, ctx: RequestContext, status: ActionStatus, details: Dict[str, Any]) -> Dict[str, Any]:
        user_id, user_role = get_user_info(ctx.user, ctx.headers, ctx.user_role)
        return {
            "action_type": get_action_type(ctx.method, ctx.path),
            "evidence_id": get_resource_id(EVIDENCE_ID_FIELDS, ctx.path_params, ctx.body, ctx.query_params),
            "case_id": get_resource_id(CASE_ID_FIELDS, ctx.path_params, ctx.body, ctx.query_params),
            "user_id": user_id,
            "user_role": user_role,
            "status": status,
            "details": details,
            "ip_address": get_client_ip(ctx.headers, ctx.client_host),
        }

    def on_request(self, ctx: RequestContext):
        """Log a PENDING entry before the handler runs (when enabled)."""
        if not self.log_on_request:
            return None

        details: Dict[str, Any] = {"method": ctx.method, "path": ctx.url}
        if ctx.method.upper() != "GET":
            details["requestBody"] = sanitize_body(ctx.body, self.max_field_length)

        return self._dispatch(self.build_event(ctx, ActionStatus.PENDING, details), "Request")

    def on_response(self, ctx: RequestContext, observed: ObservedResponse):
        """Log the outcome once the response has been produced (when enabled)."""
        if not self.log_on_response:
            return None

        success = is_success(observed.status_code)
        details: Dict[str, Any] = {
            "method": ctx.method,
            "path": ctx.url,
            "statusCode": observed.status_code,
            "responseTime": round((time.perf_counter() - ctx.started) * 1000),
        }
        if not success and isinstance(observed.payload, Mapping):
            error = observed.payload.get("error") or observed.payload.get("detail")
            if error is not None:
                details["error"] = error

        event = self.build_event(
            ctx,
            ActionStatus.SUCCESS if success else ActionStatus.FAILURE,
            details,
        )
        event["evidence_id"] = evidence_id_from_payload(observed.payload, event["evidence_id"])
        return self._dispatch(event, "Response")

    def _dispatch(self, event: Dict[str, Any], phase: str):
        try:
            return self.writer.dispatch(event)
        except Exception as e:
            app_logger.error(f"[AuditMiddleware] {phase} log error: {e}")
            return None


# ============================================
# Starlette adapter
# ============================================

async def read_json_body(request: Request) -> Any:
    """Parsed JSON request body, or None when absent, too large or not JSON."""
    if request.method.upper() == "GET":
        return None
    if "application/json" not in request.headers.get("content-type", "").lower():
        return None

    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > MAX_BODY_CAPTURE_BYTES:
        return None

    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


async def capture_json_payload(response: Response) -> Tuple[Response, Any]:
    """Buffer a JSON response so its payload can be inspected.

    Non-JSON responses (file downloads, streams) are returned untouched.
    """
    if "application/json" not in response.headers.get("content-type", "").lower():
        return response, None

    body = b"".join([chunk async for chunk in response.body_iterator])
    replay = Response(content=body, status_code=response.status_code)
    replay.raw_headers = response.raw_headers

    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None
    return replay, payload


def request_url(request: Request) -> str:
    """Path plus query string, as the client sent it."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


class AuditLogMiddleware(BaseHTTPMiddleware):
    """
    Audit every request that is not on the exclusion list.

    The writer is taken from the constructor or, when omitted, from
    ``app.state.audit_services`` at request time (it is created in the
    lifespan, after middleware registration). Requests pass through
    unaudited when no writer is available.
    """

    def __init__(
        self,
        app: ASGIApp,
        writer: Optional[AuditLogWriter] = None,
        log_on_request: Optional[bool] = None,
        log_on_response: Optional[bool] = None,
        exclude_paths: Optional[Iterable[str]] = None,
        max_field_length: Optional[int] = None,
    ) -> None:
        super().__init__(app)
        self.writer = writer
        self.log_on_request = settings.AUDIT_LOG_ON_REQUEST if log_on_request is None else log_on_request
        self.log_on_response = settings.AUDIT_LOG_ON_RESPONSE if log_on_response is None else log_on_response
        self.exclude_paths = list(settings.audit_exclude_paths if exclude_paths is None else exclude_paths)
        self.max_field_length = settings.AUDIT_MAX_FIELD_LENGTH if max_field_length is None else max_field_length

    def interceptor_for(self, request: Request) -> Optional[AuditInterceptor]:
        writer = self.writer
        if writer is None:
            services = getattr(request.app.state, "audit_services", None)
            writer = getattr(services, "writer", None)
        if writer is None:
            return None
        return AuditInterceptor(
            writer,
            log_on_request=self.log_on_request,
            log_on_response=self.log_on_response,
            exclude_paths=self.exclude_paths,
            max_field_length=self.max_field_length,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        interceptor = self.interceptor_for(request)
        url = request_url(request)
        if interceptor is None or interceptor.is_excluded(request.url.path):
            return await call_next(request)

        ctx = RequestContext(
            method=request.method,
            path=request.url.path,
            url=url,
            headers=request.headers,
            query_params=request.query_params,
            body=await read_json_body(request),
            client_host=request.client.host if request.client else None,
        )
        self._refresh(ctx, request)
        interceptor.on_request(ctx)

        try:
            response = await call_next(request)
        except Exception as e:
            # The handler blew up; record the failure, then let it propagate.
            self._refresh(ctx, request)
            interceptor.on_response(ctx, ObservedResponse(status_code=500, payload={"error": str(e)}))
            raise

        if not interceptor.log_on_response:
            return response

        response, payload = await capture_json_payload(response)
        # Routing and auth dependencies populate these during call_next.
        self._refresh(ctx, request)
        interceptor.on_response(ctx, ObservedResponse(status_code=response.status_code, payload=payload))
        return response

    @staticmethod
    def _refresh(ctx: RequestContext, request: Request) -> None:
        ctx.path_params = dict(request.path_params)
        ctx.user = getattr(request.state, "user", None)
        ctx.user_role = getattr(request.state, "user_role", None)


async def log_evidence_action(
    request: Request,
    action_type: ActionType,
    evidence_id: Optional[str],
    status: ActionStatus,
    details: Optional[Dict[str, Any]] = None,
):
    """Manually log an evidence action the middleware cannot observe.

    Actor, case id and source address are taken from ``request``. Returns the
    persisted event or None.
    """
    services = getattr(request.app.state, "audit_services", None)
    if services is None:
        app_logger.warning("[AuditMiddleware] Audit services not initialized; action not logged")
        return None

    user_id, user_role = get_user_info(
        getattr(request.state, "user", None),
        request.headers,
        getattr(request.state, "user_role", None),
    )
    return await services.writer.log_action(
        action_type=action_type,
        evidence_id=evidence_id,
        user_id=user_id,
        user_role=user_role,
        status=status,
        details=details or {},
        ip_address=get_client_ip(request.headers, request.client.host if request.client else None),
        case_id=get_resource_id(CASE_ID_FIELDS, request.path_params, None, request.query_params),
    )
