"""
FastAPI Service Bus
-------------------
HTTP surface of the controller.
Each route maps to one registry or dispatcher operation; this module
only shapes requests and responses.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.rate_limiter import (
    EXECUTE_TIER, LOOSE_TIER, STANDARD_TIER,
    RateLimitConfig, RateLimiter, client_key
)
from commands.registry import CommandRegistry
from core.dispatcher import CommandDispatcher, DEFAULT_POLL_LIMIT, clamp_limit
from core.errors import ControllerException, ErrorCategory, ErrorHandler
from .auth import AuthError, Principal, TokenAuthenticator
from .history import HistoryStore
from .logging import RequestContext


VERSION = "0.1.0"

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 100

STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.VALIDATION_ERROR: 400,
    ErrorCategory.AUTH_ERROR: 401,
    ErrorCategory.PERMISSION_ERROR: 403,
    ErrorCategory.RATE_LIMITED: 429,
}


# Request/Response Models

SubmittedValue = Optional[Union[StrictBool, StrictInt, StrictFloat, StrictStr]]


class ValidateRequest(BaseModel):
    """Parameter values to check against a command."""
    parameters: Optional[Dict[str, SubmittedValue]] = None


class ExecuteRequest(BaseModel):
    """Command dispatch input. Accepts commandId or command_id."""
    model_config = ConfigDict(populate_by_name=True)

    command_id: str = Field("", alias="commandId", description="Catalog id of the command")
    parameters: Optional[Dict[str, SubmittedValue]] = None


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[str]


class ExecuteResponse(BaseModel):
    success: bool = True
    request_id: str
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str = VERSION
    commands_loaded: int = 0
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


# Service Bus

class ServiceBus:
    """
    HTTP service for the controller.

    Provides REST API for:
    - Command catalog queries
    - Parameter validation
    - Command dispatch and reply polling
    - Execution history
    """

    def __init__(
        self,
        registry: CommandRegistry,
        dispatcher: CommandDispatcher,
        history: HistoryStore,
        authenticator: TokenAuthenticator,
        rate_limits: Optional[Dict[str, RateLimitConfig]] = None
    ):
        self._registry = registry
        self._dispatcher = dispatcher
        self._history = history
        self._authenticator = authenticator
        self._limiters = {
            tier: RateLimiter(config)
            for tier, config in (rate_limits or {}).items()
        }
        self._errors = ErrorHandler()
        self._logger = logging.getLogger("controller.infra.service_bus")
        self._app: Optional[FastAPI] = None

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self._logger.info(f"Service bus starting with {len(self._registry)} commands")
            yield
            self._logger.info("Service bus shutting down...")

        app = FastAPI(
            title="MaxBot Controller API",
            description="Command catalog and Discord relay",
            version=VERSION,
            lifespan=lifespan
        )

        self._register_middleware(app)
        self._register_error_handlers(app)
        self._register_routes(app)

        self._app = app
        return app

    def _guard(self, tier: str) -> Callable:
        """Dependency: authenticate, then apply the tier's rate limit."""

        async def dependency(request: Request) -> Principal:
            try:
                principal = self._authenticator.authenticate(
                    request.method,
                    request.headers.get("authorization"),
                    request.headers.get("x-csrf-token")
                )
            except AuthError as e:
                raise HTTPException(status_code=e.status_code, detail=str(e))

            limiter = self._limiters.get(tier)
            if limiter is not None:
                key = client_key(
                    request.headers.get("x-forwarded-for"),
                    request.client.host if request.client else None
                )
                if not limiter.try_acquire(key):
                    self._logger.warning(f"Rate limit hit on {tier} tier", extra={"client": key})
                    raise HTTPException(
                        status_code=429,
                        detail="Too many requests, please try again later"
                    )

            return principal

        return dependency

    def _register_middleware(self, app: FastAPI) -> None:

        @app.middleware("http")
        async def request_context(request: Request, call_next):
            with RequestContext(request.headers.get("x-request-id")) as request_id:
                response = await call_next(request)
                response.headers["X-Request-ID"] = request_id
                return response

    def _register_error_handlers(self, app: FastAPI) -> None:

        @app.exception_handler(ControllerException)
        async def controller_error(request: Request, exc: ControllerException):
            message = self._errors.handle(exc.error)
            status = STATUS_BY_CATEGORY.get(exc.error.category, 500)
            return JSONResponse(status_code=status, content={"success": False, "error": message})

        @app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            return JSONResponse(
                status_code=exc.status_code,
                content={"success": False, "error": exc.detail}
            )

        @app.exception_handler(RequestValidationError)
        async def body_error(request: Request, exc: RequestValidationError):
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Invalid request body"}
            )

    def _register_routes(self, app: FastAPI) -> None:
        """Register all API routes."""

        loose = Depends(self._guard(LOOSE_TIER))
        standard = Depends(self._guard(STANDARD_TIER))
        execute = Depends(self._guard(EXECUTE_TIER))

        @app.get("/health", response_model=HealthResponse, tags=["System"])
        async def health_check():
            """Health check endpoint."""
            return HealthResponse(status="healthy", commands_loaded=len(self._registry))

        @app.get("/commands", tags=["Commands"])
        async def list_commands(
            search: Optional[str] = None,
            category: Optional[str] = None,
            principal: Principal = loose
        ):
            """List commands, optionally searched and filtered by category."""
            if search:
                commands = self._registry.search_commands(search)
            else:
                commands = self._registry.get_all_commands()

            if category:
                commands = [c for c in commands if c.category == category]

            return {
                "success": True,
                "commands": [c.to_dict() for c in commands],
                "total": len(commands),
            }

        @app.get("/commands/groups", tags=["Commands"])
        async def list_groups(principal: Principal = loose):
            """Commands grouped by category."""
            groups = self._registry.get_commands_by_category()
            return {"success": True, "groups": [g.to_dict() for g in groups]}

        @app.get("/commands/{command_id}", tags=["Commands"])
        async def get_command(command_id: str, principal: Principal = loose):
            """Get one command."""
            command = self._registry.get_command(command_id)
            if command is None:
                raise HTTPException(status_code=404, detail="Command not found")
            return {"success": True, "command": command.to_dict()}

        @app.post(
            "/commands/{command_id}/validate",
            response_model=ValidationResponse,
            tags=["Commands"]
        )
        async def validate_command(
            command_id: str,
            body: ValidateRequest,
            principal: Principal = standard
        ):
            """Check parameter values without dispatching."""
            command = self._registry.get_command(command_id)
            if command is None:
                raise HTTPException(status_code=404, detail="Command not found")
            result = self._registry.validate_parameters(command, body.parameters or {})
            return ValidationResponse(valid=result.valid, errors=result.errors)

        @app.post("/execute", response_model=ExecuteResponse, tags=["Commands"])
        async def execute_command(body: ExecuteRequest, principal: Principal = execute):
            """Send a command to Discord."""
            result = await self._dispatcher.execute(
                body.command_id, body.parameters, principal.user
            )
            return ExecuteResponse(request_id=result.request_id, message=result.message)

        @app.get("/poll-response", tags=["Commands"])
        async def poll_response(
            channel_id: Optional[str] = Query(None, alias="channelId"),
            limit: Optional[str] = None,
            after: Optional[str] = None,
            principal: Principal = loose
        ):
            """Read recent bot replies."""
            messages = await self._dispatcher.poll_response(
                channel_id or "",
                limit if limit is not None else DEFAULT_POLL_LIMIT,
                after
            )
            return {"success": True, "messages": messages}

        @app.get("/history", tags=["History"])
        async def get_history(limit: Optional[str] = None, principal: Principal = loose):
            """The caller's execution history, newest first."""
            parsed = clamp_limit(limit, DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT)
            entries = self._history.list(principal.user, parsed)
            return {
                "success": True,
                "history": [e.to_dict() for e in entries],
                "stats": self._history.stats(principal.user).to_dict(),
            }

        @app.delete("/history/{entry_id}", tags=["History"])
        async def delete_history(entry_id: str, principal: Principal = loose):
            """Remove one history entry."""
            if not self._history.delete(principal.user, entry_id):
                raise HTTPException(status_code=404, detail="History entry not found")
            return {"success": True}

    @property
    def app(self) -> Optional[FastAPI]:
        return self._app
