"""
Admission Middleware

Rejects callbacks for executions the registry does not know before any
handler reads the request body.
"""

import logging
import re
from typing import Optional

from fastapi import Request
from fastapi.responses import PlainTextResponse

from batch_job_controller.logging_config import callback_logger
from batch_job_controller.modules.registry import ExecutionKey, ExecutionRegistry, resolve_registry

ERROR_NOT_ACCEPTABLE = "execution not accepted"

CALLBACK_PATH_PATTERN = re.compile(
    r"^/report/(?P<node>[^/]+)/(?P<execution_id>[^/]+)/(?:result|file|event)/?$"
)


def error_response(status_code: int, message: str) -> PlainTextResponse:
    """Plain text error whose body starts with the fixed error prefix."""
    return PlainTextResponse(message, status_code=status_code)


class AdmissionMiddleware:
    """
    Admission check for the callback routes.

    Requests outside the callback routes pass through untouched. An absent
    registry admits everything.
    """

    def __init__(
        self,
        registry: Optional[ExecutionRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize admission middleware.

        Args:
            registry: Execution registry, None to admit every callback
            logger: Logger to use instead of the module logger
        """
        self.registry = resolve_registry(registry)
        self.log = logger or logging.getLogger(__name__)

    def extract_execution(self, request: Request) -> Optional[ExecutionKey]:
        """Node and execution id of a callback request, None for other paths."""
        match = CALLBACK_PATH_PATTERN.match(request.url.path)
        if not match:
            return None
        return ExecutionKey(match.group("node"), match.group("execution_id"))

    async def __call__(self, request: Request, call_next):
        key = self.extract_execution(request)
        if key is None:
            return await call_next(request)

        if not await self.registry.has(key.node, key.execution_id):
            callback_logger(self.log, key.node, key.execution_id).warning(
                f"Rejected callback {request.url.path}: execution not registered"
            )
            return error_response(
                406,
                f"{ERROR_NOT_ACCEPTABLE}: no active execution {key.execution_id} for node {key.node}",
            )

        return await call_next(request)
