"""
HTTP servers.

Two flavors share one listener abstraction: a "public" server exposing the
report directory as static files, and an "internal" server accepting job
callbacks behind the admission middleware.
"""

import logging
import os
import stat
from dataclasses import dataclass
from html import escape
from typing import Any, Optional
from urllib.parse import quote

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import URL
from starlette.types import Scope

from batch_job_controller import __version__
from batch_job_controller.logging_config import get_logging_config
from batch_job_controller.modules.config import Config
from batch_job_controller.modules.kube import EventRecorder, ObjectReader
from batch_job_controller.modules.registry import ExecutionRegistry, resolve_registry
from batch_job_controller.modules.storage import ReportStore

from .handlers import CallbackContext, router
from .middleware import AdmissionMiddleware

KIND_PUBLIC = "public"
KIND_INTERNAL = "internal"

logger = logging.getLogger(__name__)


def create_callback_app(
    config: Config,
    reader: ObjectReader,
    recorder: EventRecorder,
    registry: Optional[ExecutionRegistry] = None,
    store: Optional[ReportStore] = None,
    log: Optional[logging.Logger] = None,
) -> FastAPI:
    """
    Create the callback application.

    Args:
        config: Controller configuration (namespace, name, report directory)
        reader: Object reader used to find job pods
        recorder: Event recorder for event callbacks
        registry: Execution registry, None to admit every callback
        store: Report store (default: config.report_directory)
        log: Logger for handlers and middleware
    """
    registry = resolve_registry(registry)
    log = log or logging.getLogger("batch_job_controller.callback")

    app = FastAPI(
        title="Batch Job Controller Callbacks",
        description="Result, file and event callbacks of job pods",
        version=__version__,
    )
    app.state.callback = CallbackContext(
        config=config,
        registry=registry,
        reader=reader,
        recorder=recorder,
        store=store or ReportStore(config.report_directory),
        log=log,
    )

    admission = AdmissionMiddleware(registry, logger=log)

    @app.middleware("http")
    async def admission_middleware(request: Request, call_next):
        return await admission(request, call_next)

    app.include_router(router)

    @app.get("/healthz")
    async def healthz():
        """Unauthenticated liveness check."""
        return {"status": "ok"}

    return app


class ReportFiles(StaticFiles):
    """
    StaticFiles that also lists directories.

    Generated file names are random, so an execution's directory has to be
    browsable to find them. Directory paths without a trailing slash are
    redirected to the slashed form so relative links resolve.
    """

    async def get_response(self, path: str, scope: Scope) -> Response:
        if scope["method"] in ("GET", "HEAD"):
            full_path, stat_result = await run_in_threadpool(self.lookup_path, path)
            if stat_result is not None and stat.S_ISDIR(stat_result.st_mode):
                url = URL(scope=scope)
                if not url.path.endswith("/"):
                    return RedirectResponse(url=url.replace(path=url.path + "/"))
                return HTMLResponse(await run_in_threadpool(directory_listing, full_path))
        return await super().get_response(path, scope)


def directory_listing(directory: str) -> str:
    """HTML listing of a directory, subdirectories suffixed with a slash."""
    lines = ["<pre>"]
    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda e: e.name):
            name = entry.name + "/" if entry.is_dir() else entry.name
            lines.append(f'<a href="{quote(name)}">{escape(name)}</a>')
    lines.append("</pre>")
    return "\n".join(lines) + "\n"


def create_static_app(directory: str) -> FastAPI:
    """Serve the report directory read-only, with directory listings."""
    app = FastAPI(
        title="Batch Job Controller Reports",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.mount("/", ReportFiles(directory=directory, check_dir=False), name="reports")
    return app


@dataclass
class Server:
    """An HTTP listener: port, application and kind label."""

    port: int
    kind: str
    app: Any
    host: str = "0.0.0.0"
    log_level: str = "INFO"

    def build(self) -> uvicorn.Server:
        return uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=self.host,
                port=self.port,
                log_level=self.log_level.lower(),
                log_config=get_logging_config(self.log_level),
            )
        )

    async def serve(self) -> None:
        logger.info(f"Starting {self.kind} server on {self.host}:{self.port}")
        await self.build().serve()


def static_file_server(port: int, directory: str, host: str = "0.0.0.0") -> Server:
    """Public server for the report directory, no admission."""
    return Server(port=port, kind=KIND_PUBLIC, app=create_static_app(directory), host=host)


def generic_api_server(
    port: int,
    config: Config,
    reader: ObjectReader,
    recorder: EventRecorder,
    registry: Optional[ExecutionRegistry] = None,
    host: str = "0.0.0.0",
) -> Server:
    """Internal server for job callbacks, behind admission."""
    logger.info(
        f"Creating {KIND_INTERNAL} callback server on port {port} "
        f"(reports: {config.report_directory}, registry: {type(resolve_registry(registry)).__name__})"
    )
    app = create_callback_app(config, reader, recorder, registry=registry)
    return Server(port=port, kind=KIND_INTERNAL, app=app, host=host)
