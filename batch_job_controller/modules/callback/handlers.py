"""
Callback handlers.

Every handler reads the whole body and records the arrival with the registry
before looking at the payload, so malformed callbacks still show up as having
reached the server.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from email.message import Message
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from batch_job_controller.logging_config import callback_logger
from batch_job_controller.modules.config import Config
from batch_job_controller.modules.kube import POD, EventRecorder, ObjectLookupError, ObjectReader
from batch_job_controller.modules.registry import ExecutionRegistry
from batch_job_controller.modules.storage import ReportStore, StorageError

from .middleware import error_response
from .models import EventPayload, describe_validation_error

CALLBACK_BASE_PATH = "/report/{node}/{execution_id}"
CALLBACK_RESULT_SUB_PATH = "/result"
CALLBACK_FILE_SUB_PATH = "/file"
CALLBACK_EVENT_SUB_PATH = "/event"

FILE_EXTENSIONS = {
    "application/json": ".json",
    "text/plain": ".txt",
}
DEFAULT_FILE_EXTENSION = ".file"


@dataclass
class CallbackContext:
    """Collaborators shared by the callback handlers."""

    config: Config
    registry: ExecutionRegistry
    reader: ObjectReader
    recorder: EventRecorder
    store: ReportStore
    log: logging.Logger


def get_context(request: Request) -> CallbackContext:
    return request.app.state.callback


def accepted(node: str, execution_id: str, **extra: Any) -> Dict[str, Any]:
    return {"status": "accepted", "node": node, "execution_id": execution_id, **extra}


def content_disposition_filename(header: Optional[str]) -> Optional[str]:
    """filename attribute of a Content-Disposition header."""
    if not header:
        return None
    msg = Message()
    msg["Content-Disposition"] = header
    return msg.get_filename() or None


def generated_file_name(content_type: Optional[str]) -> str:
    """Random file name with an extension matching the content type."""
    media_type = (content_type or "").split(";")[0].strip().lower()
    return f"{uuid.uuid4()}{FILE_EXTENSIONS.get(media_type, DEFAULT_FILE_EXTENSION)}"


def file_name_for(request: Request) -> str:
    """
    File name for an uploaded file, first match wins:
    1. "name" query parameter
    2. Content-Disposition filename
    3. generated from Content-Type
    """
    return (
        request.query_params.get("name")
        or content_disposition_filename(request.headers.get("content-disposition"))
        or generated_file_name(request.headers.get("content-type"))
    )


router = APIRouter(tags=["callback"])


@router.post(CALLBACK_BASE_PATH + CALLBACK_RESULT_SUB_PATH)
async def post_report(
    node: str,
    execution_id: str,
    request: Request,
    ctx: CallbackContext = Depends(get_context),
):
    """
    Store a JSON report of an execution.

    Returns:
        200: Report stored
        400: Body is not valid JSON
        406: Execution not accepted
    """
    log = callback_logger(ctx.log, node, execution_id)
    body = await request.body()
    await ctx.registry.report_received(execution_id, node, len(body), {"kind": "result"})

    try:
        json.loads(body)
    except ValueError as e:
        log.error(f"Error decoding report: {e}")
        return error_response(400, f"error decoding report: {e}")

    name = f"{node}.json"
    try:
        path = await run_in_threadpool(ctx.store.write, f"{execution_id}/{name}", body)
    except StorageError as e:
        return error_response(400, f"invalid file name: {e}")

    log.info(f"Received report ({len(body)} bytes) at {path}")
    return accepted(node, execution_id, name=name)


@router.post(CALLBACK_BASE_PATH + CALLBACK_FILE_SUB_PATH)
async def post_file(
    node: str,
    execution_id: str,
    request: Request,
    ctx: CallbackContext = Depends(get_context),
):
    """
    Store an arbitrary file of an execution as {node}-{name}.

    Returns:
        200: File stored
        400: File name cannot be stored
        406: Execution not accepted
    """
    log = callback_logger(ctx.log, node, execution_id)
    body = await request.body()
    await ctx.registry.report_received(execution_id, node, len(body), {"kind": "file"})

    name = f"{node}-{file_name_for(request)}"
    try:
        path = await run_in_threadpool(ctx.store.write, f"{execution_id}/{name}", body)
    except StorageError as e:
        log.error(f"Rejected file {name!r}: {e}")
        return error_response(400, f"invalid file name: {e}")

    log.info(f"Received file {name} ({len(body)} bytes) at {path}")
    return accepted(node, execution_id, name=name)


@router.post(CALLBACK_BASE_PATH + CALLBACK_EVENT_SUB_PATH)
async def post_event(
    node: str,
    execution_id: str,
    request: Request,
    ctx: CallbackContext = Depends(get_context),
):
    """
    Record a Kubernetes event on the job pod of an execution.

    Returns:
        200: Event recorded
        400: Body is not valid JSON or not a valid event
        404: Job pod not found
        406: Execution not accepted
    """
    log = callback_logger(ctx.log, node, execution_id)
    body = await request.body()
    await ctx.registry.report_received(execution_id, node, len(body), {"kind": "event"})

    try:
        data = json.loads(body)
    except ValueError as e:
        log.error(f"Error decoding event: {e}")
        return error_response(400, f"error decoding event: {e}")

    try:
        event = EventPayload.model_validate(data)
    except ValidationError as e:
        message = describe_validation_error(e)
        log.error(f"Invalid event: {message}")
        return error_response(400, f"error validating event: {message}")

    pod_name = ctx.config.pod_name(node, execution_id)
    try:
        pod = await run_in_threadpool(ctx.reader.get, POD, ctx.config.namespace, pod_name)
    except ObjectLookupError as e:
        log.error(f"Error finding pod {pod_name}: {e}")
        return error_response(404, f"error finding pod: {e}")

    if event.args:
        await run_in_threadpool(
            ctx.recorder.eventf, pod, event.event_type, event.reason, event.message, *event.args
        )
    else:
        await run_in_threadpool(ctx.recorder.event, pod, event.event_type, event.reason, event.message)

    log.info(f"Event created: {event.event_type} {event.reason} on pod {pod_name}")
    return accepted(node, execution_id)
