"""
Callback Module - Black Box Interface

Purpose: HTTP surface for job pods (result, file, event callbacks) and report files
Interface: create_callback_app(), create_static_app(), static_file_server(), generic_api_server()
Hidden: Admission, file naming, payload decoding, event emission

Handlers only orchestrate; storage, registry and Kubernetes access live in their modules.
"""

from .handlers import (
    CALLBACK_BASE_PATH,
    CALLBACK_EVENT_SUB_PATH,
    CALLBACK_FILE_SUB_PATH,
    CALLBACK_RESULT_SUB_PATH,
    CallbackContext,
    file_name_for,
    generated_file_name,
)
from .middleware import ERROR_NOT_ACCEPTABLE, AdmissionMiddleware
from .models import EventPayload
from .server import (
    KIND_INTERNAL,
    KIND_PUBLIC,
    Server,
    create_callback_app,
    create_static_app,
    generic_api_server,
    static_file_server,
)

__all__ = [
    "AdmissionMiddleware",
    "CALLBACK_BASE_PATH",
    "CALLBACK_EVENT_SUB_PATH",
    "CALLBACK_FILE_SUB_PATH",
    "CALLBACK_RESULT_SUB_PATH",
    "CallbackContext",
    "ERROR_NOT_ACCEPTABLE",
    "EventPayload",
    "KIND_INTERNAL",
    "KIND_PUBLIC",
    "Server",
    "create_callback_app",
    "create_static_app",
    "file_name_for",
    "generated_file_name",
    "generic_api_server",
    "static_file_server",
]
