#!/usr/bin/env python3
"""
Batch Job Controller - Main Entry Point

This is the thin orchestration layer that:
1. Loads settings and the controller configuration
2. Initializes modules
3. Runs the public report server and the internal callback server

All business logic is in the modules.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

import redis.asyncio as redis

from batch_job_controller.config.provider import ConfigProvider, EnvConfigProvider, RegistrySettings, Settings
from batch_job_controller.logging_config import configure_logging
from batch_job_controller.modules.callback import Server, generic_api_server, static_file_server
from batch_job_controller.modules.config import Config, load_config
from batch_job_controller.modules.kube import KubernetesEventRecorder, KubernetesObjectReader, load_kube_config
from batch_job_controller.modules.registry import (
    ExecutionRegistry,
    InMemoryExecutionRegistry,
    RedisExecutionRegistry,
)

logger = logging.getLogger(__name__)


def build_registry(
    settings: RegistrySettings,
) -> Tuple[Optional[ExecutionRegistry], Optional[redis.Redis]]:
    """
    Create the execution registry for the configured backend.

    Returns:
        (registry, redis client); registry is None when admission is disabled
    """
    if settings.backend == "disabled":
        logger.warning("Execution registry disabled, every callback will be accepted")
        return None, None
    if settings.backend == "redis":
        redis_client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        return RedisExecutionRegistry(redis_client, ttl=settings.ttl), redis_client
    return InMemoryExecutionRegistry(), None


def build_servers(
    settings: Settings,
    config: Config,
    reader: KubernetesObjectReader,
    registry: Optional[ExecutionRegistry],
) -> List[Server]:
    recorder = KubernetesEventRecorder(reader.core_v1, component=config.name)
    return [
        static_file_server(settings.server.static_port, config.report_directory, host=settings.server.host),
        generic_api_server(
            settings.server.callback_port,
            config,
            reader,
            recorder,
            registry=registry,
            host=settings.server.host,
        ),
    ]


async def run(
    provider: Optional[ConfigProvider] = None,
    registry: Optional[ExecutionRegistry] = None,
) -> None:
    """
    Start both servers and block until they stop.

    Args:
        provider: Settings provider (default: environment)
        registry: Registry shared with an embedding job dispatcher; built from
            the settings when omitted
    """
    settings = (provider or EnvConfigProvider()).get_settings()
    configure_logging(settings.log_level)
    logger.info("Starting Batch Job Controller...")

    reader = KubernetesObjectReader(load_kube_config())
    config = load_config(settings.namespace, reader, settings.config_map_name, settings.hostname)
    logger.info(f"Loaded config {config.name!r} in namespace {config.namespace}")

    redis_client = None
    if registry is None:
        registry, redis_client = build_registry(settings.registry)

    servers = build_servers(settings, config, reader, registry)
    try:
        await asyncio.gather(*(server.serve() for server in servers))
    finally:
        if redis_client:
            await redis_client.close()
        logger.info("Batch Job Controller shutdown complete")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
