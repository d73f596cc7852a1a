#!/usr/bin/env python3
"""Launcher script for the REST API server."""

import sys

import uvicorn

from dupgate.api import app, set_gate
from dupgate.config import Config
from dupgate.gate import DuplicateGate
from dupgate.logger import Logger


def start_gate(config: Config) -> DuplicateGate:
    """Build the gate from configuration and register it with the API."""
    gate = DuplicateGate.from_config(config)
    set_gate(gate)
    if config.get("monitoring", "prometheus_enabled"):
        gate.metrics.start()
    return gate


if __name__ == "__main__":
    config = Config()
    logger = Logger("server", level=config.get("logging", "level"))

    valid, errors = config.validate()
    if not valid:
        logger.error("Configuration validation failed", errors=errors)
        sys.exit(1)

    gate = start_gate(config)
    host = config.get("server", "host", "0.0.0.0")
    port = config.get("server", "port", 3000)
    logger.info("Starting API server", host=host, port=port,
                ttl_seconds=gate.ttl_seconds,
                shared_cache=gate.cache.shared is not None,
                atomic_admission=gate.atomic_admission)

    uvicorn.run(app, host=host, port=port)
