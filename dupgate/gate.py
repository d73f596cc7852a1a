"""Duplicate gate: admit a request once per fingerprint per TTL window."""

import json
import time
from typing import Any, Mapping, Optional, TYPE_CHECKING

from .cache import TieredCache, build_cache
from .errors import BackendUnavailable, DuplicateRequest, InvalidRequest
from .fingerprint import fingerprint
from .logger import Logger
from .prometheus_metrics import PrometheusMetrics

if TYPE_CHECKING:
    from .config import Config


CLIENT_HEADER = "client"
DEFAULT_TTL_SECONDS = 2


def extract_client_id(headers: Optional[Mapping[str, Any]]) -> str:
    """Find the client header (any case) and return it trimmed.

    Raises InvalidRequest when the header is absent or blank.
    """
    value = None
    for name, header_value in (headers or {}).items():
        if isinstance(name, str) and name.lower() == CLIENT_HEADER:
            value = header_value
            break

    if isinstance(value, (list, tuple)):
        value = value[0] if value else None

    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest("client header is required")
    return value.strip()


class DuplicateGate:
    """Check-then-admit gate over a tiered cache.

    By default the lookup and the write are separate cache calls, so two
    identical requests racing through the lookup may both be admitted. With
    atomic_admission the gate uses the cache's insert-if-absent primitive and
    at most one of them wins.
    """

    def __init__(self, cache: TieredCache, ttl_seconds: float = DEFAULT_TTL_SECONDS,
                 atomic_admission: bool = False, logger: Optional[Logger] = None,
                 metrics: Optional[PrometheusMetrics] = None):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.atomic_admission = atomic_admission
        self.logger = logger or Logger("gate")
        self.metrics = metrics or PrometheusMetrics()

    @classmethod
    def from_config(cls, config: "Config", cache: Optional[TieredCache] = None) -> "DuplicateGate":
        metrics = PrometheusMetrics(port=config.get("monitoring", "prometheus_port", 9090))
        if cache is None:
            cache = build_cache(config, metrics=metrics)
        return cls(
            cache,
            ttl_seconds=config.get("cache", "ttl_seconds", DEFAULT_TTL_SECONDS),
            atomic_admission=bool(config.get("gate", "atomic_admission", False)),
            logger=Logger("gate", level=config.get("logging", "level")),
            metrics=metrics,
        )

    def _entry(self, client_id: str) -> str:
        return json.dumps({"clientId": client_id, "admittedAt": int(time.time() * 1000)})

    async def validate(self, payload: Any, headers: Optional[Mapping[str, Any]]) -> None:
        """Admit the request or raise InvalidRequest / DuplicateRequest.

        BackendUnavailable from the cache propagates unchanged.
        """
        try:
            client_id = extract_client_id(headers)
        except InvalidRequest:
            self.metrics.record_invalid()
            self.logger.warn("Request rejected without client header")
            raise

        key = fingerprint(client_id, payload)
        started = time.perf_counter()
        try:
            if self.atomic_admission:
                admitted = await self.cache.add(key, self._entry(client_id), self.ttl_seconds)
            else:
                admitted = await self.cache.get(key) is None
                if admitted:
                    await self.cache.set(key, self._entry(client_id), self.ttl_seconds)
        except BackendUnavailable as e:
            self.metrics.record_backend_error()
            self.logger.error("Cache backend failure", fingerprint=key, error=str(e))
            raise
        finally:
            self.metrics.observe_validation(time.perf_counter() - started)

        if not admitted:
            self.metrics.record_duplicate()
            self.logger.warn("Duplicate request rejected", client_id=client_id, fingerprint=key)
            raise DuplicateRequest(key)

        self.metrics.record_admitted()
        self.logger.debug("Request admitted", client_id=client_id, fingerprint=key,
                          ttl_seconds=self.ttl_seconds)
