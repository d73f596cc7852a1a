"""Prometheus metrics export for dupgate."""

from prometheus_client import Counter, Histogram, start_http_server


# Module-level metrics (singleton pattern to avoid duplicate registration)
_metrics_initialized = False
_requests_admitted = None
_requests_duplicate = None
_requests_invalid = None
_backend_errors = None
_cache_hits = None
_validation_time = None


def _init_metrics():
    """Initialize metrics only once."""
    global _metrics_initialized, _requests_admitted, _requests_duplicate
    global _requests_invalid, _backend_errors, _cache_hits, _validation_time

    if _metrics_initialized:
        return

    _requests_admitted = Counter('dupgate_requests_admitted_total', 'Requests admitted by the gate')
    _requests_duplicate = Counter('dupgate_requests_duplicate_total', 'Requests rejected as duplicates')
    _requests_invalid = Counter('dupgate_requests_invalid_total', 'Requests rejected for a missing client header')
    _backend_errors = Counter('dupgate_backend_errors_total', 'Cache backend failures during validation')
    _cache_hits = Counter('dupgate_cache_hits_total', 'Cache hits by tier', ['tier'])
    _validation_time = Histogram('dupgate_validation_seconds', 'Time spent validating a request',
                                 buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0])

    _metrics_initialized = True


class PrometheusMetrics:
    """Prometheus metrics collector."""

    _server_started = False

    def __init__(self, port: int = 9090):
        self.port = port
        _init_metrics()

        self.requests_admitted = _requests_admitted
        self.requests_duplicate = _requests_duplicate
        self.requests_invalid = _requests_invalid
        self.backend_errors = _backend_errors
        self.cache_hits = _cache_hits
        self.validation_time = _validation_time

    def start(self):
        """Start Prometheus metrics server."""
        if not PrometheusMetrics._server_started:
            start_http_server(self.port)
            PrometheusMetrics._server_started = True

    def record_admitted(self):
        self.requests_admitted.inc()

    def record_duplicate(self):
        self.requests_duplicate.inc()

    def record_invalid(self):
        self.requests_invalid.inc()

    def record_backend_error(self):
        self.backend_errors.inc()

    def record_cache_hit(self, tier: str):
        self.cache_hits.labels(tier=tier).inc()

    def observe_validation(self, seconds: float):
        self.validation_time.observe(seconds)
