"""Prometheus metrics for the Token Health API."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import FastAPI, Response


class Metrics:
    """Prometheus metrics collection."""

    def __init__(self):
        # Request metrics
        self.request_count = Counter(
            'token_health_requests_total',
            'Total number of API requests',
            ['method', 'endpoint', 'status']
        )

        self.request_duration = Histogram(
            'token_health_request_duration_seconds',
            'Request duration in seconds',
            ['method', 'endpoint']
        )

        # Payment metrics
        self.payment_challenges = Counter(
            'token_health_payment_challenges_total',
            'Payment challenges issued',
            ['asset']
        )

        self.payment_settlements = Counter(
            'token_health_payment_settlements_total',
            'Payment settlement attempts',
            ['outcome']
        )

        # Report metrics
        self.health_reports = Counter(
            'token_health_reports_total',
            'Health reports computed',
            ['grade']
        )

        self.upstream_failures = Counter(
            'token_health_upstream_failures_total',
            'Failed upstream provider calls',
            ['endpoint']
        )

        self.cache_hits = Counter(
            'token_health_cache_hits_total',
            'Cache hit count',
            ['cache_type']
        )

        self.cache_misses = Counter(
            'token_health_cache_misses_total',
            'Cache miss count',
            ['cache_type']
        )


# Global metrics instance
metrics = Metrics()


def setup_metrics(app: FastAPI, path: str = "/metrics"):
    """Setup metrics endpoint."""

    @app.get(path, include_in_schema=False)
    async def get_metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )
