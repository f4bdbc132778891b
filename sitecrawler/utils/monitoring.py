"""
Monitoring and metrics collection for the web crawler system.
"""

import time
import logging
from typing import Dict, Optional, Any

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


class MetricsCollector:
    """Collects crawler metrics into a dedicated Prometheus registry."""

    def __init__(self, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.prometheus_port = prometheus_port
        self.registry = CollectorRegistry()

        self.pages_fetched = Counter(
            'crawler_pages_fetched_total',
            'Total number of pages fetched',
            registry=self.registry
        )
        self.links_discovered = Counter(
            'crawler_links_discovered_total',
            'Total number of new same-prefix links queued',
            registry=self.registry
        )
        self.errors = Counter(
            'crawler_errors_total',
            'Total number of crawl errors',
            ['error_type'],
            registry=self.registry
        )
        self.fetch_time = Histogram(
            'crawler_fetch_time_seconds',
            'Time spent fetching and parsing a page',
            registry=self.registry
        )
        self.frontier_pending = Gauge(
            'crawler_frontier_pending',
            'Number of URLs waiting in the frontier',
            registry=self.registry
        )
        self.frontier_in_flight = Gauge(
            'crawler_frontier_in_flight',
            'Number of URLs currently being fetched',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'crawler_active_workers',
            'Number of running crawler workers',
            registry=self.registry
        )

    def start_server(self):
        """Start Prometheus metrics HTTP server."""
        start_http_server(self.prometheus_port, registry=self.registry)
        self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")

    def export_text(self) -> bytes:
        """Render metrics in the Prometheus text format."""
        return generate_latest(self.registry)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read a sample value from the registry (0.0 if absent)."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0


class CrawlerMonitor:
    """High-level monitoring interface for the crawler."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.start_time = time.time()

    def record_page_fetched(self, url: str, fetch_time: float):
        """Record a successfully fetched page."""
        self.metrics.pages_fetched.inc()
        self.metrics.fetch_time.observe(fetch_time)

    def record_links_discovered(self, count: int):
        """Record newly queued links."""
        if count:
            self.metrics.links_discovered.inc(count)

    def record_error(self, error_type: str):
        """Record an error event."""
        self.metrics.errors.labels(error_type=error_type).inc()

    def update_frontier(self, stats: Dict[str, int]):
        """Update frontier gauges from URLFrontier.get_stats()."""
        self.metrics.frontier_pending.set(stats.get('pending', 0))
        self.metrics.frontier_in_flight.set(stats.get('in_flight', 0))

    def worker_started(self):
        self.metrics.active_workers.inc()

    def worker_finished(self):
        self.metrics.active_workers.dec()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the main metrics."""
        runtime = time.time() - self.start_time
        pages = self.metrics.get_value('crawler_pages_fetched_total')

        return {
            'runtime_seconds': runtime,
            'pages_fetched': pages,
            'links_discovered': self.metrics.get_value('crawler_links_discovered_total'),
            'active_workers': self.metrics.get_value('crawler_active_workers'),
            'pages_per_second': pages / runtime if runtime > 0 else 0
        }
