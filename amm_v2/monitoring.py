"""
Prometheus metrics for a pair.

Each PoolMetrics owns its registry, so several pairs (or tests) can keep
metrics side by side without clashing on the process-wide default.
"""
import logging
import threading
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import psutil
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.exposition import make_wsgi_app

logger = logging.getLogger(__name__)


class MetricsServer(ThreadingMixIn, WSGIServer):
    """Threaded WSGI server so a slow scrape never blocks another."""
    daemon_threads = True
    allow_reuse_address = True


class QuietHandler(WSGIRequestHandler):
    """Route access lines through logging instead of stderr."""

    def log_message(self, format, *args):
        logger.debug(format % args)


class PoolMetrics:
    """Prometheus metrics for one pair, in an isolated registry."""

    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry or CollectorRegistry()
        self.server = None
        self.thread = None

        self.operations = Counter('amm_operations_total', 'Pair operations by outcome', ['op', 'status'], registry=self.registry)
        self.latency = Histogram('amm_operation_latency_seconds', 'Time to execute a pair operation', ['op'], registry=self.registry)
        self.reserve0 = Gauge('amm_reserve0', 'Reserve of token0', registry=self.registry)
        self.reserve1 = Gauge('amm_reserve1', 'Reserve of token1', registry=self.registry)
        self.amm_k = Gauge('amm_invariant_k', 'Constant product k', registry=self.registry)
        self.total_supply = Gauge('amm_lp_total_supply', 'Outstanding LP shares', registry=self.registry)
        self.flash_fees = Counter('amm_flash_fees_total', 'Flash loan fees collected', ['token'], registry=self.registry)
        self.cpu_usage = Gauge('system_cpu_percent', 'Current CPU usage percent', registry=self.registry)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent', registry=self.registry)

    def record_operation(self, op: str, status: str, latency: float):
        self.operations.labels(op=op, status=status).inc()
        self.latency.labels(op=op).observe(latency)

    def record_reserves(self, reserve0: int, reserve1: int, total_supply: int):
        # Gauges are floats; very large reserves lose precision here only
        self.reserve0.set(reserve0)
        self.reserve1.set(reserve1)
        self.amm_k.set(reserve0 * reserve1)
        self.total_supply.set(total_supply)

    def record_flash_fee(self, token_symbol: str, fee: int):
        self.flash_fees.labels(token=token_symbol).inc(fee)

    def update_system(self):
        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)

    def start_server(self, host: str = "127.0.0.1", port: int = 9090) -> int:
        """
        Serve this registry at http://host:port/metrics from a daemon thread.
        Port 0 binds any free port. Returns the bound port.
        """
        if self.server is not None:
            raise RuntimeError("metrics server already running")
        self.server = make_server(host, port, make_wsgi_app(self.registry),
                                  server_class=MetricsServer, handler_class=QuietHandler)
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        bound = self.server.server_port
        logger.info(f"Metrics exposed on http://{host}:{bound}/metrics")
        return bound

    def stop_server(self):
        if self.server is None:
            return
        self.server.shutdown()
        self.server.server_close()
        self.thread.join()
        self.server = None
        self.thread = None
        logger.info("Metrics server stopped")
