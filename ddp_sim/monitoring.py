# ddp_sim/monitoring.py
import threading
import logging
from socketserver import ThreadingMixIn
from wsgiref.simple_server import make_server, WSGIServer

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest
from prometheus_client.exposition import make_wsgi_app

logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that runs in a separate thread to not block the simulation."""
    allow_reuse_address = True
    daemon_threads = True


class Monitor:
    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several sessions can coexist in one process
        self.registry = CollectorRegistry()

        self.operations = Counter('ddp_operations_total', 'Exchange operations processed', ['kind', 'status'], registry=self.registry)
        self.op_latency = Histogram('ddp_operation_latency_seconds', 'Time to validate and apply an operation', registry=self.registry)
        self.amm_k = Gauge('amm_invariant_k', 'Constant product k', registry=self.registry)
        self.spot_price = Gauge('amm_spot_price_usdc', 'USDC per DDP at the pool', registry=self.registry)
        self.ddp_reserve = Gauge('amm_ddp_reserve', 'DDP held by the pool', registry=self.registry)
        self.usdc_reserve = Gauge('amm_usdc_reserve', 'USDC held by the pool', registry=self.registry)
        self.lp_supply = Gauge('amm_lp_supply', 'Outstanding LP tokens', registry=self.registry)
        self.participants = Gauge('ledger_participants', 'Rows in the participant ledger', registry=self.registry)

    def start_server(self):
        """Serve the metrics over HTTP from a daemon thread."""
        app = make_wsgi_app(self.registry)
        self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
        self.thread = threading.Thread(target=self.server.serve_forever)
        self.thread.daemon = True
        self.thread.start()
        logger.info(f"Prometheus server started on http://{self.host}:{self.port}")

    def stop_server(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Prometheus server stopped.")

    def update(self, ledger):
        summary = ledger.market_summary()
        self.amm_k.set(summary['k'])
        self.spot_price.set(summary['price'])
        self.ddp_reserve.set(summary['ddp_reserve'])
        self.usdc_reserve.set(summary['usdc_reserve'])
        self.lp_supply.set(summary['total_lp_supply'])
        self.participants.set(len(ledger))

    def record_operation(self, kind: str, status: str, latency: float):
        self.operations.labels(kind=kind, status=status).inc()
        self.op_latency.observe(latency)

    def render(self) -> str:
        """Prometheus text exposition of the current metrics."""
        return generate_latest(self.registry).decode('utf-8')
