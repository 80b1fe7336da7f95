"""
Prometheus metrics exporter
"""
import logging
import time
from functools import wraps

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Counters
moderation_decisions = Counter('whisper_moderation_decisions_total', 'Total moderation decisions', ['status'])
adapter_calls = Counter('whisper_moderation_adapter_calls_total', 'Total classifier adapter calls', ['adapter', 'outcome'])
violations_detected = Counter('whisper_moderation_violations_total', 'Total violations detected', ['violation_type', 'severity'])
appeals_resolved = Counter('whisper_moderation_appeals_total', 'Total appeal transitions', ['outcome'])
suspensions_created = Counter('whisper_moderation_suspensions_total', 'Total suspensions created', ['suspension_type'])

# Histograms (for latency)
moderation_latency = Histogram('whisper_moderation_duration_seconds', 'End-to-end moderation duration')
adapter_latency = Histogram('whisper_moderation_adapter_duration_seconds', 'Classifier adapter duration', ['adapter'])


class MetricsExporter:
    """Prometheus metrics exporter"""

    def __init__(self, port: int = 8000):
        self.port = port
        self.server_started = False

    def start(self):
        """Start Prometheus HTTP server"""
        if not self.server_started:
            start_http_server(self.port)
            self.server_started = True
            logger.info(f"Prometheus metrics server started on port {self.port}")

    @staticmethod
    def track_adapter(adapter: str):
        """Decorator to time an async adapter call and count its outcome"""
        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                    adapter_calls.labels(adapter=adapter, outcome="success").inc()
                    return result
                except Exception:
                    adapter_calls.labels(adapter=adapter, outcome="error").inc()
                    raise
                finally:
                    adapter_latency.labels(adapter=adapter).observe(time.time() - start_time)
            return wrapper
        return decorator

    @staticmethod
    def record_decision(status: str, duration_ms: int):
        """Record a final moderation decision"""
        moderation_decisions.labels(status=status).inc()
        moderation_latency.observe(duration_ms / 1000.0)

    @staticmethod
    def record_violation(violation_type: str, severity: str):
        """Record violation detection"""
        violations_detected.labels(violation_type=violation_type, severity=severity).inc()

    @staticmethod
    def record_appeal(outcome: str):
        appeals_resolved.labels(outcome=outcome).inc()

    @staticmethod
    def record_suspension(suspension_type: str):
        suspensions_created.labels(suspension_type=suspension_type).inc()
