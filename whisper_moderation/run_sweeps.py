"""
Periodic sweep worker - expires stale appeals, lapses finished suspensions
and applies time-based reputation recovery.
"""
import asyncio
import logging
from typing import Optional

from whisper_moderation.services.registry import ServiceRegistry, registry_from_env

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class SweepWorker:
    """Runs the expiration and recovery sweeps on a fixed interval"""

    def __init__(self, registry: ServiceRegistry):
        self.registry = registry
        self.interval_seconds = registry.config.sweep_interval_seconds

    async def run_once(self):
        """One pass over pending appeals, active suspensions and reputations"""
        try:
            expired_appeals = await self.registry.appeals.check_appeal_expiration()
            lapsed = await self.registry.suspensions.check_suspension_expiration()
            recovered = []
            if self.registry.config.features.enable_reputation_system:
                recovered = await self.registry.reputation.process_all_reputation_recovery()
            logger.info(
                f"Sweep complete: {len(expired_appeals)} appeals expired, "
                f"{len(lapsed)} suspensions lapsed, {len(recovered)} reputations recovered"
            )
        except Exception as e:
            logger.error(f"Sweep failed: {e}")

    async def run(self, iterations: Optional[int] = None):
        """Sweep forever, or for a fixed number of passes"""
        completed = 0
        while iterations is None or completed < iterations:
            await self.run_once()
            completed += 1
            if iterations is None or completed < iterations:
                await asyncio.sleep(self.interval_seconds)


def main():
    registry = registry_from_env()

    # Start metrics server
    registry.metrics.start()
    logger.info(f"Sweep worker started, interval {registry.config.sweep_interval_seconds}s")

    try:
        asyncio.run(SweepWorker(registry).run())
    except KeyboardInterrupt:
        logger.info("Shutting down sweep worker...")


if __name__ == '__main__':
    main()
