import time
import logging
import contextlib
from typing import Dict, Any, List, Optional
from collections import defaultdict

from cuentos.models import IllustrationBatch

logger = logging.getLogger("cuentos-app")


class MetricsCollector:
    """Per-request stage timings and illustration counts for one tale"""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.metrics = defaultdict(float)
        self.counters = defaultdict(int)
        self.stages: List[str] = []
        self.failed_stage: Optional[str] = None
        self.skipped_scenes: List[int] = []
        self.start_time = time.monotonic()

    @contextlib.asynccontextmanager
    async def stage(self, stage_name: str):
        """Time one pipeline stage, remembering it if it raises"""
        start_time = time.monotonic()
        self.stages.append(stage_name)
        try:
            yield
        except Exception:
            self.failed_stage = stage_name
            raise
        finally:
            elapsed = time.monotonic() - start_time
            self.metrics[f"{stage_name}_time"] = round(elapsed, 3)
            logger.debug(f"[{self.request_id}] {stage_name} stage finished in {elapsed:.3f}s")

    def increment(self, counter_name: str, value: int = 1):
        """Increment a counter metric"""
        self.counters[counter_name] += value

    def record_illustrations(self, batch: IllustrationBatch):
        self.increment("images_generated", len(batch.image_urls))
        self.increment("images_skipped", len(batch.skipped))
        self.skipped_scenes.extend(o.index for o in batch.skipped)

    def get_metrics(self) -> Dict[str, Any]:
        """Get all collected metrics"""
        result = dict(self.metrics)

        # Add counters to metrics
        for counter_name, value in self.counters.items():
            result[counter_name] = value

        if self.skipped_scenes:
            result["skipped_scenes"] = list(self.skipped_scenes)
        if self.failed_stage:
            result["failed_stage"] = self.failed_stage

        # Add total execution time
        result["total_elapsed"] = round(time.monotonic() - self.start_time, 3)

        return result

    def log_summary(self):
        metrics = self.get_metrics()
        timings = ", ".join(f"{name}={metrics.get(f'{name}_time', 0):.2f}s" for name in self.stages)
        if self.failed_stage:
            logger.warning(
                f"[{self.request_id}] tale failed at {self.failed_stage} stage ({timings}, total={metrics['total_elapsed']:.2f}s)"
            )
        else:
            logger.info(
                f"[{self.request_id}] tale completed ({timings}, total={metrics['total_elapsed']:.2f}s, "
                f"images={metrics.get('images_generated', 0)}, skipped scenes={self.skipped_scenes or 'none'})"
            )
