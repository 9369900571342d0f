import asyncio
import logging

import pytest

from cuentos.models import IllustrationBatch, IllustrationOutcome
from cuentos.monitoring import MetricsCollector


def _batch():
    return IllustrationBatch(outcomes=[
        IllustrationOutcome(index=1, prompt="a", url="/images/a_1.png", attempts=1),
        IllustrationOutcome(index=2, prompt="b", attempts=5),
        IllustrationOutcome(index=3, prompt="c", url="/images/c_3.png", attempts=2),
    ])


def test_illustration_batch_counts_and_skipped_scenes():
    metrics = MetricsCollector("req")

    metrics.record_illustrations(_batch())

    result = metrics.get_metrics()
    assert result["images_generated"] == 2
    assert result["images_skipped"] == 1
    assert result["skipped_scenes"] == [2]
    assert "failed_stage" not in result


def test_failing_stage_is_recorded_and_reraised(caplog):
    metrics = MetricsCollector("req")

    async def pipeline():
        async with metrics.stage("story"):
            pass
        async with metrics.stage("illustrations"):
            raise RuntimeError("no images")

    with pytest.raises(RuntimeError):
        asyncio.run(pipeline())

    result = metrics.get_metrics()
    assert result["failed_stage"] == "illustrations"
    assert "story_time" in result and "illustrations_time" in result

    with caplog.at_level(logging.INFO, logger="cuentos-app"):
        metrics.log_summary()
    assert "failed at illustrations stage" in caplog.text


def test_summary_names_each_completed_stage(caplog):
    metrics = MetricsCollector("req")

    async def pipeline():
        for name in ("story", "scene_prompts", "illustrations"):
            async with metrics.stage(name):
                pass

    asyncio.run(pipeline())
    metrics.record_illustrations(_batch())

    with caplog.at_level(logging.INFO, logger="cuentos-app"):
        metrics.log_summary()
    assert "tale completed" in caplog.text
    assert "scene_prompts=" in caplog.text
    assert "skipped scenes=[2]" in caplog.text
