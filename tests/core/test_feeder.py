# tests/core/test_feeder.py

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from factories import NOW, container_id, pod_id

from kubefeed.core.exceptions import CollectionError
from kubefeed.core.feeder import ClusterStateFeeder
from kubefeed.models.cluster import ResourceKind, UsageSample
from kubefeed.models.specs import PodHistory


def _feeder(cluster_state, closeables=None):
    return ClusterStateFeeder(
        cluster_state=cluster_state,
        workload_synchronizer=MagicMock(sync_workloads=AsyncMock(return_value=True)),
        target_synchronizer=MagicMock(sync_targets=AsyncMock(return_value=True)),
        checkpoint_coordinator=MagicMock(
            load_checkpoints=AsyncMock(return_value=2),
            garbage_collect_checkpoints=AsyncMock(return_value=1),
        ),
        sample_ingestor=MagicMock(ingest_metrics=AsyncMock(return_value=True)),
        closeables=closeables,
    )


def _sample(cid, minutes, usage):
    return UsageSample(
        container_id=cid,
        resource=ResourceKind.CPU,
        measure_start=NOW - timedelta(minutes=minutes),
        usage=usage,
    )


@pytest.mark.asyncio
async def test_init_from_history_seeds_pods_containers_and_samples(cluster_state):
    history = {
        pod_id("web-1"): PodHistory(
            last_labels={"app": "web"},
            last_seen=NOW,
            samples={
                "app": [_sample(container_id("app"), 10, 100), _sample(container_id("app"), 5, 150)],
                "sidecar": [_sample(container_id("sidecar"), 5, 10)],
            },
        )
    }
    provider = MagicMock(get_cluster_history=AsyncMock(return_value=history))

    assert await _feeder(cluster_state).init_from_history_provider(provider) is True

    record = cluster_state.pods[pod_id("web-1")]
    assert record.labels == {"app": "web"}
    assert record.phase == "Unknown"
    assert set(record.containers) == {"app", "sidecar"}
    assert [s.usage for s in cluster_state.samples] == [100, 150, 10]


@pytest.mark.asyncio
async def test_init_from_history_keeps_existing_container_requests(populated_state):
    history = {pod_id("web-1"): PodHistory(samples={"app": [_sample(container_id("app"), 1, 7)]})}
    provider = MagicMock(get_cluster_history=AsyncMock(return_value=history))
    feeder = _feeder(populated_state)

    await feeder.init_from_history_provider(provider)

    assert len(populated_state.samples) == 1
    assert populated_state.get_container(container_id("app")) is not None


@pytest.mark.asyncio
async def test_init_from_history_failure_returns_false(cluster_state):
    provider = MagicMock(get_cluster_history=AsyncMock(side_effect=CollectionError("prometheus down")))

    assert await _feeder(cluster_state).init_from_history_provider(provider) is False
    assert cluster_state.pods == {}


@pytest.mark.asyncio
async def test_entry_points_delegate_to_synchronizers(cluster_state):
    feeder = _feeder(cluster_state)

    assert await feeder.load_targets() is True
    assert await feeder.load_pods() is True
    assert await feeder.load_real_time_metrics() is True
    assert await feeder.init_from_checkpoints() == 2
    assert await feeder.garbage_collect_checkpoints() == 1


@pytest.mark.asyncio
async def test_update_cycle_runs_targets_before_pods_before_metrics(cluster_state):
    feeder = _feeder(cluster_state)
    order = []
    feeder.target_synchronizer.sync_targets.side_effect = lambda: order.append("targets") or True
    feeder.workload_synchronizer.sync_workloads.side_effect = lambda: order.append("pods") or True
    feeder.sample_ingestor.ingest_metrics.side_effect = lambda: order.append("metrics") or True

    await feeder.run_update_cycle()

    assert order == ["targets", "pods", "metrics"]


@pytest.mark.asyncio
async def test_concurrent_entry_points_do_not_interleave(cluster_state):
    feeder = _feeder(cluster_state)
    log = []

    def _slow(name, result):
        async def step():
            log.append(f"{name}:start")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            log.append(f"{name}:end")
            return result

        return step

    feeder.target_synchronizer.sync_targets.side_effect = _slow("targets", True)
    feeder.workload_synchronizer.sync_workloads.side_effect = _slow("pods", True)
    feeder.sample_ingestor.ingest_metrics.side_effect = _slow("metrics", True)
    feeder.checkpoint_coordinator.garbage_collect_checkpoints.side_effect = _slow("gc", 1)

    await asyncio.gather(feeder.run_update_cycle(), feeder.garbage_collect_checkpoints())

    assert log == [
        "targets:start",
        "targets:end",
        "pods:start",
        "pods:end",
        "metrics:start",
        "metrics:end",
        "gc:start",
        "gc:end",
    ]


@pytest.mark.asyncio
async def test_close_closes_every_collaborator_even_after_failure(cluster_state):
    failing = MagicMock(close=AsyncMock(side_effect=RuntimeError("already closed")))
    healthy = MagicMock(close=AsyncMock())
    feeder = _feeder(cluster_state, closeables=[failing, healthy])

    await feeder.close()

    failing.close.assert_awaited_once()
    healthy.close.assert_awaited_once()
