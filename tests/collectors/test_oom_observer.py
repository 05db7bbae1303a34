# tests/collectors/test_oom_observer.py

from datetime import datetime, timezone

import pytest
from factories import NOW, container_id
from kubernetes_asyncio.client import models as k8s

from kubefeed.collectors.oom_observer import OomObserver, parse_eviction_event, parse_pod_update
from kubefeed.models.cluster import OomEvent


def _eviction_event(containers="app", usages="300Mi", starved="memory", reason="Evicted", kind="Pod"):
    annotations = {
        "offending_containers": containers,
        "offending_containers_usage": usages,
        "starved_resource": starved,
    }
    return k8s.CoreV1Event(
        metadata=k8s.V1ObjectMeta(
            name="web-1.17c3",
            namespace="default",
            annotations=annotations,
            creation_timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        ),
        involved_object=k8s.V1ObjectReference(kind=kind, name="web-1", namespace="default"),
        reason=reason,
    )


def test_parse_eviction_event_yields_memory_starved_containers():
    event = _eviction_event(containers="app,sidecar", usages="300Mi,250m", starved="memory,cpu")

    ooms = parse_eviction_event(event)

    assert ooms == [OomEvent(container_id=container_id("app"), timestamp=NOW, memory=300 * 1024 * 1024)]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"reason": "Killing"},
        {"kind": "Node"},
        {"containers": "app,sidecar", "usages": "300Mi", "starved": "memory"},
        {"usages": "Infinity"},
        {"usages": "plenty"},
    ],
)
def test_parse_eviction_event_ignores_irrelevant_events(kwargs):
    assert parse_eviction_event(_eviction_event(**kwargs)) == []


@pytest.mark.asyncio
async def test_on_event_enqueues_parsed_ooms():
    observer = OomObserver(maxsize=5)

    assert observer.on_event(_eviction_event()) == 1

    assert observer.queue.qsize() == 1
    assert observer.queue.get_nowait().memory == 300 * 1024 * 1024


@pytest.mark.asyncio
async def test_full_queue_drops_oldest_event():
    observer = OomObserver(maxsize=2)
    for memory in (1, 2, 3):
        observer.put(OomEvent(container_id=container_id(), timestamp=NOW, memory=memory))

    assert observer.dropped_count == 1
    assert [observer.queue.get_nowait().memory for _ in range(2)] == [2, 3]


def _pod(restart_count, reason="OOMKilled", memory="256Mi", finished_at=NOW):
    terminated = None
    if reason is not None:
        terminated = k8s.V1ContainerStateTerminated(exit_code=137, reason=reason, finished_at=finished_at)
    requests = {"memory": memory} if memory else None
    return k8s.V1Pod(
        metadata=k8s.V1ObjectMeta(name="web-1", namespace="default"),
        spec=k8s.V1PodSpec(
            containers=[
                k8s.V1Container(name="app", image="web:1", resources=k8s.V1ResourceRequirements(requests=requests))
            ]
        ),
        status=k8s.V1PodStatus(
            container_statuses=[
                k8s.V1ContainerStatus(
                    name="app",
                    image="web:1",
                    image_id="",
                    ready=True,
                    restart_count=restart_count,
                    last_state=k8s.V1ContainerState(terminated=terminated),
                )
            ]
        ),
    )


def test_parse_pod_update_detects_oom_killed_restart():
    old, new = _pod(restart_count=1), _pod(restart_count=2)

    ooms = parse_pod_update(old, new)

    assert ooms == [OomEvent(container_id=container_id("app"), timestamp=NOW, memory=256 * 1024 * 1024)]


def test_parse_pod_update_uses_memory_request_of_old_spec():
    old, new = _pod(restart_count=0, reason=None, memory="128Mi"), _pod(restart_count=1, memory="1Gi")

    assert [oom.memory for oom in parse_pod_update(old, new)] == [128 * 1024 * 1024]


@pytest.mark.parametrize(
    "old,new",
    [
        (_pod(restart_count=2), _pod(restart_count=2)),
        (_pod(restart_count=1, reason="Error"), _pod(restart_count=2, reason="Error")),
        (_pod(restart_count=0, reason=None), _pod(restart_count=1, reason="Completed")),
    ],
)
def test_parse_pod_update_ignores_other_updates(old, new):
    assert parse_pod_update(old, new) == []


def test_parse_pod_update_without_memory_request_records_zero():
    old, new = _pod(restart_count=0, reason=None, memory=None), _pod(restart_count=1, memory=None)

    assert [oom.memory for oom in parse_pod_update(old, new)] == [0]


@pytest.mark.asyncio
async def test_on_pod_update_enqueues_detected_ooms():
    observer = OomObserver(maxsize=5)

    assert observer.on_pod_update(_pod(restart_count=3), _pod(restart_count=4)) == 1

    assert observer.queue.get_nowait().container_id == container_id("app")
