# tests/collectors/test_selector_fetcher.py

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from factories import target
from kubernetes_asyncio.client import models as k8s
from kubernetes_asyncio.client.rest import ApiException

from kubefeed.collectors.selector_fetcher import LegacySelectorFetcher, TargetRefSelectorFetcher
from kubefeed.core.exceptions import SelectorFetchError
from kubefeed.models.selector import LabelSelector


@pytest.fixture
def apis():
    apps = MagicMock()
    batch = MagicMock()
    core = MagicMock()
    with (
        patch("kubefeed.collectors.selector_fetcher.get_apps_v1_api", new_callable=AsyncMock, return_value=apps),
        patch("kubefeed.collectors.selector_fetcher.get_batch_v1_api", new_callable=AsyncMock, return_value=batch),
        patch("kubefeed.collectors.selector_fetcher.get_core_v1_api", new_callable=AsyncMock, return_value=core),
    ):
        yield apps, batch, core


@pytest.mark.asyncio
async def test_legacy_fetcher_returns_none_without_selector():
    assert await LegacySelectorFetcher().fetch(target()) is None


@pytest.mark.asyncio
async def test_legacy_fetcher_parses_camel_case_selector():
    selector = await LegacySelectorFetcher().fetch(
        target(
            selector={
                "matchLabels": {"app": "web"},
                "matchExpressions": [{"key": "tier", "operator": "In", "values": ["frontend"]}],
            }
        )
    )

    assert selector.matches({"app": "web", "tier": "frontend"})
    assert not selector.matches({"app": "web", "tier": "backend"})


@pytest.mark.asyncio
async def test_legacy_fetcher_rejects_invalid_selector():
    with pytest.raises(SelectorFetchError):
        await LegacySelectorFetcher().fetch(
            target(selector={"matchExpressions": [{"key": "tier", "operator": "In", "values": []}]})
        )


@pytest.mark.asyncio
async def test_target_ref_fetcher_reads_deployment_selector(apis):
    apps, _, _ = apis
    apps.read_namespaced_deployment = AsyncMock(
        return_value=k8s.V1Deployment(
            spec=k8s.V1DeploymentSpec(
                selector=k8s.V1LabelSelector(match_labels={"app": "web"}),
                template=k8s.V1PodTemplateSpec(),
            )
        )
    )

    selector = await TargetRefSelectorFetcher().fetch(target())

    apps.read_namespaced_deployment.assert_awaited_once_with(name="web", namespace="default")
    assert selector == LabelSelector(match_labels={"app": "web"})


@pytest.mark.asyncio
async def test_target_ref_fetcher_reads_stateful_set_expressions(apis):
    apps, _, _ = apis
    apps.read_namespaced_stateful_set = AsyncMock(
        return_value=k8s.V1StatefulSet(
            spec=k8s.V1StatefulSetSpec(
                selector=k8s.V1LabelSelector(
                    match_expressions=[k8s.V1LabelSelectorRequirement(key="app", operator="Exists")]
                ),
                template=k8s.V1PodTemplateSpec(),
                service_name="db",
            )
        )
    )

    selector = await TargetRefSelectorFetcher().fetch(target(kind="StatefulSet", ref_name="db"))

    assert selector.matches({"app": "anything"})
    assert not selector.matches({"tier": "db"})


@pytest.mark.asyncio
async def test_target_ref_fetcher_uses_cron_job_template_labels(apis):
    _, batch, _ = apis
    batch.read_namespaced_cron_job = AsyncMock(
        return_value=k8s.V1CronJob(
            spec=k8s.V1CronJobSpec(
                schedule="*/5 * * * *",
                job_template=k8s.V1JobTemplateSpec(
                    spec=k8s.V1JobSpec(
                        template=k8s.V1PodTemplateSpec(metadata=k8s.V1ObjectMeta(labels={"job": "report"}))
                    )
                ),
            )
        )
    )

    selector = await TargetRefSelectorFetcher().fetch(target(kind="CronJob", ref_name="report"))

    assert selector == LabelSelector(match_labels={"job": "report"})


@pytest.mark.asyncio
async def test_target_ref_fetcher_reads_replication_controller(apis):
    _, _, core = apis
    core.read_namespaced_replication_controller = AsyncMock(
        return_value=k8s.V1ReplicationController(spec=k8s.V1ReplicationControllerSpec(selector={"app": "old"}))
    )

    selector = await TargetRefSelectorFetcher().fetch(target(kind="ReplicationController", ref_name="old"))

    assert selector == LabelSelector(match_labels={"app": "old"})


@pytest.mark.asyncio
async def test_target_ref_fetcher_requires_target_ref(apis):
    with pytest.raises(SelectorFetchError, match="targetRef not defined"):
        await TargetRefSelectorFetcher().fetch(target(kind=None))


@pytest.mark.asyncio
async def test_target_ref_fetcher_rejects_unhandled_kind(apis):
    with pytest.raises(SelectorFetchError, match="unhandled targetRef"):
        await TargetRefSelectorFetcher().fetch(target(kind="Rollout", ref_name="canary"))


@pytest.mark.asyncio
async def test_target_ref_fetcher_wraps_api_errors(apis):
    apps, _, _ = apis
    apps.read_namespaced_deployment = AsyncMock(side_effect=ApiException(status=404, reason="Not Found"))

    with pytest.raises(SelectorFetchError, match="Not Found"):
        await TargetRefSelectorFetcher().fetch(target())
