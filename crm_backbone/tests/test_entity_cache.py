"""Tests for the pipeline and workflow caches."""

import asyncio

import pytest

from crm_backbone.sdk.client import HubSpotApiError
from crm_backbone.sdk.pipeline_cache import PipelineCache
from crm_backbone.sdk.workflow_cache import WorkflowCache

DEAL_PIPELINES = {
    "results": [
        {
            "id": "default",
            "label": "Sales Pipeline",
            "displayOrder": 0,
            "stages": [
                {"id": "appointmentscheduled", "label": "Appointment Scheduled", "displayOrder": 0},
                {"id": "closedwon", "label": "Closed Won", "displayOrder": 1},
                {"id": "closedlost", "label": "Closed Lost", "displayOrder": 2},
            ],
        },
        {
            "id": "123",
            "label": "Support Pipeline",
            "displayOrder": 1,
            "stages": [{"id": "s1", "label": "New", "displayOrder": 0}],
        },
    ],
}


@pytest.fixture
def pipeline_client(fake_client):
    return fake_client({("GET", "/crm/v3/pipelines/deals"): DEAL_PIPELINES})


class TestPipelineCache:
    """Test pipeline loading and fuzzy resolution."""

    def test_loads_once_per_category(self, pipeline_client):
        cache = PipelineCache(pipeline_client)

        async def run():
            first = await cache.get_pipelines("deals")
            second = await cache.get_pipelines("DEALS")
            return first, second

        first, second = asyncio.run(run())
        assert [p.label for p in first] == ["Sales Pipeline", "Support Pipeline"]
        assert second is first
        assert pipeline_client.count("GET", "/crm/v3/pipelines/deals") == 1

    def test_concurrent_first_access_may_fetch_twice(self, pipeline_client):
        """Simultaneous first loads are not deduplicated; both see the same data."""
        cache = PipelineCache(pipeline_client)

        async def run():
            return await asyncio.gather(cache.get_pipelines("deals"), cache.get_pipelines("deals"))

        first, second = asyncio.run(run())
        assert pipeline_client.count("GET", "/crm/v3/pipelines/deals") == 2
        assert [p.id for p in first] == [p.id for p in second]

    def test_resolve_exact_pipeline_and_stage(self, pipeline_client):
        cache = PipelineCache(pipeline_client)
        resolved = asyncio.run(cache.resolve_pipeline("deals", "sales pipeline", "closed won"))

        assert resolved.pipeline_id == "default"
        assert resolved.confidence == 0.95
        assert resolved.stage_id == "closedwon"
        assert resolved.stage_label == "Closed Won"
        assert resolved.alternatives is None

    def test_resolve_ambiguous_pipeline_lists_alternatives(self, pipeline_client):
        cache = PipelineCache(pipeline_client)
        resolved = asyncio.run(cache.resolve_pipeline("deals", "Pipe"))

        assert resolved.confidence < 0.7
        assert [a.label for a in resolved.alternatives] == ["Sales Pipeline", "Support Pipeline"]
        assert resolved.alternatives[0].id == "default"

    def test_ambiguous_stage_replaces_alternatives(self, pipeline_client):
        cache = PipelineCache(pipeline_client)
        resolved = asyncio.run(cache.resolve_pipeline("deals", "Sales Pipeline", "Clo"))

        assert resolved.confidence == 1.0
        assert resolved.stage_confidence < 0.7
        assert {a.id for a in resolved.alternatives} == {"closedwon", "closedlost"}

    def test_no_match_returns_none(self, pipeline_client):
        cache = PipelineCache(pipeline_client)
        assert asyncio.run(cache.resolve_pipeline("deals", "zzzzzzzzzzzzzzzzzzzzzz")) is None

    def test_get_by_id_uses_loaded_collection(self, pipeline_client):
        cache = PipelineCache(pipeline_client)

        async def run():
            await cache.get_all("deals")
            return await cache.get_by_id("123", "deals")

        pipeline = asyncio.run(run())
        assert pipeline.label == "Support Pipeline"
        assert len(pipeline_client.calls) == 1

    def test_get_by_id_failure_is_not_found(self, pipeline_client):
        cache = PipelineCache(pipeline_client)
        assert asyncio.run(cache.get_by_id("missing", "deals")) is None
        assert not cache.is_loaded("deals")


def _flow_summary(flow_id: str, name: str, enabled: bool = True) -> dict:
    return {"id": flow_id, "name": name, "isEnabled": enabled, "objectTypeId": "0-1", "revisionId": "7"}


def _flow_detail(flow_id: str) -> dict:
    return {
        "id": flow_id,
        "name": None,
        "startActionId": "1",
        "actions": [{"actionId": "1", "actionTypeId": "0-1", "fields": {"delta": 1, "time_unit": "DAYS"}}],
        "enrollmentCriteria": {"type": "LIST_BASED", "shouldReEnroll": True},
    }


def _batch_read(payload: dict) -> dict:
    return {"results": [_flow_detail(i["id"]) for i in payload["inputs"]]}


class TestWorkflowCache:
    """Test workflow loading with batch detail merge."""

    def test_follows_pages_and_merges_detail(self, fake_client):
        client = fake_client({
            ("GET", "/automation/v4/flows"): lambda params: (
                {"results": [_flow_summary("2", "Renewal")]}
                if params.get("after") == "next"
                else {"results": [_flow_summary("1", "Welcome")], "paging": {"next": {"after": "next"}}}
            ),
            ("POST", "/automation/v4/flows/batch/read"): _batch_read,
        })
        cache = WorkflowCache(client)
        flows = asyncio.run(cache.get_all())

        assert [f.name for f in flows] == ["Welcome", "Renewal"]
        assert all(f.start_action_id == "1" and f.action_count == 1 for f in flows)
        assert flows[0].enrollment_criteria.should_re_enroll is True
        # summary-only keys survive the merge
        assert flows[0].model_extra["revisionId"] == "7"
        assert client.count("GET", "/automation/v4/flows") == 2

    def test_detail_is_fetched_in_chunks(self, fake_client):
        client = fake_client({
            ("GET", "/automation/v4/flows"): {"results": [_flow_summary(str(i), f"Flow {i}") for i in range(5)]},
            ("POST", "/automation/v4/flows/batch/read"): _batch_read,
        })
        cache = WorkflowCache(client)
        cache.chunk_size = 2
        flows = asyncio.run(cache.get_all())

        assert len(flows) == 5
        assert client.count("POST", "/automation/v4/flows/batch/read") == 3

    def test_failing_chunk_keeps_summaries(self, fake_client):
        def batch_read(payload):
            if any(i["id"] == "0" for i in payload["inputs"]):
                return HubSpotApiError(500, "SERVER_ERROR", "boom")
            return _batch_read(payload)

        client = fake_client({
            ("GET", "/automation/v4/flows"): {"results": [_flow_summary(str(i), f"Flow {i}") for i in range(4)]},
            ("POST", "/automation/v4/flows/batch/read"): batch_read,
        })
        cache = WorkflowCache(client)
        cache.chunk_size = 2
        flows = asyncio.run(cache.get_all())

        assert [f.id for f in flows] == ["0", "1", "2", "3"]
        assert [f.action_count for f in flows] == [0, 0, 1, 1]
        assert flows[0].name == "Flow 0"

    def test_summaries_without_id_are_skipped(self, fake_client):
        client = fake_client({
            ("GET", "/automation/v4/flows"): {"results": [{"flowId": "1", "name": "Orphan"}, _flow_summary("2", "Renewal")]},
            ("POST", "/automation/v4/flows/batch/read"): _batch_read,
        })
        flows = asyncio.run(WorkflowCache(client).get_all())

        assert [f.id for f in flows] == ["2"]
        assert flows[0].action_count == 1
        assert client.last("POST", "/automation/v4/flows/batch/read") == {"inputs": [{"id": "2"}]}

    def test_summaries_with_actions_skip_batch_read(self, fake_client):
        full = {**_flow_summary("1", "Welcome"), **_flow_detail("1"), "name": "Welcome"}
        client = fake_client({("GET", "/automation/v4/flows"): {"flows": [full]}})
        flows = asyncio.run(WorkflowCache(client).get_all())

        assert flows[0].action_count == 1
        assert client.count("POST", "/automation/v4/flows/batch/read") == 0

    def test_direct_fetch_does_not_populate_collection(self, fake_client):
        client = fake_client({("GET", "/automation/v4/flows/9"): {**_flow_detail("9"), "name": "Direct"}})
        cache = WorkflowCache(client)
        flow = asyncio.run(cache.get_by_id("9"))

        assert flow.name == "Direct"
        assert not cache.is_loaded()

    def test_search_by_name(self, fake_client):
        client = fake_client({
            ("GET", "/automation/v4/flows"): {
                "results": [
                    {**_flow_summary("1", "Webinar follow-up"), **_flow_detail("1"), "name": "Webinar follow-up"},
                    {**_flow_summary("2", "Lead nurture"), **_flow_detail("2"), "name": "Lead nurture"},
                ],
            },
        })
        flows = asyncio.run(WorkflowCache(client).search_by_name("webinar"))
        assert [f.id for f in flows] == ["1"]
