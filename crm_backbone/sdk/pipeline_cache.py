"""Lazy-loading cache for HubSpot pipelines with fuzzy name-to-ID resolution."""

from __future__ import annotations

from crm_backbone.models.pipeline import MatchCandidate, Pipeline, ResolvedPipeline
from crm_backbone.sdk.client import HubSpotClient
from crm_backbone.sdk.entity_cache import EntityCache
from crm_backbone.utils.fuzzy import fuzzy_match, needs_alternatives, top_alternatives


class PipelineCache(EntityCache[Pipeline]):
    """Pipelines and their stages, keyed by object type (deals, tickets)."""

    def __init__(self, client: HubSpotClient) -> None:
        super().__init__()
        self.client = client

    def category_key(self, category: str) -> str:
        return category.lower()

    async def fetch_page(self, category: str, after: str | None) -> tuple[list[dict], str | None]:
        data = await self.client.get(f"/crm/v3/pipelines/{category}") or {}
        return data.get("results") or [], None

    async def fetch_one(self, entity_id: str, category: str) -> dict:
        return await self.client.get(f"/crm/v3/pipelines/{category}/{entity_id}")

    def build(self, raw: dict) -> Pipeline:
        return Pipeline.model_validate(raw)

    async def get_pipelines(self, object_type: str) -> list[Pipeline]:
        """Get all pipelines for an object type, fetching on first access."""
        return await self.get_all(object_type)

    async def resolve_pipeline(
        self,
        object_type: str,
        pipeline_name: str,
        stage_name: str | None = None,
    ) -> ResolvedPipeline | None:
        """Resolve a pipeline (and optionally a stage in it) by fuzzy name.

        Returns None when nothing matches. When the best match is not
        confident, the other candidates are attached as ``alternatives``;
        a low-confidence stage match replaces them with stage candidates.
        """
        pipelines = await self.get_pipelines(object_type)
        matches = fuzzy_match(pipeline_name, pipelines, lambda p: p.label)
        if not matches:
            return None

        best = matches[0]
        result = ResolvedPipeline(
            pipeline_id=best.item.id,
            pipeline_label=best.item.label,
            confidence=best.score,
        )
        if needs_alternatives(matches):
            result.alternatives = _candidates(matches)

        if stage_name:
            stage_matches = fuzzy_match(stage_name, best.item.stages, lambda s: s.label)
            if stage_matches:
                best_stage = stage_matches[0]
                result.stage_id = best_stage.item.id
                result.stage_label = best_stage.item.label
                result.stage_confidence = best_stage.score
                if needs_alternatives(stage_matches):
                    result.alternatives = _candidates(stage_matches)

        return result


def _candidates(matches) -> list[MatchCandidate]:
    return [
        MatchCandidate(**alt)
        for alt in top_alternatives(matches, lambda e: e.label, lambda e: e.id)
    ]
