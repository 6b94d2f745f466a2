import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Set

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.errors import GenerationFailure
from cascade.core.types import PHASES, PHASE_LABELS, ConsolidationSuggestion, Impact
from cascade.core.validation import coerce_validity
from cascade.prompts.cascade_prompts import CONSOLIDATION_PROMPT
from cascade.prompts.cascade_schemas import CONSOLIDATION_SCHEMA

logger = logging.getLogger(__name__)


class ConsolidationAdvisor(LLMHelperMixin):
    """
    Proposes merges of semantically redundant impacts within a phase.

    Suggestions are advisory only; nothing here touches the impact set.
    Every returned suggestion references at least two existing impact ids
    from a single phase, and its consolidated impact carries that phase and
    an id that does not collide with any surviving impact.
    """
    MAX_TOKENS_CONSOLIDATION: int = 3000
    TEMPERATURE_CONSOLIDATION: float = 0.0

    def __init__(self):
        logger.debug("Initialized ConsolidationAdvisor")

    def _group_by_phase(self, impacts: List[Impact]) -> Dict[int, List[Impact]]:
        grouped: Dict[int, List[Impact]] = defaultdict(list)
        for impact in impacts:
            grouped[impact.order].append(impact)
        return grouped

    def _format_impacts(self, grouped: Dict[int, List[Impact]]) -> str:
        sections = []
        for phase in PHASES:
            sections.append(f"Phase {phase} ({PHASE_LABELS[phase]}):")
            if not grouped.get(phase):
                sections.append("  (No impacts)")
                continue
            for i in grouped[phase]:
                concepts = ", ".join(c.name for c in i.key_concepts)
                sections.append(
                    f'  - ID: {i.id}, ParentID: {i.parent_id or "-"}, Label: "{i.label}", '
                    f'Description: "{i.description}", Validity: {i.validity}, KeyConcepts: [{concepts}]'
                )
        return "\n".join(sections)

    def _resolve_parent(
        self, proposed: Optional[str], originals: List[Impact], phase: int, by_id: Dict[str, Impact]
    ) -> Optional[str]:
        if phase == 1:
            return None
        if proposed and proposed in by_id and by_id[proposed].order == phase - 1:
            return proposed
        shared = {o.parent_id for o in originals}
        if len(shared) == 1:
            return shared.pop()
        return None

    def _parse_suggestion(
        self, raw: Any, by_id: Dict[str, Impact], used_ids: Set[str]
    ) -> Optional[ConsolidationSuggestion]:
        if not isinstance(raw, dict):
            return None
        raw_ids = raw.get("originalImpactIds")
        if not isinstance(raw_ids, list):
            logger.warning("Skipping consolidation suggestion without originalImpactIds")
            return None

        original_ids = list(dict.fromkeys(i for i in raw_ids if isinstance(i, str)))
        unknown = [i for i in original_ids if i not in by_id]
        if unknown:
            logger.warning(f"Skipping consolidation suggestion referencing unknown impacts: {unknown}")
            return None
        if len(original_ids) < 2:
            logger.warning(f"Skipping consolidation suggestion with fewer than two impacts: {original_ids}")
            return None

        originals = [by_id[i] for i in original_ids]
        phases = {o.order for o in originals}
        if len(phases) != 1:
            logger.warning(f"Skipping consolidation suggestion spanning phases {sorted(phases)}: {original_ids}")
            return None
        phase = phases.pop()

        raw_impact = raw.get("consolidatedImpact")
        if not isinstance(raw_impact, dict):
            logger.warning(f"Skipping consolidation suggestion for {original_ids} without consolidatedImpact")
            return None
        try:
            impact = Impact.from_dict(raw_impact, order=phase)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning(f"Skipping consolidation suggestion for {original_ids} with malformed impact: {exc}")
            return None

        # Reusing one of the merged ids is fine; colliding with a survivor is not
        blocked = (set(by_id) - set(original_ids)) | used_ids
        impact_id = impact.id
        if not impact_id or impact_id in blocked:
            n = 1
            while f"consolidated-{phase}-{n}" in blocked or f"consolidated-{phase}-{n}" in by_id:
                n += 1
            impact_id = f"consolidated-{phase}-{n}"
        used_ids.add(impact_id)

        impact = replace(
            impact,
            id=impact_id,
            validity=coerce_validity(impact.validity),
            parent_id=self._resolve_parent(impact.parent_id, originals, phase, by_id),
        )
        return ConsolidationSuggestion(
            original_impact_ids=original_ids,
            consolidated_impact=impact,
            confidence=coerce_validity(raw.get("confidence")),
            reasoning_for_consolidation=str(raw.get("reasoningForConsolidation") or ""),
        )

    def run(self, impacts: Iterable[Impact]) -> List[ConsolidationSuggestion]:
        """
        Suggest consolidations across all phases.

        Args:
            impacts: Flattened impact set (all phases)

        Returns:
            Validated suggestions (possibly empty)

        Raises:
            GenerationFailure: If the backend call fails or returns no output
        """
        impacts = list(impacts or [])
        if not impacts:
            logger.info("No impacts to consolidate")
            return []

        by_id = {i.id: i for i in impacts}
        prompt = self.format_prompt(
            CONSOLIDATION_PROMPT, impacts_by_phase=self._format_impacts(self._group_by_phase(impacts))
        )
        try:
            result = self._call_llm_structured(
                prompt,
                CONSOLIDATION_SCHEMA,
                max_tokens=self.MAX_TOKENS_CONSOLIDATION,
                temperature=self.TEMPERATURE_CONSOLIDATION,
            )
        except Exception as exc:
            raise GenerationFailure(f"Consolidation analysis failed: {exc}", step="consolidation") from exc
        if not isinstance(result, dict):
            raise GenerationFailure("Backend returned no consolidation output", step="consolidation")

        raw_suggestions = result.get("consolidationSuggestions")
        if not isinstance(raw_suggestions, list):
            raw_suggestions = []

        used_ids: Set[str] = set()
        suggestions = []
        for raw in raw_suggestions:
            suggestion = self._parse_suggestion(raw, by_id, used_ids)
            if suggestion is not None:
                suggestions.append(suggestion)

        logger.info(f"Consolidation: {len(suggestions)} suggestion(s) from {len(impacts)} impacts")
        return suggestions
