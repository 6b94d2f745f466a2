import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from cascade.core.types import (
    CORE_ASSERTION_ID, PHASES, VALIDITY_LEVELS,
    AssertionReflection, CascadeReport, ConsolidationSuggestion, Impact,
    PhaseResult, RevisionResult, SystemModel, TensionAnalysis,
)

logger = logging.getLogger(__name__)


@dataclass
class CascadeSession:
    """
    Mutable context for one cascade exploration.

    Owns the running qualitative state map and the ordered collection of
    impacts across all phases. `phase_results` keeps what each phase call
    returned; `impacts` is the live collection that validity overrides and
    accepted consolidations act on.
    """
    assertion_text: str
    reflection: Optional[AssertionReflection] = None
    system_model: Optional[SystemModel] = None
    state_map: Dict[str, str] = field(default_factory=dict)
    initial_states_summary: Optional[str] = None
    tension_analysis: Optional[TensionAnalysis] = None
    impacts: List[Impact] = field(default_factory=list)
    phase_results: Dict[int, PhaseResult] = field(default_factory=dict)
    feedback_loop_insights: List[str] = field(default_factory=list)
    consolidation_suggestions: List[ConsolidationSuggestion] = field(default_factory=list)
    revisions: List[RevisionResult] = field(default_factory=list)
    narrative: Optional[str] = None

    # --- Queries ---
    def impact_ids(self) -> List[str]:
        return [i.id for i in self.impacts]

    def impacts_for_phase(self, phase: int) -> List[Impact]:
        return [i for i in self.impacts if i.order == phase]

    def get_impact(self, impact_id: str) -> Impact:
        for impact in self.impacts:
            if impact.id == impact_id:
                return impact
        raise KeyError(impact_id)

    def has_phase(self, phase: int) -> bool:
        return phase in self.phase_results

    # --- Mutations ---
    def fold_phase(self, result: PhaseResult) -> None:
        """Merge a phase result into the session: impacts appended, delta merged, insights accumulated."""
        self.phase_results[result.phase] = result
        self.impacts.extend(result.impacts)
        if result.state_delta:
            self.state_map.update(result.state_delta)
        for insight in result.feedback_loop_insights:
            if insight not in self.feedback_loop_insights:
                self.feedback_loop_insights.append(insight)
        logger.debug(
            f"Folded phase {result.phase}: total impacts={len(self.impacts)}, tracked stocks={len(self.state_map)}"
        )

    def update_validity(self, impact_id: str, validity: str) -> Impact:
        """
        Override the validity of one impact.

        Raises:
            KeyError: If no impact has this id
            ValueError: If validity is not high/medium/low
        """
        label = validity.strip().lower() if isinstance(validity, str) else None
        if label not in VALIDITY_LEVELS:
            raise ValueError(f"Invalid validity {validity!r}; expected one of {', '.join(VALIDITY_LEVELS)}")
        for idx, impact in enumerate(self.impacts):
            if impact.id == impact_id:
                updated = replace(impact, validity=label)
                self.impacts[idx] = updated
                logger.info(f"Validity of {impact_id!r} set to {label}")
                return updated
        raise KeyError(impact_id)

    def apply_consolidation(self, suggestion: ConsolidationSuggestion) -> Impact:
        """
        Accept a consolidation suggestion.

        The merged impacts are removed, the consolidated impact takes the
        position of the first of them, and children of any merged impact are
        re-parented onto the consolidated one. Nothing changes if validation
        fails.

        Raises:
            ValueError: If an original id is unknown or the consolidated id
                collides with an impact that survives the merge
        """
        merged = list(dict.fromkeys(suggestion.original_impact_ids))
        known = set(self.impact_ids())
        unknown = [i for i in merged if i not in known]
        if unknown:
            raise ValueError(f"Consolidation references unknown impacts: {unknown}")
        consolidated = suggestion.consolidated_impact
        if consolidated.id in known - set(merged):
            raise ValueError(f"Consolidated impact id {consolidated.id!r} collides with an existing impact")

        merged_set = set(merged)
        updated: List[Impact] = []
        inserted = False
        for impact in self.impacts:
            if impact.id in merged_set:
                if not inserted:
                    updated.append(consolidated)
                    inserted = True
                continue
            if impact.parent_id in merged_set:
                impact = replace(impact, parent_id=consolidated.id)
            updated.append(impact)
        self.impacts = updated

        # Suggestions touching the merged impacts no longer apply
        self.consolidation_suggestions = [
            s for s in self.consolidation_suggestions
            if s is not suggestion and not merged_set.intersection(s.original_impact_ids)
        ]
        logger.info(f"Applied consolidation of {merged} into {consolidated.id!r}")
        return consolidated

    def dismiss_consolidation(self, consolidated_impact_id: str) -> ConsolidationSuggestion:
        """Remove a pending suggestion by the id of its consolidated impact."""
        for idx, suggestion in enumerate(self.consolidation_suggestions):
            if suggestion.consolidated_impact.id == consolidated_impact_id:
                logger.info(f"Dismissed consolidation suggestion {consolidated_impact_id!r}")
                return self.consolidation_suggestions.pop(idx)
        raise KeyError(consolidated_impact_id)

    # --- Export ---
    def impact_graph(self) -> Dict[str, List[Dict[str, Any]]]:
        """Nodes and links for graph rendering. Links come only from explicit parentIds."""
        label = (self.reflection.summary if self.reflection and self.reflection.summary else self.assertion_text)
        nodes: List[Dict[str, Any]] = [{"id": CORE_ASSERTION_ID, "label": label, "order": 0}]
        links: List[Dict[str, str]] = []
        ids = set(self.impact_ids())
        for impact in self.impacts:
            nodes.append({
                "id": impact.id,
                "label": impact.label,
                "order": impact.order,
                "validity": impact.validity,
            })
            if impact.order == 1:
                links.append({"source": CORE_ASSERTION_ID, "target": impact.id})
            elif impact.parent_id and impact.parent_id in ids:
                links.append({"source": impact.parent_id, "target": impact.id})
        return {"nodes": nodes, "links": links}

    def to_report(self) -> CascadeReport:
        phase_results = [
            replace(self.phase_results[p], impacts=self.impacts_for_phase(p))
            for p in PHASES if p in self.phase_results
        ]
        return CascadeReport(
            assertion_text=self.assertion_text,
            reflection=self.reflection,
            system_model=self.system_model.with_states(self.state_map) if self.system_model else SystemModel(),
            initial_states_summary=self.initial_states_summary,
            tension_analysis=self.tension_analysis,
            phase_results=phase_results,
            final_states=dict(self.state_map),
            feedback_loop_insights=list(self.feedback_loop_insights),
            consolidation_suggestions=list(self.consolidation_suggestions),
            narrative=self.narrative,
        )
