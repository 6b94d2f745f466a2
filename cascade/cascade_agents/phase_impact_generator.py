import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.config import AppConfig, CascadeConfig
from cascade.core.types import (
    PHASE_LABELS,
    Impact, PhaseResult, SystemModel, TensionAnalysis,
)
from cascade.core.validation import (
    assign_unique_ids, coerce_validity, normalize_state_delta, parse_phase_number,
)
from cascade.prompts.cascade_prompts import (
    PHASE_IMPACTS_PROMPT, PHASE_1_INSTRUCTIONS, PHASE_N_INSTRUCTIONS,
)
from cascade.prompts.cascade_schemas import PHASE_IMPACTS_SCHEMA

logger = logging.getLogger(__name__)


class PhasedImpactGenerator(LLMHelperMixin):
    """
    Generates one phase of cascading impacts and the stock-state changes they cause.

    This is a pure transition function invoked once per phase by the
    orchestrator. Each call sees the cumulative stock states from prior
    phases and the (read-only) tension analysis, so phase 2 and 3 impacts are
    grounded in how the system has already shifted.

    Output discipline:
    - Phase 2/3 with no parent impacts short-circuits to an empty result
      without a backend call.
    - Every impact's `order` is the requested phase; ids are unique across
      the session (colliding ids are re-keyed).
    - A phase 2/3 impact whose parentId is missing or not one of the supplied
      parents is logged and, per `parent_link_policy`, kept unlinked ('keep')
      or discarded ('drop'). Parents are never guessed.
    - `state_delta` is None unless at least one stock actually changed; a
      malformed delta is discarded whole.
    - A failed backend call degrades to an empty phase so the cascade can
      still proceed.
    """
    MAX_TOKENS_PHASE_1: int = 3000
    MAX_TOKENS_PHASE_2: int = 4000
    MAX_TOKENS_PHASE_3: int = 4000
    TEMPERATURE_PHASE: float = 0.4  # Some breadth in consequence exploration

    def __init__(self, config: Optional[CascadeConfig] = None):
        self.config = config or AppConfig.cascade
        logger.debug("Initialized PhasedImpactGenerator")

    # --- Prompt assembly ---
    def _format_states(self, system_model: SystemModel, current_states: Dict[str, str]) -> str:
        lines = [f"- {name}: {current_states.get(name) or '(unknown)'}" for name in system_model.stock_names()]
        extra = [name for name in current_states if name not in set(system_model.stock_names())]
        lines += [f"- {name}: {current_states[name]}" for name in extra]
        return "\n".join(lines) if lines else "(No stock states available)"

    def _format_parents(self, parent_impacts: List[Impact]) -> str:
        return "\n".join(
            f'- Parent ID {p.id}, Label: "{p.label}", Description: "{p.description}", Validity: {p.validity}'
            for p in parent_impacts
        )

    def _build_prompt(
        self,
        assertion_text: str,
        phase: int,
        parent_impacts: List[Impact],
        current_states: Dict[str, str],
        system_model: SystemModel,
        tension_analysis: Optional[TensionAnalysis],
    ) -> str:
        min_count, max_count = self.config.cardinality_range(phase)
        if phase == 1:
            instructions = self.format_prompt(PHASE_1_INSTRUCTIONS, min_count=min_count, max_count=max_count)
        else:
            instructions = self.format_prompt(
                PHASE_N_INSTRUCTIONS,
                parent_phase=phase - 1,
                parent_label=PHASE_LABELS[phase - 1],
                parent_impacts=self._format_parents(parent_impacts),
                min_count=min_count,
                max_count=max_count,
                phase=phase,
            )

        tension_context = (
            tension_analysis.to_prompt_context() if tension_analysis is not None
            else "TENSION ANALYSIS\n(Not available)"
        )
        return self.format_prompt(
            PHASE_IMPACTS_PROMPT,
            assertion_text=assertion_text,
            system_model_context=system_model.with_states(current_states).to_prompt_context(),
            current_states=self._format_states(system_model, current_states),
            tension_context=tension_context,
            phase=phase,
            phase_label=PHASE_LABELS[phase],
            phase_instructions=instructions,
        )

    # --- Output normalization ---
    def _link_to_parent(self, impact: Impact, phase: int, parent_ids: set) -> Optional[Impact]:
        """Apply the parent-link policy; returns None when the impact is discarded."""
        if phase == 1:
            if impact.parent_id is not None:
                logger.debug(f"Clearing parentId {impact.parent_id!r} on phase 1 impact {impact.id!r}")
                return replace(impact, parent_id=None)
            return impact

        if impact.parent_id in parent_ids:
            return impact

        if impact.parent_id is None:
            logger.warning(f"Phase {phase} impact {impact.id!r} ({impact.label!r}) has no parentId")
        else:
            logger.warning(
                f"Phase {phase} impact {impact.id!r} references parentId {impact.parent_id!r} "
                f"which is not among the supplied parents"
            )
        if self.config.parent_link_policy == "drop":
            return None
        return replace(impact, parent_id=None)

    def _parse_impacts(
        self,
        raw_impacts: List[Any],
        phase: int,
        parent_impacts: List[Impact],
        taken_ids: Iterable[str],
    ) -> List[Impact]:
        parent_ids = {p.id for p in parent_impacts}
        impacts: List[Impact] = []
        for raw in raw_impacts:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object impact entry in phase {phase}: {raw!r}")
                continue
            try:
                impact = Impact.from_dict(raw, order=phase)
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning(f"Skipping malformed impact entry in phase {phase}: {exc}")
                continue
            impact = replace(impact, validity=coerce_validity(impact.validity))
            impact = self._link_to_parent(impact, phase, parent_ids)
            if impact is not None:
                impacts.append(impact)
        return assign_unique_ids(impacts, phase, set(taken_ids) | parent_ids)

    def _normalize_delta(
        self, raw: Any, current_states: Dict[str, str], system_model: SystemModel
    ) -> Optional[Dict[str, str]]:
        delta = normalize_state_delta(raw)
        if delta is None:
            return None
        known = set(system_model.stock_names())
        for name in delta:
            if name not in known:
                logger.warning(f"State delta names stock '{name}' which is not in the system model")
        changed = {name: state for name, state in delta.items() if current_states.get(name) != state}
        return changed or None

    def _normalize_insights(self, raw: Any) -> List[str]:
        if not isinstance(raw, list):
            return []
        return [item.strip() for item in raw if isinstance(item, str) and item.strip()]

    def _check_cardinality(self, impacts: List[Impact], phase: int, parent_count: int) -> None:
        min_count, max_count = self.config.cardinality_range(phase)
        if phase != 1:
            min_count, max_count = min_count * parent_count, max_count * parent_count
        if not min_count <= len(impacts) <= max_count:
            logger.info(
                f"Phase {phase} produced {len(impacts)} impacts (guidance {min_count}-{max_count}); accepting as-is"
            )

    def run(
        self,
        assertion_text: str,
        target_phase: Any,
        parent_impacts: Optional[List[Impact]],
        current_states: Optional[Dict[str, str]],
        system_model: SystemModel,
        tension_analysis: Optional[TensionAnalysis] = None,
        existing_impact_ids: Iterable[str] = (),
    ) -> PhaseResult:
        """
        Generate impacts for one phase.

        Args:
            assertion_text: User assertion (non-empty)
            target_phase: 1, 2 or 3
            parent_impacts: Impacts of the preceding phase (required for phases 2/3)
            current_states: Cumulative stock name -> state map (not mutated)
            system_model: Full system model
            tension_analysis: Optional tension context
            existing_impact_ids: Ids already used in the session

        Returns:
            PhaseResult; empty when phase 2/3 has no parents or the backend failed

        Raises:
            ValueError: If assertion_text/system_model is missing or the phase is invalid
        """
        if not assertion_text or not assertion_text.strip():
            raise ValueError("assertion_text is required")
        if system_model is None:
            raise ValueError("system_model is required")
        phase = parse_phase_number(target_phase)
        parent_impacts = list(parent_impacts or [])
        current_states = dict(current_states or {})

        if phase in (2, 3) and not parent_impacts:
            logger.info(f"Phase {phase} requested without parent impacts; returning empty result")
            return PhaseResult(phase=phase)
        if phase == 1 and parent_impacts:
            logger.debug("Ignoring parent impacts supplied for phase 1")
            parent_impacts = []

        prompt = self._build_prompt(
            assertion_text.strip(), phase, parent_impacts, current_states, system_model, tension_analysis
        )
        max_tokens = {1: self.MAX_TOKENS_PHASE_1, 2: self.MAX_TOKENS_PHASE_2, 3: self.MAX_TOKENS_PHASE_3}[phase]

        logger.info(f"Generating phase {phase} ({PHASE_LABELS[phase]}) impacts from {len(parent_impacts)} parents")
        try:
            result = self._call_llm_structured(
                prompt,
                PHASE_IMPACTS_SCHEMA,
                max_tokens=max_tokens,
                temperature=self.TEMPERATURE_PHASE,
            )
        except Exception as exc:
            logger.warning(f"Phase {phase} generation failed; returning empty phase: {exc}")
            return PhaseResult(phase=phase, degraded=True)

        if not isinstance(result, dict) or not isinstance(result.get("generatedImpacts"), list):
            logger.warning(f"Phase {phase} response has no generatedImpacts list; returning empty phase")
            return PhaseResult(phase=phase, degraded=True)

        impacts = self._parse_impacts(result["generatedImpacts"], phase, parent_impacts, existing_impact_ids)
        self._check_cardinality(impacts, phase, len(parent_impacts))
        state_delta = self._normalize_delta(result.get("updatedSystemQualitativeStates"), current_states, system_model)
        insights = self._normalize_insights(result.get("feedbackLoopInsights"))

        logger.info(
            f"Phase {phase} complete: impacts={len(impacts)}, "
            f"state_changes={len(state_delta) if state_delta else 0}, insights={len(insights)}"
        )
        return PhaseResult(phase=phase, impacts=impacts, state_delta=state_delta, feedback_loop_insights=insights)
