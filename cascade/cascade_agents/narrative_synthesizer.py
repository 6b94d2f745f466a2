import logging
from typing import Dict, List, Optional

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.types import PHASE_LABELS, Impact, TensionAnalysis
from cascade.prompts.cascade_prompts import NARRATIVE_PROMPT
from cascade.prompts.cascade_schemas import NARRATIVE_SCHEMA

logger = logging.getLogger(__name__)

MISSING_ASSERTION_NARRATIVE = (
    "The initial assertion was not provided or was empty, so a summary cannot be generated."
)
NARRATIVE_UNAVAILABLE = (
    "A narrative summary could not be generated for this cascade at this time."
)


class NarrativeSynthesizer(LLMHelperMixin):
    """Produces a single narrative of how the system evolved across the three phases."""
    MAX_TOKENS_NARRATIVE: int = 2500
    TEMPERATURE_NARRATIVE: float = 0.5

    def __init__(self):
        logger.debug("Initialized NarrativeSynthesizer")

    def _format_impacts(self, impacts: List[Impact], with_parent: bool) -> str:
        if not impacts:
            return "(None identified)"
        lines = []
        for i in impacts:
            parent = f", ParentID: {i.parent_id or '-'}" if with_parent else ""
            lines.append(
                f'- ID: {i.id}{parent}, Label: "{i.label}", Description: "{i.description}", '
                f"Validity: {i.validity}, Reasoning: {i.reasoning}"
            )
        return "\n".join(lines)

    def run(
        self,
        assertion_text: Optional[str],
        assertion_summary: Optional[str] = None,
        phase1_impacts: Optional[List[Impact]] = None,
        phase2_impacts: Optional[List[Impact]] = None,
        phase3_impacts: Optional[List[Impact]] = None,
        feedback_loop_insights: Optional[List[str]] = None,
        initial_states_summary: Optional[str] = None,
        final_states: Optional[Dict[str, str]] = None,
        tension_analysis: Optional[TensionAnalysis] = None,
    ) -> str:
        """
        Synthesize the cascade narrative.

        Args:
            assertion_text: Full assertion text; empty returns a fixed message without a backend call
            assertion_summary: Short title of the assertion
            phase1_impacts / phase2_impacts / phase3_impacts: Impacts per phase
            feedback_loop_insights: Insights gathered across phases
            initial_states_summary: Summary from state inference
            final_states: Final stock name -> state map
            tension_analysis: Optional tension context

        Returns:
            Narrative text, or a fixed fallback message
        """
        if not assertion_text or not assertion_text.strip():
            logger.info("Skipping narrative: assertion text is empty")
            return MISSING_ASSERTION_NARRATIVE

        insights = feedback_loop_insights or []
        states = final_states or {}
        prompt = self.format_prompt(
            NARRATIVE_PROMPT,
            assertion_summary=assertion_summary or assertion_text.strip(),
            assertion_text=assertion_text.strip(),
            initial_states_summary=initial_states_summary or "(Not available)",
            tension_context=tension_analysis.to_prompt_context() if tension_analysis else "",
            phase1_label=PHASE_LABELS[1],
            phase2_label=PHASE_LABELS[2],
            phase3_label=PHASE_LABELS[3],
            phase1_impacts=self._format_impacts(phase1_impacts or [], with_parent=False),
            phase2_impacts=self._format_impacts(phase2_impacts or [], with_parent=True),
            phase3_impacts=self._format_impacts(phase3_impacts or [], with_parent=True),
            feedback_insights="\n".join(f"- {i}" for i in insights) if insights else "(None identified)",
            final_states="\n".join(f"- {k}: {v}" for k, v in states.items()) if states else "(Not available)",
        )
        try:
            result = self._call_llm_structured(
                prompt,
                NARRATIVE_SCHEMA,
                max_tokens=self.MAX_TOKENS_NARRATIVE,
                temperature=self.TEMPERATURE_NARRATIVE,
            )
        except Exception as exc:
            logger.warning(f"Narrative synthesis failed: {exc}")
            return NARRATIVE_UNAVAILABLE

        narrative = result.get("narrativeSummary") if isinstance(result, dict) else None
        if not isinstance(narrative, str) or not narrative.strip():
            logger.warning("Narrative response has no narrativeSummary")
            return NARRATIVE_UNAVAILABLE

        logger.info(f"Narrative synthesized ({len(narrative)} chars)")
        return narrative.strip()
