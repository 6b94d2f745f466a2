import logging
from typing import Any, Dict, List

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.errors import IncompleteAnalysis
from cascade.core.types import (
    CompetingStakeholderResponse, IdentifiedTradeOff, ResourceConstraint,
    SystemModel, TensionAnalysis,
)
from cascade.prompts.cascade_prompts import TENSION_ANALYSIS_PROMPT
from cascade.prompts.cascade_schemas import TENSION_ANALYSIS_SCHEMA

logger = logging.getLogger(__name__)


class TensionAnalyzer(LLMHelperMixin):
    """
    Derives stakeholder responses, resource constraints and trade-offs for an
    assertion and its system model.

    Unlike the other agents there is no degraded path here: later phases
    depend on the shape of the analysis, so a response missing any of the
    three sections raises `IncompleteAnalysis`. Each section may be empty.
    """
    MAX_TOKENS_TENSIONS: int = 3000
    TEMPERATURE_TENSIONS: float = 0.3

    REQUIRED_SECTIONS: List[str] = [
        "competingStakeholderResponses",
        "resourceConstraints",
        "identifiedTradeOffs",
    ]

    def __init__(self):
        logger.debug("Initialized TensionAnalyzer")

    def _missing_sections(self, result: Any) -> List[str]:
        if not isinstance(result, dict):
            return list(self.REQUIRED_SECTIONS)
        return [key for key in self.REQUIRED_SECTIONS if not isinstance(result.get(key), list)]

    def _parse(self, result: Dict[str, Any], system_model: SystemModel) -> TensionAnalysis:
        def _dicts(key):
            return [item for item in result[key] if isinstance(item, dict)]

        responses = [CompetingStakeholderResponse.from_dict(r) for r in _dicts("competingStakeholderResponses")]
        known_agents = set(system_model.agent_names())
        for r in responses:
            if r.agent_name not in known_agents:
                logger.warning(f"Tension analysis references agent '{r.agent_name}' not present in the model")

        return TensionAnalysis(
            competing_stakeholder_responses=responses,
            resource_constraints=[ResourceConstraint.from_dict(c) for c in _dicts("resourceConstraints")],
            identified_trade_offs=[IdentifiedTradeOff.from_dict(t) for t in _dicts("identifiedTradeOffs")],
        )

    def run(self, assertion_text: str, system_model: SystemModel) -> TensionAnalysis:
        """
        Analyze tensions for an assertion.

        Args:
            assertion_text: User assertion (non-empty)
            system_model: Model (ideally with inferred states)

        Returns:
            TensionAnalysis with all three sections present

        Raises:
            ValueError: If assertion_text or system_model is missing
            IncompleteAnalysis: If the backend fails or omits a required section
        """
        if not assertion_text or not assertion_text.strip():
            raise ValueError("assertion_text is required")
        if system_model is None:
            raise ValueError("system_model is required")

        prompt = self.format_prompt(
            TENSION_ANALYSIS_PROMPT,
            assertion_text=assertion_text.strip(),
            system_model_context=system_model.to_prompt_context(),
        )
        try:
            result = self._call_llm_structured(
                prompt,
                TENSION_ANALYSIS_SCHEMA,
                max_tokens=self.MAX_TOKENS_TENSIONS,
                temperature=self.TEMPERATURE_TENSIONS,
            )
        except Exception as exc:
            raise IncompleteAnalysis(
                f"Tension analysis call failed: {exc}", missing_fields=list(self.REQUIRED_SECTIONS)
            ) from exc

        missing = self._missing_sections(result)
        if missing:
            raise IncompleteAnalysis(
                f"Tension analysis is missing required sections: {', '.join(missing)}",
                missing_fields=missing,
            )

        analysis = self._parse(result, system_model)
        logger.info(
            f"Tension analysis: stakeholders={len(analysis.competing_stakeholder_responses)}, "
            f"constraints={len(analysis.resource_constraints)}, trade_offs={len(analysis.identified_trade_offs)}"
        )
        return analysis
