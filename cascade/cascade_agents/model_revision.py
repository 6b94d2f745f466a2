import logging
from typing import Optional

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.config import AppConfig, CascadeConfig
from cascade.core.errors import StructuralViolation
from cascade.core.types import RevisionResult, SystemModel
from cascade.core.validation import enforce_referential_integrity, find_isolated_additions
from cascade.prompts.cascade_prompts import MODEL_REVISION_PROMPT
from cascade.prompts.cascade_schemas import MODEL_REVISION_SCHEMA

logger = logging.getLogger(__name__)

REVISION_FAILED_SUMMARY = (
    "The revision could not be applied because the response was missing or malformed. "
    "The system model has not been changed."
)


class SystemModelReviser(LLMHelperMixin):
    """
    Revises a system model from free-text user feedback.

    The revised model passes the same referential-integrity policy as a
    freshly built one. Stocks that survive the revision keep their current
    qualitative state unless the backend assigns a new one. New stocks or
    agents left without any incentive or flow are called out in the summary.
    """
    MAX_TOKENS_REVISE: int = 3000
    TEMPERATURE_REVISE: float = 0.1

    def __init__(self, config: Optional[CascadeConfig] = None):
        self.config = config or AppConfig.cascade
        logger.debug("Initialized SystemModelReviser")

    def _fallback(self, system_model: SystemModel, summary: str = REVISION_FAILED_SUMMARY) -> RevisionResult:
        return RevisionResult(revised_system_model=system_model, revision_summary=summary, degraded=True)

    def run(self, system_model: SystemModel, user_feedback: str) -> RevisionResult:
        """
        Apply user feedback to a system model.

        Args:
            system_model: Current model
            user_feedback: Free-text description of desired changes (non-empty)

        Returns:
            RevisionResult; the original model with `degraded=True` when the
            backend output was unusable or structurally invalid under 'reject'

        Raises:
            ValueError: If system_model or user_feedback is missing
        """
        if system_model is None:
            raise ValueError("system_model is required")
        if not user_feedback or not user_feedback.strip():
            raise ValueError("user_feedback is required")

        prompt = self.format_prompt(
            MODEL_REVISION_PROMPT,
            system_model_context=system_model.to_prompt_context(),
            user_feedback=user_feedback.strip(),
        )
        try:
            result = self._call_llm_structured(
                prompt,
                MODEL_REVISION_SCHEMA,
                max_tokens=self.MAX_TOKENS_REVISE,
                temperature=self.TEMPERATURE_REVISE,
            )
        except Exception as exc:
            logger.warning(f"Model revision failed, keeping current model: {exc}")
            return self._fallback(system_model)

        if (
            not isinstance(result, dict)
            or not isinstance(result.get("revisedSystemModel"), dict)
            or not isinstance(result.get("revisionSummary"), str)
            or not result["revisionSummary"].strip()
        ):
            logger.warning("Model revision response missing revisedSystemModel/revisionSummary")
            return self._fallback(system_model)

        revised = SystemModel.from_dict(result["revisedSystemModel"])
        try:
            revised, repairs = enforce_referential_integrity(revised, policy=self.config.structural_policy)
        except StructuralViolation as exc:
            logger.warning(f"Rejected revised model: {exc}")
            return self._fallback(
                system_model,
                f"The revision was rejected because it left dangling references ({'; '.join(exc.problems)}). "
                "The system model has not been changed.",
            )

        # Carry forward states the backend did not restate
        revised = revised.with_states({**system_model.qualitative_states(), **revised.qualitative_states()})

        removed = [n for n in system_model.stock_names() if n not in set(revised.stock_names())]
        removed += [n for n in system_model.agent_names() if n not in set(revised.agent_names())]
        if removed:
            logger.info(f"Revision removed elements: {removed}")

        summary = result["revisionSummary"].strip()
        isolated = find_isolated_additions(system_model, revised)
        if isolated:
            logger.warning(f"Revision added unconnected elements: {isolated}")
            summary += f" Note: newly added {', '.join(isolated)} not yet connected by any incentive or flow."
        if repairs:
            summary += f" {len(repairs)} dangling reference(s) were dropped during validation."

        logger.info(
            f"Revised system model: stocks={len(revised.stocks)}, agents={len(revised.agents)}, "
            f"incentives={len(revised.incentives)}, flows={len(revised.stock_flows)}"
        )
        return RevisionResult(
            revised_system_model=revised,
            revision_summary=summary,
            structural_repairs=repairs,
            isolated_elements=isolated,
        )
