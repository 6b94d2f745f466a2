import logging
from typing import Any, Dict, Optional

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.config import AppConfig, CascadeConfig
from cascade.core.errors import GenerationFailure
from cascade.core.types import AssertionReflection, StructuredConcept, SystemModel
from cascade.core.validation import enforce_referential_integrity
from cascade.prompts.cascade_prompts import SYSTEM_MODEL_BUILD_PROMPT
from cascade.prompts.cascade_schemas import SYSTEM_MODEL_BUILD_SCHEMA

logger = logging.getLogger(__name__)


class SystemModelBuilder(LLMHelperMixin):
    """
    Turns a free-text assertion into a qualitative system model.

    One structured call returns the model (stocks, agents, incentives,
    stock-to-stock flows) along with a short reflection of the assertion.
    The model is checked for referential integrity before it is returned.
    There is no degraded fallback: a backend that cannot produce a model
    results in `GenerationFailure` and the caller decides whether to retry.
    """
    MAX_TOKENS_BUILD: int = 3000
    TEMPERATURE_BUILD: float = 0.2

    def __init__(self, config: Optional[CascadeConfig] = None):
        self.config = config or AppConfig.cascade
        logger.debug("Initialized SystemModelBuilder")

    def _parse_reflection(self, assertion_text: str, result: Dict[str, Any]) -> AssertionReflection:
        raw_model = result.get("systemModel")
        if not isinstance(raw_model, dict):
            raise GenerationFailure("Backend response is missing 'systemModel'", step="system_model")

        model = SystemModel.from_dict(raw_model)
        if not model.stocks:
            raise GenerationFailure("Backend returned a system model without stocks", step="system_model")

        model, repairs = enforce_referential_integrity(model, policy=self.config.structural_policy)

        return AssertionReflection(
            assertion_text=assertion_text,
            system_model=model,
            reflection=str(result.get("reflection") or ""),
            summary=str(result.get("summary") or ""),
            key_concepts=StructuredConcept.from_list(result.get("keyConcepts")),
            confirmation_question=str(result.get("confirmationQuestion") or ""),
            structural_repairs=repairs,
        )

    def run(self, assertion_text: str) -> AssertionReflection:
        """
        Build the system model and reflection for an assertion.

        Args:
            assertion_text: User assertion (non-empty)

        Returns:
            AssertionReflection whose `system_model` satisfies referential integrity

        Raises:
            ValueError: If assertion_text is empty
            GenerationFailure: If the backend fails or returns no usable model
            StructuralViolation: If the structural policy is 'reject' and the model has dangling edges
        """
        if not assertion_text or not assertion_text.strip():
            raise ValueError("assertion_text is required")

        prompt = self.format_prompt(SYSTEM_MODEL_BUILD_PROMPT, assertion_text=assertion_text.strip())
        try:
            result = self._call_llm_structured(
                prompt,
                SYSTEM_MODEL_BUILD_SCHEMA,
                max_tokens=self.MAX_TOKENS_BUILD,
                temperature=self.TEMPERATURE_BUILD,
            )
        except Exception as exc:
            raise GenerationFailure(f"System model generation failed: {exc}", step="system_model") from exc

        if not isinstance(result, dict):
            raise GenerationFailure("Backend returned no structured output", step="system_model")

        reflection = self._parse_reflection(assertion_text.strip(), result)
        model = reflection.system_model
        logger.info(
            f"Built system model: stocks={len(model.stocks)}, agents={len(model.agents)}, "
            f"incentives={len(model.incentives)}, flows={len(model.stock_flows)}, "
            f"repairs={len(reflection.structural_repairs)}"
        )
        return reflection

    def build_system_model(self, assertion_text: str) -> SystemModel:
        """Return only the system model for an assertion."""
        return self.run(assertion_text).system_model
