import logging
from typing import Any, Dict, List, Optional

from cascade.cascade_agents.llm_helper import LLMHelperMixin
from cascade.core.types import StateInferenceResult, SystemModel
from cascade.prompts.cascade_prompts import STATE_INFERENCE_PROMPT
from cascade.prompts.cascade_schemas import STATE_INFERENCE_SCHEMA

logger = logging.getLogger(__name__)

INFERENCE_FAILED_SUMMARY = (
    "Initial qualitative states could not be inferred; proceeding with undefined stock states."
)
NO_STOCKS_SUMMARY = "The system model has no stocks, so no initial states were inferred."


class StateInferenceEngine(LLMHelperMixin):
    """
    Assigns an initial qualitative state label to every stock in a model.

    The stock set is never altered: states returned for unknown stock names
    are ignored and stocks the backend skips keep their existing state. A
    failed or incomplete backend response degrades to the original model
    with an explanatory summary instead of raising.
    """
    MAX_TOKENS_INFER: int = 1500
    TEMPERATURE_INFER: float = 0.0

    def __init__(self):
        logger.debug("Initialized StateInferenceEngine")

    def _extract_states(self, raw_states: List[Any], model: SystemModel) -> Dict[str, str]:
        known = set(model.stock_names())
        states: Dict[str, str] = {}
        for entry in raw_states:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            state = entry.get("qualitativeState")
            if not isinstance(name, str) or not isinstance(state, str) or not state.strip():
                continue
            if name not in known:
                logger.warning(f"Ignoring inferred state for unknown stock '{name}'")
                continue
            states[name] = state.strip()

        missing = [n for n in model.stock_names() if n not in states]
        if missing:
            logger.warning(f"No initial state inferred for stocks: {missing}")
        return states

    def _fallback(self, model: SystemModel) -> StateInferenceResult:
        return StateInferenceResult(system_model=model, initial_states_summary=INFERENCE_FAILED_SUMMARY, degraded=True)

    def run(self, assertion_text: str, system_model: Optional[SystemModel]) -> StateInferenceResult:
        """
        Infer initial stock states for an assertion and its model.

        Args:
            assertion_text: User assertion (non-empty)
            system_model: Model whose stocks receive states

        Returns:
            StateInferenceResult with a new model (same stock names) and summary;
            `degraded=True` and the original model when inference failed

        Raises:
            ValueError: If assertion_text or system_model is missing
        """
        if not assertion_text or not assertion_text.strip():
            raise ValueError("assertion_text is required")
        if system_model is None:
            raise ValueError("system_model is required")

        if not system_model.stocks:
            logger.info("Skipping state inference: model has no stocks")
            return StateInferenceResult(system_model=system_model, initial_states_summary=NO_STOCKS_SUMMARY)

        prompt = self.format_prompt(
            STATE_INFERENCE_PROMPT,
            assertion_text=assertion_text.strip(),
            system_model_context=system_model.to_prompt_context(include_states=False),
        )
        try:
            result = self._call_llm_structured(
                prompt,
                STATE_INFERENCE_SCHEMA,
                max_tokens=self.MAX_TOKENS_INFER,
                temperature=self.TEMPERATURE_INFER,
            )
        except Exception as exc:
            logger.warning(f"State inference failed, keeping original model: {exc}")
            return self._fallback(system_model)

        if (
            not isinstance(result, dict)
            or not isinstance(result.get("stockStates"), list)
            or not isinstance(result.get("initialStatesSummary"), str)
            or not result["initialStatesSummary"].strip()
        ):
            logger.warning("State inference response missing stockStates/initialStatesSummary; keeping original model")
            return self._fallback(system_model)

        states = self._extract_states(result["stockStates"], system_model)
        inferred_model = system_model.with_states(states)
        logger.info(f"Inferred initial states for {len(states)}/{len(system_model.stocks)} stocks")

        return StateInferenceResult(
            system_model=inferred_model,
            initial_states_summary=result["initialStatesSummary"].strip(),
        )
