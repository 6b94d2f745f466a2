import logging
from typing import List, Optional

from anthropic import Anthropic

from cascade.cascade_agents.consolidation_advisor import ConsolidationAdvisor
from cascade.cascade_agents.model_revision import SystemModelReviser
from cascade.cascade_agents.narrative_synthesizer import NarrativeSynthesizer
from cascade.cascade_agents.phase_impact_generator import PhasedImpactGenerator
from cascade.cascade_agents.state_inference import StateInferenceEngine
from cascade.cascade_agents.system_model_builder import SystemModelBuilder
from cascade.cascade_agents.tension_analyzer import TensionAnalyzer
from cascade.core.config import AppConfig, CascadeConfig
from cascade.core.errors import CascadeError, GenerationFailure, IncompleteAnalysis
from cascade.core.types import (
    PHASE_LABELS, CascadeReport, ConsolidationSuggestion, PhaseResult,
    RevisionResult, StateInferenceResult, TensionAnalysis,
)
from cascade.core.validation import parse_phase_number
from cascade.orchestration.cascade_session import CascadeSession

logger = logging.getLogger(__name__)


class CascadeOrchestrator:
    """
    Drives a cascade exploration step by step over an explicit session.

    Pipeline stages:
    1. Builder: system model and assertion reflection
    2. State inference: initial qualitative stock states
    3. Tensions: stakeholder responses, constraints, trade-offs (optional)
    4-6. Phases 1-3: impacts and stock-state deltas, strictly in order
    7. Consolidation: advisory merge suggestions
    8. Narrative: prose summary of the whole cascade

    Each step method can also be called on its own (UI-driven flow). Hard
    failures (`GenerationFailure`, `IncompleteAnalysis`) are logged and
    re-raised unchanged so the caller can retry that step. Degraded results
    are threaded through the session as data.
    """

    def __init__(self, config: Optional[CascadeConfig] = None, client: Optional[Anthropic] = None):
        self.config = config or AppConfig.cascade
        logger.debug("Initializing CascadeOrchestrator")
        self.builder = SystemModelBuilder(config=self.config)
        self.state_engine = StateInferenceEngine()
        self.tension_analyzer = TensionAnalyzer()
        self.phase_generator = PhasedImpactGenerator(config=self.config)
        self.consolidation_advisor = ConsolidationAdvisor()
        self.reviser = SystemModelReviser(config=self.config)
        self.narrator = NarrativeSynthesizer()
        if client is not None:
            self.set_client(client)

    def _agents(self) -> list:
        return [
            self.builder, self.state_engine, self.tension_analyzer, self.phase_generator,
            self.consolidation_advisor, self.reviser, self.narrator,
        ]

    def set_client(self, client: Anthropic) -> None:
        """Share one client across every agent."""
        for agent in self._agents():
            agent.set_client(client)

    def _require_model(self, session: CascadeSession) -> None:
        if session.system_model is None:
            raise ValueError("Session has no system model; call start() first")

    # --- Steps ---
    def start(self, assertion_text: str) -> CascadeSession:
        """Build the system model for an assertion and open a session around it."""
        if not assertion_text or not assertion_text.strip():
            raise ValueError("assertion_text is required")
        try:
            reflection = self.builder.run(assertion_text)
        except CascadeError:
            logger.exception("System model build failed")
            raise
        model = reflection.system_model
        logger.info(f"System model ready: stocks={len(model.stocks)}, agents={len(model.agents)}")
        return CascadeSession(
            assertion_text=assertion_text.strip(),
            reflection=reflection,
            system_model=model,
            state_map=model.qualitative_states(),
        )

    def revise_model(self, session: CascadeSession, user_feedback: str) -> RevisionResult:
        """Apply user feedback to the session model; a degraded revision leaves it unchanged."""
        self._require_model(session)
        result = self.reviser.run(session.system_model, user_feedback)
        session.revisions.append(result)
        if result.degraded:
            logger.warning(f"Revision not applied: {result.revision_summary}")
            return result
        revised = result.revised_system_model
        session.system_model = revised
        merged = {**session.state_map, **revised.qualitative_states()}
        kept = set(revised.stock_names())
        removed = sorted(name for name in merged if name not in kept)
        if removed:
            logger.info(f"Dropping states for stocks removed by revision: {removed}")
        session.state_map = {name: state for name, state in merged.items() if name in kept}
        if session.reflection is not None:
            session.reflection.system_model = revised
        return result

    def infer_initial_states(self, session: CascadeSession) -> StateInferenceResult:
        self._require_model(session)
        if session.phase_results:
            raise ValueError("Initial states cannot be inferred after impact phases have run")
        result = self.state_engine.run(session.assertion_text, session.system_model)
        if result.degraded:
            logger.warning("State inference degraded; continuing with existing states")
        session.system_model = result.system_model
        session.state_map = {**session.state_map, **result.state_map}
        session.initial_states_summary = result.initial_states_summary
        return result

    def analyze_tensions(self, session: CascadeSession) -> TensionAnalysis:
        self._require_model(session)
        model = session.system_model.with_states(session.state_map)
        try:
            analysis = self.tension_analyzer.run(session.assertion_text, model)
        except IncompleteAnalysis:
            logger.exception("Tension analysis failed")
            raise
        session.tension_analysis = analysis
        return analysis

    def run_phase(self, session: CascadeSession, phase) -> PhaseResult:
        """
        Generate one phase and fold it into the session.

        A phase may only run once its predecessor has been folded in. A phase
        that already ran can be re-run only if it degraded, since a degraded
        phase contributed nothing to the session.

        Raises:
            ValueError: On an invalid phase number, a missing predecessor, or
                a phase that already completed
        """
        phase = parse_phase_number(phase)
        self._require_model(session)
        if phase > 1 and not session.has_phase(phase - 1):
            raise ValueError(f"Phase {phase} requires phase {phase - 1} to run first")
        if session.has_phase(phase):
            if not session.phase_results[phase].degraded:
                raise ValueError(f"Phase {phase} has already been run")
            if any(session.has_phase(p) for p in range(phase + 1, 4)):
                raise ValueError(f"Phase {phase} cannot be re-run after later phases")

        result = self.phase_generator.run(
            assertion_text=session.assertion_text,
            target_phase=phase,
            parent_impacts=session.impacts_for_phase(phase - 1) if phase > 1 else [],
            current_states=dict(session.state_map),
            system_model=session.system_model,
            tension_analysis=session.tension_analysis,
            existing_impact_ids=session.impact_ids(),
        )
        if result.degraded:
            logger.warning(f"Phase {phase} ({PHASE_LABELS[phase]}) degraded to an empty result")
        session.fold_phase(result)
        return result

    def suggest_consolidations(self, session: CascadeSession) -> List[ConsolidationSuggestion]:
        try:
            suggestions = self.consolidation_advisor.run(session.impacts)
        except GenerationFailure:
            logger.exception("Consolidation analysis failed")
            raise
        session.consolidation_suggestions = suggestions
        return suggestions

    def synthesize_narrative(self, session: CascadeSession) -> str:
        narrative = self.narrator.run(
            assertion_text=session.assertion_text,
            assertion_summary=session.reflection.summary if session.reflection else None,
            phase1_impacts=session.impacts_for_phase(1),
            phase2_impacts=session.impacts_for_phase(2),
            phase3_impacts=session.impacts_for_phase(3),
            feedback_loop_insights=session.feedback_loop_insights,
            initial_states_summary=session.initial_states_summary,
            final_states=dict(session.state_map),
            tension_analysis=session.tension_analysis,
        )
        session.narrative = narrative
        return narrative

    # --- Full flow ---
    def run_session(self, assertion_text: str, use_tensions: bool = True) -> CascadeSession:
        """Run every step and return the populated session."""
        logger.info("Running cascade pipeline")

        logger.info("[1/8] Building system model...")
        session = self.start(assertion_text)

        logger.info("[2/8] Inferring initial states...")
        self.infer_initial_states(session)

        if use_tensions:
            logger.info("[3/8] Analyzing tensions...")
            self.analyze_tensions(session)
        else:
            logger.info("[3/8] Skipping tension analysis")

        for step, phase in enumerate((1, 2, 3), start=4):
            logger.info(f"[{step}/8] Generating phase {phase} ({PHASE_LABELS[phase]})...")
            self.run_phase(session, phase)

        logger.info("[7/8] Suggesting consolidations...")
        try:
            self.suggest_consolidations(session)
        except GenerationFailure as e:
            logger.warning("Continuing without consolidation suggestions: %s", e)

        logger.info("[8/8] Synthesizing narrative...")
        self.synthesize_narrative(session)

        logger.info(f"Pipeline completed: impacts={len(session.impacts)}")
        return session

    def run(self, assertion_text: str, use_tensions: bool = True) -> CascadeReport:
        """
        Execute the complete cascade.

        Args:
            assertion_text: User assertion
            use_tensions: Run tension analysis and feed it to every phase

        Returns:
            CascadeReport for the finished session

        Raises:
            ValueError: If assertion_text is empty
            GenerationFailure: If the system model cannot be built
            IncompleteAnalysis: If tension analysis is requested and incomplete
        """
        return self.run_session(assertion_text, use_tensions=use_tensions).to_report()
