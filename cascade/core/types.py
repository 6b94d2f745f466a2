from datetime import datetime
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

# Validity labels shared by impacts and consolidation confidence
VALIDITY_HIGH = "high"
VALIDITY_MEDIUM = "medium"
VALIDITY_LOW = "low"
VALIDITY_LEVELS = (VALIDITY_HIGH, VALIDITY_MEDIUM, VALIDITY_LOW)

# Phase numbering: 0 is reserved for the core assertion node in graph exports
CORE_ASSERTION_ID = "core-assertion"
PHASES = (1, 2, 3)
PHASE_LABELS = {
    1: "Initial",
    2: "Transition",
    3: "Stabilization",
}


def _clean_str(value: Any) -> Optional[str]:
    """Return a stripped string, or None for empty/non-string values."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# --- System model ---
@dataclass
class Stock:
    """Qualitative state-bearing accumulation (e.g. 'Public Trust')."""
    name: str
    description: Optional[str] = None
    qualitative_state: Optional[str] = None  # "Strong" | "Depleted" | "Volatile" | ...

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stock":
        return cls(
            name=_clean_str(data.get("name")) or "",
            description=_clean_str(data.get("description")),
            qualitative_state=_clean_str(data.get("qualitativeState")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "name": self.name,
            "description": self.description,
            "qualitativeState": self.qualitative_state,
        })


@dataclass
class Agent:
    """Actor able to exert incentives on stocks."""
    name: str
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Agent":
        return cls(
            name=_clean_str(data.get("name")) or "",
            description=_clean_str(data.get("description")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"name": self.name, "description": self.description})


@dataclass
class Incentive:
    """Directed pressure from an agent onto a stock, referenced by name."""
    agent_name: str
    target_stock_name: str
    incentive_description: str
    resulting_flow: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Incentive":
        return cls(
            agent_name=_clean_str(data.get("agentName")) or "",
            target_stock_name=_clean_str(data.get("targetStockName")) or "",
            incentive_description=str(data.get("incentiveDescription", "")),
            resulting_flow=_clean_str(data.get("resultingFlow")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "agentName": self.agent_name,
            "targetStockName": self.target_stock_name,
            "incentiveDescription": self.incentive_description,
            "resultingFlow": self.resulting_flow,
        })


@dataclass
class StockFlow:
    """Direct causal influence of one stock on another."""
    source_stock_name: str
    target_stock_name: str
    flow_description: str
    driving_force_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StockFlow":
        return cls(
            source_stock_name=_clean_str(data.get("sourceStockName")) or "",
            target_stock_name=_clean_str(data.get("targetStockName")) or "",
            flow_description=str(data.get("flowDescription", "")),
            driving_force_description=_clean_str(data.get("drivingForceDescription")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "sourceStockName": self.source_stock_name,
            "targetStockName": self.target_stock_name,
            "flowDescription": self.flow_description,
            "drivingForceDescription": self.driving_force_description,
        })


@dataclass
class SystemModel:
    """Qualitative system-dynamics graph of stocks, agents, incentives and flows.

    Names are the link keys (case-sensitive exact match). Referential integrity
    is checked by `cascade.core.validation`, not here.
    """
    stocks: List[Stock] = field(default_factory=list)
    agents: List[Agent] = field(default_factory=list)
    incentives: List[Incentive] = field(default_factory=list)
    stock_flows: List[StockFlow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemModel":
        """Build from a backend payload; non-dict list entries are skipped."""
        def _items(key):
            raw = data.get(key) or []
            return [item for item in raw if isinstance(item, dict)] if isinstance(raw, list) else []

        return cls(
            stocks=[Stock.from_dict(s) for s in _items("stocks")],
            agents=[Agent.from_dict(a) for a in _items("agents")],
            incentives=[Incentive.from_dict(i) for i in _items("incentives")],
            stock_flows=[StockFlow.from_dict(f) for f in _items("stockToStockFlows")],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stocks": [s.to_dict() for s in self.stocks],
            "agents": [a.to_dict() for a in self.agents],
            "incentives": [i.to_dict() for i in self.incentives],
            "stockToStockFlows": [f.to_dict() for f in self.stock_flows],
        }

    def stock_names(self) -> List[str]:
        return [s.name for s in self.stocks]

    def agent_names(self) -> List[str]:
        return [a.name for a in self.agents]

    def qualitative_states(self) -> Dict[str, str]:
        """Current stock states, omitting stocks without one."""
        return {s.name: s.qualitative_state for s in self.stocks if s.qualitative_state}

    def with_states(self, state_map: Dict[str, str]) -> "SystemModel":
        """Return a copy whose stock states are overlaid with `state_map`."""
        return SystemModel(
            stocks=[
                Stock(
                    name=s.name,
                    description=s.description,
                    qualitative_state=state_map.get(s.name, s.qualitative_state),
                )
                for s in self.stocks
            ],
            agents=[Agent(a.name, a.description) for a in self.agents],
            incentives=[
                Incentive(i.agent_name, i.target_stock_name, i.incentive_description, i.resulting_flow)
                for i in self.incentives
            ],
            stock_flows=[
                StockFlow(f.source_stock_name, f.target_stock_name, f.flow_description, f.driving_force_description)
                for f in self.stock_flows
            ],
        )

    def to_prompt_context(self, include_states: bool = True) -> str:
        """Format the model as a compact block for inclusion in prompts."""
        sections = ["Stocks:"]
        if self.stocks:
            for s in self.stocks:
                line = f"- {s.name}"
                if s.description:
                    line += f": {s.description}"
                if include_states and s.qualitative_state:
                    line += f" [state: {s.qualitative_state}]"
                sections.append(line)
        else:
            sections.append("(No stocks in model)")

        sections.append("Agents:")
        if self.agents:
            sections.extend(f"- {a.name}" + (f": {a.description}" if a.description else "") for a in self.agents)
        else:
            sections.append("(No agents in model)")

        sections.append("Incentives (agent -> stock):")
        if self.incentives:
            for i in self.incentives:
                line = f"- {i.agent_name} -> {i.target_stock_name}: {i.incentive_description}"
                if i.resulting_flow:
                    line += f" (flow: {i.resulting_flow})"
                sections.append(line)
        else:
            sections.append("(No agent-stock incentives identified)")

        sections.append("Stock-to-stock flows:")
        if self.stock_flows:
            for f in self.stock_flows:
                line = f"- {f.source_stock_name} -> {f.target_stock_name}: {f.flow_description}"
                if f.driving_force_description:
                    line += f" (driver: {f.driving_force_description})"
                sections.append(line)
        else:
            sections.append("(No stock-to-stock flows identified)")

        return "\n".join(sections)


@dataclass
class StructuredConcept:
    """Key concept with an optional category (e.g. 'Technology', 'Organization')."""
    name: str
    type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["StructuredConcept"]:
        if isinstance(data, str):
            return cls(name=data.strip()) if data.strip() else None
        if isinstance(data, dict) and _clean_str(data.get("name")):
            return cls(name=data["name"].strip(), type=_clean_str(data.get("type")))
        return None

    @classmethod
    def from_list(cls, data: Any) -> List["StructuredConcept"]:
        """Parse a keyConcepts payload. A lone string counts as one concept, any other non-list as none."""
        if isinstance(data, str):
            data = [data]
        if not isinstance(data, list):
            return []
        concepts = [cls.from_dict(item) for item in data]
        return [c for c in concepts if c is not None]

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"name": self.name, "type": self.type})


@dataclass
class AssertionReflection:
    """Builder output: the system model plus a restatement of the assertion."""
    assertion_text: str
    system_model: SystemModel
    reflection: str = ""
    summary: str = ""  # 5-10 word title for the assertion
    key_concepts: List[StructuredConcept] = field(default_factory=list)
    confirmation_question: str = ""
    structural_repairs: List[str] = field(default_factory=list)  # Edges dropped during validation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assertionText": self.assertion_text,
            "reflection": self.reflection,
            "summary": self.summary,
            "systemModel": self.system_model.to_dict(),
            "keyConcepts": [c.to_dict() for c in self.key_concepts],
            "confirmationQuestion": self.confirmation_question,
            "structuralRepairs": list(self.structural_repairs),
        }


@dataclass
class StateInferenceResult:
    """Initial qualitative states; `degraded` marks the fallback path."""
    system_model: SystemModel
    initial_states_summary: str
    degraded: bool = False

    @property
    def state_map(self) -> Dict[str, str]:
        return self.system_model.qualitative_states()


@dataclass
class RevisionResult:
    """Outcome of revising a model against user feedback."""
    revised_system_model: SystemModel
    revision_summary: str
    degraded: bool = False
    structural_repairs: List[str] = field(default_factory=list)
    isolated_elements: List[str] = field(default_factory=list)  # New stocks/agents with no edge


# --- Tension analysis ---
@dataclass
class StakeholderStance:
    description: str
    reasoning: str

    @classmethod
    def from_dict(cls, data: Any) -> "StakeholderStance":
        data = data if isinstance(data, dict) else {}
        return cls(description=str(data.get("description", "")), reasoning=str(data.get("reasoning", "")))

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "reasoning": self.reasoning}


@dataclass
class CompetingStakeholderResponse:
    """How one agent might support and resist the assertion."""
    agent_name: str
    supportive_response: StakeholderStance
    resistant_response: StakeholderStance
    key_assumptions: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompetingStakeholderResponse":
        return cls(
            agent_name=_clean_str(data.get("agentName")) or "",
            supportive_response=StakeholderStance.from_dict(data.get("supportiveResponse")),
            resistant_response=StakeholderStance.from_dict(data.get("resistantResponse")),
            key_assumptions=_clean_str(data.get("keyAssumptions")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "agentName": self.agent_name,
            "supportiveResponse": self.supportive_response.to_dict(),
            "resistantResponse": self.resistant_response.to_dict(),
            "keyAssumptions": self.key_assumptions,
        })


@dataclass
class ResourceConstraint:
    resource_name: str
    demands_on_resource: str
    potential_scarcity_impact: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceConstraint":
        return cls(
            resource_name=str(data.get("resourceName", "")),
            demands_on_resource=str(data.get("demandsOnResource", "")),
            potential_scarcity_impact=str(data.get("potentialScarcityImpact", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceName": self.resource_name,
            "demandsOnResource": self.demands_on_resource,
            "potentialScarcityImpact": self.potential_scarcity_impact,
        }


@dataclass
class IdentifiedTradeOff:
    primary_positive_outcome: str
    potential_negative_consequence: str  # or opportunity cost
    explanation: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentifiedTradeOff":
        return cls(
            primary_positive_outcome=str(data.get("primaryPositiveOutcome", "")),
            potential_negative_consequence=str(data.get("potentialNegativeConsequenceOrOpportunityCost", "")),
            explanation=str(data.get("explanation", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryPositiveOutcome": self.primary_positive_outcome,
            "potentialNegativeConsequenceOrOpportunityCost": self.potential_negative_consequence,
            "explanation": self.explanation,
        }


@dataclass
class TensionAnalysis:
    """Stakeholder frictions, resource constraints and trade-offs for an assertion.

    Computed once per assertion/model pair and read as context by every phase.
    """
    competing_stakeholder_responses: List[CompetingStakeholderResponse] = field(default_factory=list)
    resource_constraints: List[ResourceConstraint] = field(default_factory=list)
    identified_trade_offs: List[IdentifiedTradeOff] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "competingStakeholderResponses": [r.to_dict() for r in self.competing_stakeholder_responses],
            "resourceConstraints": [r.to_dict() for r in self.resource_constraints],
            "identifiedTradeOffs": [t.to_dict() for t in self.identified_trade_offs],
        }

    def to_prompt_context(self) -> str:
        sections = ["TENSION ANALYSIS"]
        if self.competing_stakeholder_responses:
            sections.append("Competing stakeholder responses:")
            for r in self.competing_stakeholder_responses:
                sections.append(f"  • {r.agent_name}")
                sections.append(f"    supportive: {r.supportive_response.description}")
                sections.append(f"    resistant: {r.resistant_response.description}")
        if self.resource_constraints:
            sections.append("Resource constraints:")
            sections.extend(
                f"  • {c.resource_name}: {c.potential_scarcity_impact}" for c in self.resource_constraints
            )
        if self.identified_trade_offs:
            sections.append("Trade-offs:")
            sections.extend(
                f"  • {t.primary_positive_outcome} vs. {t.potential_negative_consequence}"
                for t in self.identified_trade_offs
            )
        if len(sections) == 1:
            sections.append("(No tensions identified)")
        return "\n".join(sections)


# --- Impacts ---
@dataclass
class Impact:
    """Single generated consequence with validity and lineage."""
    id: str
    label: str
    description: str
    validity: str  # "high" | "medium" | "low"
    reasoning: str
    order: int = 1  # Phase 1/2/3 this impact belongs to
    parent_id: Optional[str] = None  # Impact id from the preceding phase
    key_concepts: List[StructuredConcept] = field(default_factory=list)
    attributes: List[str] = field(default_factory=list)
    causal_reasoning: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], order: Optional[int] = None) -> "Impact":
        """Build from a backend payload. `order` overrides whatever the payload claims."""
        raw_order = order if order is not None else data.get("order", data.get("targetPhase", 1))
        try:
            parsed_order = int(raw_order)
        except (TypeError, ValueError):
            parsed_order = 1
        attributes = data.get("attributes") or []
        return cls(
            id=str(data.get("id") or "").strip(),
            label=str(data.get("label", "")),
            description=str(data.get("description", "")),
            validity=str(data.get("validity", "")).strip().lower(),
            reasoning=str(data.get("reasoning", "")),
            order=parsed_order,
            parent_id=_clean_str(data.get("parentId")),
            key_concepts=StructuredConcept.from_list(data.get("keyConcepts")),
            attributes=[str(a) for a in attributes if isinstance(a, str) and a.strip()] if isinstance(attributes, list) else [],
            causal_reasoning=_clean_str(data.get("causalReasoning")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "validity": self.validity,
            "reasoning": self.reasoning,
            "order": str(self.order),
            "parentId": self.parent_id,
            "keyConcepts": [c.to_dict() for c in self.key_concepts],
            "attributes": list(self.attributes),
            "causalReasoning": self.causal_reasoning,
        })


@dataclass
class PhaseResult:
    """Output of one phase of impact generation.

    `state_delta` is None when no stock changed this phase; it is never an
    empty dict.
    """
    phase: int
    impacts: List[Impact] = field(default_factory=list)
    state_delta: Optional[Dict[str, str]] = None
    feedback_loop_insights: List[str] = field(default_factory=list)
    degraded: bool = False  # True when the backend call failed and this is the empty fallback

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "phase": self.phase,
            "impacts": [i.to_dict() for i in self.impacts],
            "feedbackLoopInsights": list(self.feedback_loop_insights),
        }
        if self.state_delta is not None:
            data["updatedSystemQualitativeStates"] = dict(self.state_delta)
        return data


@dataclass
class ConsolidationSuggestion:
    """Advisory merge of two or more redundant impacts into one."""
    original_impact_ids: List[str]
    consolidated_impact: Impact
    confidence: str  # "high" | "medium" | "low"
    reasoning_for_consolidation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalImpactIds": list(self.original_impact_ids),
            "consolidatedImpact": self.consolidated_impact.to_dict(),
            "confidence": self.confidence,
            "reasoningForConsolidation": self.reasoning_for_consolidation,
        }


# --- Session report ---
@dataclass
class CascadeReport:
    """Everything a full cascade run produced, for UI display or JSON export."""
    assertion_text: str
    reflection: Optional[AssertionReflection]
    system_model: SystemModel
    initial_states_summary: Optional[str]
    tension_analysis: Optional[TensionAnalysis]
    phase_results: List[PhaseResult]
    final_states: Dict[str, str]
    feedback_loop_insights: List[str]
    consolidation_suggestions: List[ConsolidationSuggestion]
    narrative: Optional[str]
    created_at: str = None

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assertionText": self.assertion_text,
            "reflection": self.reflection.to_dict() if self.reflection else None,
            "systemModel": self.system_model.to_dict(),
            "initialStatesSummary": self.initial_states_summary,
            "tensionAnalysis": self.tension_analysis.to_dict() if self.tension_analysis else None,
            "phases": [p.to_dict() for p in self.phase_results],
            "finalSystemQualitativeStates": dict(self.final_states),
            "feedbackLoopInsights": list(self.feedback_loop_insights),
            "consolidationSuggestions": [s.to_dict() for s in self.consolidation_suggestions],
            "narrativeSummary": self.narrative,
            "createdAt": self.created_at,
        }
