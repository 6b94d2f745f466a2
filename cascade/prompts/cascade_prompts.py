"""
Cascade Explorer - prompts used by the cascade agents.

Templates are rendered with str.format; literal braces are doubled.
"""

# --- SYSTEM CONTEXT ---
SYSTEMS_ANALYST_SYSTEM_PROMPT = (
    "You are a systems thinker and strategic foresight analyst."
    " Reason about stocks, agents, incentives and feedback loops."
    " Be concrete, causal and concise."
)


# --- SYSTEM MODEL BUILDER ---
SYSTEM_MODEL_BUILD_PROMPT = """Analyze the user's assertion and produce a structured reflection
together with a basic qualitative system model.

USER'S ASSERTION:
"{assertion_text}"

Provide:

1. **summary**: A very concise title for the assertion (5-10 words).
2. **reflection**: A restatement of the assertion in 1-2 clear sentences capturing its main thrust.
3. **systemModel**:
   - **stocks** (2-4): Accumulations or resources that change over time
     (e.g. "Public Trust in AI", "Available Water Supply"). Give a name and optional description.
   - **agents** (2-4): Actors or forces able to influence the stocks
     (e.g. "Government Regulators", "Consumers"). Give a name and optional description.
   - **incentives** (1-3 per prominent agent): agentName, targetStockName, incentiveDescription,
     and optional resultingFlow (the action the incentive drives, e.g. "Lobbies for deregulation").
   - **stockToStockFlows**: Direct influences between stocks independent of any agent
     (sourceStockName, targetStockName, flowDescription, optional drivingForceDescription).
4. **keyConcepts** (2-5): General concepts mentioned in the assertion, each with a name and optional type
   (e.g. "Technology", "Social Trend", "Organization").
5. **confirmationQuestion**: One question to confirm your understanding with the user.

STRUCTURAL RULES (non-negotiable):
- Every agentName and targetStockName in incentives MUST exactly match a name in agents/stocks.
- Every sourceStockName and targetStockName in stockToStockFlows MUST exactly match a stock name.
- Stock names are unique; agent names are unique.
- Aim for a balanced, interconnected model directly derivable from the assertion."""


# --- STATE INFERENCE ---
STATE_INFERENCE_PROMPT = """Infer the most likely initial qualitative state of every stock in this
system model, given the user's assertion.

USER'S ASSERTION:
"{assertion_text}"

SYSTEM MODEL:
{system_model_context}

A qualitative state is a short label such as 'Strong', 'Moderate', 'Weak', 'Strained', 'Depleted',
'Abundant', 'Stable', 'Volatile', 'Under Pressure', 'Growing' or 'Declining'.

Return:
- **stockStates**: one entry per stock listed above, with the stock's exact name and its qualitativeState.
  Do NOT add or rename stocks.
- **initialStatesSummary**: 2-4 sentences explaining the overall reasoning and key assumptions."""


# --- TENSION ANALYZER ---
TENSION_ANALYSIS_PROMPT = """Identify the tensions, constraints and trade-offs that will shape how
this assertion plays out in the system described below.

USER'S ASSERTION:
"{assertion_text}"

SYSTEM MODEL:
{system_model_context}

You MUST return all three sections:

1. **competingStakeholderResponses**: For 2-4 agents most central to the assertion (agentName must match
   the model), give a supportiveResponse and a resistantResponse, each with description and reasoning,
   plus optional keyAssumptions about the agent's behaviour.
2. **resourceConstraints** (2-4): resourceName, demandsOnResource (how the assertion consumes it) and
   potentialScarcityImpact (how scarcity or competition for it creates bottlenecks or side effects).
3. **identifiedTradeOffs** (2-3): primaryPositiveOutcome,
   potentialNegativeConsequenceOrOpportunityCost, and an explanation of the inherent tension.

Think about political economy, implementation friction and non-obvious reactions. Any section may be
an empty list if genuinely nothing applies, but all three must be present."""


# --- PHASED IMPACT GENERATOR ---
PHASE_IMPACTS_PROMPT = """You are tracing the cascading consequences of an assertion through a
qualitative system model, one phase at a time.

ASSERTION:
"{assertion_text}"

SYSTEM MODEL:
{system_model_context}

CURRENT QUALITATIVE STATES OF STOCKS:
{current_states}

{tension_context}

TARGET: Phase {phase} ({phase_label})
{phase_instructions}

For each impact provide:
- id: unique, e.g. "impact-{phase}-<n>"
- label: concise (2-3 lines max)
- description: detailed, noting how it interacts with the current stock states
- validity: 'high' (strong precedent or already happening), 'medium' (plausible, uncertain timing/scale)
  or 'low' (possible but requires many assumptions)
- reasoning: why that validity
- keyConcepts: 2-4 concepts (name, optional type)
- attributes: 1-2 defining characteristics
- causalReasoning: why this follows from its parent (or from the assertion for phase 1),
  the current states and the tensions above

Then:
- updatedSystemQualitativeStates: an object mapping ONLY the stock names whose state changes because of
  these impacts to their new state (e.g. {{"Office Real Estate Demand": "Declining"}}).
  Omit this field entirely if no stock state changes.
- feedbackLoopInsights: brief descriptions of reinforcing or balancing loops these impacts create or
  affect (may be empty)."""

PHASE_1_INSTRUCTIONS = """Identify {min_count}-{max_count} distinct first-phase impacts: immediate, direct effects of the
assertion given the current stock states. Phase 1 impacts have no parentId."""

PHASE_N_INSTRUCTIONS = """The following impacts were generated in phase {parent_phase} ({parent_label}):
{parent_impacts}

For EACH of these parent impacts, identify {min_count}-{max_count} distinct phase-{phase} consequences that follow
from that specific parent, the updated stock states and the tensions.
Every impact you generate MUST include a parentId set to the id of the parent impact it stems from.
Use only the parent ids listed above."""


# --- CONSOLIDATION ADVISOR ---
CONSOLIDATION_PROMPT = """Review the impacts below, grouped by phase, and suggest consolidations of
impacts that are redundant or express the same underlying consequence.

IMPACTS BY PHASE:
{impacts_by_phase}

Rules:
- Only group impacts from the SAME phase.
- Each suggestion must list at least two originalImpactIds taken from the list above.
- consolidatedImpact: a new impact with a new unique id (e.g. "consolidated-<phase>-<n>"), label,
  description synthesizing the originals, validity, reasoning, order (same phase as the originals),
  parentId (the shared parent when the originals share one, otherwise omit), keyConcepts, attributes
  and optional causalReasoning.
- confidence: 'high', 'medium' or 'low' that the merge is meaningful.
- reasoningForConsolidation: why these impacts overlap.
- If nothing should be merged, return an empty consolidationSuggestions list."""


# --- MODEL REVISION ---
MODEL_REVISION_PROMPT = """Revise an existing system model based on user feedback.

CURRENT SYSTEM MODEL:
{system_model_context}

USER FEEDBACK:
"{user_feedback}"

Rules:
- Keep every existing stock, agent, incentive and flow the feedback does not target.
- You may add, modify or remove elements when the feedback asks for it.
- Every NEW stock or agent must be connected to the rest of the model by at least one incentive or
  stock-to-stock flow.
- All incentive and flow endpoints must exactly match names in the revised stocks/agents lists.
- Return the complete revisedSystemModel and a revisionSummary (2-3 sentences) describing the changes.
  If the feedback cannot be implemented structurally, explain why in the summary."""


# --- NARRATIVE SYNTHESIZER ---
NARRATIVE_PROMPT = """Synthesize the cascade below into a cohesive analytical narrative.

ASSERTION SUMMARY: "{assertion_summary}"
FULL ASSERTION: "{assertion_text}"

INITIAL SYSTEM STATES:
{initial_states_summary}

{tension_context}

PHASE 1 ({phase1_label}) IMPACTS:
{phase1_impacts}

PHASE 2 ({phase2_label}) IMPACTS:
{phase2_impacts}

PHASE 3 ({phase3_label}) IMPACTS:
{phase3_impacts}

FEEDBACK LOOP INSIGHTS:
{feedback_insights}

FINAL QUALITATIVE STATES:
{final_states}

Write the narrativeSummary (a few well-structured paragraphs) that:
1. Restates the core of the assertion and the starting state of the system.
2. Explains how the assertion leads to the phase 1 impacts, and how those give rise to phases 2 and 3,
   following the parentId links.
3. Highlights the most significant and plausible causal pathways and the feedback loops.
4. Describes how stock states evolved and what equilibrium the system may settle into."""
