"""Cascade Explorer Structured Output Schemas."""

# --- SHARED FRAGMENTS ---
_STRUCTURED_CONCEPT = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "The concept or entity"},
        "type": {"type": "string", "description": "Optional category, e.g. 'Technology', 'Organization'"}
    },
    "required": ["name"]
}

_STOCK = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "Unique stock name (e.g. 'Public Trust')"},
        "description": {"type": "string", "description": "What the stock represents"},
        "qualitativeState": {"type": "string", "description": "Qualitative state label, e.g. 'Strong', 'Depleted'"}
    },
    "required": ["name"]
}

_AGENT = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "Unique agent name (e.g. 'Employers')"},
        "description": {"type": "string", "description": "The agent's role in the system"}
    },
    "required": ["name"]
}

_INCENTIVE = {
    "type": "object",
    "properties": {
        "agentName": {"type": "string", "description": "Must match an agent name"},
        "targetStockName": {"type": "string", "description": "Must match a stock name"},
        "incentiveDescription": {"type": "string", "description": "The agent's motivation regarding the stock"},
        "resultingFlow": {"type": "string", "description": "Action or flow the incentive drives"}
    },
    "required": ["agentName", "targetStockName", "incentiveDescription"]
}

_STOCK_FLOW = {
    "type": "object",
    "properties": {
        "sourceStockName": {"type": "string", "description": "Must match a stock name"},
        "targetStockName": {"type": "string", "description": "Must match a stock name"},
        "flowDescription": {"type": "string", "description": "How the source influences the target"},
        "drivingForceDescription": {"type": "string", "description": "Underlying mechanism, if not obvious"}
    },
    "required": ["sourceStockName", "targetStockName", "flowDescription"]
}

SYSTEM_MODEL_OBJECT = {
    "type": "object",
    "properties": {
        "stocks": {"type": "array", "items": _STOCK},
        "agents": {"type": "array", "items": _AGENT},
        "incentives": {"type": "array", "items": _INCENTIVE},
        "stockToStockFlows": {"type": "array", "items": _STOCK_FLOW}
    },
    "required": ["stocks", "agents", "incentives"]
}

_VALIDITY = {
    "type": "string",
    "enum": ["high", "medium", "low"],
    "description": "high=strong precedent, medium=plausible but uncertain, low=requires many assumptions"
}

IMPACT_OBJECT = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique impact identifier (e.g. impact-2-3)"},
        "label": {"type": "string", "description": "Short label"},
        "description": {"type": "string", "description": "Detailed description"},
        "validity": _VALIDITY,
        "reasoning": {"type": "string", "description": "Reasoning for the validity assessment"},
        "parentId": {"type": "string", "description": "Id of the parent impact from the preceding phase"},
        "keyConcepts": {"type": "array", "items": _STRUCTURED_CONCEPT},
        "attributes": {"type": "array", "items": {"type": "string"}},
        "causalReasoning": {"type": "string", "description": "Why this follows from its parent and the system state"},
        "order": {"type": "string", "enum": ["1", "2", "3"], "description": "Phase this impact belongs to"}
    },
    "required": ["id", "label", "description", "validity", "reasoning"]
}


# --- SYSTEM MODEL BUILDER ---
SYSTEM_MODEL_BUILD_SCHEMA = {
    "name": "system_model_output",
    "description": "Reflect a user assertion and extract a qualitative system model from it",
    "input_schema": {
        "type": "object",
        "properties": {
            "summary": {"type": "string", "description": "5-10 word title of the assertion"},
            "reflection": {"type": "string", "description": "1-2 sentence restatement"},
            "systemModel": SYSTEM_MODEL_OBJECT,
            "keyConcepts": {"type": "array", "items": _STRUCTURED_CONCEPT},
            "confirmationQuestion": {"type": "string", "description": "Question confirming understanding"}
        },
        "required": ["summary", "reflection", "systemModel"]
    }
}

# --- STATE INFERENCE ---
STATE_INFERENCE_SCHEMA = {
    "name": "initial_states_output",
    "description": "Assign an initial qualitative state to every stock of a system model",
    "input_schema": {
        "type": "object",
        "properties": {
            "stockStates": {
                "type": "array",
                "description": "One entry per stock in the model",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Exact stock name from the model"},
                        "qualitativeState": {"type": "string", "description": "State label"}
                    },
                    "required": ["name", "qualitativeState"]
                }
            },
            "initialStatesSummary": {"type": "string", "description": "2-4 sentence rationale"}
        },
        "required": ["stockStates", "initialStatesSummary"]
    }
}

# --- TENSION ANALYZER ---
_STANCE = {
    "type": "object",
    "properties": {
        "description": {"type": "string"},
        "reasoning": {"type": "string"}
    },
    "required": ["description", "reasoning"]
}

TENSION_ANALYSIS_SCHEMA = {
    "name": "tension_analysis_output",
    "description": "Stakeholder responses, resource constraints and trade-offs for an assertion",
    "input_schema": {
        "type": "object",
        "properties": {
            "competingStakeholderResponses": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "agentName": {"type": "string", "description": "Agent name from the model"},
                        "supportiveResponse": _STANCE,
                        "resistantResponse": _STANCE,
                        "keyAssumptions": {"type": "string"}
                    },
                    "required": ["agentName", "supportiveResponse", "resistantResponse"]
                }
            },
            "resourceConstraints": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "resourceName": {"type": "string"},
                        "demandsOnResource": {"type": "string"},
                        "potentialScarcityImpact": {"type": "string"}
                    },
                    "required": ["resourceName", "demandsOnResource", "potentialScarcityImpact"]
                }
            },
            "identifiedTradeOffs": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "primaryPositiveOutcome": {"type": "string"},
                        "potentialNegativeConsequenceOrOpportunityCost": {"type": "string"},
                        "explanation": {"type": "string"}
                    },
                    "required": ["primaryPositiveOutcome", "potentialNegativeConsequenceOrOpportunityCost", "explanation"]
                }
            }
        },
        "required": ["competingStakeholderResponses", "resourceConstraints", "identifiedTradeOffs"]
    }
}

# --- PHASED IMPACT GENERATOR ---
PHASE_IMPACTS_SCHEMA = {
    "name": "phase_impacts_output",
    "description": "Impacts for one phase of the cascade, with optional stock state changes",
    "input_schema": {
        "type": "object",
        "properties": {
            "generatedImpacts": {"type": "array", "items": IMPACT_OBJECT},
            "updatedSystemQualitativeStates": {
                "type": "object",
                "description": "Stock name -> new state, only for stocks whose state changed. Omit if none changed.",
                "additionalProperties": {"type": "string"}
            },
            "feedbackLoopInsights": {"type": "array", "items": {"type": "string"}}
        },
        "required": ["generatedImpacts"]
    }
}

# --- CONSOLIDATION ADVISOR ---
CONSOLIDATION_SCHEMA = {
    "name": "consolidation_output",
    "description": "Suggested merges of redundant impacts within the same phase",
    "input_schema": {
        "type": "object",
        "properties": {
            "consolidationSuggestions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "originalImpactIds": {
                            "type": "array",
                            "items": {"type": "string"},
                            "minItems": 2,
                            "description": "At least two ids of existing impacts from one phase"
                        },
                        "consolidatedImpact": IMPACT_OBJECT,
                        "confidence": _VALIDITY,
                        "reasoningForConsolidation": {"type": "string"}
                    },
                    "required": ["originalImpactIds", "consolidatedImpact", "confidence", "reasoningForConsolidation"]
                }
            }
        },
        "required": ["consolidationSuggestions"]
    }
}

# --- MODEL REVISION ---
MODEL_REVISION_SCHEMA = {
    "name": "model_revision_output",
    "description": "Revised system model and a summary of the changes",
    "input_schema": {
        "type": "object",
        "properties": {
            "revisedSystemModel": SYSTEM_MODEL_OBJECT,
            "revisionSummary": {"type": "string", "description": "2-3 sentences describing the changes"}
        },
        "required": ["revisedSystemModel", "revisionSummary"]
    }
}

# --- NARRATIVE SYNTHESIZER ---
NARRATIVE_SCHEMA = {
    "name": "narrative_output",
    "description": "Narrative summary of the system's evolution through the cascade",
    "input_schema": {
        "type": "object",
        "properties": {
            "narrativeSummary": {"type": "string", "description": "A few paragraphs of analytical narrative"}
        },
        "required": ["narrativeSummary"]
    }
}
