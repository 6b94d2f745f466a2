"""Boundary checks applied to every structured backend response.

Nothing returned by the backend reaches callers without passing through one
of these functions.
"""
import logging
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from cascade.core.errors import StructuralViolation
from cascade.core.types import (
    VALIDITY_LEVELS, VALIDITY_MEDIUM,
    Impact, SystemModel,
)

logger = logging.getLogger(__name__)

_GENERATED_ID_PATTERN = "impact-{phase}-{n}"


# --- System model integrity ---
def validate_system_model(model: SystemModel) -> List[str]:
    """
    List every structural problem in a system model.

    Checks empty and duplicate stock/agent names, incentives whose agent or
    stock does not resolve, and stock flows whose endpoints do not resolve.

    Args:
        model: Model to check

    Returns:
        Human-readable problem descriptions (empty when the model is sound)
    """
    problems: List[str] = []
    stock_names: Set[str] = set()
    agent_names: Set[str] = set()

    for stock in model.stocks:
        if not stock.name:
            problems.append("stock with empty name")
        elif stock.name in stock_names:
            problems.append(f"duplicate stock '{stock.name}'")
        stock_names.add(stock.name)

    for agent in model.agents:
        if not agent.name:
            problems.append("agent with empty name")
        elif agent.name in agent_names:
            problems.append(f"duplicate agent '{agent.name}'")
        agent_names.add(agent.name)

    for inc in model.incentives:
        if inc.agent_name not in agent_names:
            problems.append(f"incentive references unknown agent '{inc.agent_name}'")
        if inc.target_stock_name not in stock_names:
            problems.append(f"incentive references unknown stock '{inc.target_stock_name}'")

    for flow in model.stock_flows:
        if flow.source_stock_name not in stock_names:
            problems.append(f"stock flow references unknown source stock '{flow.source_stock_name}'")
        if flow.target_stock_name not in stock_names:
            problems.append(f"stock flow references unknown target stock '{flow.target_stock_name}'")

    return problems


def _dedupe_by_name(items: List[Any], kind: str, repairs: List[str]) -> List[Any]:
    seen: Set[str] = set()
    kept = []
    for item in items:
        if not item.name:
            repairs.append(f"dropped {kind} with empty name")
            continue
        if item.name in seen:
            repairs.append(f"dropped duplicate {kind} '{item.name}'")
            continue
        seen.add(item.name)
        kept.append(item)
    return kept


def repair_system_model(model: SystemModel) -> Tuple[SystemModel, List[str]]:
    """
    Return a copy of `model` with dangling edges and duplicate names removed.

    The first occurrence of a duplicated stock/agent name wins. Incentives and
    flows that still fail to resolve are dropped whole; nothing is renamed.

    Returns:
        (repaired_model, repairs) where repairs describes each dropped element
    """
    repairs: List[str] = []
    stocks = _dedupe_by_name(model.stocks, "stock", repairs)
    agents = _dedupe_by_name(model.agents, "agent", repairs)
    stock_names = {s.name for s in stocks}
    agent_names = {a.name for a in agents}

    incentives = []
    for inc in model.incentives:
        if inc.agent_name in agent_names and inc.target_stock_name in stock_names:
            incentives.append(inc)
        else:
            repairs.append(
                f"dropped incentive {inc.agent_name!r} -> {inc.target_stock_name!r} (unresolved endpoint)"
            )

    flows = []
    for flow in model.stock_flows:
        if flow.source_stock_name in stock_names and flow.target_stock_name in stock_names:
            flows.append(flow)
        else:
            repairs.append(
                f"dropped stock flow {flow.source_stock_name!r} -> {flow.target_stock_name!r} (unresolved endpoint)"
            )

    for repair in repairs:
        logger.warning(f"System model repair: {repair}")

    return SystemModel(stocks=stocks, agents=agents, incentives=incentives, stock_flows=flows), repairs


def enforce_referential_integrity(model: SystemModel, policy: str = "repair") -> Tuple[SystemModel, List[str]]:
    """
    Apply the structural policy to a model coming from the backend.

    Args:
        model: Candidate model
        policy: 'repair' drops offending elements, 'reject' raises

    Returns:
        (model, repairs); `model` is the input unchanged when it is already sound

    Raises:
        StructuralViolation: If policy is 'reject' and the model has problems
        ValueError: If policy is unknown
    """
    if policy not in ("repair", "reject"):
        raise ValueError(f"Unknown structural policy: {policy}")

    problems = validate_system_model(model)
    if not problems:
        return model, []
    if policy == "reject":
        raise StructuralViolation(
            f"System model has {len(problems)} structural problem(s): {'; '.join(problems)}",
            problems=problems,
        )
    return repair_system_model(model)


def find_isolated_additions(original: SystemModel, revised: SystemModel) -> List[str]:
    """
    Names of stocks/agents new in `revised` that no incentive or flow touches.
    """
    touched: Set[str] = set()
    for inc in revised.incentives:
        touched.update((inc.agent_name, inc.target_stock_name))
    for flow in revised.stock_flows:
        touched.update((flow.source_stock_name, flow.target_stock_name))

    old_stocks = set(original.stock_names())
    old_agents = set(original.agent_names())
    isolated = [f"stock '{s.name}'" for s in revised.stocks if s.name not in old_stocks and s.name not in touched]
    isolated += [f"agent '{a.name}'" for a in revised.agents if a.name not in old_agents and a.name not in touched]
    return isolated


# --- Phase output normalization ---
def normalize_state_delta(raw: Any) -> Optional[Dict[str, str]]:
    """
    Normalize a backend state-delta payload.

    Only a flat, non-empty mapping of non-empty string names to non-empty
    string states is accepted. Anything else (list, string, nested object,
    non-string value, empty mapping) yields None and is never partially
    applied.

    Args:
        raw: The `updatedSystemQualitativeStates` value as returned

    Returns:
        New dict of stock name -> state, or None
    """
    if raw is None:
        return None
    if not isinstance(raw, dict):
        logger.warning(f"Discarding state delta: expected object, got {type(raw).__name__}")
        return None
    delta: Dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip() or not isinstance(value, str) or not value.strip():
            logger.warning(f"Discarding state delta: invalid entry {key!r}: {value!r}")
            return None
        delta[key] = value.strip()
    return delta or None


def coerce_validity(value: Any, default: str = VALIDITY_MEDIUM) -> str:
    """Map a validity/confidence label onto high/medium/low."""
    label = str(value or "").strip().lower()
    if label in VALIDITY_LEVELS:
        return label
    logger.warning(f"Unknown validity label {value!r}; using '{default}'")
    return default


def _next_free_id(phase: int, taken: Set[str]) -> str:
    n = 1
    while _GENERATED_ID_PATTERN.format(phase=phase, n=n) in taken:
        n += 1
    return _GENERATED_ID_PATTERN.format(phase=phase, n=n)


def assign_unique_ids(impacts: Iterable[Impact], phase: int, taken_ids: Iterable[str]) -> List[Impact]:
    """
    Re-key impacts whose id is empty or already used.

    Ids are checked against `taken_ids` (the session so far) and against the
    batch itself. Re-keyed impacts get `impact-{phase}-{n}` with the lowest
    free n.

    Returns:
        New list; impacts with acceptable ids are returned as-is
    """
    taken = set(taken_ids)
    result = []
    for impact in impacts:
        impact_id = impact.id
        if not impact_id or impact_id in taken:
            new_id = _next_free_id(phase, taken)
            logger.warning(f"Impact id {impact_id!r} is empty or already used; re-keyed to {new_id!r}")
            impact = replace(impact, id=new_id)
        taken.add(impact.id)
        result.append(impact)
    return result


def parse_phase_number(value: Any) -> int:
    """Accept 1/2/3 as int or string ('1', 'phase 2' is rejected)."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid phase: {value!r}")
    if isinstance(value, str) and re.fullmatch(r"\s*[123]\s*", value):
        return int(value)
    if isinstance(value, int) and value in (1, 2, 3):
        return value
    raise ValueError(f"Invalid phase: {value!r} (expected 1, 2 or 3)")
