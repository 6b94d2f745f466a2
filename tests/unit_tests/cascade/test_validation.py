import pytest

from cascade.core.errors import StructuralViolation
from cascade.core.types import Agent, Impact, Incentive, Stock, StockFlow, SystemModel
from cascade.core.validation import (
    assign_unique_ids,
    coerce_validity,
    enforce_referential_integrity,
    find_isolated_additions,
    normalize_state_delta,
    parse_phase_number,
    repair_system_model,
    validate_system_model,
)


def make_model():
    return SystemModel(
        stocks=[Stock('Trust'), Stock('Budget'), Stock('Trust')],
        agents=[Agent('Council'), Agent('')],
        incentives=[
            Incentive('Council', 'Budget', 'Balance books'),
            Incentive('Mayor', 'Trust', 'Win votes'),
        ],
        stock_flows=[
            StockFlow('Budget', 'Trust', 'Services build trust'),
            StockFlow('Budget', 'Morale', 'Pay raises'),
        ],
    )


def make_impact(id, order=1):
    return Impact(id=id, label=id, description='d', validity='high', reasoning='r', order=order)


def test_validate_reports_every_problem():
    problems = validate_system_model(make_model())

    assert "duplicate stock 'Trust'" in problems
    assert "agent with empty name" in problems
    assert "incentive references unknown agent 'Mayor'" in problems
    assert "stock flow references unknown target stock 'Morale'" in problems
    assert len(problems) == 4


def test_validate_sound_model_is_empty():
    model = SystemModel(
        stocks=[Stock('Trust')],
        agents=[Agent('Council')],
        incentives=[Incentive('Council', 'Trust', 'x')],
    )
    assert validate_system_model(model) == []


def test_repair_drops_offending_elements():
    repaired, repairs = repair_system_model(make_model())

    assert repaired.stock_names() == ['Trust', 'Budget']
    assert repaired.agent_names() == ['Council']
    assert [(i.agent_name, i.target_stock_name) for i in repaired.incentives] == [('Council', 'Budget')]
    assert [(f.source_stock_name, f.target_stock_name) for f in repaired.stock_flows] == [('Budget', 'Trust')]
    assert len(repairs) == 4
    assert validate_system_model(repaired) == []


def test_enforce_policies():
    model = make_model()

    with pytest.raises(StructuralViolation) as exc_info:
        enforce_referential_integrity(model, policy='reject')
    assert len(exc_info.value.problems) == 4

    repaired, repairs = enforce_referential_integrity(model, policy='repair')
    assert validate_system_model(repaired) == []
    assert repairs

    with pytest.raises(ValueError):
        enforce_referential_integrity(model, policy='ignore')


def test_enforce_returns_sound_model_unchanged():
    model = SystemModel(stocks=[Stock('Trust')])
    result, repairs = enforce_referential_integrity(model, policy='reject')
    assert result is model
    assert repairs == []


def test_find_isolated_additions():
    original = SystemModel(stocks=[Stock('Trust')], agents=[Agent('Council')])
    revised = SystemModel(
        stocks=[Stock('Trust'), Stock('Budget'), Stock('Morale')],
        agents=[Agent('Council'), Agent('Union')],
        stock_flows=[StockFlow('Budget', 'Trust', 'x')],
    )

    assert find_isolated_additions(original, revised) == ["stock 'Morale'", "agent 'Union'"]


@pytest.mark.parametrize('raw', [
    None,
    [],
    ['Trust', 'Low'],
    'Trust is low',
    {},
    {'Trust': 2},
    {'Trust': ''},
    {'Trust': {'state': 'Low'}},
    {'': 'Low'},
    {'Trust': 'Low', 'Budget': None},
])
def test_normalize_state_delta_rejects(raw):
    assert normalize_state_delta(raw) is None


def test_normalize_state_delta_accepts_flat_map():
    raw = {'Trust': ' Low ', 'Budget': 'Tight'}

    delta = normalize_state_delta(raw)

    assert delta == {'Trust': 'Low', 'Budget': 'Tight'}
    assert delta is not raw


def test_coerce_validity():
    assert coerce_validity('High') == 'high'
    assert coerce_validity(' low ') == 'low'
    assert coerce_validity('certain') == 'medium'
    assert coerce_validity(None) == 'medium'
    assert coerce_validity('bogus', default='low') == 'low'


def test_assign_unique_ids():
    impacts = [make_impact('a'), make_impact('a'), make_impact(''), make_impact('impact-2-1')]

    result = assign_unique_ids(impacts, phase=2, taken_ids={'b', 'impact-2-1'})

    assert [i.id for i in result] == ['a', 'impact-2-2', 'impact-2-3', 'impact-2-4']
    assert impacts[1].id == 'a'


@pytest.mark.parametrize('value,expected', [(1, 1), (3, 3), ('2', 2), (' 3 ', 3)])
def test_parse_phase_number_valid(value, expected):
    assert parse_phase_number(value) == expected


@pytest.mark.parametrize('value', [0, 4, -1, '4', 'two', 'phase 1', 1.0, True, None])
def test_parse_phase_number_invalid(value):
    with pytest.raises(ValueError):
        parse_phase_number(value)
