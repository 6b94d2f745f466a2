from cascade.core.types import (
    CascadeReport, Impact, PhaseResult, StructuredConcept, SystemModel,
)
from cascade.core.validation import repair_system_model, validate_system_model


def test_system_model_from_dict_tolerates_junk():
    model = SystemModel.from_dict({
        'stocks': [{'name': ' Trust ', 'qualitativeState': 'High'}, 'junk', None],
        'agents': 'not a list',
        'stockToStockFlows': [{'sourceStockName': 'Trust', 'targetStockName': 'Trust', 'flowDescription': 'x'}],
    })

    assert model.stock_names() == ['Trust']
    assert model.agents == []
    assert model.incentives == []
    assert len(model.stock_flows) == 1
    assert model.qualitative_states() == {'Trust': 'High'}


def test_with_states_returns_copy():
    model = SystemModel.from_dict({'stocks': [{'name': 'Trust'}, {'name': 'Budget', 'qualitativeState': 'Tight'}]})

    updated = model.with_states({'Trust': 'Low', 'Unknown': 'x'})

    assert updated.qualitative_states() == {'Trust': 'Low', 'Budget': 'Tight'}
    assert model.qualitative_states() == {'Budget': 'Tight'}
    assert updated.stock_names() == model.stock_names()


def test_prompt_context_marks_empty_sections():
    context = SystemModel().to_prompt_context()

    assert '(No stocks in model)' in context
    assert '(No stock-to-stock flows identified)' in context


def test_structured_concept_from_dict():
    assert StructuredConcept.from_dict('Housing') == StructuredConcept('Housing')
    assert StructuredConcept.from_dict({'name': 'Zoning', 'type': 'Policy'}).type == 'Policy'
    assert StructuredConcept.from_dict({'type': 'Policy'}) is None
    assert StructuredConcept.from_dict(3) is None


def test_impact_round_trip_fields():
    impact = Impact.from_dict({
        'id': 'impact-2-1',
        'label': 'Rents fall',
        'description': 'd',
        'validity': 'Medium',
        'reasoning': 'r',
        'targetPhase': '3',
        'parentId': ' impact-1-1 ',
        'keyConcepts': ['Rent', {'name': 'Vacancy', 'type': 'Metric'}],
        'attributes': ['economic', ''],
    }, order=2)

    assert impact.order == 2
    assert impact.parent_id == 'impact-1-1'
    assert impact.validity == 'medium'
    assert impact.attributes == ['economic']

    data = impact.to_dict()
    assert data['order'] == '2'
    assert data['parentId'] == 'impact-1-1'
    assert data['keyConcepts'] == [{'name': 'Rent'}, {'name': 'Vacancy', 'type': 'Metric'}]
    assert 'causalReasoning' not in data


def test_impact_order_falls_back_to_payload():
    assert Impact.from_dict({'id': 'a', 'targetPhase': '3'}).order == 3
    assert Impact.from_dict({'id': 'a', 'order': 'soon'}).order == 1


def test_phase_result_omits_absent_delta():
    assert 'updatedSystemQualitativeStates' not in PhaseResult(1).to_dict()
    assert PhaseResult(1, state_delta={'Trust': 'Low'}).to_dict()['updatedSystemQualitativeStates'] == {'Trust': 'Low'}


def test_report_to_dict():
    report = CascadeReport(
        assertion_text='a',
        reflection=None,
        system_model=SystemModel(),
        initial_states_summary=None,
        tension_analysis=None,
        phase_results=[PhaseResult(1)],
        final_states={'Trust': 'Low'},
        feedback_loop_insights=[],
        consolidation_suggestions=[],
        narrative='n',
    )

    data = report.to_dict()

    assert data['createdAt']
    assert data['reflection'] is None
    assert data['finalSystemQualitativeStates'] == {'Trust': 'Low'}
    assert len(data['phases']) == 1


def test_key_concepts_tolerate_non_lists():
    assert Impact.from_dict({'id': 'a', 'keyConcepts': 5}).key_concepts == []
    assert Impact.from_dict({'id': 'a', 'keyConcepts': 'Real estate'}).key_concepts == [StructuredConcept('Real estate')]
    assert StructuredConcept.from_list({'name': 'Zoning'}) == []
    assert StructuredConcept.from_list(None) == []


def test_null_names_parse_as_empty():
    model = SystemModel.from_dict({
        'stocks': [{'name': None}, {'name': 'Trust'}],
        'agents': [{'name': None}],
        'incentives': [{'agentName': None, 'targetStockName': None, 'incentiveDescription': 'x'}],
        'stockToStockFlows': [{'sourceStockName': None, 'targetStockName': 'Trust', 'flowDescription': 'x'}],
    })

    assert [s.name for s in model.stocks] == ['', 'Trust']
    assert model.agents[0].name == ''
    assert model.incentives[0].agent_name == ''
    assert model.incentives[0].target_stock_name == ''
    assert model.stock_flows[0].source_stock_name == ''
    assert 'None' not in model.stock_names()

    problems = validate_system_model(model)
    assert problems

    repaired, _ = repair_system_model(model)
    assert repaired.stock_names() == ['Trust']
    assert repaired.agents == []
    assert repaired.incentives == []
    assert repaired.stock_flows == []
