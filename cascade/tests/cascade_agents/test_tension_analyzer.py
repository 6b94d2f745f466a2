"""Tests for TensionAnalyzer agent."""
import pytest
from unittest.mock import patch

from cascade.cascade_agents.tension_analyzer import TensionAnalyzer
from cascade.core.errors import IncompleteAnalysis


class TestTensionAnalyzer:
    """Test suite for TensionAnalyzer."""

    @patch.object(TensionAnalyzer, '_call_llm_structured')
    def test_run(self, mock_llm, sample_assertion, sample_stateful_model, sample_tension_payload):
        """Test a complete analysis is parsed into dataclasses."""
        mock_llm.return_value = sample_tension_payload

        analysis = TensionAnalyzer().run(sample_assertion, sample_stateful_model)

        assert len(analysis.competing_stakeholder_responses) == 1
        response = analysis.competing_stakeholder_responses[0]
        assert response.agent_name == 'Employers'
        assert response.resistant_response.description == 'Mandate office days'
        assert analysis.resource_constraints[0].resource_name == 'Home broadband'
        assert analysis.identified_trade_offs[0].potential_negative_consequence == 'Weaker mentoring'

    @patch.object(TensionAnalyzer, '_call_llm_structured')
    def test_empty_sections_are_valid(self, mock_llm, sample_assertion, sample_stateful_model):
        """Test that present-but-empty sections do not raise."""
        mock_llm.return_value = {
            'competingStakeholderResponses': [],
            'resourceConstraints': [],
            'identifiedTradeOffs': [],
        }

        analysis = TensionAnalyzer().run(sample_assertion, sample_stateful_model)

        assert analysis.competing_stakeholder_responses == []
        assert '(No tensions identified)' in analysis.to_prompt_context()

    @patch.object(TensionAnalyzer, '_call_llm_structured')
    def test_missing_section_raises(self, mock_llm, sample_assertion, sample_stateful_model, sample_tension_payload):
        """Test a response lacking a required section."""
        payload = dict(sample_tension_payload)
        del payload['resourceConstraints']
        mock_llm.return_value = payload

        with pytest.raises(IncompleteAnalysis) as exc_info:
            TensionAnalyzer().run(sample_assertion, sample_stateful_model)
        assert exc_info.value.missing_fields == ['resourceConstraints']

    @patch.object(TensionAnalyzer, '_call_llm_structured')
    def test_backend_error_raises(self, mock_llm, sample_assertion, sample_stateful_model):
        """Test backend failure surfaces as IncompleteAnalysis."""
        mock_llm.side_effect = ValueError('Expected tool_use response')

        with pytest.raises(IncompleteAnalysis) as exc_info:
            TensionAnalyzer().run(sample_assertion, sample_stateful_model)
        assert set(exc_info.value.missing_fields) == set(TensionAnalyzer.REQUIRED_SECTIONS)

    @patch.object(TensionAnalyzer, '_call_llm_structured')
    def test_unknown_agent_kept(self, mock_llm, sample_assertion, sample_stateful_model, sample_tension_payload):
        """Test that responses for agents outside the model are kept."""
        payload = dict(sample_tension_payload)
        payload['competingStakeholderResponses'] = [
            dict(sample_tension_payload['competingStakeholderResponses'][0], agentName='Transit Unions')
        ]
        mock_llm.return_value = payload

        analysis = TensionAnalyzer().run(sample_assertion, sample_stateful_model)

        assert analysis.competing_stakeholder_responses[0].agent_name == 'Transit Unions'

    @patch.object(TensionAnalyzer, '_call_llm_structured')
    def test_requires_assertion(self, mock_llm, sample_stateful_model):
        """Test empty assertion raises ValueError without a backend call."""
        with pytest.raises(ValueError):
            TensionAnalyzer().run('', sample_stateful_model)
        mock_llm.assert_not_called()
