"""Tests for SystemModelReviser agent."""
import pytest
from unittest.mock import patch

from cascade.cascade_agents.model_revision import REVISION_FAILED_SUMMARY, SystemModelReviser
from cascade.core.config import CascadeConfig


class TestSystemModelReviser:
    """Test suite for SystemModelReviser."""

    @patch.object(SystemModelReviser, '_call_llm_structured')
    def test_additive_revision(self, mock_llm, sample_stateful_model, sample_system_model_payload, cascade_config):
        """Test a connected addition is applied and prior states carried forward."""
        revised = dict(sample_system_model_payload)
        revised['stocks'] = revised['stocks'] + [{'name': 'Housing Demand', 'qualitativeState': 'Rising'}]
        revised['stockToStockFlows'] = revised['stockToStockFlows'] + [
            {'sourceStockName': 'Worker Autonomy', 'targetStockName': 'Housing Demand', 'flowDescription': 'Relocation'}
        ]
        mock_llm.return_value = {'revisedSystemModel': revised, 'revisionSummary': 'Added housing demand.'}

        result = SystemModelReviser(config=cascade_config).run(sample_stateful_model, 'Consider housing')

        assert not result.degraded
        model = result.revised_system_model
        assert 'Housing Demand' in model.stock_names()
        assert model.qualitative_states()['Office Demand'] == 'Strong'
        assert model.qualitative_states()['Housing Demand'] == 'Rising'
        assert result.isolated_elements == []
        assert result.revision_summary == 'Added housing demand.'

    @patch.object(SystemModelReviser, '_call_llm_structured')
    def test_isolated_addition_explained(self, mock_llm, sample_stateful_model, sample_system_model_payload, cascade_config):
        """Test a new element with no edges is reported in the summary."""
        revised = dict(sample_system_model_payload)
        revised['agents'] = revised['agents'] + [{'name': 'Transit Authorities'}]
        mock_llm.return_value = {'revisedSystemModel': revised, 'revisionSummary': 'Added transit authorities.'}

        result = SystemModelReviser(config=cascade_config).run(sample_stateful_model, 'Add transit')

        assert result.isolated_elements == ["agent 'Transit Authorities'"]
        assert 'Transit Authorities' in result.revision_summary

    @patch.object(SystemModelReviser, '_call_llm_structured')
    def test_dangling_edges_repaired(self, mock_llm, sample_stateful_model, sample_system_model_payload, cascade_config):
        """Test the revised model passes referential integrity."""
        revised = dict(sample_system_model_payload)
        revised['incentives'] = revised['incentives'] + [
            {'agentName': 'Ghost', 'targetStockName': 'Office Demand', 'incentiveDescription': 'x'}
        ]
        mock_llm.return_value = {'revisedSystemModel': revised, 'revisionSummary': 'Tweaked incentives.'}

        result = SystemModelReviser(config=cascade_config).run(sample_stateful_model, 'Tweak')

        agents = set(result.revised_system_model.agent_names())
        assert all(i.agent_name in agents for i in result.revised_system_model.incentives)
        assert len(result.structural_repairs) == 1

    @patch.object(SystemModelReviser, '_call_llm_structured')
    def test_reject_policy_keeps_original(self, mock_llm, sample_stateful_model, sample_system_model_payload, tmp_path):
        """Test a structurally invalid revision under 'reject' leaves the model unchanged."""
        revised = dict(sample_system_model_payload)
        revised['incentives'] = [{'agentName': 'Ghost', 'targetStockName': 'Office Demand', 'incentiveDescription': 'x'}]
        mock_llm.return_value = {'revisedSystemModel': revised, 'revisionSummary': 'Changed.'}
        config = CascadeConfig(structural_policy='reject', output_dir=tmp_path)

        result = SystemModelReviser(config=config).run(sample_stateful_model, 'Change')

        assert result.degraded
        assert result.revised_system_model is sample_stateful_model
        assert 'rejected' in result.revision_summary

    @pytest.mark.parametrize('response', [
        RuntimeError('boom'),
        {'revisionSummary': 'No model'},
        {'revisedSystemModel': {'stocks': []}},
        {'revisedSystemModel': {'stocks': []}, 'revisionSummary': '  '},
    ])
    @patch.object(SystemModelReviser, '_call_llm_structured')
    def test_malformed_response_falls_back(self, mock_llm, response, sample_stateful_model, cascade_config):
        """Test the original model is returned with a fixed summary."""
        if isinstance(response, Exception):
            mock_llm.side_effect = response
        else:
            mock_llm.return_value = response

        result = SystemModelReviser(config=cascade_config).run(sample_stateful_model, 'Anything')

        assert result.degraded
        assert result.revised_system_model is sample_stateful_model
        assert result.revision_summary == REVISION_FAILED_SUMMARY

    @patch.object(SystemModelReviser, '_call_llm_structured')
    def test_requires_feedback(self, mock_llm, sample_stateful_model, cascade_config):
        """Test empty feedback raises ValueError without a backend call."""
        with pytest.raises(ValueError, match='user_feedback'):
            SystemModelReviser(config=cascade_config).run(sample_stateful_model, '')
        mock_llm.assert_not_called()
