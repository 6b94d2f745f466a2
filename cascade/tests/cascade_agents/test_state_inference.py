"""Tests for StateInferenceEngine agent."""
import pytest
from unittest.mock import patch

from cascade.cascade_agents.state_inference import (
    INFERENCE_FAILED_SUMMARY, NO_STOCKS_SUMMARY, StateInferenceEngine,
)
from cascade.core.types import SystemModel


class TestStateInferenceEngine:
    """Test suite for StateInferenceEngine."""

    @patch.object(StateInferenceEngine, '_call_llm_structured')
    def test_run(self, mock_llm, sample_assertion, sample_system_model):
        """Test that every stock receives its inferred state."""
        mock_llm.return_value = {
            'stockStates': [
                {'name': 'Office Demand', 'qualitativeState': 'Strong'},
                {'name': 'Urban Retail Activity', 'qualitativeState': 'Stable'},
                {'name': 'Worker Autonomy', 'qualitativeState': 'Limited'},
            ],
            'initialStatesSummary': 'Offices are still full and workers have little say.',
        }

        result = StateInferenceEngine().run(sample_assertion, sample_system_model)

        assert not result.degraded
        assert result.state_map == {
            'Office Demand': 'Strong',
            'Urban Retail Activity': 'Stable',
            'Worker Autonomy': 'Limited',
        }
        assert result.initial_states_summary.startswith('Offices')
        # Input model is not mutated
        assert sample_system_model.qualitative_states() == {}

    @patch.object(StateInferenceEngine, '_call_llm_structured')
    def test_stock_names_preserved(self, mock_llm, sample_assertion, sample_system_model):
        """Test that unknown names are ignored and skipped stocks remain."""
        mock_llm.return_value = {
            'stockStates': [
                {'name': 'Office Demand', 'qualitativeState': 'Weakening'},
                {'name': 'Housing Prices', 'qualitativeState': 'Rising'},
            ],
            'initialStatesSummary': 'Partial inference.',
        }

        result = StateInferenceEngine().run(sample_assertion, sample_system_model)

        assert result.system_model.stock_names() == sample_system_model.stock_names()
        assert result.state_map == {'Office Demand': 'Weakening'}

    @patch.object(StateInferenceEngine, '_call_llm_structured')
    def test_empty_model_short_circuits(self, mock_llm, sample_assertion):
        """Test that a model with no stocks makes no backend call."""
        result = StateInferenceEngine().run(sample_assertion, SystemModel())

        mock_llm.assert_not_called()
        assert result.initial_states_summary == NO_STOCKS_SUMMARY
        assert not result.degraded

    @patch.object(StateInferenceEngine, '_call_llm_structured')
    def test_backend_error_degrades(self, mock_llm, sample_assertion, sample_system_model):
        """Test fallback to the original model on backend failure."""
        mock_llm.side_effect = RuntimeError('timeout')

        result = StateInferenceEngine().run(sample_assertion, sample_system_model)

        assert result.degraded
        assert result.system_model is sample_system_model
        assert result.initial_states_summary == INFERENCE_FAILED_SUMMARY

    @pytest.mark.parametrize('payload', [
        {'stockStates': [{'name': 'Office Demand', 'qualitativeState': 'Strong'}]},
        {'initialStatesSummary': 'Summary only'},
        {'stockStates': 'Office Demand: Strong', 'initialStatesSummary': 'x'},
    ])
    @patch.object(StateInferenceEngine, '_call_llm_structured')
    def test_malformed_response_degrades(self, mock_llm, payload, sample_assertion, sample_system_model):
        """Test fallback when required fields are missing."""
        mock_llm.return_value = payload

        result = StateInferenceEngine().run(sample_assertion, sample_system_model)

        assert result.degraded
        assert result.system_model is sample_system_model

    def test_requires_assertion(self, sample_system_model):
        """Test empty assertion raises ValueError."""
        with pytest.raises(ValueError):
            StateInferenceEngine().run('', sample_system_model)
