"""Shared test fixtures for cascade agent tests."""
import pytest
from unittest.mock import MagicMock

from cascade.core.config import CascadeConfig
from cascade.core.types import (
    SystemModel,
    Impact, StakeholderStance, CompetingStakeholderResponse,
    ResourceConstraint, IdentifiedTradeOff, TensionAnalysis,
)


@pytest.fixture
def sample_assertion():
    """Sample assertion text."""
    return "Remote work becomes universal"


@pytest.fixture
def cascade_config(tmp_path):
    """Config with default policies and an isolated output dir."""
    return CascadeConfig(parent_link_policy='keep', structural_policy='repair', output_dir=tmp_path)


@pytest.fixture
def sample_system_model_payload():
    """System model as returned by the backend (camelCase wire shape)."""
    return {
        'stocks': [
            {'name': 'Office Demand', 'description': 'Demand for commercial office space'},
            {'name': 'Urban Retail Activity', 'description': 'Foot traffic in city centers'},
            {'name': 'Worker Autonomy', 'description': 'Control workers have over schedules'},
        ],
        'agents': [
            {'name': 'Employers', 'description': 'Companies employing knowledge workers'},
            {'name': 'Commercial Landlords'},
        ],
        'incentives': [
            {
                'agentName': 'Employers',
                'targetStockName': 'Office Demand',
                'incentiveDescription': 'Cut real-estate costs',
                'resultingFlow': 'Lease terminations',
            },
            {
                'agentName': 'Commercial Landlords',
                'targetStockName': 'Office Demand',
                'incentiveDescription': 'Keep buildings occupied',
            },
        ],
        'stockToStockFlows': [
            {
                'sourceStockName': 'Office Demand',
                'targetStockName': 'Urban Retail Activity',
                'flowDescription': 'Fewer commuters reduce downtown spending',
                'drivingForceDescription': 'Lower daily foot traffic',
            },
        ],
    }


@pytest.fixture
def sample_system_model(sample_system_model_payload):
    """Parsed system model without qualitative states."""
    return SystemModel.from_dict(sample_system_model_payload)


@pytest.fixture
def sample_state_map():
    """Initial qualitative states keyed by stock name."""
    return {
        'Office Demand': 'Strong',
        'Urban Retail Activity': 'Stable',
        'Worker Autonomy': 'Limited',
    }


@pytest.fixture
def sample_stateful_model(sample_system_model, sample_state_map):
    """System model with initial qualitative states applied."""
    return sample_system_model.with_states(sample_state_map)


@pytest.fixture
def sample_phase1_impacts():
    """Phase 1 impacts."""
    return [
        Impact(
            id='p1-office',
            label='Office vacancies rise',
            description='Companies give up leases as staff stop commuting.',
            validity='high',
            reasoning='Leases are the largest discretionary fixed cost.',
            order=1,
        ),
        Impact(
            id='p1-retail',
            label='Downtown retail declines',
            description='Lunch and after-work spending in city centers drops.',
            validity='medium',
            reasoning='Retail depends on commuter foot traffic.',
            order=1,
        ),
    ]


@pytest.fixture
def sample_phase2_impacts():
    """Phase 2 impacts linked to phase 1."""
    return [
        Impact(
            id='p2-conversion',
            label='Offices converted to housing',
            description='Landlords convert vacant floors to residential units.',
            validity='medium',
            reasoning='Conversion recovers some rent on stranded assets.',
            order=2,
            parent_id='p1-office',
        ),
        Impact(
            id='p2-suburban',
            label='Suburban retail grows',
            description='Spending shifts to neighborhoods where people now work.',
            validity='high',
            reasoning='Spending follows where people spend their day.',
            order=2,
            parent_id='p1-retail',
        ),
    ]


@pytest.fixture
def sample_tension_analysis():
    """Tension analysis with one entry per section."""
    return TensionAnalysis(
        competing_stakeholder_responses=[
            CompetingStakeholderResponse(
                agent_name='Employers',
                supportive_response=StakeholderStance('Adopt remote-first policies', 'Lower overhead'),
                resistant_response=StakeholderStance('Mandate office days', 'Culture and oversight concerns'),
                key_assumptions='Productivity holds up remotely',
            )
        ],
        resource_constraints=[
            ResourceConstraint('Home broadband', 'Video calls all day', 'Rural workers left behind')
        ],
        identified_trade_offs=[
            IdentifiedTradeOff('Commute time saved', 'Weaker mentoring of junior staff', 'Less informal learning')
        ],
    )


@pytest.fixture
def sample_tension_payload():
    """Tension analysis as returned by the backend."""
    return {
        'competingStakeholderResponses': [
            {
                'agentName': 'Employers',
                'supportiveResponse': {'description': 'Adopt remote-first policies', 'reasoning': 'Lower overhead'},
                'resistantResponse': {'description': 'Mandate office days', 'reasoning': 'Oversight concerns'},
                'keyAssumptions': 'Productivity holds up remotely',
            }
        ],
        'resourceConstraints': [
            {
                'resourceName': 'Home broadband',
                'demandsOnResource': 'Video calls all day',
                'potentialScarcityImpact': 'Rural workers left behind',
            }
        ],
        'identifiedTradeOffs': [
            {
                'primaryPositiveOutcome': 'Commute time saved',
                'potentialNegativeConsequenceOrOpportunityCost': 'Weaker mentoring',
                'explanation': 'Less informal learning',
            }
        ],
    }


@pytest.fixture
def make_tool_response():
    """Factory producing a fake Anthropic Messages response with one tool_use block."""
    def _make(tool_name, payload):
        block = MagicMock()
        block.type = 'tool_use'
        block.name = tool_name
        block.input = payload
        response = MagicMock()
        response.content = [block]
        return response
    return _make


@pytest.fixture
def mock_anthropic_client():
    """Anthropic client whose messages.create is a MagicMock."""
    client = MagicMock()
    client.messages.create = MagicMock()
    return client

