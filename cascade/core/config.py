import os
from pathlib import Path
from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable

load_dotenv()


class EnvConfig:
    """Small helper for reading and casting environment variables.

    Usage: EnvConfig.get('CLAUDE_MODEL', cast=str, aliases=['ANTHROPIC_MODEL'])
    """

    @staticmethod
    def get(name: str, default: Any = None, cast: Optional[Callable] = None, aliases: Optional[list] = None):
        aliases = aliases or []
        for key in (name, *aliases):
            val = os.getenv(key)
            if val is not None:
                if cast is not None:
                    try:
                        return cast(val)
                    except Exception as exc:  # keep error explicit
                        raise ValueError(f"Invalid value for {key}: {exc}")
                return val
        return default


# Debug flag
DEBUG = EnvConfig.get('DEBUG', default='False', cast=lambda v: v.lower() == 'true')

PARENT_LINK_POLICIES = ('keep', 'drop')
STRUCTURAL_POLICIES = ('repair', 'reject')


@dataclass
class BaseConfig:
    """Mixin-like helper for dataclasses that load from envs and validate."""

    @classmethod
    def _env(cls, name: str, default: Any = None, cast: Optional[Callable] = None, aliases: Optional[list] = None):
        return EnvConfig.get(name, default=default, cast=cast, aliases=aliases)

    def validate(self, required: bool = True):
        """Default no-op; override in subclasses with required flag."""
        return None


@dataclass
class ClaudeConfig(BaseConfig):
    api_key: Optional[str] = None
    model: str = "claude-3-5-haiku-latest"
    max_tokens: int = 4000
    temperature: float = 0.2

    def __post_init__(self):
        self.api_key = self.api_key or self._env('ANTHROPIC_API_KEY', aliases=['CLAUDE_API_KEY'])
        self.model = self._env('CLAUDE_MODEL', default=self.model)
        tokens = self._env('CLAUDE_MAX_TOKENS', default=None, cast=int)
        if tokens is not None:
            self.max_tokens = tokens
        temp = self._env('CLAUDE_TEMPERATURE', default=None, cast=float)
        if temp is not None:
            self.temperature = temp

    def validate(self, required: bool = True) -> None:
        if required and not self.api_key:
            raise ValueError('ANTHROPIC_API_KEY not set. Set via environment or ClaudeConfig.api_key')
        if self.max_tokens < 100:
            raise ValueError('max_tokens must be >= 100')
        if not 0 <= self.temperature <= 2:
            raise ValueError('temperature must be between 0 and 2')


@dataclass
class CascadeConfig(BaseConfig):
    # Cardinality guidance passed to the backend; not enforced on output
    phase1_min_impacts: int = 3
    phase1_max_impacts: int = 5
    phase2_min_per_parent: int = 2
    phase2_max_per_parent: int = 3
    phase3_min_per_parent: int = 1
    phase3_max_per_parent: int = 2
    # 'keep' leaves phase 2/3 impacts without a valid parentId unlinked, 'drop' discards them
    parent_link_policy: str = 'keep'
    # 'repair' drops dangling edges, 'reject' raises StructuralViolation
    structural_policy: str = 'repair'
    output_dir: Path = None

    def __post_init__(self):
        for attr, env_name in (
            ('phase1_min_impacts', 'CASCADE_PHASE1_MIN'),
            ('phase1_max_impacts', 'CASCADE_PHASE1_MAX'),
            ('phase2_min_per_parent', 'CASCADE_PHASE2_MIN_PER_PARENT'),
            ('phase2_max_per_parent', 'CASCADE_PHASE2_MAX_PER_PARENT'),
            ('phase3_min_per_parent', 'CASCADE_PHASE3_MIN_PER_PARENT'),
            ('phase3_max_per_parent', 'CASCADE_PHASE3_MAX_PER_PARENT'),
        ):
            value = self._env(env_name, default=None, cast=int)
            if value is not None:
                setattr(self, attr, value)
        # Respect explicit constructor values: only consult env var when using the dataclass default
        if self.parent_link_policy == CascadeConfig.parent_link_policy:
            self.parent_link_policy = self._env('CASCADE_PARENT_LINK_POLICY', default=self.parent_link_policy).lower()
        if self.structural_policy == CascadeConfig.structural_policy:
            self.structural_policy = self._env('CASCADE_STRUCTURAL_POLICY', default=self.structural_policy).lower()
        base = self._env('CASCADE_OUTPUT_DIR', default='output')
        self.output_dir = Path(base) if self.output_dir is None else Path(self.output_dir)

    def cardinality_range(self, phase: int):
        """(min, max) impacts for phase 1, or per parent for phases 2/3."""
        return {
            1: (self.phase1_min_impacts, self.phase1_max_impacts),
            2: (self.phase2_min_per_parent, self.phase2_max_per_parent),
            3: (self.phase3_min_per_parent, self.phase3_max_per_parent),
        }[phase]

    def validate(self, required: bool = True) -> None:
        for phase in (1, 2, 3):
            low, high = self.cardinality_range(phase)
            if low < 1 or high < low:
                raise ValueError(f'phase {phase} impact range must satisfy 1 <= min <= max (got {low}..{high})')
        if self.parent_link_policy not in PARENT_LINK_POLICIES:
            raise ValueError(f'parent_link_policy must be one of {PARENT_LINK_POLICIES}')
        if self.structural_policy not in STRUCTURAL_POLICIES:
            raise ValueError(f'structural_policy must be one of {STRUCTURAL_POLICIES}')
        if not isinstance(self.output_dir, Path):
            self.output_dir = Path(self.output_dir)


class AppConfig:
    """Central application configuration container.

    Access sub-configs as attributes (e.g., `AppConfig.claude`).
    Use `AppConfig.from_env()` for a validated instance reflecting the
    current environment.
    """

    claude: ClaudeConfig = ClaudeConfig()
    cascade: CascadeConfig = CascadeConfig()

    @staticmethod
    def validate_all(strict: bool = False) -> None:
        AppConfig.claude.validate(required=strict)
        AppConfig.cascade.validate()

    @staticmethod
    def check_availability() -> Dict[str, Dict[str, Any]]:
        """Return availability map for each config.

        For each named sub-config return a dict with keys:
        - available: bool
        - reason: Optional[str] explaining failure when available is False
        """
        results: Dict[str, Dict[str, Any]] = {}
        # Construct fresh instances so availability reflects current environment
        configs = {
            'claude': ClaudeConfig(),
            'cascade': CascadeConfig(),
        }
        for name, cfg in configs.items():
            try:
                cfg.validate(required=True)
                results[name] = {'available': True, 'reason': None}
            except Exception as e:
                results[name] = {'available': False, 'reason': str(e)}
        return results

    @staticmethod
    def from_env(strict: bool = False) -> 'AppConfig':
        config = AppConfig()
        config.validate_all(strict=strict)
        return config
