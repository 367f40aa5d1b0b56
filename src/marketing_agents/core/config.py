"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigurationError
from .task import Domain, Stage

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/marketing-agents.yaml")


class TrelloConfig(BaseModel):
    """Trello board credentials."""
    api_key: str
    token: str
    board_id: str
    api_base: str = "https://api.trello.com/1"
    timeout: float = 30.0


class LLMConfig(BaseModel):
    """Completion API configuration."""
    mode: Literal["anthropic", "litellm"] = "anthropic"
    api_key: str
    api_base: Optional[str] = None
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    temperature: float = 0.7
    # Model latency can reach tens of seconds; 2 minutes covers long deliverables
    timeout: float = 120.0

    # Token bucket shared by every agent: burst of 5, refilling 2 req/s
    rate_limit_burst: int = 5
    rate_limit_per_second: float = 2.0

    @field_validator("api_base")
    @classmethod
    def validate_api_base(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"api_base must start with http:// or https://, got '{v}'")
        return v

    @field_validator("rate_limit_burst")
    @classmethod
    def validate_burst(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"rate_limit_burst must be >= 1, got {v}")
        return v

    @field_validator("rate_limit_per_second")
    @classmethod
    def validate_rate(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"rate_limit_per_second must be positive, got {v}")
        return v


class GitHubConfig(BaseModel):
    """GitHub configuration for pull requests and review issues."""
    token: str
    owner: str
    repo: str
    api_base: str = "https://api.github.com"
    branch_prefix: str = "feature"
    pr_title_pattern: str = "[{domain}] {title}"
    labels: List[str] = Field(default_factory=lambda: ["ai-agent"])


class UmamiConfig(BaseModel):
    """Umami web analytics (optional, used by the analytics agent)."""
    server_url: str
    website_id: str
    username: str
    password: str
    timezone: str = "UTC"
    timeout: float = 30.0


class OrchestratorConfig(BaseModel):
    """Polling and dispatch settings."""
    poll_interval: float = 30.0
    max_concurrent_agents: int = 3
    processed_history: int = 500
    # Failed cards land here; must not be a stage the poller picks up again
    failure_stage: Stage = Stage.BACKLOG
    parallel_dispatch: bool = False
    max_delegations_per_task: int = 5
    max_delegation_depth: int = 2
    output_dir: Path = Field(default=Path("./output"))
    enabled_domains: List[Domain] = Field(default_factory=lambda: list(Domain))

    @field_validator("max_concurrent_agents", "processed_history")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("max_delegations_per_task", "max_delegation_depth")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"must be >= 0, got {v}")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"poll_interval must be positive, got {v}")
        return v

    @field_validator("failure_stage")
    @classmethod
    def validate_failure_stage(cls, v: Stage) -> Stage:
        if v in (Stage.TODO, Stage.IN_PROGRESS):
            raise ValueError(
                f"failure_stage cannot be '{v.value}': failed cards would be picked up again"
            )
        return v


class SystemConfig(BaseSettings):
    """Main configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MARKETING_AGENTS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    workspace: Path = Field(default=Path("."))
    log_level: str = "INFO"

    trello: TrelloConfig
    llm: LLMConfig
    github: GitHubConfig
    umami: Optional[UmamiConfig] = None
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)


# Classic flat environment variables -> nested config path
ENV_VAR_MAP: Dict[str, tuple] = {
    "TRELLO_API_KEY": ("trello", "api_key"),
    "TRELLO_TOKEN": ("trello", "token"),
    "TRELLO_BOARD_ID": ("trello", "board_id"),
    "ANTHROPIC_API_KEY": ("llm", "api_key"),
    "GITHUB_TOKEN": ("github", "token"),
    "GITHUB_OWNER": ("github", "owner"),
    "GITHUB_REPO": ("github", "repo"),
    "MAX_CONCURRENT_AGENTS": ("orchestrator", "max_concurrent_agents"),
    "UMAMI_SERVER_URL": ("umami", "server_url"),
    "UMAMI_WEBSITE_ID": ("umami", "website_id"),
    "UMAMI_USERNAME": ("umami", "username"),
    "UMAMI_PASSWORD": ("umami", "password"),
}

# Reverse lookup used to name the env var in "missing setting" errors
_PATH_TO_ENV = {path: var for var, path in ENV_VAR_MAP.items()}


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> SystemConfig:
    """Load configuration from YAML (optional) plus environment variables.

    Values present in the YAML file win; anything missing is filled from the
    classic environment variables (``TRELLO_API_KEY``, ``ANTHROPIC_API_KEY`` ...).

    Raises:
        ConfigurationError: A required setting is missing or invalid.
    """
    env = os.environ if environ is None else environ
    path = config_path or DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        data = _expand_env_vars(data, environ=env)
    elif config_path is not None:
        logger.warning(
            f"Config file not found: {config_path}. Falling back to environment variables."
        )

    _apply_env_defaults(data, env)

    # Only build the optional analytics section when it has values
    if not data.get("umami"):
        data.pop("umami", None)

    try:
        return SystemConfig(**data)
    except PydanticValidationError as e:
        missing = []
        problems = []
        for err in e.errors():
            loc = tuple(str(p) for p in err["loc"])
            if err["type"] == "missing":
                if len(loc) == 1:
                    # Whole section absent: report each of its env vars
                    section_vars = [v for p, v in _PATH_TO_ENV.items() if p[0] == loc[0]]
                    missing.extend(section_vars or [loc[0]])
                else:
                    missing.append(_PATH_TO_ENV.get(loc) or ".".join(loc))
            else:
                problems.append(f"{'.'.join(loc)}: {err['msg']}")
        parts = []
        if missing:
            parts.append(f"Missing required setting(s): {', '.join(missing)}")
        if problems:
            parts.append(f"Invalid setting(s): {'; '.join(problems)}")
        raise ConfigurationError(". ".join(parts), missing=missing) from e


def _apply_env_defaults(data: Dict[str, Any], env: Dict[str, str]) -> None:
    for var, (section, key) in ENV_VAR_MAP.items():
        value = env.get(var)
        if not value:
            continue
        section_data = data.setdefault(section, {}) or {}
        data[section] = section_data
        section_data.setdefault(key, value)

    poll_ms = env.get("POLL_INTERVAL_MS")
    if poll_ms:
        try:
            interval = int(poll_ms) / 1000
        except ValueError:
            raise ConfigurationError(f"POLL_INTERVAL_MS must be an integer, got '{poll_ms}'")
        orchestrator = data.setdefault("orchestrator", {}) or {}
        data["orchestrator"] = orchestrator
        orchestrator.setdefault("poll_interval", interval)


def _expand_env_vars(data: Any, _path: str = "", environ: Optional[Dict[str, str]] = None) -> Any:
    """Recursively expand ``${VAR}`` references in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "trello.token")
        environ: Environment mapping (defaults to os.environ)
    """
    env = os.environ if environ is None else environ
    if isinstance(data, dict):
        return {
            k: _expand_env_vars(v, f"{_path}.{k}" if _path else k, env)
            for k, v in data.items()
        }
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]", env) for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = env.get(env_var)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{env_var}' not set "
                f"(referenced at config path: {_path or 'root'})",
                missing=[env_var],
            )
        return value
    return data
