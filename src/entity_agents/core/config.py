"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .prompts import PromptTemplate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 600_000
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024

DEFAULT_ENGINE_ARGS = [
    "--print",  # Non-interactive mode - write to stdout and exit
    "{allowed_tools}",
    "--system-prompt", "{preamble}",
    "{prompt}",
]


def _expand_path(v: Any) -> Any:
    if isinstance(v, (str, Path)):
        return Path(os.path.expanduser(str(v)))
    return v


class NotificationConfig(BaseModel):
    """Which notification channels an entity fans out to."""
    model_config = ConfigDict(frozen=True)

    file_enabled: bool = True
    file_path: Optional[Path] = None  # None = <output_dir>/logs/notifications.log
    desktop_enabled: bool = True
    sms_enabled: bool = False
    sms_phone: Optional[str] = None
    command_timeout: float = 10.0

    @field_validator("file_path", mode="before")
    @classmethod
    def expand_user(cls, v: Any) -> Any:
        return _expand_path(v)


class GitHubConfig(BaseModel):
    """Issue tracker scope. Both halves unset = gh's ambient repository."""
    model_config = ConfigDict(frozen=True)

    owner: Optional[str] = None
    repo: Optional[str] = None

    @property
    def is_scoped(self) -> bool:
        return bool(self.owner and self.repo)


class EntityConfig(BaseModel):
    """Static identity and policy for one entity. Immutable after construction."""
    model_config = ConfigDict(frozen=True)

    name: str
    role: str
    system_prompt: str
    project_root: Path = Field(default_factory=Path.cwd)
    output_dir: Path = Field(default=Path(".entity-agents"))
    log_path: Optional[Path] = None  # None = <output_dir>/logs/agent.log

    allowed_tools: List[str] = Field(
        default_factory=lambda: ["Read", "Write", "Edit", "Glob", "Grep", "Bash"]
    )
    allowed_bash_patterns: List[str] = Field(default_factory=lambda: ["git *", "gh *", "npm *"])
    owned_paths: List[str] = Field(default_factory=list)

    github_labels: List[str] = Field(default_factory=list)
    relevance_keywords: List[str] = Field(default_factory=list)
    github: GitHubConfig = Field(default_factory=GitHubConfig)

    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    operations: Dict[str, PromptTemplate] = Field(default_factory=dict)

    @field_validator("project_root", "output_dir", "log_path", mode="before")
    @classmethod
    def expand_user(cls, v: Any) -> Any:
        return _expand_path(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Entity name cannot be empty")
        return v

    @property
    def resolved_log_path(self) -> Path:
        return self.log_path or self.output_dir / "logs" / "agent.log"

    @property
    def notification_file_path(self) -> Path:
        return self.notifications.file_path or self.output_dir / "logs" / "notifications.log"


class FrameworkSettings(BaseSettings):
    """Runtime settings shared by every entity in one process."""
    model_config = SettingsConfigDict(env_prefix="ENTITY_", env_file=".env", extra="ignore")

    # Engine invocation
    engine_executable: str = "claude"
    engine_args: List[str] = Field(default_factory=lambda: list(DEFAULT_ENGINE_ARGS))
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    pass_allowed_tools: bool = True
    history_limit: int = 1000

    # Integration clients
    git_timeout: float = 30.0
    gh_executable: str = "gh"
    gh_timeout: float = 60.0
    commit_email: str = "noreply@entity.com"

    # Approvals
    reload_pending_approvals: bool = True
    sensitive_values: List[str] = Field(default_factory=lambda: ["production"])

    log_level: Optional[str] = None

    @field_validator("default_timeout_ms", "max_output_bytes", "history_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v

    @field_validator("engine_args")
    @classmethod
    def validate_engine_args(cls, v: List[str]) -> List[str]:
        if "{prompt}" not in v:
            raise ValueError("engine_args must contain a '{prompt}' argument")
        return v


# Module-level mtime-based config cache: path -> (parsed_config, file_mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def clear_config_cache() -> None:
    """Clear the module-level config cache. Useful for tests."""
    _config_cache.clear()


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return _expand_env_vars(data)


def _load_settings_from_file(config_path: Path) -> FrameworkSettings:
    return FrameworkSettings(**_read_yaml(config_path))


def load_settings(config_path: Path = Path("config/entity-agents.yaml")) -> FrameworkSettings:
    """Load runtime settings from YAML, falling back to defaults/env when absent."""
    if not config_path.exists():
        logger.debug(f"Settings file not found: {config_path}. Using defaults.")
        return FrameworkSettings()

    result = _get_cached_or_load(config_path.resolve(), _load_settings_from_file)
    return result if result is not None else FrameworkSettings()


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_entities_from_file(entities_path: Path) -> List[EntityConfig]:
    data = _read_yaml(entities_path)
    defaults = data.get("defaults") or {}
    entities = []
    for raw in data.get("entities") or []:
        entities.append(EntityConfig(**_deep_merge(defaults, raw)))
    return entities


def load_entities(entities_path: Path = Path("config/entities.yaml")) -> List[EntityConfig]:
    """Load entity definitions from YAML.

    A top-level `defaults` mapping is deep-merged under every entry of
    `entities`, so shared policy (output_dir, notifications, github scope)
    is written once.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    if not entities_path.exists():
        raise FileNotFoundError(f"Entities config not found: {entities_path}")

    result = _get_cached_or_load(entities_path.resolve(), _load_entities_from_file)
    if result is None:
        raise FileNotFoundError(f"Entities config not found: {entities_path}")
    return result


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ${VAR} strings in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "entities[0].github.owner")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used."
            )
            return data
        return value
    return data
