"""
Configuration system for aboutyou.

Loads YAML configuration files and provides typed access to settings.
Uses Pydantic v2 for validation and immutable config objects.

Configuration Hierarchy (highest priority first):
1. CLI arguments (passed to load_config)
2. NEO4J_URI / NEO4J_USER / NEO4J_PASSWORD
3. Environment variables (ABOUTYOU_*)
4. User YAML file (explicit path, else ~/.aboutyou/config.yaml)
5. Packaged config.default.yaml
6. Pydantic field defaults
"""

import os
from importlib.resources import files as resource_files
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

USER_CONFIG_PATH = Path.home() / ".aboutyou" / "config.yaml"

NEO4J_ENV_OVERRIDES = {
    "NEO4J_URI": "uri",
    "NEO4J_USER": "username",
    "NEO4J_PASSWORD": "password",
}


def expand_home(path: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    if path == "~" or path.startswith("~/"):
        return str(Path.home() / path[2:])
    return path


class ScanConfig(BaseModel):
    """Which directories to hand to the exploring agent."""

    model_config = ConfigDict(frozen=True)

    directories: List[str] = Field(default_factory=lambda: ["~/Documents"], description="Directories to scan")
    ignore: List[str] = Field(
        default_factory=lambda: ["node_modules", ".git", "__pycache__", ".venv"],
        description="Directory names the agent is told to skip",
    )

    @field_validator("directories")
    @classmethod
    def expand_directories(cls, v: List[str]) -> List[str]:
        return [expand_home(d) for d in v]


class Neo4jConfig(BaseModel):
    """Neo4j connection settings."""

    model_config = ConfigDict(frozen=True)

    uri: str = Field(default="bolt://localhost:7687", description="Bolt URI")
    username: str = Field(default="neo4j", description="Username")
    password: str = Field(default="password", description="Password")
    database: Optional[str] = Field(default=None, description="Database name (server default if unset)")


class ExtractionConfig(BaseModel):
    """Settings for the exploring agent session."""

    model_config = ConfigDict(frozen=True)

    model: Optional[str] = Field(default=None, description="Model to use (SDK default if unset)")
    max_turns: int = Field(default=1000, gt=0, description="Upper bound on agent turns per directory")
    allowed_tools: List[str] = Field(
        default_factory=lambda: ["Read", "Glob", "Grep", "Bash"],
        description="Tools the agent may call",
    )
    permission_mode: str = Field(default="bypassPermissions", description="Agent permission mode")

    @field_validator("permission_mode")
    @classmethod
    def validate_permission_mode(cls, v: str) -> str:
        valid = {"default", "acceptEdits", "plan", "bypassPermissions"}
        if v not in valid:
            raise ValueError(f"Invalid permission_mode: {v}. Valid: {sorted(valid)}")
        return v


class StorageConfig(BaseModel):
    """Local storage settings."""

    model_config = ConfigDict(frozen=True)

    data_dir: Path = Field(default=Path("~/.aboutyou/data"), description="Directory for local state")

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Union[str, Path]) -> Path:
        return Path(expand_home(str(v))).resolve()

    @property
    def logs_db(self) -> Path:
        return self.data_dir / "logs.db"


class AppConfig(BaseModel):
    """Central configuration object."""

    model_config = ConfigDict(frozen=True)

    scan: ScanConfig = Field(default_factory=ScanConfig)
    neo4j: Neo4jConfig = Field(default_factory=Neo4jConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    log_level: str = Field(default="INFO", description="Default log level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log_level: {v}")
        return level

    @classmethod
    def from_yaml(cls, path: Path) -> "AppConfig":
        """Load configuration from a single YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create from dictionary."""
        return cls.model_validate(data)


def load_config(
    path: Optional[Path] = None,
    env_prefix: str = "ABOUTYOU_",
    cli_overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> AppConfig:
    """Load configuration with hierarchy: defaults → YAML → env vars → CLI args.

    Args:
        path: Optional explicit path to a user YAML config file
        env_prefix: Prefix for environment variables (default: "ABOUTYOU_")
        cli_overrides: Optional dictionary of CLI argument overrides
        use_env: Whether to load environment variables (default: True)

    Returns:
        Merged AppConfig

    Examples:
        # Basic usage
        config = load_config()

        # With CLI overrides
        config = load_config(cli_overrides={"scan": {"directories": ["~/notes"]}})

        # Environment variable: ABOUTYOU_EXTRACTION_MAX_TURNS=50
        config = load_config()  # max_turns will be 50
    """
    config_dict = _load_default_config()

    user_path = _find_config_file(path)
    if user_path:
        with open(user_path) as f:
            _deep_merge(config_dict, yaml.safe_load(f) or {})

    if use_env:
        load_dotenv()
        _deep_merge(config_dict, _extract_env_config(env_prefix))
        neo4j_env = {
            field: os.environ[var]
            for var, field in NEO4J_ENV_OVERRIDES.items()
            if os.environ.get(var)
        }
        if neo4j_env:
            _deep_merge(config_dict, {"neo4j": neo4j_env})

    if cli_overrides:
        _deep_merge(config_dict, cli_overrides)

    return AppConfig.from_dict(config_dict)


def _load_default_config() -> Dict[str, Any]:
    """Load the packaged config.default.yaml (empty dict if missing)."""
    resource = resource_files("aboutyou").joinpath("config.default.yaml")
    if not resource.is_file():
        return {}
    return yaml.safe_load(resource.read_text()) or {}


def _find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Find the user configuration file.

    Searches in this order:
    1. Provided path
    2. ~/.aboutyou/config.yaml

    Raises:
        FileNotFoundError: If an explicit path was given but does not exist
    """
    if path is not None:
        path = Path(expand_home(str(path)))
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        return path

    if USER_CONFIG_PATH.exists():
        return USER_CONFIG_PATH

    return None


def _extract_env_config(prefix: str = "ABOUTYOU_") -> Dict[str, Any]:
    """Extract configuration from environment variables.

    Environment variables are mapped to config paths:
    - ABOUTYOU_EXTRACTION_MAX_TURNS=50 → {"extraction": {"max_turns": 50}}
    - ABOUTYOU_SCAN_DIRECTORIES=~/a,~/b → {"scan": {"directories": ["~/a", "~/b"]}}
    - ABOUTYOU_LOG_LEVEL=DEBUG → {"log_level": "DEBUG"}

    Args:
        prefix: Environment variable prefix (default: "ABOUTYOU_")

    Returns:
        Dictionary of extracted configuration
    """
    config: Dict[str, Any] = {}
    sections = {"scan", "neo4j", "extraction", "storage"}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix):].lower()
        if not config_key:
            continue

        parts = config_key.split("_")

        if parts[0] in sections and len(parts) > 1:
            section = parts[0]
            field = "_".join(parts[1:])
            config.setdefault(section, {})[field] = _convert_env_value(value, field)
        else:
            config[config_key] = _convert_env_value(value, config_key)

    return config


# Fields that are always lists, even with a single element
_LIST_FIELDS = {"directories", "ignore", "allowed_tools"}


def _convert_env_value(value: str, field: str = "") -> Union[str, List[str]]:
    """Convert environment variable string for the target field.

    List fields are split on commas. Scalars stay strings and are coerced
    by the Pydantic models (so a numeric password stays a string).

    Args:
        value: Raw string value from environment
        field: Target field name

    Returns:
        List of strings for list fields, otherwise the raw string
    """
    if field in _LIST_FIELDS:
        return [v.strip() for v in value.split(",") if v.strip()]
    return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base dictionary (mutates base).

    Recursively merges nested dictionaries. For non-dict values,
    override completely replaces base.

    Examples:
        >>> base = {"a": {"b": 1, "c": 2}, "d": 3}
        >>> _deep_merge(base, {"a": {"b": 10}, "e": 5})
        >>> base
        {'a': {'b': 10, 'c': 2}, 'd': 3, 'e': 5}
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
