"""
Settings models for mcp-lite.
"""

import enum
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from mcp_lite.exceptions import ConfigurationError
from mcp_lite.utils.secrets import get_api_key, get_model_override, load_env_files

DEFAULT_CONFIG_FILE = "mcp_lite.config.yaml"

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "google": "gemini-1.5-pro",
    "mock": "mock-model",
}


class TransportKind(str, enum.Enum):
    """How a tool server is reached."""

    STDIO = "stdio"
    SSE = "sse"
    HTTP = "http"


class MCPServerSettings(BaseModel):
    """Connection parameters for one MCP server."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    name: Optional[str] = None
    transport: TransportKind = Field(
        default=TransportKind.STDIO,
        validation_alias=AliasChoices("transport", "type"),
    )
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Optional[Dict[str, str]] = None
    url: Optional[str] = None
    disabled: bool = False
    timeout: float = Field(default=60, gt=0)
    auto_approve: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("auto_approve", "autoApprove"),
    )

    def validate_transport(self) -> None:
        """
        Check that the field required by the transport kind is present.

        Raises:
            ConfigurationError: If ``command`` (stdio) or ``url`` (sse/http) is missing.
        """
        if self.transport == TransportKind.STDIO:
            if not self.command:
                raise ConfigurationError(
                    f"Command is required for stdio transport: {self.name}"
                )
        elif not self.url:
            raise ConfigurationError(
                f"URL is required for {self.transport.value} transport: {self.name}"
            )


class MCPSettings(BaseModel):
    """Settings for MCP configuration."""

    servers: Dict[str, MCPServerSettings] = Field(default_factory=dict)
    # Connect + handshake + discovery budget for a single server
    timeout_seconds: float = Field(default=30, gt=0)


class LLMSettings(BaseModel):
    """Which LLM to talk to and how."""

    provider: str = "openai"
    model: Optional[str] = None
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000

    def resolved_model(self) -> str:
        if self.model:
            return self.model
        try:
            return DEFAULT_MODELS[self.provider.lower()]
        except KeyError:
            raise ConfigurationError(f"Unknown LLM provider: {self.provider}")

    def resolved_api_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if self.provider.lower() == "mock":
            return None
        try:
            return get_api_key(self.provider)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc


class LoggingSettings(BaseModel):
    """Settings for logging configuration."""

    level: str = "info"
    file_path: Optional[str] = None
    console: bool = True


class Settings(BaseModel):
    """Root settings object for mcp-lite."""

    model_config = ConfigDict(extra="allow")

    llm: LLMSettings = Field(default_factory=LLMSettings)
    mcp: MCPSettings = Field(default_factory=MCPSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def server_descriptors(self, include_disabled: bool = False) -> List[MCPServerSettings]:
        """
        Return the configured servers with their ``name`` filled in.

        Args:
            include_disabled: Also return servers flagged as disabled.

        Returns:
            Descriptors in configuration order.
        """
        descriptors = []
        for name, server in self.mcp.servers.items():
            if server.disabled and not include_disabled:
                continue
            descriptors.append(server.model_copy(update={"name": server.name or name}))
        return descriptors


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load and validate the configuration from a YAML or JSON file.

    Args:
        config_path: Path to the configuration file.
            If None, look for 'mcp_lite.config.yaml' in the current directory.

    Returns:
        Settings: Validated configuration object.
    """
    load_env_files()

    if config_path is None:
        config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)

    config_data: Dict[str, Any] = {}

    if os.path.exists(config_path):
        config_data = _normalize_servers(_read_file(Path(config_path)))

    # Load secrets if they exist
    secrets_path = Path(config_path).with_suffix(".secrets.yaml")
    if secrets_path.exists():
        _merge_dicts(config_data, _read_file(secrets_path))

    # Environment variables override file settings
    env_config = _load_from_env()
    if env_config:
        _merge_dicts(config_data, env_config)

    return Settings.model_validate(config_data)


def _read_file(path: Path) -> Any:
    with open(path, "r") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f) or {}


def _normalize_servers(data: Any) -> Dict[str, Any]:
    """
    Accept the standard ``mcpServers`` mapping and the legacy list of servers.
    """
    if isinstance(data, list):
        # Legacy format: [{"name": ..., "command": ..., "transport": ...}, ...]
        return {"mcp": {"servers": {entry["name"]: entry for entry in data}}}

    if not isinstance(data, dict):
        raise ConfigurationError(f"Unsupported configuration format: {type(data).__name__}")

    if "mcpServers" in data:
        data = dict(data)
        servers = data.pop("mcpServers") or {}
        data.setdefault("mcp", {}).setdefault("servers", {}).update(servers)
    return data


def _load_from_env() -> Dict[str, Any]:
    """
    Load configuration from environment variables.

    Returns:
        Dict with configuration loaded from environment variables.
    """
    config: Dict[str, Any] = {}

    provider = os.environ.get("LLM_PROVIDER")
    _set_nested_dict(config, ["llm", "provider"], provider)
    if provider:
        _set_nested_dict(config, ["llm", "model"], get_model_override(provider))

    timeout_ms = os.environ.get("MCP_TIMEOUT_MS")
    if timeout_ms:
        _set_nested_dict(config, ["mcp", "timeout_seconds"], int(timeout_ms) / 1000)

    _set_nested_dict(config, ["logging", "level"], os.environ.get("LOG_LEVEL"))
    _set_nested_dict(config, ["logging", "file_path"], os.environ.get("LOG_FILE"))

    return config


def _set_nested_dict(d: Dict[str, Any], path: List[str], value: Any) -> None:
    """
    Set a value in a nested dictionary based on a path.
    """
    if value is None:
        return

    if len(path) == 1:
        d[path[0]] = value
        return

    if path[0] not in d:
        d[path[0]] = {}

    _set_nested_dict(d[path[0]], path[1:], value)


def _merge_dicts(target: Dict, source: Dict) -> None:
    """
    Recursively merge source dictionary into target dictionary.
    Values in source will override values in target.
    """
    for key, value in source.items():
        if key in target and isinstance(target[key], dict) and isinstance(value, dict):
            _merge_dicts(target[key], value)
        else:
            target[key] = value
