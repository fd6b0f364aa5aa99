# src/errorrelay/core/config.py
"""
Configuration schema, loading and the runtime session for errorrelay.

Uses Pydantic for validation and Dynaconf for multi-source loading.
RelaySettings are frozen (immutable) after construction. SessionConfig is the
mutable per-process session derived from them: flags may be assigned at
startup, and the one-shot pending metadata slot changes through
configure() calls.
"""

import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from errorrelay.contracts.enums import PeerRole
from errorrelay.contracts.errors import ConfigurationMisuseError

DEFAULT_SINK_URL = "https://api.rollbar.com/api/1/item/"
DEFAULT_TOKEN_HEADER = "X-Access-Token"

# A "Players.<name>." path segment. Player names are letters, digits and
# underscores.
DEFAULT_PLAYER_PATTERN = r"Players\.[A-Za-z0-9_]+\."


class AuthSettings(BaseModel):
    """Credentials for the remote sink.

    Only the authority ever talks to the sink, so only the server-scoped
    token is needed.
    """

    model_config = {"frozen": True}

    server_token: str = Field(default="", description="Server-scoped access token for the sink")


class SinkSettings(BaseModel):
    """Remote ingestion endpoint configuration.

    Example YAML:
        sink:
          url: https://api.rollbar.com/api/1/item/
          request_timeout_seconds: 10
          dry_run: false
    """

    model_config = {"frozen": True}

    url: str = Field(default=DEFAULT_SINK_URL, description="POST endpoint of the ingestion API")
    token_header: str = Field(default=DEFAULT_TOKEN_HEADER, description="Header carrying the access token")
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for each HTTP attempt")
    dry_run: bool = Field(default=False, description="Skip the network call and report success")

    @field_validator("url")
    @classmethod
    def validate_url_scheme(cls, v: str) -> str:
        """Sink URL must be http(s)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"sink url must start with http:// or https://, got {v!r}")
        return v


class DeliverySettings(BaseModel):
    """Background delivery queue configuration."""

    model_config = {"frozen": True}

    queue_size: int = Field(default=1000, gt=0, description="Maximum events waiting for delivery")
    enqueue_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long a full queue may block the pipeline before the event is dropped",
    )


class FlagSettings(BaseModel):
    """Behaviour flags for the relay session.

    Example YAML:
        flags:
          ignore_duplicates: true
          generalize_client_errors: true
          manual_mode: false
          diagnostic_host: false
          ignore_in_diagnostic_host: true
    """

    model_config = {"frozen": True}

    ignore_duplicates: bool = Field(default=False, description="Drop messages already relayed this session")
    generalize_client_errors: bool = Field(
        default=False,
        description="Collapse per-player path segments before deduplication",
    )
    manual_mode: bool = Field(default=False, description="Do not listen to the host log stream")
    diagnostic_host: bool = Field(default=False, description="Process runs in a non-production diagnostic host")
    ignore_in_diagnostic_host: bool = Field(
        default=False,
        description="Disable the relay entirely when running in a diagnostic host",
    )
    player_pattern: str = Field(
        default=DEFAULT_PLAYER_PATTERN,
        description="Regex matching the per-player segment replaced during generalization",
    )

    @field_validator("player_pattern")
    @classmethod
    def validate_player_pattern(cls, v: str) -> str:
        """Pattern must compile and must not match the empty string."""
        try:
            compiled = re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid player_pattern: {e}") from e
        if compiled.fullmatch("") is not None:
            raise ValueError("player_pattern must not match the empty string")
        return v


class RelaySettings(BaseModel):
    """Top-level errorrelay configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    role: PeerRole = Field(default=PeerRole.AUTHORITY, description="Role of this process")
    environment: str = Field(default="production", min_length=1, description="Default event environment")
    build: str = Field(default="0", description="Build/version identifier added to default metadata")
    instance_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        min_length=1,
        description="Identifier of this process, added to default metadata as server-id",
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra default metadata")
    auth: AuthSettings = Field(default_factory=AuthSettings)
    sink: SinkSettings = Field(default_factory=SinkSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    flags: FlagSettings = Field(default_factory=FlagSettings)


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Lower-case mapping keys recursively (Dynaconf upper-cases env overrides)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> RelaySettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (ERRORRELAY_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: ERRORRELAY_FLAGS__IGNORE_DUPLICATES=true
    for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated RelaySettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="ERRORRELAY",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic.
    # User metadata keys are case-sensitive and pass through untouched.
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): (v if k == "METADATA" else _lower_keys(v))
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }

    raw_config = _expand_env_vars(raw_config)

    return RelaySettings(**raw_config)


def validate_metadata(metadata: Any, *, operation: str = "configure") -> dict[str, Any]:
    """Validate a metadata mapping passed to configure().

    Args:
        metadata: Candidate metadata mapping
        operation: Call name used in the error message

    Returns:
        A shallow dict copy of the mapping

    Raises:
        ConfigurationMisuseError: If metadata is missing, empty, not a
            mapping, or has non-string keys
    """
    if metadata is None:
        raise ConfigurationMisuseError(operation, "metadata is required")
    if not isinstance(metadata, Mapping):
        raise ConfigurationMisuseError(operation, f"metadata must be a mapping, got {type(metadata).__name__}")
    if not metadata:
        raise ConfigurationMisuseError(operation, "metadata must contain data")
    bad_keys = [k for k in metadata if not isinstance(k, str)]
    if bad_keys:
        raise ConfigurationMisuseError(operation, f"metadata keys must be strings, got {bad_keys!r}")
    return dict(metadata)


@dataclass
class SessionConfig:
    """Mutable per-process relay session.

    Built once at startup (usually via from_settings) before any router
    activity. Flags may be assigned directly at startup; afterwards only the
    pending metadata slot changes.

    Thread Safety:
        NOT thread-safe. RelayContext serializes access to the pending
        slot under its lock.
    """

    environment: str
    default_metadata: dict[str, Any]
    server_token: str = ""
    sink_url: str = DEFAULT_SINK_URL
    token_header: str = DEFAULT_TOKEN_HEADER
    request_timeout_seconds: float = 10.0
    dry_run: bool = False
    ignore_duplicates: bool = False
    generalize_client_errors: bool = False
    manual_mode: bool = False
    diagnostic_host: bool = False
    ignore_in_diagnostic_host: bool = False
    player_pattern: str = DEFAULT_PLAYER_PATTERN
    queue_size: int = 1000
    enqueue_timeout_seconds: float = 30.0
    _pending_metadata: dict[str, Any] | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "SessionConfig":
        """Build a session from validated settings.

        Default metadata is the configured extra metadata plus "build" and
        "server-id"; the latter two always win.
        """
        default_metadata: dict[str, Any] = {
            **settings.metadata,
            "build": settings.build,
            "server-id": settings.instance_id,
        }
        return cls(
            environment=settings.environment,
            default_metadata=default_metadata,
            server_token=settings.auth.server_token,
            sink_url=settings.sink.url,
            token_header=settings.sink.token_header,
            request_timeout_seconds=settings.sink.request_timeout_seconds,
            dry_run=settings.sink.dry_run,
            ignore_duplicates=settings.flags.ignore_duplicates,
            generalize_client_errors=settings.flags.generalize_client_errors,
            manual_mode=settings.flags.manual_mode,
            diagnostic_host=settings.flags.diagnostic_host,
            ignore_in_diagnostic_host=settings.flags.ignore_in_diagnostic_host,
            player_pattern=settings.flags.player_pattern,
            queue_size=settings.delivery.queue_size,
            enqueue_timeout_seconds=settings.delivery.enqueue_timeout_seconds,
        )

    @property
    def disabled(self) -> bool:
        """True when running in a diagnostic host that should be ignored."""
        return self.diagnostic_host and self.ignore_in_diagnostic_host

    @property
    def pending_metadata(self) -> dict[str, Any] | None:
        """The one-shot metadata waiting for the next manual event, or None."""
        return self._pending_metadata

    def set_pending_metadata(self, metadata: Mapping[str, Any]) -> None:
        """Store metadata for the next accepted manual event, replacing any pending value."""
        self._pending_metadata = validate_metadata(metadata)

    def take_pending_metadata(self) -> dict[str, Any] | None:
        """Return the pending metadata and reset the slot to unset."""
        pending = self._pending_metadata
        self._pending_metadata = None
        return pending
