"""Configuration loading and credential resolution.

The configuration lives in a YAML file under the platform's
application directory (see :func:`click.get_app_dir`), e.g.
``~/.config/q/config.yaml`` on Linux.  The ``Q_CONFIG`` environment
variable points the tool at a different file.  The file is read once at
startup into a :class:`Config` instance which is then passed explicitly
to the provider and pipeline; nothing else in the package reads it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml

from .models import QcmdError

logger = logging.getLogger(__name__)

APP_NAME = "q"
CONFIG_ENV_VAR = "Q_CONFIG"
API_KEY_PLACEHOLDER = "sk-or-v1-..."

# Per-backend defaults.  ``api_key_env`` of ``None`` means the backend
# does not need a credential.
PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "openrouter": {
        "model": "anthropic/claude-3.5-sonnet",
        "base_url": "https://openrouter.ai/api/v1",
        "api_key_env": "OPENROUTER_API_KEY",
    },
    "lmstudio": {
        "model": "local-model",
        "base_url": "http://localhost:1234/v1",
        "api_key_env": None,
    },
    "ollama": {
        "model": "qwen2.5-coder:7b",
        "base_url": None,
        "api_key_env": None,
    },
}


class ConfigError(QcmdError):
    """Raised when the configuration file is unreadable or invalid."""


@dataclass
class ProviderConfig:
    name: str = "openrouter"
    model: str = PROVIDER_DEFAULTS["openrouter"]["model"]
    base_url: Optional[str] = PROVIDER_DEFAULTS["openrouter"]["base_url"]
    api_key: str = ""
    api_key_env: Optional[str] = PROVIDER_DEFAULTS["openrouter"]["api_key_env"]
    timeout: float = 30.0
    max_attempts: int = 2
    retry_backoff: float = 0.5

    @property
    def needs_credential(self) -> bool:
        return bool(self.api_key_env) or self.name == "openrouter"


@dataclass
class ExecutionConfig:
    auto_confirm: bool = False
    show_explanation: bool = True


@dataclass
class ContextConfig:
    include_shell_info: bool = True
    include_directory: bool = True
    # Overrides shell auto-detection, e.g. "powershell", "bash", "zsh".
    shell: Optional[str] = None


@dataclass
class Config:
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    context: ContextConfig = field(default_factory=ContextConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def config_path() -> Path:
    """Return the path to the configuration file."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path(click.get_app_dir(APP_NAME)) / "config.yaml"


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _as_bool(section: Dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def _as_number(section: Dict[str, Any], key: str, default: float, kind=float):
    value = section.get(key, default)
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number, got {value!r}") from None


def _backend_value(section: Dict[str, Any], name: str, key: str) -> Any:
    """Return ``key`` for backend ``name``.

    Missing values, and values that are another backend's defaults (left
    over after only ``name`` was edited), fall back to the defaults of
    ``name``.
    """
    default = PROVIDER_DEFAULTS[name][key]
    if key not in section:
        return default
    value = section[key]
    if key != "api_key_env" and not value:
        return default
    for other, defaults in PROVIDER_DEFAULTS.items():
        if other != name and value is not None and value == defaults[key] and value != default:
            return default
    return value


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Build a :class:`Config` from parsed YAML, filling in defaults."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a YAML mapping")

    prov = _section(data, "provider")
    name = str(prov.get("name") or "openrouter").strip().lower()
    if name not in PROVIDER_DEFAULTS:
        raise ConfigError(
            f"Unknown provider: {name}. Supported providers: {', '.join(sorted(PROVIDER_DEFAULTS))}"
        )
    max_attempts = _as_number(prov, "max_attempts", 2, int)
    provider = ProviderConfig(
        name=name,
        model=str(_backend_value(prov, name, "model") or ""),
        base_url=_backend_value(prov, name, "base_url") or None,
        api_key=str(prov.get("api_key") or ""),
        api_key_env=_backend_value(prov, name, "api_key_env"),
        timeout=_as_number(prov, "timeout", 30.0),
        max_attempts=min(max(max_attempts, 1), 5),
        retry_backoff=max(_as_number(prov, "retry_backoff", 0.5), 0.0),
    )

    exe = _section(data, "execution")
    execution = ExecutionConfig(
        auto_confirm=_as_bool(exe, "auto_confirm", False),
        show_explanation=_as_bool(exe, "show_explanation", True),
    )

    ctx = _section(data, "context")
    context = ContextConfig(
        include_shell_info=_as_bool(ctx, "include_shell_info", True),
        include_directory=_as_bool(ctx, "include_directory", True),
        shell=ctx.get("shell") or None,
    )
    return Config(provider=provider, execution=execution, context=context)


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Persist configuration to disk and return the path written."""
    cfg_path = path or config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    with cfg_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
    return cfg_path


def load_config(path: Optional[Path] = None) -> Config:
    """Load the YAML configuration, creating a default file if missing."""
    cfg_path = path or config_path()
    if not cfg_path.exists():
        config = Config(provider=ProviderConfig(api_key=API_KEY_PLACEHOLDER))
        save_config(config, cfg_path)
        click.echo(f"Created default config at: {cfg_path}", err=True)
        click.echo("Please edit this file to add your API key, or run 'q config'.", err=True)
        return config
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {cfg_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {cfg_path}: {exc}") from exc
    logger.debug("Loaded configuration from %s", cfg_path)
    return config_from_dict(data or {})


def get_provider_settings(config: Config) -> ProviderConfig:
    return config.provider


def resolve_credential(settings: ProviderConfig) -> Optional[str]:
    """Return the API key for ``settings`` or ``None`` if none is needed.

    The inline ``api_key`` wins unless it is empty or still the
    placeholder written into the default config; otherwise the
    environment variable named by ``api_key_env`` is consulted.

    :raises AuthError: when the backend needs a key and none is found.
    """
    from .providers import AuthError

    if not settings.needs_credential:
        return None
    key = settings.api_key.strip()
    if key and key != API_KEY_PLACEHOLDER:
        return key
    if settings.api_key_env:
        env_key = os.environ.get(settings.api_key_env, "").strip()
        if env_key:
            logger.debug("Using API key from $%s", settings.api_key_env)
            return env_key
    where = f" or set ${settings.api_key_env}" if settings.api_key_env else ""
    raise AuthError(
        f"{settings.name} API key not configured. Edit {config_path()}{where}."
    )


def configure_interactive(path: Optional[Path] = None) -> Path:
    """Prompt for provider settings and write them to the config file."""
    cfg_path = path or config_path()
    try:
        config = load_config(cfg_path)
    except ConfigError as exc:
        click.echo(f"Existing configuration ignored: {exc}", err=True)
        config = Config()

    name = click.prompt(
        "Provider",
        type=click.Choice(sorted(PROVIDER_DEFAULTS)),
        default=config.provider.name,
    )
    defaults = PROVIDER_DEFAULTS[name]
    current_model = config.provider.model if name == config.provider.name else defaults["model"]
    model = click.prompt("Model", default=current_model)
    provider = ProviderConfig(
        name=name,
        model=model,
        base_url=config.provider.base_url if name == config.provider.name else defaults["base_url"],
        api_key_env=defaults["api_key_env"],
        timeout=config.provider.timeout,
        max_attempts=config.provider.max_attempts,
        retry_backoff=config.provider.retry_backoff,
    )
    if provider.needs_credential:
        api_key = click.prompt(f"Enter your {name} API key", hide_input=True, default="", show_default=False)
        api_key = api_key.strip()
        if not api_key:
            raise ConfigError("API key cannot be empty.")
        provider.api_key = api_key
    config.provider = provider
    save_config(config, cfg_path)
    return cfg_path
