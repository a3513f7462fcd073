"""ProtoForge configuration.

Typed configuration for the generation pipeline and its front-ends. All
settings use Pydantic v2 models so they can be validated at construction time
and serialised to/from JSON or environment variables without boiler-plate.

The pipeline itself never reads global state: callers build a ``Settings``
(usually through ``ConfigStore``) and pass ``settings.provider`` and
``settings.output_dir`` explicitly.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from protoforge.utils import ensure_dir

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "protoforge" / "config.json"


class ProviderConfig(BaseModel):
    """Connection and sampling parameters for one AI provider."""

    provider_id: str = Field(default="ollama", description="Registered provider identifier")
    base_url: str | None = Field(default=None, description="Override for the provider's base URL")
    api_key: str | None = Field(default=None, description="API key / bearer token")
    model_name: str | None = Field(default=None, description="Model name; provider default if unset")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=4096, gt=0)
    timeout: int = Field(default=120, ge=1, description="Per-request timeout in seconds")


class WebConfig(BaseModel):
    """Settings for the web dashboard."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)
    auto_open: bool = Field(default=True, description="Open the dashboard after a CLI build")


class Settings(BaseModel):
    """Global ProtoForge settings.

    Holds every tuneable parameter. Instances are typically created once by
    the CLI entry point (via ``ConfigStore``) and then passed through the rest
    of the system.
    """

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    output_dir: Path = Field(default=Path("./protoforge-output"))
    web: WebConfig = Field(default_factory=WebConfig)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the settings to a JSON file, creating parent directories."""
        target = Path(path)
        ensure_dir(target.parent)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Settings":
        """Load previously-saved settings from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, base: "Settings | None" = None) -> "Settings":
        """Build ``Settings`` from ``PROTOFORGE_*`` environment variables.

        Recognised variables (all optional):
            PROTOFORGE_PROVIDER, PROTOFORGE_API_KEY, PROTOFORGE_BASE_URL,
            PROTOFORGE_MODEL, PROTOFORGE_TEMPERATURE, PROTOFORGE_MAX_TOKENS,
            PROTOFORGE_TIMEOUT, PROTOFORGE_OUTPUT_DIR, PROTOFORGE_WEB_PORT.

        Values not set in the environment are taken from *base* (or the
        defaults when *base* is ``None``).
        """
        base = base or cls()

        provider_kwargs: dict[str, Any] = {}
        for env_name, field in _PROVIDER_ENV.items():
            if os.environ.get(env_name):
                provider_kwargs[field] = os.environ[env_name]

        web_kwargs: dict[str, Any] = {}
        if os.environ.get("PROTOFORGE_WEB_PORT"):
            web_kwargs["port"] = int(os.environ["PROTOFORGE_WEB_PORT"])

        output_dir = base.output_dir
        if os.environ.get("PROTOFORGE_OUTPUT_DIR"):
            output_dir = Path(os.environ["PROTOFORGE_OUTPUT_DIR"])

        return cls(
            provider=ProviderConfig.model_validate({**base.provider.model_dump(), **provider_kwargs}),
            output_dir=output_dir,
            web=WebConfig.model_validate({**base.web.model_dump(), **web_kwargs}),
        )


_PROVIDER_ENV: dict[str, str] = {
    "PROTOFORGE_PROVIDER": "provider_id",
    "PROTOFORGE_API_KEY": "api_key",
    "PROTOFORGE_BASE_URL": "base_url",
    "PROTOFORGE_MODEL": "model_name",
    "PROTOFORGE_TEMPERATURE": "temperature",
    "PROTOFORGE_MAX_TOKENS": "max_output_tokens",
    "PROTOFORGE_TIMEOUT": "timeout",
}


# ---------------------------------------------------------------------------
# Key/value store
# ---------------------------------------------------------------------------

# Flat user-facing key -> (section, field) inside ``Settings``.
CONFIG_KEYS: dict[str, tuple[str | None, str]] = {
    "provider": ("provider", "provider_id"),
    "api_key": ("provider", "api_key"),
    "base_url": ("provider", "base_url"),
    "model": ("provider", "model_name"),
    "temperature": ("provider", "temperature"),
    "max_tokens": ("provider", "max_output_tokens"),
    "timeout": ("provider", "timeout"),
    "output_dir": (None, "output_dir"),
    "web_host": ("web", "host"),
    "web_port": ("web", "port"),
    "auto_open_web": ("web", "auto_open"),
}

SECRET_KEYS = frozenset({"api_key"})


class ConfigStore:
    """Persistent key/value view over a ``Settings`` JSON file.

    ``get``/``set`` use the flat keys in ``CONFIG_KEYS``. Every ``set`` is
    validated through Pydantic and written to disk immediately.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            path = os.environ.get("PROTOFORGE_CONFIG") or DEFAULT_CONFIG_PATH
        self.path = Path(path)
        self._settings = self._read()

    def _read(self) -> Settings:
        if not self.path.exists():
            return Settings()
        return Settings.load(self.path)

    @property
    def settings(self) -> Settings:
        """Stored settings with environment overrides applied."""
        return Settings.from_env(self._settings)

    @staticmethod
    def _resolve(key: str) -> tuple[str | None, str]:
        try:
            return CONFIG_KEYS[key]
        except KeyError:
            valid = ", ".join(sorted(CONFIG_KEYS))
            raise KeyError(f"Unknown configuration key '{key}'. Valid keys: {valid}") from None

    def get(self, key: str) -> Any:
        """Return the stored value for *key* (environment overrides ignored)."""
        section, field = self._resolve(key)
        target: BaseModel = self._settings if section is None else getattr(self._settings, section)
        return getattr(target, field)

    def set(self, key: str, value: Any) -> Any:
        """Validate and persist a new value for *key*; returns the coerced value.

        Raises:
            KeyError: If *key* is not a known configuration key.
            ValueError: If the value fails validation.
        """
        section, field = self._resolve(key)
        data = self._settings.model_dump()
        if section is None:
            data[field] = value
        else:
            data[section][field] = value
        try:
            updated = Settings.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid value for '{key}': {exc.errors()[0]['msg']}") from exc
        self._settings = updated
        self._settings.save(self.path)
        return self.get(key)

    def update(self, values: dict[str, Any]) -> None:
        """Set several keys at once."""
        for key, value in values.items():
            self.set(key, value)

    def reset(self) -> None:
        """Restore defaults and delete the stored file."""
        self._settings = Settings()
        if self.path.exists():
            self.path.unlink()

    def as_dict(self, mask_secrets: bool = True) -> dict[str, Any]:
        """Return every key with its stored value, masking secrets by default."""
        result: dict[str, Any] = {}
        for key in CONFIG_KEYS:
            value = self.get(key)
            if mask_secrets and key in SECRET_KEYS and value:
                value = "*****"
            result[key] = value
        return result
