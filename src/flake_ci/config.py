"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "FLAKE_CI_SETTINGS_FILE"

EvalErrorPolicy = Literal["degrade", "fail"]


class ProjectConfig(BaseModel):
    """Project metadata settings."""

    name: str = "flake_ci"
    env: str = "dev"


class EvaluatorConfig(BaseModel):
    """How the external build-graph evaluator is invoked."""

    command: str = "nix"
    flake_ref: str = "."
    extra_args: list[str] = Field(default_factory=list)
    skip_token: str = Field(default="SKIPPED", min_length=1, pattern=r"^[^.]+$")
    store_prefix: str = Field(default="/nix/store/", min_length=1)


class DiscoveryConfig(BaseModel):
    """Discovery behavior switches."""

    on_eval_error: EvalErrorPolicy = "degrade"


class CacheConfig(BaseModel):
    """Binary cache endpoint and credentials."""

    endpoint: str | None = None
    auth_token: SecretStr | None = None
    request_timeout_seconds: float | None = Field(default=None, gt=0.0)


class PipelineConfig(BaseModel):
    """Worker pool sizes for the verification pipeline."""

    resolve_parallelism: int = Field(default=4, ge=1)
    verify_parallelism: int = Field(default=16, ge=1)


class LoggingConfig(BaseModel):
    """Diagnostic logging settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Path | None = None


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    evaluator: EvaluatorConfig = Field(default_factory=EvaluatorConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="FLAKE_CI_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a nested dictionary with secrets masked."""

        return self.model_dump(mode="json")

    def auth_token_value(self) -> str | None:
        """Return the raw cache credential, if one is configured."""

        if self.cache.auth_token is None:
            return None
        return self.cache.auth_token.get_secret_value()


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DEFAULT_SETTINGS_FILE).exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    AppSettings._yaml_file_override = resolve_settings_file(config_file)
    try:
        return AppSettings()
    finally:
        AppSettings._yaml_file_override = None
