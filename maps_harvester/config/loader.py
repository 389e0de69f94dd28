"""Configuration loading helpers for maps-harvester."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import GlobalConfig, RunConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
GLOBAL_CONFIG_FILENAME = "global_config.yaml"
PROFILE_SUFFIX = ".yaml"


def _slugify(name: str) -> str:
    return "".join(ch.lower() if ch.isalnum() else "-" for ch in name).strip("-")


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def validate_run_config(payload: dict[str, Any]) -> RunConfig:
    """Build a ``RunConfig`` or raise ``ConfigurationError`` with field details."""

    try:
        return RunConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid run configuration: {_format_validation_error(exc)}") from exc


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    outputs_dir: Path | None = None
    profiles_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get("MAPS_HARVESTER_HOME")
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.profiles_dir = (self.data_dir / "profiles").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.outputs_dir, self.profiles_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def global_config_path(self) -> Path:
        return self.data_dir / GLOBAL_CONFIG_FILENAME


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._global_cache: GlobalConfig | None = None

    # ------------------------------------------------------------------
    # Global configuration helpers
    # ------------------------------------------------------------------
    def load_global_config(self) -> GlobalConfig:
        if self._global_cache is not None:
            return self._global_cache
        path = self.locator.global_config_path()
        if path.exists():
            payload = _read_file(path)
            try:
                global_cfg = GlobalConfig.model_validate(payload)
            except ValidationError as exc:
                raise ConfigurationError(
                    f"Invalid global configuration {path}: {_format_validation_error(exc)}"
                ) from exc
        else:
            global_cfg = GlobalConfig(
                outputs_dir=self.locator.outputs_dir,
                profiles_dir=self.locator.profiles_dir,
            )
            self.save_global_config(global_cfg)
        self._global_cache = global_cfg
        return global_cfg

    def save_global_config(self, config: GlobalConfig) -> None:
        path = self.locator.global_config_path()
        _write_file(path, config.model_dump(mode="json"))
        self._global_cache = config

    def resolve_dir(self, directory: Path) -> Path:
        """Anchor relative directories from the global config at the project root."""

        if directory.is_absolute():
            return directory
        return (self.locator.project_root / directory).resolve()

    # ------------------------------------------------------------------
    # Run profiles
    # ------------------------------------------------------------------
    def profile_path(self, profile_name: str) -> Path:
        return self.locator.profiles_dir / f"{_slugify(profile_name)}{PROFILE_SUFFIX}"

    def list_profile_files(self) -> Iterable[Path]:
        for path in sorted(self.locator.profiles_dir.glob("*")):
            if path.is_file() and path.suffix in CONFIG_EXTENSIONS:
                yield path

    def list_profiles(self) -> list[RunConfig]:
        return [self.load_profile(path) for path in self.list_profile_files()]

    def load_profile(self, identifier: str | Path) -> RunConfig:
        path = identifier if isinstance(identifier, Path) else self.profile_path(identifier)
        if not path.exists():
            raise FileNotFoundError(f"Run profile not found: {identifier}")
        return validate_run_config(_read_file(path))

    def save_profile(self, config: RunConfig) -> Path:
        path = self.profile_path(config.run_name)
        _write_file(path, config.model_dump(mode="json"))
        return path

    def import_profile(self, source: Path, run_name: str | None = None) -> tuple[RunConfig, Path]:
        """Validate a YAML/JSON run file and store it as a named profile."""

        if not source.exists():
            raise FileNotFoundError(f"Run file not found: {source}")
        payload = _read_file(source)
        if run_name:
            payload["run_name"] = run_name
        config = validate_run_config(payload)
        return config, self.save_profile(config)

    def delete_profile(self, profile_name: str) -> bool:
        path = self.profile_path(profile_name)
        if path.exists():
            path.unlink()
            return True
        return False


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository", "validate_run_config"]
