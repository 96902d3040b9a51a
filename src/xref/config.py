"""Configuration management for xref.

Settings are read from the YAML file `.xref` in the repository root:

```yaml
project:
  name: my-project
  source_code_dirs: [src]
  exclude_paths: [src/vendor]
xref:
  project_check: true
  storage_manager: sqlite   # sqlite, memory or none
  data_dir: .xref-data
lint:
  report_level: warning
  ignore_errors: [xr011]
  ignore_missing_class: [PHPUnit\\Framework\\TestCase]
ci:
  source_code_manager: git
git:
  repository_dir: .
```
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from xref.errors import ConfigurationError
from xref.git_scm import GitSourceCodeManager
from xref.models import Severity
from xref.source_code_manager import SourceCodeManager
from xref.storage import MemoryStorage, PersistentStorage, SqliteStorage

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".xref"

REPORT_LEVELS = {
    "error": Severity.ERROR,
    "errors": Severity.ERROR,
    "warning": Severity.WARNING,
    "warnings": Severity.WARNING,
    "notice": Severity.NOTICE,
    "notices": Severity.NOTICE,
}

STORAGE_MANAGERS = ("sqlite", "memory", "none")
SOURCE_CODE_MANAGERS = ("git",)


@dataclass
class ProjectConfig:
    name: str = ""
    source_code_dirs: list[str] = field(default_factory=lambda: ["."])
    exclude_paths: list[str] = field(default_factory=list)
    source_url: str = ""


@dataclass
class EngineConfig:
    project_check: bool = True
    storage_manager: str = "sqlite"
    data_dir: str = ".xref-data"


@dataclass
class LintConfig:
    report_level: str = "warnings"
    ignore_errors: list[str] = field(default_factory=list)
    ignore_missing_class: list[str] = field(default_factory=list)
    plugins: list[str] | None = None  # None enables every built-in plugin


@dataclass
class CiConfig:
    source_code_manager: str = "git"


@dataclass
class GitConfig:
    repository_dir: str = "."


@dataclass
class XRefConfig:
    """All settings, one attribute per section of the config file."""
    project: ProjectConfig = field(default_factory=ProjectConfig)
    xref: EngineConfig = field(default_factory=EngineConfig)
    lint: LintConfig = field(default_factory=LintConfig)
    ci: CiConfig = field(default_factory=CiConfig)
    git: GitConfig = field(default_factory=GitConfig)

    @property
    def report_level(self) -> Severity:
        return parse_report_level(self.lint.report_level)

    def to_dict(self) -> dict[str, Any]:
        result = {}
        for section in fields(self):
            values = getattr(self, section.name)
            result[section.name] = {f.name: getattr(values, f.name) for f in fields(values)}
        return result


def parse_report_level(value: str | int) -> Severity:
    """Turn 'errors', 'warning', 'notices' or a severity number into a Severity.

    Raises:
        ConfigurationError: If the value isn't a known level.
    """
    if isinstance(value, int):
        try:
            return Severity(value)
        except ValueError as e:
            raise ConfigurationError(f"Unknown report level: {value}") from e
    text = str(value).strip().lower()
    if text in REPORT_LEVELS:
        return REPORT_LEVELS[text]
    if text.isdigit():
        return parse_report_level(int(text))
    raise ConfigurationError(
        f"Unknown report level: {value!r}; use errors, warnings, notices or a number"
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    return section if isinstance(section, dict) else {}


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def config_from_dict(data: dict[str, Any]) -> XRefConfig:
    """Build an XRefConfig from parsed YAML; unknown keys are ignored."""
    config = XRefConfig()
    for section in fields(config):
        values = _section(data, section.name)
        target = getattr(config, section.name)
        for key, value in values.items():
            _set_value(target, str(key).replace("-", "_"), value)
    return config


def _set_value(target: Any, key: str, value: Any) -> None:
    known = {f.name: f for f in fields(target)}
    if key not in known:
        logger.warning(f"Ignoring unknown config key {type(target).__name__}.{key}")
        return
    current = getattr(target, key)
    if isinstance(current, bool):
        value = _as_bool(value)
    elif isinstance(current, list) or (key == "plugins" and value is not None):
        value = _as_list(value)
    elif isinstance(current, str):
        value = str(value)
    setattr(target, key, value)


def load_config(repo_root: Path | None = None, config_path: Path | None = None) -> XRefConfig:
    """Load configuration from the .xref file in repository root.

    Args:
        repo_root: Path to repository root. If None, uses current directory.
        config_path: Explicit config file; overrides repo_root/.xref

    Returns:
        XRefConfig with loaded or default values.

    Notes:
        If the file doesn't exist or can't be parsed, returns default config.
    """
    if config_path is None:
        if repo_root is None:
            repo_root = Path.cwd()
        config_path = repo_root / CONFIG_FILE_NAME

    if not config_path.exists():
        return XRefConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Can't read {config_path}, using defaults: {e}")
        return XRefConfig()

    if not isinstance(data, dict):
        return XRefConfig()
    return config_from_dict(data)


def apply_overrides(config: XRefConfig, overrides: list[str]) -> XRefConfig:
    """Apply command line overrides of the form section.key=value.

    A list value may be given comma-separated: lint.ignore-errors=xr011,xr021

    Raises:
        ConfigurationError: If an override is malformed or names an unknown key.
    """
    for override in overrides:
        name, sep, value = override.partition("=")
        section_name, dot, key = name.strip().partition(".")
        if not sep or not dot:
            raise ConfigurationError(f"Malformed override {override!r}; expected section.key=value")
        section_name = section_name.replace("-", "_")
        key = key.replace("-", "_")
        section = getattr(config, section_name, None)
        if section is None or section_name not in {f.name for f in fields(config)}:
            raise ConfigurationError(f"Unknown config section {section_name!r}")
        if key not in {f.name for f in fields(section)}:
            raise ConfigurationError(f"Unknown config key {section_name}.{key}")
        current = getattr(section, key)
        if isinstance(current, list) or key == "plugins":
            _set_value(section, key, [v.strip() for v in value.split(",") if v.strip()])
        else:
            _set_value(section, key, value.strip())
    return config


def validate_config(config: XRefConfig) -> None:
    """Check values that would otherwise fail halfway through a run.

    Raises:
        ConfigurationError: On an unknown report level, storage or source code manager.
    """
    parse_report_level(config.lint.report_level)
    if config.xref.storage_manager not in STORAGE_MANAGERS:
        raise ConfigurationError(
            f"Unknown storage manager {config.xref.storage_manager!r}; "
            f"use one of {', '.join(STORAGE_MANAGERS)}"
        )
    if config.ci.source_code_manager not in SOURCE_CODE_MANAGERS:
        raise ConfigurationError(
            f"Unknown source code manager {config.ci.source_code_manager!r}"
        )


def default_config_text() -> str:
    """Content written by `xref-lint init`."""
    return yaml.safe_dump(XRefConfig().to_dict(), sort_keys=False)


def create_storage(config: XRefConfig, repo_root: Path) -> PersistentStorage | None:
    """Storage selected by xref.storage_manager; None disables caching.

    Raises:
        StorageError: If the sqlite database can't be opened.
    """
    manager = config.xref.storage_manager
    if manager == "sqlite":
        return SqliteStorage(repo_root / config.xref.data_dir)
    if manager == "memory":
        return MemoryStorage()
    return None


def create_source_code_manager(config: XRefConfig, repo_root: Path) -> SourceCodeManager:
    """Source code manager selected by ci.source_code_manager.

    Raises:
        SourceControlError: If the repository can't be opened.
    """
    return GitSourceCodeManager(repo_root / config.git.repository_dir)
