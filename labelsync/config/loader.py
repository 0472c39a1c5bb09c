"""TOML configuration loading for labelsync.

Layers ``default.toml`` and ``{LABELSYNC_ENV}.toml`` from the config
directory. Each layer's ``[[annotation.pairing]]`` table is checked as it is
read so a bad rule is reported against the file that holds it; the full
settings validation happens later in ``Settings``.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from labelsync.annotations.enums import IssueTag

CONFIG_DIR_ENV = "LABELSYNC_CONFIG_DIR"
ENVIRONMENT_ENV = "LABELSYNC_ENV"
DEFAULT_FILE = "default.toml"

_ISSUE_TAGS = frozenset(tag.value for tag in IssueTag)


class ConfigError(ValueError):
    """A configuration file is unreadable or holds an invalid value."""

    def __init__(self, message: str, source: Path | None = None) -> None:
        super().__init__(f"{source}: {message}" if source else message)
        self.source = source


def get_config_dir(start: Path | None = None) -> Path:
    """Locate the directory holding ``default.toml``.

    ``LABELSYNC_CONFIG_DIR`` wins; otherwise ``config/`` is searched for
    from ``start`` (the working directory) up to the filesystem root.

    Raises:
        FileNotFoundError: LABELSYNC_CONFIG_DIR points nowhere
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {override}")
        return path

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / "config"
        if (candidate / DEFAULT_FILE).is_file():
            return candidate
    return Path("config")


def get_environment() -> str:
    """Environment name from LABELSYNC_ENV, 'development' when unset."""
    return os.environ.get(ENVIRONMENT_ENV, "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Read one TOML file.

    Raises:
        FileNotFoundError: the file does not exist
        ConfigError: the file is not valid TOML
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with file_path.open("rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"invalid TOML: {e}", source=file_path) from e


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into a copy of base.

    Tables merge key by key. Arrays, including arrays of tables such as
    ``annotation.pairing``, are replaced whole: an environment that lists
    pairing rules defines the complete table.
    """
    result = base.copy()
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def check_pairing_table(config: dict[str, Any], source: Path | None = None) -> None:
    """Check the shape of ``annotation.pairing`` in one config layer.

    Every rule needs a known ``issue_tag`` and ``recovery_tag`` that differ,
    and an issue tag may belong to one recovery group only.

    Raises:
        ConfigError: naming the offending rule and file
    """
    annotation = config.get("annotation")
    if not isinstance(annotation, dict) or "pairing" not in annotation:
        return
    rules = annotation["pairing"]
    if not isinstance(rules, list):
        raise ConfigError("annotation.pairing must be an array of tables", source)

    recovery_of: dict[str, str] = {}
    for position, rule in enumerate(rules, start=1):
        where = f"annotation.pairing rule {position}"
        if not isinstance(rule, dict):
            raise ConfigError(f"{where} must be a table", source)
        issue = rule.get("issue_tag")
        recovery = rule.get("recovery_tag")
        for field, value in (("issue_tag", issue), ("recovery_tag", recovery)):
            if not isinstance(value, str) or value not in _ISSUE_TAGS:
                raise ConfigError(f"{where}: unknown {field} {value!r}", source)
        if issue == recovery:
            raise ConfigError(f"{where}: {issue!r} cannot recover itself", source)
        previous = recovery_of.setdefault(issue, recovery)
        if previous != recovery:
            raise ConfigError(
                f"{where}: {issue!r} is already paired with {previous!r}", source
            )


def load_config(
    config_dir: Path | None = None,
    environment: str | None = None,
) -> dict[str, Any]:
    """Load ``default.toml`` and overlay ``{environment}.toml`` when present.

    Raises:
        FileNotFoundError: default.toml is missing
        ConfigError: a layer is not valid TOML or has a bad pairing table
    """
    config_dir = config_dir or get_config_dir()
    environment = environment or get_environment()

    default_path = config_dir / DEFAULT_FILE
    if not default_path.exists():
        raise FileNotFoundError(
            f"Default configuration file not found: {default_path}. "
            f"Create config/{DEFAULT_FILE} or set {CONFIG_DIR_ENV}."
        )

    config = load_toml(default_path)
    check_pairing_table(config, default_path)

    env_path = config_dir / f"{environment}.toml"
    if env_path.exists():
        layer = load_toml(env_path)
        check_pairing_table(layer, env_path)
        config = deep_merge(config, layer)

    return config
