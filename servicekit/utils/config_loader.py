"""
Configuration Loader

Loads application configuration from YAML / TOML / JSON files, merges several
files in order, and overlays prefixed environment variables.

Precedence, lowest to highest:
    defaults  <  files (in the order they were added)  <  environment

Environment variables are only read when a prefix is set. With prefix ``APP``
and the default ``__`` separator, ``APP_DATABASE__PORT=5433`` overrides
``database.port``. JSON lists and objects (``[1, 2]``) are decoded; every
other value is passed on as a string and coerced by the target model, so
``8080`` fills an ``int`` field and stays ``"8080"`` for a ``str`` field.
"""

import copy
import json
import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from servicekit.core.exceptions import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigParseError,
    ConfigValidationError,
)
from servicekit.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
PathLike = Union[str, Path]


class ConfigFormat(Enum):
    """Supported configuration file formats."""

    YAML = "yaml"
    TOML = "toml"
    JSON = "json"

    @classmethod
    def from_extension(cls, path: PathLike) -> Optional["ConfigFormat"]:
        """Infer the format from a file extension, or ``None`` if unknown."""
        return _EXTENSIONS.get(Path(path).suffix.lower())


_EXTENSIONS = {
    ".yaml": ConfigFormat.YAML,
    ".yml": ConfigFormat.YAML,
    ".toml": ConfigFormat.TOML,
    ".json": ConfigFormat.JSON,
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into ``base`` recursively; nested mappings are merged, everything else replaced."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _set_path(target: Dict[str, Any], keys: List[str], value: Any) -> None:
    node = target
    for key in keys[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[keys[-1]] = value


def _parse_env_value(raw: str) -> Any:
    """Decode JSON lists and objects; scalars stay strings for the model to coerce."""
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    return value if isinstance(value, (list, dict)) else raw


def _read_file(path: Path, fmt: ConfigFormat) -> Dict[str, Any]:
    try:
        if fmt is ConfigFormat.TOML:
            with path.open("rb") as f:
                data = tomllib.load(f)
        else:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) if fmt is ConfigFormat.YAML else json.load(f)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigParseError.wrap(
            e, f"Failed to parse {fmt.value} config file: {path}", path=str(path)
        ) from e
    except OSError as e:
        raise ConfigLoadError.wrap(
            e, f"Failed to read config file: {path}", path=str(path)
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(
            f"Config file must contain a mapping at the top level: {path}",
            details={"path": str(path), "type": type(data).__name__},
        )
    return data


class ConfigBuilder:
    """
    Fluent builder for layered configuration.

    Example:
        config = (
            ConfigBuilder()
            .add_file("config.yaml")
            .add_file("config.local.toml")
            .with_env_prefix("APP")
            .with_default("port", 8080)
            .build(AppConfig)
        )
    """

    def __init__(self) -> None:
        self._files: List[Tuple[Path, Optional[ConfigFormat]]] = []
        self._env_prefix: Optional[str] = None
        self._env_separator = "__"
        self._ignore_missing = False
        self._defaults: Dict[str, Any] = {}

    def add_file(
        self, path: PathLike, format: Optional[ConfigFormat] = None
    ) -> "ConfigBuilder":
        """
        Add a configuration file.

        Args:
            path: File path
            format: File format; inferred from the extension when omitted
        """
        self._files.append((Path(path), format))
        return self

    def add_yaml_file(self, path: PathLike) -> "ConfigBuilder":
        return self.add_file(path, ConfigFormat.YAML)

    def add_toml_file(self, path: PathLike) -> "ConfigBuilder":
        return self.add_file(path, ConfigFormat.TOML)

    def add_json_file(self, path: PathLike) -> "ConfigBuilder":
        return self.add_file(path, ConfigFormat.JSON)

    def with_env_prefix(self, prefix: str) -> "ConfigBuilder":
        """Enable the environment overlay for variables starting with ``<prefix>_``."""
        self._env_prefix = prefix
        return self

    def with_env_separator(self, separator: str) -> "ConfigBuilder":
        """Set the nesting separator used in environment variable names (default ``__``)."""
        if not separator:
            raise ConfigLoadError("Environment separator must not be empty")
        self._env_separator = separator
        return self

    def ignore_missing_files(self, ignore: bool = True) -> "ConfigBuilder":
        self._ignore_missing = ignore
        return self

    def with_default(self, key: str, value: Any) -> "ConfigBuilder":
        """
        Add a default value.

        Args:
            key: Configuration key; dots address nested values (``database.port``)
            value: Default value
        """
        _set_path(self._defaults, key.split("."), value)
        return self

    def _file_layers(self) -> List[Dict[str, Any]]:
        layers = []
        for path, fmt in self._files:
            fmt = fmt or ConfigFormat.from_extension(path)
            if fmt is None:
                raise ConfigLoadError(
                    f"Cannot infer config format from file name: {path}",
                    details={"path": str(path)},
                )
            if not path.is_file():
                if self._ignore_missing:
                    logger.debug("Skipping missing config file: %s", path)
                    continue
                raise ConfigFileNotFoundError(
                    f"Config file not found: {path}", details={"path": str(path)}
                )
            layers.append(_read_file(path, fmt))
        return layers

    def _env_layer(self) -> Dict[str, Any]:
        if not self._env_prefix:
            return {}
        prefix = f"{self._env_prefix}_".lower()
        layer: Dict[str, Any] = {}
        for name, raw in os.environ.items():
            lowered = name.lower()
            if not lowered.startswith(prefix) or raw == "":
                continue
            keys = lowered[len(prefix):].split(self._env_separator.lower())
            if not all(keys):
                continue
            _set_path(layer, keys, _parse_env_value(raw))
        return layer

    def build_raw(self) -> Dict[str, Any]:
        """
        Merge all sources into a plain dictionary.

        Raises:
            ConfigFileNotFoundError: If a required file is missing
            ConfigLoadError: If a file format cannot be inferred or the file cannot be read
            ConfigParseError: If a file has invalid syntax
        """
        merged = copy.deepcopy(self._defaults)
        for layer in self._file_layers():
            _deep_merge(merged, layer)
        return _deep_merge(merged, self._env_layer())

    def build(self, model: Type[T]) -> T:
        """
        Merge all sources and validate them into ``model``.

        Args:
            model: A pydantic model, dataclass or any type pydantic can validate

        Raises:
            ConfigValidationError: If the merged data does not match ``model``
        """
        raw = self.build_raw()
        try:
            return TypeAdapter(model).validate_python(raw)
        except ValidationError as e:
            raise ConfigValidationError.wrap(
                e,
                f"Configuration does not match {getattr(model, '__name__', model)}: "
                f"{e.error_count()} error(s)",
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
                ],
            ) from e


class ConfigManager:
    """Shortcuts for common loading patterns."""

    @staticmethod
    def load_from_file(path: PathLike, model: Type[T]) -> T:
        return ConfigBuilder().add_file(path).build(model)

    @staticmethod
    def load_with_env(path: PathLike, env_prefix: str, model: Type[T]) -> T:
        return ConfigBuilder().add_file(path).with_env_prefix(env_prefix).build(model)

    @staticmethod
    def load_multiple(
        paths: List[PathLike], env_prefix: Optional[str], model: Type[T]
    ) -> T:
        """Load several files in priority order, skipping any that are missing."""
        builder = ConfigBuilder().ignore_missing_files(True)
        for path in paths:
            builder.add_file(path)
        if env_prefix:
            builder.with_env_prefix(env_prefix)
        return builder.build(model)

    @staticmethod
    def builder() -> ConfigBuilder:
        return ConfigBuilder()


def load_config(path: PathLike, model: Type[T]) -> T:
    """Load a single configuration file into ``model``."""
    return ConfigManager.load_from_file(path, model)


def load_config_with_env(path: PathLike, env_prefix: str, model: Type[T]) -> T:
    """Load a configuration file and overlay ``<env_prefix>_*`` variables."""
    return ConfigManager.load_with_env(path, env_prefix, model)


def get_config_paths(name: str, base_dir: Optional[PathLike] = None) -> List[Path]:
    """
    Candidate config file paths for ``name``, lowest priority first.

    Looks in ``base_dir`` (default: current directory) and its ``config/``
    subdirectory for ``.yaml``, ``.yml``, ``.toml`` and ``.json`` files.
    """
    root = Path(base_dir) if base_dir is not None else Path.cwd()
    extensions = ("yaml", "yml", "toml", "json")
    return [root / f"{name}.{ext}" for ext in extensions] + [
        root / "config" / f"{name}.{ext}" for ext in extensions
    ]


def auto_load_config(
    name: str,
    model: Type[T],
    env_prefix: Optional[str] = None,
    base_dir: Optional[PathLike] = None,
) -> T:
    """Discover ``name.*`` config files (see ``get_config_paths``) and load them."""
    return ConfigManager.load_multiple(get_config_paths(name, base_dir), env_prefix, model)
