# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Layered configuration for samoc.

Sources, lowest priority first:

1. packaged defaults (``samoc/resources/samoc-defaults.yaml``)
2. the configuration file (YAML, or TOML by suffix)
3. profile overlays next to it (``samoc-<profile>.yaml``)
4. environment variables: ``samoc.saga.disable-rollback`` is read from
   ``SAMOC_SAGA_DISABLE_ROLLBACK``

String values may reference ``${NAME}`` or ``${NAME:default}``; ``NAME`` is
looked up in the environment first, then as a dotted configuration key.
"""

from __future__ import annotations

import dataclasses
import importlib.resources
import os
import re
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar, cast, get_type_hints

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

T = TypeVar("T")

ENV_PREFIX = "SAMOC_"
DEFAULTS_RESOURCE = "samoc-defaults.yaml"

_PREFIX_ATTR = "__samoc_config_prefix__"
_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_MAX_NESTING = 10
_MISSING = object()
_TRUE = frozenset({"true", "1", "yes", "on"})


def config_properties(prefix: str) -> Callable[[type[T]], type[T]]:
    """Declare the configuration section a pydantic model or dataclass binds to.

    Usage:
        @config_properties(prefix="samoc.saga")
        class SagaProperties(BaseModel):
            disable_rollback: bool = False
    """

    def mark(cls: type[T]) -> type[T]:
        setattr(cls, _PREFIX_ATTR, prefix)
        return cls

    return mark


def merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively overlay *overlay* on *base*; non-dict values replace."""
    merged = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        merged[key] = merge(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def read_file(path: Path) -> dict[str, Any]:
    if path.suffix == ".toml":
        return tomllib.loads(path.read_text()) or {}
    return yaml.safe_load(path.read_text()) or {}


def read_defaults() -> dict[str, Any]:
    resource = importlib.resources.files("samoc.resources").joinpath(DEFAULTS_RESOURCE)
    return yaml.safe_load(resource.read_text()) or {}


def _walk(data: Any, key: str) -> Any:
    for part in key.split("."):
        if not isinstance(data, dict) or part not in data or data[part] is None:
            return _MISSING
        data = data[part]
    return data


class Config:
    """Read-only view over merged configuration data."""

    def __init__(self, data: dict[str, Any] | None = None, sources: list[str] | None = None) -> None:
        self._data: dict[str, Any] = data or {}
        self._sources = sources or []

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        active_profiles: list[str] | None = None,
        load_defaults: bool = True,
    ) -> Config:
        """Load *path* and its profile overlays over the packaged defaults.

        A missing file is not an error: the defaults (and the environment)
        still apply.
        """
        path = Path(path)
        layers: list[tuple[str, dict[str, Any]]] = []
        if load_defaults:
            layers.append((f"{DEFAULTS_RESOURCE} (defaults)", read_defaults()))
        if path.is_file():
            layers.append((str(path), read_file(path)))
            for profile in active_profiles or ():
                overlay = path.with_name(f"{path.stem}-{profile}{path.suffix}")
                if overlay.is_file():
                    layers.append((f"{overlay} (profile: {profile})", read_file(overlay)))

        data: dict[str, Any] = {}
        for _, layer in layers:
            data = merge(data, layer)
        return cls(data, [source for source, _ in layers])

    @property
    def loaded_sources(self) -> list[str]:
        return list(self._sources)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    @staticmethod
    def env_key(key: str) -> str:
        return ENV_PREFIX + re.sub(r"[.-]", "_", key.removeprefix("samoc.")).upper()

    def get(self, key: str, default: Any = None) -> Any:
        override = os.environ.get(self.env_key(key))
        if override is not None:
            return override
        value = _walk(self._data, key)
        if value is _MISSING:
            return default
        return self._resolve(value) if isinstance(value, str) else value

    def get_section(self, prefix: str) -> dict[str, Any]:
        """The nested dict under *prefix*, with leaves resolved through :meth:`get`.

        Environment overrides of existing leaves are therefore visible to
        :meth:`bind`.
        """
        section = _walk(self._data, prefix)
        if not isinstance(section, dict):
            return {}
        resolved: dict[str, Any] = {}
        for name, value in section.items():
            key = f"{prefix}.{name}"
            if isinstance(value, dict):
                resolved[name] = self.get_section(key)
            else:
                found = self.get(key)
                resolved[name] = value if found is None else found
        return resolved

    def bind(self, target: type[T]) -> T:
        """Build *target* from the section named by its ``@config_properties`` prefix."""
        prefix = getattr(target, _PREFIX_ATTR, None)
        if prefix is None:
            raise ValueError(f"{target.__name__} is not decorated with @config_properties")
        values = {name.replace("-", "_"): value for name, value in self.get_section(prefix).items()}

        if issubclass(target, BaseModel):
            try:
                return cast(T, target.model_validate(values))
            except ValidationError as exc:
                raise ValueError(f"Invalid configuration for {target.__name__} under '{prefix}':\n{exc}") from exc
        return _bind_dataclass(target, values)

    def _resolve(self, value: str, depth: int = 0) -> str:
        if "${" not in value:
            return value
        if depth > _MAX_NESTING:
            raise ValueError(f"Placeholders nested too deeply in '{value}'")

        def substitute(match: re.Match[str]) -> str:
            name, _, fallback = match.group(1).partition(":")
            from_env = os.environ.get(name)
            if from_env is not None:
                return from_env
            found = _walk(self._data, name)
            if found is not _MISSING:
                return self._resolve(str(found), depth + 1)
            if ":" in match.group(1):
                return fallback
            raise ValueError(f"Cannot resolve '${{{match.group(1)}}}' from the environment or configuration")

        return _PLACEHOLDER.sub(substitute, value)


def _bind_dataclass(target: type[T], values: dict[str, Any]) -> T:
    hints = get_type_hints(target)
    kwargs: dict[str, Any] = {}
    for fld in dataclasses.fields(target):  # type: ignore[arg-type]
        if fld.name not in values:
            continue
        value = values[fld.name]
        if isinstance(value, str):
            if hints.get(fld.name) is bool:
                value = value.lower() in _TRUE
            elif hints.get(fld.name) is int:
                value = int(value)
        kwargs[fld.name] = value
    return target(**kwargs)
