from __future__ import annotations
import copy
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Mapping, TypeAlias


ConfigScalar: TypeAlias = str | int | float | bool | None
ConfigValue: TypeAlias = (
    ConfigScalar | dict[str, "ConfigValue"] | list["ConfigValue"]
)


class ConfigPreprocessor(ABC):
    """
    Transforms raw config structures (dict/list/str) BEFORE pydantic validation.

    Examples:
        - Resolve ${ENV_VAR} placeholders
        - Apply overlays (base.yaml + env.yaml)
        - Fill derived defaults that are easier to pre-parse
    """

    @abstractmethod
    def process(self, data: ConfigValue) -> ConfigValue: ...


class EnvironmentPreprocessor(ConfigPreprocessor):
    """
    Resolves ${NAME} and ${NAME:-default} placeholders from the environment.
    A placeholder without a default whose variable is unset raises KeyError,
    so a missing secret fails at load time rather than at the first request.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ
        self._env_pattern = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

    def _replace_env(self, s: str) -> str:
        def replace(m: re.Match) -> str:
            name, default = m.groups()
            if name in self._environ:
                return self._environ[name]
            if default is not None:
                return default
            raise KeyError(f"Environment variable {name} referenced in config is not set")

        return self._env_pattern.sub(replace, s)

    def process(self, data: ConfigValue) -> ConfigValue:
        if isinstance(data, dict):
            return {k: self.process(v) for k, v in data.items()}

        if isinstance(data, list):
            return [self.process(v) for v in data]

        if isinstance(data, str):
            return self._replace_env(data)

        return data


class OverlayPreprocessor(ConfigPreprocessor):
    """Deep-merges an overlay mapping on top of the loaded config."""

    def __init__(self, overlay: Mapping[str, Any]) -> None:
        self._overlay = dict(overlay)

    @classmethod
    def _merge(cls, base: Any, overlay: Any) -> Any:
        if isinstance(base, dict) and isinstance(overlay, dict):
            merged = dict(base)
            for key, value in overlay.items():
                merged[key] = cls._merge(base.get(key), value)
            return merged
        return overlay

    def process(self, data: ConfigValue) -> ConfigValue:
        return self._merge(data or {}, self._overlay)


class EnvironmentOverridePreprocessor(ConfigPreprocessor):
    """
    Fills config paths from named environment variables. A path the config
    already sets explicitly is left alone.

        EnvironmentOverridePreprocessor({"USERVAULT_API_BASE_URL": "base_url"})
    """

    def __init__(self, variables: Mapping[str, str], environ: Mapping[str, str] | None = None) -> None:
        self._variables = dict(variables)
        self._environ = environ if environ is not None else os.environ

    def process(self, data: ConfigValue) -> ConfigValue:
        result = copy.deepcopy(data) if data else {}
        for name, path in self._variables.items():
            value = self._environ.get(name)
            if not value:
                continue

            *parents, leaf = path.split(".")
            node = result
            for part in parents:
                node = node.setdefault(part, {})
                if not isinstance(node, dict):
                    break
            else:
                node.setdefault(leaf, value)
        return result
