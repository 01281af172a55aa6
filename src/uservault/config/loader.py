import json
import yaml
from typing import Any, Callable, Mapping
from pathlib import Path

from uservault.config.models.client import ENV_VARIABLES, ClientConfig
from uservault.config.preprocessor import ConfigPreprocessor, ConfigValue, EnvironmentOverridePreprocessor


PARSERS: dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


class ConfigLoader:
    """
    Load + preprocess + validate client configs from YAML/JSON.

    - Preprocessors run on raw data before Pydantic validation, in the
      order they were added.
    - from_env() additionally fills unset values from the USERVAULT_*
      variables after the other preprocessors ran.
    - Result is a fully validated ClientConfig
    """

    def __init__(self, preprocessors: list[ConfigPreprocessor] | None = None):
        self._preprocessors = preprocessors or []

    def add_preprocessor(self, preprocessor: ConfigPreprocessor) -> None:
        self._preprocessors.append(preprocessor)

    def from_yaml(self, source: str | Path) -> ClientConfig:
        return self._build(self._load(source, parser=yaml.safe_load))

    def from_json(self, source: str | Path) -> ClientConfig:
        return self._build(self._load(source, parser=json.loads))

    def from_file(self, path: str | Path) -> ClientConfig:
        """Pick the parser from the file suffix."""
        path = Path(path)
        parser = PARSERS.get(path.suffix.lower())
        if parser is None:
            raise ValueError(f"Unsupported config file type {path.suffix!r}; expected one of {sorted(PARSERS)}")
        return self._build(parser(path.read_text()))

    def from_dict(self, data: dict[str, Any]) -> ClientConfig:
        return self._build(data)

    def from_env(
        self,
        data: dict[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ClientConfig:
        return self._build(data, extra=[EnvironmentOverridePreprocessor(ENV_VARIABLES, environ)])

    def _load(
        self,
        source: str | Path,
        *,
        parser: Callable[[str], Any],
    ) -> ConfigValue:
        return parser(self._read_source(source))

    def _read_source(self, source: str | Path) -> str:
        """
        A Path is always read. A single-line string naming an existing file
        is read too; anything else is raw content.
        """
        if isinstance(source, Path):
            return source.read_text()

        if "\n" not in source and len(source) < 4096:
            p = Path(source)
            if p.is_file():
                return p.read_text()

        return source

    def _build(self, data: ConfigValue, extra: list[ConfigPreprocessor] | None = None) -> ClientConfig:
        data = data or {}
        for pre in [*self._preprocessors, *(extra or [])]:
            data = pre.process(data)

        if not isinstance(data, dict):
            raise ValueError(f"Client config must be a mapping, got {type(data).__name__}")
        return ClientConfig.model_validate(data)
