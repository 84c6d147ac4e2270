import dataclasses
import json
import re
from pathlib import Path
from typing import Dict, Any, Type, TypeVar

from playback_loudness.components.playback_loudness.library.configuration.model.configuration import \
    PlaybackLoudnessConfigurationModel, PathConfig, AnalysisConfig, AdditionalConfiguration, DevelopmentConfig

T = TypeVar('T')

_PLACEHOLDER = re.compile(r"\{([^{}]+)}")

# JSON section name -> (model attribute, section dataclass)
_SECTIONS: Dict[str, tuple] = {
    "Path Configuration": ("paths", PathConfig),
    "Analysis Configuration": ("analysis", AnalysisConfig),
    "Development Configuration": ("development", DevelopmentConfig),
    "Additional Configuration": ("additional_config", AdditionalConfiguration),
}


class ConfigurationLoader:
    """
    Loads the playback loudness configuration.

    String values may reference other settings as `{Section/key}`. References are
    substituted until nothing changes, so chains resolve; unknown references are left as-is.
    """
    def __init__(self, configuration_path: Path):
        self._configuration_path: Path = Path(configuration_path)

        if not self._configuration_path.exists():
            raise ValueError(f"Configuration '{self._configuration_path}' does not exist.")
        if self._configuration_path.suffix != ".json":
            raise ValueError(f"Configuration '{self._configuration_path}' is not a .json file.")

    def get_configuration(self) -> PlaybackLoudnessConfigurationModel:
        try:
            raw = json.loads(self._configuration_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse JSON configuration '{self._configuration_path}': {e}") from e

        if not isinstance(raw, dict):
            raise ValueError(f"Configuration '{self._configuration_path}' must contain a JSON object.")

        resolved = self._resolve_placeholders(raw)

        sections = {
            attribute: self._build_section(resolved.get(section_name, {}), model_class)
            for section_name, (attribute, model_class) in _SECTIONS.items()
        }
        return PlaybackLoudnessConfigurationModel(**sections)

    @staticmethod
    def _build_section(data: Dict[str, Any], model_class: Type[T]) -> T:
        """Dashes in keys count as underscores. Unknown keys are ignored, missing keys use defaults."""
        fields = {f.name: f.type for f in dataclasses.fields(model_class)}
        kwargs: Dict[str, Any] = {}

        for key, value in data.items():
            name = key.replace('-', '_')
            field_type = fields.get(name)
            if field_type is None:
                continue

            if field_type is Path:
                value = Path(value).expanduser()
            elif field_type is float and isinstance(value, int) and not isinstance(value, bool):
                value = float(value)
            elif field_type is int and isinstance(value, float):
                if not value.is_integer():
                    raise ValueError(f"{model_class.__name__}.{name} must be a whole number, got {value}.")
                value = int(value)
            kwargs[name] = value

        try:
            return model_class(**kwargs)
        except TypeError as e:
            raise ValueError(f"Invalid settings for {model_class.__name__}: {e}") from e

    @staticmethod
    def _lookup(config: Dict[str, Any], reference: str) -> Any:
        node: Any = config
        for part in reference.split('/'):
            node = node[part]
        return node

    def _resolve_placeholders(self, config: Dict[str, Any]) -> Dict[str, Any]:
        def substitute(match: re.Match) -> str:
            try:
                target = self._lookup(config, match.group(1))
            except (KeyError, TypeError):
                return match.group(0)
            # Wait for the referenced value to be resolved first.
            if isinstance(target, (dict, list)) or _PLACEHOLDER.search(str(target)):
                return match.group(0)
            return str(target)

        changed = True
        while changed:
            changed = False
            for settings in config.values():
                if not isinstance(settings, dict):
                    continue
                for key, value in settings.items():
                    if not isinstance(value, str):
                        continue
                    new_value = _PLACEHOLDER.sub(substitute, value)
                    if new_value != value:
                        settings[key] = new_value
                        changed = True
        return config
