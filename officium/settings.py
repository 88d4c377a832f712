"""
Settings loader for settings.yaml

Usage:
    from officium.settings import settings

    cap = settings.resolution.max_inclusion_passes
    scope = settings.get_nested("conditionals.implicit_scope", "line")
"""

import yaml
from pathlib import Path
from typing import List, Any


# Path to the settings file
SETTINGS_FILE = Path(__file__).parent / "settings.yaml"

# Default values (used when a key is absent from the YAML file)
DEFAULTS = {
    "data": {
        "base_dir": "data",
        "encoding": "utf-8-sig",
        "file_extension": ".txt",
    },
    "languages": {
        "default": "Latin",
        "fallback": "Latin",
    },
    "resolution": {
        "max_inclusion_passes": 10,
        "max_file_depth": 16,
    },
    "conditionals": {
        # Backward scope of sed/vero/atque/attamen without an explicit marker
        "implicit_scope": "line",
    },
    "logging": {
        "level": "INFO",
        "log_inclusions": False,
        "log_conditionals": False,
    },
}

IMPLICIT_SCOPES = ("line", "chunk")


class DotDict(dict):
    """Dictionary with attribute access: d.key instead of d['key']"""

    def __getattr__(self, key: str) -> Any:
        try:
            value = self[key]
            if isinstance(value, dict):
                return DotDict(value)
            return value
        except KeyError:
            raise AttributeError(f"Setting '{key}' not found")

    def __setattr__(self, key: str, value: Any) -> None:
        self[key] = value

    def get_nested(self, path: str, default: Any = None) -> Any:
        """Get a value by dotted path: 'resolution.max_file_depth'"""
        keys = path.split('.')
        value = self
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge of two dicts (override wins over base)"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = _deep_merge({}, value) if isinstance(value, dict) else value
    return result


def load_settings(filepath: Path = None, overrides: dict = None) -> DotDict:
    """
    Load settings from a YAML file.

    Priority order:
    1. Explicit overrides (highest priority)
    2. Values from the YAML file
    3. Default values (DEFAULTS)

    Args:
        filepath: Path to the settings file (settings.yaml by default)
        overrides: Optional nested dict applied on top of the file

    Returns:
        DotDict with settings
    """
    filepath = filepath or SETTINGS_FILE

    # Start with defaults
    config = _deep_merge({}, DEFAULTS)  # deep copy

    # Load YAML if present
    if filepath.exists():
        with open(filepath, "r", encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        config = _deep_merge(config, yaml_config)
    else:
        print(f"[settings] Settings file not found: {filepath}")
        print("[settings] Using default values")

    if overrides:
        config = _deep_merge(config, overrides)

    return DotDict(config)


def validate_settings(settings: DotDict) -> List[str]:
    """
    Validate settings.

    Returns:
        List of errors (empty if everything is OK)
    """
    errors = []

    if not settings.data.base_dir:
        errors.append("data.base_dir is not set")
    if not settings.languages.default:
        errors.append("languages.default is not set")

    if settings.resolution.max_inclusion_passes < 1:
        errors.append("resolution.max_inclusion_passes must be >= 1")
    if settings.resolution.max_file_depth < 1:
        errors.append("resolution.max_file_depth must be >= 1")

    scope = settings.conditionals.implicit_scope
    if scope not in IMPLICIT_SCOPES:
        errors.append(
            f"conditionals.implicit_scope must be one of {IMPLICIT_SCOPES}, got {scope!r}"
        )

    return errors


# Global settings instance (lazy loading)
_settings = None


def get_settings() -> DotDict:
    """Get global settings (singleton)"""
    global _settings
    if _settings is None:
        _settings = load_settings()
        errors = validate_settings(_settings)
        if errors:
            print("[settings] Invalid settings:")
            for err in errors:
                print(f"  - {err}")
    return _settings


def reload_settings() -> DotDict:
    """Reload settings from file"""
    global _settings
    _settings = None
    return get_settings()


# For convenient import: from officium.settings import settings
settings = get_settings()


# =============================================================================
# CLI for checking settings
# =============================================================================

if __name__ == "__main__":
    import json

    print("=" * 60)
    print("CURRENT SETTINGS")
    print("=" * 60)

    s = load_settings()

    errors = validate_settings(s)
    if errors:
        print("\n[!] ERRORS:")
        for err in errors:
            print(f"  - {err}")
    else:
        print("\n[+] All settings are valid")

    print("\n" + "-" * 60)
    print(json.dumps(dict(s), indent=2, ensure_ascii=False))
