"""
AlgeNova — Local JSON settings.

Data is persisted in ``<project>/data/algenova.json`` unless the
``ALGENOVA_SETTINGS`` environment variable points elsewhere.
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "data")
_DATA_FILE = os.path.join(_DATA_DIR, "algenova.json")

# ── Default settings (used when no file exists) ─────────────────────────
DEFAULT_SETTINGS = {
    "host": "0.0.0.0",
    "port": 5000,
    "log_level": "INFO",
    "typeset": True,               # attach LaTeX to every step and answer
    "compact_operators": True,     # strip spaces around operators after normalizing
    "verify_tolerance": 1e-10,     # absolute tolerance for |LHS - RHS|
    "parameter_samples": [0, 1],   # integer values tried for the family parameter k
    "cors_origins": ["*"],
}

# Environment variables that override file values.
_ENV_OVERRIDES = {
    "HOST": ("host", str),
    "PORT": ("port", int),
    "ALGENOVA_LOG_LEVEL": ("log_level", str),
}


def _settings_file() -> str:
    return os.environ.get("ALGENOVA_SETTINGS") or _DATA_FILE


def _load_file(path: str) -> dict:
    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring settings file %s: top level is not an object", path)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)
    return {}


def get_settings() -> dict:
    """Return the effective settings: defaults, then file values, then environment."""
    merged = dict(DEFAULT_SETTINGS)
    merged.update(_load_file(_settings_file()))
    for env_name, (key, cast) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw == "":
            continue
        try:
            merged[key] = cast(raw)
        except ValueError:
            logger.warning("Ignoring %s=%r: expected %s", env_name, raw, cast.__name__)
    return merged


def save_settings(settings: dict) -> None:
    """Persist *settings* to the settings file."""
    path = _settings_file()
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2, ensure_ascii=False)


def ensure_settings_file() -> bool:
    """Write the defaults to the settings file if it does not exist yet.

    Returns True when the file was created.
    """
    if os.path.exists(_settings_file()):
        return False
    save_settings(dict(DEFAULT_SETTINGS))
    return True
