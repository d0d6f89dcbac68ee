"""
DRIVE_DECISION_PROJECT
Copyright (c) 2026. All rights reserved.
File: drive_decision/core/config.py
Description: Settings snapshot and process configuration.
"""

import json
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional


# Clamp ranges applied at the boundary, before the core consumes a snapshot.
_BOUNDS: Dict[str, tuple] = {
    'fuel_price': (0.0, None),
    'city_km_per_l': (1.0, None),
    'hwy_km_per_l': (1.0, None),
    'min_net_per_hour': (0.0, None),
    'other_cost_per_km': (0.0, None),
    'fee_pct': (0.0, 100.0),
}


def _clamp(name: str, value: float) -> float:
    low, high = _BOUNDS[name]
    if low is not None and value < low:
        value = low
    if high is not None and value > high:
        value = high
    return value


@dataclass(frozen=True)
class SettingsSnapshot:
    """Read-only user settings for one analysis pass.

    Attributes:
        fuel_price: Fuel price per litre.
        city_km_per_l: Fuel efficiency in slow urban traffic.
        hwy_km_per_l: Fuel efficiency at highway speed.
        min_net_per_hour: Minimum net earnings per hour the driver accepts.
        other_cost_per_km: Tyres, oil and maintenance per km.
        fee_pct: Platform fee, percent of the gross, deducted before net.
    """
    fuel_price: float = 24.0
    city_km_per_l: float = 10.0
    hwy_km_per_l: float = 14.0
    min_net_per_hour: float = 90.0
    other_cost_per_km: float = 0.0
    fee_pct: float = 0.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["SettingsSnapshot"] = None) -> "SettingsSnapshot":
        """Build a clamped snapshot from a mapping.

        Keys missing from `data` are taken from `base` (defaults when None);
        unknown keys are ignored.

        Raises:
            ValueError: If a known key holds a non-numeric value.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Settings must be a mapping, got {type(data).__name__}")

        values = asdict(base if base is not None else cls())
        for key in _BOUNDS:
            if key not in data:
                continue
            raw = data[key]
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise ValueError(f"Invalid type for {key}: expected number, got {type(raw).__name__}")
            if raw != raw:
                raise ValueError(f"Invalid value for {key}: NaN")
            values[key] = float(raw)

        return cls(**{key: _clamp(key, float(value)) for key, value in values.items()})

    @classmethod
    def load_from_file(cls, filepath: str = "config/settings.json") -> "SettingsSnapshot":
        """Load and clamp a snapshot from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            ValueError: If a value has the wrong type.
        """
        try:
            with open(filepath, 'r') as f:
                config_data = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Settings file not found at {filepath}")
        except json.JSONDecodeError as e:
            raise json.JSONDecodeError("Malformed JSON in settings file", e.doc, e.pos)

        return cls.from_mapping(config_data)

    def merged(self, changes: Mapping[str, Any]) -> "SettingsSnapshot":
        return SettingsSnapshot.from_mapping(changes, base=self)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class AppConfig:
    """Process-level configuration read from the environment."""
    api_host: str = '0.0.0.0'
    api_port: int = 5000
    settings_path: str = 'config/settings.json'
    ocr_timeout_s: float = 1.5
    tesseract_lang: str = 'eng+spa'
    target_package: str = 'sinet.startup.inDriver'

    @classmethod
    def from_environment(cls) -> 'AppConfig':
        try:
            api_port = int(os.getenv('DD_API_PORT', '5000'))
            ocr_timeout_s = float(os.getenv('DD_OCR_TIMEOUT_S', '1.5'))
        except ValueError as e:
            raise ValueError(f"Invalid server configuration: {e}")

        if not (1024 <= api_port <= 65535):
            raise ValueError(f"DD_API_PORT must be 1024-65535, got {api_port}")
        if not (0.1 <= ocr_timeout_s <= 10.0):
            raise ValueError(f"DD_OCR_TIMEOUT_S must be 0.1-10, got {ocr_timeout_s}")

        tesseract_lang = os.getenv('DD_TESSERACT_LANG', 'eng+spa').strip()
        if not tesseract_lang:
            raise ValueError("DD_TESSERACT_LANG cannot be empty")

        return cls(
            api_host=os.getenv('DD_API_HOST', '0.0.0.0'),
            api_port=api_port,
            settings_path=os.getenv('DD_SETTINGS_PATH', 'config/settings.json'),
            ocr_timeout_s=ocr_timeout_s,
            tesseract_lang=tesseract_lang,
            target_package=os.getenv('DD_TARGET_PACKAGE', 'sinet.startup.inDriver'),
        )
