"""Configuration Management for bivardpp
======================================

YAML/JSON configuration loading for the composite likelihood engine.

Missing or unparsable files fall back to the default configuration with a
logged error; values that parse but make no sense (unknown family, negative
tolerances) raise ``ConfigurationError``.

Example file::

    family: bessel
    periodic: true
    series_terms: 50
    intensities: [120.0, 80.0]   # omit or null to estimate them
    quadrature:
      epsabs: 1.0e-11
      epsrel: 1.0e-10
      limit: 200
    feasibility:
      exhaustive: false
    logging:
      level: INFO
"""

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bivardpp.core.exceptions import LikelihoodError
from bivardpp.core.spectral import QuadratureSettings
from bivardpp.utils.logging import get_logger

logger = get_logger(__name__)

VALID_FAMILIES = ("gaussian", "bessel")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(LikelihoodError, ValueError):
    """Raised when a configuration value is invalid."""


def _default_config() -> dict[str, Any]:
    return {
        "metadata": {
            "config_version": "1.0",
            "description": "Default composite likelihood configuration",
        },
        "family": "gaussian",
        "periodic": True,
        "series_terms": 50,
        "intensities": None,
        "quadrature": {
            "epsabs": 1e-11,
            "epsrel": 1e-10,
            "limit": 200,
        },
        "feasibility": {
            "exhaustive": False,
        },
        "logging": {
            "level": "WARNING",
        },
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@dataclass(frozen=True)
class LikelihoodConfig:
    """Validated engine settings.

    Attributes
    ----------
    family : str
        Kernel family name ("gaussian" or "bessel")
    periodic : bool
        Wrap distances around the domain
    series_terms : int
        Truncation order of series kernels
    intensities : tuple of float or None
        Fixed intensities (rho1, rho2); None estimates them jointly
    quadrature : QuadratureSettings
        Tolerances of the spectral integral
    exhaustive_feasibility : bool
        Record every violated constraint instead of the first one
    log_level : str
        Level of the package root logger
    """

    family: str = "gaussian"
    periodic: bool = True
    series_terms: int = 50
    intensities: tuple[float, float] | None = None
    quadrature: QuadratureSettings = field(default_factory=QuadratureSettings)
    exhaustive_feasibility: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "LikelihoodConfig":
        """Build and validate settings from a configuration dictionary.

        Missing keys take their defaults. Numbers given as strings (PyYAML
        reads ``1e-11`` as a string) are converted.
        """
        config = _merge(_default_config(), config or {})

        family = str(config["family"]).lower()
        if family not in VALID_FAMILIES:
            raise ConfigurationError(
                f"Unknown kernel family '{config['family']}'. Must be one of {list(VALID_FAMILIES)}"
            )

        try:
            series_terms = int(config["series_terms"])
            quadrature = QuadratureSettings(
                epsabs=float(config["quadrature"]["epsabs"]),
                epsrel=float(config["quadrature"]["epsrel"]),
                limit=int(config["quadrature"]["limit"]),
            )
            intensities = config["intensities"]
            if intensities is not None:
                rho1, rho2 = (float(value) for value in intensities)
                intensities = (rho1, rho2)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric configuration value: {e}") from e

        if series_terms < 1:
            raise ConfigurationError(
                f"series_terms must be at least 1, got {series_terms}",
                {"series_terms": series_terms},
            )
        if quadrature.epsabs < 0 or quadrature.epsrel < 0 or quadrature.limit < 1:
            raise ConfigurationError(
                "Quadrature tolerances must be non-negative and limit positive",
                {"quadrature": quadrature},
            )
        if intensities is not None and not all(value > 0 for value in intensities):
            raise ConfigurationError(f"Intensities must be positive, got {intensities}")

        level = str(config["logging"].get("level", "WARNING")).upper()
        if level not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Unknown logging level '{level}'")

        return cls(
            family=family,
            periodic=bool(config["periodic"]),
            series_terms=series_terms,
            intensities=intensities,
            quadrature=quadrature,
            exhaustive_feasibility=bool(config["feasibility"].get("exhaustive", False)),
            log_level=level,
        )


class ConfigManager:
    """Configuration manager for the composite likelihood engine.

    Usage:
        config_manager = ConfigManager("likelihood.yaml")
        settings = config_manager.to_likelihood_config()
    """

    def __init__(
        self,
        config_file: str | Path | None = None,
        config_override: dict[str, Any] | None = None,
    ):
        """Initialize configuration manager.

        Parameters
        ----------
        config_file : str or Path, optional
            Path to YAML/JSON configuration file; defaults are used if None
        config_override : dict, optional
            Configuration data used instead of a file, merged over defaults
        """
        self.config_file = config_file
        self.config: dict[str, Any] = _default_config()

        if config_override is not None:
            self.config = _merge(self.config, config_override)
            logger.info("Configuration loaded from override data")
        elif config_file is not None:
            self.load_config()

    def load_config(self) -> None:
        """Load and parse the YAML/JSON configuration file.

        Falls back to the default configuration if loading fails.
        """
        try:
            config_path = Path(self.config_file)
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

            with open(config_path, encoding="utf-8") as f:
                if config_path.suffix.lower() == ".json":
                    loaded = json.load(f)
                else:
                    loaded = yaml.safe_load(f)

            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Top level of {self.config_file} must be a mapping")

            self.config = _merge(_default_config(), loaded)
            logger.info(f"Configuration loaded from: {self.config_file}")

        except json.JSONDecodeError as e:
            logger.error(f"JSON parsing error: {e}")
            logger.info("Using default configuration...")
            self.config = _default_config()
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Configuration parsing error: {e}")
            logger.info("Using default configuration...")
            self.config = _default_config()

    def get_config(self) -> dict[str, Any]:
        """Get the current configuration dictionary."""
        return self.config

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value using dot notation, e.g. ``'quadrature.epsrel'``."""
        value: Any = self.config
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def update_config(self, key: str, value: Any) -> None:
        """Update a configuration value using dot notation.

        Parameters
        ----------
        key : str
            Configuration key (supports dot notation like 'quadrature.limit')
        value : Any
            New value to set
        """
        keys = key.split(".")
        config_ref = self.config

        for k in keys[:-1]:
            if k not in config_ref:
                config_ref[k] = {}
            config_ref = config_ref[k]

        config_ref[keys[-1]] = value

    def to_likelihood_config(self) -> LikelihoodConfig:
        """Validated engine settings from the current configuration."""
        return LikelihoodConfig.from_dict(self.config)


def load_config(config_path: str | Path) -> LikelihoodConfig:
    """Load and validate engine settings from a file."""
    return ConfigManager(config_path).to_likelihood_config()
