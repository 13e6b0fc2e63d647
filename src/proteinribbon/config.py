"""
Configuration
=============
This module defines the immutable parameter set that drives one pipeline run.

Why is this file needed?
------------------------
1. Explicitness: widths, thresholds and parser filters are passed as a value
   into the parser, curve builder and extruder instead of living in module
   globals, so runs with different visual settings never interfere.
2. Persistence: a configuration can be saved to and loaded from JSON so a
   rendering setup is reproducible.

Classes:
    ParserConfig: Record filtering options.
    ClassifierConfig: Secondary-structure strategy and thresholds.
    CurveConfig: Spline sampling and refinement thresholds.
    ExtrusionConfig: Ribbon, arrow and tube dimensions.
    RibbonConfig: The top-level container.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, asdict, replace
from typing import Any, Dict

logger = logging.getLogger(__name__)

CLASSIFIER_CHOICES = ("auto", "geometric", "records")


class ConfigError(ValueError):
    """Raised when a configuration value is missing, mistyped or out of range."""


@dataclass(frozen=True)
class ParserConfig:
    include_hetero_atoms: bool = False
    exclude_solvent_and_unknown: bool = True
    exclude_nucleic_acids: bool = True
    first_model_only: bool = True

    def validate(self) -> None:
        pass


@dataclass(frozen=True)
class ClassifierConfig:
    # "auto" uses HELIX/SHEET records when the file has them
    strategy: str = "auto"
    helix_min_distance: float = 4.5
    helix_max_distance: float = 6.5
    sheet_min_distance: float = 9.0
    sheet_max_distance: float = 11.5
    min_chain_residues: int = 4
    # Off: consecutive segment meshes leave a gap of about one residue
    extend_segment_ends: bool = False

    def validate(self) -> None:
        if self.strategy not in CLASSIFIER_CHOICES:
            raise ConfigError(
                f"Unknown classifier strategy '{self.strategy}'. "
                f"Expected one of {', '.join(CLASSIFIER_CHOICES)}."
            )
        if not 0.0 <= self.helix_min_distance <= self.helix_max_distance:
            raise ConfigError("Helix distance window must satisfy 0 <= min <= max.")
        if not 0.0 <= self.sheet_min_distance <= self.sheet_max_distance:
            raise ConfigError("Sheet distance window must satisfy 0 <= min <= max.")
        if self.min_chain_residues < 1:
            raise ConfigError("min_chain_residues must be at least 1.")


@dataclass(frozen=True)
class CurveConfig:
    max_uniform_steps: int = 200
    samples_per_span: int = 8
    max_segment_length: float = 2.5
    curvature_threshold: float = 0.25
    min_segment_points: int = 2
    scale: float = 1.0

    def validate(self) -> None:
        if self.max_uniform_steps < 1:
            raise ConfigError("max_uniform_steps must be at least 1.")
        if self.samples_per_span < 1:
            raise ConfigError("samples_per_span must be at least 1.")
        if self.max_segment_length <= 0.0:
            raise ConfigError("max_segment_length must be positive.")
        if self.curvature_threshold <= 0.0:
            raise ConfigError("curvature_threshold must be positive.")
        if self.min_segment_points < 2:
            raise ConfigError("min_segment_points must be at least 2.")
        if self.scale <= 0.0:
            raise ConfigError("scale must be positive.")


@dataclass(frozen=True)
class ExtrusionConfig:
    helix_width: float = 3.0
    helix_thickness: float = 0.75
    sheet_width: float = 4.0
    sheet_thickness: float = 0.75
    arrow_head_fraction: float = 0.2
    arrow_width_multiplier: float = 2.5
    tube_radius: float = 0.8
    tube_segments: int = 14
    end_caps: bool = False

    def validate(self) -> None:
        for name in ("helix_width", "sheet_width", "tube_radius"):
            if getattr(self, name) <= 0.0:
                raise ConfigError(f"{name} must be positive.")
        for name in ("helix_thickness", "sheet_thickness"):
            if getattr(self, name) < 0.0:
                raise ConfigError(f"{name} must not be negative.")
        if not 0.0 < self.arrow_head_fraction <= 1.0:
            raise ConfigError("arrow_head_fraction must be in (0, 1].")
        if self.arrow_width_multiplier < 1.0:
            raise ConfigError("arrow_width_multiplier must be at least 1.")
        if self.tube_segments < 3:
            raise ConfigError("tube_segments must be at least 3.")


_SECTIONS = {
    "parser": ParserConfig,
    "classifier": ClassifierConfig,
    "curve": CurveConfig,
    "extrusion": ExtrusionConfig,
}


def _section_from_dict(cls: type, data: Dict[str, Any], section: str) -> Any:
    known = {f.name: f for f in fields(cls)}
    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown configuration key '{section}.{key}'.")
            continue
        default = getattr(cls(), key)
        # bool is an int subclass, so check it first
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"'{section}.{key}' must be a boolean, got {value!r}.")
        elif isinstance(default, int):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"'{section}.{key}' must be an integer, got {value!r}.")
        elif isinstance(default, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"'{section}.{key}' must be a number, got {value!r}.")
            value = float(value)
        elif isinstance(default, str) and not isinstance(value, str):
            raise ConfigError(f"'{section}.{key}' must be a string, got {value!r}.")
        values[key] = value
    return cls(**values)


@dataclass(frozen=True)
class RibbonConfig:
    """
    Complete parameter set for one ribbon run.
    Instances are immutable; use `with_changes` to derive a variant.
    """
    parser: ParserConfig = field(default_factory=ParserConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    curve: CurveConfig = field(default_factory=CurveConfig)
    extrusion: ExtrusionConfig = field(default_factory=ExtrusionConfig)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        self.parser.validate()
        self.classifier.validate()
        self.curve.validate()
        self.extrusion.validate()

    def with_changes(self, **sections: Dict[str, Any]) -> RibbonConfig:
        """
        Return a copy with some fields of the named sections replaced.

        Example:
            config.with_changes(curve={"curvature_threshold": 0.1})
        """
        updated = {}
        for name, changes in sections.items():
            if name not in _SECTIONS:
                raise ConfigError(f"Unknown configuration section '{name}'.")
            updated[name] = replace(getattr(self, name), **changes)
        return replace(self, **updated)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> RibbonConfig:
        sections: Dict[str, Any] = {}
        for name, section_data in data.items():
            if name not in _SECTIONS:
                logger.warning(f"Ignoring unknown configuration section '{name}'.")
                continue
            if not isinstance(section_data, dict):
                raise ConfigError(f"Configuration section '{name}' must be a mapping.")
            sections[name] = _section_from_dict(_SECTIONS[name], section_data, name)
        return RibbonConfig(**sections)

    @staticmethod
    def load(filepath: str) -> RibbonConfig:
        logger.info(f"Loading configuration from: {filepath}")
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in '{filepath}': {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file '{filepath}' must contain a JSON object.")
        return RibbonConfig.from_dict(data)

    def save(self, filepath: str) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Configuration saved to: {filepath}")


DEFAULT_CONFIG = RibbonConfig()
