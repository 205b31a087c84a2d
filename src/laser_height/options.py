"""
Processor Options Module

Immutable configuration for the measurement pipeline, its validation, and
loading from YAML files.

Example config file:

    line_direction: horizontal
    laser_color: [255, 0, 0]
    max_color_deviation: 10000
    min_through_width: 15
    min_through_height: 1
    color_metric: redmean
    calibration:
      distance_at_0: 0
      distance_at_10: 42
      width_of_laser: 3
      pixel_per_mm: 4.2
    debug:
      enabled: true
      filenames:
        debugimage: /tmp/deviation.jpg
"""

import logging
import numbers
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import yaml

from .color_distance import COLOR_METRICS, DISTANCE_MAX
from .debug_output import DEBUG_IMAGE_KEY
from .errors import ConfigurationError
from .pixel_grid import color_from_rgba8, parse_color

logger = logging.getLogger(__name__)

HORIZONTAL = "horizontal"
SUPPORTED_LINE_DIRECTIONS = (HORIZONTAL,)
LASER_RED = tuple(color_from_rgba8(255, 0, 0, 255).tolist())

# Scalar fields and the type each config value is converted to
_INT_FIELDS = ("max_color_deviation", "min_through_width", "min_through_height", "blur_kernel_size", "max_workers")
_FLOAT_FIELDS = ("distance_at_0", "distance_at_10", "width_of_laser", "pixel_per_mm")
_BOOL_FIELDS = ("strict_rows", "enabled")
_STR_FIELDS = ("line_direction", "color_metric")


@dataclass(frozen=True)
class CalibrationResults:
    # distance of the laser lines at the plate (should be 0)
    distance_at_0: float = 0.0
    # distance of the laser lines 10mm above the plate
    distance_at_10: float = 0.0
    # thickness of the laser line
    width_of_laser: float = 0.0
    # how many pixels represent one mm, the only value the height formula uses
    pixel_per_mm: float = 0.0


@dataclass(frozen=True)
class DebugOptions:
    enabled: bool = False
    filenames: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessorOptions:
    line_direction: str = HORIZONTAL
    laser_color: Tuple[int, int, int, int] = LASER_RED
    max_color_deviation: int = 10000
    min_through_width: int = 15
    # how clear the line has to be, should exceed the normal variance of colors
    min_through_height: int = 1
    calibration: CalibrationResults = field(default_factory=CalibrationResults)
    debug: DebugOptions = field(default_factory=DebugOptions)
    color_metric: str = "redmean"
    strict_rows: bool = False
    blur_kernel_size: int = 0
    max_workers: Optional[int] = None


def _is_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _check_types(options: ProcessorOptions) -> None:
    for name in ("max_color_deviation", "min_through_height", "blur_kernel_size"):
        value = getattr(options, name)
        if not _is_int(value):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}")

    if options.max_workers is not None and not _is_int(options.max_workers):
        raise ConfigurationError(f"max_workers must be an integer, got {options.max_workers!r}")

    pixel_per_mm = options.calibration.pixel_per_mm
    if not isinstance(pixel_per_mm, numbers.Real) or isinstance(pixel_per_mm, bool):
        raise ConfigurationError(f"calibration.pixel_per_mm must be a number, got {pixel_per_mm!r}")


def _coerce(name: str, value: Any) -> Any:
    """Convert one config value to the type of its field."""
    if value is None and name == "max_workers":
        return None

    if name in _INT_FIELDS:
        if isinstance(value, bool):
            raise ConfigurationError(f"{name} must be an integer, got {value!r}", stage="config")
        try:
            converted = int(value)
        except (TypeError, ValueError, OverflowError) as e:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}", stage="config") from e
        if isinstance(value, float) and converted != value:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}", stage="config")
        return converted

    if name in _FLOAT_FIELDS:
        if isinstance(value, bool):
            raise ConfigurationError(f"{name} must be a number, got {value!r}", stage="config")
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{name} must be a number, got {value!r}", stage="config") from e

    if name in _BOOL_FIELDS and not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}", stage="config")

    if name in _STR_FIELDS and not isinstance(value, str):
        raise ConfigurationError(f"{name} must be a string, got {value!r}", stage="config")

    return value


def _coerced(values: Dict[str, Any]) -> Dict[str, Any]:
    return {name: _coerce(name, value) for name, value in values.items()}


def default_processor_options() -> ProcessorOptions:
    """Options with the documented defaults and an uncalibrated setup."""
    return ProcessorOptions()


def validate_options(options: ProcessorOptions) -> None:
    """
    Reject unsupported configurations before any row is processed.

    min_through_width is deliberately not checked here; the trough detector
    raises on first use.

    Raises:
        ConfigurationError: If any option is invalid
    """
    _check_types(options)

    if options.line_direction not in SUPPORTED_LINE_DIRECTIONS:
        raise ConfigurationError(
            f"Line-Direction \"{options.line_direction}\" is invalid. "
            f"Valid values are: {', '.join(SUPPORTED_LINE_DIRECTIONS)}"
        )

    if options.color_metric not in COLOR_METRICS:
        raise ConfigurationError(
            f"Color metric \"{options.color_metric}\" is invalid. "
            f"Valid values are: {', '.join(sorted(COLOR_METRICS))}"
        )

    for name in ("max_color_deviation", "min_through_height"):
        value = getattr(options, name)
        if not 0 <= value <= DISTANCE_MAX:
            raise ConfigurationError(f"{name} must be within 0-{DISTANCE_MAX}, got {value}")

    laser_color = np.asarray(options.laser_color)
    if laser_color.shape != (4,):
        raise ConfigurationError(f"laser_color must have 4 channels, got shape {laser_color.shape}")

    if not options.calibration.pixel_per_mm > 0:
        raise ConfigurationError(
            f"calibration.pixel_per_mm must be > 0, got {options.calibration.pixel_per_mm}"
        )

    kernel = options.blur_kernel_size
    if kernel != 0 and (kernel < 0 or kernel % 2 != 1):
        raise ConfigurationError(f"blur_kernel_size must be 0 or a positive odd number, got {kernel}")

    if options.max_workers is not None and options.max_workers < 1:
        raise ConfigurationError(f"max_workers must be >= 1, got {options.max_workers}")

    if options.debug.enabled and DEBUG_IMAGE_KEY not in options.debug.filenames:
        logger.warning(f"Debug output enabled but no '{DEBUG_IMAGE_KEY}' filename configured")


def _checked_section(cls, data: Any, section: str) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Section '{section}' must be a mapping", stage="config")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{section}': {', '.join(unknown)}", stage="config")
    return dict(data)


def options_from_dict(data: Optional[Mapping[str, Any]]) -> ProcessorOptions:
    """
    Build options from a parsed mapping, starting from the defaults.

    Raises:
        ConfigurationError: If the mapping has unknown keys or malformed values
    """
    options = default_processor_options()
    values = _checked_section(ProcessorOptions, data, "root")

    calibration = replace(
        options.calibration,
        **_coerced(_checked_section(CalibrationResults, values.pop("calibration", None), "calibration"))
    )

    debug_values = _checked_section(DebugOptions, values.pop("debug", None), "debug")
    if "filenames" in debug_values:
        filenames = debug_values["filenames"] or {}
        if not isinstance(filenames, Mapping):
            raise ConfigurationError("debug.filenames must be a mapping", stage="config")
        debug_values["filenames"] = {str(k): str(v) for k, v in filenames.items()}
    debug = replace(options.debug, **_coerced(debug_values))

    if "laser_color" in values:
        try:
            values["laser_color"] = tuple(parse_color(values["laser_color"]).tolist())
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid laser_color: {e}", stage="config") from e

    return replace(options, calibration=calibration, debug=debug, **_coerced(values))


def load_processor_options(path: Optional[str]) -> ProcessorOptions:
    """
    Load options from a YAML file.

    A missing path or file yields the defaults.

    Raises:
        ConfigurationError: If the file cannot be parsed
    """
    if not path or not os.path.isfile(path):
        if path:
            logger.info(f"Config file {path} not found, using defaults")
        return default_processor_options()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}", stage="config") from e

    options = options_from_dict(data)
    logger.info(f"Loaded processor options from {path}")
    return options
