"""
Scenario loading: built-in presets, JSON scenario files and CLI stage strings.
"""

import json
import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from paybench.configuration import (
    BASE_URL,
    DEFAULT_ACCEPTED_STATUS_CODES,
    PRESETS,
    READ_LIMIT,
    REQUEST_TIMEOUT_SECONDS,
)
from paybench.common.stage_spec import OperationKind, StageSpec
from paybench.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}
_STATUS_CLASS_RE = re.compile(r"^([1-5])xx$", re.IGNORECASE)

# Keys accepted in stage objects, with the StageSpec field they map to
_STAGE_KEYS = {
    "name": "name",
    "operation": "operation",
    "op": "operation",
    "workers": "workers",
    "vus": "workers",
    "iterations": "iterations",
    "max_duration": "max_duration",
    "start_offset": "start_offset",
    "start": "start_offset",
    "timeout": "timeout",
    "accepted_status_codes": "accepted_status_codes",
    "accept": "accepted_status_codes",
}


@dataclass
class Scenario:
    """Everything a run needs besides the target connection."""

    stages: List[StageSpec]
    base_url: str = BASE_URL
    timeout: float = REQUEST_TIMEOUT_SECONDS
    read_limit: int = READ_LIMIT
    connection_reuse: bool = True
    accepted_status_codes: Dict[OperationKind, FrozenSet[int]] = field(
        default_factory=lambda: parse_accepted_map(DEFAULT_ACCEPTED_STATUS_CODES)
    )


def parse_duration(value: Any) -> float:
    """Parse seconds from a number or a string such as "5s", "500ms" or "2m"."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _DURATION_UNITS[unit or "s"]


def parse_count(value: Any, what: str) -> int:
    """Parse a whole number from an int or a digit string; fractions are rejected."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ConfigurationError(f"{what} must be a whole number, got {value!r}")


def parse_status_codes(values: Iterable[Any]) -> FrozenSet[int]:
    """Expand status codes; entries may be ints, digit strings or classes like "2xx"."""
    codes = set()
    for value in values:
        if isinstance(value, int) and not isinstance(value, bool):
            codes.add(value)
            continue
        text = str(value).strip()
        class_match = _STATUS_CLASS_RE.match(text)
        if class_match:
            base = int(class_match.group(1)) * 100
            codes.update(range(base, base + 100))
        elif text.isdigit():
            codes.add(int(text))
        else:
            raise ConfigurationError(f"Invalid status code: {value!r}")

    for code in codes:
        if not 100 <= code <= 599:
            raise ConfigurationError(f"Status code out of range: {code}")
    return frozenset(codes)


def parse_accepted_map(mapping: Mapping[Any, Iterable[Any]]) -> Dict[OperationKind, FrozenSet[int]]:
    return {OperationKind.parse(kind): parse_status_codes(codes) for kind, codes in mapping.items()}


def parse_accept_option(text: str) -> Tuple[OperationKind, FrozenSet[int]]:
    """Parse an OP=CODES option such as "write=2xx,500"."""
    operation, sep, codes = text.partition("=")
    if not sep or not codes.strip():
        raise ConfigurationError(f"Expected OP=CODES, got {text!r}")
    return OperationKind.parse(operation), parse_status_codes(codes.split(","))


def stage_from_dict(data: Mapping[str, Any]) -> StageSpec:
    """Build a StageSpec from a scenario-file or preset stage object."""
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        target = _STAGE_KEYS.get(key)
        if target is None:
            raise ConfigurationError(f"Unknown stage key {key!r} in stage {data.get('name', '?')}")
        kwargs[target] = value

    missing = [key for key in ("name", "operation", "workers", "iterations", "max_duration") if key not in kwargs]
    if missing:
        raise ConfigurationError(f"Stage {kwargs.get('name', '?')} is missing: {', '.join(missing)}")

    for key in ("workers", "iterations"):
        kwargs[key] = parse_count(kwargs[key], f"Stage {kwargs['name']} {key}")

    for key in ("max_duration", "start_offset", "timeout"):
        if kwargs.get(key) is not None:
            kwargs[key] = parse_duration(kwargs[key])

    codes = kwargs.get("accepted_status_codes")
    if codes is not None:
        if isinstance(codes, (str, int)):
            codes = [codes]
        kwargs["accepted_status_codes"] = parse_status_codes(codes)

    return StageSpec(**kwargs)


def parse_stage_option(text: str) -> StageSpec:
    """Parse a --stage option: comma-separated key=value pairs.

    Status codes inside `accept` are separated by "/", e.g.
    "name=save,op=write,workers=10,iterations=5,max_duration=5s,accept=2xx/500".
    """
    data: Dict[str, Any] = {}
    for part in text.split(","):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        if not sep:
            raise ConfigurationError(f"Expected key=value in stage option, got {part!r}")
        key = key.strip().replace("-", "_")
        value = value.strip()
        if _STAGE_KEYS.get(key) == "accepted_status_codes":
            data[key] = value.split("/")
        else:
            data[key] = value
    return stage_from_dict(data)


def scenario_from_dict(data: Mapping[str, Any]) -> Scenario:
    """Build a Scenario from a preset or parsed scenario file."""
    stages_data = data.get("stages")
    if not isinstance(stages_data, list) or not stages_data:
        raise ConfigurationError("Scenario needs a non-empty 'stages' list")

    for position, stage in enumerate(stages_data):
        if not isinstance(stage, Mapping):
            raise ConfigurationError(f"Stage #{position + 1} must be an object, got {stage!r}")

    scenario = Scenario(stages=[stage_from_dict(stage) for stage in stages_data])

    if "base_url" in data:
        scenario.base_url = str(data["base_url"])
    if "timeout" in data:
        scenario.timeout = parse_duration(data["timeout"])
    if "read_limit" in data:
        scenario.read_limit = parse_count(data["read_limit"], "read_limit")
    if "connection_reuse" in data:
        scenario.connection_reuse = bool(data["connection_reuse"])
    if "accepted_status_codes" in data:
        scenario.accepted_status_codes.update(parse_accepted_map(data["accepted_status_codes"]))

    return scenario


def load_preset(name: str) -> Scenario:
    preset = PRESETS.get(name)
    if preset is None:
        raise ConfigurationError(f"Unknown preset {name!r} (available: {', '.join(sorted(PRESETS))})")
    logger.info(f"Using preset {name}: {preset['description']}")
    return scenario_from_dict(preset)


def load_scenario_file(path: str) -> Scenario:
    """Load a JSON scenario file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read scenario file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Scenario file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Scenario file {path} must contain a JSON object")

    logger.info(f"Loaded scenario file {path} with {len(data.get('stages') or [])} stages")
    return scenario_from_dict(data)


def build_scenario(
    preset: Optional[str] = None,
    scenario_file: Optional[str] = None,
    stage_options: Optional[List[str]] = None,
) -> Scenario:
    """Build a scenario from exactly one stage source."""
    sources = [source for source in (preset, scenario_file, stage_options) if source]
    if len(sources) != 1:
        raise ConfigurationError("Give exactly one of --preset, --scenario-file or --stage")

    if preset:
        return load_preset(preset)
    if scenario_file:
        return load_scenario_file(scenario_file)
    return Scenario(stages=[parse_stage_option(option) for option in stage_options])
