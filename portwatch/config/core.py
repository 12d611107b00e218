"""Top-level configuration: loading, validation and file discovery."""

import dataclasses
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

import yaml

from portwatch.config.notifiers import (
    LOG_LEVELS,
    AlertConfig,
    ValidationError,
    default_alert_config,
)

_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"(?:{_DURATION_PART})+")
_PART_RE = re.compile(_DURATION_PART)
_MICROSECONDS = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}


class ConfigError(Exception):
    """The configuration could not be found, read or parsed."""


class _DecodeError(ValueError):
    pass


@dataclass
class RuleConfig:
    """A single rule entry from the config file."""

    name: str = ""
    port: int = 0
    proto: str = ""
    address: str = ""
    action: str = ""


@dataclass
class Config:
    """The top-level portwatch configuration."""

    interval: timedelta = timedelta(0)
    log_level: str = ""
    rules: list[RuleConfig] = field(default_factory=list)
    alert: AlertConfig = field(default_factory=AlertConfig)

    def validate(self) -> None:
        if self.interval < timedelta(seconds=1):
            raise ValidationError(
                "interval", f"must be at least 1s, got {self.interval.total_seconds():g}s"
            )
        if self.log_level not in LOG_LEVELS:
            raise ValidationError("log_level", f"unknown log_level {self.log_level!r}")
        for index, rule in enumerate(self.rules):
            if not rule.name:
                raise ValidationError(f"rules[{index}].name", "name is required")
            if rule.action not in ("allow", "deny"):
                raise ValidationError(
                    f"rules[{index}].action",
                    f"rule {rule.name!r}: action must be 'allow' or 'deny'",
                )


# Element types of list fields that hold structured entries; other lists hold strings.
_LIST_ITEM_TYPES: dict[str, type] = {"rules": RuleConfig}


def default_config() -> Config:
    return Config(
        interval=timedelta(seconds=15),
        log_level="info",
        rules=[],
        alert=default_alert_config(),
    )


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "30s", "1h30m" or "500ms"."""
    if not isinstance(text, str):
        raise ValueError(f"invalid duration {text!r}")
    sign = 1
    body = text
    if body and body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body or not _DURATION_RE.fullmatch(body):
        raise ValueError(f"invalid duration {text!r}")
    total = sum(float(number) * _MICROSECONDS[unit] for number, unit in _PART_RE.findall(body))
    return timedelta(microseconds=sign * round(total))


def _scalar(kind: type, value: object, path: str) -> object:
    if value is None:
        return timedelta(0) if kind is timedelta else kind()
    if kind is timedelta:
        if not isinstance(value, str):
            raise _DecodeError(f"{path}: expected a duration string, got {value!r}")
        try:
            return parse_duration(value)
        except ValueError as err:
            raise _DecodeError(f"{path}: {err}") from err
    if kind is bool:
        if not isinstance(value, bool):
            raise _DecodeError(f"{path}: expected a boolean, got {value!r}")
        return value
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _DecodeError(f"{path}: expected an integer, got {value!r}")
        return value
    if kind is str or issubclass(kind, str):
        if isinstance(value, bool):
            return kind("true" if value else "false")
        if isinstance(value, (str, int, float)):
            return kind(str(value))
        raise _DecodeError(f"{path}: expected a string, got {value!r}")
    raise _DecodeError(f"{path}: unsupported field type {kind!r}")


def _convert(current: object, name: str, value: object, path: str) -> object:
    if dataclasses.is_dataclass(current):
        if value is None:
            return type(current)()
        return _decode(current, value, path)
    if isinstance(current, list):
        if value is None:
            return []
        if not isinstance(value, list):
            raise _DecodeError(f"{path}: expected a list, got {value!r}")
        item_kind = _LIST_ITEM_TYPES.get(name, str)
        if dataclasses.is_dataclass(item_kind):
            return [_decode(item_kind(), item, f"{path}[{n}]") for n, item in enumerate(value)]
        return [_scalar(item_kind, item, f"{path}[{n}]") for n, item in enumerate(value)]
    if current is None:
        return value
    return _scalar(type(current), value, path)


def _decode(template, data: object, path: str):
    """Overlay a YAML mapping onto a dataclass instance, keeping unset fields."""
    if not isinstance(data, dict):
        raise _DecodeError(f"{path or 'document'}: expected a mapping, got {data!r}")
    changes = {}
    for spec in dataclasses.fields(template):
        key = spec.metadata.get("yaml", spec.name)
        if key in data:
            child = f"{path}.{key}" if path else key
            changes[spec.name] = _convert(getattr(template, spec.name), spec.name, data[key], child)
    return dataclasses.replace(template, **changes)


def load(path: str | os.PathLike) -> Config:
    """Read, parse and validate the YAML config file at path."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as err:
        raise ConfigError(f"reading config file: {err}") from err
    try:
        data = yaml.safe_load(text)
        cfg = default_config() if data is None else _decode(default_config(), data, "")
    except (yaml.YAMLError, _DecodeError) as err:
        raise ConfigError(f"parsing config file: {err}") from err
    try:
        cfg.validate()
    except ValidationError as err:
        raise ConfigError(f"invalid config: {err}") from err
    return cfg


def must_load(path: str | os.PathLike) -> Config:
    """Load the config, raising RuntimeError on any failure."""
    try:
        return load(path)
    except ConfigError as err:
        raise RuntimeError(f"portwatch: config load failed: {err}") from err


def find_config_file(explicit: str = "") -> str:
    """Return the explicit path if it exists, else the first existing well-known location."""
    if explicit:
        if not os.path.exists(explicit):
            raise ConfigError(f"config file {explicit!r} not found")
        return explicit

    candidates = [
        "portwatch.yaml",
        "portwatch.yml",
        "/etc/portwatch/portwatch.yaml",
        "/etc/portwatch/portwatch.yml",
    ]
    home = os.path.expanduser("~")
    if home and home != "~":
        candidates += [
            home + "/.config/portwatch/portwatch.yaml",
            home + "/.portwatch.yaml",
        ]

    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    raise ConfigError(f"no config file found; searched: {candidates}")