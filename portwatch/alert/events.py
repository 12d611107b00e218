"""Alerts, alert events, their formatting and the plain log notifier."""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, TextIO

from portwatch.config.pipeline import OutputConfig, OutputFormat


def _now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def _rfc3339(moment: datetime) -> str:
    text = moment.replace(microsecond=0).isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


class Level(str, Enum):
    """Severity of an alert."""

    INFO = "INFO"
    WARN = "WARN"
    ALERT = "ALERT"


@dataclass(frozen=True)
class ProcessInfo:
    """The process that owns a listening socket."""

    pid: int
    name: str
    exe: str = ""


def format_address(ip: str, port: int) -> str:
    """Join an IP address and a port, bracketing IPv6 addresses."""
    if ":" in ip:
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"


@dataclass(frozen=True)
class Listener:
    """A listening socket."""

    protocol: str
    ip: str
    port: int
    process: Optional[ProcessInfo] = None

    @property
    def address(self) -> str:
        return format_address(self.ip, self.port)

    def __str__(self) -> str:
        text = f"{self.protocol} {self.address}"
        if self.process is not None:
            text += f" [{self.process.name} pid={self.process.pid}]"
        return text


def _listener_dict(listener: Listener) -> dict:
    data = {"protocol": listener.protocol, "ip": listener.ip, "port": listener.port}
    if listener.process is not None:
        data["process"] = {
            "pid": listener.process.pid,
            "name": listener.process.name,
            "exe": listener.process.exe,
        }
    else:
        data["process"] = None
    return data


@dataclass
class Alert:
    """A detected port event with a severity and a message."""

    timestamp: datetime
    level: Level
    message: str
    listener: Listener

    def __str__(self) -> str:
        return f"[{_rfc3339(self.timestamp)}] {Level(self.level).value} {self.listener} — {self.message}"


def new_alert(level: Level, listener: Listener, message: str) -> Alert:
    """Create an alert stamped with the current time."""
    return Alert(timestamp=_now(), level=level, message=message, listener=listener)


class LogNotifier:
    """Writes each alert as a line of text to a stream."""

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self.out = out if out is not None else sys.stdout

    def notify(self, item: object) -> None:
        self.out.write(f"{item}\n")


class EventType(str, Enum):
    """What happened to a listener."""

    APPEARED = "appeared"
    DISAPPEARED = "disappeared"
    UNEXPECTED = "unexpected"
    DENIED = "denied"
    ALLOWED = "allowed"


@dataclass
class Event:
    """A structured alert event."""

    type: EventType
    listener: Listener
    rule: str = ""
    timestamp: datetime = field(default_factory=_now)

    @property
    def kind(self) -> str:
        return EventType(self.type).name

    def to_dict(self) -> dict:
        data = {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "listener": _listener_dict(self.listener),
        }
        if self.rule:
            data["rule"] = self.rule
        return data

    def __str__(self) -> str:
        return TextFormatter().format(self)


_COLORS = {"APPEARED": "\033[33m", "DENIED": "\033[31m", "ALLOWED": "\033[32m"}
_RESET = "\033[0m"


@dataclass
class TextFormatter:
    """Renders events as single lines of text, optionally coloured."""

    color: bool = False
    timestamps: bool = False

    def format(self, event: Event) -> str:
        stamp = _rfc3339(event.timestamp) + " " if self.timestamps else ""
        rule = f" [rule:{event.rule}]" if event.rule else ""
        msg = f"{stamp}{event.kind} {event.listener}{rule}"
        if self.color and event.kind in _COLORS:
            return _COLORS[event.kind] + msg + _RESET
        return msg


class JsonFormatter:
    """Renders events as JSON objects."""

    def format(self, event: Event) -> str:
        try:
            return json.dumps(event.to_dict())
        except (TypeError, ValueError) as err:
            return json.dumps({"error": str(err)})


def new_formatter(cfg: OutputConfig):
    """Return the formatter the output settings ask for."""
    if cfg.format == OutputFormat.JSON:
        return JsonFormatter()
    return TextFormatter(color=cfg.color, timestamps=cfg.timestamps)