"""Configuration for the scanning pipeline: filtering, sorting and output."""

import dataclasses
from dataclasses import dataclass, replace
from enum import Enum

from portwatch.config.notifiers import ValidationError

SORT_FIELDS = ("port", "protocol", "proto", "address", "addr", "pid")


@dataclass
class FilterConfig:
    """Which listeners are hidden from alerts."""

    exclude_loopback: bool = False
    exclude_ports: list[int] = dataclasses.field(default_factory=list)

    def merge(self, defaults: "FilterConfig") -> "FilterConfig":
        """Return a copy whose empty port list is taken from defaults."""
        return replace(self, exclude_ports=list(self.exclude_ports or defaults.exclude_ports))

    def is_port_excluded(self, port: int) -> bool:
        return port in self.exclude_ports


def default_filter_config() -> FilterConfig:
    return FilterConfig(exclude_loopback=True, exclude_ports=[])


class OutputFormat(str, Enum):
    """How alerts and scan results are rendered."""

    TEXT = "text"
    JSON = "json"


def _plain(value: object) -> object:
    return value.value if isinstance(value, Enum) else value


@dataclass
class OutputConfig:
    """Rendering and output preferences."""

    format: str = ""
    timestamps: bool = False
    color: bool = False

    def validate(self) -> None:
        if self.format not in (OutputFormat.TEXT, OutputFormat.JSON):
            raise ValidationError(
                "output.format",
                f'unknown output format {_plain(self.format)!r}: must be "text" or "json"',
            )

    def merge(self, defaults: "OutputConfig") -> "OutputConfig":
        """Return a copy whose empty format is taken from defaults."""
        return replace(self, format=self.format or defaults.format)


def default_output_config() -> OutputConfig:
    return OutputConfig(format=OutputFormat.TEXT, timestamps=True, color=True)


@dataclass
class SortConfig:
    """How listeners are ordered in output and reports."""

    field: str = ""
    ascending: bool = False

    def validate(self) -> None:
        """Check the sort field and normalise it in place; an empty field becomes "port"."""
        norm = self.field.strip().lower()
        if not norm:
            self.field = "port"
            return
        if norm not in SORT_FIELDS:
            raise ValidationError("sort.field", "unrecognized sort field: " + self.field)
        self.field = norm

    def merge(self, defaults: "SortConfig") -> "SortConfig":
        """Return a copy whose blank field is taken from defaults."""
        if self.field.strip():
            return replace(self)
        return replace(self, field=defaults.field)


def default_sort_config() -> SortConfig:
    return SortConfig(field="port", ascending=True)


@dataclass
class PipelineConfig:
    """All settings that shape the scanning pipeline."""

    filter: FilterConfig = dataclasses.field(default_factory=FilterConfig)
    sort: SortConfig = dataclasses.field(default_factory=SortConfig)
    output: OutputConfig = dataclasses.field(default_factory=OutputConfig)

    def validate(self) -> None:
        self.output.validate()

    def merge(self, defaults: "PipelineConfig") -> "PipelineConfig":
        """Return a copy with each part merged with its defaults."""
        return replace(
            self,
            filter=self.filter.merge(defaults.filter),
            sort=self.sort.merge(defaults.sort),
            output=self.output.merge(defaults.output),
        )


def default_pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        filter=default_filter_config(),
        sort=default_sort_config(),
        output=default_output_config(),
    )