"""Date parsing and formatting for Quill.

Date properties are parsed from front matter strings with strftime formats and
stored as epoch seconds. Templates get them back as a small dictionary with
an ISO 8601 string and every named output format from the site config.

Key classes:
- DateFormat: A strftime format bound to a time zone.
- DateFormatter: Parses input strings and formats timestamps.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_INPUT_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
DEFAULT_TIME_ZONE = "UTC"


@dataclass(frozen=True)
class DateFormat:
    """A strftime format string and the time zone it is read in.

    Attributes:
        format: strftime/strptime format.
        time_zone: IANA time zone name applied to naive parsed values.
    """

    format: str = DEFAULT_INPUT_FORMAT
    time_zone: str = DEFAULT_TIME_ZONE

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | str | None) -> DateFormat:
        """Decode a format from config.

        Accepts a bare format string or a mapping with `format` and an optional
        `timeZone` (or `time_zone`) key.
        """
        if data is None:
            return cls()
        if isinstance(data, str):
            return cls(format=data)
        fmt = data.get("format") or DEFAULT_INPUT_FORMAT
        zone = data.get("timeZone") or data.get("time_zone") or DEFAULT_TIME_ZONE
        return cls(format=str(fmt), time_zone=str(zone))

    @property
    def tzinfo(self):
        try:
            return ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            return timezone.utc


@dataclass(frozen=True)
class DateConfig:
    """Input format plus named output formats."""

    input: DateFormat = field(default_factory=DateFormat)
    output: Mapping[str, DateFormat] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> DateConfig:
        data = data or {}
        outputs = data.get("output") or {}
        return cls(
            input=DateFormat.from_dict(data.get("input")),
            output={str(k): DateFormat.from_dict(v) for k, v in outputs.items()},
        )


class DateFormatter:
    """Parses and formats dates using the site's date config.

    Attributes:
        config: Date configuration.
    """

    def __init__(self, config: DateConfig | None = None):
        self.config = config or DateConfig()

    def parse(self, text: str, fmt: DateFormat | None = None) -> datetime | None:
        """Parse a string into an aware datetime.

        Args:
            text: Raw date string.
            fmt: Property-level format; the config input format otherwise.

        Returns:
            Aware datetime, or None when the text does not match.
        """
        fmt = fmt or self.config.input
        try:
            parsed = datetime.strptime(text, fmt.format)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=fmt.tzinfo)
        return parsed

    def parse_timestamp(self, text: str, fmt: DateFormat | None = None) -> float | None:
        parsed = self.parse(text, fmt)
        return parsed.timestamp() if parsed is not None else None

    def format(self, timestamp: float, fmt: DateFormat | None = None) -> str:
        fmt = fmt or self.config.input
        moment = datetime.fromtimestamp(timestamp, tz=fmt.tzinfo)
        return moment.strftime(fmt.format)

    def context(self, timestamp: float) -> dict[str, Any]:
        """Build the template representation of a timestamp.

        Args:
            timestamp: Epoch seconds.

        Returns:
            Dictionary with `timestamp`, `iso8601` and named `formats`.
        """
        moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
        return {
            "timestamp": timestamp,
            "iso8601": moment.isoformat().replace("+00:00", "Z"),
            "formats": {
                name: self.format(timestamp, fmt)
                for name, fmt in sorted(self.config.output.items())
            },
        }
