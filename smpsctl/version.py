"""Firmware version record and its string and packed encodings."""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass

VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

PROJECT_NAME = "LLC_PCMC"
TARGET_DEVICE = "dsPIC33AK512MPS506"

VERSION_STRING_LEN = 48

# Storage sizes of the record's text fields, terminator included.
_FIELD_SIZES = {
    "build_date": 12,
    "build_time": 9,
    "project_name": 12,
    "target_device": 24,
}

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class FirmwareVersion:
    """Version numbers, build timestamp and target identification."""

    major: int
    minor: int
    patch: int
    build_date: str
    build_time: str
    project_name: str = PROJECT_NAME
    target_device: str = TARGET_DEVICE

    def __post_init__(self) -> None:
        for name in ("major", "minor", "patch"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"{name} must be in 0..255, got {value}")
        for name, size in _FIELD_SIZES.items():
            text = getattr(self, name)
            if len(text) >= size:
                raise ValueError(
                    f"{name} holds at most {size - 1} characters, got {len(text)}"
                )
        if len(self.version_string) >= VERSION_STRING_LEN:
            raise ValueError("version string does not fit its storage")

    @property
    def version_string(self) -> str:
        """Project name followed by the dotted version number."""
        return f"{self.project_name} v{self.major}.{self.minor}.{self.patch}"

    def full_string(self) -> str:
        """Version string with the build timestamp appended."""
        return f"{self.version_string} ({self.build_date} {self.build_time})"

    def packed(self) -> int:
        """Version as a 16-bit value: (major << 12) | (minor << 8) | patch."""
        if self.major > 0xF:
            raise ValueError(f"major {self.major} does not fit in 4 bits")
        if self.minor > 0xF:
            raise ValueError(f"minor {self.minor} does not fit in 4 bits")
        return (self.major << 12) | (self.minor << 8) | self.patch


def _format_date(moment: _dt.datetime) -> str:
    return f"{_MONTHS[moment.month - 1]} {moment.day:2d} {moment.year:04d}"


def default_version(build_date: str | None = None,
                    build_time: str | None = None) -> FirmwareVersion:
    """The firmware's own version, stamped with the given (or current) build time."""
    now = _dt.datetime.now()
    return FirmwareVersion(
        major=VERSION_MAJOR,
        minor=VERSION_MINOR,
        patch=VERSION_PATCH,
        build_date=build_date if build_date is not None else _format_date(now),
        build_time=build_time if build_time is not None else now.strftime("%H:%M:%S"),
    )