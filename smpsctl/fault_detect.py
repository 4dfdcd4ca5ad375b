"""Threshold fault detectors with hysteresis and debounce."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, Protocol

MAX_FAULTS = 32

DEBOUNCE_SET_DEFAULT = 5
DEBOUNCE_CLEAR_DEFAULT = 10


class FaultId(IntEnum):
    """Fault identifiers; the value is the bit position in the fault masks."""

    VPRI_OVP = 0
    VPRI_UVP = 1
    VSEC_OVP = 2
    VSEC_UVP = 3
    RESERVED_04 = 4
    ISEC_OCP = 5
    ILLC_TEMP = 6
    RESERVED_07 = 7
    RESERVED_08 = 8
    RESERVED_09 = 9
    RESERVED_10 = 10
    RESERVED_11 = 11
    RESERVED_12 = 12
    RESERVED_13 = 13
    RESERVED_14 = 14
    RESERVED_15 = 15
    RESERVED_16 = 16
    RESERVED_17 = 17
    RESERVED_18 = 18
    RESERVED_19 = 19
    RESERVED_20 = 20
    RESERVED_21 = 21
    RESERVED_22 = 22
    RESERVED_23 = 23
    RESERVED_24 = 24
    RESERVED_25 = 25
    RESERVED_26 = 26
    RESERVED_27 = 27
    RESERVED_28 = 28
    RESERVED_29 = 29
    RESERVED_30 = 30
    RESERVED_31 = 31


class CompareMode(Enum):
    """Direction in which the measured value trips the detector."""

    GREATER_THAN = 0
    LESS_THAN = 1


class FaultSink(Protocol):
    """Receiver of the set and clear events a detector raises."""

    def set(self, fault_id: FaultId) -> None: ...

    def clear(self, fault_id: FaultId) -> None: ...


@dataclass
class FaultDetector:
    """Compares a measured value against a threshold with debounce.

    A value at or beyond ``threshold`` trips the detector; it clears once the
    value is past ``threshold`` by more than ``hysteresis`` in the other
    direction. A value in between resets both debounce counters.
    """

    source: Callable[[], float] | None
    threshold: float
    hysteresis: float
    cmp_mode: CompareMode
    fault_id: FaultId
    debounce_set: int = DEBOUNCE_SET_DEFAULT
    debounce_clear: int = DEBOUNCE_CLEAR_DEFAULT
    set_counter: int = field(default=0, init=False)
    clear_counter: int = field(default=0, init=False)
    detected: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.debounce_set < 0 or self.debounce_clear < 0:
            raise ValueError("debounce counts must not be negative")

    def evaluate(self, sink: FaultSink) -> None:
        """Sample the source once and report set or clear events to ``sink``."""
        if self.source is None:
            return

        value = self.source()
        if self.cmp_mode is CompareMode.GREATER_THAN:
            tripped = value >= self.threshold
            cleared = value < self.threshold - self.hysteresis
        else:
            tripped = value <= self.threshold
            cleared = value > self.threshold + self.hysteresis

        if tripped:
            self.clear_counter = 0
            if not self.detected:
                self.set_counter += 1
                if self.set_counter >= self.debounce_set:
                    self.detected = True
                    self.set_counter = 0
                    sink.set(self.fault_id)
        elif cleared:
            self.set_counter = 0
            if self.detected:
                self.clear_counter += 1
                if self.clear_counter >= self.debounce_clear:
                    self.detected = False
                    self.clear_counter = 0
                    sink.clear(self.fault_id)
        else:
            self.set_counter = 0
            self.clear_counter = 0

    def reset(self) -> None:
        """Clear the debounce counters and detection state, keeping the setup."""
        self.set_counter = 0
        self.clear_counter = 0
        self.detected = False