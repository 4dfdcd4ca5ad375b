"""Fault bookkeeping with per-fault recovery policies and retry limits."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .control import Measurements
from .fault_detect import (
    DEBOUNCE_CLEAR_DEFAULT,
    DEBOUNCE_SET_DEFAULT,
    MAX_FAULTS,
    CompareMode,
    FaultDetector,
    FaultId,
)

DEFAULT_MAX_RETRIES = 3

VPRI_OVP_THRESHOLD = 1.25
VPRI_OVP_HYSTERESIS = 0.05
VPRI_UVP_THRESHOLD = 0.20
VPRI_UVP_HYSTERESIS = 0.05
VSEC_OVP_THRESHOLD = 1.20
VSEC_OVP_HYSTERESIS = 0.05
VSEC_UVP_THRESHOLD = 0.20
VSEC_UVP_HYSTERESIS = 0.05
ISEC_OCP_THRESHOLD = 1.20
ISEC_OCP_HYSTERESIS = 0.05
ILLC_TEMP_THRESHOLD = 3.60
ILLC_TEMP_HYSTERESIS = 0.10


class RecoveryMode(Enum):
    """What happens when a latched fault's condition goes away."""

    NONE = 0
    LIMITED = 1
    UNLIMITED = 2


@dataclass
class FaultConfig:
    """Recovery policy of one fault."""

    recovery_mode: RecoveryMode = RecoveryMode.NONE
    max_retries: int = 0


@dataclass
class FaultState:
    """Run-time state of one fault."""

    active: bool = False
    latched: bool = False
    locked_out: bool = False
    retry_count: int = 0


_RECOVERY_POLICY = {
    FaultId.VPRI_OVP: FaultConfig(RecoveryMode.LIMITED, DEFAULT_MAX_RETRIES),
    FaultId.VPRI_UVP: FaultConfig(RecoveryMode.LIMITED, DEFAULT_MAX_RETRIES),
    FaultId.VSEC_OVP: FaultConfig(RecoveryMode.NONE, 0),
    FaultId.VSEC_UVP: FaultConfig(RecoveryMode.LIMITED, DEFAULT_MAX_RETRIES),
    FaultId.ISEC_OCP: FaultConfig(RecoveryMode.LIMITED, DEFAULT_MAX_RETRIES),
    FaultId.ILLC_TEMP: FaultConfig(RecoveryMode.UNLIMITED, 0),
}


def _bit(fault_id: FaultId) -> int:
    return 1 << int(fault_id)


@dataclass
class FaultManager:
    """Latches faults, applies recovery policies and runs the detectors."""

    measurements: Measurements = field(default_factory=Measurements)
    config: list[FaultConfig] = field(init=False)
    state: list[FaultState] = field(init=False)
    detectors: list[FaultDetector] = field(init=False)
    _active_flags: int = field(default=0, init=False, repr=False)
    _latched_flags: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        self.config = [
            _RECOVERY_POLICY.get(FaultId(i), FaultConfig()) for i in range(MAX_FAULTS)
        ]
        self.config = [FaultConfig(c.recovery_mode, c.max_retries) for c in self.config]
        self.state = [FaultState() for _ in range(MAX_FAULTS)]
        m = self.measurements
        spec = (
            (lambda: m.vin_pu, VPRI_OVP_THRESHOLD, VPRI_OVP_HYSTERESIS,
             CompareMode.GREATER_THAN, FaultId.VPRI_OVP),
            (lambda: m.vin_pu, VPRI_UVP_THRESHOLD, VPRI_UVP_HYSTERESIS,
             CompareMode.LESS_THAN, FaultId.VPRI_UVP),
            (lambda: m.vout_pu, VSEC_OVP_THRESHOLD, VSEC_OVP_HYSTERESIS,
             CompareMode.GREATER_THAN, FaultId.VSEC_OVP),
            (lambda: m.vout_pu, VSEC_UVP_THRESHOLD, VSEC_UVP_HYSTERESIS,
             CompareMode.LESS_THAN, FaultId.VSEC_UVP),
            (lambda: m.sec_current_pu, ISEC_OCP_THRESHOLD, ISEC_OCP_HYSTERESIS,
             CompareMode.GREATER_THAN, FaultId.ISEC_OCP),
            (lambda: m.temperature_pu, ILLC_TEMP_THRESHOLD, ILLC_TEMP_HYSTERESIS,
             CompareMode.GREATER_THAN, FaultId.ILLC_TEMP),
        )
        self.detectors = [
            FaultDetector(source, threshold, hysteresis, mode, fault_id,
                          DEBOUNCE_SET_DEFAULT, DEBOUNCE_CLEAR_DEFAULT)
            for source, threshold, hysteresis, mode, fault_id in spec
        ]

    def set(self, fault_id: FaultId | int) -> None:
        """Mark a fault active and latched."""
        fault_id = FaultId(fault_id)
        st = self.state[fault_id]
        st.active = True
        st.latched = True
        self._active_flags |= _bit(fault_id)
        self._latched_flags |= _bit(fault_id)

    def clear(self, fault_id: FaultId | int) -> None:
        """Report that a fault's condition has gone, applying its recovery policy."""
        fault_id = FaultId(fault_id)
        st = self.state[fault_id]
        cfg = self.config[fault_id]

        st.active = False
        self._active_flags &= ~_bit(fault_id)

        if st.locked_out:
            return

        if cfg.recovery_mode is RecoveryMode.UNLIMITED:
            st.retry_count += 1
            self._unlatch(fault_id)
        elif cfg.recovery_mode is RecoveryMode.LIMITED:
            st.retry_count += 1
            if st.retry_count > cfg.max_retries:
                st.locked_out = True
            else:
                self._unlatch(fault_id)

    def clear_all(self) -> None:
        """Unlatch and reset retries of every fault that is not locked out."""
        for st in self.state:
            if not st.locked_out:
                st.latched = False
                st.retry_count = 0
        self._latched_flags = 0
        for i, st in enumerate(self.state):
            if st.latched:
                self._latched_flags |= 1 << i

    def evaluate(self, monitor_vsec_uvp: bool) -> None:
        """Run every detector; when not monitoring, mask secondary undervoltage."""
        skip = int(FaultId.VSEC_UVP)
        if not monitor_vsec_uvp:
            self.detectors[skip].reset()
            self._clear_no_retry(FaultId.VSEC_UVP)

        for index, detector in enumerate(self.detectors):
            if not monitor_vsec_uvp and index == skip:
                continue
            detector.evaluate(self)

    def is_active(self) -> bool:
        """Whether any fault is latched."""
        return self._latched_flags != 0

    def latched_flags(self) -> int:
        """Bitmask of latched faults."""
        return self._latched_flags

    def active_flags(self) -> int:
        """Bitmask of faults whose condition is present."""
        return self._active_flags

    def _unlatch(self, fault_id: FaultId) -> None:
        self.state[fault_id].latched = False
        self._latched_flags &= ~_bit(fault_id)

    def _clear_no_retry(self, fault_id: FaultId) -> None:
        st = self.state[fault_id]
        st.active = False
        st.latched = False
        self._active_flags &= ~_bit(fault_id)
        self._latched_flags &= ~_bit(fault_id)