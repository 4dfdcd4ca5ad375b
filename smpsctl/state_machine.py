"""Converter start-up, run and fault state machine with its fast PWM path."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Protocol

from .common import float_to_uint16, ramp_to_target
from .control import Measurements, create_voltage_compensator
from .fault import FaultManager

VOUT_REF_PU_DEFAULT = 1.0

SOFTSTART_VREF_STEP_PU = 0.000025
CTRL_MODE_HI_ENTER_PU = 0.067
CTRL_MODE_HI_EXIT_PU = 0.063

PREPARE_DELAY_TICKS = 20
RUN_ENTRY_STABLE_TICKS = 50
STOPPING_TIMEOUT_TICKS = 10000

ENABLE_COMMAND_DEFAULT = True
DAC_BIAS_CODE = 266
DAC_MAX_CODE = 4095
DAC_FULL_SCALE = 4096.0
PDM_GAIN = 16.0
PDM_OFFSET = 0x10 << 4

# PWM timing in register format (counts << 4).
MAX_PERIOD = (512 << 4) & 0xFFFF0
MIN_PERIOD = (250 << 4) & 0xFFFF0
MAX_DUTY_SR = (500 << 4) & 0xFFFF0
PHASE_SR = (160 << 4) & 0xFFFF0
ENVELOPE_PERIOD = (10000 << 4) & 0xFFFF0

_HIGH_POWER_PG4_MARGIN = 0x10


class SmpsState(IntEnum):
    """States of the converter's sequencing state machine."""

    INIT = 0
    STANDBY = 1
    PREPARE = 2
    SOFTSTART = 3
    RUN = 4
    STOPPING = 5
    FAULT = 6


@dataclass(frozen=True)
class PwmCommand:
    """Register values the fast task writes for one PWM update."""

    dac_code: int
    pg1_period: int
    pg3_phase: int
    pg3_duty: int
    pg4_duty: int


class LoopController(Protocol):
    """A voltage-loop compensator: reference and feedback in, control out."""

    def update(self, reference: float, feedback: float) -> float: ...


def pg4_duty_low_power(ctrl_pu: float, pg4_period: int) -> int:
    """PDM envelope duty for a per-unit control output, limited to [0, period]."""
    command = ctrl_pu * PDM_GAIN * float(pg4_period) + float(PDM_OFFSET)
    command = min(command, float(pg4_period))
    command = max(command, 0.0)
    return int(command)


def _idle_command() -> PwmCommand:
    return PwmCommand(
        dac_code=DAC_BIAS_CODE,
        pg1_period=MIN_PERIOD,
        pg3_phase=PHASE_SR,
        pg3_duty=PHASE_SR,
        pg4_duty=0,
    )


class SmpsStateMachine:
    """Sequences start-up, soft-start, run, stop and fault handling.

    :meth:`task_slow` runs the sequencing every slow tick; :meth:`task_fast`
    runs the voltage loop and produces the PWM register update.
    """

    def __init__(self, measurements: Measurements | None = None,
                 controller: LoopController | None = None,
                 pg4_period: int = ENVELOPE_PERIOD) -> None:
        if pg4_period <= 0:
            raise ValueError(f"PG4 period must be positive, got {pg4_period}")
        self.measurements = measurements if measurements is not None else Measurements()
        self.controller: LoopController = (
            controller if controller is not None else create_voltage_compensator()
        )
        self.faults = FaultManager(measurements=self.measurements)
        self.pg4_period = pg4_period

        self.state = SmpsState.INIT
        self.enable_command = ENABLE_COMMAND_DEFAULT
        self.state_timer = 0
        self.run_entry_counter = 0

        self.loop_enabled = False
        self.high_power_mode = False
        self._ctrl_reset_needed = False
        self._shutdown()

        self._handlers: dict[SmpsState, Callable[[], None]] = {
            SmpsState.INIT: self._on_init,
            SmpsState.STANDBY: self._on_standby,
            SmpsState.PREPARE: self._on_prepare,
            SmpsState.SOFTSTART: self._on_softstart,
            SmpsState.RUN: self._on_run,
            SmpsState.STOPPING: self._on_stopping,
            SmpsState.FAULT: self._on_fault,
        }

    def enable(self, enable: bool) -> None:
        """Set the converter enable command."""
        self.enable_command = bool(enable)

    def task_fast(self, pwm_busy: bool = False) -> PwmCommand | None:
        """Run the voltage loop once and return the PWM update.

        Returns ``None`` without doing anything while a previous update is
        still being transferred (``pwm_busy``).
        """
        if pwm_busy:
            return None

        m = self.measurements
        if not self.loop_enabled:
            if self._ctrl_reset_needed:
                self._reset_controller()
                self._ctrl_reset_needed = False
            self.high_power_mode = False
            return _idle_command()

        self._ctrl_reset_needed = True
        m.vctrl_pu = self.controller.update(m.vref_pu, m.vout_pu)

        if m.vctrl_pu >= CTRL_MODE_HI_ENTER_PU:
            self.high_power_mode = True
        elif m.vctrl_pu <= CTRL_MODE_HI_EXIT_PU:
            self.high_power_mode = False

        if self.high_power_mode:
            return PwmCommand(
                dac_code=float_to_uint16(m.vctrl_pu * DAC_FULL_SCALE,
                                         float(DAC_BIAS_CODE), float(DAC_MAX_CODE)),
                pg1_period=MAX_PERIOD,
                pg3_phase=PHASE_SR,
                pg3_duty=MAX_DUTY_SR,
                pg4_duty=self.pg4_period + _HIGH_POWER_PG4_MARGIN,
            )
        if m.vctrl_pu > 0.0:
            return PwmCommand(
                dac_code=DAC_BIAS_CODE,
                pg1_period=MIN_PERIOD,
                pg3_phase=PHASE_SR,
                pg3_duty=PHASE_SR,
                pg4_duty=pg4_duty_low_power(m.vctrl_pu, self.pg4_period),
            )
        return _idle_command()

    def task_slow(self) -> None:
        """Evaluate faults and advance the sequencing by one slow tick."""
        self.faults.evaluate(self.state is SmpsState.RUN)
        handler = self._handlers.get(self.state)
        if handler is None:
            self._shutdown()
            self.state = SmpsState.FAULT
            return
        handler()

    def _shutdown(self) -> None:
        self.loop_enabled = False
        self._ctrl_reset_needed = True
        self.high_power_mode = False
        self.measurements.vref_pu = 0.0
        self.measurements.vref_target_pu = VOUT_REF_PU_DEFAULT

    def _reset_controller(self) -> None:
        reset = getattr(self.controller, "reset", None)
        if callable(reset):
            reset()
        self.measurements.vctrl_pu = 0.0

    def _enter(self, state: SmpsState) -> None:
        self.state = state
        self.state_timer = 0

    def _trip_on_fault(self) -> bool:
        if self.faults.is_active():
            self._shutdown()
            self.state = SmpsState.FAULT
            return True
        return False

    def _on_init(self) -> None:
        self._shutdown()
        self.state = SmpsState.FAULT if self.faults.is_active() else SmpsState.STANDBY

    def _on_standby(self) -> None:
        if self._trip_on_fault():
            return
        if self.enable_command:
            self._enter(SmpsState.PREPARE)

    def _on_prepare(self) -> None:
        if self._trip_on_fault():
            return
        if not self.enable_command:
            self._enter(SmpsState.STANDBY)
            return
        self.state_timer += 1
        if self.state_timer >= PREPARE_DELAY_TICKS:
            self._enter(SmpsState.SOFTSTART)
            self.run_entry_counter = 0
            self.loop_enabled = True

    def _on_softstart(self) -> None:
        if self._trip_on_fault():
            return
        if not self.enable_command:
            self._enter(SmpsState.STOPPING)
            return
        self.state_timer += 1
        m = self.measurements
        m.vref_pu, ready = ramp_to_target(m.vref_pu, m.vref_target_pu,
                                          SOFTSTART_VREF_STEP_PU)
        if ready:
            self.run_entry_counter += 1
            if self.run_entry_counter >= RUN_ENTRY_STABLE_TICKS:
                self._enter(SmpsState.RUN)
        else:
            self.run_entry_counter = 0

    def _on_run(self) -> None:
        if self._trip_on_fault():
            return
        if not self.enable_command:
            self._enter(SmpsState.STOPPING)
            return
        m = self.measurements
        if abs(m.vref_pu - m.vref_target_pu) > SOFTSTART_VREF_STEP_PU:
            self._enter(SmpsState.SOFTSTART)
            self.run_entry_counter = 0

    def _on_stopping(self) -> None:
        if self._trip_on_fault():
            return
        self._shutdown()
        self.state_timer += 1
        if self.state_timer >= STOPPING_TIMEOUT_TICKS:
            self._enter(SmpsState.STANDBY)

    def _on_fault(self) -> None:
        self._shutdown()
        if not self.faults.is_active():
            self._enter(SmpsState.STANDBY)