# smpsctl

Control logic for a digitally controlled LLC resonant converter, written in
plain Python so that it can be simulated, inspected and tested on a desktop.
It has no dependencies beyond the standard library.

## Modules

- **`smpsctl.version`**: `FirmwareVersion`, a frozen record of major, minor and
  patch numbers, build date and time, project name and target device. It has
  `version_string` (for example `LLC_PCMC v0.1.0`), `full_string()` (the same
  with the build timestamp in parentheses) and `packed()`, which returns
  `(major << 12) | (minor << 8) | patch`. `packed()` raises `ValueError` if
  major or minor do not fit in 4 bits. `default_version(build_date, build_time)`
  builds the record for version 0.1.0. If date or time are omitted it uses the
  current time.
- **`smpsctl.common`**: three helpers.
  - `ramp_to_target(current, target, step)` moves a value one step towards a
    target without overshooting. It returns `(new_value, reached)`.
  - `float_to_uint16(value, min_value, max_value)` clamps a value and rounds it
    to a 16-bit integer.
  - `clamp(value, max_value, min_value)` limits a value to a range.
- **`smpsctl.control`**: the controllers and the signals they work on.
  - `NpnzController` is an N-pole/N-zero difference-equation compensator. It
    clamps its output and takes an optional adaptive gain on the error terms.
    It provides `update(reference, feedback)`, `reset()`, `error_history` and
    `control_history`.
  - `ProportionalController` is a proportional controller with output clamping.
  - `create_voltage_compensator()` returns the 2P2Z voltage-loop compensator,
    clamped to [-0.1, 0.4].
  - `create_proportional_controller()` returns a controller with gain 2.0,
    clamped to [-0.1, 0.4].
  - `Measurements` holds the per-unit measurements, their absolute copies, and
    the reference and control signals.
- **`smpsctl.fault_detect`**: fault detection.
  - `FaultDetector` compares a measured value (read through a callable) against
    a threshold, with hysteresis and set/clear debouncing. It reports set and
    clear events to any object that has `set(fault_id)` and `clear(fault_id)`.
  - `FaultId` enumerates the 32 fault bits.
  - `CompareMode` selects whether the detector trips above or below the
    threshold.
- **`smpsctl.fault`**: `FaultManager` latches faults and keeps active and latched
  bitmasks (`active_flags()`, `latched_flags()`, `is_active()`). It applies the
  recovery policy of each fault:
  - `RecoveryMode.NONE` keeps the fault latched.
  - `RecoveryMode.LIMITED` unlatches it up to a retry limit, then locks it out.
  - `RecoveryMode.UNLIMITED` always unlatches it.

  `clear_all()` unlatches every fault that is not locked out.
  `evaluate(monitor_vsec_uvp)` runs the six built-in detectors:
  - primary over- and undervoltage
  - secondary over- and undervoltage
  - secondary overcurrent
  - over-temperature

  Passing `False` masks secondary undervoltage.
- **`smpsctl.scheduler`**: `Scheduler` is a cooperative scheduler driven by a
  16-bit tick counter. `tick()` advances the counter. Each call to `run()`
  always runs the `always` task. If a new tick has arrived, it also runs the
  100 µs, 1 ms, 10 ms and 500 ms tasks whose period has elapsed, with
  staggered first firings. `run()` handles at most one tick per call and
  returns whether it handled one. The tasks are supplied as a `TaskSet`.
- **`smpsctl.state_machine`**: `SmpsStateMachine` sequences the converter
  through the `SmpsState` values INIT, STANDBY, PREPARE, SOFTSTART, RUN,
  STOPPING and FAULT.
  - `task_slow()` evaluates faults and advances the sequence by one tick.
  - `task_fast(pwm_busy)` runs the voltage loop. It returns a `PwmCommand` with
    the DAC code and the PWM period, phase and duty values, or `None` while
    `pwm_busy` is true.
  - `enable(enable)` sets the enable command.
  - `pg4_duty_low_power(ctrl_pu, pg4_period)` computes the low-power burst
    duty.

## Installation

```
pip install .
```

## Examples

```python
from smpsctl.state_machine import SmpsStateMachine

sm = SmpsStateMachine()
sm.measurements.vin_pu = 1.0
sm.measurements.vout_pu = 1.0

for _ in range(100):
    sm.task_slow()

print(sm.state)
print(sm.task_fast(pwm_busy=False))
```

```python
from smpsctl.common import ramp_to_target

value, done = 0.0, False
while not done:
    value, done = ramp_to_target(value, 1.0, 0.25)
print(value)  # 1.0
```

```python
from smpsctl.version import default_version

version = default_version("Jan  1 2026", "12:00:00")
print(version.full_string())  # LLC_PCMC v0.1.0 (Jan  1 2026 12:00:00)
print(hex(version.packed()))  # 0x100
```

## What it does not do

The package is the control logic only:
- It does not read ADCs, write PWM, DAC or DMA registers, or calibrate hardware.
- It does not run on a timer or in interrupts; the caller provides the
  measurements, calls `task_fast`, `task_slow` and `Scheduler.tick` at the
  right rates, and applies the returned `PwmCommand` itself.
- It has no serial or debug-scope communication and no command-line program.

## Running the tests

```
pip install ".[test]"
pytest
```