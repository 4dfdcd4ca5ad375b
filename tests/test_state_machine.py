import pytest

from smpsctl.control import ProportionalController
from smpsctl.fault_detect import FaultId
from smpsctl.state_machine import (
    DAC_BIAS_CODE,
    DAC_MAX_CODE,
    ENVELOPE_PERIOD,
    MAX_DUTY_SR,
    MAX_PERIOD,
    MIN_PERIOD,
    PDM_OFFSET,
    PHASE_SR,
    PREPARE_DELAY_TICKS,
    RUN_ENTRY_STABLE_TICKS,
    STOPPING_TIMEOUT_TICKS,
    VOUT_REF_PU_DEFAULT,
    SmpsState,
    SmpsStateMachine,
    pg4_duty_low_power,
)


def healthy_machine(**kwargs):
    sm = SmpsStateMachine(**kwargs)
    sm.measurements.vin_pu = 1.0
    sm.measurements.vout_pu = 1.0
    return sm


def run_until(sm, state, limit=100000):
    for count in range(1, limit + 1):
        sm.task_slow()
        if sm.state is state:
            return count
    raise AssertionError(f"state {state} not reached, stuck in {sm.state}")


def to_softstart(sm):
    run_until(sm, SmpsState.SOFTSTART, limit=100)


def to_run(sm, target=0.001):
    to_softstart(sm)
    sm.measurements.vref_target_pu = target
    run_until(sm, SmpsState.RUN, limit=1000)


def test_initial_state():
    sm = SmpsStateMachine()
    assert sm.state is SmpsState.INIT
    assert sm.enable_command is True
    assert sm.loop_enabled is False
    assert sm.measurements.vref_pu == 0.0
    assert sm.measurements.vref_target_pu == VOUT_REF_PU_DEFAULT


def test_invalid_pg4_period():
    with pytest.raises(ValueError):
        SmpsStateMachine(pg4_period=0)


def test_startup_sequence_and_prepare_delay():
    sm = healthy_machine()
    sm.task_slow()
    assert sm.state is SmpsState.STANDBY
    sm.task_slow()
    assert sm.state is SmpsState.PREPARE
    for _ in range(PREPARE_DELAY_TICKS - 1):
        sm.task_slow()
    assert sm.state is SmpsState.PREPARE
    assert sm.loop_enabled is False
    sm.task_slow()
    assert sm.state is SmpsState.SOFTSTART
    assert sm.loop_enabled is True
    assert sm.run_entry_counter == 0


def test_disable_in_prepare_returns_to_standby():
    sm = healthy_machine()
    run_until(sm, SmpsState.PREPARE, limit=10)
    sm.enable(False)
    sm.task_slow()
    assert sm.state is SmpsState.STANDBY
    sm.task_slow()
    assert sm.state is SmpsState.STANDBY


def test_softstart_reaches_run_at_target():
    sm = healthy_machine()
    to_softstart(sm)
    sm.measurements.vref_target_pu = 0.001
    ticks = run_until(sm, SmpsState.RUN, limit=1000)
    assert sm.measurements.vref_pu == 0.001
    assert ticks >= RUN_ENTRY_STABLE_TICKS
    assert sm.loop_enabled is True


def test_run_target_change_goes_back_to_softstart():
    sm = healthy_machine()
    to_run(sm)
    sm.measurements.vref_target_pu = 0.002
    sm.task_slow()
    assert sm.state is SmpsState.SOFTSTART
    assert sm.run_entry_counter == 0
    run_until(sm, SmpsState.RUN, limit=1000)
    assert sm.measurements.vref_pu == 0.002


def test_disable_in_run_stops_then_standby():
    sm = healthy_machine()
    to_run(sm)
    sm.enable(False)
    sm.task_slow()
    assert sm.state is SmpsState.STOPPING
    ticks = run_until(sm, SmpsState.STANDBY, limit=STOPPING_TIMEOUT_TICKS + 5)
    assert ticks == STOPPING_TIMEOUT_TICKS
    assert sm.loop_enabled is False
    assert sm.measurements.vref_pu == 0.0
    sm.task_slow()
    assert sm.state is SmpsState.STANDBY


def test_input_undervoltage_faults_and_recovers():
    sm = SmpsStateMachine()
    sm.measurements.vout_pu = 1.0
    sm.measurements.vin_pu = 0.0
    run_until(sm, SmpsState.FAULT, limit=50)
    assert sm.faults.is_active()
    assert sm.faults.latched_flags() & (1 << FaultId.VPRI_UVP)
    assert sm.loop_enabled is False
    sm.measurements.vin_pu = 1.0
    run_until(sm, SmpsState.STANDBY, limit=50)
    assert not sm.faults.is_active()


def test_secondary_undervoltage_only_monitored_in_run():
    sm = SmpsStateMachine()
    sm.measurements.vin_pu = 1.0
    sm.measurements.vout_pu = 0.0
    to_softstart(sm)
    assert not sm.faults.is_active()
    sm.measurements.vref_target_pu = 0.001
    run_until(sm, SmpsState.RUN, limit=1000)
    run_until(sm, SmpsState.FAULT, limit=50)
    assert sm.faults.latched_flags() & (1 << FaultId.VSEC_UVP)


def test_task_fast_busy_does_nothing():
    sm = healthy_machine()
    assert sm.task_fast(pwm_busy=True) is None


def test_task_fast_idle_command():
    sm = SmpsStateMachine()
    cmd = sm.task_fast()
    assert cmd.dac_code == DAC_BIAS_CODE
    assert cmd.pg1_period == MIN_PERIOD
    assert cmd.pg3_phase == PHASE_SR
    assert cmd.pg3_duty == PHASE_SR
    assert cmd.pg4_duty == 0
    assert sm.measurements.vctrl_pu == 0.0


def test_task_fast_high_power_on_large_error():
    sm = healthy_machine()
    to_softstart(sm)
    sm.measurements.vref_pu = 1.0
    sm.measurements.vout_pu = 0.5
    cmd = sm.task_fast()
    assert sm.high_power_mode is True
    assert cmd.pg1_period == MAX_PERIOD
    assert cmd.pg3_duty == MAX_DUTY_SR
    assert cmd.pg3_phase == PHASE_SR
    assert cmd.pg4_duty == ENVELOPE_PERIOD + 0x10
    assert DAC_BIAS_CODE <= cmd.dac_code <= DAC_MAX_CODE


def test_high_power_hysteresis():
    ctrl = ProportionalController(kp=1.0, max_output=0.4, min_output=-0.1)
    sm = healthy_machine(controller=ctrl)
    to_softstart(sm)
    m = sm.measurements
    m.vref_pu = 0.5

    m.vout_pu = 0.43
    sm.task_fast()
    assert sm.high_power_mode is True

    m.vout_pu = 0.435
    cmd = sm.task_fast()
    assert sm.high_power_mode is True
    assert cmd.pg1_period == MAX_PERIOD

    m.vout_pu = 0.44
    cmd = sm.task_fast()
    assert sm.high_power_mode is False
    assert cmd.pg1_period == MIN_PERIOD
    assert cmd.dac_code == DAC_BIAS_CODE
    assert cmd.pg4_duty == pg4_duty_low_power(m.vctrl_pu, ENVELOPE_PERIOD)


def test_negative_control_gives_idle_command():
    sm = healthy_machine()
    to_softstart(sm)
    sm.measurements.vref_pu = 0.0
    sm.measurements.vout_pu = 1.0
    cmd = sm.task_fast()
    assert sm.measurements.vctrl_pu < 0.0
    assert cmd.pg4_duty == 0
    assert cmd.pg1_period == MIN_PERIOD


def test_controller_reset_after_loop_disabled():
    sm = healthy_machine()
    to_softstart(sm)
    sm.measurements.vref_pu = 1.0
    sm.measurements.vout_pu = 0.5
    sm.task_fast()
    assert sm.measurements.vctrl_pu > 0.0
    sm.enable(False)
    sm.task_slow()
    sm.task_slow()
    assert sm.loop_enabled is False
    sm.task_fast()
    assert sm.measurements.vctrl_pu == 0.0
    assert all(e == 0.0 for e in sm.controller.error_history)


def test_pg4_duty_offset_and_limits():
    assert pg4_duty_low_power(0.0, ENVELOPE_PERIOD) == PDM_OFFSET
    assert pg4_duty_low_power(1.0, ENVELOPE_PERIOD) == ENVELOPE_PERIOD
    assert pg4_duty_low_power(-1.0, ENVELOPE_PERIOD) == 0


def test_pg4_duty_monotonic():
    values = [pg4_duty_low_power(x / 1000, ENVELOPE_PERIOD) for x in range(0, 70)]
    assert values == sorted(values)
    assert all(0 <= v <= ENVELOPE_PERIOD for v in values)