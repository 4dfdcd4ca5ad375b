"""Floating-point digital compensators for the converter's voltage loop."""

from __future__ import annotations

from dataclasses import dataclass, field

from .common import clamp

# 2P2Z voltage compensator: fP0 = 11 kHz, fP1 = 250 kHz, fZ1 = 2 kHz, fs = 500 kHz.
V_COMP_2P2Z_A = (0.7779691, 0.2220309)
V_COMP_2P2Z_B = (3.4028154, 0.0844607, -3.3183547)
V_COMP_2P2Z_MAX_CLAMP = 0.4
V_COMP_2P2Z_MIN_CLAMP = -0.1

# Proportional controller used for plant Bode measurements.
V_COMP_P_GAIN = 2.0
V_COMP_P_MAX_CLAMP = 0.4
V_COMP_P_MIN_CLAMP = -0.1


@dataclass
class Measurements:
    """Per-unit measurements, their absolute copies and the loop signals."""

    vout_pu: float = 0.0
    sec_current_pu: float = 0.0
    vin_pu: float = 0.0
    temperature_pu: float = 0.0

    vout: float = 0.0
    sec_current: float = 0.0
    vin: float = 0.0
    temperature: float = 0.0

    vref_pu: float = 0.0
    vref_target_pu: float = 0.0
    vctrl_pu: float = 0.0


def _check_limits(max_output: float, min_output: float) -> None:
    if min_output > max_output:
        raise ValueError(
            f"minimum output {min_output} exceeds maximum output {max_output}"
        )


@dataclass
class NpnzController:
    """N-pole N-zero difference-equation compensator with output clamping.

    ``a_coefficients`` weight the N previous outputs, ``b_coefficients`` the
    N + 1 most recent errors (newest first). When ``adapt_gain`` is set, the
    error terms are scaled by it before the output terms are added.
    """

    a_coefficients: tuple[float, ...]
    b_coefficients: tuple[float, ...]
    max_output: float
    min_output: float
    adapt_gain: float | None = None
    output: float = field(default=0.0, init=False)
    _errors: list[float] = field(default_factory=list, init=False, repr=False)
    _controls: list[float] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self) -> None:
        self.a_coefficients = tuple(self.a_coefficients)
        self.b_coefficients = tuple(self.b_coefficients)
        if not self.a_coefficients:
            raise ValueError("at least one A coefficient is required")
        if len(self.b_coefficients) != len(self.a_coefficients) + 1:
            raise ValueError(
                f"expected {len(self.a_coefficients) + 1} B coefficients, "
                f"got {len(self.b_coefficients)}"
            )
        _check_limits(self.max_output, self.min_output)
        self.reset()

    @property
    def order(self) -> int:
        """Number of poles (and zeros) of the compensator."""
        return len(self.a_coefficients)

    @property
    def error_history(self) -> tuple[float, ...]:
        """The N + 1 most recent errors, newest first."""
        return tuple(self._errors)

    @property
    def control_history(self) -> tuple[float, ...]:
        """The N most recent clamped outputs, newest first."""
        return tuple(self._controls)

    def update(self, reference: float, feedback: float) -> float:
        """Run one control cycle and return the clamped output."""
        self._errors = [reference - feedback, *self._errors[:-1]]
        error_terms = sum(b * e for b, e in zip(self.b_coefficients, self._errors))
        if self.adapt_gain is not None:
            error_terms *= self.adapt_gain
        control_terms = sum(a * u for a, u in zip(self.a_coefficients, self._controls))
        self.output = clamp(error_terms + control_terms, self.max_output, self.min_output)
        self._controls = [self.output, *self._controls[:-1]]
        return self.output

    def reset(self) -> None:
        """Clear both delay lines and the output."""
        self._errors = [0.0] * len(self.b_coefficients)
        self._controls = [0.0] * len(self.a_coefficients)
        self.output = 0.0


@dataclass
class ProportionalController:
    """Proportional controller with output clamping."""

    kp: float
    max_output: float
    min_output: float
    output: float = field(default=0.0, init=False)

    def __post_init__(self) -> None:
        _check_limits(self.max_output, self.min_output)

    def update(self, reference: float, feedback: float) -> float:
        """Compute kp * (reference - feedback), clamped, and return it."""
        self.output = clamp(
            self.kp * (reference - feedback), self.max_output, self.min_output
        )
        return self.output


def create_voltage_compensator() -> NpnzController:
    """The voltage loop's 2P2Z compensator, reset and ready to run."""
    return NpnzController(
        a_coefficients=V_COMP_2P2Z_A,
        b_coefficients=V_COMP_2P2Z_B,
        max_output=V_COMP_2P2Z_MAX_CLAMP,
        min_output=V_COMP_2P2Z_MIN_CLAMP,
    )


def create_proportional_controller() -> ProportionalController:
    """The proportional controller used for plant Bode measurements."""
    return ProportionalController(
        kp=V_COMP_P_GAIN,
        max_output=V_COMP_P_MAX_CLAMP,
        min_output=V_COMP_P_MIN_CLAMP,
    )