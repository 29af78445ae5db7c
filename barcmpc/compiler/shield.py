# -*- coding: utf-8 -*-
"""
Safety shield: config sanity checks and clamping of solver output.

Nothing computed by the optimizer reaches the pulse-width mapping without
passing ``clamp_control`` first.
"""
import math
from typing import Optional, Tuple

from barcmpc.compiler.load_task import ControllerConfig, Constraints
from barcmpc.errors import ConfigError
from barcmpc.runtime.messages import ControlInput

FAILURE_POLICIES = ('neutral', 'hold')


def _clip(x, lo, hi):
    return max(lo, min(hi, x))


def clamp_control(u: ControlInput, cons: Constraints) -> Tuple[Optional[ControlInput], bool]:
    """
    Clip ``u`` into [a_min, a_max] x [d_f_min, d_f_max].

    Returns ``(control, clamped)``. ``control`` is None when either component
    is NaN/inf; such output cannot be trusted and is treated as a failed solve.
    """
    if not (math.isfinite(u.a) and math.isfinite(u.d_f)):
        return None, False
    a = _clip(float(u.a), cons.a_min, cons.a_max)
    d_f = _clip(float(u.d_f), cons.d_f_min, cons.d_f_max)
    return ControlInput(a, d_f), (a != u.a or d_f != u.d_f)


def validate_config(cfg: ControllerConfig) -> ControllerConfig:
    c = cfg.constraints
    if not c.a_min < c.a_max:
        raise ConfigError(f"a_min ({c.a_min}) must be < a_max ({c.a_max})")
    if not c.v_min < c.v_max:
        raise ConfigError(f"v_min ({c.v_min}) must be < v_max ({c.v_max})")
    if not c.d_f_min < c.d_f_max:
        raise ConfigError(f"d_f_min ({c.d_f_min}) must be < d_f_max ({c.d_f_max})")
    # tan(d_f) blows up at +-90 deg
    if max(abs(c.d_f_min), abs(c.d_f_max)) >= math.pi / 2:
        raise ConfigError("steering bounds must stay inside (-90, 90) degrees")

    if cfg.dt <= 0:
        raise ConfigError(f"dt must be positive, got {cfg.dt}")
    if cfg.horizon < 1:
        raise ConfigError(f"horizon must be >= 1, got {cfg.horizon}")
    if cfg.vehicle.L_a <= 0 or cfg.vehicle.L_b <= 0:
        raise ConfigError("axle distances L_a and L_b must be positive")

    lp = cfg.loop
    if lp.rate_hz <= 0:
        raise ConfigError(f"loop.rate_hz must be positive, got {lp.rate_hz}")
    if lp.failure_policy not in FAILURE_POLICIES:
        raise ConfigError(f"loop.failure_policy must be one of {FAILURE_POLICIES}, got {lp.failure_policy!r}")
    if lp.max_hold_ticks < 0:
        raise ConfigError("loop.max_hold_ticks must be >= 0")

    act = cfg.actuation
    if act.max_reverse_pulse >= act.min_forward_pulse:
        raise ConfigError(
            f"max_reverse_pulse ({act.max_reverse_pulse}) must be below "
            f"min_forward_pulse ({act.min_forward_pulse})")
    if act.safe_esc_pulse > act.max_reverse_pulse:
        raise ConfigError(
            f"safe_esc_pulse ({act.safe_esc_pulse}) would command forward motion; "
            f"it must be <= max_reverse_pulse ({act.max_reverse_pulse})")
    if act.match_tolerance <= 0:
        raise ConfigError("actuation.match_tolerance must be positive")
    # the servo fit is inverted through its slope at the offset
    if act.servo_coeffs[1] == 0:
        raise ConfigError("actuation.servo_coeffs: linear term must be non-zero")
    return cfg
