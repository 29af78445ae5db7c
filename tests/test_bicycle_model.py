import math

import casadi as ca
import pytest

from barcmpc.compiler.bicycle_model import BicycleModel
from barcmpc.compiler.load_task import VehicleParams
from barcmpc.runtime.messages import ControlInput, State


@pytest.fixture
def model():
    return BicycleModel(VehicleParams(L_a=0.125, L_b=0.125), dt=0.1)


def test_straight_line(model):
    s = model.step(State(0.0, 0.0, 0.0, 1.0), ControlInput(0.0, 0.0))
    assert s.x == pytest.approx(0.1)
    assert s.y == pytest.approx(0.0)
    assert s.psi == pytest.approx(0.0)
    assert s.v == pytest.approx(1.0)


def test_acceleration_only_changes_speed(model):
    s = model.step(State(1.0, 2.0, 0.5, 0.0), ControlInput(1.5, 0.0))
    assert (s.x, s.y, s.psi) == (1.0, 2.0, 0.5)
    assert s.v == pytest.approx(0.15)


def test_steering_uses_slip_angle(model):
    d_f = 0.3
    beta = math.atan(0.5 * math.tan(d_f))
    s = model.step(State(0.0, 0.0, 0.1, 2.0), ControlInput(0.0, d_f))
    assert s.x == pytest.approx(0.1 * 2.0 * math.cos(0.1 + beta))
    assert s.y == pytest.approx(0.1 * 2.0 * math.sin(0.1 + beta))
    assert s.psi == pytest.approx(0.1 + 0.1 * 2.0 / 0.125 * math.sin(beta))


def test_step_is_deterministic(model):
    s0 = State(0.3, -0.2, 1.0, 0.7)
    u = ControlInput(-0.4, -0.2)
    assert model.step(s0, u) == model.step(s0, u)


def test_speed_stays_in_bounds_when_inputs_do(cfg):
    model = BicycleModel(cfg.vehicle, cfg.dt)
    c = cfg.constraints
    for v in (c.v_min + 0.2, -0.5, 0.0, 0.5, c.v_max - 0.2):
        for a in (c.a_min, 0.0, c.a_max):
            nxt = model.step(State(0.0, 0.0, 0.0, v), ControlInput(a, 0.2))
            assert c.v_min < nxt.v < c.v_max


def test_symbolic_and_numeric_agree(model):
    s0 = State(0.5, -0.3, 0.8, 1.2)
    u = ControlInput(0.7, -0.25)
    sym = model.forward(ca.DM(s0.as_list()), ca.DM([u.a, u.d_f]))
    num = model.step(s0, u)
    assert [float(v) for v in sym.full().ravel()] == pytest.approx(num.as_list())


def test_rollout_includes_start(model):
    controls = [ControlInput(1.0, 0.0)] * 4
    states = model.rollout(State(), controls)
    assert len(states) == 5
    assert states[0] == State()
    assert states[-1].v == pytest.approx(0.4)
