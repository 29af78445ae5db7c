import pytest

from barcmpc.actuation.calibration import load_calibration
from barcmpc.actuation.mapper import ActuatorMapper
from barcmpc.compiler.load_task import load_config
from barcmpc.runtime.messages import ControlInput, HorizonTrajectory, SolveFailure, State


class ScriptedProblem:
    """Stand-in for HorizonProblem that replays queued solve results."""

    def __init__(self, results=None, horizon=5):
        self.results = list(results or [])
        self.horizon = horizon
        self.initial_conditions = []
        self._ic = State()

    def set_initial_condition(self, state):
        self._ic = state
        self.initial_conditions.append(state)

    def solve(self):
        if self.results:
            res = self.results.pop(0)
        else:
            res = make_trajectory(0.0, 0.0, self.horizon)
        if isinstance(res, HorizonTrajectory):
            # state[0] is whatever was pushed last
            res = HorizonTrajectory((self._ic,) + res.states[1:], res.inputs, solve_time=0.01)
        return res


def make_trajectory(a, d_f, horizon=5):
    return HorizonTrajectory(
        states=tuple(State() for _ in range(horizon + 1)),
        inputs=tuple(ControlInput(a, d_f) for _ in range(horizon)),
    )


@pytest.fixture(scope="module")
def cfg():
    return load_config()


@pytest.fixture(scope="module")
def table(cfg):
    return load_calibration(cfg.actuation.calibration_file)


@pytest.fixture
def mapper(cfg, table):
    return ActuatorMapper(table, cfg.actuation)


@pytest.fixture
def scripted():
    return ScriptedProblem


@pytest.fixture
def trajectory():
    return make_trajectory


@pytest.fixture
def failure():
    return SolveFailure("Maximum_Iterations_Exceeded", "scripted")
