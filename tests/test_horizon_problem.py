import pytest

from barcmpc.compiler.build_ocp import HorizonProblem, extract_first_control
from barcmpc.compiler.load_task import load_config
from barcmpc.runtime.messages import HorizonTrajectory, SolveFailure, State

# ipopt honours bounds up to its bound_relax_factor
TOL = 1e-6


@pytest.fixture(scope="module")
def problem(cfg):
    return HorizonProblem(cfg)


def _within(lo, val, hi):
    return lo - TOL <= val <= hi + TOL


def test_solve_from_rest_towards_target(problem, cfg):
    assert (cfg.horizon, cfg.x_ref, cfg.y_ref) == (5, 2.0, 0.0)
    problem.set_initial_condition(State(0.0, 0.0, 0.0, 0.0))
    traj = problem.solve()

    assert isinstance(traj, HorizonTrajectory)
    assert len(traj.states) == 6
    assert len(traj.inputs) == 5
    c = cfg.constraints
    for u in traj.inputs:
        assert _within(c.a_min, u.a, c.a_max)
        assert _within(c.d_f_min, u.d_f, c.d_f_max)
    for s in traj.states:
        assert _within(c.v_min, s.v, c.v_max)

    # target is straight ahead: pull forward first
    assert extract_first_control(traj).a > 0
    assert traj.states[-1].x > 0


def test_first_state_matches_initial_condition(problem):
    ic = State(0.5, -0.2, 0.3, 0.4)
    problem.set_initial_condition(ic)
    assert problem.initial_condition == ic

    traj = problem.solve()
    assert isinstance(traj, HorizonTrajectory)
    assert traj.states[0].as_list() == pytest.approx(ic.as_list(), abs=1e-5)


def test_states_follow_the_model(problem):
    problem.set_initial_condition(State(0.0, 0.0, 0.0, 1.0))
    traj = problem.solve()
    assert isinstance(traj, HorizonTrajectory)
    for k, u in enumerate(traj.inputs):
        nxt = problem.model.step(traj.states[k], u)
        assert nxt.as_list() == pytest.approx(traj.states[k + 1].as_list(), abs=1e-4)


def test_infeasible_initial_condition_is_a_failure(cfg):
    problem = HorizonProblem(cfg)
    problem.set_initial_condition(State(0.0, 0.0, 0.0, cfg.constraints.v_max + 3.0))
    result = problem.solve()
    assert isinstance(result, SolveFailure)
    assert result.status

    # the problem stays usable after a failure
    problem.set_initial_condition(State())
    assert isinstance(problem.solve(), HorizonTrajectory)


def test_other_horizon_lengths():
    cfg = load_config(None, {"horizon": 3, "target": {"x_ref": 1.0, "y_ref": 0.5}})
    problem = HorizonProblem(cfg)
    problem.set_initial_condition(State())
    traj = problem.solve()
    assert isinstance(traj, HorizonTrajectory)
    assert traj.horizon == 3
    assert len(traj.states) == 4
