# -*- coding: utf-8 -*-
"""
Receding-horizon NLP over the kinematic bicycle model.

The problem structure (variables, bounds, dynamics, objective) is built once.
Each control tick only overwrites the initial-condition parameter vector and
re-solves, warm-started from the previous solution.
"""
import logging
import time
from typing import Any, Dict, Optional

import casadi as ca
import numpy as np

from barcmpc.compiler.bicycle_model import BicycleModel
from barcmpc.compiler.load_task import ControllerConfig
from barcmpc.runtime.messages import (
    ControlInput,
    HorizonTrajectory,
    SolveFailure,
    SolveResult,
    State,
)

logger = logging.getLogger(__name__)


class HorizonProblem:
    """
    min  (x_N - x_ref)^2 + (y_N - y_ref)^2 + v_N^2
    s.t. s_0 = (x0, y0, psi0, v0)              (parameters)
         s_{k+1} = f(s_k, u_k),  k = 0..N-1
         v_min <= v_k <= v_max
         a_min <= a_k <= a_max,  d_f_min <= d_f_k <= d_f_max

    The terminal speed term keeps the vehicle from arriving at the target at
    full speed and overshooting it.
    """

    def __init__(self, cfg: ControllerConfig, model: Optional[BicycleModel] = None):
        self.cfg = cfg
        self.model = model or BicycleModel(cfg.vehicle, cfg.dt)
        self.N = int(cfg.horizon)
        self.nx, self.nu = self.model.nx, self.model.nu

        self._p = np.zeros(self.nx)
        self._n_dec = self.nx * (self.N + 1) + self.nu * self.N
        self._w0 = np.zeros(self._n_dec)
        self._stats: Dict[str, Any] = {}

        self._build()

    # -------------------------
    # construction
    # -------------------------
    def _build(self):
        N, nx, nu = self.N, self.nx, self.nu
        cons = self.cfg.constraints

        X = ca.SX.sym('X', nx, N + 1)
        U = ca.SX.sym('U', nu, N)
        P = ca.SX.sym('P', nx)

        # initial condition, then dynamics
        g_list = [X[:, 0] - P]
        for k in range(N):
            g_list.append(X[:, k + 1] - self.model.forward(X[:, k], U[:, k]))
        g = ca.vertcat(*g_list)

        xN = X[:, N]
        obj = (xN[0] - self.cfg.x_ref) ** 2 + (xN[1] - self.cfg.y_ref) ** 2 + xN[3] ** 2

        # bounds, in the column-major order of vertcat(vec(X), vec(U))
        inf = float('inf')
        s_lo = [-inf, -inf, -inf, cons.v_min]
        s_hi = [inf, inf, inf, cons.v_max]
        u_lo = [cons.a_min, cons.d_f_min]
        u_hi = [cons.a_max, cons.d_f_max]
        self._lbx = np.array(s_lo * (N + 1) + u_lo * N, dtype=float)
        self._ubx = np.array(s_hi * (N + 1) + u_hi * N, dtype=float)
        self._lbg = np.zeros(g.size1())
        self._ubg = np.zeros(g.size1())

        nlp = {'x': ca.vertcat(ca.reshape(X, -1, 1), ca.reshape(U, -1, 1)),
               'f': obj, 'g': g, 'p': P}
        self._solver = ca.nlpsol('horizon', 'ipopt', nlp, self.cfg.solver.as_casadi())
        logger.debug("built horizon NLP: N=%d, %d variables, %d constraints",
                     N, self._n_dec, g.size1())

    # -------------------------
    # per-tick surface
    # -------------------------
    def set_initial_condition(self, state: State):
        self._p[0] = state.x
        self._p[1] = state.y
        self._p[2] = state.psi
        self._p[3] = state.v

    @property
    def initial_condition(self) -> State:
        return State(*(float(v) for v in self._p))

    def reset_warm_start(self):
        self._w0 = np.zeros(self._n_dec)

    def solve(self) -> SolveResult:
        t0 = time.time()
        try:
            sol = self._solver(x0=self._w0, p=self._p,
                               lbx=self._lbx, ubx=self._ubx,
                               lbg=self._lbg, ubg=self._ubg)
        except RuntimeError as e:
            self.reset_warm_start()
            return SolveFailure('Solver_Exception', str(e), time.time() - t0)
        t1 = time.time()

        self._stats = self._solver.stats()
        status = str(self._stats.get('return_status', 'unknown'))
        if not self._stats.get('success', False):
            # the iterate of a failed solve is not a useful starting point
            self.reset_warm_start()
            return SolveFailure(status, 'ipopt did not converge', t1 - t0)

        w = np.asarray(sol['x'].full()).ravel()
        if not np.all(np.isfinite(w)):
            self.reset_warm_start()
            return SolveFailure('NonFinite_Solution', 'solution contains NaN/inf', t1 - t0)

        if self.cfg.solver.warm_start:
            self._w0 = w

        n_s = self.nx * (self.N + 1)
        xs = w[:n_s].reshape(self.N + 1, self.nx)
        us = w[n_s:].reshape(self.N, self.nu)
        return HorizonTrajectory(
            states=tuple(State(*(float(v) for v in row)) for row in xs),
            inputs=tuple(ControlInput(float(a), float(d_f)) for a, d_f in us),
            status=status,
            iterations=int(self._stats.get('iter_count', 0)),
            solve_time=t1 - t0,
            cost=float(sol['f']),
        )


def extract_first_control(trajectory: HorizonTrajectory) -> ControlInput:
    return trajectory.first_control
