import math
from typing import Iterable, List

import casadi as ca

from barcmpc.compiler.load_task import VehicleParams
from barcmpc.runtime.messages import ControlInput, State


class BicycleModel:
    """Discrete kinematic bicycle model (Rajamani, Vehicle Dynamics and Control, p. 26).
    State:  x, y, psi, v
    Input:  a (accel), d_f (front steering angle)
    Params: L_a, L_b (CoG to front / rear axle), dt
    """
    def __init__(self, params: VehicleParams = None, dt: float = 0.1):
        params = params or VehicleParams()
        self.L_a = params.L_a
        self.L_b = params.L_b
        self.dt = dt
        self.nx = 4
        self.nu = 2

    def forward(self, x, u, dt=None):
        """Symbolic transition, used to build the optimizer's equality constraints."""
        dt = self.dt if dt is None else dt
        x_pos, y_pos, psi, v = x[0], x[1], x[2], x[3]
        a, d_f = u[0], u[1]

        beta = ca.atan(self.L_b / (self.L_a + self.L_b) * ca.tan(d_f))
        x_next = x_pos + dt * v * ca.cos(psi + beta)
        y_next = y_pos + dt * v * ca.sin(psi + beta)
        psi_next = psi + dt * v / self.L_b * ca.sin(beta)
        v_next = v + dt * a

        return ca.vertcat(x_next, y_next, psi_next, v_next)

    def step(self, state: State, u: ControlInput) -> State:
        beta = math.atan(self.L_b / (self.L_a + self.L_b) * math.tan(u.d_f))
        return State(
            x=state.x + self.dt * state.v * math.cos(state.psi + beta),
            y=state.y + self.dt * state.v * math.sin(state.psi + beta),
            psi=state.psi + self.dt * state.v / self.L_b * math.sin(beta),
            v=state.v + self.dt * u.a,
        )

    def rollout(self, state: State, controls: Iterable[ControlInput]) -> List[State]:
        """Apply ``controls`` in order; the result includes the start state."""
        states = [state]
        for u in controls:
            states.append(self.step(states[-1], u))
        return states
