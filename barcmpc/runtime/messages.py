# -*- coding: utf-8 -*-
"""
Plain data types passed between the estimator, the optimizer and the actuators.

All of them are frozen so a value handed to another thread can never be
mutated behind its back.
"""
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class State:
    """Pose (x, y, psi) and scalar speed v."""
    x: float = 0.0
    y: float = 0.0
    psi: float = 0.0
    v: float = 0.0

    @classmethod
    def from_message(cls, msg: Any) -> "State":
        """Build from a dict-like or attribute-style estimate message."""
        if isinstance(msg, Mapping):
            return cls(float(msg['x']), float(msg['y']), float(msg['psi']), float(msg['v']))
        return cls(float(msg.x), float(msg.y), float(msg.psi), float(msg.v))

    def as_list(self):
        return [self.x, self.y, self.psi, self.v]


@dataclass(frozen=True)
class ControlInput:
    """Longitudinal acceleration [m/s^2] and front steering angle [rad]."""
    a: float = 0.0
    d_f: float = 0.0


@dataclass(frozen=True)
class HorizonTrajectory:
    states: Tuple[State, ...]
    inputs: Tuple[ControlInput, ...]
    status: str = 'Solve_Succeeded'
    iterations: int = 0
    solve_time: float = 0.0
    cost: float = float('nan')

    @property
    def horizon(self) -> int:
        return len(self.inputs)

    @property
    def first_control(self) -> ControlInput:
        return self.inputs[0]


@dataclass(frozen=True)
class SolveFailure:
    """A solve that did not produce a usable trajectory."""
    status: str
    message: str = ''
    solve_time: float = 0.0


SolveResult = Union[HorizonTrajectory, SolveFailure]


@dataclass(frozen=True)
class ActuatorCommand:
    """Outbound ECU message: ESC and servo pulse widths."""
    esc_pulse: int
    servo_pulse: float
    # True when the command came from the failure policy, not from a solve
    fallback: bool = field(default=False, compare=False)

    def to_message(self) -> dict:
        """Wire payload; ``fallback`` stays local."""
        return {'esc_pulse': int(self.esc_pulse), 'servo_pulse': float(self.servo_pulse)}


@dataclass
class LoopStats:
    ticks: int = 0
    solves: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    fallbacks: int = 0
    no_match: int = 0
    clamped: int = 0
    overruns: int = 0
    last_status: Optional[str] = None
    last_solve_time: float = 0.0
    total_solve_time: float = 0.0
    max_solve_time: float = 0.0

    @property
    def mean_solve_time(self) -> float:
        return self.total_solve_time / self.solves if self.solves else 0.0

    def as_dict(self) -> dict:
        return {
            'ticks': self.ticks,
            'solves': self.solves,
            'failures': self.failures,
            'consecutive_failures': self.consecutive_failures,
            'fallbacks': self.fallbacks,
            'no_match': self.no_match,
            'clamped': self.clamped,
            'overruns': self.overruns,
            'last_status': self.last_status,
            'mean_solve_time_sec': self.mean_solve_time,
            'max_solve_time_sec': self.max_solve_time,
        }
