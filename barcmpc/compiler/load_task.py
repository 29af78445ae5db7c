# -*- coding: utf-8 -*-
"""
Controller configuration.

The configuration is a JSON object (see ``barcmpc/dsl/base.json``). A file may
name another file under ``"base"``; the base is loaded first and the file is
deep-merged on top of it. ``load_config`` turns the merged object into a
frozen ``ControllerConfig`` that is built once and handed to every component.
"""
import json
import math
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from barcmpc.errors import ConfigError

DSL_DIR = Path(__file__).resolve().parent.parent / 'dsl'
DEFAULT_TASK = DSL_DIR / 'base.json'


def _is_path(s: str) -> bool:
    """Treat strings ending in .json or holding a path separator as paths."""
    if not isinstance(s, str):
        return False
    s2 = s.strip().strip('\"').strip("'")
    return s2.lower().endswith('.json') or ('/' in s2) or ('\\' in s2)


def _load_json_from_path(path: str) -> Any:
    # utf-8-sig tolerates a BOM
    with open(path, 'r', encoding='utf-8-sig') as f:
        return json.load(f)


def _try_parse_json_string(s: str) -> Any:
    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        raise TypeError(
            "Expected a JSON object, got a string that is not valid JSON.\n"
            f"String snippet: {s[:120]!r}"
        ) from e


def _deep_merge(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def _copy(obj: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(obj))


def _read_object(src: Any, what: str) -> Dict[str, Any]:
    if isinstance(src, dict):
        return src
    if isinstance(src, Path):
        src = str(src)
    if isinstance(src, str):
        s = src.strip().strip('\"').strip("'")
        obj = _load_json_from_path(s) if _is_path(s) else _try_parse_json_string(s)
        if not isinstance(obj, dict):
            raise TypeError(f"{what} must be a JSON object, got {type(obj)}")
        return obj
    raise TypeError(f"{what} must be a dict, JSON string, or path, got {type(src)}")


def merge(dst: Dict[str, Any], src: Any) -> Dict[str, Any]:
    """Deep-merge a patch (dict / JSON string / file path) into ``dst``."""
    return _deep_merge(dst, _read_object(src, 'Patch'))


def apply_patch(task: Any, patch: Any) -> Dict[str, Any]:
    """Return a patched copy of ``task``; neither argument is modified."""
    return merge(_copy(load_task(task)), patch)


def load_task(task_or_path: Any) -> Dict[str, Any]:
    """Read a config object or JSON file, resolving an optional ``base``."""
    user = _read_object(task_or_path, 'Task')

    base = user.get('base') or user.get('_base')
    if not base:
        return user

    if isinstance(base, str):
        base_path = base
        if not os.path.isabs(base_path) and isinstance(task_or_path, (str, Path)) \
                and _is_path(str(task_or_path)):
            base_path = os.path.join(os.path.dirname(os.path.abspath(str(task_or_path))), base_path)
        base_obj = load_task(base_path)
    elif isinstance(base, dict):
        base_obj = base
    else:
        raise TypeError(f"'base' must be path or dict, got {type(base)}")

    merged = _copy(base_obj)
    user_wo_base = dict(user)
    user_wo_base.pop('base', None)
    user_wo_base.pop('_base', None)
    return _deep_merge(merged, user_wo_base)


# -------------------------
# Typed configuration
# -------------------------
@dataclass(frozen=True)
class VehicleParams:
    L_a: float = 0.125  # CoG to front axle [m]
    L_b: float = 0.125  # CoG to rear axle [m]


@dataclass(frozen=True)
class Constraints:
    a_min: float = -1.3
    a_max: float = 1.5
    v_min: float = -2.0
    v_max: float = 2.0
    d_f_min: float = -math.radians(30.0)
    d_f_max: float = math.radians(30.0)


@dataclass(frozen=True)
class SolverOptions:
    max_iter: int = 200
    tol: float = 1e-6
    print_level: int = 0
    warm_start: bool = True

    def as_casadi(self) -> Dict[str, Any]:
        return {
            'ipopt.print_level': int(self.print_level),
            'ipopt.max_iter': int(self.max_iter),
            'ipopt.tol': float(self.tol),
            'ipopt.sb': 'yes',
            'print_time': 0,
        }


@dataclass(frozen=True)
class LoopOptions:
    rate_hz: float = 10.0
    failure_policy: str = 'neutral'  # 'neutral' | 'hold'
    max_hold_ticks: int = 5


@dataclass(frozen=True)
class ActuationOptions:
    calibration_file: Optional[str] = None
    min_forward_pulse: int = 95
    max_reverse_pulse: int = 87
    safe_esc_pulse: int = 87
    match_tolerance: float = 10.0
    servo_coeffs: Tuple[float, float, float] = (92.0558, 1.8194, -0.0104)
    servo_offset_deg: float = 2.0


@dataclass(frozen=True)
class ControllerConfig:
    vehicle: VehicleParams = field(default_factory=VehicleParams)
    constraints: Constraints = field(default_factory=Constraints)
    solver: SolverOptions = field(default_factory=SolverOptions)
    loop: LoopOptions = field(default_factory=LoopOptions)
    actuation: ActuationOptions = field(default_factory=ActuationOptions)
    dt: float = 0.1
    horizon: int = 5
    x_ref: float = 2.0
    y_ref: float = 0.0

    @classmethod
    def from_task(cls, task: Dict[str, Any], source_dir: Optional[str] = None) -> 'ControllerConfig':
        # local import: shield depends on this module's types
        from barcmpc.compiler.shield import validate_config

        try:
            cfg = cls._build(task, source_dir)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"invalid controller config: {e}") from e
        validate_config(cfg)
        return cfg

    @classmethod
    def _build(cls, task: Dict[str, Any], source_dir: Optional[str]) -> 'ControllerConfig':
        veh = task.get('vehicle', {}) or {}
        cons = task.get('constraints', {}) or {}
        sol = task.get('solver', {}) or {}
        loop = task.get('loop', {}) or {}
        act = task.get('actuation', {}) or {}
        target = task.get('target', {}) or {}

        dmax = math.radians(float(cons.get('d_f_max_deg', 30.0)))
        dmin = math.radians(float(cons['d_f_min_deg'])) if 'd_f_min_deg' in cons else -dmax
        v_max = float(cons.get('v_max', 2.0))

        calib = act.get('calibration_file')
        if calib and not os.path.isabs(calib):
            calib = os.path.join(source_dir or str(DSL_DIR), calib)

        coeffs: List[float] = [float(c) for c in act.get('servo_coeffs', ActuationOptions.servo_coeffs)]
        if len(coeffs) != 3:
            raise ValueError(f"servo_coeffs needs 3 values, got {len(coeffs)}")

        return cls(
            vehicle=VehicleParams(
                L_a=float(veh.get('L_a', 0.125)),
                L_b=float(veh.get('L_b', 0.125)),
            ),
            constraints=Constraints(
                a_min=float(cons.get('a_min', -1.3)),
                a_max=float(cons.get('a_max', 1.5)),
                v_min=float(cons.get('v_min', -v_max)),
                v_max=v_max,
                d_f_min=dmin,
                d_f_max=dmax,
            ),
            solver=SolverOptions(
                max_iter=int(sol.get('max_iter', 200)),
                tol=float(sol.get('tol', 1e-6)),
                print_level=int(sol.get('print_level', 0)),
                warm_start=bool(sol.get('warm_start', True)),
            ),
            loop=LoopOptions(
                rate_hz=float(loop.get('rate_hz', 10.0)),
                failure_policy=str(loop.get('failure_policy', 'neutral')).lower(),
                max_hold_ticks=int(loop.get('max_hold_ticks', 5)),
            ),
            actuation=ActuationOptions(
                calibration_file=calib,
                min_forward_pulse=int(act.get('min_forward_pulse', 95)),
                max_reverse_pulse=int(act.get('max_reverse_pulse', 87)),
                safe_esc_pulse=int(act.get('safe_esc_pulse', act.get('max_reverse_pulse', 87))),
                match_tolerance=float(act.get('match_tolerance', 10.0)),
                servo_coeffs=tuple(coeffs),
                servo_offset_deg=float(act.get('servo_offset_deg', 2.0)),
            ),
            dt=float(task.get('dt', 0.1)),
            horizon=int(task.get('horizon', 5)),
            x_ref=float(target.get('x_ref', 2.0)),
            y_ref=float(target.get('y_ref', 0.0)),
        )

    def with_target(self, x_ref: float, y_ref: float) -> 'ControllerConfig':
        return replace(self, x_ref=float(x_ref), y_ref=float(y_ref))


def load_config(task_or_path: Any = None, patch: Any = None) -> ControllerConfig:
    """Load, patch and validate a config. ``None`` means the packaged default."""
    if task_or_path is None:
        task_or_path = DEFAULT_TASK
    source_dir = None
    if isinstance(task_or_path, Path) or (isinstance(task_or_path, str) and _is_path(task_or_path)):
        source_dir = os.path.dirname(os.path.abspath(str(task_or_path).strip().strip('\"').strip("'")))

    task = load_task(task_or_path)
    if patch is not None:
        task = merge(_copy(task), patch)
    return ControllerConfig.from_task(task, source_dir=source_dir)
