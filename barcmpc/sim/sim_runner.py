# sim/sim_runner.py
# -*- coding: utf-8 -*-
"""
barcmpc - closed-loop simulation runner

- load the controller config (JSON) and an optional patch
- drive the real control loop against a simulated vehicle: each step pushes
  the plant state as an estimate, runs one tick, decodes the emitted pulse
  widths back to physical controls and advances the plant
- save the trajectory plot, metrics and a CSV command log

python -m barcmpc.sim.sim_runner [config.json] [patch] --steps 60 --out exp/run
"""
import argparse
import csv
import json
import logging
import math
import os
import time
from typing import Any, Dict, List, Optional

import numpy as np

# headless plotting
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from barcmpc.compiler.bicycle_model import BicycleModel
from barcmpc.compiler.load_task import DEFAULT_TASK, ControllerConfig, load_config, load_task
from barcmpc.runtime.control_loop import ControlLoop
from barcmpc.runtime.messages import ActuatorCommand, State
from barcmpc.sim.plot_animation import plot_trajectory_animation


# -------------------------
# helpers
# -------------------------
def _save_json(obj, path: str):
    _ensure_dir(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


def _ensure_dir(p: str):
    d = os.path.dirname(p)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)


def _write_csv_log(csv_path: str, rows: List[Dict[str, Any]]):
    if not rows:
        return
    _ensure_dir(csv_path)
    with open(csv_path, 'w', newline='', encoding='utf-8') as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader()
        w.writerows(rows)


def _looks_like_json_text(s: str) -> bool:
    return isinstance(s, str) and s.lstrip().startswith('{')


def _load_patch_from_arg(arg: Optional[str]):
    if arg is None:
        return None
    if _looks_like_json_text(arg):
        try:
            return json.loads(arg)
        except json.JSONDecodeError as e:
            raise ValueError(f"Inline JSON patch is invalid: {e}") from e
    p = arg.strip().strip('"').strip("'")
    if os.path.isfile(p):
        return load_task(p)
    raise FileNotFoundError(f"Patch file not found: {arg}")


# -------------------------
# closed loop
# -------------------------
def simulate(cfg: ControllerConfig, steps: int = 60, start: Optional[State] = None,
             stop_radius: float = 0.0) -> Dict[str, Any]:
    """
    Run ``steps`` control ticks against a simulated bicycle.

    The plant advances by ``cfg.dt`` per tick, so simulated time matches the
    horizon discretisation. ``stop_radius`` > 0 ends the run once the vehicle
    is that close to the target and nearly stopped.
    """
    emitted: List[ActuatorCommand] = []
    loop = ControlLoop.from_config(cfg, publish=emitted.append)
    plant = BicycleModel(cfg.vehicle, cfg.dt)
    loop.warm_up()

    state = start or State()
    states = [state]
    rows = []
    for k in range(steps):
        loop.on_state_estimate(state)
        cmd = loop.tick()
        u = loop.mapper.decode(cmd)
        planned = getattr(loop.last_result, 'inputs', None)
        rows.append({
            'k': k,
            't': round(k * cfg.dt, 6),
            'x': state.x, 'y': state.y, 'psi': state.psi, 'v': state.v,
            'a_opt': planned[0].a if planned else float('nan'),
            'd_f_opt': planned[0].d_f if planned else float('nan'),
            **cmd.to_message(),
            'fallback': int(cmd.fallback),
            'status': loop.stats.last_status,
        })
        state = plant.step(state, u)
        states.append(state)
        if stop_radius > 0 and math.hypot(state.x - cfg.x_ref, state.y - cfg.y_ref) < stop_radius \
                and abs(state.v) < 0.05:
            break

    return {'states': states, 'rows': rows, 'commands': emitted, 'stats': loop.stats}


def solve_and_plot(cfg: ControllerConfig, out_prefix: str = 'mpc', steps: int = 60,
                   anim: bool = False, plot: bool = True) -> Dict[str, Any]:
    print('🛠️ Building horizon problem and control loop...')
    t0 = time.time()
    run = simulate(cfg, steps=steps)
    wall = time.time() - t0

    xs = np.array([[s.x, s.y, s.psi, s.v] for s in run['states']])
    goal = np.array([cfg.x_ref, cfg.y_ref])
    end_err = float(np.linalg.norm(xs[-1, :2] - goal))
    stats = run['stats']

    if plot:
        fig, (ax0, ax1) = plt.subplots(1, 2, figsize=(11, 5))
        ax0.plot(xs[:, 0], xs[:, 1], 'b-o', ms=3, label='trajectory')
        ax0.scatter([xs[0, 0]], [xs[0, 1]], c='g', s=60, label='start')
        ax0.scatter([goal[0]], [goal[1]], c='r', s=60, label='target')
        ax0.axis('equal'); ax0.grid(True); ax0.legend(); ax0.set_title('closed-loop path')

        t = np.arange(len(xs)) * cfg.dt
        ax1.plot(t, xs[:, 3], 'b-', label='v [m/s]')
        esc = [r['esc_pulse'] for r in run['rows']]
        ax1b = ax1.twinx()
        ax1b.step(t[:len(esc)], esc, 'r-', where='post', label='esc pulse')
        ax1.set_xlabel('t [s]'); ax1.grid(True); ax1.legend(loc='upper left')
        ax1b.legend(loc='upper right'); ax1.set_title('speed / ESC command')

        fig_path = f"{out_prefix}_result.png"
        _ensure_dir(fig_path)
        fig.tight_layout()
        fig.savefig(fig_path, dpi=150)
        plt.close(fig)
        print(f"📷 saved {fig_path}")

    if anim and xs.shape[0] >= 3:
        anim_path = f"{out_prefix}_anim.mp4"
        plot_trajectory_animation(xs[:, :3], anim_path, target=(cfg.x_ref, cfg.y_ref))

    metrics = {
        'N': int(cfg.horizon),
        'dt': float(cfg.dt),
        'steps': len(run['rows']),
        'x_ref': cfg.x_ref,
        'y_ref': cfg.y_ref,
        'end_position_error': end_err,
        'end_speed': float(xs[-1, 3]),
        'wall_time_sec': wall,
    }
    metrics.update(stats.as_dict())
    _save_json(metrics, f"{out_prefix}_metrics.json")
    _write_csv_log(f"{out_prefix}_commands.csv", run['rows'])
    print("📑 metrics:", metrics)
    return metrics


# -------------------------
# CLI
# -------------------------
def build_arg_parser():
    p = argparse.ArgumentParser(description="barcmpc closed-loop simulation runner")
    p.add_argument('config', nargs='?', default=str(DEFAULT_TASK),
                   help='controller config JSON (default: packaged dsl/base.json)')
    p.add_argument('patch', nargs='?', default=None,
                   help='inline JSON patch or patch file path')
    p.add_argument('--steps', type=int, default=60, help='control ticks to simulate (default: 60)')
    p.add_argument('--x-ref', type=float, default=None, help='override target x [m]')
    p.add_argument('--y-ref', type=float, default=None, help='override target y [m]')
    p.add_argument('--out', default='mpc', help='output file prefix (default: mpc)')
    p.add_argument('--anim', action='store_true', help='also export an animation')
    p.add_argument('--verbose', action='store_true', help='debug logging')
    return p


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    patch = _load_patch_from_arg(args.patch)
    if patch is not None:
        print(f"🧩 applying patch: {json.dumps(patch, ensure_ascii=False)}")
    cfg = load_config(args.config, patch)
    if args.x_ref is not None or args.y_ref is not None:
        cfg = cfg.with_target(cfg.x_ref if args.x_ref is None else args.x_ref,
                              cfg.y_ref if args.y_ref is None else args.y_ref)

    print(f"🎯 target=({cfg.x_ref:.2f}, {cfg.y_ref:.2f})  N={cfg.horizon}  dt={cfg.dt}  "
          f"policy={cfg.loop.failure_policy}")
    solve_and_plot(cfg, out_prefix=args.out, steps=args.steps, anim=args.anim)
    print('✅ Done.')


if __name__ == '__main__':
    main()
