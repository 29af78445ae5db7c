import argparse
import csv
import itertools
import os

from barcmpc.compiler.load_task import DEFAULT_TASK, load_config
from barcmpc.sim.sim_runner import simulate


def run_once(cfg, steps):
    run = simulate(cfg, steps=steps)
    end = run['states'][-1]
    stats = run['stats']
    end_err = ((end.x - cfg.x_ref) ** 2 + (end.y - cfg.y_ref) ** 2) ** 0.5
    return end_err, end.v, stats


def sweep(config_path=str(DEFAULT_TASK), out_csv='sweep_results.csv', steps=60,
          horizons=(3, 5, 8, 12), targets=((2.0, 0.0), (1.5, 0.5), (2.0, -1.0))):
    rows = [['horizon', 'x_ref', 'y_ref', 'mean_solve_time', 'max_solve_time',
             'failures', 'fallbacks', 'end_err', 'end_speed']]
    for N, (xr, yr) in itertools.product(horizons, targets):
        cfg = load_config(config_path, {'horizon': N, 'target': {'x_ref': xr, 'y_ref': yr}})
        end_err, end_v, st = run_once(cfg, steps)
        rows.append([N, xr, yr, st.mean_solve_time, st.max_solve_time,
                     st.failures, st.fallbacks, end_err, end_v])
        print(f"N={N:2d} target=({xr:+.1f},{yr:+.1f})  err={end_err:.3f}  "
              f"solve={st.mean_solve_time * 1e3:.1f}ms  failures={st.failures}")

    d = os.path.dirname(out_csv)
    if d:
        os.makedirs(d, exist_ok=True)
    with open(out_csv, 'w', newline='', encoding='utf-8') as f:
        csv.writer(f).writerows(rows)
    print('✅ wrote', out_csv)
    return rows


if __name__ == '__main__':
    p = argparse.ArgumentParser(description='sweep horizon length and target')
    p.add_argument('config', nargs='?', default=str(DEFAULT_TASK))
    p.add_argument('--out', default='sweep_results.csv')
    p.add_argument('--steps', type=int, default=60)
    args = p.parse_args()
    sweep(args.config, args.out, args.steps)
