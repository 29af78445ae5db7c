# -*- coding: utf-8 -*-
import csv
import glob
import json
import os

FIELDS = ("N", "x_ref", "y_ref", "steps", "end_position_error", "end_speed",
          "mean_solve_time_sec", "max_solve_time_sec", "failures", "fallbacks")


def load_metrics(pattern):
    rows = []
    for path in sorted(glob.glob(pattern, recursive=True)):
        try:
            with open(path, "r", encoding="utf-8") as f:
                m = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"⚠️ skipping {path}: {e}")
            continue
        row = {"tag": os.path.basename(os.path.dirname(path))}
        row.update({k: m.get(k) for k in FIELDS})
        rows.append(row)
    return rows


def main(pattern="exp/**/*_metrics.json", out_csv="reports/summary.csv"):
    rows = load_metrics(pattern)
    if not rows:
        print(f"No metrics found under {pattern}")
        return rows
    os.makedirs(os.path.dirname(out_csv) or ".", exist_ok=True)
    with open(out_csv, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader(); w.writerows(rows)
    print(f"Saved {out_csv} with", len(rows), "rows")
    return rows


if __name__ == "__main__":
    main()
