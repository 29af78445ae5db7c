import csv
import json

from barcmpc.scripts import analyze_runs
from barcmpc.sim.sim_runner import main, simulate


def test_closed_loop_moves_towards_target(cfg):
    run = simulate(cfg, steps=15)
    states = run["states"]

    assert len(run["rows"]) == 15
    assert len(states) == 16
    assert len(run["commands"]) == 15
    assert run["stats"].failures == 0
    assert states[-1].x > 0.05
    # forward commands never drop into the neutral band
    for row in run["rows"]:
        if row["a_opt"] > 0:
            assert row["esc_pulse"] >= cfg.actuation.min_forward_pulse


def test_cli_writes_outputs(tmp_path):
    prefix = tmp_path / "run1" / "mpc"
    main(["--steps", "5", "--out", str(prefix), "--x-ref", "1.0"])

    metrics = json.loads((tmp_path / "run1" / "mpc_metrics.json").read_text())
    assert metrics["steps"] == 5
    assert metrics["x_ref"] == 1.0
    assert metrics["ticks"] == 5
    assert (tmp_path / "run1" / "mpc_result.png").is_file()
    with open(tmp_path / "run1" / "mpc_commands.csv", newline="") as f:
        log = list(csv.DictReader(f))
    assert len(log) == 5
    assert {"esc_pulse", "servo_pulse", "fallback"} <= set(log[0])

    rows = analyze_runs.main(str(tmp_path / "**" / "*_metrics.json"), str(tmp_path / "summary.csv"))
    assert len(rows) == 1
    assert rows[0]["tag"] == "run1"
    assert (tmp_path / "summary.csv").is_file()
