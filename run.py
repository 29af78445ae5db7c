# run.py  (repository root)
# -*- coding: utf-8 -*-
import argparse
import datetime as dt
import json
import shlex
import subprocess
import sys
from pathlib import Path

BANNER = """
==============================
  barcmpc Interactive
==============================
- enter a target as two numbers, e.g.  1.5 0.5
- or paste a JSON patch for the controller config
- 'exit' / 'quit' to leave, 'help' for help
"""

HELP_TEXT = """
(help)
- target:     "2 0"  -> {"target": {"x_ref": 2.0, "y_ref": 0.0}}
- JSON patch: {"horizon": 8, "loop": {"failure_policy": "hold"}}
- commands:
    exit / quit : leave
    help        : this text
    config      : print the config file in use
- each run is saved under exp/RUN_<timestamp>/ (mpc_result.png, mpc_metrics.json, mpc_commands.csv)
"""


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="barcmpc interactive runner")
    p.add_argument("--config", default="", help="controller config JSON; empty means the packaged default")
    p.add_argument("--steps", type=int, default=60, help="control ticks per run (default: 60)")
    p.add_argument("--anim", action="store_true", help="export an animation for each run")
    return p.parse_args()


def autodetect_config(user_cfg: str) -> str:
    if user_cfg:
        return user_cfg
    return str((Path(__file__).parent / "barcmpc" / "dsl" / "base.json").as_posix())


def make_outdir() -> Path:
    stamp = dt.datetime.now().strftime("%Y%m%d-%H%M%S")
    outdir = Path("exp") / f"RUN_{stamp}"
    outdir.mkdir(parents=True, exist_ok=True)
    return outdir


def to_patch(text: str):
    """'x y' -> target patch; '{...}' -> parsed JSON; otherwise None."""
    if text.lstrip().startswith("{"):
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            print(f"⚠️ invalid JSON patch: {e}")
            return None
    parts = text.replace(",", " ").split()
    if len(parts) == 2:
        try:
            return {"target": {"x_ref": float(parts[0]), "y_ref": float(parts[1])}}
        except ValueError:
            pass
    print("⚠️ expected 'x y' or a JSON object")
    return None


def run_once(config: str, patch: dict, steps: int, anim: bool, outdir: Path) -> int:
    cmd = [
        sys.executable, "-m", "barcmpc.sim.sim_runner",
        config, json.dumps(patch),
        "--steps", str(steps),
        "--out", str(outdir / "mpc"),
    ]
    if anim:
        cmd.append("--anim")

    print("\n[cmd] " + " ".join(shlex.quote(c) for c in cmd))
    print("------------------------------------------------------------")
    proc = subprocess.run(cmd)
    print("------------------------------------------------------------\n")
    return proc.returncode


def main():
    args = parse_args()
    print(BANNER)
    config = autodetect_config(args.config)
    if not Path(config).exists():
        print(f"⚠️ config file '{config}' not found; pass --config")

    while True:
        try:
            instr = input("🎯 target 'x y' / JSON patch (exit to quit)> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nbye")
            break

        if not instr:
            continue
        lower = instr.lower()
        if lower in ("exit", "quit"):
            print("bye 👋")
            break
        if lower == "help":
            print(HELP_TEXT)
            continue
        if lower == "config":
            print(Path(config).read_text(encoding="utf-8"))
            continue

        patch = to_patch(instr)
        if patch is None:
            continue
        outdir = make_outdir()
        code = run_once(config, patch, args.steps, args.anim, outdir)
        if code == 0:
            print(f"✅ done, results in: {outdir}")
        else:
            print(f"❌ run failed, exit code: {code}")


if __name__ == "__main__":
    main()
