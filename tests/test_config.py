import json
import math
import os

import pytest

from barcmpc.compiler.load_task import DSL_DIR, apply_patch, load_config, load_task
from barcmpc.errors import ConfigError


def test_default_config_values(cfg):
    assert cfg.horizon == 5
    assert cfg.dt == pytest.approx(0.1)
    assert (cfg.x_ref, cfg.y_ref) == (2.0, 0.0)
    assert cfg.vehicle.L_a == cfg.vehicle.L_b == pytest.approx(0.125)


def test_default_limits(cfg):
    c = cfg.constraints
    assert c.a_min < 0 < c.a_max
    assert c.v_min == -c.v_max
    assert c.d_f_max == pytest.approx(math.radians(30.0))
    assert c.d_f_min == pytest.approx(-c.d_f_max)


def test_calibration_file_resolved_next_to_config(cfg):
    path = cfg.actuation.calibration_file
    assert os.path.isabs(path)
    assert os.path.isfile(path)


def test_base_file_is_merged_underneath():
    cfg = load_config(DSL_DIR / "example_hold.json")
    assert cfg.loop.failure_policy == "hold"
    assert cfg.loop.max_hold_ticks == 3
    assert (cfg.x_ref, cfg.y_ref) == (1.5, 0.5)
    # inherited from base.json
    assert cfg.horizon == 5
    assert cfg.actuation.min_forward_pulse == 95


def test_apply_patch_leaves_inputs_untouched():
    base = load_task(str(DSL_DIR / "base.json"))
    snapshot = json.dumps(base, sort_keys=True)
    patched = apply_patch(base, '{"horizon": 8, "target": {"x_ref": 3.0}}')
    assert patched["horizon"] == 8
    assert patched["target"] == {"x_ref": 3.0, "y_ref": 0.0}
    assert json.dumps(base, sort_keys=True) == snapshot


def test_patch_argument_to_load_config():
    cfg = load_config(None, {"horizon": 12, "constraints": {"d_f_max_deg": 20.0}})
    assert cfg.horizon == 12
    assert cfg.constraints.d_f_max == pytest.approx(math.radians(20.0))


def test_with_target():
    cfg = load_config().with_target(1.0, -1.0)
    assert (cfg.x_ref, cfg.y_ref) == (1.0, -1.0)


@pytest.mark.parametrize("patch", [
    {"constraints": {"a_min": 2.0, "a_max": 1.0}},
    {"constraints": {"v_min": 1.0, "v_max": 1.0}},
    {"constraints": {"d_f_max_deg": 95.0}},
    {"dt": 0.0},
    {"horizon": 0},
    {"loop": {"rate_hz": 0}},
    {"loop": {"failure_policy": "coast"}},
    {"actuation": {"safe_esc_pulse": 96}},
    {"actuation": {"max_reverse_pulse": 96}},
    {"actuation": {"servo_coeffs": [1.0, 2.0]}},
    {"actuation": {"servo_coeffs": [92.0, 0.0, 0.0]}},
    {"actuation": {"servo_coeffs": [92.0, 0.0, -0.01]}},
])
def test_invalid_config_rejected(patch):
    with pytest.raises(ConfigError):
        load_config(None, patch)


def test_non_object_task_rejected():
    with pytest.raises(TypeError):
        load_task("[1, 2, 3]")
