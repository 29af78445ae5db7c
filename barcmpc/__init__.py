# barcmpc/__init__.py
# -*- coding: utf-8 -*-
"""
Receding-horizon controller for a small ground vehicle.

sense -> optimize -> actuate:
- compiler/   kinematic bicycle model, horizon NLP, config, safety shield
- actuation/  throttle calibration table, pulse-width mapping
- runtime/    messages, latest-state mailbox, control loop thread
- sim/        closed-loop simulation, plots, sweeps
"""
from barcmpc.actuation.calibration import CalibrationPoint, CalibrationTable, load_calibration
from barcmpc.actuation.mapper import ActuatorMapper
from barcmpc.compiler.bicycle_model import BicycleModel
from barcmpc.compiler.build_ocp import HorizonProblem, extract_first_control
from barcmpc.compiler.load_task import ControllerConfig, load_config
from barcmpc.errors import BarcMpcError, CalibrationError, ConfigError
from barcmpc.runtime.control_loop import ControlLoop
from barcmpc.runtime.messages import (
    ActuatorCommand,
    ControlInput,
    HorizonTrajectory,
    SolveFailure,
    State,
)

__version__ = "0.1.0"
