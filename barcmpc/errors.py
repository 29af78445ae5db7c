# -*- coding: utf-8 -*-
"""Exceptions raised while setting the controller up.

Runtime problems inside the control tick (solver non-convergence, no
calibration match) are returned as values and handled by the loop's failure
policy, they never show up here.
"""


class BarcMpcError(Exception):
    """Base class for controller errors."""


class ConfigError(BarcMpcError, ValueError):
    """Configuration values are missing or inconsistent."""


class CalibrationError(BarcMpcError, ValueError):
    """The throttle calibration table is empty or could not be parsed."""
