# -*- coding: utf-8 -*-
"""Throttle calibration: measured acceleration for each ESC pulse width."""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Tuple

import numpy as np

from barcmpc.errors import CalibrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationPoint:
    pulse_width: int
    measured_accel: float


class CalibrationTable:
    """Immutable, non-empty, ordered collection of CalibrationPoints.

    The scan order is the file order; lookups that tie keep the earlier point.
    """

    def __init__(self, points: Iterable[CalibrationPoint]):
        pts = tuple(points)
        if not pts:
            raise CalibrationError("calibration table is empty")
        for p in pts:
            if not isinstance(p.pulse_width, (int, np.integer)) or isinstance(p.pulse_width, bool):
                raise CalibrationError(f"pulse width must be an integer, got {p.pulse_width!r}")
            if not math.isfinite(p.measured_accel):
                raise CalibrationError(f"non-finite acceleration for pulse {p.pulse_width}")
        self._points = pts

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[int, float]]) -> 'CalibrationTable':
        return cls(CalibrationPoint(int(pw), float(acc)) for pw, acc in pairs)

    @property
    def points(self) -> Tuple[CalibrationPoint, ...]:
        return self._points

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[CalibrationPoint]:
        return iter(self._points)

    def __repr__(self) -> str:
        lo = min(p.pulse_width for p in self._points)
        hi = max(p.pulse_width for p in self._points)
        return f"CalibrationTable({len(self)} points, pulse {lo}..{hi})"


def load_calibration(path: str) -> CalibrationTable:
    """
    Read a headerless two-column CSV: pulse width, measured acceleration.

    Any problem with the file is a CalibrationError; without a table the
    controller cannot produce ESC commands.
    """
    try:
        data = np.loadtxt(path, delimiter=',', ndmin=2)
    except OSError as e:
        raise CalibrationError(f"cannot read calibration file {path!r}: {e}") from e
    except ValueError as e:
        raise CalibrationError(f"malformed calibration file {path!r}: {e}") from e

    if data.size == 0:
        raise CalibrationError(f"calibration file {path!r} is empty")
    if data.shape[1] != 2:
        raise CalibrationError(f"calibration file {path!r} needs 2 columns, got {data.shape[1]}")

    pulses, accels = data[:, 0], data[:, 1]
    if not np.all(pulses == np.round(pulses)):
        raise CalibrationError(f"calibration file {path!r} has non-integer pulse widths")

    table = CalibrationTable.from_pairs(zip(pulses.astype(int).tolist(), accels.tolist()))
    logger.info("loaded %r from %s", table, path)
    return table
