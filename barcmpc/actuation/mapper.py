# -*- coding: utf-8 -*-
"""
Physical controls -> ESC / servo pulse widths.

Steering uses a quadratic fit of measured servo response. Throttle uses a
nearest-neighbour lookup in the calibration table followed by a direction
clamp, so lookup noise can never turn a forward request into reverse (or the
other way round).
"""
import math
from typing import Optional

from barcmpc.actuation.calibration import CalibrationTable
from barcmpc.compiler.load_task import ActuationOptions
from barcmpc.runtime.messages import ActuatorCommand, ControlInput


class ActuatorMapper:
    def __init__(self, table: CalibrationTable, options: ActuationOptions = None):
        self.table = table
        self.options = options or ActuationOptions()

    # -------------------------
    # steering
    # -------------------------
    def angle_to_servo_pulse(self, angle_deg: float) -> float:
        c0, c1, c2 = self.options.servo_coeffs
        x = angle_deg - self.options.servo_offset_deg
        return c0 + c1 * x + c2 * x ** 2

    def servo_pulse_to_angle(self, pulse: float) -> float:
        """Inverse of ``angle_to_servo_pulse`` on the branch through the offset."""
        c0, c1, c2 = self.options.servo_coeffs
        if c2 == 0:
            return (pulse - c0) / c1 + self.options.servo_offset_deg
        disc = c1 * c1 - 4.0 * c2 * (c0 - pulse)
        if disc < 0:
            # beyond the vertex of the fit
            x = -c1 / (2.0 * c2)
        else:
            roots = ((-c1 + math.sqrt(disc)) / (2.0 * c2), (-c1 - math.sqrt(disc)) / (2.0 * c2))
            x = min(roots, key=abs)
        return x + self.options.servo_offset_deg

    # -------------------------
    # throttle
    # -------------------------
    def nearest_pulse(self, a_des: float) -> Optional[int]:
        """Pulse width whose measured acceleration is closest to ``a_des``.

        Only a strictly smaller error replaces the running best, so the first
        of several equally good points wins. None if nothing is within
        ``match_tolerance``.
        """
        best = None
        min_err = self.options.match_tolerance
        for point in self.table:
            err = abs(point.measured_accel - a_des)
            if err < min_err:
                best = point
                min_err = err
        return None if best is None else int(best.pulse_width)

    def accel_to_esc_pulse(self, a: float) -> Optional[int]:
        pulse = self.nearest_pulse(a)
        if pulse is None:
            return None
        if a > 0:
            return max(self.options.min_forward_pulse, pulse)
        return min(self.options.max_reverse_pulse, pulse)

    def esc_pulse_to_accel(self, pulse: int) -> float:
        """Measured acceleration of the table entry nearest to ``pulse`` (first wins)."""
        best = min(self.table, key=lambda p: abs(p.pulse_width - pulse))
        return best.measured_accel

    # -------------------------
    # commands
    # -------------------------
    def to_command(self, u: ControlInput) -> Optional[ActuatorCommand]:
        """Map a (clamped) control to a command; None when the throttle lookup finds no match."""
        esc = self.accel_to_esc_pulse(u.a)
        if esc is None:
            return None
        return ActuatorCommand(esc_pulse=esc, servo_pulse=self.angle_to_servo_pulse(math.degrees(u.d_f)))

    def safe_command(self) -> ActuatorCommand:
        """Neutral throttle, wheels straight."""
        return ActuatorCommand(
            esc_pulse=int(self.options.safe_esc_pulse),
            servo_pulse=self.angle_to_servo_pulse(0.0),
            fallback=True,
        )

    def decode(self, cmd: ActuatorCommand) -> ControlInput:
        """Physical controls a vehicle would realise for ``cmd``; used by the simulator."""
        return ControlInput(
            a=self.esc_pulse_to_accel(cmd.esc_pulse),
            d_f=math.radians(self.servo_pulse_to_angle(cmd.servo_pulse)),
        )
