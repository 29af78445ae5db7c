# -*- coding: utf-8 -*-
"""
Receding-horizon control loop.

Two roles share one latest-state slot:
- ``on_state_estimate`` runs on whatever thread delivers estimates and only
  writes the mailbox;
- the loop thread ticks at a fixed rate: read the latest state, push it into
  the problem, solve, clamp, map to pulse widths and publish exactly one
  command.

A failed solve or a throttle lookup without a match never stops the loop. The
configured failure policy decides what goes out instead.
"""
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Optional

from barcmpc.actuation.calibration import load_calibration
from barcmpc.actuation.mapper import ActuatorMapper
from barcmpc.compiler.build_ocp import HorizonProblem, extract_first_control
from barcmpc.compiler.load_task import ControllerConfig
from barcmpc.compiler.shield import clamp_control
from barcmpc.errors import CalibrationError
from barcmpc.runtime.mailbox import LatestStateMailbox
from barcmpc.runtime.messages import (
    ActuatorCommand,
    HorizonTrajectory,
    LoopStats,
    SolveFailure,
    SolveResult,
    State,
)

logger = logging.getLogger(__name__)

Publisher = Callable[[ActuatorCommand], Any]


class ControlLoop(threading.Thread):

    def __init__(self, cfg: ControllerConfig, problem: HorizonProblem, mapper: ActuatorMapper,
                 publish: Publisher, stop_event: Optional[threading.Event] = None):
        super().__init__(name='mpc-control', daemon=True)
        self.cfg = cfg
        self.problem = problem
        self.mapper = mapper
        self.publish = publish
        self.stop_event = stop_event or threading.Event()

        self.mailbox = LatestStateMailbox()
        self.stats = LoopStats()

        self._state = State()
        self._last_good: Optional[ActuatorCommand] = None
        self._held = 0
        self.last_command: Optional[ActuatorCommand] = None
        self.last_result: Optional[SolveResult] = None

    @classmethod
    def from_config(cls, cfg: ControllerConfig, publish: Publisher,
                    stop_event: Optional[threading.Event] = None) -> 'ControlLoop':
        """Load the calibration table and build the problem; fails fast on a bad table."""
        if not cfg.actuation.calibration_file:
            raise CalibrationError("actuation.calibration_file is not set")
        table = load_calibration(cfg.actuation.calibration_file)
        return cls(cfg, HorizonProblem(cfg), ActuatorMapper(table, cfg.actuation), publish, stop_event)

    # -------------------------
    # estimator role
    # -------------------------
    def on_state_estimate(self, msg):
        state = msg if isinstance(msg, State) else State.from_message(msg)
        self.mailbox.put(state)

    # -------------------------
    # control role
    # -------------------------
    @property
    def current_state(self) -> State:
        """Initial condition used by the most recent solve."""
        return self._state

    def warm_up(self) -> SolveResult:
        """One blocking solve from the zero state so the first tick starts near a feasible point."""
        logger.info("initial solve ...")
        self.problem.set_initial_condition(State())
        result = self.problem.solve()
        if isinstance(result, SolveFailure):
            logger.warning("initial solve failed (%s); continuing", result.status)
        else:
            logger.info("finished initial solve in %.3fs (%d iterations)",
                        result.solve_time, result.iterations)
        return result

    def start(self):
        self.warm_up()
        super().start()

    def stop(self):
        self.stop_event.set()

    def run(self):
        period = 1.0 / self.cfg.loop.rate_hz
        logger.info("control loop running at %.1f Hz", self.cfg.loop.rate_hz)

        while not self.stop_event.is_set():
            start = time.time()
            try:
                self.tick()
            except Exception:
                # a broken publisher or mapper must not kill the actuation thread
                logger.exception("control tick raised")
            elapsed = time.time() - start
            if elapsed > period:
                self.stats.overruns += 1
                logger.warning("tick took %.3fs, longer than the %.3fs period", elapsed, period)
                continue
            self.stop_event.wait(period - elapsed)

        logger.info("control loop stopped after %d ticks", self.stats.ticks)

    def tick(self) -> ActuatorCommand:
        self.stats.ticks += 1

        state = self.mailbox.latest()
        if state is not None:
            self._state = state
        self.problem.set_initial_condition(self._state)
        result = self.problem.solve()
        self.last_result = result

        if isinstance(result, SolveFailure):
            cmd = self._on_failure(result)
        else:
            cmd = self._on_success(result)

        self.last_command = cmd
        self.publish(cmd)
        return cmd

    def _on_success(self, traj: HorizonTrajectory) -> ActuatorCommand:
        u, clamped = clamp_control(extract_first_control(traj), self.cfg.constraints)
        if u is None:
            return self._on_failure(SolveFailure('NonFinite_Control', 'first control is NaN/inf',
                                                 traj.solve_time))

        st = self.stats
        st.solves += 1
        st.consecutive_failures = 0
        st.last_status = traj.status
        st.last_solve_time = traj.solve_time
        st.total_solve_time += traj.solve_time
        st.max_solve_time = max(st.max_solve_time, traj.solve_time)
        if clamped:
            st.clamped += 1
            logger.debug("first control clamped into bounds: %s", u)

        cmd = self.mapper.to_command(u)
        if cmd is None:
            st.no_match += 1
            logger.warning("no calibration point within %.3g of a=%.3f",
                           self.mapper.options.match_tolerance, u.a)
            return self._fallback()

        self._last_good = cmd
        self._held = 0
        return cmd

    def _on_failure(self, failure: SolveFailure) -> ActuatorCommand:
        st = self.stats
        st.failures += 1
        st.consecutive_failures += 1
        st.last_status = failure.status
        logger.warning("solve failed: %s (%d in a row, %d total)",
                       failure.status, st.consecutive_failures, st.failures)
        return self._fallback()

    def _fallback(self) -> ActuatorCommand:
        self.stats.fallbacks += 1
        lp = self.cfg.loop
        if lp.failure_policy == 'hold' and self._last_good is not None and self._held < lp.max_hold_ticks:
            self._held += 1
            return replace(self._last_good, fallback=True)
        return self.mapper.safe_command()
