# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Main DQMC simulator object, see `dqmc` for implementation of the DQMC methods."""

import time
import logging
from dataclasses import dataclass, field
import numpy as np
from tqdm import tqdm
from .model import hubbard_square
from .params import Parameters
from .config import read_configuration, write_configuration
from .dqmc import (
    init_state,
    init_stacks,
    sweep_0_to_beta,
    sweep_beta_to_0,
    sweep_0_to_beta_displaced,
)
from .measurements import EqualTimeMeasure, DynamicMeasure

logger = logging.getLogger("detqmc")


@dataclass
class Results:
    """Means, errors and bins of all measured observables of one simulation."""

    params: Parameters
    eqtime_mean: dict = field(default_factory=dict)
    eqtime_err: dict = field(default_factory=dict)
    eqtime_bins: dict = field(default_factory=dict)
    dynamic_mean: dict = field(default_factory=dict)
    dynamic_err: dict = field(default_factory=dict)
    dynamic_bins: dict = field(default_factory=dict)
    num_bins: int = 0
    max_wrap_error_equal: float = 0.0
    max_wrap_error_displaced: float = 0.0
    wrap_breaches: int = 0
    acceptance_ratio: float = 0.0
    time: float = 0.0
    interrupted: bool = False

    @property
    def q(self):
        return self.params.qx, self.params.qy


class DetQMC:
    """Main DQMC simulator instance.

    Parameters
    ----------
    params : Parameters
        The parameters of the simulation, validated on construction.
    config : (N, L) np.ndarray or str, optional
        An initial configuration or the path of a configuration file. If given,
        the configuration is assumed to be thermalized and no warm-up is done.
    progress : bool, optional
        If `True` progress bars are printed.
    """

    def __init__(self, params, config=None, progress=False):
        params = params.copy().validate()
        self.params = params
        self.progress = progress
        self.model = hubbard_square(params.ll, params.u, params.t, params.mu, params.beta)
        self.warm_up = params.warm_up
        if isinstance(config, str) or hasattr(config, "__fspath__"):
            config = read_configuration(config, self.model.num_sites, params.lt)
        if config is not None:
            self.warm_up = False
        self.state = init_state(params, self.model, config)

        q = np.pi * np.array([params.qx, params.qy])
        self.eqtime = EqualTimeMeasure(self.model, params.nbin, q)
        self.dynamic = DynamicMeasure(self.model, params.nbin, params.lt, q)

        self.num_bins = 0
        self.interrupted = False
        self.time = 0.0
        self.status = ""

    @property
    def config(self):
        return self.state.config

    def sweep_back_and_forth(self, eqtime=False, dynamic=False):
        """Sweeps from `τ=0` to `τ=β` and back, measuring after each direction."""
        state = self.state
        # sweep forth from 0 to beta
        if dynamic:
            sweep_0_to_beta_displaced(state)
            self.dynamic.measure(state)
        else:
            sweep_0_to_beta(state)
        if eqtime:
            self.eqtime.measure(state)

        # sweep back from beta to 0
        sweep_beta_to_0(state)
        if eqtime:
            self.eqtime.measure(state)
        logger.debug("[%s] Ratio: %.2f  Signs: (%+d %+d)", self.status,
                     state.acceptance_ratio, state.sgns[0], state.sgns[1])

    def warmup(self, sweeps):
        """Thermalizes the configuration with `sweeps / 2` sweeps back and forth."""
        self.status = "warm"
        for _ in tqdm(range(sweeps // 2), desc="Warmup", disable=not self.progress):
            self.sweep_back_and_forth()

    def _discard_bin(self):
        self.eqtime.clear()
        self.dynamic.clear()

    def _close_bin(self, index):
        for measure, enabled in ((self.eqtime, self.params.eqtime),
                                 (self.dynamic, self.params.dynamic)):
            if enabled:
                measure.normalize()
                measure.commit(index)
            measure.clear()

    def measure_bin(self, index):
        """Accumulates one bin and decorrelates the configuration afterwards.

        The bin is either committed completely or discarded. A fresh factorization
        of the stacks is computed at the beginning of each bin.
        """
        p = self.params
        self.status = f"bin{index}"
        try:
            init_stacks(self.state)
            for _ in range(p.nsweep // 2):
                self.sweep_back_and_forth(p.eqtime, p.dynamic)
        except BaseException:
            self._discard_bin()
            raise
        self._close_bin(index)
        self.num_bins = index + 1
        # avoid correlation between bins
        self.status = "decorr"
        for _ in range(p.n_between_bins):
            self.sweep_back_and_forth()

    def measure(self):
        """Runs the measurement bins. An interruption is honored at a bin boundary."""
        p = self.params
        for index in tqdm(range(p.nbin), desc="Sample", disable=not self.progress):
            try:
                self.measure_bin(index)
            except KeyboardInterrupt:
                self.interrupted = True
                logger.warning("Simulation interrupted, keeping %s completed bins",
                               self.num_bins)
                break

    def simulate(self):
        p = self.params
        t0 = time.perf_counter()
        self.state.reset_wrap_errors()
        if self.warm_up and p.nwarm:
            logger.info("Running %s warm-up sweeps...", p.nwarm)
            t0_warm = time.perf_counter()
            try:
                self.warmup(p.nwarm)
            except KeyboardInterrupt:
                self.interrupted = True
                logger.warning("Simulation interrupted during warm-up")
            t_warm = time.perf_counter() - t0_warm
            logger.info("Warm-up CPU time: %6.1fs", t_warm)

        if not self.interrupted and (p.eqtime or p.dynamic):
            logger.info("Running %s bins of %s sweeps...", p.nbin, p.nsweep)
            t0_meas = time.perf_counter()
            self.measure()
            t_meas = time.perf_counter() - t0_meas
            logger.info("Measuring CPU time: %6.1fs", t_meas)

        self.time = time.perf_counter() - t0
        logger.info("Maximum of wrap error (equal-time):     %.2e",
                    self.state.max_wrap_error_equal)
        logger.info("Maximum of wrap error (time-displaced): %.2e",
                    self.state.max_wrap_error_displaced)
        logger.info("Total CPU time: %6.1fs", self.time)

    def analyse(self):
        """Analyses the completed bins and returns the results.

        Raises
        ------
        ValueError
            If less than two bins were completed.
        """
        p = self.params
        state = self.state
        results = Results(
            p,
            num_bins=self.num_bins,
            max_wrap_error_equal=state.max_wrap_error_equal,
            max_wrap_error_displaced=state.max_wrap_error_displaced,
            wrap_breaches=state.wrap_breaches,
            acceptance_ratio=state.acceptance_ratio,
            time=self.time,
            interrupted=self.interrupted,
        )
        if not (p.eqtime or p.dynamic):
            return results
        if self.num_bins < 2:
            raise ValueError(f"Only {self.num_bins} bins completed, at least two "
                             f"are required for the error analysis")
        if p.eqtime:
            self.eqtime.analyse()
            results.eqtime_mean = self.eqtime.means()
            results.eqtime_err = self.eqtime.errors()
            results.eqtime_bins = self.eqtime.bins()
        if p.dynamic:
            self.dynamic.analyse()
            results.dynamic_mean = self.dynamic.means()
            results.dynamic_err = self.dynamic.errors()
            results.dynamic_bins = self.dynamic.bins()
        return results

    def save_configuration(self, file):
        write_configuration(file, self.state.config)


def run_dqmc(p, config=None, config_out=None, progress=False):
    """Runs a DQMC simulation.

    Parameters
    ----------
    p : Parameters
        The input parameters of the DQMC simulation.
    config : str or np.ndarray, optional
        An initial configuration or the path of a configuration file.
    config_out : str, optional
        A file path for writing the final configuration.
    progress : bool
        If `True` a progressbar will be printed.

    Returns
    -------
    results : Results
        The results of the DQMC simulation.
    """
    sim = DetQMC(p, config, progress)
    sim.simulate()
    if config_out:
        sim.save_configuration(config_out)
    return sim.analyse()


def log_results(results):
    logger.info("_" * 60)
    logger.info("Simulation results")
    logger.info("")
    mean, err = results.eqtime_mean, results.eqtime_err
    if mean:
        logger.info("  Double Occupancy:        %10.6f  err: %.6f",
                    mean["double_occupancy"], err["double_occupancy"])
        logger.info("  Kinetic Energy:          %10.6f  err: %.6f",
                    mean["kinetic_energy"], err["kinetic_energy"])
        logger.info("  Momentum Distribution:   %10.6f  err: %.6f",
                    mean["momentum_distribution"], err["momentum_distribution"])
        logger.info("  Local Spin Correlation:  %10.6f  err: %.6f",
                    mean["local_spin_correlation"], err["local_spin_correlation"])
        logger.info("  Structure Factor:        %10.6f  err: %.6f",
                    mean["structure_factor"], err["structure_factor"])
        logger.info("  Average Sign (abs):      %10.6f  err: %.6f",
                    abs(mean["average_sign"]), err["average_sign"])
    mean, err = results.dynamic_mean, results.dynamic_err
    if mean:
        half = results.params.lt // 2
        logger.info("  G(k, beta/2):            %10.6f  err: %.6f",
                    mean["matsubara_greens"][half], err["matsubara_greens"][half])
        logger.info("  Superfluid Stiffness:    %10.6f  err: %.6f",
                    mean["superfluid_stiffness"], err["superfluid_stiffness"])
        logger.info("  Average Sign (abs):      %10.6f  err: %.6f",
                    abs(mean["average_sign"]), err["average_sign"])
    logger.info("  Acceptance ratio:        %10.4f", results.acceptance_ratio)
    logger.info("  Time cost:               %10.1fs", results.time)
    logger.info("")
