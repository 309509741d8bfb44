# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Binned accumulation of equal-time and time-displaced observables."""

import numpy as np
from . import mfuncs

EQTIME_OBSERVABLES = [
    "double_occupancy",
    "kinetic_energy",
    "structure_factor",
    "momentum_distribution",
    "local_spin_correlation",
]

DYNAMIC_OBSERVABLES = [
    "matsubara_greens",
    "density_of_states",
    "superfluid_stiffness",
]


def analyse_bins(bins):
    r"""Computes the mean and the standard error of binned data.

    Parameters
    ----------
    bins : (M, ...) array_like
        The values of the `M` bins. Array valued observables are analysed
        element-wise.

    Returns
    -------
    mean : float or np.ndarray
        The average over the bins.
    err : float or np.ndarray
        The standard error of the mean
        :math:`\sqrt{Σ_i (b_i - \bar{b})^2 / (M (M - 1))}`.
    """
    bins = np.asarray(bins, dtype=np.float64)
    num_bins = bins.shape[0]
    if num_bins < 2:
        raise ValueError(f"At least two bins are required, got {num_bins}")
    mean = np.mean(bins, axis=0)
    err = np.sqrt(np.sum((bins - mean) ** 2, axis=0) / (num_bins * (num_bins - 1)))
    return mean, err


class ObservableAccumulator:
    """Running sum of one observable within a bin and the values of all bins.

    Parameters
    ----------
    name : str
        The name of the observable.
    nbin : int
        The number of bins.
    shape : tuple, optional
        The shape of an array valued observable. A scalar by default.
    """

    def __init__(self, name, nbin, shape=()):
        self.name = name
        self.shape = tuple(shape)
        self.tmp = np.zeros(self.shape, dtype=np.float64)
        self.count = 0
        self.bins = np.zeros((nbin, *self.shape), dtype=np.float64)
        self.num_filled = 0
        self.mean = None
        self.err = None

    @property
    def nbin(self):
        return self.bins.shape[0]

    def accumulate(self, value):
        self.tmp += value
        self.count += 1

    def normalize(self, mean_sign=1.0):
        """Normalizes the running sum by the number of samples and the mean sign."""
        if self.count == 0:
            raise ValueError(f"No samples of '{self.name}' accumulated")
        self.tmp = self.tmp / (self.count * mean_sign)

    def commit(self, index):
        """Stores the normalized running sum as the value of bin `index`."""
        self.bins[index] = self.tmp
        self.num_filled = max(self.num_filled, index + 1)

    def clear(self):
        self.tmp = np.zeros(self.shape, dtype=np.float64)
        self.count = 0

    def analyse(self):
        self.mean, self.err = analyse_bins(self.bins[:self.num_filled])
        return self.mean, self.err

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name}, shape={self.shape}, count={self.count})"


class Measure:
    """Collection of observables sharing the average sign of their samples."""

    observables = list()

    def __init__(self, nbin, shapes=None):
        shapes = shapes or dict()
        self.sign = ObservableAccumulator("average_sign", nbin)
        self.data = dict()
        for name in self.observables:
            self.data[name] = ObservableAccumulator(name, nbin, shapes.get(name, ()))

    def __getitem__(self, name):
        if name == "average_sign":
            return self.sign
        return self.data[name]

    def __iter__(self):
        yield self.sign
        yield from self.data.values()

    def _accumulate(self, sign, values):
        self.sign.accumulate(sign)
        for name, value in values.items():
            self.data[name].accumulate(sign * value)

    def normalize(self):
        """Normalizes the running sums, the sign by the sample count only."""
        self.sign.normalize()
        mean_sign = float(self.sign.tmp)
        for obs in self.data.values():
            obs.normalize(mean_sign)

    def commit(self, index):
        for obs in self:
            obs.commit(index)

    def clear(self):
        for obs in self:
            obs.clear()

    def analyse(self):
        for obs in self:
            obs.analyse()

    def means(self):
        return {obs.name: obs.mean for obs in self}

    def errors(self):
        return {obs.name: obs.err for obs in self}

    def bins(self):
        return {obs.name: obs.bins[:obs.num_filled] for obs in self}


class EqualTimeMeasure(Measure):
    """Equal-time observables measured from the Green's functions of the state.

    Parameters
    ----------
    model : HubbardModel
        The lattice model.
    nbin : int
        The number of bins.
    q : (2, ) array_like
        The momentum of the momentum distribution and structure factor.
    """

    observables = EQTIME_OBSERVABLES

    def __init__(self, model, nbin, q):
        super().__init__(nbin)
        self.q = np.asarray(q, dtype=np.float64)
        self.hopping = -model.hop * model.hopping_matrix()
        self.phase = phase_table(model, self.q)

    def measure(self, state):
        gf_up, gf_dn = state.gf_up, state.gf_dn
        values = {
            "double_occupancy": mfuncs.double_occupancy(gf_up, gf_dn),
            "kinetic_energy": mfuncs.kinetic_energy(gf_up, gf_dn, self.hopping),
            "structure_factor": mfuncs.structure_factor(gf_up, gf_dn, self.phase),
            "momentum_distribution": mfuncs.momentum_distribution(gf_up, gf_dn,
                                                                  self.phase),
            "local_spin_correlation": mfuncs.local_spin_correlation(gf_up, gf_dn),
        }
        self._accumulate(state.sign, values)


class DynamicMeasure(Measure):
    """Time-displaced observables measured after a displaced sweep.

    Parameters
    ----------
    model : HubbardModel
        The lattice model.
    nbin : int
        The number of bins.
    num_timesteps : int
        The number of time slices `L`.
    q : (2, ) array_like
        The momentum of the Matsubara Green's function.
    """

    observables = DYNAMIC_OBSERVABLES

    def __init__(self, model, nbin, num_timesteps, q):
        shapes = {
            "matsubara_greens": (num_timesteps,),
            "density_of_states": (num_timesteps,),
        }
        super().__init__(nbin, shapes)
        self.q = np.asarray(q, dtype=np.float64)
        self.hop = model.hop
        self.phase = phase_table(model, self.q)
        self.table = model.displacement_table()
        self.ipx = model.neighbors(axis=0)
        vecs = model.displacement_vectors()
        qx = np.array([2 * np.pi / model.ll, 0.0])
        qy = np.array([0.0, 2 * np.pi / model.ll])
        self.factor = np.ascontiguousarray(
            np.cos(model.momentum_product(vecs, qx)) - np.cos(model.momentum_product(vecs, qy))
        )

    def measure(self, state):
        values = {
            "matsubara_greens": mfuncs.matsubara_greens(state.gt0_up, state.gt0_dn,
                                                        self.phase),
            "density_of_states": mfuncs.density_of_states(state.gt0_up, state.gt0_dn),
            "superfluid_stiffness": mfuncs.superfluid_stiffness(
                state.gtt_up, state.gtt_dn, state.gt0_up, state.gt0_dn,
                state.g0t_up, state.g0t_dn, self.table, self.ipx, self.factor,
                self.hop
            ),
        }
        self._accumulate(state.sign, values)


def phase_table(model, q):
    """Returns the table `cos(q • r_{ij})` of the periodic displacements between sites."""
    vecs = model.displacement_vectors()
    dind = model.displacement_indices()
    return np.cos(model.momentum_product(vecs[dind], q))
