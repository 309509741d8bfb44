# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import numpy as np
import matplotlib.pyplot as plt

YLABELS = {
    "double_occupancy": r"$\langle n_↑ n_↓ \rangle$",
    "kinetic_energy": r"$E_{kin}$",
    "structure_factor": r"$S(q)$",
    "momentum_distribution": r"$n(q)$",
    "local_spin_correlation": r"$\langle m_z^2 \rangle$",
    "average_sign": r"$\langle s \rangle$",
    "superfluid_stiffness": r"$\rho_s$",
}

XLABELS = {
    "u": "U",
    "mu": r"$\mu$",
    "beta": r"$\beta$",
}


def _observable(results, name):
    if name in results.eqtime_mean:
        return results.eqtime_mean[name], results.eqtime_err[name]
    return results.dynamic_mean[name], results.dynamic_err[name]


def plot_scan(x, results, name, xlabel="u", ax=None):
    """Plots the mean and error of an observable for a parameter scan."""
    if ax is None:
        fig, ax = plt.subplots()
    y, yerr = np.array([_observable(res, name) for res in results]).T
    ax.errorbar(x, y, yerr=yerr, marker="o", capsize=2)
    ax.set_xlabel(XLABELS.get(xlabel, xlabel))
    ax.set_ylabel(YLABELS.get(name, name))
    ax.grid()
    return ax


def plot_matsubara(results, ax=None):
    """Plots the Green's function :math:`G(q, τ)` with errors."""
    if ax is None:
        fig, ax = plt.subplots()
    p = results.params
    tau = np.arange(p.lt) * p.dtau
    mean = results.dynamic_mean["matsubara_greens"]
    err = results.dynamic_err["matsubara_greens"]
    ax.errorbar(tau, mean, yerr=err, marker=".", capsize=2)
    ax.set_xlim(0, p.beta)
    ax.set_xlabel(r"$\tau$")
    ax.set_ylabel(rf"$G(q, \tau)$, q=({p.qx}π, {p.qy}π)")
    ax.grid()
    return ax


class ConfigurationPlot:
    def __init__(self, config, ax=None):
        if ax is None:
            fig, ax = plt.subplots()
            ax.invert_yaxis()
        else:
            fig = ax.get_figure()
        self.fig = fig
        self.ax = ax
        self.im = None

        self.plot_config(config)

    def set_figsize(self, width, height, dpi=None):
        self.fig.set_size_inches(width, height)
        if dpi is not None:
            self.fig.set_dpi(dpi)

    def tight_layout(self):
        self.fig.tight_layout()

    def plot_config(self, config):
        self.im = self.ax.imshow(config)
        self.ax.set_xlabel(r"$l$")
        self.ax.set_ylabel(r"$i$")

    def update_config(self, config):
        self.im.set_data(config)

    def show(self, tight=True, block=True):
        if tight:
            self.tight_layout()
        plt.show(block=block)
