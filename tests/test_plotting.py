# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import matplotlib
matplotlib.use("Agg")

import numpy as np  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
from detqmc import Parameters  # noqa: E402
from detqmc.simulator import Results  # noqa: E402
from detqmc.plotting import plot_scan, plot_matsubara, ConfigurationPlot  # noqa: E402


def _results(u, lt=8):
    p = Parameters(ll=2, lt=lt, beta=1.0, u=u)
    res = Results(p)
    res.eqtime_mean = {"double_occupancy": 0.1 * abs(u)}
    res.eqtime_err = {"double_occupancy": 0.01}
    res.dynamic_mean = {"matsubara_greens": np.linspace(0.5, 0.1, lt),
                        "superfluid_stiffness": 0.2}
    res.dynamic_err = {"matsubara_greens": np.full(lt, 0.01),
                       "superfluid_stiffness": 0.02}
    return res


def test_plot_scan():
    u = [-1.0, -2.0, -3.0]
    results = [_results(x) for x in u]
    ax = plot_scan(u, results, "double_occupancy")
    assert ax.get_xlabel() == "U"
    ax = plot_scan(u, results, "superfluid_stiffness", xlabel="beta")
    assert ax.get_xlabel() == r"$\beta$"
    plt.close("all")


def test_plot_matsubara():
    ax = plot_matsubara(_results(-2.0))
    assert ax.get_xlim() == (0.0, 1.0)
    plt.close("all")


def test_configuration_plot():
    config = np.random.default_rng(0).choice([-1, 1], size=(4, 8))
    plot = ConfigurationPlot(config)
    plot.update_config(-config)
    plot.set_figsize(4, 3)
    plot.tight_layout()
    plt.close("all")
