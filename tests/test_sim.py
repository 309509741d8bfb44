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
import pytest
from scipy.linalg import expm
from numpy.testing import assert_allclose, assert_equal
from detqmc import Parameters, DetQMC, run_dqmc, hubbard_square
from detqmc.errors import StabilizationError
from detqmc.config import read_configuration
from detqmc.measurements import EQTIME_OBSERVABLES, DYNAMIC_OBSERVABLES, phase_table
from detqmc import mfuncs


def _params(**kwargs):
    kwargs.setdefault("ll", 2)
    kwargs.setdefault("lt", 8)
    kwargs.setdefault("beta", 1.0)
    kwargs.setdefault("u", -2.0)
    kwargs.setdefault("nwrap", 4)
    kwargs.setdefault("nwarm", 4)
    kwargs.setdefault("nbin", 3)
    kwargs.setdefault("nsweep", 4)
    kwargs.setdefault("n_between_bins", 1)
    return Parameters(**kwargs)


def test_run_dqmc_small():
    p = _params()
    res = run_dqmc(p)
    assert res.num_bins == 3
    assert not res.interrupted
    for name in EQTIME_OBSERVABLES + ["average_sign"]:
        assert np.isfinite(res.eqtime_mean[name])
        assert res.eqtime_err[name] >= 0
        assert res.eqtime_bins[name].shape[0] == 3
    for name in DYNAMIC_OBSERVABLES:
        assert np.all(np.isfinite(res.dynamic_mean[name]))
    assert res.dynamic_mean["matsubara_greens"].shape == (p.lt,)
    assert 0 < res.acceptance_ratio <= 1
    assert res.max_wrap_error_equal < 1e-8
    assert res.q == (0.5, 0.5)


def test_attractive_sign():
    res = run_dqmc(_params(u=-4.0, mu=0.3))
    assert_equal(res.eqtime_bins["average_sign"], 1.0)
    assert_equal(res.dynamic_bins["average_sign"], 1.0)


def test_half_filling_sign():
    res = run_dqmc(_params(u=4.0, mu=0.0))
    # Particle-hole symmetry at half filling on the bipartite lattice
    assert_allclose(res.eqtime_mean["average_sign"], 1.0)
    assert_allclose(res.dynamic_mean["average_sign"], 1.0)


def test_noninteracting_exact():
    p = _params(u=0.0, mu=0.2, beta=2.0)
    res = run_dqmc(p)
    model = hubbard_square(p.ll, 0.0, p.t, p.mu, p.beta)
    ham = model.hamiltonian_kinetic()
    eye = np.eye(model.num_sites)
    gf = np.linalg.inv(eye + expm(-p.beta * ham))
    hopping = -p.t * model.hopping_matrix()
    phase = phase_table(model, np.pi * np.array([p.qx, p.qy]))

    mean = res.eqtime_mean
    assert_allclose(mean["double_occupancy"], mfuncs.double_occupancy(gf, gf))
    assert_allclose(mean["kinetic_energy"], mfuncs.kinetic_energy(gf, gf, hopping))
    assert_allclose(mean["momentum_distribution"],
                    mfuncs.momentum_distribution(gf, gf, phase))
    assert_allclose(res.eqtime_err["kinetic_energy"], 0.0, atol=1e-10)

    gt0 = np.array([expm(-tau * p.dtau * ham) @ gf for tau in range(p.lt)])
    expected = mfuncs.matsubara_greens(gt0, gt0, phase)
    assert_allclose(res.dynamic_mean["matsubara_greens"], expected, atol=1e-10)


def test_reproducible():
    p = _params(seed=3)
    res1 = run_dqmc(p)
    res2 = run_dqmc(p)
    for name in EQTIME_OBSERVABLES:
        assert_equal(res1.eqtime_bins[name], res2.eqtime_bins[name])


def test_without_measurements():
    p = _params(eqtime=False, dynamic=False)
    res = run_dqmc(p)
    assert res.eqtime_mean == {}
    assert res.dynamic_mean == {}


def test_only_eqtime():
    p = _params(dynamic=False)
    res = run_dqmc(p)
    assert res.dynamic_mean == {}
    assert "double_occupancy" in res.eqtime_mean


def test_configuration_in_out(tmp_path):
    file = tmp_path / "config.dat"
    p = _params()
    sim = DetQMC(p)
    sim.simulate()
    sim.save_configuration(file)
    config = read_configuration(file, p.num_sites, p.lt)
    assert_equal(config, sim.config)

    sim2 = DetQMC(p, config=str(file))
    assert not sim2.warm_up
    assert_equal(sim2.config, config)


def test_interrupt_keeps_completed_bins():
    p = _params(nbin=4)
    sim = DetQMC(p)
    measure_bin = sim.measure_bin

    def interrupted_bin(index):
        if index == 2:
            raise KeyboardInterrupt
        measure_bin(index)

    sim.measure_bin = interrupted_bin
    sim.simulate()
    assert sim.interrupted
    assert sim.num_bins == 2
    res = sim.analyse()
    assert res.interrupted
    assert res.eqtime_bins["double_occupancy"].shape == (2,)


def test_interrupt_discards_partial_bin():
    p = _params(nbin=4)
    sim = DetQMC(p)
    measure = sim.eqtime.measure
    calls = list()

    def interrupted_measure(state):
        calls.append(1)
        # Bin 0 takes four measurements, interrupt within bin 1
        if len(calls) == 6:
            raise KeyboardInterrupt
        measure(state)

    sim.eqtime.measure = interrupted_measure
    sim.measure()
    assert sim.interrupted
    assert sim.num_bins == 1
    assert sim.eqtime["double_occupancy"].count == 0
    assert sim.eqtime["double_occupancy"].num_filled == 1
    with pytest.raises(ValueError):
        sim.analyse()


def test_params_not_modified():
    p = _params(nsweep=5, nwarm=7)
    sim = DetQMC(p)
    assert p.nsweep == 5
    assert p.nwarm == 7
    assert sim.params is not p
    assert sim.params.nsweep == 4
    assert sim.params.nwarm == 6


def test_error_aborts_bin():
    sim = DetQMC(_params())
    measure = sim.eqtime.measure
    calls = list()

    def failing_measure(state):
        calls.append(1)
        if len(calls) == 3:
            raise StabilizationError("Green's function contains non-finite entries")
        measure(state)

    sim.eqtime.measure = failing_measure
    with pytest.raises(StabilizationError):
        sim.measure()
    assert sim.num_bins == 0
    assert sim.eqtime.sign.count == 0
    assert sim.eqtime.sign.num_filled == 0


def test_errors_shrink_with_bins():
    p = _params(u=-4.0, ll=2, lt=8, beta=2.0, nsweep=4, nwarm=20, seed=1)
    err_few = run_dqmc(p.copy(nbin=4)).eqtime_err["kinetic_energy"]
    err_many = run_dqmc(p.copy(nbin=64)).eqtime_err["kinetic_energy"]
    assert err_many < err_few


def test_square_4x4():
    p = Parameters(ll=4, lt=40, beta=2.0, u=-4.0, nwrap=10, nwarm=20, nbin=4,
                   nsweep=10, n_between_bins=2)
    res = run_dqmc(p)
    assert res.num_bins == 4
    for name in EQTIME_OBSERVABLES:
        assert np.isfinite(res.eqtime_mean[name])
        assert np.isfinite(res.eqtime_err[name])
    assert 0 < res.eqtime_mean["double_occupancy"] < 1
    assert 0 <= res.eqtime_mean["momentum_distribution"] <= 2
    assert np.isfinite(res.dynamic_mean["superfluid_stiffness"])
    assert res.max_wrap_error_equal < p.wrap_tol
    assert res.wrap_breaches == 0


@pytest.mark.slow
def test_square_4x4_bin_scaling():
    p = Parameters(ll=4, lt=80, beta=4.0, t=1.0, u=-4.0, mu=0.0, nwrap=10, nbin=20,
                   nsweep=100, n_between_bins=10)
    res_many = run_dqmc(p)
    res_few = run_dqmc(p.copy(nbin=5, seed=1))
    assert res_many.num_bins == 20
    assert res_few.num_bins == 5
    for res in (res_many, res_few):
        assert 0 < res.eqtime_mean["double_occupancy"] < 1
        assert 0 <= res.eqtime_mean["momentum_distribution"] <= 2
        for name in EQTIME_OBSERVABLES:
            assert np.isfinite(res.eqtime_mean[name])
            assert res.eqtime_err[name] >= 0
        assert res.wrap_breaches == 0
    for name in ("double_occupancy", "kinetic_energy"):
        # err * sqrt(nbin) estimates the spread of the bins in both runs
        spread_many = res_many.eqtime_err[name] * np.sqrt(20)
        spread_few = res_few.eqtime_err[name] * np.sqrt(5)
        assert 0.25 < spread_few / spread_many < 4
