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
from numpy.testing import assert_allclose, assert_equal
from detqmc import Parameters, run_dqmc
from detqmc.measurements import EQTIME_OBSERVABLES
from detqmc.data import (
    Database,
    update_datasets,
    write_eqtime_results,
    write_dynamic_results,
    write_bins,
    read_bins,
    write_tau,
    check_attrs,
)


@pytest.fixture(scope="module")
def results():
    p = Parameters(ll=2, lt=8, beta=1.0, u=-2.0, nwrap=4, nwarm=2, nbin=3, nsweep=2,
                   n_between_bins=0)
    return run_dqmc(p)


def test_write_eqtime_results(tmp_path, results):
    file = tmp_path / "eqtime.dat"
    write_eqtime_results(file, results)
    write_eqtime_results(file, results, append=True)
    lines = file.read_text().splitlines()
    assert len(lines) == 2
    values = [float(x) for x in lines[0].split()]
    assert len(values) == 2 + 2 * len(EQTIME_OBSERVABLES) + 2
    assert values[0] == -2.0
    assert values[1] == 1.0
    assert_allclose(values[2], results.eqtime_mean["double_occupancy"], rtol=1e-7)
    assert values[-2:] == [0.5, 0.5]

    write_eqtime_results(file, results)
    assert len(file.read_text().splitlines()) == 1


def test_write_dynamic_results(tmp_path, results):
    file = tmp_path / "dynamic.dat"
    write_dynamic_results(file, results)
    lines = file.read_text().splitlines()
    assert lines[0] == "Momentum k: 0.5 pi, 0.5 pi"
    assert len(lines) == 1 + 8 + 1
    first = lines[1].split()
    assert int(first[0]) == 0
    assert_allclose(float(first[1]), results.dynamic_mean["matsubara_greens"][0],
                    rtol=1e-7)
    assert len(lines[-1].split()) == 3


def test_bins_roundtrip(tmp_path, results):
    file = tmp_path / "bins.dat"
    write_bins(file, results)
    bins = read_bins(file)
    assert bins.shape == (3, 8)
    assert_allclose(bins, results.dynamic_bins["matsubara_greens"], rtol=1e-14)


def test_write_tau(tmp_path, results):
    file = tmp_path / "tau.dat"
    write_tau(file, results.params)
    lines = file.read_text().splitlines()
    assert lines[0].split() == ["8", "1.0"]
    assert_allclose([float(x) for x in lines[1:]], np.arange(8) * 0.125)


def test_database_roundtrip(tmp_path, results):
    file = tmp_path / "data.hdf5"
    p = results.params
    with Database(file) as db:
        assert db.get_results(p) is None
        db.save_results(results)
        loaded = db.get_results(p)
        assert len(db.get_groups()) == 1
        assert len(db.find_groups({"u": -2.0})) == 1
        assert len(db.find_groups({"u": 4.0})) == 0
        assert db.find_missing([p, p.copy(u=-3.0)]) == [p.copy(u=-3.0)]
        assert "eqtime" in db.treestr()

    assert loaded.num_bins == results.num_bins
    assert_allclose(loaded.acceptance_ratio, results.acceptance_ratio)
    for name in EQTIME_OBSERVABLES + ["average_sign"]:
        assert_allclose(loaded.eqtime_mean[name], results.eqtime_mean[name])
        assert_allclose(loaded.eqtime_err[name], results.eqtime_err[name])
        assert_equal(loaded.eqtime_bins[name], results.eqtime_bins[name])
    assert_equal(loaded.dynamic_bins["matsubara_greens"],
                 results.dynamic_bins["matsubara_greens"])

    # Reopening the file keeps the results
    with Database(file, mode="r") as db:
        assert db.get_results(p) is not None


def test_check_attrs(tmp_path):
    import h5py

    with h5py.File(tmp_path / "attrs.hdf5", "w") as f:
        f.attrs["a"] = 1
        f.attrs["b"] = 2.0
        assert check_attrs(f, {"a": 1}, mode="contains")
        assert not check_attrs(f, {"a": 1}, mode="equals")
        assert check_attrs(f, {"a": 1, "b": 2.0}, mode="equals")
        with pytest.raises(ValueError):
            check_attrs(f, {}, mode="unknown")


def test_update_datasets(tmp_path):
    p = Parameters(ll=2, lt=8, beta=1.0, nwrap=4, nwarm=2, nbin=2, nsweep=2,
                   n_between_bins=0, dynamic=False)
    params = [p.copy(u=-1.0), p.copy(u=-2.0)]
    with Database(tmp_path / "data.hdf5") as db:
        results = update_datasets(db, params, max_workers=1, progress=False)
        assert [res.params.u for res in results] == [-1.0, -2.0]
        assert db.find_missing(params) == []
        # Stored results are reused
        again = update_datasets(db, params, max_workers=1, progress=False)
        assert_equal(again[0].eqtime_bins["double_occupancy"],
                     results[0].eqtime_bins["double_occupancy"])
