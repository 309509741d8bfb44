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
from detqmc import Parameters
from detqmc.mp import map_params, run_dqmc_parallel, get_max_workers


def test_map_params():
    p_default = Parameters(ll=4)

    # Map interactions
    values = [1.0, 2.0, 3.0]
    params = map_params(p_default, u=values)
    for x, p in zip(values, params):
        assert p.u == x
        assert p.ll == 4

    # Map betas
    values = np.array([1.0, 2.0, 3.0])
    params = map_params(p_default, beta=values)
    for x, p in zip(values, params):
        assert p.beta == x
        assert isinstance(p.beta, float)
        assert p.dtau == x / p.lt

    # Map multiple arrays
    params = map_params(p_default, u=[1.0, 2.0], mu=[0.1, 0.2])
    assert [(p.u, p.mu) for p in params] == [(1.0, 0.1), (2.0, 0.2)]


def test_map_params_length_mismatch():
    with pytest.raises(ValueError):
        map_params(Parameters(), u=[1.0, 2.0], mu=[0.1])


def test_get_max_workers():
    num_cores = get_max_workers()
    assert num_cores >= 1
    assert get_max_workers(0) == num_cores
    assert get_max_workers(2) == 2
    assert get_max_workers(-1) == max(1, num_cores - 1)


def test_run_dqmc_parallel():
    p_default = Parameters(ll=2, lt=8, beta=1.0, nwrap=4, nwarm=2, nbin=2, nsweep=2,
                           n_between_bins=0)
    params = map_params(p_default, u=[-1.0, -2.0, -3.0])
    results = run_dqmc_parallel(params, max_workers=2, progress=False)
    assert len(results) == 3
    assert [res.params.u for res in results] == [-1.0, -2.0, -3.0]
    for res in results:
        assert res.num_bins == 2
