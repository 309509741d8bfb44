# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import pytest
from detqmc.params import Parameters, parse, write_parameters, default_nwarm
from detqmc.errors import ConfigError


def test_defaults():
    p = Parameters()
    assert p.ll == 4
    assert p.lt == 80
    assert p.nwarm == default_nwarm(4, 4.0) == 256
    assert p.num_sites == 16
    assert p.dtau == 0.05
    assert p.nblocks == 8


def test_nblocks_ceil():
    p = Parameters(lt=10, nwrap=4)
    assert p.nblocks == 3


def test_temperature():
    p = Parameters(beta=2.0)
    assert p.temp == 0.5
    p.temp = 0.25
    assert p.beta == 4.0


def test_copy():
    p = Parameters(ll=6, u=2.0)
    p2 = p.copy(u=3.0)
    assert p2.u == 3.0 and p.u == 2.0
    assert p2.ll == 6


def test_parse(tmp_path):
    file = tmp_path / "params.txt"
    file.write_text(
        "# test parameters\n"
        "shape    6\n"
        "L        40       # time slices\n"
        "beta     2.0\n"
        "t        1.0\n"
        "U        -2.0\n"
        "nwraps   5\n"
        "nequil   8\n"
        "nbin     4\n"
        "nsweep   11\n"
        "nbetweenbins 2\n"
        "warmup   false\n"
        "unknown  1\n"
    )
    p = parse(file)
    assert p.ll == 6
    assert p.lt == 40
    assert p.beta == 2.0
    assert p.u == -2.0
    assert p.nwrap == 5
    assert p.nwarm == 8
    assert p.nbin == 4
    assert p.nsweep == 10
    assert p.n_between_bins == 2
    assert p.warm_up is False


def test_parse_temp(tmp_path):
    file = tmp_path / "params.txt"
    file.write_text("temp 0.5\n")
    assert parse(file).beta == 2.0


def test_parse_invalid_value(tmp_path):
    file = tmp_path / "params.txt"
    file.write_text("ll four\n")
    with pytest.raises(ConfigError):
        parse(file)
    file.write_text("ll\n")
    with pytest.raises(ConfigError):
        parse(file)


def test_parse_missing_file(tmp_path):
    with pytest.raises(OSError):
        parse(tmp_path / "missing.txt")


def test_write_parameters(tmp_path):
    file = tmp_path / "params.txt"
    p = Parameters(ll=6, lt=40, beta=2.0, u=3.0, nwrap=8, dynamic=False).validate()
    write_parameters(file, p)
    assert parse(file) == p


@pytest.mark.parametrize("kwargs", [
    dict(ll=1),
    dict(lt=0),
    dict(beta=0.0),
    dict(nwrap=0),
    dict(lt=10, nwrap=11),
    dict(nbin=1),
    dict(nsweep=1),
    dict(nwarm=-2),
    dict(n_between_bins=-1),
    dict(wrap_tol=0.0),
    dict(max_wrap_breaches=-1),
])
def test_validate_invalid(kwargs):
    with pytest.raises(ConfigError):
        Parameters(**kwargs).validate()


def test_validate_rounds_odd_sweeps():
    p = Parameters(nsweep=7, nwarm=5).validate()
    assert p.nsweep == 6
    assert p.nwarm == 4
