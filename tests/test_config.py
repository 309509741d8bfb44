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
from numpy.testing import assert_equal
from detqmc.config import init_configuration, write_configuration, read_configuration
from detqmc.errors import ConfigError


def test_init_configuration():
    config = init_configuration(16, 40, np.random.default_rng(0))
    assert config.shape == (16, 40)
    assert config.dtype == np.int8
    assert set(np.unique(config)) == {-1, +1}


def test_init_configuration_seeded():
    c1 = init_configuration(4, 10, np.random.default_rng(42))
    c2 = init_configuration(4, 10, np.random.default_rng(42))
    assert_equal(c1, c2)


def test_configuration_roundtrip(tmp_path):
    file = tmp_path / "config.dat"
    config = init_configuration(9, 12, np.random.default_rng(1))
    write_configuration(file, config)
    lines = file.read_text().splitlines()
    assert len(lines) == 9 * 12
    assert lines[1].split() == ["0", "1", str(config[1, 0])]
    assert_equal(read_configuration(file, 9, 12), config)


def test_read_configuration_shape_mismatch(tmp_path):
    file = tmp_path / "config.dat"
    write_configuration(file, init_configuration(4, 6, np.random.default_rng(1)))
    with pytest.raises(ConfigError):
        read_configuration(file, 4, 8)
    with pytest.raises(ConfigError):
        read_configuration(file, 4, 4)


def test_read_configuration_invalid(tmp_path):
    file = tmp_path / "config.dat"
    file.write_text("0 0 1\n0 1 2\n")
    with pytest.raises(ConfigError):
        read_configuration(file, 2, 1)

    file.write_text("0 0 1\n0 1\n")
    with pytest.raises(ConfigError):
        read_configuration(file, 2, 1)

    file.write_text("0 0 1\n0 x 1\n")
    with pytest.raises(ConfigError):
        read_configuration(file, 2, 1)


def test_read_configuration_missing_entries(tmp_path):
    file = tmp_path / "config.dat"
    file.write_text("0 0 1\n1 1 -1\n")
    with pytest.raises(ConfigError):
        read_configuration(file, 2, 2)
