# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Hubbard-Stratonovich field configurations and their file format.

A configuration is stored as an `(N, L)` array of `int8` values `±1`, where `N`
is the number of lattice sites and `L` the number of imaginary time slices.
The text format has one row `l i s(i, l)` per entry.
"""

import logging
import numpy as np
from .errors import ConfigError

logger = logging.getLogger("detqmc")

UP, DN = +1, -1


def init_configuration(num_sites: int, num_timesteps: int, rng=None) -> np.ndarray:
    """Initializes the configuration array with a random distribution of `-1` and `+1`.

    Parameters
    ----------
    num_sites : int
        The number of sites `N` of the lattice model.
    num_timesteps : int
        The number of time steps `L` used in the Monte Carlo simulation.
    rng : np.random.Generator, optional
        The random generator of the Markov chain.

    Returns
    -------
    config : (N, L) np.ndarray
        The array representing the configuration or or Hubbard-Stratonovich field.
    """
    if rng is None:
        rng = np.random.default_rng()
    return rng.choice([-1, +1], size=(num_sites, num_timesteps)).astype(np.int8)


def write_configuration(file, config):
    """Writes a configuration to a text file with one row `l i s(i, l)` per entry."""
    num_sites, num_timesteps = config.shape
    with open(file, "w") as fh:
        for t in range(num_timesteps):
            for i in range(num_sites):
                fh.write(f"{t:>15}{i:>15}{int(config[i, t]):>15}\n")
    logger.info("Configuration written to %s", file)


def read_configuration(file, num_sites, num_timesteps):
    """Reads a configuration written by `write_configuration`.

    Parameters
    ----------
    file : str or Path
        The path of the input file.
    num_sites : int
        The expected number of sites `N`.
    num_timesteps : int
        The expected number of time steps `L`.

    Returns
    -------
    config : (N, L) np.ndarray
        The Hubbard-Stratonovich field.

    Raises
    ------
    ConfigError
        If a row is malformed or the file does not cover all `N x L` entries.
    """
    config = np.zeros((num_sites, num_timesteps), dtype=np.int8)
    max_t, max_i = -1, -1
    with open(file, "r") as fh:
        for num, line in enumerate(fh, start=1):
            data = line.split()
            if not data:
                continue
            if len(data) != 3:
                raise ConfigError(f"Malformed row {num} in '{file}': '{line.strip()}'")
            try:
                t, i, s = int(data[0]), int(data[1]), int(float(data[2]))
            except ValueError as e:
                raise ConfigError(f"Malformed row {num} in '{file}': {e}") from e
            if not (0 <= t < num_timesteps and 0 <= i < num_sites):
                raise ConfigError(f"Index ({t}, {i}) in row {num} of '{file}' is out "
                                  f"of range ({num_timesteps}, {num_sites})")
            if s not in (UP, DN):
                raise ConfigError(f"Invalid field value {s} in row {num} of '{file}'")
            config[i, t] = s
            max_t, max_i = max(max_t, t), max(max_i, i)

    if max_t + 1 != num_timesteps or max_i + 1 != num_sites:
        raise ConfigError(f"Configuration in '{file}' has shape ({max_i + 1}, "
                          f"{max_t + 1}), expected ({num_sites}, {num_timesteps})")
    missing = np.argwhere(config == 0)
    if len(missing):
        i, t = missing[0]
        raise ConfigError(f"Configuration in '{file}' is missing {len(missing)} "
                          f"entries, first at l={t}, i={i}")
    logger.info("Configuration read from %s", file)
    return config
