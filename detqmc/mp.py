# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Multiprocessing tools.

Each simulation owns its complete state, so independent Markov chains (for
example different parameter points) run in separate processes without any
synchronization.
"""

import logging
import psutil
import numpy as np  # noqa: F401
import concurrent.futures
from tqdm import tqdm
from .params import Parameters  # noqa: F401
from .simulator import run_dqmc

logger = logging.getLogger("detqmc")


def get_max_workers(max_workers=None):
    """Returns the number of processes to use.

    If `None` or `0` the number of logical cores of the system is used. If a negative
    integer is passed it is subtracted from the number of logical cores.
    """
    num_cores = psutil.cpu_count(logical=True) or 1
    if max_workers is None or max_workers == 0:
        return num_cores
    elif max_workers < 0:
        return max(1, num_cores + max_workers)
    return max_workers


# noinspection PyShadowingNames
def map_params(p, **kwargs):
    """Maps arrays to the attributes of a default Parameter object.

    Parameters
    ----------
    p : Parameters
        The default parameters. A copy of the parameters is created
        before replacing the attributes from the keyword arguments
    **kwargs
        Keyword arguments containing arrays of values that are mapped to the
        attributes of the default parameters. If multiple keyword arguments
        are given the length of all arrays have to match.

    Returns
    -------
    params : list of Parameters
        The parameters with the mapped keyword arguments.

    Examples
    --------
    >>> p = Parameters(ll=4, lt=40, beta=2.0, u=-4.0)  # Default parameters
    >>> u = np.arange(-3, -1, 0.5)  # Interactions
    >>> params = map_params(p, u=u)  # Map interaction array to parameters
    >>> [p.u for p in params]  # Interaction has mapped values
    [-3.0, -2.5, -2.0, -1.5]
    >>> [p.t for p in params]  # Hopping is constant for all parameters
    [1.0, 1.0, 1.0, 1.0]
    """
    num_params = 0
    # Check number of values for each keyword argument
    for key, vals in kwargs.items():
        num_vals = len(vals)
        if num_params == 0:
            num_params = num_vals
        elif num_vals != num_params:
            raise ValueError(f"Length {num_vals} of keyword argument {key} does not "
                             f"match the previous lengths {num_params}")
    # Map parameters
    params = list()
    for i in range(num_params):
        # Copy default parameters and update with given kwargs
        p_new = p.copy(**{key: vals[i].item() if hasattr(vals[i], "item") else vals[i]
                          for key, vals in kwargs.items()})
        params.append(p_new)
    return params


# noinspection PyShadowingNames
def run_dqmc_parallel(params, max_workers=None, progress=True, desc=None):
    """Runs multiple DQMC simulations in parallel.

    Parameters
    ----------
    params : Iterable of Parameters
        The input parameters to map to the processes. The list of results preserves
        the input order of the parameters.
    max_workers : int, optional
        The number of processes to use (see `get_max_workers`).
    progress : bool, optional
        If `True` a progresss bar is printed.
    desc : str, optional
        A header for the progress bar.

    Returns
    -------
    results : List of Results
        The results of the DQMC simulations in the order of the input parameters.

    Examples
    --------
    >>> p = Parameters(ll=4, lt=40, beta=2.0)  # Default parameters
    >>> u = np.arange(-3, -1, 0.5)  # Interactions
    >>> params = map_params(p, u=u)  # Map interaction array to parameters
    >>> res = run_dqmc_parallel(params, max_workers=-1)
    """
    params = list(params)
    max_workers = min(get_max_workers(max_workers), max(1, len(params)))
    logger.debug("Running %s simulations on %s processes", len(params), max_workers)
    with concurrent.futures.ProcessPoolExecutor(max_workers) as executor:
        results = executor.map(run_dqmc, params)
        if progress:
            return list(tqdm(results, total=len(params), desc=desc))
        else:
            return list(results)
