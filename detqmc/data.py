# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Result files and the HDF5 database of simulation results."""

import h5py
import hashlib
import logging
import numpy as np
from typing import Union
from .params import Parameters
from .measurements import EQTIME_OBSERVABLES, DYNAMIC_OBSERVABLES
from .simulator import Results
from .mp import get_max_workers, run_dqmc_parallel

logger = logging.getLogger("detqmc")

WIDTH = 15


def _row(*values, width=WIDTH):
    return "".join(f"{v:>{width}}" for v in values) + "\n"


def _fmt(value):
    return f"{float(value):.8g}"


def write_eqtime_results(file, results, append=False):
    """Writes one fixed-width row of the equal-time results.

    The row contains `U/t, β`, the means and the errors of the five equal-time
    observables and the momentum `qx, qy` in units of `π`.
    """
    p = results.params
    mean, err = results.eqtime_mean, results.eqtime_err
    values = [p.u / p.t, p.beta]
    values += [mean[name] for name in EQTIME_OBSERVABLES]
    values += [err[name] for name in EQTIME_OBSERVABLES]
    values += [p.qx, p.qy]
    with open(file, "a" if append else "w") as fh:
        fh.write(_row(*[_fmt(v) for v in values]))
    logger.info("Equal-time data has been written into file: %s", file)


def write_dynamic_results(file, results, append=False):
    """Writes the Matsubara Green's function and the superfluid stiffness.

    After the header `Momentum k: qx pi, qy pi` one row `l, mean, err, err/mean` per
    time slice follows. The last row holds `mean, err, err/mean` of the stiffness.
    """
    p = results.params
    mean, err = results.dynamic_mean, results.dynamic_err
    gkt, gkt_err = mean["matsubara_greens"], err["matsubara_greens"]
    with np.errstate(divide="ignore", invalid="ignore"):
        with open(file, "a" if append else "w") as fh:
            fh.write(f"Momentum k: {p.qx} pi, {p.qy} pi\n")
            for tau in range(p.lt):
                rel = gkt_err[tau] / gkt[tau]
                fh.write(_row(tau, _fmt(gkt[tau]), _fmt(gkt_err[tau]), _fmt(rel)))
            rho, rho_err = mean["superfluid_stiffness"], err["superfluid_stiffness"]
            fh.write(_row(_fmt(rho), _fmt(rho_err), _fmt(np.float64(rho_err) / rho)))
    logger.info("Dynamic data has been written into file: %s", file)


def write_bins(file, results, name="matsubara_greens"):
    """Writes the bin values of a time-displaced observable for later reanalysis.

    The first line holds the number of bins, followed by the bin index and the
    `L` values of each bin.
    """
    bins = results.dynamic_bins[name]
    with open(file, "w") as fh:
        fh.write(f"{len(bins):>10}\n")
        for index, values in enumerate(bins):
            fh.write(f"{index:>20}\n")
            for val in np.atleast_1d(values):
                fh.write(f"{val:>20.15g}\n")
    logger.info("Bins of %s have been written into file: %s", name, file)


def read_bins(file):
    """Reads the bin values written by `write_bins` as `(nbin, L)` array."""
    with open(file, "r") as fh:
        lines = [line.strip() for line in fh if line.strip()]
    nbin = int(lines[0])
    values = np.array([float(x) for x in lines[1:]])
    return values.reshape(nbin, -1)[:, 1:]


def write_tau(file, p):
    """Writes the imaginary times `l Δτ` of all time slices."""
    with open(file, "w") as fh:
        fh.write(f"{p.lt:>7}{p.beta:>7}\n")
        for tau in range(p.lt):
            fh.write(f"{_fmt(tau * p.dtau):>15}\n")


def hash_params(**kwargs):
    keys = sorted(kwargs.keys())
    data = "; ".join([str(kwargs[k]) for k in keys])
    m = hashlib.md5(data.encode("utf-8"))
    return m.hexdigest()


def check_attrs(item: Union[h5py.File, h5py.Group, h5py.Dataset],
                attrs: dict, mode: str = "equals") -> bool:
    """Checks if the attributes of an hdf5-object match the given attributes.

    Parameters
    ----------
    item : h5py.File or h5py.Group or h5py.Database
        The attributes of the item are checked.
    attrs : dict
        The attributes for matching.
    mode : str, optional
        Mode for matching attributes. Valid modes are 'equals' and 'contains'.
        If the mode is 'equals', the dictionary of the item attributes has to be
        equal to the given dictionary. If the mode is 'contains', the item dictionary
        can contain any number of values, but the values of the given dictionary have
        to be included. The default is 'equals'.

    Returns
    -------
    matches: bool
    """
    if mode == "contains":
        for key, val in attrs.items():
            if key not in item.attrs.keys() or item.attrs[key] != val:
                return False
        return True
    elif mode == "equals":
        return dict(item.attrs) == attrs
    else:
        modes = ["contains", "equals"]
        raise ValueError(f"Mode '{mode}' not supported! Valid modes: {modes}")


def _attrs(kwargs):
    if isinstance(kwargs, Parameters):
        kwargs = kwargs.to_dict()
    return {k: v for k, v in kwargs.items() if v is not None}


class Database:
    """HDF5 database for storing DQMC simulation results.

    Uses the hash of the input parameters (`dict` or `Parameters`) as key to store
    the results of a DQMC simulation. Each group holds the means, errors and bins
    of the observables in the subgroups `eqtime` and `dynamic`.
    """

    def __init__(self, file="detqmc.hdf5", mode="a"):
        self.file = file if isinstance(file, h5py.File) else h5py.File(file, mode)

    def close(self):
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @staticmethod
    def get_group_name(kwargs: Union[dict, Parameters]):
        return str(hash_params(**_attrs(kwargs)))

    def get_simulation_group(self, kwargs):
        name = self.get_group_name(kwargs)
        return self.file.get(name, default=None)

    def create_simulation_group(self, kwargs):
        name = self.get_group_name(kwargs)
        group = self.file.get(name, default=None)
        if group is None:
            group = self.file.create_group(name, track_order=True)
        return group

    def get_groups(self):
        return [self.file[k] for k in self.file]

    def find_groups(self, attrs, mode="contains"):
        groups = list()
        for k in self.file.keys():
            item = self.file[k]
            if check_attrs(item, attrs, mode):
                groups.append(item)
        return groups

    def find_missing(self, params, overwrite=False):
        if overwrite:
            return list(params)
        return [p for p in params if self.get_results(p) is None]

    def save_results(self, results):
        """Stores the results under the hash of their parameters."""
        group = self.create_simulation_group(results.params)
        for kind, names in (("eqtime", EQTIME_OBSERVABLES), ("dynamic", DYNAMIC_OBSERVABLES)):
            mean = getattr(results, f"{kind}_mean")
            if not mean:
                continue
            err = getattr(results, f"{kind}_err")
            bins = getattr(results, f"{kind}_bins")
            if kind in group:
                del group[kind]
            sub = group.create_group(kind, track_order=True)
            for name in names + ["average_sign"]:
                obs = sub.create_group(name)
                obs.create_dataset("mean", data=mean[name])
                obs.create_dataset("err", data=err[name])
                obs.create_dataset("bins", data=bins[name])

        for key in ("num_bins", "max_wrap_error_equal", "max_wrap_error_displaced",
                    "wrap_breaches", "acceptance_ratio", "time"):
            group.attrs[f"_{key}"] = getattr(results, key)
        # Update attributes of group
        for k, v in _attrs(results.params).items():
            group.attrs[k] = v
        return group

    def get_results(self, p):
        """Loads the results of the given parameters or `None` if not stored."""
        group = self.get_simulation_group(p)
        if group is None or len(group) == 0:
            return None
        results = Results(p)
        for key in ("num_bins", "max_wrap_error_equal", "max_wrap_error_displaced",
                    "wrap_breaches", "acceptance_ratio", "time"):
            setattr(results, key, group.attrs[f"_{key}"])
        for kind in ("eqtime", "dynamic"):
            if kind not in group:
                continue
            sub = group[kind]
            for name in sub:
                getattr(results, f"{kind}_mean")[name] = np.array(sub[name]["mean"])
                getattr(results, f"{kind}_err")[name] = np.array(sub[name]["err"])
                getattr(results, f"{kind}_bins")[name] = np.array(sub[name]["bins"])
        return results

    def treestr(self):
        string = f"{self.file}\n"
        for key in self.file:
            group = self.file[key]
            string += f"   {group}\n"
            for k in group:
                string += f"      {group[k]}\n"
        return string


def update_datasets(db, params, max_workers=None, overwrite=False, progress=True):
    """Runs the missing simulations in parallel and stores them in the database.

    Parameters
    ----------
    db : Database
        The database instance used to store the DQMC simulation results.
    params : Sequence of Parameters
        The parameters of the simulations. The hash of the parameters is used
        as key to store the results in the database.
    max_workers : int, optional
        The number of processes to use (see `get_max_workers`).
    overwrite : bool, optional
        If `True`, existing datasets are overwritten and all simulations are run.
    progress : bool, optional
        If `True` a progresss bar is printed.

    Returns
    -------
    results : List of Results
        The results of the simulations in the order of the input parameters.
    """
    params = [p.copy().validate() for p in params]
    missing = db.find_missing(params, overwrite)
    if missing:
        max_workers = get_max_workers(max_workers)
        logger.info("Running %s of %s simulations with %s processes",
                    len(missing), len(params), max_workers)
        for res in run_dqmc_parallel(missing, max_workers, progress):
            db.save_results(res)
    return [db.get_results(p) for p in params]
