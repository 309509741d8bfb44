# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import sys
import logging
import argparse
import numpy as np
from detqmc import (
    parse,
    Parameters,
    run_dqmc,
    map_params,
    run_dqmc_parallel,
    log_parameters,
    log_results,
)
from detqmc.params import default_nwarm
from detqmc.errors import ConfigError, StabilizationError
from detqmc.logging import add_file_handler
from detqmc.data import (
    Database,
    update_datasets,
    write_eqtime_results,
    write_dynamic_results,
    write_bins,
    write_tau,
)

logger = logging.getLogger("detqmc")

SCAN_KEYS = ("u", "mu", "beta")


# noinspection PyShadowingBuiltins
def parse_array_args(strings, type=float):
    if "..." in strings:
        a, b = type(strings[0]), type(strings[-1])
        if len(strings) == 3:
            step = 1.0
        else:
            step = type(strings[1]) - a
        values = np.arange(a, b + 0.1 * step, step)
    else:
        values = [type(s) for s in strings]
    return np.array(values, dtype=type)


def _bool(text):
    return str(text).lower() in ("1", "true", "yes", "on")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="detqmc", description="DQMC simulation of the square lattice Hubbard model"
    )
    parser.add_argument("file", type=str, nargs="?", default=None,
                        help="Parameter file with one 'label value' pair per line")
    parser.add_argument("--ll", type=int, help="spatial size of lattice")
    parser.add_argument("--lt", type=int, help="imaginary-time size of lattice")
    parser.add_argument("--t", type=float, help="hopping strength")
    parser.add_argument("--nwrap", type=int, help="pace of stabilization process")
    parser.add_argument("--nwarm", type=int, help="number of warmup sweeps")
    parser.add_argument("--nbin", type=int, help="number of bins")
    parser.add_argument("--nsweep", type=int, help="number of measurement sweeps in a bin")
    parser.add_argument("--nbetweenbins", type=int, dest="n_between_bins",
                        help="number of sweeps between bins to avoid correlation")
    parser.add_argument("--qx", type=float, help="momentum qx in units of pi")
    parser.add_argument("--qy", type=float, help="momentum qy in units of pi")
    parser.add_argument("--seed", type=int, help="seed of the random generator")
    parser.add_argument("--warmup", type=_bool, dest="warm_up",
                        help="whether to perform the warm-up sweeps")
    parser.add_argument("--eqtime", type=_bool,
                        help="whether to do equal-time measurements")
    parser.add_argument("--dynamic", type=_bool,
                        help="whether to do dynamic measurements")
    parser.add_argument("-u", type=str, nargs="+",
                        help="Interaction strength. Pass explicit values "
                             "or: start [start+step] ... stop")
    parser.add_argument("-mu", type=str, nargs="+",
                        help="Chemical potential. Pass explicit values "
                             "or: start [start+step] ... stop")
    parser.add_argument("-beta", type=str, nargs="+",
                        help="Inverse temperature. Pass explicit values "
                             "or: start [start+step] ... stop")
    parser.add_argument("--processes", "-mp", type=int, default=1,
                        help="Number of processes used if multiple simulations are run")
    parser.add_argument("--plot", "-p", type=str, default=None,
                        help="Observable to plot for a parameter scan")
    parser.add_argument("--oeq", type=str, help="output file of equal-time data")
    parser.add_argument("--ody", type=str, help="output file of dynamic data")
    parser.add_argument("--obins", type=str, help="output file of the G(k, tau) bins")
    parser.add_argument("--otau", type=str, help="output file of the imaginary times")
    parser.add_argument("--config-in", type=str, help="initial configuration file")
    parser.add_argument("--config-out", type=str, help="final configuration file")
    parser.add_argument("--append", action="store_true",
                        help="Append to the output files instead of truncating")
    parser.add_argument("--hdf5", type=str, help="HDF5 database for the results")
    parser.add_argument("--log", type=str, help="Log file")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity")
    return parser


def parse_args(argv=None):
    """Parses the command line and returns the parameters and the scanned arrays."""
    args = build_parser().parse_args(argv)
    p = parse(args.file) if args.file else Parameters()

    overrides = dict()
    for key in ("ll", "lt", "t", "nwrap", "nwarm", "nbin", "nsweep", "n_between_bins",
                "qx", "qy", "seed", "warm_up", "eqtime", "dynamic"):
        value = getattr(args, key)
        if value is not None:
            overrides[key] = value
    scans = dict()
    for key in SCAN_KEYS:
        strings = getattr(args, key)
        if strings is None:
            continue
        try:
            values = parse_array_args(strings, type=float)
        except ValueError as e:
            raise ConfigError(f"Invalid values for -{key}: {strings}") from e
        if len(values) == 1:
            overrides[key] = float(values[0])
        else:
            scans[key] = values

    default_warmup = args.nwarm is None and p.nwarm == default_nwarm(p.ll, p.beta)
    p = p.copy(**overrides)
    if default_warmup:
        p.nwarm = default_nwarm(p.ll, p.beta)
    return args, p.validate(), scans


def write_outputs(args, results, append=False):
    if results.eqtime_mean and args.oeq:
        write_eqtime_results(args.oeq, results, append)
    if results.dynamic_mean:
        if args.ody:
            write_dynamic_results(args.ody, results, append)
        if args.obins:
            write_bins(args.obins, results)
    if args.otau:
        write_tau(args.otau, results.params)


def scan_params(args, p, scans):
    """Maps the scanned values to copies of the parameters.

    Unless the number of warm-up sweeps was given explicitly, it follows the
    inverse temperature of each scan point.
    """
    params = map_params(p, **scans)
    if args.nwarm is None and p.nwarm == default_nwarm(p.ll, p.beta):
        for x in params:
            x.nwarm = default_nwarm(x.ll, x.beta)
    return params


def run_scan(args, p, scans):
    params = scan_params(args, p, scans)
    if args.hdf5:
        with Database(args.hdf5) as db:
            results = update_datasets(db, params, args.processes)
    else:
        results = run_dqmc_parallel([x.validate() for x in params], args.processes)
    for i, res in enumerate(results):
        write_outputs(args, res, append=args.append or i > 0)

    if args.plot:
        import matplotlib.pyplot as plt
        from detqmc.plotting import plot_scan

        xlabel = list(scans.keys())[0]
        plot_scan(scans[xlabel], results, args.plot, xlabel)
        plt.show()
    return results


def run_single(args, p):
    log_parameters(p)
    logger.info("Starting DQMC simulation...")
    results = run_dqmc(p, config=args.config_in, config_out=args.config_out,
                       progress=True)
    log_results(results)
    write_outputs(args, results, args.append)
    if args.hdf5:
        with Database(args.hdf5) as db:
            db.save_results(results)
    return results


def main(argv=None):
    try:
        args, p, scans = parse_args(argv)
        level = logging.DEBUG if args.verbose else logging.INFO
        logger.setLevel(logging.WARNING if scans and not args.verbose else level)
        if args.log:
            add_file_handler(args.log)
        if scans:
            run_scan(args, p, scans)
        else:
            run_single(args, p)
    except ConfigError as e:
        logger.error("Invalid input: %s", e)
        return 1
    except StabilizationError as e:
        logger.error("Numerical instability: %s", e)
        return 1
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
