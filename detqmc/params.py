# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""DQMC Parameter object and helper methods."""

import logging
from dataclasses import dataclass, fields
from .errors import ConfigError

logger = logging.getLogger("detqmc")


def _to_bool(value):
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"invalid boolean value '{value}'")


# maps label to attribute name and types
ATTR_LABEL_MAP = {
    "ll": [("ll", "shape"), int, 4],
    "lt": [("lt", "l", "num_times"), int, 80],
    "beta": [("beta",), float, 4.0],
    "temp": [("temp",), float],
    "t": [("t", "hop"), float, 1.0],
    "u": [("u",), float, -4.0],
    "mu": [("mu",), float, 0.0],
    "nwrap": [("nwrap", "nwraps"), int, 10],
    "nwarm": [("nwarm", "nequil"), int],
    "nbin": [("nbin",), int, 20],
    "nsweep": [("nsweep",), int, 100],
    "n_between_bins": [("nbetweenbins", "n_between_bins"), int, 10],
    "qx": [("qx",), float, 0.5],
    "qy": [("qy",), float, 0.5],
    "warm_up": [("warmup", "warm_up"), _to_bool, True],
    "eqtime": [("eqtime",), _to_bool, True],
    "dynamic": [("dynamic",), _to_bool, True],
    "seed": [("seed",), int, 0],
    "wrap_tol": [("wraptol", "wrap_tol"), float, 1e-6],
    "max_wrap_breaches": [("maxwrapbreaches", "max_wrap_breaches"), int, 100],
}


def default_nwarm(ll, beta):
    """Returns the default number of warm-up sweeps `4 ll² β`."""
    return int(4 * ll * ll * int(beta))


@dataclass
class Parameters:
    """Parameters of one DQMC simulation of the square lattice Hubbard model.

    The momentum `qx, qy` is given in units of `π`.
    """

    ll: int = 4
    lt: int = 80
    beta: float = 4.0
    t: float = 1.0
    u: float = -4.0
    mu: float = 0.0
    nwrap: int = 10
    nwarm: int = None
    nbin: int = 20
    nsweep: int = 100
    n_between_bins: int = 10
    qx: float = 0.5
    qy: float = 0.5
    warm_up: bool = True
    eqtime: bool = True
    dynamic: bool = True
    seed: int = 0
    wrap_tol: float = 1e-6
    max_wrap_breaches: int = 100

    def __post_init__(self):
        if self.nwarm is None:
            self.nwarm = default_nwarm(self.ll, self.beta)

    def copy(self, **kwargs):
        # Copy parameters
        p = Parameters(**self.__dict__)
        # Update new parameters with given kwargs
        for key, val in kwargs.items():
            setattr(p, key, val)
        return p

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def num_sites(self):
        return self.ll * self.ll

    @property
    def dtau(self):
        return self.beta / self.lt

    @property
    def temp(self):
        return 1 / self.beta

    @temp.setter
    def temp(self, temp):
        self.beta = 1 / temp

    @property
    def nblocks(self):
        """The number of stabilization blocks `⌈L_t / n_{wrap}⌉`."""
        return -(-self.lt // self.nwrap)

    def validate(self):
        """Checks the consistency of the parameters.

        Odd sweep counts are rounded down to the next even number since the
        simulation performs sweeps back and forth in pairs.

        Raises
        ------
        ConfigError
            If a parameter is out of its valid range.
        """
        if self.ll < 2:
            raise ConfigError(f"Linear lattice size must be at least 2, got ll={self.ll}")
        if self.lt < 1:
            raise ConfigError(f"Number of time slices must be positive, got lt={self.lt}")
        if self.beta <= 0:
            raise ConfigError(f"Inverse temperature must be positive, got beta={self.beta}")
        if self.nwrap < 1 or self.nwrap > self.lt:
            raise ConfigError(f"nwrap must be in [1, lt={self.lt}], got {self.nwrap}")
        if self.nbin < 2:
            raise ConfigError(f"At least two bins are required, got nbin={self.nbin}")
        if self.nsweep < 2:
            raise ConfigError(f"nsweep must be at least 2, got {self.nsweep}")
        if self.nwarm < 0 or self.n_between_bins < 0:
            raise ConfigError("Number of warm-up and decorrelation sweeps can't be negative")
        if self.wrap_tol <= 0:
            raise ConfigError(f"Wrap tolerance must be positive, got {self.wrap_tol}")
        if self.max_wrap_breaches < 0:
            raise ConfigError("Number of tolerated wrap error breaches can't be negative")
        if self.nsweep % 2:
            logger.warning("nsweep=%s is odd, using %s", self.nsweep, self.nsweep - 1)
            self.nsweep -= 1
        if self.nwarm % 2:
            logger.debug("nwarm=%s is odd, using %s", self.nwarm, self.nwarm - 1)
            self.nwarm -= 1
        return self


def _build_attribute_map():
    attr_map = dict()
    for attr, info in ATTR_LABEL_MAP.items():
        keys = info[0]
        attr_type = info[1]
        default = None if len(info) == 2 else info[2]
        for key in keys:
            if key in attr_map:
                raise ValueError(f"Key {key} already registered in attribute map!")
            attr_map[key] = [attr, attr_type, default]
    return attr_map


def _read_param_file(file):
    # Initialize attribute map
    attr_map = _build_attribute_map()
    items = dict()
    # Read file content
    with open(file, "r") as fh:
        text = fh.read()
    # Parse lines of file
    for num, line in enumerate(text.splitlines(keepends=False), start=1):
        # Strip comments
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        parts = line.split(maxsplit=1)
        if len(parts) != 2:
            raise ConfigError(f"Line {num} of '{file}' has no value: '{line}'")
        label, data = parts
        label = label.lower()
        try:
            template = attr_map[label]
        except KeyError:
            logger.warning("Parameter %s of file '%s' not recognized!", label, file)
            continue
        key, datatype = template[0], template[1]
        try:
            # Parse value and cast to type
            items[key] = datatype(data.strip())
        except ValueError as e:
            raise ConfigError(f"Invalid value of '{label}' in line {num} "
                              f"of '{file}': {e}") from e
    return items


def parse(file):
    """Parses an input text file and extracts the DQMC parameters.

    Parameters
    ----------
    file : str
        The path of the input file.

    Returns
    -------
    p : Parameters
        The parsed and validated parameters of the input file.
    """
    logger.info("Parsing parameters from file %s...", file)
    items = _read_param_file(file)
    temp = items.pop("temp", None)
    if temp is not None:
        if temp <= 0:
            raise ConfigError(f"Temperature must be positive, got {temp}")
        items["beta"] = 1 / temp
    return Parameters(**items).validate()


def write_parameters(file, p):
    """Writes the parameters to a text file readable by `parse`."""
    with open(file, "w") as fh:
        for key, value in p.to_dict().items():
            label = ATTR_LABEL_MAP[key][0][0]
            fh.write(f"{label:<16} {value}\n")


def log_parameters(p):
    logger.info("_" * 60)
    logger.info("Simulation parameters")
    logger.info("")
    logger.info("        ll: %s", p.ll)
    logger.info("        lt: %s", p.lt)
    logger.info("      beta: %s", p.beta)
    logger.info("      temp: %s", p.temp)
    logger.info(" time-step: %s", p.dtau)
    logger.info("         t: %s", p.t)
    logger.info("       U/t: %s", p.u / p.t)
    logger.info("        mu: %s", p.mu)
    logger.info("         q: %s pi, %s pi", p.qx, p.qy)
    logger.info("     nwrap: %s", p.nwrap)
    logger.info("     nwarm: %s", p.nwarm)
    logger.info("      nbin: %s", p.nbin)
    logger.info("    nsweep: %s", p.nsweep)
    logger.info(" nbetween.: %s", p.n_between_bins)
    logger.info("      seed: %s", p.seed)
    logger.info("")
