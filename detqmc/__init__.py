# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

from .logging import logger
from .errors import ConfigError, StabilizationError
from .model import HubbardModel, hubbard_square
from .params import Parameters, parse, log_parameters
from .stabilize import SvdStack
from .simulator import DetQMC, Results, run_dqmc, log_results
from .mp import map_params, run_dqmc_parallel
from .data import Database

__version__ = "0.1.0"
