# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Exceptions raised by the DQMC engine."""

from numpy.linalg import LinAlgError


class ConfigError(ValueError):
    """Raised for malformed or inconsistent input parameters or files."""


class StabilizationError(LinAlgError):
    """Raised when the stabilized Green's function can not be trusted anymore.

    This covers failing matrix factorizations, non-finite Green's functions and
    repeated violations of the wrap error tolerance. Statistics accumulated after
    such an error would be invalid, so the current run has to be aborted.
    """
