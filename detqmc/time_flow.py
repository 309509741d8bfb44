# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""This module contains methods for handling the time-step matrices from ref [1]_

The time step matrices of one spin channel are stored as a C-contiguous
`(L, N, N)` array. They are defined as
..math::
    B_σ(l) = e^{-Δτ K} e^{λ_σ ν V_l(h_l)}

where :math:'λ_σ = σ' for a repulsive and :math:'λ_σ = 1' for an attractive
interaction.

References
----------
.. [1] Z. Bai et al., “Numerical Methods for Quantum Monte Carlo Simulations
       of the Hubbard Model”, in Series in Contemporary Applied Mathematics,
       Vol. 12 (June 2009), p. 1.
"""

import math
import logging
import numpy as np
from scipy.linalg import expm
from numba import njit, float64, int8, int64, void
from .config import UP, DN

logger = logging.getLogger("detqmc")

expk_t = float64[:, ::1]
conf_t = int8[:, :]
bmat_t = float64[:, :, ::1]
gmat_t = float64[:, ::1]

jkwargs = dict(nogil=True, fastmath=True, cache=True)


def hs_coupling(u, dtau):
    r"""Computes the Hubbard-Stratonovich parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'."""
    return math.acosh(math.exp(abs(u) * dtau / 2.0)) if u else 0.0


def spin_couplings(u):
    """Returns the field couplings `λ_↑, λ_↓` of the spin channels.

    A repulsive interaction couples the field to the magnetization, an attractive
    interaction to the charge density.
    """
    if u < 0:
        return 1.0, 1.0
    return float(UP), float(DN)


def check_timestep(u, hop, dtau):
    """Logs a warning if the Trotter error is expected to be large."""
    check = abs(u) * abs(hop) * dtau ** 2
    if check > 0.1:
        logger.warning(
            "Increase number of time steps: Check-value %.2f should be <0.1!", check
        )
    else:
        logger.debug("Check-value %.4f is <0.1!", check)
    return check


def kinetic_exponentials(ham_k, dtau):
    """Computes the matrix exponentials :math:'e^{-Δτ K}' and :math:'e^{+Δτ K}'."""
    exp_k = np.ascontiguousarray(expm(-dtau * ham_k))
    exp_k_inv = np.ascontiguousarray(expm(+dtau * ham_k))
    logger.debug("min(e^k)=%s", np.min(exp_k))
    logger.debug("max(e^k)=%s", np.max(exp_k))
    return exp_k, exp_k_inv


@njit(float64[:, ::1](expk_t, float64, float64, conf_t, int64), **jkwargs)
def compute_timestep_mat(exp_k, nu, lam, config, t):
    r"""Computes the time step matrix :math:'B_σ(h_t)'.

    Parameters
    ----------
    exp_k : (N, N) np.ndarray
        The matrix exponential of the kinetic hamiltonian.
    nu : float
        The parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'
    lam : float
        The field coupling λ_σ of the spin channel.
    config : (N, L) np.ndarray
        The configuration or Hubbard-Stratonovich field.
    t : int
        The index of the time step.

    Returns
    -------
    b : (N, N) np.ndarray
        The matrix :math:'B_{t, σ}(h_t)'.

    Notes
    -----
    Multiplying the columns of the matrix exponential of the kinetic Hamiltonian
    with the diagonal elements of the second matrix yields the same result as
    using `np.dot` with `np.diag`.
    """
    return exp_k * np.exp(lam * nu * config[:, t])


@njit(float64[:, ::1](expk_t, float64, float64, conf_t, int64), **jkwargs)
def compute_timestep_mat_inv(exp_k_inv, nu, lam, config, t):
    r"""Computes the inverse time step matrix :math:'B_σ(h_t)^{-1}'.

    Parameters
    ----------
    exp_k_inv : (N, N) np.ndarray
        The inverse matrix exponential of the kinetic hamiltonian.
    nu : float
        The parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'
    lam : float
        The field coupling λ_σ of the spin channel.
    config : (N, L) np.ndarray
        The configuration or Hubbard-Stratonovich field.
    t : int
        The index of the time step.

    Returns
    -------
    b_inv : (N, N) np.ndarray
        The matrix :math:'B_{t, σ}(h_t)^{-1} = e^{-λ_σ ν V_t} e^{Δτ K}'.
    """
    num_sites = exp_k_inv.shape[0]
    diag = np.exp(-lam * nu * config[:, t])
    return exp_k_inv * diag.reshape((num_sites, 1))


@njit(bmat_t(expk_t, float64, float64, conf_t), **jkwargs)
def compute_timestep_mats(exp_k, nu, lam, config):
    r"""Computes the time step matrices :math:'B_σ(h_t)' of one spin for all times.

    Parameters
    ----------
    exp_k : (N, N) np.ndarray
        The matrix exponential of the kinetic hamiltonian.
    nu : float
        The parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'
    lam : float
        The field coupling λ_σ of the spin channel.
    config : (N, L) np.ndarray
        The configuration or Hubbard-Stratonovich field.

    Returns
    -------
    bmats : (L, N, N) np.ndarray
        The time step matrices.
    """
    num_sites, num_timesteps = config.shape
    bmats = np.zeros((num_timesteps, num_sites, num_sites), dtype=np.float64)
    for t in range(num_timesteps):
        bmats[t] = compute_timestep_mat(exp_k, nu, lam, config, t)
    return bmats


@njit(void(expk_t, float64, float64, float64, conf_t, bmat_t, bmat_t, int64), **jkwargs)
def update_timestep_mats(exp_k, nu, lam_up, lam_dn, config, bmats_up, bmats_dn, t):
    r"""Updates the time step matrices :math:'B_σ(h_t)' of both spins for one time step.

    Parameters
    ----------
    exp_k : (N, N) np.ndarray
        The matrix exponential of the kinetic hamiltonian.
    nu : float
        The parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'
    lam_up : float
        The field coupling of the spin-up channel.
    lam_dn : float
        The field coupling of the spin-down channel.
    config : (N, L) np.ndarray
        The configuration or Hubbard-Stratonovich field.
    bmats_up : (L, N, N) np.ndarray
        The spin-up time step matrices.
    bmats_dn : (L, N, N) np.ndarray
        The spin-down time step matrices.
    t : int
        The index of the time step matrix to update.
    """
    bmats_up[t] = compute_timestep_mat(exp_k, nu, lam_up, config, t)
    bmats_dn[t] = compute_timestep_mat(exp_k, nu, lam_dn, config, t)


@njit(float64[:, ::1](bmat_t, int64, int64), **jkwargs)
def block_product(bmats, start, stop):
    r"""Computes the ordered product of the time step matrices of a block.

    Parameters
    ----------
    bmats : (L, N, N) np.ndarray
        The time step matrices of one spin.
    start : int
        The first time slice of the block.
    stop : int
        The time slice after the last slice of the block.

    Returns
    -------
    prod : (N, N) np.ndarray
        The product :math:'B(stop-1) ... B(start+1) B(start)'.
    """
    prod = np.copy(bmats[start])
    for t in range(start + 1, stop):
        prod = np.dot(bmats[t], prod)
    return prod


@njit(void(gmat_t, float64[:, ::1], float64[:, ::1]), **jkwargs)
def wrap_up(gf, b, b_inv):
    r"""Wraps the Green's function from the time step :math:'t' up to :math:'t+1'.

    Notes
    -----
    Wrapping the Green's function from the time step :math:'t' up to :math:'t+1'
    is defined as
    ..math::
        G_σ(t+1) = B_σ(t) G_σ(t) B_σ^{-1}(t)
    """
    gf[:, :] = np.dot(np.dot(b, gf), b_inv)


@njit(void(gmat_t, float64[:, ::1], float64[:, ::1]), **jkwargs)
def wrap_down(gf, b, b_inv):
    r"""Wraps the Green's function from the time step :math:'t+1' down to :math:'t'.

    Notes
    -----
    Wrapping the Green's function from the time step :math:'t+1' down to :math:'t'
    is defined as
    ..math::
        G_σ(t) = B_σ^{-1}(t) G_σ(t+1) B_σ(t)
    """
    gf[:, :] = np.dot(np.dot(b_inv, gf), b)
