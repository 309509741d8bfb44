# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Stable reconstruction of the equal-time and time-displaced Green's functions.

The left stack holds the factorization of :math:'L = B(τ, 0) = U_l D_l V_l', the
right stack the factorization of the transposed product
:math:'R^T = B(β, τ)^T = U_r D_r V_r'. The diagonal matrices are split into their
large and small scales :math:'D = D_{max} D_{min}' with
:math:'D_{max} = \\max(D, 1)' and :math:'D_{min} = \\min(D, 1)'. Then
..math::
    I + L R = U_l D_{l,max} X D_{r,max} U_r^T
    X = D_{l,max}^{-1} U_l^T U_r D_{r,max}^{-1} + D_{l,min} V_l V_r^T D_{r,min}

and only the well-conditioned matrix `X` has to be inverted.

References
----------
.. [1] Z. Bai et al., “Stable solutions of linear systems involving long chain
       of matrix multiplications”, in Linear Algebra Appl. 435, p. 659-673 (2011)
.. [2] S. Sorella et al., “Novel Numerical Method for Studying Lattice Fermions
       at Finite Temperature”, Int. J. Mod. Phys. B 3, 1841 (1989)
"""

import numpy as np
from scipy import linalg as la
from .linalg import split_scales, det_sign
from .errors import StabilizationError


def _lu_sign(lu, piv):
    """Returns the sign of the determinant from a LU factorization."""
    sign = np.prod(np.sign(np.diag(lu)))
    swaps = np.count_nonzero(piv != np.arange(len(piv)))
    return int(sign) * (-1 if swaps % 2 else 1)


def _factors(left, right):
    ul, dl, vl = left.get()
    ur, dr, vr = right.get()
    dlmax, dlmin = split_scales(dl)
    drmax, drmin = split_scales(dr)
    # X = D_lmax^{-1} U_l^T U_r D_rmax^{-1} + D_lmin V_l V_r^T D_rmin
    x = np.dot(ul.T, ur) / dlmax[:, np.newaxis] / drmax[np.newaxis, :]
    x += dlmin[:, np.newaxis] * np.dot(vl, vr.T) * drmin[np.newaxis, :]
    if not np.all(np.isfinite(x)):
        raise StabilizationError("Non-finite entries in the stabilization matrix")
    lu, piv = la.lu_factor(x, check_finite=False)
    if np.any(np.diag(lu) == 0):
        raise StabilizationError("Stabilization matrix is singular")
    return (ul, dlmax, dlmin, vl), (ur, drmax, drmin, vr), (lu, piv)


def _check_finite(*arrays):
    for arr in arrays:
        if not np.all(np.isfinite(arr)):
            raise StabilizationError("Green's function contains non-finite entries")


def compute_greens(left, right):
    r"""Computes the equal-time Green's function from the left and right stacks.

    Parameters
    ----------
    left : SvdStack
        The stack of :math:'B(τ, 0)'.
    right : SvdStack
        The stack of :math:'B(β, τ)^T'.

    Returns
    -------
    gf : (N, N) np.ndarray
        The Green's function :math:'G(τ) = (I + B(τ, 0) B(β, τ))^{-1}'.
    sign : int
        The sign of the determinant of `G`.

    Raises
    ------
    StabilizationError
        If the stabilization matrix is singular or the result is not finite.
    """
    (ul, dlmax, _, _), (ur, drmax, _, _), (lu, piv) = _factors(left, right)
    # G = U_r D_rmax^{-1} X^{-1} D_lmax^{-1} U_l^T
    tmp = la.lu_solve((lu, piv), ul.T / dlmax[:, np.newaxis], check_finite=False)
    gf = np.dot(ur, tmp / drmax[:, np.newaxis])
    _check_finite(gf)
    sign = det_sign(ul) * _lu_sign(lu, piv) * det_sign(ur)
    return np.ascontiguousarray(gf), int(sign)


def compute_greens_displaced(left, right):
    r"""Computes the equal-time and time-displaced Green's functions.

    Parameters
    ----------
    left : SvdStack
        The stack of :math:'B(τ, 0)'.
    right : SvdStack
        The stack of :math:'B(β, τ)^T'.

    Returns
    -------
    gtt : (N, N) np.ndarray
        The equal-time Green's function :math:'G(τ, τ)'.
    gt0 : (N, N) np.ndarray
        The time-displaced Green's function :math:'G(τ, 0) = G(τ) B(τ, 0)'.
    g0t : (N, N) np.ndarray
        The time-displaced Green's function :math:'G(0, τ) = -B(β, τ) G(τ)'.

    Notes
    -----
    All three are computed with the same factorization of `X`:
    ..math::
        G(τ)    = U_r D_{r,max}^{-1} X^{-1} D_{l,max}^{-1} U_l^T
        G(τ, 0) = U_r D_{r,max}^{-1} X^{-1} D_{l,min} V_l
        G(0, τ) = -V_r^T D_{r,min} X^{-1} D_{l,max}^{-1} U_l^T
    """
    (ul, dlmax, dlmin, vl), (ur, drmax, drmin, vr), lu_piv = _factors(left, right)
    xinv_ul = la.lu_solve(lu_piv, ul.T / dlmax[:, np.newaxis], check_finite=False)
    xinv_vl = la.lu_solve(lu_piv, dlmin[:, np.newaxis] * vl, check_finite=False)
    gtt = np.dot(ur, xinv_ul / drmax[:, np.newaxis])
    gt0 = np.dot(ur, xinv_vl / drmax[:, np.newaxis])
    g0t = -np.dot(vr.T * drmin[np.newaxis, :], xinv_ul)
    _check_finite(gtt, gt0, g0t)
    return (np.ascontiguousarray(gtt), np.ascontiguousarray(gt0),
            np.ascontiguousarray(g0t))


def compute_greens_naive(bmats, t):
    r"""Computes the Green's function by direct inversion, without stabilization.

    Only reliable for small `β`, used as reference.

    Parameters
    ----------
    bmats : (L, N, N) np.ndarray
        The time step matrices of one spin.
    t : int
        The time slice index `l` of the Green's function.

    Returns
    -------
    gf : (N, N) np.ndarray
        The Green's function :math:'(I + B(l-1) ... B(0) B(L-1) ... B(l))^{-1}'.
    """
    num_timesteps, num_sites, _ = bmats.shape
    prod = np.eye(num_sites)
    for i in range(t, t + num_timesteps):
        prod = np.dot(bmats[i % num_timesteps], prod)
    return np.ascontiguousarray(la.inv(np.eye(num_sites) + prod))


def wrap_error(gf_stable, gf_wrapped):
    """Returns the maximal absolute deviation of the wrapped from the stable Green's function."""
    return float(np.max(np.abs(gf_stable - gf_wrapped)))
