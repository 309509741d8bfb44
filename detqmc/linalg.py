# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import ctypes
import numpy as np
from scipy import linalg as la
from numba.extending import get_cython_function_address
from numba import njit, float64
from .errors import StabilizationError


_dble = ctypes.POINTER(ctypes.c_double)
_int = ctypes.POINTER(ctypes.c_int)

# dger(M, N, ALPHA, X, INCX, Y, INCY, A, LDA)
_ft = ctypes.CFUNCTYPE(None, _int, _int, _dble, _dble, _int, _dble, _int, _dble, _int)
_dger_fn = _ft(get_cython_function_address("scipy.linalg.cython_blas", "dger"))


@njit((float64, float64[:], float64[:], float64[:, ::1]), nogil=True, cache=True)
def blas_dger(alpha, x, y, a):
    """Performs the rank 1 operation .math:`A = α x•y^T + A` via a BLAS call.

    Parameters
    ----------
    alpha : float
        A scalar factor of the rank1 update.
    x : (M, ) np.ndarray
        An M element collumn vector.
    y : (N, ) np.ndarray
        An N element row vector.
    a : (M, N) np.ndarray
        The C-contiguous MxN matrix to be updated.

    Notes
    -----
    BLAS expects column-major storage. A C-contiguous `A` is seen as the
    column-major matrix `A^T`, so the update `A^T += α y•x^T` is requested instead.
    The vectors must not share memory with `A`.
    """
    _m, _n = a.shape

    _alpha = np.array(alpha, dtype=np.float64)
    m = np.array(_n, dtype=np.int32)
    n = np.array(_m, dtype=np.int32)
    incx = np.array(1, np.int32)
    incy = np.array(1, np.int32)
    lda = np.array(_n, np.int32)

    _dger_fn(m.ctypes,
             n.ctypes,
             _alpha.ctypes,
             y.ctypes,
             incy.ctypes,
             x.ctypes,
             incx.ctypes,
             a.ctypes,
             lda.ctypes)


@njit(
    (float64, float64[:], float64[:], float64[:, ::1]),
    nogil=True, cache=True, fastmath=True
)
def numpy_dger(alpha, x, y, a):
    """Performs the rank 1 operation .math:`A = α x•y^T + A` via numpy methods.

    Parameters
    ----------
    alpha : float
        A scalar factor of the rank1 update.
    x : (M, ) np.ndarray
        An M element collumn vector.
    y : (N, ) np.ndarray
        An N element row vector.
    a : (M, N) np.ndarray
        The MxN matrix to be updated.
    """
    a[:, :] = alpha * np.outer(x, y) + a


def decompose_svd(a):
    """Performs a singular value decomposition of a square matrix `A`.

    The divide-and-conquer driver (``gesdd``) is tried first. If it fails to
    converge the slower but more robust ``gesvd`` driver is used.

    Parameters
    ----------
    a : (N, N) np.ndarray
        The input matrix `A` to decompose.

    Returns
    -------
    u : (N, N) np.ndarray
        The orthogonal matrix `U`.
    d : (N) np.ndarray
        The singular values, the diagonal entries of the matrix `D`.
    vt : (N, N) np.ndarray
        The orthogonal matrix `V^T`.

    Raises
    ------
    StabilizationError
        If neither driver converges or the factors are not finite.
    """
    if not np.all(np.isfinite(a)):
        raise StabilizationError("Matrix to decompose contains non-finite entries")
    try:
        u, d, vt = la.svd(a, lapack_driver="gesdd", check_finite=False)
    except la.LinAlgError:
        try:
            u, d, vt = la.svd(a, lapack_driver="gesvd", check_finite=False)
        except la.LinAlgError as e:
            raise StabilizationError(f"SVD did not converge: {e}") from e
    if not (np.all(np.isfinite(u)) and np.all(np.isfinite(d)) and np.all(np.isfinite(vt))):
        raise StabilizationError("SVD produced non-finite factors")
    return u, d, vt


def reconstruct_svd(u, d, vt):
    """Reconstructs the original matrix `A` from a singular value decomposition.

    Parameters
    ----------
    u : (N, N) np.ndarray
        The orthogonal matrix `U`.
    d : (N) np.ndarray
        The diagonal entries of the matrix `D`.
    vt : (N, N) np.ndarray
        The orthogonal matrix `V^T`.

    Returns
    -------
    a : (N, N) np.ndarray
        The reconstructed matrix `A`.
    """
    return np.dot(u * d, vt)


def split_scales(d):
    """Splits the diagonal `D` into the large and small scales `D = D_max D_min`.

    Parameters
    ----------
    d : (N) np.ndarray
        The diagonal entries of the matrix `D`.

    Returns
    -------
    dmax : (N) np.ndarray
        The large scales :math:`\\max(D, 1)`.
    dmin : (N) np.ndarray
        The small scales :math:`\\min(D, 1)`.
    """
    dmax = np.maximum(d, 1.0)
    dmin = np.minimum(d, 1.0)
    return dmax, dmin


def det_sign(a):
    """Returns the sign of the determinant of a square matrix."""
    sign, _ = np.linalg.slogdet(a)
    return sign
