# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

import numpy as np
import pytest
from scipy import linalg as la
from numpy.testing import assert_allclose, assert_equal
from hypothesis import given, settings, strategies as st
import hypothesis.extra.numpy as hnp
from detqmc import linalg
from detqmc.errors import StabilizationError

settings.load_profile("detqmc")

elements = st.floats(-10., 10, allow_nan=False, allow_infinity=False)
xarr = hnp.arrays(dtype=np.float64, shape=6, elements=elements)
yarr = hnp.arrays(dtype=np.float64, shape=9, elements=elements)
aarr = hnp.arrays(dtype=np.float64, shape=(6, 9), elements=elements)
sqarr = hnp.arrays(dtype=np.float64, shape=(8, 8), elements=st.floats(-5., 5))


@given(st.floats(-1.0, +1.0), xarr, yarr, aarr)
def test_blas_dger(alpha, x, y, a):
    expected = la.blas.dger(alpha, x, y, a=np.copy(a))
    result = np.ascontiguousarray(a)
    linalg.blas_dger(alpha, np.copy(x), np.copy(y), result)
    assert_allclose(result, expected, rtol=1e-10, atol=1e-10)


@given(st.floats(-1.0, +1.0), xarr, yarr, aarr)
def test_numpy_dger(alpha, x, y, a):
    expected = a + alpha * np.outer(x, y)
    result = np.ascontiguousarray(a)
    linalg.numpy_dger(alpha, np.copy(x), np.copy(y), result)
    assert_allclose(result, expected, rtol=1e-10, atol=1e-10)


@given(sqarr)
def test_decompose_svd(a):
    u, d, vt = linalg.decompose_svd(a)
    assert_allclose(linalg.reconstruct_svd(u, d, vt), a, atol=1e-10)
    assert_allclose(u.T @ u, np.eye(8), atol=1e-10)
    assert_allclose(vt @ vt.T, np.eye(8), atol=1e-10)
    assert np.all(d >= 0)
    assert np.all(np.diff(d) <= 0)


def test_decompose_svd_non_finite():
    a = np.eye(4)
    a[1, 2] = np.nan
    with pytest.raises(StabilizationError):
        linalg.decompose_svd(a)


def test_split_scales():
    d = np.array([1e8, 10.0, 1.0, 0.5, 1e-8])
    dmax, dmin = linalg.split_scales(d)
    assert_equal(dmax, [1e8, 10.0, 1.0, 1.0, 1.0])
    assert_equal(dmin, [1.0, 1.0, 1.0, 0.5, 1e-8])
    assert_allclose(dmax * dmin, d)


@given(sqarr)
def test_det_sign(a):
    det = np.linalg.det(a)
    if abs(det) > 1e-8:
        assert linalg.det_sign(a) == np.sign(det)
