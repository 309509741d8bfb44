# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Stabilized products of time step matrices.

References
----------
.. [1] Z. Bai et al., “Stable solutions of linear systems involving long chain
       of matrix multiplications”, in Linear Algebra Appl. 435, p. 659-673 (2011)
"""

import numpy as np
from .linalg import decompose_svd, reconstruct_svd


class SvdStack:
    """Stack of cumulative SVD factorizations of a product of matrices.

    Each frame `(U, D, V)` factorizes the product of all matrices pushed so far,
    the most recent one acting from the left:
    ..math::
        B_k ... B_2 B_1 = U D V

    where `U` and `V` are orthogonal and `D` holds the singular values. The scales
    of the product are kept in `D` only, so `U` and `V` stay well-conditioned.

    Parameters
    ----------
    num_sites : int
        The dimension `N` of the matrices.
    size : int
        The maximal number of frames.
    """

    def __init__(self, num_sites, size):
        self.num_sites = num_sites
        self.size = size
        self._frames = list()
        self._eye = np.eye(num_sites)
        self._ones = np.ones(num_sites)

    def __len__(self):
        return len(self._frames)

    @property
    def empty(self):
        return len(self._frames) == 0

    @property
    def full(self):
        return len(self._frames) == self.size

    def clear(self):
        self._frames.clear()

    def get(self):
        """Returns the factors `(U, D, V)` of the top frame, the identity if empty."""
        if not self._frames:
            return self._eye, self._ones, self._eye
        return self._frames[-1]

    def matrix(self):
        """Reconstructs the full product from the top frame."""
        return reconstruct_svd(*self.get())

    def push(self, b):
        """Multiplies the stored product by `b` from the left and refactorizes.

        Parameters
        ----------
        b : (N, N) np.ndarray
            The matrix to push.

        Raises
        ------
        IndexError
            If the stack is full.
        StabilizationError
            If the factorization fails. The stack is left unchanged.
        """
        if self.full:
            raise IndexError(f"Can't push onto full SvdStack of size {self.size}")
        u, d, v = self.get()
        # Compute the SVD of X = (B U) D
        tmp = np.dot(b, u) * d
        u_new, d_new, vt = decompose_svd(tmp)
        # Compute V_{i+1} = V' V_i
        v_new = np.dot(vt, v)
        self._frames.append((u_new, d_new, v_new))

    def pop(self):
        """Removes and returns the top frame.

        Raises
        ------
        IndexError
            If the stack is empty.
        """
        if not self._frames:
            raise IndexError("Can't pop from empty SvdStack")
        return self._frames.pop()

    def __repr__(self):
        return f"{self.__class__.__name__}(num_sites={self.num_sites}, {len(self)}/{self.size})"
