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
from scipy import sparse
from .errors import ConfigError

__all__ = ["HubbardModel", "hubbard_square", "MOMENTUM_PRODUCTS"]


def _square_product(vecr, vecp):
    return vecr[..., 0] * vecp[0] + vecr[..., 1] * vecp[1]


# Maps the geometry kind to the product of a lattice vector `r` and a momentum `p`
MOMENTUM_PRODUCTS = {
    "square": _square_product,
}


def _periodic_chain(size):
    """Adjacency matrix of a periodic chain with `size` sites."""
    ones = np.ones(size - 1)
    adj = sparse.diags([ones, ones], [-1, +1], shape=(size, size), format="lil")
    if size > 2:
        adj[0, size - 1] = 1
        adj[size - 1, 0] = 1
    return adj.tocsr()


class HubbardModel:
    """Hubbard model on a periodic two dimensional square lattice.

    The sites are indexed as `i = x + ll * y`.

    Parameters
    ----------
    ll : int
        The linear size of the square lattice. The number of sites is `ll * ll`.
    hop : float, optional
        The absolut value of the hopping parameter `t`. The default value is `1.0`.
        Note that the Hamiltonian is built using the negative of the hopping parameter.
    u : float, optional
        The onsite interaction energy `U`. Positive values are repulsive,
        negative values attractive. The default value is `4.0`.
    mu : float, optional
        The chemical chemical potential `μ`. The default is `0`.
        The chemical potential is subtracted from the on-site energy.
    beta : float, optional
        The inverse of the temperature `β=1/T`
    geometry : str, optional
        The geometry kind of the lattice, used for the momentum product.
    """

    def __init__(self, ll, hop=1.0, u=4.0, mu=0.0, beta=5.0, geometry="square"):
        if int(ll) < 2:
            raise ConfigError(f"Linear lattice size must be at least 2, got {ll}")
        if geometry not in MOMENTUM_PRODUCTS:
            raise ConfigError(f"Geometry '{geometry}' not supported! "
                              f"Valid geometries: {list(MOMENTUM_PRODUCTS)}")
        self.ll = int(ll)
        self.hop = hop
        self.u = u
        self.mu = mu
        self.beta = beta
        self.geometry = geometry

    @property
    def num_sites(self):
        return self.ll * self.ll

    @property
    def dim(self):
        return 2

    def set_temperature(self, temp):
        """Set's the temperature `T` by computing the inverse temperature `β=1/T`."""
        self.beta = 1 / temp

    def site2index(self, site):
        x, y = site
        return (x % self.ll) + self.ll * (y % self.ll)

    def index2site(self, index):
        return index % self.ll, index // self.ll

    def positions(self):
        """Returns the integer positions `(x, y)` of all sites as a `(N, 2)` array."""
        indices = np.arange(self.num_sites)
        return np.stack([indices % self.ll, indices // self.ll], axis=1)

    def neighbor(self, index, axis):
        """Returns the periodic nearest neighbor of a site in the direction `axis`."""
        x, y = self.index2site(index)
        if axis == 0:
            return self.site2index((x + 1, y))
        return self.site2index((x, y + 1))

    def neighbors(self, axis):
        """Returns the nearest neighbors of all sites in the direction `axis`."""
        return np.array([self.neighbor(i, axis) for i in range(self.num_sites)],
                        dtype=np.int64)

    def momentum_product(self, vecr, vecp):
        """Computes the product of lattice vector(s) `r` and a momentum `p`."""
        return MOMENTUM_PRODUCTS[self.geometry](np.asarray(vecr), np.asarray(vecp))

    def displacement_vectors(self):
        """Returns all periodic displacement vectors `r = (dx, dy)` as `(N, 2)` array.

        The displacement with index `d` is `(d % ll, d // ll)`, so the displacement
        vectors are ordered like the sites.
        """
        return self.positions()

    def displacement_table(self):
        r"""Returns the index table of displaced sites.

        Returns
        -------
        table : (N, N) np.ndarray
            The entry `table[i, d]` is the index of the site
            :math:`j = i + r_d` with periodic boundary conditions.
        """
        pos = self.positions()
        ll = self.ll
        x = (pos[:, 0, np.newaxis] + pos[np.newaxis, :, 0]) % ll
        y = (pos[:, 1, np.newaxis] + pos[np.newaxis, :, 1]) % ll
        return (x + ll * y).astype(np.int64)

    def displacement_indices(self):
        r"""Returns the displacement index `d` between all pairs of sites.

        Returns
        -------
        indices : (N, N) np.ndarray
            The entry `indices[i, j]` is the index of the periodic displacement
            :math:`r_d = r_j - r_i`.
        """
        pos = self.positions()
        ll = self.ll
        dx = (pos[np.newaxis, :, 0] - pos[:, 0, np.newaxis]) % ll
        dy = (pos[np.newaxis, :, 1] - pos[:, 1, np.newaxis]) % ll
        return (dx + ll * dy).astype(np.int64)

    def hopping_matrix(self):
        """Returns the adjacency matrix of the nearest neighbor bonds."""
        eye = sparse.identity(self.ll, format="csr")
        chain = _periodic_chain(self.ll)
        adj = sparse.kron(eye, chain) + sparse.kron(chain, eye)
        return adj.toarray()

    def hamiltonian_kinetic(self):
        r"""Builds the kinetic (tight-binding) Hamiltonian for the Hubbard model.

        The tight binding hamiltonian includes the hopping `t` and the chemical
        potential `μ`:
        .. math::

            H = - \mathtt{t} Σ_{<i,j>} c^†_i c_j - Σ_i \mathtt{μ} c^†_i c_i

        Returns
        --------
        ham : (N, N) np.ndarray
            The Hamiltonian matrix, where `N` is the number of lattice sites.
        """
        ham = -self.hop * self.hopping_matrix()
        ham -= self.mu * np.eye(self.num_sites)
        return ham

    def __repr__(self):
        return (f"{self.__class__.__name__}(ll={self.ll}, t={self.hop}, u={self.u}, "
                f"mu={self.mu}, beta={self.beta})")


def hubbard_square(ll, u=0.0, hop=1.0, mu=0.0, beta=0.0):
    """Construct a periodic Hubbard model on a `ll x ll` square lattice.

    Parameters
    ----------
    ll : int
        The linear size of the lattice.
    u : float, optional
        The onsite interaction energy `U`. The default value is `0.0`.
    hop : float, optional
        The absolut value of the hopping parameter `t`. The default value is `1.0`.
    mu : float, optional
        The chemical chemical potential `μ`. The default is `0`.
    beta : float, optional
        The inverse of the temperature `β=1/T`

    Returns
    -------
    model : HubbardModel
    """
    return HubbardModel(ll, hop=hop, u=u, mu=mu, beta=beta)
