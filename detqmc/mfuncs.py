# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""This module contains methods for measuring observables in the QMC simulation.

All functions return the value of a single configuration, the weighting with the
Monte Carlo sign is done by the caller. Sums over site pairs use the phase table
`phase[i, j] = cos(q • r_{ij})` of the periodic displacement from `i` to `j`.
"""

import numpy as np
from numba import njit, float64, int64

gtau_t = float64[:, :, ::1]

jkwargs = dict(nogil=True, fastmath=True, cache=True)


def occupation(gf_up, gf_dn):
    return 1 - np.array([np.diag(gf_up), np.diag(gf_dn)])


def spin_z(gf_up, gf_dn):
    n_up = 1 - np.diag(gf_up)
    n_dn = 1 - np.diag(gf_dn)
    return n_up - n_dn


def double_occupancy(gf_up, gf_dn):
    r"""Site averaged double occupancy :math:`<n_↑ n_↓> = (1 - G_{↑ii}) (1 - G_{↓ii})`."""
    n_up = 1 - np.diag(gf_up)
    n_dn = 1 - np.diag(gf_dn)
    return np.mean(n_up * n_dn)


def local_spin_correlation(gf_up, gf_dn):
    r"""Site averaged local moment :math:`<(n_↑ - n_↓)^2> = <n_↑> + <n_↓> - 2 <n_↑ n_↓>`."""
    n_up = 1 - np.diag(gf_up)
    n_dn = 1 - np.diag(gf_dn)
    return np.mean(n_up + n_dn - 2 * n_up * n_dn)


def kinetic_energy(gf_up, gf_dn, hopping):
    r"""Kinetic energy per site.

    Parameters
    ----------
    gf_up : (N, N) np.ndarray
        The spin-up Green's function.
    gf_dn : (N, N) np.ndarray
        The spin-down Green's function.
    hopping : (N, N) np.ndarray
        The hopping matrix `T` of the kinetic Hamiltonian, without chemical potential.

    Notes
    -----
    ..math::
        E_{kin} = \frac{1}{N} Σ_σ Σ_{ij} T_{ij} <c^†_{iσ} c_{jσ}>
                = -\frac{1}{N} Σ_σ Σ_{ij} T_{ij} G_{σ, ji}
    """
    num_sites = gf_up.shape[0]
    return -np.sum(hopping * (gf_up + gf_dn).T) / num_sites


def momentum_distribution(gf_up, gf_dn, phase):
    r"""Momentum distribution :math:`n(q) = 2 - \frac{1}{N} Σ_{ij} \cos(q r_{ij}) (G_↑ + G_↓)_{ji}`."""
    num_sites = gf_up.shape[0]
    return 2 - np.sum(phase * (gf_up + gf_dn).T) / num_sites


def spin_correlation(gf_up, gf_dn):
    r"""Equal-time spin-spin correlation :math:`C_{ji} = <S^z_j S^z_i>` via Wick's theorem.

    Notes
    -----
    With :math:`m_i = n_{i↑} - n_{i↓}` and :math:`G^c_σ = I - G_σ^T`
    ..math::
        C_{ji} = m_j m_i + Σ_σ G^c_{σ,ji} G_{σ,ji}
    """
    num_sites = gf_up.shape[0]
    eye = np.eye(num_sites)
    gc_up = eye - gf_up.T
    gc_dn = eye - gf_dn.T
    m = spin_z(gf_up, gf_dn)
    return np.outer(m, m) + gc_up * gf_up + gc_dn * gf_dn


def structure_factor(gf_up, gf_dn, phase):
    r"""Magnetic structure factor :math:`S(q) = \frac{1}{N} Σ_{ij} \cos(q r_{ij}) <S^z_j S^z_i>`."""
    num_sites = gf_up.shape[0]
    corr = spin_correlation(gf_up, gf_dn)
    return np.sum(phase * corr.T) / num_sites


def matsubara_greens(gt0_up, gt0_dn, phase):
    r"""Spin averaged Green's function :math:`G(q, τ)` in momentum space for all `τ`.

    Parameters
    ----------
    gt0_up : (L, N, N) np.ndarray
        The spin-up time-displaced Green's functions :math:`G_↑(τ, 0)`.
    gt0_dn : (L, N, N) np.ndarray
        The spin-down time-displaced Green's functions :math:`G_↓(τ, 0)`.
    phase : (N, N) np.ndarray
        The phase table of the momentum `q`.

    Returns
    -------
    gkt : (L, ) np.ndarray
        :math:`G(q, τ) = \frac{1}{N} Σ_{ij} \cos(q r_{ij}) G(τ, 0)_{ji}`
    """
    num_sites = gt0_up.shape[1]
    gt0 = 0.5 * (gt0_up + gt0_dn)
    return np.einsum("ij,tji->t", phase, gt0) / num_sites


def density_of_states(gt0_up, gt0_dn):
    r"""Spin averaged local Green's function :math:`\frac{1}{N} \mathrm{tr}\, G(τ, 0)` for all `τ`."""
    num_sites = gt0_up.shape[1]
    gt0 = 0.5 * (gt0_up + gt0_dn)
    return np.trace(gt0, axis1=1, axis2=2) / num_sites


@njit(float64(gtau_t, gtau_t, gtau_t, gtau_t, gtau_t, gtau_t, int64[:, ::1], int64[::1],
              float64[::1]), **jkwargs)
def _current_correlation(gtt_up, gtt_dn, gt0_up, gt0_dn, g0t_up, g0t_dn, table, ipx,
                         factor):
    num_times, num_sites, _ = gtt_up.shape
    g00_up = gtt_up[0]
    g00_dn = gtt_dn[0]
    total = 0.0
    for tau in range(num_times):
        gtt_u, gtt_d = gtt_up[tau], gtt_dn[tau]
        gt0_u, gt0_d = gt0_up[tau], gt0_dn[tau]
        g0t_u, g0t_d = g0t_up[tau], g0t_dn[tau]
        # base point i, averaged
        for i in range(num_sites):
            ix = ipx[i]
            j0 = g00_up[i, ix] - g00_up[ix, i] + g00_dn[i, ix] - g00_dn[ix, i]
            for d in range(num_sites):
                j = table[i, d]
                jx = ipx[j]
                # uncorrelated part
                val = -(gtt_u[j, jx] - gtt_u[jx, j] + gtt_d[j, jx] - gtt_d[jx, j]) * j0
                # correlated part
                val += (- g0t_u[ix, jx] * gt0_u[j, i] - g0t_d[ix, jx] * gt0_d[j, i]
                        + g0t_u[i, jx] * gt0_u[j, ix] + g0t_d[i, jx] * gt0_d[j, ix]
                        + g0t_u[ix, j] * gt0_u[jx, i] + g0t_d[ix, j] * gt0_d[jx, i]
                        - g0t_u[i, j] * gt0_u[jx, ix] - g0t_d[i, j] * gt0_d[jx, ix])
                total += factor[d] * val
    return total


def superfluid_stiffness(gtt_up, gtt_dn, gt0_up, gt0_dn, g0t_up, g0t_dn, table, ipx,
                         factor, hop):
    r"""Superfluid stiffness :math:`ρ_s = (Γ^L - Γ^T) / 4` from the current correlations.

    Parameters
    ----------
    gtt_up, gtt_dn : (L, N, N) np.ndarray
        The equal-time Green's functions :math:`G_σ(τ, τ)`.
    gt0_up, gt0_dn : (L, N, N) np.ndarray
        The time-displaced Green's functions :math:`G_σ(τ, 0)`.
    g0t_up, g0t_dn : (L, N, N) np.ndarray
        The time-displaced Green's functions :math:`G_σ(0, τ)`.
    table : (N, N) np.ndarray
        The displacement table, `table[i, d]` is the site `i + r_d`.
    ipx : (N, ) np.ndarray
        The nearest neighbor of each site in x-direction.
    factor : (N, ) np.ndarray
        The factor :math:`\cos(r_d q_x) - \cos(r_d q_y)` of each displacement with
        :math:`q_x = (2π/L, 0)` and :math:`q_y = (0, 2π/L)`.
    hop : float
        The hopping parameter `t`.

    Returns
    -------
    rho_s : float

    Notes
    -----
    The current-current correlation :math:`Γ_{xx}(r, τ) = <j_x(r, τ) j_x(0, 0)>` of
    the x-bonds is summed over all time slices and averaged over the base sites. The
    prefactor 1/4 accounts for the charge 2 of the Cooper pairs.

    References
    ----------
    .. [1] D. J. Scalapino, S. R. White and S. Zhang, “Insulator, metal, or
           superconductor: The criteria”, Phys. Rev. B 47, 7995 (1993)
    """
    num_sites = gtt_up.shape[1]
    total = _current_correlation(gtt_up, gtt_dn, gt0_up, gt0_dn, g0t_up, g0t_dn,
                                 table, ipx, factor)
    return 0.25 * hop * hop * total / num_sites / num_sites
