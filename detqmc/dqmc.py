# coding: utf-8
#
# This code is part of detqmc.
#
# Copyright (c) 2022, Dylan Jones
#
# This code is licensed under the MIT License. The copyright notice in the
# LICENSE file in the root directory and this permission notice shall
# be included in all copies or substantial portions of the Software.

"""Implementations of determinant QMC (DQMC) following ref [1]_

The Green's function of the time slice `l` is defined as
..math::
    G_l = (I + B(l-1) ... B(0) B(L-1) ... B(l))^{-1}

so that the time step matrix of the slice `l` is the rightmost factor and
:math:'G_0 = G(β)'. The left stack holds :math:'B(l, 0)', the right stack the
transpose of :math:'B(β, l)', both in blocks of `nwrap` time slices.

References
----------
.. [1] Z. Bai et al., “Numerical Methods for Quantum Monte Carlo Simulations
       of the Hubbard Model”, in Series in Contemporary Applied Mathematics,
       Vol. 12 (June 2009), p. 1.
"""

import logging
import numpy as np
from numba import njit, float64, int8, int64, boolean, void
from numba import types as nt
from .config import init_configuration
from .linalg import blas_dger
from .model import HubbardModel
from .stabilize import SvdStack
from .greens import compute_greens, compute_greens_displaced, wrap_error
from .errors import StabilizationError
from .time_flow import (
    hs_coupling,
    spin_couplings,
    check_timestep,
    kinetic_exponentials,
    compute_timestep_mats,
    compute_timestep_mat_inv,
    update_timestep_mats,
    block_product,
    wrap_up,
    wrap_down,
)

logger = logging.getLogger("detqmc")

conf_t = int8[:, :]
gmat_t = float64[:, ::1]

jkwargs = dict(nogil=True, fastmath=True, cache=True)


class SimulationState:
    """The complete state of one Markov chain.

    Parameters
    ----------
    params : Parameters
        The simulation parameters.
    model : HubbardModel
        The lattice model.
    config : (N, L) np.ndarray
        The initial Hubbard-Stratonovich field.
    rng : np.random.Generator
        The random generator of the chain.
    """

    def __init__(self, params, model, config, rng):
        num_sites = model.num_sites
        if config.shape != (num_sites, params.lt):
            raise ValueError(f"Configuration shape {config.shape} does not match "
                             f"({num_sites}, {params.lt})")
        self.params = params
        self.model = model
        self.rng = rng
        self.config = np.ascontiguousarray(config, dtype=np.int8)

        self.dtau = params.dtau
        self.nu = hs_coupling(params.u, self.dtau)
        self.lam_up, self.lam_dn = spin_couplings(params.u)
        self.attractive = params.u < 0
        self.exp_k, self.exp_k_inv = kinetic_exponentials(model.hamiltonian_kinetic(),
                                                          self.dtau)
        self.bmats_up = compute_timestep_mats(self.exp_k, self.nu, self.lam_up, self.config)
        self.bmats_dn = compute_timestep_mats(self.exp_k, self.nu, self.lam_dn, self.config)

        nblocks = params.nblocks
        self.left_up = SvdStack(num_sites, nblocks)
        self.left_dn = SvdStack(num_sites, nblocks)
        self.right_up = SvdStack(num_sites, nblocks)
        self.right_dn = SvdStack(num_sites, nblocks)

        shape = (num_sites, num_sites)
        self.gf_up = np.zeros(shape, dtype=np.float64)
        self.gf_dn = np.zeros(shape, dtype=np.float64)
        self.sgns = np.ones(2, dtype=np.int64)
        self.current_slice = 0

        self.max_wrap_error_equal = 0.0
        self.max_wrap_error_displaced = 0.0
        self.wrap_breaches = 0
        self.accepted = 0
        self.proposed = 0

        # Time-displaced Green's functions of the last displaced sweep
        shape = (params.lt, num_sites, num_sites)
        self.gtt_up = np.zeros(shape, dtype=np.float64)
        self.gtt_dn = np.zeros(shape, dtype=np.float64)
        self.gt0_up = np.zeros(shape, dtype=np.float64)
        self.gt0_dn = np.zeros(shape, dtype=np.float64)
        self.g0t_up = np.zeros(shape, dtype=np.float64)
        self.g0t_dn = np.zeros(shape, dtype=np.float64)

    @property
    def num_sites(self):
        return self.model.num_sites

    @property
    def num_timesteps(self):
        return self.params.lt

    @property
    def sign(self):
        """The Monte Carlo sign of the current configuration."""
        return int(self.sgns[0] * self.sgns[1])

    @property
    def acceptance_ratio(self):
        return self.accepted / self.proposed if self.proposed else 0.0

    def block_bounds(self, k):
        """Returns the first and the after-last time slice of block `k`."""
        nwrap = self.params.nwrap
        return k * nwrap, min((k + 1) * nwrap, self.params.lt)

    def reset_wrap_errors(self):
        self.max_wrap_error_equal = 0.0
        self.max_wrap_error_displaced = 0.0
        self.wrap_breaches = 0


def init_stacks(state):
    """Rebuilds the time step matrices, the stacks and the Green's functions.

    Afterwards the left stacks are empty, the right stacks hold all blocks and the
    Green's functions are the stable :math:'G_0' of the current configuration.
    """
    p = state.params
    state.bmats_up = compute_timestep_mats(state.exp_k, state.nu, state.lam_up, state.config)
    state.bmats_dn = compute_timestep_mats(state.exp_k, state.nu, state.lam_dn, state.config)
    for stack in (state.left_up, state.left_dn, state.right_up, state.right_dn):
        stack.clear()
    for k in reversed(range(p.nblocks)):
        start, stop = state.block_bounds(k)
        state.right_up.push(block_product(state.bmats_up, start, stop).T)
        state.right_dn.push(block_product(state.bmats_dn, start, stop).T)
    gf_up, sgn_up = compute_greens(state.left_up, state.right_up)
    gf_dn, sgn_dn = compute_greens(state.left_dn, state.right_dn)
    state.gf_up[:, :] = gf_up
    state.gf_dn[:, :] = gf_dn
    state.sgns[0] = sgn_up
    state.sgns[1] = sgn_dn
    state.current_slice = 0


def init_state(params, model=None, config=None):
    """Initializes a simulation state for the given parameters.

    Parameters
    ----------
    params : Parameters
        The simulation parameters.
    model : HubbardModel, optional
        The lattice model. By default the model is built from the parameters.
    config : (N, L) np.ndarray, optional
        An initial configuration. By default a random one is drawn from the
        random generator seeded with `params.seed`.

    Returns
    -------
    state : SimulationState
    """
    if model is None:
        model = HubbardModel(params.ll, params.t, params.u, params.mu, params.beta)
    rng = np.random.default_rng(params.seed)
    if config is None:
        config = init_configuration(model.num_sites, params.lt, rng)
    prop_pos = np.count_nonzero(config == +1) / config.size
    logger.debug("config: p+=%s p-=%s", prop_pos, 1 - prop_pos)

    check_timestep(params.u, params.t, params.dtau)
    state = SimulationState(params, model, config, rng)
    logger.debug("nu=%s", state.nu)
    init_stacks(state)
    return state


# =========================================================================
# Rank-1 update Monte carlo methods
# =========================================================================


@njit(nt.UniTuple(float64, 3)(float64, float64, float64, boolean, conf_t, gmat_t, gmat_t,
                              int64, int64), **jkwargs)
def acceptance_ratio(nu, lam_up, lam_dn, attractive, config, gf_up, gf_dn, i, t):
    r"""Computes the Metropolis acceptance ratio of flipping the field `s(i, t)`.

    Parameters
    ----------
    nu : float
        The parameter ν defined by :math:'\cosh(ν) = e^{|U| Δτ / 2}'
    lam_up : float
        The field coupling of the spin-up channel.
    lam_dn : float
        The field coupling of the spin-down channel.
    attractive : bool
        Flag if the interaction is attractive.
    config : (N, L) np.ndarray
        The configuration or Hubbard-Stratonovich field.
    gf_up : np.ndarray
        The spin-up Green's function.
    gf_dn : np.ndarray
        The spin-down Green's function.
    i : int
        The site index :math:'i' of the proposed spin-flip.
    t : int
        The time-step index :math:'t' of the proposed spin-flip.

    Returns
    -------
    ratio : float
        The ratio of the weights after and before the flip.
    d_up : float
        The spin-up determinant ratio.
    d_dn : float
        The spin-down determinant ratio.

    Notes
    -----
    ..math::
        α_σ = e^{-2 λ_σ ν s(i, t)} - 1
        d_σ = 1 + (1 - G_{ii, σ}) α_σ
        r = d_↑ d_↓

    For an attractive interaction the ratio gets the additional factor
    :math:'e^{2 ν s(i, t)}'.
    """
    arg = -2 * nu * config[i, t]
    alpha_up = np.expm1(lam_up * arg)
    alpha_dn = np.expm1(lam_dn * arg)
    d_up = 1 + alpha_up * (1 - gf_up[i, i])
    d_dn = 1 + alpha_dn * (1 - gf_dn[i, i])
    ratio = d_up * d_dn
    if attractive:
        ratio *= np.exp(-arg)
    return ratio, d_up, d_dn


@njit(void(float64, gmat_t, int64), **jkwargs)
def update_greens(alpha, gf, i):
    r"""Performs a Sherman-Morrison update of the Green's function.

    Parameters
    ----------
    alpha : float
        The factor :math:'α_σ = e^{-2 λ_σ ν s(i, t)} - 1' of the proposed flip.
    gf : np.ndarray
        The Green's function, updated in place.
    i : int
        The site index :math:'i' of the proposed spin-flip.

    Notes
    -----
    The update of the Green's function *before* flipping spin at site i and time t
    is defined as
    ..math::
        G_σ = G_σ + (α_σ / d_σ) u_σ w_σ^T
        u_σ = [G_σ - I] e_i
        w_σ = G_σ^T e_i
        d_σ = 1 + (1 - G_{ii, σ}) α_σ
    """
    # Copy i-th column of (G-1)
    u = np.copy(gf[:, i])
    u[i] -= 1.0
    # Copy i-th row of G
    w = np.copy(gf[i, :])
    # Perform rank 1 update of GF
    blas_dger(alpha / (1.0 - alpha * u[i]), u, w, gf)


@njit(int64(float64, float64, float64, boolean, conf_t, gmat_t, gmat_t, int64[::1],
            float64[::1], int64), **jkwargs)
def dqmc_time_step(nu, lam_up, lam_dn, attractive, config, gf_up, gf_dn, sgns, rands, t):
    """Accelerated inner loop of the DQMC sweep over all sites of one time slice."""
    accepted = 0
    for i in range(config.shape[0]):
        ratio, d_up, d_dn = acceptance_ratio(nu, lam_up, lam_dn, attractive, config,
                                             gf_up, gf_dn, i, t)
        # Check if move is accepted
        if rands[i] < abs(ratio):
            accepted += 1
            arg = -2 * nu * config[i, t]
            # Update Green's functions *before* updating configuration
            update_greens(np.expm1(lam_up * arg), gf_up, i)
            update_greens(np.expm1(lam_dn * arg), gf_dn, i)
            # Update signs
            if d_up < 0:
                sgns[0] = -sgns[0]
            if d_dn < 0:
                sgns[1] = -sgns[1]
            # Actually update configuration *after* GF update
            config[i, t] = -config[i, t]
    return accepted


# =========================================================================
# Sweeps
# =========================================================================


def _update_slice(state, t):
    rands = state.rng.random(state.num_sites)
    accepted = dqmc_time_step(state.nu, state.lam_up, state.lam_dn, state.attractive,
                              state.config, state.gf_up, state.gf_dn, state.sgns,
                              rands, t)
    state.accepted += accepted
    state.proposed += state.num_sites
    # Update time-step matrix of the current time slice after all sites are visited.
    # The rank-1 updates only need the i-th row/column of the Green's functions.
    update_timestep_mats(state.exp_k, state.nu, state.lam_up, state.lam_dn,
                         state.config, state.bmats_up, state.bmats_dn, t)
    return accepted


def _inverse_timestep_mats(state, t):
    binv_up = compute_timestep_mat_inv(state.exp_k_inv, state.nu, state.lam_up,
                                       state.config, t)
    binv_dn = compute_timestep_mat_inv(state.exp_k_inv, state.nu, state.lam_dn,
                                       state.config, t)
    return binv_up, binv_dn


def _record_wrap_error(state, err, displaced=False):
    if displaced:
        state.max_wrap_error_displaced = max(state.max_wrap_error_displaced, err)
    else:
        state.max_wrap_error_equal = max(state.max_wrap_error_equal, err)
    tol = state.params.wrap_tol
    if err > tol:
        state.wrap_breaches += 1
        kind = "time-displaced" if displaced else "equal-time"
        logger.warning("Wrap error (%s) %.2e exceeds tolerance %.1e at slice %s, "
                       "consider reducing nwrap", kind, err, tol, state.current_slice)
        if state.wrap_breaches > state.params.max_wrap_breaches:
            raise StabilizationError(
                f"Wrap error exceeded the tolerance {tol} more than "
                f"{state.params.max_wrap_breaches} times"
            )


def _recompute_greens(state):
    gf_up, sgn_up = compute_greens(state.left_up, state.right_up)
    gf_dn, sgn_dn = compute_greens(state.left_dn, state.right_dn)
    err = max(wrap_error(gf_up, state.gf_up), wrap_error(gf_dn, state.gf_dn))
    state.gf_up[:, :] = gf_up
    state.gf_dn[:, :] = gf_dn
    state.sgns[0] = sgn_up
    state.sgns[1] = sgn_dn
    _record_wrap_error(state, err)
    return err


def sweep_0_to_beta(state):
    """Performs one sweep with local updates from `τ=0` up to `τ=β`.

    The stacks have to hold all blocks on the right side, afterwards all blocks
    are on the left side.

    Returns
    -------
    accepted : int
        The number of accepted spin flips.
    """
    lt, nwrap = state.params.lt, state.params.nwrap
    accepted = 0
    for t in range(lt):
        state.current_slice = t
        # Iterate over all lattice sites and perform updates
        accepted += _update_slice(state, t)
        # Wrap Green's functions up to next time slice
        binv_up, binv_dn = _inverse_timestep_mats(state, t)
        wrap_up(state.gf_up, state.bmats_up[t], binv_up)
        wrap_up(state.gf_dn, state.bmats_dn[t], binv_dn)
        state.current_slice = t + 1
        # Move the finished block to the left stack and recompute Green's functions
        if (t + 1) % nwrap == 0 or t + 1 == lt:
            start, stop = state.block_bounds(t // nwrap)
            state.right_up.pop()
            state.right_dn.pop()
            state.left_up.push(block_product(state.bmats_up, start, stop))
            state.left_dn.push(block_product(state.bmats_dn, start, stop))
            _recompute_greens(state)
    logger.debug("Sweep 0->beta: accepted %s/%s", accepted, lt * state.num_sites)
    return accepted


def sweep_beta_to_0(state):
    """Performs one sweep with local updates from `τ=β` down to `τ=0`.

    The stacks have to hold all blocks on the left side, afterwards all blocks
    are on the right side.

    Returns
    -------
    accepted : int
        The number of accepted spin flips.
    """
    lt, nwrap = state.params.lt, state.params.nwrap
    accepted = 0
    for t in reversed(range(lt)):
        # Wrap Green's functions down to the current time slice
        binv_up, binv_dn = _inverse_timestep_mats(state, t)
        wrap_down(state.gf_up, state.bmats_up[t], binv_up)
        wrap_down(state.gf_dn, state.bmats_dn[t], binv_dn)
        state.current_slice = t
        # Iterate over all lattice sites and perform updates
        accepted += _update_slice(state, t)
        # Move the finished block to the right stack and recompute Green's functions
        if t % nwrap == 0:
            start, stop = state.block_bounds(t // nwrap)
            state.left_up.pop()
            state.left_dn.pop()
            state.right_up.push(block_product(state.bmats_up, start, stop).T)
            state.right_dn.push(block_product(state.bmats_dn, start, stop).T)
            _recompute_greens(state)
    logger.debug("Sweep beta->0: accepted %s/%s", accepted, lt * state.num_sites)
    return accepted


def sweep_0_to_beta_displaced(state):
    r"""Propagates the Green's functions from `τ=0` to `τ=β` without updates.

    The equal-time and time-displaced Green's functions
    ..math::
        G(τ, τ),  G(τ, 0) = B(τ-1) G(τ-1, 0),  G(0, τ) = G(0, τ-1) B^{-1}(τ-1)

    are stored in the state for all `τ = 0, ..., L-1`. At the end of each block
    all three are recomputed from the stacks.
    """
    lt, nwrap = state.params.lt, state.params.nwrap
    eye = np.eye(state.num_sites)
    gt0_up, gt0_dn = state.gf_up.copy(), state.gf_dn.copy()
    g0t_up, g0t_dn = state.gf_up - eye, state.gf_dn - eye

    state.current_slice = 0
    state.gtt_up[0], state.gtt_dn[0] = state.gf_up, state.gf_dn
    state.gt0_up[0], state.gt0_dn[0] = gt0_up, gt0_dn
    state.g0t_up[0], state.g0t_dn[0] = g0t_up, g0t_dn
    for t in range(lt):
        b_up, b_dn = state.bmats_up[t], state.bmats_dn[t]
        binv_up, binv_dn = _inverse_timestep_mats(state, t)
        wrap_up(state.gf_up, b_up, binv_up)
        wrap_up(state.gf_dn, b_dn, binv_dn)
        gt0_up, gt0_dn = np.dot(b_up, gt0_up), np.dot(b_dn, gt0_dn)
        g0t_up, g0t_dn = np.dot(g0t_up, binv_up), np.dot(g0t_dn, binv_dn)
        state.current_slice = t + 1

        if (t + 1) % nwrap == 0 or t + 1 == lt:
            start, stop = state.block_bounds(t // nwrap)
            state.right_up.pop()
            state.right_dn.pop()
            state.left_up.push(block_product(state.bmats_up, start, stop))
            state.left_dn.push(block_product(state.bmats_dn, start, stop))
            gtt_up, gt0_up_s, g0t_up_s = compute_greens_displaced(state.left_up,
                                                                  state.right_up)
            gtt_dn, gt0_dn_s, g0t_dn_s = compute_greens_displaced(state.left_dn,
                                                                  state.right_dn)
            err = max(wrap_error(gtt_up, state.gf_up), wrap_error(gtt_dn, state.gf_dn))
            _record_wrap_error(state, err)
            if t + 1 < lt:
                err = max(wrap_error(gt0_up_s, gt0_up), wrap_error(gt0_dn_s, gt0_dn),
                          wrap_error(g0t_up_s, g0t_up), wrap_error(g0t_dn_s, g0t_dn))
                _record_wrap_error(state, err, displaced=True)
            state.gf_up[:, :] = gtt_up
            state.gf_dn[:, :] = gtt_dn
            gt0_up, gt0_dn = gt0_up_s, gt0_dn_s
            g0t_up, g0t_dn = g0t_up_s, g0t_dn_s

        if t + 1 < lt:
            state.gtt_up[t + 1], state.gtt_dn[t + 1] = state.gf_up, state.gf_dn
            state.gt0_up[t + 1], state.gt0_dn[t + 1] = gt0_up, gt0_dn
            state.g0t_up[t + 1], state.g0t_dn[t + 1] = g0t_up, g0t_dn
