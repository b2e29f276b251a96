# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.solver - a Numpy Levenberg-Marquardt solver with levmar's calling convention

This module plays the role of the levmar C library: eight blocking entry
points that work on flat buffers, fill in a parameter buffer, a ten-slot
diagnostic buffer and a covariance buffer, and return an integer status code
(see :mod:`levfit.errors`). Callers normally go through
:func:`levfit.levmar.levmar`, which builds the buffers and interprets the
results.

Basic usage::

    from levfit.solver import solver_for

    def func(p, hx):
        hx[:] = {model values at p}
    def jacf(p, jac):
        jac[:] = {flattened n-by-m Jacobian, row per measurement}

    s = solver_for(np.float64)
    status = s.der(func, jacf, p, x, m, n, itmax, opts, info, covar)

Entry points:

der      - Analytic Jacobian, unconstrained.
dif      - Finite-difference Jacobian, unconstrained.
bc_der   - Analytic Jacobian, box constraints.
bc_dif   - Finite-difference Jacobian, box constraints.
lec_der  - Analytic Jacobian, linear equality constraints.
lec_dif  - Finite-difference Jacobian, linear equality constraints.
blec_der - Analytic Jacobian, box and linear equality constraints, weights.
blec_dif - Finite-difference Jacobian, box and linear constraints, weights.

The five options are ``[mu, eps1, eps2, eps3, delta]``: the scale factor for
the initial damping, the stopping thresholds for ``||J^T e||_inf``,
``||Dp||_2`` and ``||e||_2``, and the finite-difference step. A negative
*delta* selects central differences, which are more accurate but cost twice
as many model evaluations.

Box constraints are enforced by projecting every trial point into the box.
Parameters pegged at a bound, with the gradient pushing them outward, are
held fixed for the step. Linear equality constraints ``A p = b`` are
eliminated by writing ``p = c + Z y``, where the columns of ``Z`` span the
null space of ``A``, and iterating on ``y``. When both kinds of constraint
are present, box violations become heavily weighted penalty residuals, and
the optional per-measurement weights scale the squared residuals.

Solver objects keep no state between calls, so one instance may serve
several threads at once.

"""

__all__ = """BLEC_PENALTY LM_DIFF_DELTA LM_INIT_MU LM_OPTS_SZ LM_STOP_THRESH Solver
solver_for""".split()

import numpy as np

from .decode import INFO_SIZE
from .errors import Status

LM_OPTS_SZ = 5
LM_INIT_MU = 1e-3
LM_STOP_THRESH = 1e-17
LM_DIFF_DELTA = 1e-6

BLEC_PENALTY = 1e6
"""Weight of the penalty residuals that push box+linear fits back into the box."""

# levmar doubles a C int; give up at the same point it would overflow.
_NU_LIMIT = 2**31

anynotfinite = lambda x: not np.all(np.isfinite(x))


class _Counters(object):
    nfev = 0
    njev = 0
    nlss = 0


class _Evaluator(object):
    """Calls the user's functions in buffer form and counts the calls."""

    def __init__(self, func, jacf, m, n, dtype, delta, counters):
        self.func = func
        self.jacf = jacf
        self.m = m
        self.n = n
        self.dtype = dtype
        self.delta = delta
        self.counters = counters

    def f(self, p):
        hx = np.zeros(self.n, dtype=self.dtype)
        self.counters.nfev += 1
        self.func(p.astype(self.dtype), hx)
        return hx

    def jac(self, p, hx):
        self.counters.njev += 1

        if self.jacf is not None:
            buf = np.zeros(self.n * self.m, dtype=self.dtype)
            self.jacf(p.astype(self.dtype), buf)
            return buf.reshape((self.n, self.m))

        # Step sizes follow levmar: 1e-4 relative, but never below |delta|.
        delta = abs(self.delta)
        central = self.delta < 0
        jac = np.empty((self.n, self.m), dtype=self.dtype)

        for j in range(self.m):
            d = max(1e-4 * abs(p[j]), delta)
            pp = p.copy()
            pp[j] += d
            fp = self.f(pp)

            if central:
                pp[j] = p[j] - d
                jac[:, j] = (fp - self.f(pp)) / (2 * d)
            else:
                jac[:, j] = (fp - hx) / d

        return jac


class _Direct(object):
    """The iteration variables are the parameters themselves, optionally kept
    inside a box."""

    def __init__(self, ev, x, lb, ub):
        self.ev = ev
        self.target = x
        self.bounded = lb is not None or ub is not None
        self.lb = _fill_bound(lb, ev.m, -np.inf, ev.dtype)
        self.ub = _fill_bound(ub, ev.m, np.inf, ev.dtype)
        self.ndata = ev.n

    def start(self, p):
        return self.project(p.copy())

    def params(self, y):
        return y

    def project(self, y):
        if not self.bounded:
            return y
        return np.clip(y, self.lb, self.ub)

    def pegged(self, y, jte):
        if not self.bounded:
            return None
        return ((y <= self.lb) & (jte < 0)) | ((y >= self.ub) & (jte > 0))

    def evaluate(self, y):
        hx = self.ev.f(y)
        return hx, hx

    def jacobian(self, y, hx):
        return self.ev.jac(y, hx)

    def covar(self, cov_y):
        return cov_y


class _Reduced(object):
    """The iteration variables *y* parametrize the solutions of ``A p = b``
    as ``p = c + Z y``."""

    def __init__(self, ev, x, c, z, lb=None, ub=None, wghts=None):
        self.ev = ev
        self.c = c
        self.z = z
        self.bounded = lb is not None or ub is not None
        self.lb = _fill_bound(lb, ev.m, -np.inf, ev.dtype)
        self.ub = _fill_bound(ub, ev.m, np.inf, ev.dtype)
        self.ndata = ev.n

        if wghts is None:
            self.sqw = None
            target = x
        else:
            self.sqw = np.sqrt(wghts)
            target = self.sqw * x

        if self.bounded:
            self.pscale = np.sqrt(BLEC_PENALTY)
            target = np.concatenate((target, np.zeros(ev.m, dtype=ev.dtype)))

        self.target = target

    def start(self, p):
        return np.dot(self.z.T, p - self.c)

    def params(self, y):
        return self.c + np.dot(self.z, y)

    def project(self, y):
        return y

    def pegged(self, y, jte):
        return None

    def evaluate(self, y):
        p = self.params(y)
        hx = self.ev.f(p)
        g = hx if self.sqw is None else self.sqw * hx

        if self.bounded:
            g = np.concatenate((g, self.pscale * (p - np.clip(p, self.lb, self.ub))))

        return g, hx

    def jacobian(self, y, hx):
        p = self.params(y)
        jp = self.ev.jac(p, hx)

        if self.sqw is not None:
            jp = self.sqw[:, np.newaxis] * jp

        jy = np.dot(jp, self.z)

        if self.bounded:
            outside = ((p < self.lb) | (p > self.ub)).astype(jy.dtype)
            jy = np.concatenate((jy, (self.pscale * outside)[:, np.newaxis] * self.z))

        return jy

    def covar(self, cov_y):
        return np.dot(np.dot(self.z, cov_y), self.z.T)


def _fill_bound(bound, m, fill, dtype):
    if bound is None:
        return np.full(m, fill, dtype=dtype)
    return np.asarray(bound, dtype=dtype)


def _eliminate(a, b, m, k, finfo):
    """Find ``c`` and ``Z`` such that ``p = c + Z y`` solves ``A p = b`` for all
    ``y``. Returns ``(status, c, Z)``; status is None on success."""
    if k > m:
        return Status.CONSTRAINT_MATRIX_ROWS_GT_COLS, None, None

    if k == 0:
        return None, np.zeros(m), np.eye(m)

    amat = np.asarray(a).reshape((k, m))

    try:
        # A^T = Q R, so A = R^T Q1^T and Q2 spans the null space of A.
        q, r = np.linalg.qr(amat.T, mode="complete")
        rdiag = np.abs(np.diag(r[:k]))

        if rdiag.max() == 0 or rdiag.min() <= m * finfo.eps * rdiag.max():
            return Status.CONSTRAINT_MATRIX_NOT_FULL_ROW_RANK, None, None

        u = np.linalg.solve(r[:k].T, b)
    except np.linalg.LinAlgError:
        return Status.LAPACK_ERROR, None, None

    return None, np.dot(q[:, :k], u), q[:, k:]


def _lm_core(prob, y, itmax, opts, finfo, counters):
    """The Levenberg-Marquardt iteration proper.

    Returns ``(y, info, stop, jtj)`` where *info* is the list of the ten
    diagnostic values and *jtj* is the last ``J^T J`` that was formed.

    """
    tau, eps1, eps2, eps3 = opts[:4]
    eps2_sq = eps2 * eps2
    eps3_sq = eps3 * eps3
    mv = y.size

    y = prob.project(y)
    g, hx = prob.evaluate(y)
    e = prob.target - g
    e_l2 = np.dot(e, e)
    init_e_l2 = e_l2

    mu = jte_inf = dp_l2 = 0.0
    nu = 2
    stop = 0
    k = 0
    jtj = np.zeros((mv, mv), dtype=y.dtype)

    if not np.isfinite(e_l2):
        stop = 7

    while not stop and k < itmax:
        if e_l2 <= eps3_sq:
            stop = 6
            break

        jac = prob.jacobian(y, hx)
        jte = np.dot(jac.T, e)

        mask = prob.pegged(y, jte)
        if mask is not None and mask.any():
            jac = jac.copy()
            jac[:, mask] = 0
            jte[mask] = 0

        jtj = np.dot(jac.T, jac)
        y_l2 = np.dot(y, y)
        jte_inf = np.abs(jte).max() if mv else 0.0

        if jte_inf <= eps1:
            dp_l2 = 0.0
            stop = 1
            break

        if k == 0:
            mu = tau * np.diag(jtj).max()

        while True:
            counters.nlss += 1

            try:
                dp = np.linalg.solve(jtj + mu * np.eye(mv, dtype=jtj.dtype), jte)
                solved = not anynotfinite(dp)
            except np.linalg.LinAlgError:
                solved = False

            if solved:
                ynew = prob.project(y + dp)
                dp = ynew - y
                dp_l2 = np.dot(dp, dp)

                if dp_l2 <= eps2_sq * y_l2:
                    stop = 2
                    break

                if dp_l2 >= (y_l2 + eps2) / (finfo.eps * finfo.eps):
                    # Almost singular.
                    stop = 4
                    break

                gnew, hxnew = prob.evaluate(ynew)
                enew = prob.target - gnew
                enew_l2 = np.dot(enew, enew)

                if not np.isfinite(enew_l2):
                    stop = 7
                    break

                dl = np.dot(dp, mu * dp + jte)
                df = e_l2 - enew_l2

                if dl > 0 and df > 0:
                    tmp = 2 * df / dl - 1
                    mu *= max(1.0 / 3, 1 - tmp**3)
                    nu = 2
                    y, g, hx, e, e_l2 = ynew, gnew, hxnew, enew, enew_l2
                    break

            mu *= nu
            nu2 = nu * 2
            if nu2 > _NU_LIMIT:
                stop = 5
                break
            nu = nu2

        k += 1

    if not stop and k >= itmax:
        stop = 3

    maxdiag = max(np.diag(jtj).max() if mv else 0.0, finfo.tiny)
    info = [
        init_e_l2,
        e_l2,
        jte_inf,
        dp_l2,
        mu / maxdiag,
        k,
        stop,
        counters.nfev,
        counters.njev,
        counters.nlss,
    ]
    return y, info, stop, jtj


def _covariance(jtj, e_l2, ndata, dtype):
    """levmar's covariance estimate: ``pinv(J^T J) * ||e||^2 / (n - rank)``.

    Without degrees of freedom the scale factor is undefined and the result
    is NaN.

    """
    mv = jtj.shape[0]

    if not mv or anynotfinite(jtj):
        return np.zeros((mv, mv), dtype=dtype)

    try:
        inv = np.linalg.pinv(jtj)
        rank = np.linalg.matrix_rank(jtj)
    except np.linalg.LinAlgError:
        return np.zeros((mv, mv), dtype=dtype)

    if rank == 0:
        return np.zeros((mv, mv), dtype=dtype)

    dof = ndata - rank
    if dof <= 0:
        return np.full((mv, mv), np.nan, dtype=dtype)
    return (inv * (e_l2 / dof)).astype(dtype)


class Solver(object):
    """The eight levmar entry points for one floating-point width.

    All buffers passed in must already have this solver's :attr:`dtype`; *p*,
    *info* and *covar* are written in place. Exceptions raised by *func* or
    *jacf* propagate to the caller unchanged.

    """

    def __init__(self, dtype=np.float64):
        self.dtype = np.dtype(dtype)
        self.finfo = np.finfo(self.dtype)

    def __repr__(self):
        return "<Solver %s>" % self.dtype

    def der(self, func, jacf, p, x, m, n, itmax, opts, info, covar):
        return self._run(func, jacf, p, x, m, n, itmax, opts, info, covar)

    def dif(self, func, p, x, m, n, itmax, opts, info, covar):
        return self._run(func, None, p, x, m, n, itmax, opts, info, covar)

    def bc_der(self, func, jacf, p, x, m, n, lb, ub, itmax, opts, info, covar):
        return self._run(func, jacf, p, x, m, n, itmax, opts, info, covar, lb=lb, ub=ub)

    def bc_dif(self, func, p, x, m, n, lb, ub, itmax, opts, info, covar):
        return self._run(func, None, p, x, m, n, itmax, opts, info, covar, lb=lb, ub=ub)

    def lec_der(self, func, jacf, p, x, m, n, a, b, k, itmax, opts, info, covar):
        return self._run(
            func, jacf, p, x, m, n, itmax, opts, info, covar, a=a, b=b, k=k
        )

    def lec_dif(self, func, p, x, m, n, a, b, k, itmax, opts, info, covar):
        return self._run(
            func, None, p, x, m, n, itmax, opts, info, covar, a=a, b=b, k=k
        )

    def blec_der(
        self, func, jacf, p, x, m, n, lb, ub, a, b, k, wghts, itmax, opts, info, covar
    ):
        return self._run(
            func,
            jacf,
            p,
            x,
            m,
            n,
            itmax,
            opts,
            info,
            covar,
            lb=lb,
            ub=ub,
            a=a,
            b=b,
            k=k,
            wghts=wghts,
        )

    def blec_dif(
        self, func, p, x, m, n, lb, ub, a, b, k, wghts, itmax, opts, info, covar
    ):
        return self._run(
            func,
            None,
            p,
            x,
            m,
            n,
            itmax,
            opts,
            info,
            covar,
            lb=lb,
            ub=ub,
            a=a,
            b=b,
            k=k,
            wghts=wghts,
        )

    # Implementation

    def _check_sizes(self, p, x, m, n, opts, info, covar, lb, ub, a, b, k, wghts):
        if m < 1 or p.size != m or x.size != n:
            return False
        if opts.size != LM_OPTS_SZ or anynotfinite(opts):
            return False
        if info.size != INFO_SIZE or covar.size != m * m:
            return False
        for bound in (lb, ub):
            if bound is not None and bound.size != m:
                return False
        if k is not None and (a.size != k * m or b.size != k):
            return False
        if wghts is not None and (wghts.size != n or np.any(wghts < 0)):
            return False
        return True

    def _run(
        self,
        func,
        jacf,
        p,
        x,
        m,
        n,
        itmax,
        opts,
        info,
        covar,
        lb=None,
        ub=None,
        a=None,
        b=None,
        k=None,
        wghts=None,
    ):
        if not self._check_sizes(p, x, m, n, opts, info, covar, lb, ub, a, b, k, wghts):
            return Status.ERROR

        nunknown = m if k is None else m - k
        if n < nunknown:
            return Status.TOO_FEW_MEASUREMENTS

        if lb is not None and ub is not None and np.any(lb > ub):
            return Status.FAILED_BOX_CHECK

        try:
            return self._solve(
                func, jacf, p, x, m, n, itmax, opts, info, covar, lb, ub, a, b, k, wghts
            )
        except MemoryError:
            return Status.MEMORY_ALLOCATION_FAILURE

    def _solve(
        self, func, jacf, p, x, m, n, itmax, opts, info, covar, lb, ub, a, b, k, wghts
    ):
        dtype = self.dtype
        counters = _Counters()
        ev = _Evaluator(func, jacf, m, n, dtype, float(opts[4]), counters)

        if k is None:
            prob = _Direct(ev, x, lb, ub)
        else:
            status, c, z = _eliminate(a, b, m, k, self.finfo)
            if status is not None:
                return status
            prob = _Reduced(ev, x, c.astype(dtype), z.astype(dtype), lb, ub, wghts)

        y, diag, stop, jtj = _lm_core(
            prob, prob.start(p), int(itmax), opts, self.finfo, counters
        )

        p[:] = prob.params(y)
        info[:] = diag
        cov = prob.covar(_covariance(jtj, diag[1], prob.ndata, dtype))
        covar[:] = cov.reshape(-1)

        if stop == 4:
            return Status.SINGULAR_MATRIX
        if stop == 7:
            return Status.SUM_OF_SQUARES_NOT_FINITE
        return diag[5]


def solver_for(dtype):
    """Get a :class:`Solver` working in the floating-point width *dtype*."""
    return Solver(dtype)
