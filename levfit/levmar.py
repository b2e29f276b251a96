# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.levmar - Levenberg-Marquardt fitting of vector-valued models

Basic usage::

    from levfit.levmar import levmar, DEFAULT_OPTIONS

    def hatfldc(p):
        return [p[0] - 1.0,
                p[0] - np.sqrt(p[1]),
                p[1] - np.sqrt(p[2]),
                p[3] - 1.0]

    params, info, covar = levmar(hatfldc, None, [0.9] * 4, [0, 0, 0, 0], 100)
    print(params, info.stop_reason)

The model is a function from a parameter vector of length *m* to a vector of
*n* predicted measurements. The optional Jacobian is a function from the
parameter vector to an *n*-by-*m* matrix, one row per measurement and one
column per parameter. Without a Jacobian, the solver approximates it with
finite differences.

Which solver routine runs depends on which optional inputs are given:

======== ======== ======== ==========
Jacobian box      linear   routine
======== ======== ======== ==========
yes      no       no       ``der``
no       no       no       ``dif``
yes      yes      no       ``bc_der``
no       yes      no       ``bc_dif``
yes      no       yes      ``lec_der``
no       no       yes      ``lec_dif``
yes      yes      yes      ``blec_der``
no       yes      yes      ``blec_dif``
======== ======== ======== ==========

"Box" means that at least one of *lower* and *upper* was given. Weights are
only accepted by the box-plus-linear routines; passing them in any other
combination is an error rather than being silently dropped.

Outcomes:

- Success returns ``(params, info, covar)``. Check ``info.stop_reason``: a
  fit that ended with :attr:`~levfit.decode.StopReason.SINGULAR_MATRIX` or
  :attr:`~levfit.decode.StopReason.INVALID_VALUES` still counts as a
  success, but its parameters are probably not a good fit.
- A failure the solver reports is raised as a
  :exc:`~levfit.errors.LevMarError` subclass.
- Inconsistent inputs (wrong lengths, model output of the wrong size) raise
  :exc:`ValueError`.
- A solver status code that this package does not know raises
  :exc:`~levfit.errors.SolverContractError`.

The bundled solver is reentrant. A replacement *solver* that keeps global
scratch state must not be called from several threads at once; serialize
calls to :func:`levmar` in that case.

"""

__all__ = """DEFAULT_OPTIONS ENTRY_POINTS Options check_jacobian levmar
select_entry_point""".split()

from collections import namedtuple
import logging

import numpy as np

from .decode import INFO_SIZE, decode_covar, decode_info
from .errors import BENIGN_CODES, map_status
from .marshal import Staging, check_dtype, from_buffer, matrix_from_buffer
from .solver import LM_DIFF_DELTA, LM_INIT_MU, LM_STOP_THRESH, solver_for

logger = logging.getLogger(__name__)


Options = namedtuple("Options", "mu eps1 eps2 eps3 delta".split())
Options.__new__.__defaults__ = (
    LM_INIT_MU,
    LM_STOP_THRESH,
    LM_STOP_THRESH,
    LM_STOP_THRESH,
    LM_DIFF_DELTA,
)
Options.__doc__ = """Minimization options.

mu    - Scale factor for the initial damping parameter.
eps1  - Stopping threshold for ||J^T e||_inf.
eps2  - Stopping threshold for ||Dp||_2.
eps3  - Stopping threshold for ||e||_2.
delta - Step used in the finite-difference approximation to the Jacobian.
        If negative, central differences are used, which are more accurate
        but slower than the default forward differences.

To retry a fit with more damping, use ``opts._replace(mu=10 * opts.mu)``.

"""

DEFAULT_OPTIONS = Options()


ENTRY_POINTS = {
    # (jacobian, box, linear): solver routine
    (True, False, False): "der",
    (False, False, False): "dif",
    (True, True, False): "bc_der",
    (False, True, False): "bc_dif",
    (True, False, True): "lec_der",
    (False, False, True): "lec_dif",
    (True, True, True): "blec_der",
    (False, True, True): "blec_dif",
}


def select_entry_point(has_jacobian, box_constrained, lin_constrained):
    """Name the solver routine for the given combination of inputs."""
    return ENTRY_POINTS[bool(has_jacobian), bool(box_constrained), bool(lin_constrained)]


def _model_callback(model, m, n, dtype):
    """Wrap *model* in the solver's ``func(p, hx)`` convention."""

    def func(p, hx):
        out = np.asarray(model(from_buffer(p, dtype)), dtype=dtype)

        if out.shape != (n,):
            raise ValueError(
                "model returned %s values; expected exactly %d"
                % (out.shape if out.ndim != 1 else out.size, n)
            )
        hx[:] = out

    return func


def _jacobian_callback(jacobian, m, n, dtype):
    """Wrap *jacobian* in the solver's ``jacf(p, jac)`` convention."""

    def jacf(p, jac):
        out = np.asarray(jacobian(from_buffer(p, dtype)), dtype=dtype)

        if out.shape != (n, m):
            raise ValueError(
                "Jacobian has shape %r; expected (%d, %d)" % (out.shape, n, m)
            )
        jac[:] = out.reshape(-1)

    return jacf


def _check_length(name, values, expected):
    if values is None:
        return
    size = np.size(values)
    if np.ndim(values) != 1 or size != expected:
        raise ValueError(
            "%s must be a sequence of %d values; got shape %r"
            % (name, expected, np.shape(values))
        )


def levmar(
    model,
    jacobian,
    params,
    samples,
    itmax,
    opts=DEFAULT_OPTIONS,
    lower=None,
    upper=None,
    constraints=None,
    weights=None,
    dtype=np.float64,
    solver=None,
):
    """Fit *model* to *samples* with the Levenberg-Marquardt algorithm.

    Arguments:

    model       - Function mapping a length-m parameter array to n predicted
                  measurements.
    jacobian    - None, or a function mapping a parameter array to the n-by-m
                  matrix of partial derivatives of the model.
    params      - The initial guess; its length defines m.
    samples     - The n measured values.
    itmax       - Maximum number of iterations.
    opts        - An :class:`Options` record.
    lower       - None, or m lower bounds.
    upper       - None, or m upper bounds.
    constraints - None, or a pair ``(matrix, rhs)`` of a k-by-m matrix and k
                  values, requiring ``matrix . params = rhs``.
    weights     - None, or n non-negative weights; only allowed together with
                  both box and linear constraints.
    dtype       - Floating-point width of the computation, numpy.float32 or
                  numpy.float64.
    solver      - Object providing the eight solver routines; defaults to
                  :func:`levfit.solver.solver_for` (*dtype*).

    Returns ``(params, info, covar)``: the fitted parameters as a 1D array,
    an :class:`~levfit.decode.Info`, and the m-by-m covariance matrix.

    """
    dtype = check_dtype(dtype)
    if solver is None:
        solver = solver_for(dtype)

    m = np.size(params)
    n = np.size(samples)

    if np.ndim(params) != 1 or m < 1:
        raise ValueError("params must be a non-empty sequence of numbers")
    _check_length("samples", samples, n)
    _check_length("lower bounds", lower, m)
    _check_length("upper bounds", upper, m)
    _check_length("weights", weights, n)

    has_jac = jacobian is not None
    box_c = lower is not None or upper is not None
    lin_c = constraints is not None
    name = select_entry_point(has_jac, box_c, lin_c)

    if weights is not None and not (box_c and lin_c):
        raise ValueError(
            "weights are only supported together with both box and linear "
            "constraints"
        )

    if lin_c:
        cmat, rhs = constraints

    opts = Options(*opts)
    func = _model_callback(model, m, n, dtype)
    jacf = _jacobian_callback(jacobian, m, n, dtype) if has_jac else None

    logger.debug("levmar: m=%d n=%d itmax=%d -> %s (%s)", m, n, itmax, name, dtype)

    with Staging(dtype) as st:
        p = st.stage(params)
        x = st.stage(samples)
        optbuf = st.stage(opts)
        info = st.empty(INFO_SIZE)
        covar = st.empty(m * m)

        args = [func]
        if has_jac:
            args.append(jacf)
        args += [p, x, m, n]

        if box_c:
            args += [st.maybe_stage(lower), st.maybe_stage(upper)]

        if lin_c:
            a, k = st.stage_matrix(cmat, m)
            b = st.stage(rhs)
            if b.size != k:
                raise ValueError(
                    "constraint vector has %d values; expected %d" % (b.size, k)
                )
            args += [a, b, k]

            if box_c:
                args.append(st.maybe_stage(weights))

        args += [int(itmax), optbuf, info, covar]
        status = int(getattr(solver, name)(*args))
        logger.debug("levmar: %s returned status %d", name, status)

        if status < 0 and status not in BENIGN_CODES:
            raise map_status(status)

        result = from_buffer(p, dtype)
        decoded = decode_info(info)
        cov = decode_covar(covar, m, dtype)

    logger.debug(
        "levmar: stopped after %d iterations: %s",
        decoded.niter,
        decoded.stop_reason.name,
    )
    return result, decoded, cov


def check_jacobian(model, jacobian, params, dtype=np.float64):
    """Compare an analytic Jacobian with a finite-difference estimate.

    Returns ``(analytic, numeric)``, two n-by-m arrays evaluated at *params*.
    Large differences between the two usually mean a mistake in *jacobian*.

    """
    dtype = check_dtype(dtype)
    p = np.array(params, dtype=dtype, ndmin=1)
    m = p.size
    hx = np.asarray(model(p.copy()), dtype=dtype)
    n = hx.size

    analytic = np.zeros(n * m, dtype=dtype)
    _jacobian_callback(jacobian, m, n, dtype)(p.copy(), analytic)

    numeric = np.empty((n, m), dtype=dtype)
    step = np.sqrt(np.finfo(dtype).eps)
    func = _model_callback(model, m, n, dtype)
    fp = np.empty(n, dtype=dtype)

    for j in range(m):
        h = step * abs(p[j]) if p[j] != 0 else step
        pp = p.copy()
        pp[j] += h
        func(pp, fp)
        numeric[:, j] = (fp - hx) / h

    return matrix_from_buffer(analytic, n, m, dtype), numeric
