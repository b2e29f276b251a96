# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.fitting - curve fitting with models of a fixed number of parameters

Basic usage::

    from levfit.fitting import levmar

    def quad(a, b, c, x):
        return a * x**2 + b * x + c

    samples = [(x, quad(2., 3., 4., x)) for x in np.linspace(-1, 1, 20)]
    params, info, covar = levmar(quad, None, (1., 1., 1.), samples, 1000)

Here the model is a function of *m* scalar parameters followed by one
independent variable, returning the expected measurement at that point. The
number of parameters is read from the function's signature or can be given
explicitly. A Jacobian has the same signature and returns the *m* partial
derivatives at the point; there is no need to differentiate with respect to
the independent variable.

If no Jacobian is supplied, one is computed exactly with forward-mode
automatic differentiation (see :mod:`levfit.dual`). That requires the model
to use ordinary operators and the functions in :mod:`levfit.dual` or the
corresponding Numpy ufuncs, not :mod:`math`. Pass ``autodiff=False`` to let
the solver use finite differences instead.

Classes:

CurveModel - A model (and optional Jacobian) of a fixed number of parameters.
SizedList  - A tuple whose length is checked against a declared size.

Functions:

jacobian_of - Automatic-differentiation Jacobian of a fixed-arity model.
levmar      - Fit a fixed-arity model to (x, y) samples.

"""

__all__ = "CurveModel SizedList jacobian_of levmar".split()

import inspect
import numbers

import numpy as np

from . import levmar as _lm
from .dual import Dual, deriv_of


class SizedList(tuple):
    """A tuple with exactly *size* items.

    ``SizedList(items, size)`` raises :exc:`ValueError` if *items* does not
    have *size* entries. Without *size*, any length is accepted and becomes
    the declared size.

    """

    def __new__(cls, items, size=None):
        self = super(SizedList, cls).__new__(cls, items)

        if size is not None and len(self) != size:
            raise ValueError(
                "expected exactly %d values; got %d" % (size, len(self))
            )
        return self

    @property
    def size(self):
        return len(self)

    def replace(self, index, value):
        "Return a copy with the item at *index* replaced by *value*."
        items = list(self)
        items[index] = value
        return SizedList(items, len(self))


def _count_params(func):
    """Count the model parameters in the signature of *func*: the positional
    arguments without default values, less the trailing independent
    variable. Returns None if *func* takes a variable number of arguments."""
    code = func.__code__

    if code.co_flags & inspect.CO_VARARGS:
        return None

    nargs = code.co_argcount - len(getattr(func, "__defaults__", None) or ())

    if hasattr(func, "__self__"):
        nargs -= 1  # bound method
    return nargs - 1


def _as_constant(x):
    # Independent-variable values flow through the model as constants.
    if isinstance(x, numbers.Real) and not isinstance(x, bool):
        return Dual.constant(x)
    return x


def jacobian_of(func, npar):
    """Build the Jacobian of the fixed-arity model *func* by automatic
    differentiation.

    Returns a function with the Jacobian calling convention: it takes the
    *npar* parameters and the independent variable and returns the *npar*
    partial derivatives of the model at that point as a :class:`SizedList`.

    Column *i* is obtained by evaluating *func* with every parameter held
    constant except parameter *i*, which is seeded with a unit derivative.

    """

    def jac(*args):
        if len(args) != npar + 1:
            raise ValueError(
                "Jacobian expects %d parameters and x; got %d arguments"
                % (npar, len(args))
            )

        params = SizedList((Dual.constant(p) for p in args[:npar]), npar)
        x = _as_constant(args[npar])
        columns = []

        for i in range(npar):
            seeded = params.replace(i, Dual.variable(args[i]))
            columns.append(deriv_of(func(*(tuple(seeded) + (x,)))))

        return SizedList(columns, npar)

    return jac


class CurveModel(object):
    """A model function of *npar* scalar parameters and an independent variable.

    The model is called as ``func(p0, ..., pN, x)`` and returns the expected
    measurement at *x*. The optional *jacfunc* is called the same way and
    returns the *npar* partial derivatives at *x*. If *npar* is not given, it
    is taken from the signature of *func*: positional arguments with default
    values are not counted, and a function taking ``*args`` needs an
    explicit *npar*.

    :meth:`model_for` and :meth:`jacobian_for` turn this into the
    vector-valued model and Jacobian that :func:`levfit.levmar.levmar`
    works with.

    """

    func = None
    "The model function."

    jacfunc = None
    "The Jacobian function, or None."

    npar = None
    "The number of parameters."

    def __init__(self, func, jacfunc=None, npar=None):
        if not callable(func):
            raise ValueError("model function must be callable")
        if jacfunc is not None and not callable(jacfunc):
            raise ValueError("Jacobian function must be callable or None")

        declared = _count_params(func) if hasattr(func, "__code__") else None

        if npar is None:
            if declared is None:
                raise ValueError("cannot infer the number of parameters of %r" % func)
            npar = declared
        elif declared is not None and declared != npar:
            raise ValueError(
                "model takes %d parameters plus x, but %d were declared"
                % (declared, npar)
            )

        npar = int(npar)
        if npar < 1:
            raise ValueError("a model needs at least one parameter")

        self.func = func
        self.jacfunc = jacfunc
        self.npar = npar

    def __repr__(self):
        return "<CurveModel %s with %d parameters>" % (
            getattr(self.func, "__name__", "?"),
            self.npar,
        )

    def sized(self, params):
        "Check that *params* has :attr:`npar` items and return it as a SizedList."
        return SizedList(params, self.npar)

    def autodiff_jacobian(self):
        "Return the automatic-differentiation Jacobian of this model."
        return jacobian_of(self.func, self.npar)

    def model_for(self, xs):
        """Return the vector-valued model at the sample points *xs*."""
        xs = list(xs)
        func = self.func

        def model(params):
            ps = tuple(self.sized(params))
            return [func(*(ps + (x,))) for x in xs]

        return model

    def jacobian_for(self, xs, autodiff=True):
        """Return the vector-valued Jacobian at the sample points *xs*.

        Uses :attr:`jacfunc` if set, otherwise the automatic-differentiation
        Jacobian, unless *autodiff* is False, in which case None is returned.

        """
        if self.jacfunc is not None:
            jacfunc = self.jacfunc
        elif autodiff:
            jacfunc = self.autodiff_jacobian()
        else:
            return None

        xs = list(xs)
        npar = self.npar

        def jacobian(params):
            ps = tuple(self.sized(params))
            return [tuple(SizedList(jacfunc(*(ps + (x,))), npar)) for x in xs]

        return jacobian


def levmar(
    model,
    jacobian,
    params,
    samples,
    itmax,
    opts=_lm.DEFAULT_OPTIONS,
    lower=None,
    upper=None,
    constraints=None,
    weights=None,
    dtype=np.float64,
    solver=None,
    autodiff=True,
):
    """Fit a fixed-arity model to ``(x, y)`` samples.

    Arguments:

    model       - A function ``f(p0, ..., pN, x)`` or a :class:`CurveModel`.
    jacobian    - None, or a function ``j(p0, ..., pN, x)`` returning the
                  partial derivatives. Ignored if *model* is a CurveModel,
                  which carries its own.
    params      - The initial guess, exactly as many values as the model has
                  parameters.
    samples     - Sequence of ``(x, y)`` pairs.
    itmax       - Maximum number of iterations.
    opts        - A :class:`levfit.levmar.Options` record.
    lower       - None, or lower bounds for each parameter.
    upper       - None, or upper bounds for each parameter.
    constraints - None, or ``(matrix, rhs)``; each matrix row must have one
                  entry per parameter.
    weights     - None, or one weight per sample (box plus linear fits only).
    dtype       - Floating-point width, numpy.float32 or numpy.float64.
    solver      - Passed on to :func:`levfit.levmar.levmar`.
    autodiff    - Whether to differentiate the model automatically when it has
                  no Jacobian.

    Returns ``(params, info, covar)`` with *params* a :class:`SizedList`.

    """
    if not isinstance(model, CurveModel):
        model = CurveModel(model, jacobian)

    npar = model.npar
    params = model.sized(params)

    if lower is not None:
        lower = model.sized(lower)
    if upper is not None:
        upper = model.sized(upper)

    if constraints is not None:
        cmat, rhs = constraints
        cmat = [model.sized(row) for row in cmat]
        constraints = (cmat, list(rhs))

    samples = list(samples)
    xs = [s[0] for s in samples]
    ys = [s[1] for s in samples]

    result, info, covar = _lm.levmar(
        model.model_for(xs),
        model.jacobian_for(xs, autodiff=autodiff),
        list(params),
        ys,
        itmax,
        opts=opts,
        lower=lower,
        upper=upper,
        constraints=constraints,
        weights=weights,
        dtype=dtype,
        solver=solver,
    )
    return SizedList(result.tolist(), npar), info, covar
