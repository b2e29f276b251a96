# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.dual - numbers that carry a first derivative

A :class:`Dual` is a pair ``(value, deriv)``. Arithmetic on Duals applies
the chain rule to the second member, so evaluating a function on
``Dual.variable(x)`` yields both ``f(x)`` and ``f'(x)``. This is
forward-mode automatic differentiation, used by
:func:`levfit.fitting.jacobian_of`.

For this to work, a model has to do its arithmetic through operators or the
functions of this module (or the Numpy ufuncs listed below, which call the
methods of the same names), not through :mod:`math`::

  from levfit import dual

  def gauss(a, mu, sigma, x):
      return a * dual.exp(-0.5 * ((x - mu) / sigma)**2)

  d = gauss(1.0, dual.Dual.variable(0.5), 1.0, 2.0)
  d.value, d.deriv  # model value and derivative with respect to mu

Functions that operate on both Duals and plain numbers:

arctan     - As named.
cos        - As named.
cosh       - As named.
deriv_of   - The derivative part; 0 for plain numbers.
exp        - As named.
log10      - As named.
log        - As named.
reciprocal - 1/x
sin        - As named.
sinh       - As named.
sqrt       - As named.
square     - x**2
tan        - As named.
tanh       - As named.
value_of   - The value part; plain numbers are returned unchanged.

Converting a Dual to :class:`float`, :class:`int` or :class:`bool` raises
:exc:`TypeError`, because it would silently throw the derivative away. Use
:func:`value_of` when the value alone is wanted.

"""

__all__ = """Dual arctan cos cosh deriv_of exp log log10 reciprocal sin sinh sqrt
square tan tanh value_of""".split()

import operator

import numpy as np


def value_of(x):
    if isinstance(x, Dual):
        return x.value
    return x


def deriv_of(x):
    if isinstance(x, Dual):
        return x.deriv
    return 0.0


def _to_dual(x):
    if isinstance(x, Dual):
        return x
    if isinstance(x, (bool, str, bytes)) or not np.isscalar(x):
        raise TypeError("cannot combine %r with a Dual" % (x,))
    return Dual(x, 0.0)


def _make_dual_operator(opfunc):
    def dualopfunc(self, other):
        try:
            other = _to_dual(other)
        except TypeError:
            return NotImplemented
        return opfunc(self, other)

    return dualopfunc


def _make_dual_rev_operator(opfunc):
    def dualopfunc(self, other):
        try:
            other = _to_dual(other)
        except TypeError:
            return NotImplemented
        return opfunc(other, self)

    return dualopfunc


def _make_dual_comparison(opfunc):
    def dualcmpfunc(self, other):
        return opfunc(self.value, value_of(other))

    return dualcmpfunc


# Chain rule for the binary operators. Each takes two Duals.


def _add(a, b):
    return Dual(a.value + b.value, a.deriv + b.deriv)


def _sub(a, b):
    return Dual(a.value - b.value, a.deriv - b.deriv)


def _mul(a, b):
    return Dual(a.value * b.value, a.deriv * b.value + a.value * b.deriv)


def _truediv(a, b):
    return Dual(
        a.value / b.value, (a.deriv * b.value - a.value * b.deriv) / b.value**2
    )


def _pow(a, b):
    value = a.value**b.value

    if b.deriv == 0:
        # Constant exponent: also fine for a.value <= 0.
        if b.value == 0:
            return Dual(value, 0.0)
        return Dual(value, b.value * a.value ** (b.value - 1) * a.deriv)

    return Dual(
        value,
        value * (b.deriv * np.log(a.value) + b.value * a.deriv / a.value),
    )


class Dual(object):
    """A value together with its first derivative.

    Constructors are:

    - ``Dual(value, deriv=0.0)``
    - :meth:`Dual.constant`
    - :meth:`Dual.variable`

    Supported operations are:
    ``+ - * / ** -(neg) +(pos) abs() < <= > >= == !=``

    Comparisons look at the value only, so that models may branch on
    parameter values.

    """

    __slots__ = ("value", "deriv")

    # Make Numpy scalars defer to our reflected operators.
    __array_priority__ = 1000

    def __init__(self, value, deriv=0.0):
        self.value = value
        self.deriv = deriv

    @staticmethod
    def constant(value):
        "A value that does not depend on the variable being differentiated."
        return Dual(value, 0.0)

    @staticmethod
    def variable(value):
        "The variable being differentiated, with unit derivative."
        return Dual(value, 1.0)

    def __repr__(self):
        return "Dual(%r, %r)" % (self.value, self.deriv)

    __add__ = _make_dual_operator(_add)
    __sub__ = _make_dual_operator(_sub)
    __mul__ = _make_dual_operator(_mul)
    __truediv__ = _make_dual_operator(_truediv)
    __pow__ = _make_dual_operator(_pow)

    __radd__ = _make_dual_rev_operator(_add)
    __rsub__ = _make_dual_rev_operator(_sub)
    __rmul__ = _make_dual_rev_operator(_mul)
    __rtruediv__ = _make_dual_rev_operator(_truediv)
    __rpow__ = _make_dual_rev_operator(_pow)

    __lt__ = _make_dual_comparison(operator.lt)
    __le__ = _make_dual_comparison(operator.le)
    __gt__ = _make_dual_comparison(operator.gt)
    __ge__ = _make_dual_comparison(operator.ge)
    __eq__ = _make_dual_comparison(operator.eq)
    __ne__ = _make_dual_comparison(operator.ne)

    __hash__ = None

    def __neg__(self):
        return Dual(-self.value, -self.deriv)

    def __pos__(self):
        return Dual(self.value, self.deriv)

    def __abs__(self):
        if self.value < 0:
            return -self
        return +self

    def __bool__(self):
        raise TypeError("a Dual cannot be reduced to a boolean")

    def __float__(self):
        raise TypeError("a Dual cannot be reduced to a float scalar; use value_of()")

    def __int__(self):
        raise TypeError("a Dual cannot be reduced to an integer scalar")

    def __complex__(self):
        raise TypeError("a Dual cannot be reduced to a complex scalar")

    # Methods with ufunc names, so that e.g. np.exp(d) works on a Dual.

    def sqrt(self):
        root = np.sqrt(self.value)
        return Dual(root, self.deriv / (2 * root))

    def exp(self):
        e = np.exp(self.value)
        return Dual(e, e * self.deriv)

    def log(self):
        return Dual(np.log(self.value), self.deriv / self.value)

    def log10(self):
        return Dual(np.log10(self.value), self.deriv / (self.value * np.log(10)))

    def sin(self):
        return Dual(np.sin(self.value), np.cos(self.value) * self.deriv)

    def cos(self):
        return Dual(np.cos(self.value), -np.sin(self.value) * self.deriv)

    def tan(self):
        t = np.tan(self.value)
        return Dual(t, (1 + t * t) * self.deriv)

    def arctan(self):
        return Dual(np.arctan(self.value), self.deriv / (1 + self.value**2))

    def sinh(self):
        return Dual(np.sinh(self.value), np.cosh(self.value) * self.deriv)

    def cosh(self):
        return Dual(np.cosh(self.value), np.sinh(self.value) * self.deriv)

    def tanh(self):
        t = np.tanh(self.value)
        return Dual(t, (1 - t * t) * self.deriv)

    def square(self):
        return self * self

    def reciprocal(self):
        return 1.0 / self


# Unary functions that accept both Duals and plain numbers.


def _make_unary_math(name, scalarfunc):
    def unary_mathfunc(x):
        if isinstance(x, Dual):
            return getattr(x, name)()
        return scalarfunc(x)

    unary_mathfunc.__name__ = name
    return unary_mathfunc


_unary_math = {
    "arctan": np.arctan,
    "cos": np.cos,
    "cosh": np.cosh,
    "exp": np.exp,
    "log": np.log,
    "log10": np.log10,
    "reciprocal": lambda x: 1.0 / x,
    "sin": np.sin,
    "sinh": np.sinh,
    "sqrt": np.sqrt,
    "square": np.square,
    "tan": np.tan,
    "tanh": np.tanh,
}


def _init_unary_math():
    g = globals()

    for name, scalarfunc in _unary_math.items():
        g[name] = _make_unary_math(name, scalarfunc)


_init_unary_math()
