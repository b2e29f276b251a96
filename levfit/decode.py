# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.decode - interpreting the solver's output buffers

After every solver call, the ten-slot diagnostic buffer and the flat
covariance buffer are decoded exactly once, here, into an :class:`Info`
record and an *m*-by-*m* array. Nothing outside this module looks at the raw
buffers.

Diagnostic buffer layout (all slots in the solver's floating-point width)::

  0  ||e||_2^2 at the initial parameters
  1  ||e||_2^2 at the estimated parameters
  2  ||J^T e||_inf at the estimated parameters
  3  ||Dp||_2^2 at the estimated parameters
  4  mu / max[J^T J]_ii at the estimated parameters
  5  number of iterations
  6  reason for terminating, 1-based (see StopReason)
  7  number of function evaluations
  8  number of Jacobian evaluations
  9  number of linear systems solved

"""

__all__ = "INFO_SIZE Info StopReason decode_covar decode_info".split()

from collections import namedtuple
import enum

import numpy as np

from .marshal import from_buffer, matrix_from_buffer

INFO_SIZE = 10


class StopReason(enum.Enum):
    """Why the minimization stopped. Exactly one reason applies per fit."""

    SMALL_GRADIENT = "small gradient J^T e"
    SMALL_DP = "small parameter step Dp"
    MAX_ITERATIONS = "maximum number of iterations reached"
    SINGULAR_MATRIX = (
        "singular matrix; restart from the current estimate with a larger mu"
    )
    SMALLEST_ERROR = (
        "no further error reduction is possible; restart with a larger mu"
    )
    SMALL_NORM2_E = "small ||e||_2"
    INVALID_VALUES = "model function returned invalid values (NaN or Inf)"

    @classmethod
    def from_index(cls, index):
        """Get the reason at zero-based position *index* in declaration order."""
        members = list(cls)

        if index < 0 or index >= len(members):
            raise ValueError("no stop reason with index %d" % index)
        return members[index]

    @property
    def index(self):
        return list(type(self)).index(self)

    @property
    def converged(self):
        """Whether this reason indicates that the fit reached a minimum rather
        than giving up."""
        return self in (
            StopReason.SMALL_GRADIENT,
            StopReason.SMALL_DP,
            StopReason.SMALL_NORM2_E,
        )


Info = namedtuple(
    "Info",
    "norm2_init_e norm2_e norm_inf_jac_te norm2_dp mu_div_max niter "
    "stop_reason nfev njev nlinsys".split(),
)
Info.__doc__ = """Information about a completed minimization.

norm2_init_e    - ||e||_2^2 at the initial parameters.
norm2_e         - ||e||_2^2 at the estimated parameters.
norm_inf_jac_te - ||J^T e||_inf at the estimated parameters.
norm2_dp        - ||Dp||_2^2 at the estimated parameters.
mu_div_max      - mu / max[J^T J]_ii at the estimated parameters.
niter           - Number of iterations.
stop_reason     - A StopReason.
nfev            - Number of model evaluations.
njev            - Number of Jacobian evaluations.
nlinsys         - Number of linear systems solved, i.e. attempts at reducing
                  the error.

"""


def _truncate(v):
    # int() truncates toward zero, matching the C library's float -> int casts.
    return int(v)


def decode_info(buf):
    """Decode the ten-slot diagnostic buffer *buf* into an :class:`Info`."""
    v = from_buffer(buf, np.float64)

    if v.size != INFO_SIZE:
        raise ValueError(
            "diagnostic buffer has %d slots; expected %d" % (v.size, INFO_SIZE)
        )

    return Info(
        norm2_init_e=float(v[0]),
        norm2_e=float(v[1]),
        norm_inf_jac_te=float(v[2]),
        norm2_dp=float(v[3]),
        mu_div_max=float(v[4]),
        niter=_truncate(v[5]),
        stop_reason=StopReason.from_index(_truncate(v[6]) - 1),
        nfev=_truncate(v[7]),
        njev=_truncate(v[8]),
        nlinsys=_truncate(v[9]),
    )


def decode_covar(buf, m, dtype=np.float64):
    """Decode the flat covariance buffer *buf* into an *m*-by-*m* array.

    The buffer holds *m* consecutive rows of *m* values each.

    """
    if m < 1:
        raise ValueError("covariance dimension must be positive; got %d" % m)
    return matrix_from_buffer(buf, m, m, dtype)
