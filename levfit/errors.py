# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.errors - solver status codes and the errors they map to

A solver entry point returns a signed integer. Non-negative values mean
success (the value is the iteration count). Negative values name a failure,
except for ``SINGULAR_MATRIX`` and ``SUM_OF_SQUARES_NOT_FINITE``, which
report a fit that ended early but still produced usable output.
Those two are handled by the dispatcher in :mod:`levfit.levmar`, never here.

Every other negative code maps to exactly one :class:`LevMarError` subclass.
A code that is not in the table means the solver does something this package
does not know about; :func:`map_status` raises :exc:`SolverContractError`
rather than guessing.

"""

__all__ = """BENIGN_CODES ConstraintMatrixNotFullRowRank ConstraintMatrixRowsGtCols
ERROR_TABLE FailedBoxCheck GenericLevMarError LapackError LevMarError
MemoryAllocationFailure SolverContractError Status TooFewMeasurements
map_status""".split()

from . import LFError
from .simpleenum import enumeration


@enumeration
class Status(object):
    """The status codes returned by solver entry points."""

    ERROR = -1
    LAPACK_ERROR = -2
    NO_JACOBIAN = -3
    NO_BOX_CONSTRAINTS = -4
    FAILED_BOX_CHECK = -5
    MEMORY_ALLOCATION_FAILURE = -6
    CONSTRAINT_MATRIX_ROWS_GT_COLS = -7
    CONSTRAINT_MATRIX_NOT_FULL_ROW_RANK = -8
    TOO_FEW_MEASUREMENTS = -9
    SINGULAR_MATRIX = -10
    SUM_OF_SQUARES_NOT_FINITE = -11


BENIGN_CODES = frozenset((Status.SINGULAR_MATRIX, Status.SUM_OF_SQUARES_NOT_FINITE))


class LevMarError(LFError):
    """Base class for the failures a solver can report.

    These are ordinary, recoverable outcomes of a fit: catch
    :exc:`LevMarError` to handle all of them, or one of the subclasses to
    handle a specific kind. The solver status code is available as
    :attr:`code`.

    """

    code = None
    description = "levmar solver error"

    def __init__(self, fmt=None, *args):
        if fmt is None:
            fmt = self.description
        super(LevMarError, self).__init__(fmt, *args)


class GenericLevMarError(LevMarError):
    code = Status.ERROR
    description = "generic levmar error"


class LapackError(LevMarError):
    code = Status.LAPACK_ERROR
    description = "a linear-algebra subroutine failed inside the solver"


class FailedBoxCheck(LevMarError):
    code = Status.FAILED_BOX_CHECK
    description = "at least one lower bound exceeds the corresponding upper bound"


class MemoryAllocationFailure(LevMarError):
    code = Status.MEMORY_ALLOCATION_FAILURE
    description = "the solver could not allocate its work space"


class ConstraintMatrixRowsGtCols(LevMarError):
    code = Status.CONSTRAINT_MATRIX_ROWS_GT_COLS
    description = "the constraint matrix has more rows than columns"


class ConstraintMatrixNotFullRowRank(LevMarError):
    code = Status.CONSTRAINT_MATRIX_NOT_FULL_ROW_RANK
    description = "the constraint matrix is not of full row rank"


class TooFewMeasurements(LevMarError):
    """Raised when there are fewer measurements than unknowns. With linear
    constraints, the number of unknowns is the number of parameters minus the
    number of constraints."""

    code = Status.TOO_FEW_MEASUREMENTS
    description = "fewer measurements than unknowns"


class SolverContractError(RuntimeError):
    """The solver returned a status code this package does not know.

    This is not a :exc:`LevMarError`: it means that the solver and this
    package disagree about the status-code table, and the result of the call
    cannot be trusted.

    """


ERROR_TABLE = dict(
    (cls.code, cls)
    for cls in (
        GenericLevMarError,
        LapackError,
        # NO_JACOBIAN cannot happen: the "der" entry points always get one.
        # NO_BOX_CONSTRAINTS cannot happen: "bc" entry points are only
        # chosen when a bound is given.
        FailedBoxCheck,
        MemoryAllocationFailure,
        ConstraintMatrixRowsGtCols,
        ConstraintMatrixNotFullRowRank,
        TooFewMeasurements,
    )
)


def map_status(code):
    """Translate the solver status *code*.

    Returns None for a success code (``code >= 0``). For a known failure code,
    returns a new instance of the corresponding :exc:`LevMarError` subclass;
    the caller decides whether to raise it. Raises :exc:`SolverContractError`
    for a negative code that is not in :data:`ERROR_TABLE`.

    """
    code = int(code)

    if code >= 0:
        return None

    cls = ERROR_TABLE.get(code)
    if cls is None:
        raise SolverContractError("unknown levmar status code %d" % code)
    return cls()
