# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

"""levfit.marshal - moving values in and out of solver buffers

The solver works on flat, contiguous Numpy arrays of a single floating-point
width. This module converts between those buffers and the vectors and
matrices that callers deal in. Conversions always copy, so a buffer handed to
the solver never aliases caller data and a decoded value never aliases a
buffer.

Absent optional inputs are passed to the solver as ``None``, which plays the
part of the C library's null pointer.

Functions:

check_dtype        - Validate a solver floating-point width.
from_buffer        - Buffer -> 1D array.
matrix_from_buffer - Flat row-major buffer -> 2D array.
matrix_to_buffer   - Rows of a matrix -> flat row-major buffer.
maybe_to_buffer    - Like to_buffer, but passes None through.
to_buffer          - Vector -> buffer.

Classes:

Staging - Context manager owning every buffer of a single solver call.

"""

__all__ = """SUPPORTED_DTYPES Staging check_dtype from_buffer matrix_from_buffer
matrix_to_buffer maybe_to_buffer to_buffer""".split()

import numpy as np

SUPPORTED_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


def check_dtype(dtype):
    """Return *dtype* as a :class:`numpy.dtype`, raising :exc:`ValueError` if it
    is not one of the floating-point widths the solver supports.

    """
    try:
        dt = np.dtype(dtype)
    except TypeError:
        raise ValueError("not a numeric type: %r" % (dtype,))

    if dt not in SUPPORTED_DTYPES:
        raise ValueError(
            "unsupported solver width %s; expected float32 or float64" % dt
        )
    return dt


def to_buffer(values, dtype):
    """Copy the 1D sequence *values* into a fresh contiguous buffer of *dtype*."""
    dtype = check_dtype(dtype)
    buf = np.array(values, dtype=dtype, ndmin=1)

    if buf.ndim != 1:
        raise ValueError("expected a 1D sequence, got shape %r" % (buf.shape,))
    return np.ascontiguousarray(buf)


def maybe_to_buffer(values, dtype):
    if values is None:
        return None
    return to_buffer(values, dtype)


def matrix_to_buffer(rows, ncols, dtype):
    """Flatten the matrix *rows* into a row-major buffer of *dtype*.

    Every row must contain exactly *ncols* items. Returns ``(buffer, nrows)``.

    """
    dtype = check_dtype(dtype)
    rows = [np.array(r, dtype=dtype, ndmin=1) for r in rows]

    for i, r in enumerate(rows):
        if r.shape != (ncols,):
            raise ValueError(
                "matrix row #%d has %d entries; expected %d" % (i, r.size, ncols)
            )

    if not len(rows):
        return np.empty(0, dtype=dtype), 0
    return np.ascontiguousarray(np.concatenate(rows)), len(rows)


def from_buffer(buf, dtype=np.float64):
    """Copy the solver buffer *buf* into a new 1D array of *dtype*."""
    return np.array(buf, dtype=check_dtype(dtype), ndmin=1).reshape(-1)


def matrix_from_buffer(buf, nrows, ncols, dtype=np.float64):
    """Copy the flat row-major buffer *buf* into a new *nrows*-by-*ncols* array."""
    flat = from_buffer(buf, dtype)

    if flat.size != nrows * ncols:
        raise ValueError(
            "buffer holds %d values; cannot view as %d-by-%d"
            % (flat.size, nrows, ncols)
        )
    return flat.reshape((nrows, ncols))


class Staging(object):
    """Owns the buffers used by one solver call.

    Buffers are created through the methods of this object inside a ``with``
    block. When the block is left, by any route, the stage forgets every
    buffer it handed out::

      with Staging(np.float64) as st:
          p = st.stage(guess)
          info = st.empty(10)
          status = solver.dif(func, p, ...)
          params = from_buffer(p)

    Callers must copy whatever they need out of the buffers before leaving the
    block; :func:`from_buffer` does exactly that.

    """

    def __init__(self, dtype):
        self.dtype = check_dtype(dtype)
        self._buffers = []
        self._open = False

    def __enter__(self):
        self._open = True
        return self

    def __exit__(self, etype, evalue, etb):
        self.release()
        return False

    @property
    def live(self):
        "The number of buffers currently held by this stage."
        return len(self._buffers)

    def release(self):
        del self._buffers[:]
        self._open = False

    def _keep(self, buf):
        if not self._open:
            raise RuntimeError("buffers may only be staged inside a with-block")
        if buf is not None:
            self._buffers.append(buf)
        return buf

    def stage(self, values):
        return self._keep(to_buffer(values, self.dtype))

    def maybe_stage(self, values):
        return self._keep(maybe_to_buffer(values, self.dtype))

    def stage_matrix(self, rows, ncols):
        buf, nrows = matrix_to_buffer(rows, ncols, self.dtype)
        return self._keep(buf), nrows

    def empty(self, size):
        return self._keep(np.zeros(size, dtype=self.dtype))
