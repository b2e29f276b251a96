# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

import numpy as np
from numpy.testing import assert_array_equal
import pytest

from levfit.marshal import (
    Staging,
    check_dtype,
    from_buffer,
    matrix_from_buffer,
    matrix_to_buffer,
    maybe_to_buffer,
    to_buffer,
)

WIDTHS = [np.float32, np.float64]


@pytest.mark.parametrize("dtype", WIDTHS)
def test_vector_round_trip(dtype):
    values = [0.5, -2.25, 1e3, 0.0]
    buf = to_buffer(values, dtype)
    assert buf.dtype == np.dtype(dtype)
    assert buf.flags.c_contiguous
    assert_array_equal(from_buffer(buf, dtype), np.array(values, dtype=dtype))


@pytest.mark.parametrize("dtype", WIDTHS)
def test_matrix_round_trip(dtype):
    rows = [[1, 2, 3], [4, 5, 6]]
    buf, nrows = matrix_to_buffer(rows, 3, dtype)
    assert nrows == 2
    assert_array_equal(buf, [1, 2, 3, 4, 5, 6])
    assert_array_equal(matrix_from_buffer(buf, 2, 3, dtype), rows)


def test_copies_do_not_alias():
    src = np.array([1.0, 2.0])
    buf = to_buffer(src, np.float64)
    buf[0] = 99
    assert src[0] == 1.0

    out = from_buffer(buf)
    buf[1] = 42
    assert out[1] == 2.0


def test_scalar_becomes_vector():
    assert to_buffer(3.0, np.float64).shape == (1,)


def test_rejects_bad_input():
    with pytest.raises(ValueError):
        to_buffer([[1.0, 2.0]], np.float64)
    with pytest.raises(ValueError):
        check_dtype(np.int32)
    with pytest.raises(ValueError):
        check_dtype("not a type")
    with pytest.raises(ValueError):
        matrix_to_buffer([[1, 2], [3]], 2, np.float64)
    with pytest.raises(ValueError):
        matrix_from_buffer(np.zeros(5), 2, 3)


def test_maybe_to_buffer():
    assert maybe_to_buffer(None, np.float64) is None
    assert_array_equal(maybe_to_buffer([1, 2], np.float32), [1, 2])


def test_empty_matrix():
    buf, nrows = matrix_to_buffer([], 4, np.float64)
    assert nrows == 0
    assert buf.size == 0


def test_staging_releases_on_success():
    with Staging(np.float64) as st:
        st.stage([1.0, 2.0])
        assert st.maybe_stage(None) is None
        st.stage_matrix([[1.0], [2.0]], 1)
        st.empty(10)
        assert st.live == 3

    assert st.live == 0


def test_staging_releases_on_error():
    st = Staging(np.float32)

    with pytest.raises(ZeroDivisionError):
        with st:
            st.stage([1.0])
            st.empty(4)
            1 / 0

    assert st.live == 0


def test_staging_outside_block():
    st = Staging(np.float64)

    with pytest.raises(RuntimeError):
        st.stage([1.0])
