# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

import numpy as np
from numpy.testing import assert_array_equal
import pytest

from levfit.decode import INFO_SIZE, StopReason, decode_covar, decode_info


def info_buffer(stop, dtype=np.float64):
    return np.array([10.0, 0.5, 1e-9, 1e-20, 1e-6, 12.0, stop, 30.0, 13.0, 25.0],
                    dtype=dtype)


def test_stop_code_one_is_small_gradient():
    info = decode_info(info_buffer(1))
    assert info.stop_reason is StopReason.SMALL_GRADIENT
    assert info.stop_reason.converged


def test_stop_code_seven_is_invalid_values():
    info = decode_info(info_buffer(7))
    assert info.stop_reason is StopReason.INVALID_VALUES
    assert not info.stop_reason.converged


@pytest.mark.parametrize("dtype", [np.float32, np.float64])
def test_info_fields(dtype):
    info = decode_info(info_buffer(3, dtype))
    assert info.norm2_init_e == 10.0
    assert info.norm2_e == 0.5
    assert info.niter == 12
    assert info.stop_reason is StopReason.MAX_ITERATIONS
    assert (info.nfev, info.njev, info.nlinsys) == (30, 13, 25)
    assert isinstance(info.niter, int)


def test_counts_truncate():
    buf = info_buffer(2)
    buf[5] = 4.9
    assert decode_info(buf).niter == 4


def test_stop_reason_order():
    for i, reason in enumerate(StopReason):
        assert StopReason.from_index(i) is reason
        assert reason.index == i
    assert len(StopReason) == 7


def test_bad_stop_code():
    with pytest.raises(ValueError):
        decode_info(info_buffer(0))
    with pytest.raises(ValueError):
        decode_info(info_buffer(8))


def test_bad_info_size():
    with pytest.raises(ValueError):
        decode_info(np.zeros(INFO_SIZE - 1))


def test_decode_covar():
    cov = decode_covar(np.arange(9.0), 3)
    assert cov.shape == (3, 3)
    assert_array_equal(cov[1], [3.0, 4.0, 5.0])

    assert decode_covar(np.array([2.5]), 1).shape == (1, 1)


def test_decode_covar_rejects_bad_sizes():
    with pytest.raises(ValueError):
        decode_covar(np.zeros(0), 0)
    with pytest.raises(ValueError):
        decode_covar(np.zeros(5), 2)
