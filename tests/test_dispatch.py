# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

import itertools
import logging

import numpy as np
from numpy.testing import assert_array_equal
import pytest

from levfit.decode import StopReason
from levfit.errors import FailedBoxCheck, SolverContractError
from levfit.levmar import (
    DEFAULT_OPTIONS,
    ENTRY_POINTS,
    Options,
    check_jacobian,
    levmar,
    select_entry_point,
)

ARITY = {
    "der": 10,
    "dif": 9,
    "bc_der": 12,
    "bc_dif": 11,
    "lec_der": 13,
    "lec_dif": 12,
    "blec_der": 16,
    "blec_dif": 15,
}


class RecordingSolver(object):
    """Stands in for the solver: records which entry point was called and
    returns a canned status."""

    def __init__(self, status=0, stop=1):
        self.status = status
        self.stop = stop
        self.calls = []

    def _record(self, name, args):
        self.calls.append((name, args))
        info = args[-2]
        info[5] = 2
        info[6] = self.stop
        return self.status


def _make_entry(name):
    def entry(self, *args):
        return self._record(name, args)

    entry.__name__ = name
    return entry


for _name in ENTRY_POINTS.values():
    setattr(RecordingSolver, _name, _make_entry(_name))


def line(p):
    return [p[0] + p[1] * x for x in (0.0, 1.0, 2.0)]


def line_jac(p):
    return [[1.0, x] for x in (0.0, 1.0, 2.0)]


def run(solver, has_jac, box, lin, **kwargs):
    if box:
        kwargs.setdefault("lower", [-10.0, -10.0])
    if lin:
        kwargs.setdefault("constraints", ([[1.0, 1.0]], [3.0]))
    return levmar(
        line,
        line_jac if has_jac else None,
        [1.0, 1.0],
        [1.0, 2.0, 3.0],
        50,
        solver=solver,
        **kwargs
    )


def test_entry_point_table_complete():
    assert len(ENTRY_POINTS) == 8
    assert len(set(ENTRY_POINTS.values())) == 8


@pytest.mark.parametrize("combo", list(itertools.product([False, True], repeat=3)))
def test_all_combinations_dispatch(combo):
    has_jac, box, lin = combo
    solver = RecordingSolver()
    params, info, covar = run(solver, has_jac, box, lin)

    assert len(solver.calls) == 1
    name, args = solver.calls[0]
    assert name == select_entry_point(has_jac, box, lin)
    assert len(args) == ARITY[name]
    assert info.stop_reason is StopReason.SMALL_GRADIENT
    assert covar.shape == (2, 2)
    assert_array_equal(params, [1.0, 1.0])


def test_box_with_only_upper():
    solver = RecordingSolver()
    levmar(line, None, [1.0, 1.0], [1.0, 2.0, 3.0], 5, upper=[5.0, 5.0],
           solver=solver)
    name, args = solver.calls[0]
    assert name == "bc_dif"
    lb, ub = args[5], args[6]
    assert lb is None
    assert_array_equal(ub, [5.0, 5.0])


def test_weights_only_reach_blec():
    solver = RecordingSolver()
    run(solver, True, True, True, weights=[1.0, 2.0, 3.0])
    name, args = solver.calls[0]
    assert name == "blec_der"
    assert_array_equal(args[11], [1.0, 2.0, 3.0])

    solver = RecordingSolver()
    run(solver, False, True, True)
    name, args = solver.calls[0]
    assert name == "blec_dif"
    assert args[10] is None


@pytest.mark.parametrize("combo", [(True, False, False), (False, True, False),
                                   (True, False, True)])
def test_weights_rejected_elsewhere(combo):
    solver = RecordingSolver()
    with pytest.raises(ValueError):
        run(solver, *combo, weights=[1.0, 1.0, 1.0])
    assert solver.calls == []


@pytest.mark.parametrize("status,stop", [(-10, 4), (-11, 7)])
def test_benign_codes_are_success(status, stop):
    solver = RecordingSolver(status=status, stop=stop)
    params, info, covar = run(solver, True, False, False)
    assert info.stop_reason is StopReason.from_index(stop - 1)
    assert info.niter == 2


def test_failure_code_raises_typed_error():
    solver = RecordingSolver(status=-5)
    with pytest.raises(FailedBoxCheck):
        run(solver, False, True, False)


def test_unknown_code_raises_contract_error():
    with pytest.raises(SolverContractError):
        run(RecordingSolver(status=-42), True, False, False)
    with pytest.raises(SolverContractError):
        run(RecordingSolver(status=-3), True, False, False)


def test_options_are_passed_in_order():
    solver = RecordingSolver()
    opts = Options(mu=1e-2, delta=-1e-5)
    run(solver, False, False, False, opts=opts)
    optbuf = solver.calls[0][1][-3]
    assert_array_equal(optbuf, [1e-2, 1e-17, 1e-17, 1e-17, -1e-5])
    assert DEFAULT_OPTIONS.mu == 1e-3


def test_float32_buffers():
    solver = RecordingSolver()
    run(solver, True, True, True, dtype=np.float32)
    for arg in solver.calls[0][1]:
        if isinstance(arg, np.ndarray):
            assert arg.dtype == np.float32


def test_precondition_errors():
    solver = RecordingSolver()

    with pytest.raises(ValueError):
        levmar(line, None, [], [1.0, 2.0, 3.0], 5, solver=solver)
    with pytest.raises(ValueError):
        levmar(line, None, [1.0, 1.0], [1.0, 2.0, 3.0], 5, lower=[0.0],
               solver=solver)
    with pytest.raises(ValueError):
        run(solver, True, False, True, constraints=([[1.0, 1.0, 1.0]], [3.0]))
    with pytest.raises(ValueError):
        run(solver, True, False, True, constraints=([[1.0, 1.0]], [3.0, 4.0]))
    with pytest.raises(ValueError):
        levmar(line, None, [1.0, 1.0], [1.0, 2.0, 3.0], 5, dtype=np.int64,
               solver=solver)

    assert solver.calls == []


def test_model_output_size_checked():
    with pytest.raises(ValueError):
        levmar(line, None, [1.0, 1.0], [1.0, 2.0], 20)
    with pytest.raises(ValueError):
        levmar(line, lambda p: [[1.0, 0.0]], [1.0, 1.0], [0.0, 0.0, 0.0], 20)


def test_debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="levfit.levmar")
    run(RecordingSolver(), False, True, False)
    assert "bc_dif" in caplog.text


def test_check_jacobian():
    analytic, numeric = check_jacobian(line, line_jac, [0.5, 2.0])
    assert analytic.shape == numeric.shape == (3, 2)
    np.testing.assert_allclose(analytic, numeric, rtol=1e-6, atol=1e-6)

    bad, numeric = check_jacobian(line, lambda p: [[1.0, 0.0]] * 3, [0.5, 2.0])
    assert not np.allclose(bad, numeric)
