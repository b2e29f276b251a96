# -*- mode: python; coding: utf-8 -*-
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

import pytest

from levfit import LFError
from levfit.errors import (
    BENIGN_CODES,
    ERROR_TABLE,
    FailedBoxCheck,
    LevMarError,
    SolverContractError,
    Status,
    TooFewMeasurements,
    map_status,
)


def test_table_is_total_and_injective():
    assert sorted(ERROR_TABLE) == [-9, -8, -7, -6, -5, -2, -1]
    classes = list(ERROR_TABLE.values())
    assert len(set(classes)) == len(classes) == 7

    for code, cls in ERROR_TABLE.items():
        err = map_status(code)
        assert type(err) is cls
        assert err.code == code
        assert isinstance(err, LevMarError)
        assert isinstance(err, LFError)
        assert str(err) == cls.description


def test_unreachable_codes_not_in_table():
    assert Status.NO_JACOBIAN not in ERROR_TABLE
    assert Status.NO_BOX_CONSTRAINTS not in ERROR_TABLE
    for code in BENIGN_CODES:
        assert code not in ERROR_TABLE


@pytest.mark.parametrize("code", [-3, -4, -10, -11, -12, -1000])
def test_unknown_codes(code):
    with pytest.raises(SolverContractError):
        map_status(code)


def test_contract_error_is_not_a_levmar_error():
    assert not issubclass(SolverContractError, LevMarError)


def test_success_codes():
    assert map_status(0) is None
    assert map_status(17) is None


def test_specific_codes():
    assert isinstance(map_status(-5), FailedBoxCheck)
    assert isinstance(map_status(-9), TooFewMeasurements)


def test_status_table_is_frozen():
    assert Status.name_of(-8) == "CONSTRAINT_MATRIX_NOT_FULL_ROW_RANK"
    with pytest.raises(AttributeError):
        Status.ERROR = 5
    with pytest.raises(AttributeError):
        Status.NOT_A_CODE


def test_error_message_formatting():
    err = FailedBoxCheck("bound %d of %d", 2, 3)
    assert str(err) == "bound 2 of 3"
    assert repr(err) == "FailedBoxCheck('bound 2 of 3')"


def test_status_items_sorted_by_name():
    items = Status.items()
    assert [k for k, _ in items] == sorted(k for k, _ in items)
    assert dict(items)["TOO_FEW_MEASUREMENTS"] == -9
    assert len(items) == 11
