import math

import pytest

from tax_qualifications.domain.models import FACTOR_KEYS, ErrorType, RawRow, RecordStatus
from tax_qualifications.domain.validation import (
    process_row,
    validate_factors_sum,
    validate_period_format,
    validate_qualification,
)


def make_draft(factor: float = 0.05, **overrides):
    draft = {
        "broker_id": "broker-1",
        "instrument": "Acción ABC",
        "market": "BVC",
        "period": "2024-Q1",
        "qualification_type": "Dividendos",
        "factors": {key: factor for key in FACTOR_KEYS},
        "amount": 15000.0,
        "is_official": False,
    }
    draft.update(overrides)
    return draft


def test_valid_draft_has_no_errors():
    assert validate_qualification(make_draft(), 2) == []


def test_template_example_sums_to_exactly_one():
    factors = {key: 0.1 for key in FACTOR_KEYS[:8]}
    factors.update({key: 0.05 for key in FACTOR_KEYS[8:]})

    assert validate_factors_sum(factors).is_valid
    assert validate_qualification(make_draft(factors=factors), 2) == []


def test_factor_sum_over_one_reports_single_error():
    errors = validate_qualification(make_draft(factor=0.1), 5)

    assert len(errors) == 1
    error = errors[0]
    assert error.row == 5
    assert error.field == "factors"
    assert error.error_type is ErrorType.FACTOR_SUM
    assert error.value == pytest.approx(1.2)
    assert "1.2000" in error.message


def test_negative_amount_reports_single_error():
    errors = validate_qualification(make_draft(amount=-5.0), 3)

    assert len(errors) == 1
    assert errors[0].field == "amount"
    assert errors[0].message == "El monto no puede ser negativo"


def test_missing_required_text_fields_are_all_reported():
    errors = validate_qualification(make_draft(instrument="", market="  "), 2)

    assert {error.field for error in errors} == {"instrument", "market"}
    assert all(error.error_type is ErrorType.VALIDATION for error in errors)


def test_out_of_range_factor_skips_sum_check():
    factors = {key: 0.0 for key in FACTOR_KEYS}
    factors["f10"] = 1.5

    errors = validate_qualification(make_draft(factors=factors), 2)

    assert [error.field for error in errors] == ["f10"]
    assert errors[0].message == "El factor F10 debe estar entre 0 y 1"


def test_unparseable_numbers_are_format_errors():
    factors = {key: 0.0 for key in FACTOR_KEYS}
    factors["f8"] = math.nan

    errors = validate_qualification(make_draft(factors=factors, amount=math.nan), 2)

    assert {error.field for error in errors} == {"amount", "f8"}
    assert all(error.error_type is ErrorType.FORMAT for error in errors)


def test_missing_factors_and_amount_are_required():
    errors = validate_qualification(make_draft(factors=None, amount=None), 2)

    assert {error.field for error in errors} == {"amount", "factors"}


@pytest.mark.parametrize("period", ["2024", "2024-01", "2024-12", "2024-Q1", "2024-Q4"])
def test_period_formats_accepted(period):
    assert validate_period_format(period)


@pytest.mark.parametrize("period", ["2024-13", "2024-Q5", "24-Q1", "Q1-2024"])
def test_period_formats_rejected(period):
    assert not validate_period_format(period)


def test_bad_period_is_a_format_error():
    errors = validate_qualification(make_draft(period="2024-13"), 2)

    assert len(errors) == 1
    assert errors[0].field == "period"
    assert errors[0].error_type is ErrorType.FORMAT


def test_period_check_can_be_disabled():
    assert validate_qualification(make_draft(period="2024-13"), 2, check_period_format=False) == []


def test_process_row_builds_record_for_valid_row():
    values = {
        "instrumento": "Acción ABC",
        "mercado": "BVC",
        "periodo": "2024-Q1",
        "tipo_calificacion": "Dividendos",
        "monto": "15000",
        "es_oficial": "true",
        **{key: "0.05" for key in FACTOR_KEYS},
    }

    record = process_row(RawRow(row_number=2, values=values), "broker-1")

    assert record.status is RecordStatus.SUCCESS
    assert not record.is_error
    assert record.data.broker_id == "broker-1"
    assert record.data.is_official is True
    assert record.data.factors.total() == pytest.approx(0.6)


def test_process_row_keeps_source_row_number_on_error():
    values = {"instrumento": "ABC", "mercado": "BVC", "periodo": "2024", "tipo_calificacion": "X", "f8": "abc"}

    record = process_row(RawRow(row_number=7, values=values), "broker-1")

    assert record.status is RecordStatus.ERROR
    assert record.data is None
    assert [(error.row, error.field) for error in record.errors] == [(7, "f8")]


@pytest.mark.parametrize("amount", ["inf", "-inf", "1e400"])
def test_non_finite_amounts_are_format_errors(amount):
    values = {
        "instrumento": "ABC",
        "mercado": "BVC",
        "periodo": "2024",
        "tipo_calificacion": "Dividendos",
        "monto": amount,
        **{key: "0" for key in FACTOR_KEYS},
    }

    record = process_row(RawRow(row_number=2, values=values), "broker-1")

    assert record.is_error
    assert [(error.field, error.error_type) for error in record.errors] == [("amount", ErrorType.FORMAT)]


def test_non_finite_factor_is_a_format_error():
    factors = {key: 0.0 for key in FACTOR_KEYS}
    factors["f12"] = math.inf

    errors = validate_qualification(make_draft(factors=factors), 2)

    assert [(error.field, error.error_type) for error in errors] == [("f12", ErrorType.FORMAT)]
