from datetime import date

import pytest

from src.announcements.normalize import excel_date_to_sql, normalize_announcement_row
from src.engineering.models import SPOOLING_PENDING


@pytest.mark.parametrize(
    "value, expected",
    [
        (44927, date(2023, 1, 1)),
        (44927.75, date(2023, 1, 2)),
        ("44927", date(2023, 1, 1)),
        ("2023-03-15", date(2023, 3, 15)),
        ("2023-03-15T10:30:00", date(2023, 3, 15)),
        ("15/03/2023", date(2023, 3, 15)),
        ("15-03-2023", date(2023, 3, 15)),
        (date(2023, 3, 15), date(2023, 3, 15)),
    ],
)
def test_excel_date_to_sql(value, expected):
    assert excel_date_to_sql(value) == expected


@pytest.mark.parametrize("value", [None, "", 0, -5, 100001, "not a date", "31/02/2023", "1850-01-01", True])
def test_excel_date_to_sql_rejects_invalid_values(value):
    assert excel_date_to_sql(value) is None


def test_normalize_maps_spreadsheet_headers():
    row = normalize_announcement_row({
        "N°ISOMÉTRICO": "ISO-100",
        "N° LÍNEA": "L-1",
        "REV. ISO": 1.0,
        "ÁREA": "AREA-1",
        "TML": "TML-9",
        "FECHA": 44927,
        "TOTAL": "12",
        "EJECUTADO": 4,
    })

    assert row.iso_number == "ISO-100"
    assert row.line_number == "L-1"
    assert row.revision_number == "1"
    assert row.area == "AREA-1"
    assert row.transmittal_code == "TML-9"
    assert row.transmittal_date == "44927"
    assert row.total_joints_count == 12
    assert row.executed_joints_count == 4
    assert row.pending_joints_count is None


def test_normalize_defaults():
    row = normalize_announcement_row({"N°ISOMÉTRICO": "ISO-1"})

    assert row.revision_number == "0"
    assert row.spooling_status == SPOOLING_PENDING
    assert row.transmittal_date is None


def test_normalize_accepts_canonical_field_names():
    row = normalize_announcement_row({
        "iso_number": "ISO-7",
        "revision_number": 2,
        "transmittal_date": "2023-03-15",
        "total_joints_count": 8,
    })

    assert row.iso_number == "ISO-7"
    assert row.revision_number == "2"
    assert row.transmittal_date == "2023-03-15"
    assert row.total_joints_count == 8


def test_spreadsheet_header_wins_over_field_name():
    row = normalize_announcement_row({"N°ISOMÉTRICO": "ISO-1", "iso_number": "ISO-2"})

    assert row.iso_number == "ISO-1"
