"""
Mapping of the client's revision-announcement spreadsheet to canonical rows,
and conversion of spreadsheet dates.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

from src.announcements.schemas import AnnouncementRow
from src.engineering.models import SPOOLING_PENDING

logger = logging.getLogger(__name__)

# Spreadsheet serial dates count days from 1899-12-30
EXCEL_EPOCH = datetime(1899, 12, 30)
MIN_SERIAL, MAX_SERIAL = 1, 100000
MIN_YEAR, MAX_YEAR = 1900, 2100

# Locale formats seen in client spreadsheets, tried after ISO 8601
_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y", "%Y/%m/%d")


def _text(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _optional_text(value: Any) -> Optional[str]:
    text = _text(value)
    return text or None


def _count(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


# Spreadsheet header -> canonical field
HEADER_FIELDS = {
    "N°ISOMÉTRICO": "iso_number",
    "N° LÍNEA": "line_number",
    "REV. ISO": "revision_number",
    "TIPO LÍNEA": "line_type",
    "ÁREA": "area",
    "SUB-ÁREA": "sub_area",
    "ARCHIVO": "client_file_code",
    "REV. ARCHIVO": "client_revision_code",
    "TML": "transmittal_code",
    "FECHA": "transmittal_date",
    "ESTADO SPOOLING": "spooling_status",
    "FECHA SPOOLING": "spooling_date",
    "FECHA DE ENVIO": "spooling_sent_date",
    "TOTAL": "total_joints_count",
    "EJECUTADO": "executed_joints_count",
    "FALTANTES": "pending_joints_count",
}


def _column(excel_row: Dict[str, Any], header: str) -> Any:
    """Read a column by its spreadsheet header, falling back to the canonical field name."""
    if header in excel_row:
        return excel_row[header]
    return excel_row.get(HEADER_FIELDS[header])


def normalize_announcement_row(excel_row: Dict[str, Any]) -> AnnouncementRow:
    return AnnouncementRow(
        iso_number=_text(_column(excel_row, "N°ISOMÉTRICO")),
        line_number=_text(_column(excel_row, "N° LÍNEA")),
        revision_number=_text(_column(excel_row, "REV. ISO"), "0"),
        line_type=_text(_column(excel_row, "TIPO LÍNEA")),
        area=_text(_column(excel_row, "ÁREA")),
        sub_area=_text(_column(excel_row, "SUB-ÁREA")),
        client_file_code=_text(_column(excel_row, "ARCHIVO")),
        client_revision_code=_text(_column(excel_row, "REV. ARCHIVO")),
        transmittal_code=_text(_column(excel_row, "TML")),
        transmittal_date=_optional_text(_column(excel_row, "FECHA")),
        spooling_status=_text(_column(excel_row, "ESTADO SPOOLING"), SPOOLING_PENDING),
        spooling_date=_optional_text(_column(excel_row, "FECHA SPOOLING")),
        spooling_sent_date=_optional_text(_column(excel_row, "FECHA DE ENVIO")),
        total_joints_count=_count(_column(excel_row, "TOTAL")),
        executed_joints_count=_count(_column(excel_row, "EJECUTADO")),
        pending_joints_count=_count(_column(excel_row, "FALTANTES")),
    )


def _parse_date_string(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def excel_date_to_sql(value: Any) -> Optional[date]:
    """Convert a spreadsheet date (text or serial number) to a date.

    Serial numbers are shifted half a day so that timezone offsets never
    roll the result back to the previous day. Anything unparseable or out
    of range yields None.
    """
    if value is None or value == "" or value == 0:
        return None

    parsed: Optional[datetime] = None

    if isinstance(value, str):
        text = value.strip()
        if "-" in text or "/" in text:
            parsed = _parse_date_string(text)
        else:
            try:
                number = float(text)
            except ValueError:
                return None
            if not MIN_SERIAL - 1 < number < MAX_SERIAL:
                return None
            value = number

    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if value < MIN_SERIAL or value > MAX_SERIAL:
            logger.warning(f"Spreadsheet date out of valid range: {value}")
            return None
        parsed = EXCEL_EPOCH + timedelta(days=value + 0.5)

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)

    if parsed is None:
        return None
    if parsed.year < MIN_YEAR or parsed.year > MAX_YEAR:
        logger.warning(f"Converted date out of valid range: {parsed}")
        return None
    return parsed.date()
