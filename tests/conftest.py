from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Sequence

import openpyxl
import pytest

HEADER = ["Company Name", "Latitude", "Longitude", "Domain"]


def build_xlsx(sheets: Dict[str, Sequence[Sequence[Any]]]) -> bytes:
    """Workbook bytes with one sheet per entry; None cells and empty rows stay blank."""

    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for r_idx, row in enumerate(rows, start=1):
            for c_idx, value in enumerate(row, start=1):
                if value is not None:
                    ws.cell(row=r_idx, column=c_idx, value=value)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def xlsx_bytes():
    return build_xlsx


@pytest.fixture
def write_xlsx(tmp_path):
    def _write(name: str, sheets: Dict[str, Sequence[Sequence[Any]]]) -> Path:
        path = Path(tmp_path) / name
        path.write_bytes(build_xlsx(sheets))
        return path

    return _write


@pytest.fixture
def directory_rows() -> List[List[Any]]:
    """A clean table: header in the first row, three organizations."""

    return [
        [
            "Company_Name",
            "Company_Address",
            "Latitude",
            "Longitude",
            "Domain",
            "Type_of_Stakeholder",
            "Stakeholder",
            "Aerospace Support & Enabling Services",
            "Hardware/Software",
        ],
        ["Acme Space", "Munich", 48.1, 11.5, "Space", "SME", "Aviation, Space; Space", "Testing", "Hardware"],
        ["Orbit Works", "Bremen", "53,07", "8,8", "Space", "Industry", None, "Launch / Testing", None],
        ["Skyline Aero", "Hamburg", None, None, "Aviation", "Research Institute", None, None, "Software"],
    ]
