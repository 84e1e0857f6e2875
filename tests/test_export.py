"""
Tests for the Excel Export
==========================
"""

import io

from openpyxl import load_workbook

from export_to_excel import build_excel_workbook

SHEETS = ["Cover", "Assumptions", "Projection", "Debt Schedule",
          "Credit Metrics", "Scenario Analysis", "Restructuring"]


def _load(data: bytes):
    return load_workbook(io.BytesIO(data))


class TestWorkbook:

    def test_default_workbook(self):
        data = build_excel_workbook()
        assert data[:2] == b"PK"
        assert _load(data).sheetnames == SHEETS

    def test_stressed_workbook(self, stressed_params):
        wb = _load(build_excel_workbook(stressed_params))
        assert wb.sheetnames == SHEETS
        assert wb["Restructuring"].max_row > 5

    def test_no_debt_workbook(self, no_debt_params):
        wb = _load(build_excel_workbook(no_debt_params))
        assert wb.sheetnames == SHEETS
