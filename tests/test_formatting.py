"""
Unit Tests for Display Formatting
=================================
"""

import numpy as np
import pandas as pd
import pytest

from utils.formatting import (PROJECTION_ROWS, fmt_irr, fmt_millions, fmt_multiple,
                              fmt_pct, format_projection_df, style_sensitivity_table)


class TestFormatters:

    @pytest.mark.parametrize("val,expected", [
        (300e6, "$300.0M"),
        (-12.34e6, "$-12.3M"),
        (np.nan, "-"),
        (None, "-"),
    ])
    def test_fmt_millions(self, val, expected):
        assert fmt_millions(val) == expected

    def test_fmt_multiple(self):
        assert fmt_multiple(1.2345) == "1.23x"
        assert fmt_multiple(np.inf) == "n/a (no debt)"
        assert fmt_multiple(np.nan) == "-"

    def test_fmt_pct_and_irr(self):
        assert fmt_pct(0.125) == "12.5%"
        assert fmt_irr(np.nan) == "N/A"


class TestProjectionTable:

    def test_shape(self, base_result):
        table = format_projection_df(base_result["projection_df"])
        years = base_result["projection_df"]["year"].astype(int).astype(str).tolist()
        assert list(table.columns) == years
        assert len(table) == len(PROJECTION_ROWS)
        assert table.loc["Revenue", years[1]] == "$330.0M"

    def test_no_debt_dscr_label(self, no_debt_params):
        from model.projection import build_projection
        table = format_projection_df(build_projection(no_debt_params)["projection_df"])
        assert table.loc["DSCR", "2025"] == "n/a (no debt)"


class TestSensitivityStyling:

    def test_dscr_cells_colored_against_covenant(self):
        df = pd.DataFrame({"5y": [0.9, 1.1, 1.3, np.nan]}, index=["a", "b", "c", "d"])
        html = style_sensitivity_table(df, is_dscr=True, covenant=1.20).to_html()
        assert "#c0392b" in html   # below 1.0x
        assert "#e74c3c" in html   # below covenant
        assert "#f1c40f" in html   # within 0.25x of covenant
        assert "#444" in html      # missing cell

    def test_single_dscr_coloring(self):
        import analysis.sensitivity as sensitivity
        assert not hasattr(sensitivity, "dscr_color")
