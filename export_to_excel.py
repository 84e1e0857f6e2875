"""
export_to_excel.py
------------------
Multi-sheet credit analysis workbook, formula-driven where possible.

Formula strategy
----------------
  Projection        : Revenue / COGS / Opex / EBITDA are formulas on an
                      editable driver block (change growth or margins and
                      the P&L recalculates); DSCR = EBITDA / Debt Service
  Debt Schedule     : Closing Balance = Opening - Principal (formula)
  Credit Metrics    : values from the Python model, headroom as formulas
  Scenario Analysis : values from the Python model
  Restructuring     : values from the Python model
  Interest / Tax    : hardcoded from the debt engine (noted with a footnote)

Usage
-----
    from export_to_excel import build_excel_workbook
    xl_bytes = build_excel_workbook(params)   # → bytes

    # Standalone: python export_to_excel.py → Credit_Analysis_Model.xlsx
"""

import io
import logging
import math
from datetime import datetime
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from model.params import ModelParams, default_params
from model.projection import build_projection
from analysis.credit_metrics import build_credit_dashboard
from analysis.covenants import analyze_covenant_headroom
from analysis.scenarios import run_scenarios
from analysis.restructuring import RestructuringTerms, restructure_deal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Colour palette
# ---------------------------------------------------------------------------
COLOR_NAVY_DARK  = "1F2D40"
COLOR_NAVY_MID   = "2E4057"
COLOR_NAVY_INPUT = "1A4A7A"
COLOR_GOLD_LIGHT = "F5E6C3"
COLOR_ROW_ALT    = "EEF2F7"
COLOR_WHITE      = "FFFFFF"
COLOR_LIGHT_GRAY = "F7F9FC"
COLOR_SECTION_BG = "E8EDF3"
COLOR_DARK_TEXT  = "1A1A2E"
COLOR_GREEN      = "1A6B3C"
COLOR_RED_DARK   = "8B1A1A"
COLOR_INPUT_BG   = "EBF3FF"

FMT_MONEY    = "#,##0"
FMT_PCT      = "0.0%"
FMT_MULTIPLE = '0.00"x"'


# ---------------------------------------------------------------------------
# Style helpers
# ---------------------------------------------------------------------------

def _fill(hex_color):
    return PatternFill("solid", fgColor=hex_color)

def _font(bold=False, size=10, color=COLOR_DARK_TEXT, italic=False):
    return Font(name="Calibri", bold=bold, size=size, color=color, italic=italic)

def _border(style="thin"):
    s = Side(style=style, color="B0BAC8")
    return Border(left=s, right=s, top=s, bottom=s)

def _align(h="left", v="center", wrap=False):
    return Alignment(horizontal=h, vertical=v, wrap_text=wrap)

def _write(ws, row, col, value, bold=False, font_size=10,
           fg=None, font_color=COLOR_DARK_TEXT,
           align="left", wrap=False, italic=False,
           num_format=None, border=False):
    cell = ws.cell(row=row, column=col, value=value)
    cell.font      = _font(bold=bold, size=font_size, color=font_color, italic=italic)
    cell.alignment = _align(h=align, wrap=wrap)
    if fg:
        cell.fill = _fill(fg)
    if num_format:
        cell.number_format = num_format
    if border:
        cell.border = _border()
    return cell

def _col_header(ws, row, col, label, bg=COLOR_NAVY_DARK):
    _write(ws, row, col, label,
           bold=True, font_size=10, fg=bg, font_color=COLOR_WHITE,
           align="center", border=True)

def _section_header(ws, row, col, label, ncols=1, bg=COLOR_NAVY_MID):
    _write(ws, row, col, label,
           bold=True, font_size=11, fg=bg, font_color=COLOR_WHITE,
           align="left", border=True)
    if ncols > 1:
        ws.merge_cells(start_row=row, start_column=col,
                       end_row=row,   end_column=col + ncols - 1)

def _title_row(ws, row, label, last_col_idx):
    ws.merge_cells(start_row=row, start_column=2,
                   end_row=row,   end_column=last_col_idx)
    cell = ws.cell(row=row, column=2, value=label)
    cell.font      = _font(bold=True, size=14, color=COLOR_WHITE)
    cell.fill      = _fill(COLOR_NAVY_DARK)
    cell.alignment = _align(h="center", v="center")
    ws.row_dimensions[row].height = 22


def _cell_value(val):
    """Excel has no inf / NaN: unlimited coverage is written as text."""
    if isinstance(val, float) and not math.isfinite(val):
        return "n/a" if math.isnan(val) else ("unlimited" if val > 0 else "n/a")
    return val


def _vcell(ws, row, col, val_or_formula, bold=False, bg=COLOR_WHITE,
           fc=COLOR_DARK_TEXT, num_format=FMT_MONEY, border=True):
    """Write a data cell (value or formula string)."""
    cell = ws.cell(row=row, column=col, value=_cell_value(val_or_formula))
    cell.font      = _font(bold=bold, color=fc)
    cell.fill      = _fill(bg)
    cell.alignment = _align(h="right")
    if border:
        cell.border = _border()
    cell.number_format = num_format
    return cell


def _yc(yr: int) -> str:
    """Column letter for year yr (1-based). Year 1 → 'C', Year 2 → 'D', …"""
    return get_column_letter(2 + yr)


def _kv_block(ws, row, pairs) -> int:
    for i, (lbl, val) in enumerate(pairs):
        bg = COLOR_ROW_ALT if i % 2 else COLOR_WHITE
        _write(ws, row, 2, lbl, bold=True, fg=bg, border=True)
        _write(ws, row, 3, val, fg=bg, align="right", border=True)
        row += 1
    return row


# ===========================================================================
# Sheet 1: Cover
# ===========================================================================

def _build_cover(wb, params: ModelParams, result: dict, dashboard: dict):
    ws = wb.create_sheet("Cover")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 34
    ws.column_dimensions["C"].width = 24

    ws.merge_cells("B2:C4")
    cell = ws["B2"]
    cell.value     = "CREDIT ANALYSIS & STRESS TEST\nFinancial Model Summary"
    cell.font      = _font(bold=True, size=18, color=COLOR_WHITE)
    cell.fill      = _fill(COLOR_NAVY_DARK)
    cell.alignment = _align(h="center", v="center", wrap=True)

    ws.merge_cells("B5:C5")
    cell = ws["B5"]
    cell.value     = f"Prepared: {datetime.today().strftime('%B %d, %Y')}"
    cell.font      = _font(italic=True, size=10, color="CCCCCC")
    cell.fill      = _fill(COLOR_NAVY_DARK)
    cell.alignment = _align(h="center", v="center")

    val = result["valuation"]
    stats = result["credit_stats"]
    res = dashboard["resilience"]
    irr, moic = result["irr"], result["moic"]

    row = 7
    _section_header(ws, row, 2, "KEY METRICS", ncols=2)
    row = _kv_block(ws, row + 1, [
        ("Enterprise Value",     f"{val['enterprise_value']:,.0f}"),
        ("Equity Value",         f"{val['equity_value']:,.0f}"),
        ("Min DSCR",             f"{stats['min_dscr']:.2f}x" if math.isfinite(stats["min_dscr"]) else "n/a"),
        ("Min ICR",              f"{stats['min_icr']:.2f}x" if math.isfinite(stats["min_icr"]) else "n/a"),
        ("Max Net Leverage",     f"{stats['max_leverage']:.2f}x" if math.isfinite(stats["max_leverage"]) else "n/a"),
        ("Covenant Breaches",    str(result["breaches"]["total"])),
        ("Resilience Score",     f"{res['score']} / 100 ({res['rating']})"),
        ("Sponsor IRR",          f"{irr:.1%}" if math.isfinite(irr) else "N/A"),
        ("Sponsor MOIC",         f"{moic:.2f}x" if math.isfinite(moic) else "N/A"),
    ])

    row += 1
    ws.merge_cells(f"B{row}:C{row}")
    cell = ws[f"B{row}"]
    cell.value = ("CONFIDENTIAL. For discussion purposes only. All values in currency units. "
                  "Interest and tax are computed by the debt engine and are fixed inputs to the P&L.")
    cell.font      = _font(size=8, italic=True, color="888888")
    cell.alignment = _align(h="center", wrap=True)
    ws.row_dimensions[row].height = 28


# ===========================================================================
# Sheet 2: Assumptions
# ===========================================================================

def _build_assumptions_sheet(wb, params: ModelParams):
    ws = wb.create_sheet("Assumptions")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 34
    ws.column_dimensions["C"].width = 20

    _title_row(ws, 1, "MODEL ASSUMPTIONS", 3)
    blocks = [
        ("OPERATING", [
            ("Base Revenue", params.base_revenue, FMT_MONEY),
            ("Revenue Growth", params.growth, FMT_PCT),
            ("COGS % Revenue", params.cogs_pct, FMT_PCT),
            ("Opex % Revenue", params.opex_pct, FMT_PCT),
            ("CapEx % Revenue", params.capex_pct, FMT_PCT),
            ("D&A % PP&E", params.da_pct_of_ppe, FMT_PCT),
            ("NWC % Revenue", params.wc_pct_of_rev, FMT_PCT),
            ("Tax Rate", params.tax_rate, FMT_PCT),
        ]),
        ("DEBT", [
            ("Total Debt", params.total_debt, FMT_MONEY),
            ("Blended Rate", params.blended_rate, FMT_PCT),
            ("Tenor (years)", params.debt_tenor_years, "0"),
            ("Interest-Only Years", params.interest_only_years, "0"),
            ("Amortization", params.amortization_type, "@"),
            ("Day Count", params.day_count, "@"),
            ("Opening Cash", params.opening_cash, FMT_MONEY),
        ]),
        ("VALUATION & COVENANTS", [
            ("WACC", params.wacc, FMT_PCT),
            ("Terminal Growth", params.terminal_growth, FMT_PCT),
            ("Min DSCR", params.covenants.min_dscr, FMT_MULTIPLE),
            ("Target ICR", params.covenants.target_icr, FMT_MULTIPLE),
            ("Max Net Leverage", params.covenants.max_leverage, FMT_MULTIPLE),
        ]),
    ]

    r = 3
    for header, items in blocks:
        _section_header(ws, r, 2, header, ncols=2)
        r += 1
        for i, (lbl, val, fmt) in enumerate(items):
            bg = COLOR_ROW_ALT if i % 2 else COLOR_WHITE
            _write(ws, r, 2, lbl, fg=bg, border=True)
            _vcell(ws, r, 3, val, bg=bg, num_format=fmt)
            r += 1
        r += 1


# ===========================================================================
# Sheet 3: Projection (formula-driven P&L)
# ===========================================================================

def _build_projection(wb, params: ModelParams, df):
    ws = wb.create_sheet("Projection")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 30
    n = len(df)
    for i in range(n):
        ws.column_dimensions[get_column_letter(3 + i)].width = 16

    R_TITLE    = 1
    R_HDRS     = 3
    R_DRV_HDR  = 4
    R_BASE_REV = 5
    R_GROWTH   = 6
    R_COGS_PCT = 7
    R_OPEX_PCT = 8
    R_PL_HDR   = 10
    R_REVENUE  = 11
    R_COGS     = 12
    R_OPEX     = 13
    R_EBITDA   = 14
    R_DA       = 15
    R_EBIT     = 16
    R_INTEREST = 17
    R_TAX      = 18
    R_FCF      = 19
    R_DS       = 20
    R_FCFE     = 21
    R_DEBT     = 22
    R_CASH     = 23
    R_DSCR     = 24

    _title_row(ws, R_TITLE, "PROJECTED OPERATIONS & CASH FLOW", 2 + n)

    _write(ws, R_HDRS, 2, "Line Item", bold=True, fg=COLOR_SECTION_BG, border=True)
    for yr, year in enumerate(df["year"], start=1):
        _col_header(ws, R_HDRS, 2 + yr, str(int(year)), bg=COLOR_SECTION_BG)
        ws.cell(row=R_HDRS, column=2 + yr).font = _font(bold=True, color=COLOR_DARK_TEXT)

    _section_header(ws, R_DRV_HDR, 2, "DRIVERS  ← editable inputs", ncols=n + 1, bg=COLOR_NAVY_INPUT)
    _write(ws, R_BASE_REV, 2, "Base Revenue", fg=COLOR_INPUT_BG, border=True)
    _vcell(ws, R_BASE_REV, 3, params.base_revenue, bold=True, bg=COLOR_INPUT_BG)
    for label, r, value in [("Revenue Growth", R_GROWTH, params.growth),
                            ("COGS % Revenue", R_COGS_PCT, params.cogs_pct),
                            ("Opex % Revenue", R_OPEX_PCT, params.opex_pct)]:
        _write(ws, r, 2, label, fg=COLOR_INPUT_BG, border=True)
        for yr in range(1, n + 1):
            _vcell(ws, r, 2 + yr, value, bold=True, bg=COLOR_INPUT_BG, num_format=FMT_PCT)

    _section_header(ws, R_PL_HDR, 2, "PROJECTION  (formulas reference drivers above)",
                    ncols=n + 1)

    labels = {
        R_REVENUE: "Revenue", R_COGS: "COGS", R_OPEX: "Operating Costs",
        R_EBITDA: "EBITDA", R_DA: "D&A", R_EBIT: "EBIT", R_INTEREST: "Interest ‡",
        R_TAX: "Tax ‡", R_FCF: "Free Cash Flow (FCFF)", R_DS: "Debt Service",
        R_FCFE: "FCF to Equity", R_DEBT: "Ending Debt", R_CASH: "Cash Balance",
        R_DSCR: "DSCR",
    }
    bold_rows = {R_REVENUE, R_EBITDA, R_FCF, R_DSCR}
    for r, label in labels.items():
        bg = COLOR_ROW_ALT if r % 2 == 0 else COLOR_WHITE
        _write(ws, r, 2, label, bold=r in bold_rows, fg=bg, border=True)

    for yr in range(1, n + 1):
        c = _yc(yr)
        row = df.iloc[yr - 1]

        def put(r, value, fmt=FMT_MONEY):
            bg = COLOR_ROW_ALT if r % 2 == 0 else COLOR_WHITE
            _vcell(ws, r, 2 + yr, value, bold=r in bold_rows, bg=bg, num_format=fmt)

        if yr == 1:
            put(R_REVENUE, f"=$C${R_BASE_REV}")
        else:
            put(R_REVENUE, f"={_yc(yr - 1)}{R_REVENUE}*(1+{c}{R_GROWTH})")
        put(R_COGS,     f"={c}{R_REVENUE}*{c}{R_COGS_PCT}")
        put(R_OPEX,     f"={c}{R_REVENUE}*{c}{R_OPEX_PCT}")
        put(R_EBITDA,   f"={c}{R_REVENUE}-{c}{R_COGS}-{c}{R_OPEX}")
        put(R_DA,       float(row["depreciation"]))
        put(R_EBIT,     f"={c}{R_EBITDA}-{c}{R_DA}")
        put(R_INTEREST, float(row["interest"]))
        put(R_TAX,      float(row["tax"]))
        put(R_FCF,      float(row["fcf"]))
        put(R_DS,       float(row["debt_service"]))
        put(R_FCFE,     f"={c}{R_FCF}-{c}{R_DS}")
        put(R_DEBT,     float(row["ending_debt"]))
        put(R_CASH,     float(row["cash_balance"]))
        put(R_DSCR,     f'=IF({c}{R_DS}>0,{c}{R_EBITDA}/{c}{R_DS},"unlimited")', FMT_MULTIPLE)

    r = R_DSCR + 2
    ws.merge_cells(start_row=r, start_column=2, end_row=r, end_column=2 + n)
    cell = ws.cell(row=r, column=2,
                   value="‡ Interest and tax come from the debt engine; FCFF is "
                         "computed in the model with PP&E-based D&A and working capital.")
    cell.font = _font(size=8, italic=True, color="888888")


# ===========================================================================
# Sheet 4: Debt Schedule
# ===========================================================================

def _build_debt_schedule(wb, debt_sched: dict):
    ws = wb.create_sheet("Debt Schedule")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 12
    for col in "CDEFGH":
        ws.column_dimensions[col].width = 18

    _title_row(ws, 1, "DEBT SCHEDULE BY TRANCHE", 8)
    r = 3
    headers = ["Year", "Opening Balance", "Interest", "Principal", "Debt Service",
               "Closing Balance", "Rate"]
    for name, tdf in debt_sched["tranche_dfs"].items():
        _section_header(ws, r, 2, name.upper(), ncols=len(headers))
        r += 1
        for j, h in enumerate(headers):
            _col_header(ws, r, 2 + j, h)
        r += 1
        for i, (_, t) in enumerate(tdf.iterrows()):
            bg = COLOR_ROW_ALT if i % 2 else COLOR_WHITE
            _vcell(ws, r, 2, int(t["Year"]), bg=bg, num_format="0")
            _vcell(ws, r, 3, float(t["Opening Balance"]), bg=bg)
            _vcell(ws, r, 4, float(t["Interest"]), bg=bg)
            _vcell(ws, r, 5, float(t["Principal"]), bg=bg)
            _vcell(ws, r, 6, f"=D{r}+E{r}", bg=bg)
            _vcell(ws, r, 7, f"=C{r}-E{r}", bold=True, bg=bg)
            _vcell(ws, r, 8, t["Rate"], bg=bg, num_format="@")
            r += 1
        r += 1


# ===========================================================================
# Sheet 5: Credit Metrics & Covenants
# ===========================================================================

def _build_credit_metrics(wb, dashboard: dict, headroom: dict):
    credit_df = dashboard["credit_df"]
    n = len(credit_df)
    ws = wb.create_sheet("Credit Metrics")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 30
    for i in range(n):
        ws.column_dimensions[get_column_letter(3 + i)].width = 16

    _title_row(ws, 1, "CREDIT METRICS & COVENANT ANALYSIS", 2 + n)

    r = 3
    _section_header(ws, r, 2, "YEAR-BY-YEAR CREDIT METRICS", ncols=n + 1)
    r += 1
    _write(ws, r, 2, "Metric", bold=True, fg=COLOR_SECTION_BG, border=True)
    for j, year in enumerate(credit_df["Year"]):
        _col_header(ws, r, 3 + j, str(year), bg=COLOR_SECTION_BG)
        ws.cell(row=r, column=3 + j).font = _font(bold=True, color=COLOR_DARK_TEXT)
    r += 1

    PCT_METRICS  = {"EBITDA Margin"}
    MULT_METRICS = {"DSCR (x)", "ICR (x)", "Net Leverage (x)"}
    TEXT_METRICS = {"DSCR Breach", "ICR Breach", "Leverage Breach", "Implied Rating"}

    for i, col in enumerate([c for c in credit_df.columns if c != "Year"]):
        bg = COLOR_ROW_ALT if i % 2 else COLOR_WHITE
        _write(ws, r, 2, col, bold=col in MULT_METRICS, fg=bg, border=True)
        for j in range(n):
            val = credit_df.iloc[j][col]
            if col in TEXT_METRICS:
                cell = _vcell(ws, r, 3 + j, str(val), bg=bg, num_format="@")
                if "Breach" in col:
                    cell.font = _font(bold=True, color=COLOR_RED_DARK if val == "YES" else COLOR_GREEN)
            else:
                fmt = FMT_PCT if col in PCT_METRICS else FMT_MULTIPLE if col in MULT_METRICS else FMT_MONEY
                _vcell(ws, r, 3 + j, float(val), bg=bg, num_format=fmt)
        r += 1

    r += 1
    _section_header(ws, r, 2, "COVENANT HEADROOM  (negative = breach)", ncols=n + 1)
    r += 1
    for key in ("dscr", "icr", "leverage"):
        info = headroom[key]
        _write(ws, r, 2, f"{info['label']} (covenant {info['threshold']:.2f}x)",
               bold=True, fg=COLOR_SECTION_BG, border=True)
        for j, h in enumerate(info["table"]["headroom"]):
            _vcell(ws, r, 3 + j, float(h), bg=COLOR_SECTION_BG, num_format='+0.00"x";-0.00"x"')
        r += 1
        _write(ws, r, 2, info["status"], italic=True, border=False)
        r += 1


# ===========================================================================
# Sheet 6: Scenario Analysis
# ===========================================================================

def _build_scenarios(wb, params: ModelParams):
    comp_df = run_scenarios(params)["comparison_df"]
    ws = wb.create_sheet("Scenario Analysis")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 24
    for i in range(len(comp_df.index)):
        ws.column_dimensions[get_column_letter(3 + i)].width = 18

    _title_row(ws, 1, "STRESS SCENARIO COMPARISON", 2 + len(comp_df.index))
    r = 3
    _write(ws, r, 2, "Metric", bold=True, fg=COLOR_SECTION_BG, border=True)
    for j, name in enumerate(comp_df.index):
        _col_header(ws, r, 3 + j, name)
    r += 1

    PCT = {"IRR"}
    MULT = {"Min DSCR", "Avg DSCR", "Min ICR", "Max Net Leverage", "MOIC"}
    MONEY = {"Enterprise Value", "Equity Value"}
    for i, metric in enumerate(comp_df.columns):
        bg = COLOR_ROW_ALT if i % 2 else COLOR_WHITE
        _write(ws, r, 2, metric, fg=bg, border=True)
        for j, name in enumerate(comp_df.index):
            val = comp_df.loc[name, metric]
            fmt = (FMT_PCT if metric in PCT else FMT_MULTIPLE if metric in MULT
                   else FMT_MONEY if metric in MONEY else "@" if isinstance(val, str) else "0")
            _vcell(ws, r, 3 + j, val if isinstance(val, str) else float(val), bg=bg, num_format=fmt)
        r += 1


# ===========================================================================
# Sheet 7: Restructuring
# ===========================================================================

def _build_restructuring(wb, params: ModelParams, projection_df):
    ws = wb.create_sheet("Restructuring")
    ws.sheet_view.showGridLines = False
    ws.column_dimensions["A"].width = 3
    ws.column_dimensions["B"].width = 16
    for col in "CDEFGHIJK":
        ws.column_dimensions[col].width = 16

    _title_row(ws, 1, "RESTRUCTURING OPTIONS", 11)
    if params.total_debt <= 0:
        _write(ws, 3, 2, "No debt outstanding; restructuring not applicable", italic=True)
        return

    rs = restructure_deal(projection_df, RestructuringTerms.from_params(params), params.covenants)
    options_df = rs["options_df"].reset_index()

    r = 3
    for j, h in enumerate(options_df.columns):
        _col_header(ws, r, 2 + j, h)
    r += 1
    formats = {"Principal": FMT_MONEY, "Rate": "0.00%", "Tenor": "0", "Annual DS": FMT_MONEY,
               "Min DSCR": FMT_MULTIPLE, "Breach Years": "0", "Total Interest": FMT_MONEY,
               "Lender NPV (%)": "0.0"}
    for i, (_, o) in enumerate(options_df.iterrows()):
        bg = COLOR_ROW_ALT if i % 2 else COLOR_WHITE
        for j, col in enumerate(options_df.columns):
            val = o[col]
            _vcell(ws, r, 2 + j, val if isinstance(val, str) else float(val),
                   bg=bg, num_format=formats.get(col, "@"))
        r += 1

    rec = rs["recommendation"]
    if rec:
        r += 1
        _section_header(ws, r, 2, f"RECOMMENDATION: {rec['option'].name.upper()}", ncols=10)
        r += 1
        for line in rec["rationale"] + [""] + rec["conditions_precedent"] + [""] + rec["enhanced_monitoring"]:
            _write(ws, r, 2, line)
            r += 1


# ===========================================================================
# Master builder
# ===========================================================================

def build_excel_workbook(params: Optional[ModelParams] = None) -> bytes:
    """
    Build the complete credit analysis workbook and return it as bytes.

    Parameters
    ----------
    params : ModelParams (default: default_params())

    Returns
    -------
    bytes : pass directly to st.download_button or write to disk
    """
    params = params or default_params()
    result = build_projection(params)
    params = result["params"]
    df = result["projection_df"]
    dashboard = build_credit_dashboard(df, params.covenants)
    headroom = analyze_covenant_headroom(df, params.covenants)

    wb = Workbook()
    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]

    _build_cover(wb, params, result, dashboard)
    _build_assumptions_sheet(wb, params)
    _build_projection(wb, params, df)
    _build_debt_schedule(wb, result["debt_schedule"])
    _build_credit_metrics(wb, dashboard, headroom)
    _build_scenarios(wb, params)
    _build_restructuring(wb, params, df)

    wb.active = wb["Cover"]

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Workbook built: %d sheets", len(wb.sheetnames))
    return buf.getvalue()


# ---------------------------------------------------------------------------
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    data = build_excel_workbook()
    fname = "Credit_Analysis_Model.xlsx"
    with open(fname, "wb") as f:
        f.write(data)
    print(f"Saved: {fname}  ({len(data):,} bytes)")
