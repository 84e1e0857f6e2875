"""
charts.py
---------
Plotly chart builders for the credit analysis Streamlit dashboard.
All charts share a consistent institutional dark theme.
Monetary axes are shown in millions.
"""

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from model.params import CovenantThresholds

# ---------------------------------------------------------------------------
# Global design tokens
# ---------------------------------------------------------------------------
COLORS = {
    "primary":   "#C9A84C",   # Gold
    "secondary": "#4ECDC4",   # Teal
    "accent":    "#FF6B6B",   # Coral
    "green":     "#27AE60",
    "yellow":    "#F4C842",
    "red":       "#E74C3C",
    "bg":        "#0E1117",
    "panel":     "#161B22",
    "panel2":    "#1C2230",
    "grid":      "#252D3A",
    "text":      "#E8EAF0",
    "subtext":   "#8A9BB0",
    "border":    "#2D3748",
}

SCENARIO_COLORS = {
    "base":      "#C9A84C",
    "mild":      "#F4C842",
    "severe":    "#E74C3C",
    "costShock": "#FF6B6B",
    "rateHike":  "#8B5CF6",
    "custom":    "#4ECDC4",
}

TRANCHE_COLORS = ["#3B82F6", "#10B981", "#F59E0B", "#8B5CF6", "#EF4444"]

FONT = "Inter, -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif"

LAYOUT_BASE = dict(
    paper_bgcolor = COLORS["bg"],
    plot_bgcolor  = COLORS["panel"],
    font          = dict(family=FONT, size=12, color=COLORS["text"]),
    margin        = dict(l=60, r=40, t=60, b=50),
    hoverlabel    = dict(
        bgcolor    = COLORS["panel2"],
        bordercolor= COLORS["border"],
        font_size  = 12,
        font_color = COLORS["text"],
        font_family= FONT,
    ),
    legend = dict(
        bgcolor      = COLORS["panel2"],
        bordercolor  = COLORS["border"],
        borderwidth  = 1,
        font_size    = 11,
        orientation  = "h",
        yanchor      = "bottom",
        y            = 1.02,
        xanchor      = "right",
        x            = 1,
    ),
)

AXIS_STYLE = dict(
    gridcolor      = COLORS["grid"],
    gridwidth      = 1,
    zerolinecolor  = COLORS["border"],
    zerolinewidth  = 1,
    linecolor      = COLORS["border"],
    linewidth      = 1,
    showline       = True,
    tickfont       = dict(family=FONT, size=11, color=COLORS["subtext"]),
    title_font     = dict(family=FONT, size=12, color=COLORS["subtext"]),
)

TITLE_STYLE = dict(font=dict(family=FONT, size=15, color=COLORS["primary"]),
                   x=0, xanchor="left", pad=dict(l=0))


def _m(values) -> list[float]:
    return [v / 1e6 for v in values]


def _finite_or_none(values) -> list:
    """Plotly cannot draw inf; unlimited coverage is left as a gap."""
    return [v if np.isfinite(v) else None for v in values]


# ---------------------------------------------------------------------------
# Revenue & EBITDA Projection
# ---------------------------------------------------------------------------

def revenue_ebitda_projection(projection_df: pd.DataFrame) -> go.Figure:
    years   = projection_df["year"].astype(str).tolist()
    revenue = _m(projection_df["revenue"])
    ebitda  = _m(projection_df["ebitda"])
    margins = (projection_df["ebitda"] / projection_df["revenue"]).tolist()

    fig = make_subplots(specs=[[{"secondary_y": True}]])

    fig.add_trace(go.Bar(
        x=years, y=revenue, name="Revenue ($M)",
        marker=dict(color=COLORS["secondary"], opacity=0.45, line_width=0),
        hovertemplate="<b>%{x}</b><br>Revenue: $%{y:,.1f}M<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Bar(
        x=years, y=ebitda, name="EBITDA ($M)",
        marker=dict(color=COLORS["primary"], opacity=0.9, line_width=0),
        text=[f"${v:,.0f}" for v in ebitda],
        textposition="outside",
        textfont=dict(size=10, color=COLORS["primary"]),
        hovertemplate="<b>%{x}</b><br>EBITDA: $%{y:,.1f}M<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Scatter(
        x=years, y=margins, name="EBITDA Margin",
        mode="lines+markers+text",
        text=[f"{v:.1%}" for v in margins],
        textposition="top center",
        textfont=dict(size=10, color=COLORS["accent"]),
        line=dict(color=COLORS["accent"], width=2.5),
        marker=dict(size=9, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>EBITDA Margin: %{y:.1%}<extra></extra>",
    ), secondary_y=True)

    fig.update_layout(**LAYOUT_BASE, barmode="group", height=420,
                      title=dict(text="Projected Revenue & EBITDA", **TITLE_STYLE))
    fig.update_yaxes(title_text="Millions", secondary_y=False, **AXIS_STYLE)
    fig.update_yaxes(title_text="EBITDA Margin", tickformat=".1%",
                     secondary_y=True, showgrid=False,
                     tickfont=dict(size=11, color=COLORS["subtext"]))
    return fig


# ---------------------------------------------------------------------------
# Coverage & leverage vs covenants
# ---------------------------------------------------------------------------

def coverage_chart(projection_df: pd.DataFrame, thresholds: CovenantThresholds) -> go.Figure:
    years = projection_df["year"].astype(str).tolist()
    fig = make_subplots(specs=[[{"secondary_y": True}]])

    fig.add_trace(go.Scatter(
        x=years, y=_finite_or_none(projection_df["dscr"]),
        name="DSCR",
        mode="lines+markers",
        line=dict(color=COLORS["green"], width=2.5),
        marker=dict(size=9, symbol="diamond", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>DSCR: %{y:.2f}x<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Scatter(
        x=years, y=_finite_or_none(projection_df["icr"]),
        name="ICR",
        mode="lines+markers",
        line=dict(color=COLORS["secondary"], width=2, dash="dot"),
        marker=dict(size=7),
        hovertemplate="<b>%{x}</b><br>ICR: %{y:.2f}x<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Scatter(
        x=years, y=_finite_or_none(projection_df["leverage"]),
        name="Net Debt / EBITDA",
        mode="lines+markers",
        line=dict(color=COLORS["accent"], width=2.5),
        marker=dict(size=9, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>Net Leverage: %{y:.2f}x<extra></extra>",
    ), secondary_y=True)

    fig.add_hline(y=thresholds.min_dscr, line_dash="dash", line_color=COLORS["red"],
                  line_width=1, opacity=0.5,
                  annotation_text=f"Min DSCR {thresholds.min_dscr:.2f}x",
                  annotation_font_color=COLORS["red"],
                  annotation_font_size=10,
                  secondary_y=False)
    fig.add_hline(y=thresholds.max_leverage, line_dash="dot", line_color=COLORS["yellow"],
                  line_width=1, opacity=0.5,
                  annotation_text=f"Max Leverage {thresholds.max_leverage:.1f}x",
                  annotation_font_color=COLORS["yellow"],
                  annotation_font_size=10,
                  annotation_position="bottom right",
                  secondary_y=True)

    fig.update_layout(**LAYOUT_BASE, height=440,
                      title=dict(text="Credit Metrics vs Covenants", **TITLE_STYLE))
    fig.update_yaxes(title_text="Coverage (x)", secondary_y=False, **AXIS_STYLE)
    fig.update_yaxes(title_text="Net Leverage (x)", secondary_y=True,
                     showgrid=False,
                     tickfont=dict(size=11, color=COLORS["subtext"]))
    return fig


def covenant_headroom_chart(headroom_df: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for i, col in enumerate(headroom_df.columns):
        values = _finite_or_none(headroom_df[col])
        fig.add_trace(go.Bar(
            name=col,
            x=headroom_df.index.astype(str),
            y=values,
            marker=dict(color=TRANCHE_COLORS[i % len(TRANCHE_COLORS)], line_width=0, opacity=0.88),
            hovertemplate=f"<b>{col}</b><br>%{{x}}: %{{y:+.2f}}x<extra></extra>",
        ))
    fig.add_hline(y=0, line_color=COLORS["red"], line_width=1.5)
    fig.update_layout(**LAYOUT_BASE, barmode="group", height=400,
                      title=dict(text="Covenant Headroom (negative = breach)", **TITLE_STYLE))
    fig.update_xaxes(**AXIS_STYLE)
    fig.update_yaxes(title_text="Headroom (x)", **AXIS_STYLE)
    return fig


# ---------------------------------------------------------------------------
# Debt paydown (stacked bar)
# ---------------------------------------------------------------------------

def debt_paydown_chart(debt_schedule: dict) -> go.Figure:
    fig = go.Figure()
    for i, (name, df) in enumerate(debt_schedule["tranche_dfs"].items()):
        color = TRANCHE_COLORS[i % len(TRANCHE_COLORS)]
        fig.add_trace(go.Bar(
            name=name,
            x=df["Year"].astype(str),
            y=_m(df["Closing Balance"]),
            marker=dict(color=color, line_width=0, opacity=0.88),
            hovertemplate=f"<b>{name}</b><br>Year %{{x}}: $%{{y:,.1f}}M<extra></extra>",
        ))

    summary = debt_schedule["summary_df"]
    if not summary.empty:
        fig.add_trace(go.Scatter(
            name="Debt Service",
            x=summary["Year"].astype(str),
            y=_m(summary["Debt Service"]),
            mode="lines+markers",
            line=dict(color=COLORS["primary"], width=2.5),
            hovertemplate="<b>Year %{x}</b><br>Debt Service: $%{y:,.1f}M<extra></extra>",
        ))

    fig.update_layout(**LAYOUT_BASE, barmode="stack", height=420,
                      title=dict(text="Debt Paydown by Tranche", **TITLE_STYLE))
    fig.update_xaxes(title_text="Projection Year", **AXIS_STYLE)
    fig.update_yaxes(title_text="Balance ($M)", **AXIS_STYLE, tickformat="$,.0f")
    return fig


# ---------------------------------------------------------------------------
# Scenario comparison
# ---------------------------------------------------------------------------

def scenario_comparison_chart(results: dict, thresholds: CovenantThresholds) -> go.Figure:
    keys   = list(results.keys())
    names  = [results[k]["name"] for k in keys]
    dscrs  = [results[k]["credit_stats"]["min_dscr"] for k in keys]
    equity = _m([results[k]["equity_value"] for k in keys])
    colors = [SCENARIO_COLORS.get(k, COLORS["primary"]) for k in keys]

    fig = make_subplots(
        rows=1, cols=2,
        subplot_titles=["Minimum DSCR by Scenario", "Equity Value by Scenario ($M)"],
        horizontal_spacing=0.12,
    )

    fig.add_trace(go.Bar(
        x=names, y=_finite_or_none(dscrs),
        marker=dict(color=colors, line_width=0, opacity=0.9),
        text=[f"{v:.2f}x" if np.isfinite(v) else "N/A" for v in dscrs],
        textposition="outside",
        textfont=dict(size=12, family=FONT, color=COLORS["text"]),
        hovertemplate="<b>%{x}</b><br>Min DSCR: %{text}<extra></extra>",
        name="Min DSCR",
    ), row=1, col=1)

    fig.add_trace(go.Bar(
        x=names, y=equity,
        marker=dict(color=colors, line_width=0, opacity=0.9),
        text=[f"${v:,.0f}M" for v in equity],
        textposition="outside",
        textfont=dict(size=12, family=FONT, color=COLORS["text"]),
        hovertemplate="<b>%{x}</b><br>Equity: %{text}<extra></extra>",
        name="Equity Value",
    ), row=1, col=2)

    fig.add_hline(y=thresholds.min_dscr, line_dash="dash", line_color=COLORS["yellow"],
                  line_width=1, opacity=0.6,
                  annotation_text=f"{thresholds.min_dscr:.2f}x Covenant",
                  annotation_font_color=COLORS["yellow"],
                  annotation_font_size=10,
                  row=1, col=1)

    fig.update_layout(
        **LAYOUT_BASE, height=420, showlegend=False,
        title=dict(text="Stress Scenarios: Coverage & Value", **TITLE_STYLE),
    )
    for style_dict in [{"row": 1, "col": 1}, {"row": 1, "col": 2}]:
        fig.update_xaxes(**AXIS_STYLE, **style_dict)
        fig.update_yaxes(**AXIS_STYLE, **style_dict)
    for ann in fig.layout.annotations:
        ann.font.color = COLORS["subtext"]
        ann.font.size  = 12
    return fig


def scenario_dscr_chart(results: dict, thresholds: CovenantThresholds) -> go.Figure:
    fig = go.Figure()
    for key, res in results.items():
        df = res["projection_df"]
        color = SCENARIO_COLORS.get(key, COLORS["primary"])
        fig.add_trace(go.Scatter(
            x=df["year"].astype(str), y=_finite_or_none(df["dscr"]), name=res["name"],
            mode="lines+markers",
            line=dict(color=color, width=2.5 if key == "base" else 2.0,
                      dash="solid" if key == "base" else "dot"),
            marker=dict(size=8, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
            hovertemplate=f"<b>{res['name']}: %{{x}}</b><br>DSCR: %{{y:.2f}}x<extra></extra>",
        ))

    fig.add_hline(y=thresholds.min_dscr, line_dash="dash", line_color=COLORS["red"],
                  line_width=1, opacity=0.6,
                  annotation_text="DSCR Covenant",
                  annotation_font_color=COLORS["red"],
                  annotation_font_size=10)
    fig.update_layout(
        **LAYOUT_BASE, height=400,
        title=dict(text="DSCR Trajectory by Scenario", **TITLE_STYLE),
    )
    fig.update_yaxes(title_text="DSCR (x)", **AXIS_STYLE)
    fig.update_xaxes(**AXIS_STYLE)
    return fig


# ---------------------------------------------------------------------------
# Sensitivity heatmap
# ---------------------------------------------------------------------------

def sensitivity_heatmap(df: pd.DataFrame, title: str, value_format: str = ".2f") -> go.Figure:
    z = df.apply(pd.to_numeric, errors="coerce").astype(float).values
    fig = go.Figure(go.Heatmap(
        z=z,
        x=[str(c) for c in df.columns],
        y=[str(i) for i in df.index],
        colorscale="RdYlGn",
        texttemplate=f"%{{z:{value_format}}}",
        hovertemplate="%{y} / %{x}: %{z:" + value_format + "}<extra></extra>",
        colorbar=dict(tickfont=dict(size=10, color=COLORS["subtext"])),
    ))
    fig.update_layout(**LAYOUT_BASE, height=420, title=dict(text=title, **TITLE_STYLE))
    fig.update_xaxes(title_text=df.columns.name or "", **AXIS_STYLE)
    fig.update_yaxes(title_text=df.index.name or "", **AXIS_STYLE)
    return fig


# ---------------------------------------------------------------------------
# Monte Carlo: min DSCR histogram
# ---------------------------------------------------------------------------

def monte_carlo_dscr_histogram(raw_df: pd.DataFrame, thresholds: CovenantThresholds) -> go.Figure:
    vals = raw_df["Min DSCR"].replace([np.inf, -np.inf], np.nan).dropna()
    fig = go.Figure()
    fig.add_trace(go.Histogram(
        x=vals, nbinsx=60,
        marker=dict(color=COLORS["secondary"], opacity=0.7, line_width=0),
        name="Simulated Min DSCR",
        histnorm="probability density",
        hovertemplate="Min DSCR bin: %{x:.2f}x<br>Density: %{y:.4f}<extra></extra>",
    ))

    if len(vals):
        p10, p50, p90 = np.percentile(vals, [10, 50, 90])
        markers = [
            (p10, COLORS["red"],     f"P10: {p10:.2f}x",    "top left"),
            (p50, COLORS["primary"], f"Median: {p50:.2f}x", "top right"),
            (p90, COLORS["green"],   f"P90: {p90:.2f}x",    "top right"),
        ]
    else:
        markers = []
    markers.append((thresholds.min_dscr, COLORS["yellow"], "Covenant", "bottom right"))

    for val, color, label, pos in markers:
        fig.add_vline(
            x=val, line_dash="dash", line_color=color, line_width=1.5,
            annotation_text=label,
            annotation_font_color=color,
            annotation_font_size=10,
            annotation_position=pos,
        )

    fig.update_layout(
        **LAYOUT_BASE, height=420, showlegend=False,
        title=dict(text=f"Minimum DSCR Distribution  ({len(vals):,} Simulations)", **TITLE_STYLE),
    )
    fig.update_xaxes(title_text="Min DSCR (x)", **AXIS_STYLE)
    fig.update_yaxes(title_text="Probability Density", **AXIS_STYLE)
    return fig


# ---------------------------------------------------------------------------
# Free Cash Flow Summary
# ---------------------------------------------------------------------------

def fcf_chart(projection_df: pd.DataFrame) -> go.Figure:
    years = projection_df["year"].astype(str).tolist()
    fcf   = _m(projection_df["fcf"])
    ds    = _m(projection_df["debt_service"])
    fcfe  = _m(projection_df["fcf_to_equity"])

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=years, y=fcf, name="Free Cash Flow",
        marker=dict(color=COLORS["green"], opacity=0.75, line_width=0),
        hovertemplate="<b>%{x}</b><br>FCF: $%{y:,.1f}M<extra></extra>",
    ))
    fig.add_trace(go.Bar(
        x=years, y=[-v for v in ds], name="Debt Service",
        marker=dict(color=COLORS["red"], opacity=0.75, line_width=0),
        hovertemplate="<b>%{x}</b><br>Debt Service: $%{y:,.1f}M<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        x=years, y=fcfe, name="FCF to Equity",
        mode="lines+markers+text",
        text=[f"${v:,.0f}" for v in fcfe],
        textposition="top center",
        textfont=dict(size=10, color=COLORS["primary"]),
        line=dict(color=COLORS["primary"], width=2.5),
        marker=dict(size=9, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>FCFE: $%{y:,.1f}M<extra></extra>",
    ))

    fig.update_layout(
        **LAYOUT_BASE, barmode="relative", height=420,
        title=dict(text="Free Cash Flow after Debt Service", **TITLE_STYLE),
    )
    fig.update_yaxes(title_text="$M", tickformat="$,.0f", **AXIS_STYLE)
    fig.update_xaxes(**AXIS_STYLE)
    return fig
