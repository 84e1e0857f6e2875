"""
app.py: Credit Analysis & Stress Testing
===========================================
Streamlit dashboard for a lender-side credit model: operating projection,
debt service, covenant testing, stress scenarios, restructuring options
and DCF valuation.

Tabs
----
  0  Projection  (P&L, FCF, cash)
  1  Debt  (tranche detail, amortization, balloon / refinancing)
  2  Credit Metrics  (DSCR, ICR, leverage, resilience score)
  3  Covenants  (headroom per covenant)
  4  Scenarios  (preset + custom stress tests)
  5  Restructuring  (diagnosis, options A-E, recommendation)
  6  Valuation  (DCF bridge + sensitivity tables)
  7  Monte Carlo Simulation
  8  Historical  (live / sample financials → derived assumptions)
"""

import logging

import numpy as np
import pandas as pd
import streamlit as st

# ---- Project modules ----
from data.fetch_financials import fetch_historical_years, historical_df
from model.params import CovenantThresholds, ModelParams, ModelValidationError
from model.historical import derive_assumptions
from model.debt_schedule import balloon_analysis
from model.projection import build_projection
from analysis.credit_metrics import build_credit_dashboard
from analysis.covenants import analyze_covenant_headroom
from analysis.debt_capacity import alternative_structures, calculate_debt_capacity
from analysis.scenarios import ShockDeltas, run_scenarios
from analysis.restructuring import (RestructuringTerms, restructure_deal,
                                    calculate_optimal_debt)
from analysis.sensitivity import wacc_vs_terminal_growth, rate_vs_tenor, growth_vs_cogs
from utils.formatting import (fmt_millions, fmt_pct, fmt_multiple, fmt_irr, fmt_moic,
                              format_projection_df, format_money_df,
                              style_sensitivity_table)
from utils.charts import (revenue_ebitda_projection,
                          coverage_chart,
                          covenant_headroom_chart,
                          debt_paydown_chart,
                          scenario_comparison_chart,
                          scenario_dscr_chart,
                          sensitivity_heatmap,
                          monte_carlo_dscr_histogram,
                          fcf_chart)

logging.basicConfig(level=logging.INFO,
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Page Config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Credit Analysis & Stress Testing",
    page_icon="🏦",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ---------------------------------------------------------------------------
# Custom CSS (dark theme)
# ---------------------------------------------------------------------------
st.markdown("""
<style>
    .main { background-color: #0E1117; }
    .stMetric { background-color: #1A1D23; border-radius: 8px; padding: 12px; }
    div[data-testid="stMetricValue"] { color: #C9A84C !important; font-weight: 700; }
    div[data-testid="stMetricLabel"] { color: #8A8D93 !important; }
    .section-header {
        color: #C9A84C; font-size: 1.1rem; font-weight: 700;
        border-bottom: 1px solid #2D3035; padding-bottom: 6px; margin: 16px 0 10px 0;
    }
    table { font-size: 0.82rem !important; }
    .stTabs [data-baseweb="tab"] { font-size: 0.85rem; color: #8A8D93; }
    .stTabs [aria-selected="true"] { color: #C9A84C !important; border-bottom: 2px solid #C9A84C; }
</style>
""", unsafe_allow_html=True)


def _section(title: str):
    st.markdown(f'<div class="section-header">{title}</div>', unsafe_allow_html=True)


# ---------------------------------------------------------------------------
# Sidebar: Borrower & Deal Inputs
# ---------------------------------------------------------------------------
st.sidebar.title("⚙️ Credit Inputs")
st.sidebar.caption("Adjust to rerun the full model instantly")

st.sidebar.markdown("### 🏢 Borrower")
ticker        = st.sidebar.text_input("Ticker (for historical data)", value="CAT")
use_live_data = st.sidebar.toggle("Fetch Live Financials (yfinance)", value=False,
                                  help="Pulls annual statements. Falls back to a sample borrower.")
seed_from_history = st.sidebar.toggle("Seed operations from history", value=False,
                                      help="Replace revenue, growth and margins with derived values.")

st.sidebar.markdown("### 📈 Operations")
base_revenue = st.sidebar.slider("Year 1 Revenue ($M)", 50, 2_000, 300, 10) * 1e6
growth       = st.sidebar.slider("Revenue Growth (%)", -15.0, 25.0, 10.0, 0.5) / 100
cogs_pct     = st.sidebar.slider("COGS % Revenue", 20.0, 90.0, 52.0, 0.5) / 100
opex_pct     = st.sidebar.slider("Opex % Revenue", 5.0, 40.0, 20.0, 0.5) / 100
capex_pct    = st.sidebar.slider("CapEx % Revenue", 0.0, 15.0, 4.0, 0.5) / 100
tax_rate     = st.sidebar.slider("Tax Rate (%)", 0.0, 40.0, 25.0, 1.0) / 100

st.sidebar.markdown("### 🏗️ Debt")
opening_debt  = st.sidebar.slider("Senior Facility ($M)", 0, 1_500, 120, 5) * 1e6
interest_rate = st.sidebar.slider("Interest Rate (%)", 1.0, 20.0, 12.0, 0.25) / 100
tenor         = st.sidebar.slider("Tenor (years)", 1, 15, 5, 1)
io_years      = st.sidebar.slider("Interest-Only Years", 0, 5, 1, 1)
amort_type    = st.sidebar.selectbox("Amortization", ["amortizing", "interest_only", "bullet"])
opening_cash  = st.sidebar.slider("Opening Cash ($M)", 0, 200, 0, 5) * 1e6

st.sidebar.markdown("### 💵 Valuation")
wacc       = st.sidebar.slider("WACC (%)", 4.0, 25.0, 16.0, 0.25) / 100
terminal_g = st.sidebar.slider("Terminal Growth (%)", 0.0, 6.0, 3.0, 0.25) / 100
equity     = st.sidebar.slider("Sponsor Equity ($M)", 0, 500, 50, 5) * 1e6
mid_year   = st.sidebar.toggle("Mid-Year Discounting", value=False,
                               help="Discount projected cash flows at year - 0.5.")

st.sidebar.markdown("### 📏 Covenants")
min_dscr_cov = st.sidebar.number_input("Min DSCR (x)", 0.5, 3.0, 1.20, 0.05)
min_icr_cov  = st.sidebar.number_input("Min ICR (x)", 0.5, 6.0, 2.00, 0.25)
max_lev_cov  = st.sidebar.number_input("Max Net Leverage (x)", 1.0, 10.0, 3.50, 0.25)

st.sidebar.markdown("---")
run_mc = st.sidebar.toggle("Run Monte Carlo", value=False,
                           help="Go to the Monte Carlo tab and click Run Simulation.")


# ---------------------------------------------------------------------------
# Cached model runs (primitive args so Streamlit can hash them)
# ---------------------------------------------------------------------------
@st.cache_data(show_spinner=False)
def _get_history(tkr: str, live: bool):
    return fetch_historical_years(tkr, use_live=live)


@st.cache_data(show_spinner=False)
def _build_params(rev, g, cogs, opex, capex, tax, debt, rate, ten, io, amort, cash,
                  w, tg, eq, mid, c_dscr, c_icr, c_lev, derived=None) -> ModelParams:
    """Construct ModelParams from sidebar values; derived assumptions override operations."""
    params = ModelParams(
        base_revenue=rev, growth=g, cogs_pct=cogs, opex_pct=opex, capex_pct=capex,
        tax_rate=tax, opening_debt=debt, interest_rate=rate, debt_tenor_years=ten,
        interest_only_years=min(io, ten - 1), amortization_type=amort, opening_cash=cash,
        wacc=w, terminal_growth=tg, equity_contribution=eq, mid_year_convention=mid,
        covenants=CovenantThresholds(min_dscr=c_dscr, target_icr=c_icr, max_leverage=c_lev),
    )
    return derived.apply_to(params) if derived is not None else params


@st.cache_data(show_spinner=False)
def _run_model_cached(params: ModelParams) -> dict:
    return build_projection(params)


@st.cache_data(show_spinner=False)
def _run_scenarios_cached(params: ModelParams, custom: ShockDeltas) -> dict:
    return run_scenarios(params, custom=custom)


@st.cache_data(show_spinner=False)
def _run_sensitivity(params: ModelParams):
    return (wacc_vs_terminal_growth(params),
            rate_vs_tenor(params),
            growth_vs_cogs(params))


@st.cache_data(show_spinner=False)
def _run_mc(run_id: int, n_sims: int, params: ModelParams):
    from analysis.monte_carlo import run_monte_carlo
    # run_id busts the cache on Re-run clicks; vary seed so paths differ each time
    return run_monte_carlo(n_sims=n_sims, seed=run_id * 137 + 42, base_params=params)


# ---------------------------------------------------------------------------
# Load data & run model
# ---------------------------------------------------------------------------
with st.spinner("Loading financials & running model…"):
    company, history = _get_history(ticker, use_live_data)
    derived = derive_assumptions(history)
    params = _build_params(base_revenue, growth, cogs_pct, opex_pct, capex_pct, tax_rate,
                           opening_debt, interest_rate, tenor, io_years, amort_type,
                           opening_cash, wacc, terminal_g, equity, mid_year,
                           min_dscr_cov, min_icr_cov, max_lev_cov,
                           derived if seed_from_history else None)
    try:
        result = _run_model_cached(params)
    except ModelValidationError as exc:
        st.error(f"❌ Invalid inputs: {exc}")
        st.stop()

params     = result["params"]
proj_df    = result["projection_df"]
debt_sched = result["debt_schedule"]
valuation  = result["valuation"]
stats      = result["credit_stats"]
breaches   = result["breaches"]
thresholds = params.covenants
dashboard  = build_credit_dashboard(proj_df, thresholds)
headroom   = analyze_covenant_headroom(proj_df, thresholds)

# ---------------------------------------------------------------------------
# Sidebar: Export (placed here so `params` is already validated)
# ---------------------------------------------------------------------------
st.sidebar.markdown("---")
st.sidebar.markdown("### 📥 Export")
if st.sidebar.button("Generate Excel Model", use_container_width=True,
                     help="Build a multi-sheet Excel workbook from current inputs"):
    with st.spinner("Building Excel workbook…"):
        from export_to_excel import build_excel_workbook
        xl_bytes = build_excel_workbook(params)
    st.sidebar.download_button(
        label="⬇️ Download .xlsx",
        data=xl_bytes,
        file_name="Credit_Analysis_Model.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        use_container_width=True,
    )


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------
st.markdown(f"""
<h1 style='color:#C9A84C; font-size:2rem; margin-bottom:4px;'>
🏦 Credit Analysis & Stress Testing
</h1>
<p style='color:#8A8D93; font-size:0.9rem; margin-top:0;'>
{company if seed_from_history else "Custom borrower"} &nbsp;|&nbsp;
{params.years}-year projection &nbsp;|&nbsp; Covenants: DSCR ≥ {thresholds.min_dscr:.2f}x,
ICR ≥ {thresholds.target_icr:.2f}x, Net Leverage ≤ {thresholds.max_leverage:.2f}x
</p>
""", unsafe_allow_html=True)

# KPI strip
res = dashboard["resilience"]
c1, c2, c3, c4, c5, c6 = st.columns(6)
c1.metric("Enterprise Value", fmt_millions(valuation["enterprise_value"]))
c2.metric("Equity Value",     fmt_millions(valuation["equity_value"]))
c3.metric("Min DSCR",         fmt_multiple(stats["min_dscr"]))
c4.metric("Max Net Leverage", fmt_multiple(stats["max_leverage"]))
c5.metric("Breaches",         f"{breaches['total']}")
c6.metric("Resilience",       f"{res['score']} ({res['rating']})")

st.markdown("---")

# ---------------------------------------------------------------------------
# Session state init
# ---------------------------------------------------------------------------
if "mc_run_id" not in st.session_state:
    st.session_state["mc_run_id"] = 0

# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------
tabs = st.tabs([
    "📊 Projection",
    "🏦 Debt",
    "📉 Credit",
    "📏 Covenants",
    "🎯 Scenarios",
    "🛠️ Restructuring",
    "💵 Valuation",
    "🎲 Monte Carlo",
    "🗂️ Historical",
])


# ============================================================
# TAB 0: Projection
# ============================================================
with tabs[0]:
    _section("Projected Operations & Cash Flow ($M)")
    st.plotly_chart(revenue_ebitda_projection(proj_df), use_container_width=True, key="chart_rev")
    st.dataframe(format_projection_df(proj_df), use_container_width=True)

    _section("Free Cash Flow")
    st.plotly_chart(fcf_chart(proj_df), use_container_width=True, key="chart_fcf")


# ============================================================
# TAB 1: Debt Schedule
# ============================================================
with tabs[1]:
    _section("Debt Paydown")
    if not debt_sched["tranche_dfs"]:
        st.info("No debt outstanding.")
    else:
        st.plotly_chart(debt_paydown_chart(debt_sched), use_container_width=True, key="chart_debt")

        st.markdown("**Consolidated Schedule**")
        st.dataframe(format_money_df(debt_sched["summary_df"], skip_cols={"Year"}),
                     use_container_width=True, hide_index=True)

        tranche_tabs = st.tabs(list(debt_sched["tranche_dfs"].keys()))
        for tab, (name, tdf) in zip(tranche_tabs, debt_sched["tranche_dfs"].items()):
            with tab:
                st.dataframe(format_money_df(tdf, skip_cols={"Year", "Rate"}),
                             use_container_width=True, hide_index=True)

    _section("Balloon & Refinancing Risk")
    balloon = balloon_analysis(params.balloon_amount, result["cash_at_maturity"])
    b1, b2, b3, b4 = st.columns(4)
    b1.metric("Balloon at Maturity", fmt_millions(balloon["balloon_amount"]))
    b2.metric("Cash at Maturity",    fmt_millions(balloon["cash_at_maturity"]))
    b3.metric("Coverage",            fmt_multiple(balloon["coverage"]))
    b4.metric("Refinancing Risk",    balloon["risk"] or "None")


# ============================================================
# TAB 2: Credit Metrics
# ============================================================
with tabs[2]:
    _section("Coverage & Leverage")
    st.plotly_chart(coverage_chart(proj_df, thresholds), use_container_width=True,
                    key="chart_coverage")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Min DSCR",  fmt_multiple(stats["min_dscr"]))
    c2.metric("Avg DSCR",  fmt_multiple(stats["avg_dscr"]))
    c3.metric("Min ICR",   fmt_multiple(stats["min_icr"]))
    c4.metric("Max Lev.",  fmt_multiple(stats["max_leverage"]))

    fmt_cr = dashboard["credit_df"].copy().astype(object)
    for col in ["Revenue", "EBITDA", "Debt Service", "Ending Debt", "Net Debt", "Free Cash Flow"]:
        fmt_cr[col] = dashboard["credit_df"][col].apply(fmt_millions)
    fmt_cr["EBITDA Margin"] = dashboard["credit_df"]["EBITDA Margin"].apply(fmt_pct)
    for col in ["DSCR (x)", "ICR (x)", "Net Leverage (x)"]:
        fmt_cr[col] = dashboard["credit_df"][col].apply(fmt_multiple)
    st.dataframe(fmt_cr, use_container_width=True, hide_index=True)

    _section("Credit Resilience Score")
    st.metric("Score", f"{res['score']} / 100", res["rating"])
    st.dataframe(pd.DataFrame([res["components"]]), use_container_width=True, hide_index=True)
    st.caption("*Components: DSCR (35), leverage (25), breaches (20), "
               "cash-flow volatility (10), interest coverage (10).*")


# ============================================================
# TAB 3: Covenants
# ============================================================
with tabs[3]:
    _section("Covenant Headroom")
    st.plotly_chart(covenant_headroom_chart(headroom["headroom_df"]), use_container_width=True,
                    key="chart_headroom")

    for key in ("dscr", "icr", "leverage"):
        info = headroom[key]
        st.markdown(f"**{info['label']}** (covenant {info['threshold']:.2f}x): {info['status']}")
        st.dataframe(info["table"], use_container_width=True, hide_index=True)


# ============================================================
# TAB 4: Scenarios
# ============================================================
with tabs[4]:
    _section("Custom Stress (added to presets)")
    s1, s2, s3, s4 = st.columns(4)
    custom = ShockDeltas(
        growth=s1.slider("Growth Δ (pts)", -15.0, 5.0, -5.0, 0.5, key="cs_g") / 100,
        cogs=s2.slider("COGS Δ (pts)", -5.0, 10.0, 2.0, 0.5, key="cs_c") / 100,
        rate=s3.slider("Rate Δ (bps)", -200, 500, 150, 25, key="cs_r") / 10_000,
        wacc=s4.slider("WACC Δ (bps)", -200, 500, 100, 25, key="cs_w") / 10_000,
    )

    with st.spinner("Running stress scenarios…"):
        try:
            scen = _run_scenarios_cached(params, custom)
        except ModelValidationError as exc:
            st.error(f"❌ Scenario failed: {exc}")
            st.stop()

    comp_df = scen["comparison_df"].copy().astype(object)
    for col in ["Min DSCR", "Avg DSCR", "Min ICR", "Max Net Leverage", "MOIC"]:
        comp_df[col] = scen["comparison_df"][col].apply(fmt_multiple)
    for col in ["Enterprise Value", "Equity Value"]:
        comp_df[col] = scen["comparison_df"][col].apply(fmt_millions)
    comp_df["IRR"] = scen["comparison_df"]["IRR"].apply(fmt_irr)
    st.dataframe(comp_df, use_container_width=True)

    st.plotly_chart(scenario_comparison_chart(scen["results"], thresholds),
                    use_container_width=True, key="chart_scen_compare")
    st.plotly_chart(scenario_dscr_chart(scen["results"], thresholds),
                    use_container_width=True, key="chart_scen_dscr")

    _section("Scenario Insights")
    for key, r in scen["results"].items():
        insight = r["insight"]
        with st.expander(f"{r['name']}  —  {insight['risk_level']}"):
            st.write(r["description"])
            st.write(f"**{insight['summary']}.** {insight['recommendation']}.")


# ============================================================
# TAB 5: Restructuring
# ============================================================
with tabs[5]:
    _section("Restructuring Advisor")
    if params.total_debt <= 0:
        st.info("No debt outstanding; restructuring not applicable.")
    else:
        target_dscr = st.number_input("Target Min DSCR (x)", 1.0, 3.0, 1.30, 0.05)
        terms = RestructuringTerms.from_params(params)
        rs = restructure_deal(proj_df, terms, thresholds, target_min_dscr=target_dscr)
        diag = rs["diagnosis"]

        if diag["has_breaches"]:
            st.error(f"❌ DSCR breaches in {len(diag['breach_years'])} year(s): "
                     + ", ".join(str(y) for y in diag["breach_years"]))
        else:
            st.success("✅ No DSCR breaches under current terms")
        for cause in diag["root_causes"]:
            st.write(f"- {cause}")
        st.dataframe(diag["timeline_df"], use_container_width=True, hide_index=True)

        opts = rs["options_df"].copy().astype(object)
        for col in ["Principal", "Annual DS", "Total Interest"]:
            opts[col] = rs["options_df"][col].apply(fmt_millions)
        opts["Rate"] = rs["options_df"]["Rate"].apply(lambda v: fmt_pct(v, 2))
        opts["Min DSCR"] = rs["options_df"]["Min DSCR"].apply(fmt_multiple)
        st.dataframe(opts, use_container_width=True)

        for opt in rs["options"]:
            with st.expander(opt.name):
                st.write(opt.structure)
                st.write(f"**Acceptance:** {opt.acceptance}")
                st.write(f"**Pros:** {opt.pros}")
                st.write(f"**Cons:** {opt.cons}")
                st.dataframe(opt.impacts_df, use_container_width=True, hide_index=True)

        rec = rs["recommendation"]
        if rec:
            _section(f"Recommendation: {rec['option'].name}")
            col_l, col_r = st.columns(2)
            with col_l:
                st.markdown("**Rationale**")
                for line in rec["rationale"]:
                    st.write(f"- {line}")
                st.markdown("**Conditions Precedent**")
                for line in rec["conditions_precedent"]:
                    st.write(f"- {line}")
            with col_r:
                st.markdown("**Enhanced Monitoring**")
                for line in rec["enhanced_monitoring"]:
                    st.write(f"- {line}")
                st.caption(rec["alternative"])

        _section("Optimal Debt Sizing")
        try:
            opt_debt = calculate_optimal_debt(proj_df, terms, target_dscr)
            o1, o2, o3 = st.columns(3)
            o1.metric("Optimal Debt", fmt_millions(opt_debt["optimal_debt"]))
            o2.metric("Current Debt", fmt_millions(opt_debt["current_debt"]))
            o3.metric("Headroom",     fmt_millions(opt_debt["headroom"]))
        except ModelValidationError as exc:
            st.warning(f"⚠️ {exc}")

    _section("Debt Capacity")
    capacity = calculate_debt_capacity(params, proj_df)
    k1, k2, k3, k4 = st.columns(4)
    k1.metric("Max Debt",      fmt_millions(capacity["max_debt"]))
    k2.metric("Safe Debt",     fmt_millions(capacity["safe_debt"]))
    k3.metric("Aggressive",    fmt_millions(capacity["aggressive_debt"]))
    k4.metric("Utilization",   fmt_pct(capacity["utilization_pct"] / 100))
    st.write(f"**{capacity['recommendation']}** (risk {capacity['risk_level']})")
    alts = alternative_structures(params, capacity).astype(object)
    for col in ["Debt", "Equity", "Annual DS"]:
        alts[col] = alts[col].apply(fmt_millions)
    for col in ["DSCR", "Leverage"]:
        alts[col] = alts[col].apply(fmt_multiple)
    st.dataframe(alts, use_container_width=True)


# ============================================================
# TAB 6: Valuation & Sensitivity
# ============================================================
with tabs[6]:
    _section("DCF Valuation")
    v1, v2, v3, v4 = st.columns(4)
    v1.metric("PV of FCFs",     fmt_millions(valuation["pv_of_projected_fcfs"]))
    v2.metric("PV of Terminal", fmt_millions(valuation["pv_of_terminal_value"]))
    v3.metric("TV % of EV",     fmt_pct(valuation["tv_share_of_ev"]))
    v4.metric("IRR / MOIC",     f"{fmt_irr(result['irr'])} / {fmt_moic(result['moic'])}")

    st.dataframe(format_money_df(valuation["breakdown_by_year"],
                                 skip_cols={"Year", "Period", "Discount Factor"}),
                 use_container_width=True, hide_index=True)

    for check in result["sanity_checks"]:
        show = st.error if check["severity"] == "critical" else st.warning
        show(f"**{check['title']}**: {check['message']}")

    st.info("Computing sensitivity tables — cached after first load.")
    with st.spinner("Building sensitivity tables…"):
        eq_df, rate_df, ops_df = _run_sensitivity(params)

    _section("Equity Value: WACC × Terminal Growth")
    st.caption("Rows = WACC | Columns = Terminal Growth | blank where WACC ≤ growth")
    st.dataframe(style_sensitivity_table(eq_df, is_dscr=False), use_container_width=True)

    _section("Min DSCR: Interest Rate × Tenor")
    st.plotly_chart(sensitivity_heatmap(rate_df, "Min DSCR by Rate and Tenor"),
                    use_container_width=True, key="chart_sens_rate")
    st.dataframe(style_sensitivity_table(rate_df, covenant=thresholds.min_dscr),
                 use_container_width=True)

    _section("Min DSCR: Revenue Growth × COGS")
    st.dataframe(style_sensitivity_table(ops_df, covenant=thresholds.min_dscr),
                 use_container_width=True)


# ============================================================
# TAB 7: Monte Carlo
# ============================================================
with tabs[7]:
    _section("Monte Carlo Simulation")

    if not run_mc:
        st.info("Enable 'Run Monte Carlo' in the sidebar, then click **Run Simulation** below.")
    else:
        col_n, col_btn, _ = st.columns([1, 1, 3])
        with col_n:
            n_sims_choice = st.selectbox(
                "Simulations",
                options=[500, 1_000, 2_000, 5_000],
                index=2,
                format_func=lambda x: f"{x:,}",
                key="mc_n_sims",
            )
        with col_btn:
            st.write("")  # vertical align
            run_clicked = st.button("▶ Run Simulation", type="primary")
            if run_clicked:
                st.session_state["mc_run_id"] += 1

        run_id = st.session_state["mc_run_id"]
        if run_id == 0 and not run_clicked:
            st.info("Select the number of simulations above, then click **Run Simulation**.")
        else:
            with st.spinner(f"Running {n_sims_choice:,} Monte Carlo simulations…"):
                mc = _run_mc(run_id, n_sims_choice, params)

            raw = mc["raw_df"]
            st.success(f"✅ {mc['n_valid_sims']:,} valid simulation paths completed")

            c1, c2, c3, c4 = st.columns(4)
            c1.metric("Median Min DSCR", fmt_multiple(raw["Min DSCR"].median()))
            c2.metric("P10 Min DSCR",    fmt_multiple(np.nanpercentile(raw["Min DSCR"], 10)))
            c3.metric("P(DSCR Breach)",  f"{(raw['DSCR Breaches'] > 0).mean():.1%}")
            c4.metric("Median Equity",   fmt_millions(raw["Equity Value"].median()))

            st.plotly_chart(monte_carlo_dscr_histogram(raw, thresholds),
                            use_container_width=True, key="chart_mc_hist")

            st.markdown("**Percentile Summary**")
            st.dataframe(mc["percentile_df"], use_container_width=True, hide_index=True)

            st.markdown("**Probability of Stress Events**")
            st.dataframe(mc["probability_df"], use_container_width=True, hide_index=True)

            st.caption("""
**Simulation Assumptions:**
- Revenue growth sampled from N(base, σ=3%)
- COGS % co-varies with growth (ρ = -0.5, σ=1.5pts)
- Interest rate shocked independently (σ=100bp), floored at 0.5%
- All other assumptions held at base case
""")


# ============================================================
# TAB 8: Historical
# ============================================================
with tabs[8]:
    _section(f"Historical Financials — {company}")
    hist = historical_df(history)
    fmt_hist = format_money_df(hist, skip_cols={"Year", "EBITDA Margin"})
    fmt_hist["EBITDA Margin"] = hist["EBITDA Margin"].apply(fmt_pct)
    st.dataframe(fmt_hist, use_container_width=True, hide_index=True)

    _section("Derived Assumptions")
    if derived is None:
        st.warning("⚠️ Fewer than two usable years; assumptions cannot be derived.")
    else:
        st.dataframe(pd.DataFrame({
            "Assumption": ["Base Revenue", "Revenue Growth", "COGS %", "Opex %",
                           "CapEx %", "NWC %", "Avg EBITDA Margin", "Avg Net Margin"],
            "Value": [fmt_millions(derived.base_revenue), fmt_pct(derived.growth),
                      fmt_pct(derived.cogs_pct), fmt_pct(derived.opex_pct),
                      fmt_pct(derived.capex_pct), fmt_pct(derived.wc_pct_of_rev),
                      fmt_pct(derived.avg_ebitda_margin), fmt_pct(derived.avg_net_margin)],
        }), use_container_width=True, hide_index=True)
        st.caption(f"Data quality: {derived.data_quality}")
        if not seed_from_history:
            st.caption("Toggle 'Seed operations from history' in the sidebar to apply these.")


# ---------------------------------------------------------------------------
# Footer
# ---------------------------------------------------------------------------
st.markdown("---")
st.markdown(
    f"<p style='text-align:center; color:#444; font-size:0.75rem;'>"
    f"Credit Model &nbsp;|&nbsp; Debt {fmt_millions(params.total_debt)} "
    f"@ {params.blended_rate:.2%} "
    f"| WACC {params.wacc:.2%} "
    f"| Min DSCR {fmt_multiple(stats['min_dscr'])} "
    f"| IRR {fmt_irr(result['irr'])} "
    f"| MOIC {fmt_moic(result['moic'])}"
    f"</p>",
    unsafe_allow_html=True,
)
