"""
charts.py
---------
Plotly chart builders for the credit model Streamlit dashboard.
All charts share a consistent institutional dark theme.
"""

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from dealroom_credit.analysis.scenarios import ScenarioComparison
from dealroom_credit.analysis.stress import StressTestResult
from dealroom_credit.model.projection import ProjectionResult

# ---------------------------------------------------------------------------
# Global design tokens
# ---------------------------------------------------------------------------
COLORS = {
    "primary":   "#C9A84C",   # Gold
    "secondary": "#4ECDC4",   # Teal
    "accent":    "#FF6B6B",   # Coral
    "green":     "#27AE60",
    "yellow":    "#F4C842",
    "orange":    "#E67E22",
    "red":       "#E74C3C",
    "bg":        "#0E1117",
    "panel":     "#161B22",
    "panel2":    "#1C2230",
    "grid":      "#252D3A",
    "text":      "#E8EAF0",
    "subtext":   "#8A9BB0",
    "border":    "#2D3748",
}

SCENARIO_COLORS = {"Downside": COLORS["red"], "Base": COLORS["primary"], "Upside": COLORS["green"]}

RISK_COLORS = {
    "low":      COLORS["green"],
    "medium":   COLORS["yellow"],
    "high":     COLORS["orange"],
    "critical": COLORS["red"],
}

TRANCHE_COLORS = [
    "#3B82F6",  # Blue    – Senior
    "#10B981",  # Emerald – Second Lien
    "#F59E0B",  # Amber   – Subordinated
    "#8B5CF6",  # Violet  – Incremental
    "#EF4444",
]

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


def _base(fig: go.Figure, title: str, height: int = 420, **layout) -> go.Figure:
    """Apply shared layout to a figure."""
    fig.update_layout(
        **LAYOUT_BASE,
        title=dict(text=title, **TITLE_STYLE),
        height=height,
        **layout,
    )
    fig.update_xaxes(**AXIS_STYLE)
    fig.update_yaxes(**AXIS_STYLE)
    return fig


def _covenant_line(fig: go.Figure, level: float, label: str, **kwargs) -> None:
    fig.add_hline(y=level, line_dash="dash", line_color=COLORS["red"],
                  line_width=1, opacity=0.6,
                  annotation_text=label,
                  annotation_font_color=COLORS["red"],
                  annotation_font_size=10,
                  **kwargs)


def _periods(result: ProjectionResult) -> list[str]:
    return [r.calendar_label or r.label for r in result.rows]


# ---------------------------------------------------------------------------
# Operating projection
# ---------------------------------------------------------------------------

def revenue_ebitda_chart(result: ProjectionResult) -> go.Figure:
    periods = _periods(result)
    revenue = [r.revenue for r in result.rows]
    ebitda  = [r.adj_ebitda for r in result.rows]
    margins = [r.ebitda_margin for r in result.rows]

    fig = make_subplots(specs=[[{"secondary_y": True}]])

    fig.add_trace(go.Bar(
        x=periods, y=revenue, name="Revenue ($M)",
        marker=dict(color=COLORS["secondary"], opacity=0.45, line_width=0),
        hovertemplate="<b>%{x}</b><br>Revenue: $%{y:,.0f}M<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Bar(
        x=periods, y=ebitda, name="Adj. EBITDA ($M)",
        marker=dict(color=COLORS["primary"], opacity=0.9, line_width=0),
        text=[f"${v:,.0f}" for v in ebitda],
        textposition="outside",
        textfont=dict(size=10, color=COLORS["primary"]),
        hovertemplate="<b>%{x}</b><br>Adj. EBITDA: $%{y:,.0f}M<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Scatter(
        x=periods, y=margins, name="EBITDA Margin",
        mode="lines+markers",
        line=dict(color=COLORS["accent"], width=2.5),
        marker=dict(size=9, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>EBITDA Margin: %{y:.1f}%<extra></extra>",
    ), secondary_y=True)

    fig.update_layout(**LAYOUT_BASE, barmode="group", height=420,
                      title=dict(text="Revenue & Adj. EBITDA", **TITLE_STYLE))
    fig.update_xaxes(**AXIS_STYLE)
    fig.update_yaxes(title_text="USD Millions", secondary_y=False, **AXIS_STYLE)
    fig.update_yaxes(title_text="EBITDA Margin (%)", secondary_y=True, showgrid=False,
                     tickfont=dict(size=11, color=COLORS["subtext"]))
    return fig


# ---------------------------------------------------------------------------
# Debt Waterfall (stacked bar)
# ---------------------------------------------------------------------------

def debt_waterfall_chart(waterfall_df: pd.DataFrame) -> go.Figure:
    fig = go.Figure()
    for i, tranche in enumerate(waterfall_df.columns):
        fig.add_trace(go.Bar(
            name=tranche,
            x=list(waterfall_df.index),
            y=waterfall_df[tranche],
            marker=dict(color=TRANCHE_COLORS[i % len(TRANCHE_COLORS)], line_width=0, opacity=0.88),
            hovertemplate=f"<b>{tranche}</b><br>%{{x}}: $%{{y:,.1f}}M<extra></extra>",
        ))

    _base(fig, "Debt Paydown by Tranche", barmode="stack")
    fig.update_yaxes(title_text="Debt Balance ($M)", tickformat="$,.0f")
    return fig


# ---------------------------------------------------------------------------
# Leverage & Coverage
# ---------------------------------------------------------------------------

def leverage_coverage_chart(result: ProjectionResult, max_leverage: float) -> go.Figure:
    forward = result.forward_rows
    years   = [r.calendar_label or r.label for r in forward]

    fig = make_subplots(specs=[[{"secondary_y": True}]])

    fig.add_trace(go.Scatter(
        x=years, y=[r.leverage_ratio for r in forward],
        name="Leverage",
        mode="lines+markers",
        line=dict(color=COLORS["accent"], width=2.5),
        marker=dict(size=9, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>Leverage: %{y:.2f}x<extra></extra>",
    ), secondary_y=False)

    fig.add_trace(go.Scatter(
        x=years, y=[r.dscr for r in forward],
        name="DSCR",
        mode="lines+markers",
        line=dict(color=COLORS["yellow"], width=2, dash="dot"),
        marker=dict(size=7),
        hovertemplate="<b>%{x}</b><br>DSCR: %{y:.2f}x<extra></extra>",
    ), secondary_y=True)

    fig.add_trace(go.Scatter(
        x=years, y=[r.interest_coverage for r in forward],
        name="Interest Coverage",
        mode="lines+markers",
        line=dict(color=COLORS["green"], width=2.5),
        marker=dict(size=9, symbol="diamond", line=dict(width=2, color=COLORS["bg"])),
        hovertemplate="<b>%{x}</b><br>Coverage: %{y:.2f}x<extra></extra>",
    ), secondary_y=True)

    _covenant_line(fig, max_leverage, f"Max Leverage {max_leverage:.2f}x", secondary_y=False)

    fig.update_layout(**LAYOUT_BASE, height=440,
                      title=dict(text="Leverage & Coverage Trajectory", **TITLE_STYLE))
    fig.update_xaxes(**AXIS_STYLE)
    fig.update_yaxes(title_text="Leverage (x)", secondary_y=False, **AXIS_STYLE)
    fig.update_yaxes(title_text="Coverage (x)", secondary_y=True, showgrid=False,
                     tickfont=dict(size=11, color=COLORS["subtext"]))
    return fig


# ---------------------------------------------------------------------------
# Sensitivity tornado
# ---------------------------------------------------------------------------

def tornado_chart(tornado: pd.DataFrame, metric_label: str) -> go.Figure:
    # Widest bar on top
    df = tornado.iloc[::-1]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        y=df["Variable"], x=df["Low Impact"], orientation="h",
        name="Low case",
        marker=dict(color=COLORS["red"], opacity=0.85, line_width=0),
        customdata=df["Low Value"],
        hovertemplate="<b>%{y}</b> at %{customdata:.2f}<br>Impact: %{x:+.2f}<extra></extra>",
    ))
    fig.add_trace(go.Bar(
        y=df["Variable"], x=df["High Impact"], orientation="h",
        name="High case",
        marker=dict(color=COLORS["green"], opacity=0.85, line_width=0),
        customdata=df["High Value"],
        hovertemplate="<b>%{y}</b> at %{customdata:.2f}<br>Impact: %{x:+.2f}<extra></extra>",
    ))
    fig.add_vline(x=0, line_color=COLORS["subtext"], line_width=1)

    _base(fig, f"Sensitivity — {metric_label}", height=360, barmode="overlay")
    fig.update_xaxes(title_text=f"Change in {metric_label}")
    return fig


# ---------------------------------------------------------------------------
# Stress testing
# ---------------------------------------------------------------------------

def stress_leverage_chart(results: list[StressTestResult], max_leverage: float,
                          base: ProjectionResult | None = None) -> go.Figure:
    fig = go.Figure()

    if base is not None:
        fig.add_trace(go.Scatter(
            x=_periods(base), y=[r.leverage_ratio for r in base.rows],
            name="Base", mode="lines",
            line=dict(color=COLORS["primary"], width=3),
            hovertemplate="<b>Base — %{x}</b><br>Leverage: %{y:.2f}x<extra></extra>",
        ))

    for res in results:
        proj = res.projection
        fig.add_trace(go.Scatter(
            x=_periods(proj), y=[r.leverage_ratio for r in proj.rows],
            name=res.scenario.name,
            mode="lines+markers",
            line=dict(color=RISK_COLORS.get(res.risk_level, COLORS["secondary"]), width=2, dash="dot"),
            marker=dict(size=7),
            hovertemplate=f"<b>{res.scenario.name} — %{{x}}</b><br>Leverage: %{{y:.2f}}x<extra></extra>",
        ))

    _covenant_line(fig, max_leverage, f"Covenant {max_leverage:.2f}x")
    _base(fig, "Leverage Under Stress")
    fig.update_yaxes(title_text="Leverage (x)")
    return fig


# ---------------------------------------------------------------------------
# Scenario Comparison
# ---------------------------------------------------------------------------

def scenario_leverage_chart(comparison: ScenarioComparison) -> go.Figure:
    df = comparison.leverage_df
    fig = go.Figure()
    for name in comparison.results:
        color = SCENARIO_COLORS.get(name, COLORS["secondary"])
        fig.add_trace(go.Scatter(
            x=list(df.index), y=df[name], name=name,
            mode="lines+markers",
            line=dict(color=color, width=2.5 if name == "Base" else 2.0,
                      dash="solid" if name == "Base" else "dot"),
            marker=dict(size=8, symbol="circle", line=dict(width=2, color=COLORS["bg"])),
            hovertemplate=f"<b>{name} — %{{x}}</b><br>Leverage: %{{y:.2f}}x<extra></extra>",
        ))

    _covenant_line(fig, comparison.covenant_threshold,
                   f"Covenant {comparison.covenant_threshold:.2f}x")
    _base(fig, "Leverage by Scenario", height=400)
    fig.update_yaxes(title_text="Leverage (x)")
    return fig


def scenario_summary_chart(comparison: ScenarioComparison) -> go.Figure:
    df = comparison.comparison_df
    names = list(df.index)
    bar_colors = [SCENARIO_COLORS.get(n, COLORS["secondary"]) for n in names]

    fig = make_subplots(
        rows=1, cols=2,
        subplot_titles=["Exit Leverage", "Debt Paydown %"],
        horizontal_spacing=0.12,
    )
    fig.add_trace(go.Bar(
        x=names, y=df["Exit Leverage (x)"],
        marker=dict(color=bar_colors, line_width=0, opacity=0.9),
        text=[f"{v:.2f}x" for v in df["Exit Leverage (x)"]],
        textposition="outside",
        name="Exit Leverage",
    ), row=1, col=1)
    fig.add_trace(go.Bar(
        x=names, y=df["Paydown %"],
        marker=dict(color=bar_colors, line_width=0, opacity=0.9),
        text=[f"{v:.1f}%" for v in df["Paydown %"]],
        textposition="outside",
        name="Paydown %",
    ), row=1, col=2)

    _base(fig, "Scenario Summary", height=400, showlegend=False)
    for ann in fig.layout.annotations:
        ann.font.color = COLORS["subtext"]
        ann.font.size  = 12
    return fig


# ---------------------------------------------------------------------------
# Lender cash flows
# ---------------------------------------------------------------------------

def lender_cash_flow_chart(cash_flows: pd.DataFrame) -> go.Figure:
    years = [f"Year {y}" for y in cash_flows.index]
    scale = 1e6 if cash_flows["Total Cash"].max() >= 1e6 else 1.0
    unit  = "$M" if scale > 1 else "$"

    fig = go.Figure()
    for col, color in [("Interest", COLORS["secondary"]),
                       ("Amortization", COLORS["primary"]),
                       ("Prepayment", COLORS["green"]),
                       ("Premium", COLORS["accent"])]:
        fig.add_trace(go.Bar(
            x=years, y=cash_flows[col] / scale, name=col,
            marker=dict(color=color, opacity=0.85, line_width=0),
            hovertemplate=f"<b>%{{x}}</b><br>{col}: %{{y:,.2f}} {unit}<extra></extra>",
        ))

    _base(fig, "Lender Cash Flows", height=400, barmode="stack")
    fig.update_yaxes(title_text=unit)
    return fig
