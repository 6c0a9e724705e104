import plotly.graph_objects as go
import plotly.express as px
from plotly.subplots import make_subplots
import numpy as np
import pandas as pd
import textwrap

from .config import ID_COLUMN, ION_COLUMN, NOISE_LABEL, TARGET
from .data import ion_groups, numeric_columns
from .features import add_ion_names, filter_outlier_values, ion_full_name


# --- Visualization Style Constants ---
PLOTLY_TEMPLATE = "plotly_white"
FONT_FAMILY = "Segoe UI, Arial, sans-serif"
FONT_SIZE = 14
TITLE_SIZE = 20
AXIS_TITLE_SIZE = 16
TICK_SIZE = 13
LEGEND_SIZE = 13
COLOR_SEQ = px.colors.qualitative.Safe
NOISE_COLOR = "#b0b0b0"
HIST_COLORS = ["#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd", "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf"]


# --- Consistent Layout Function for Plotly ---
def _apply_common_layout(fig, title):
    fig.update_layout(
        title_text=title,
        title_x=0.5,
        title_font=dict(family=FONT_FAMILY, size=TITLE_SIZE, color="#222"),
        template=PLOTLY_TEMPLATE,
        font=dict(family=FONT_FAMILY, size=FONT_SIZE, color="#222"),
        margin=dict(t=60, l=60, r=40, b=50),
        autosize=True,
        legend=dict(
            font=dict(size=LEGEND_SIZE),
            bgcolor="rgba(255,255,255,0.8)",
            bordercolor="#DDD",
            borderwidth=1
        ),
        plot_bgcolor="#fff",
        paper_bgcolor="#fff"
    )
    fig.update_xaxes(
        title_font=dict(size=AXIS_TITLE_SIZE, family=FONT_FAMILY, color="#222"),
        tickfont=dict(size=TICK_SIZE, family=FONT_FAMILY, color="#222"),
        showgrid=True, gridwidth=0.5, gridcolor="#e5e5e5"
    )
    fig.update_yaxes(
        title_font=dict(size=AXIS_TITLE_SIZE, family=FONT_FAMILY, color="#222"),
        tickfont=dict(size=TICK_SIZE, family=FONT_FAMILY, color="#222"),
        showgrid=True, gridwidth=0.5, gridcolor="#e5e5e5"
    )
    return fig


def _ion_label(ion, name):
    return f"{name} ({ion})" if name != ion else str(ion)


# === Distributions ===

def plot_numeric_histograms(df, bins=30):
    """Grid of histograms, one per numeric column."""
    numeric_cols = numeric_columns(df) or df.select_dtypes(include=[np.number]).columns.tolist()
    n_cols = len(numeric_cols)
    if n_cols == 0:
        return _apply_common_layout(go.Figure(), "No numeric columns to display")
    ncols = min(4, n_cols)
    nrows = (n_cols + ncols - 1) // ncols

    wrapped_titles = ['<span style="font-size:11px">' + '<br>'.join(textwrap.wrap(title, width=20)) + '</span>' for title in numeric_cols]
    fig = make_subplots(rows=nrows, cols=ncols, subplot_titles=wrapped_titles)

    for i, col in enumerate(numeric_cols):
        row, col_idx = divmod(i, ncols)
        fig.add_trace(
            go.Histogram(
                x=df[col].dropna(), nbinsx=bins, name=col,
                marker_color=HIST_COLORS[i % len(HIST_COLORS)],
                hovertemplate=f"{col}<br>Range: %{{x}}<br>Count: %{{y}}<extra></extra>"
            ),
            row=row + 1, col=col_idx + 1
        )

    fig.update_layout(showlegend=False, height=300 * nrows, autosize=True)
    return _apply_common_layout(fig, "Distribution of Numeric Attributes")


def plot_numeric_histograms_paginated(df, per_page=9, bins=30):
    """
    Create a list of matplotlib Figure objects, each with up to `per_page` numeric histograms.
    Each page is a grid (3 columns, variable rows).
    Args:
        df (pd.DataFrame): DataFrame with numeric columns.
        per_page (int): Number of histograms per page.
        bins (int): Number of bins for each histogram.
    Returns:
        List[matplotlib.figure.Figure]: List of figures for PDF pagination.
    """
    import matplotlib.pyplot as plt
    font_family = "DejaVu Sans"
    font_size = 12
    numeric_cols = numeric_columns(df)
    figs = []
    with plt.rc_context({"font.family": font_family, "font.size": font_size}):
        for i in range(0, len(numeric_cols), per_page):
            cols = numeric_cols[i:i+per_page]
            n = len(cols)
            nrows = int(np.ceil(n / 3))
            fig, axes = plt.subplots(nrows, 3, figsize=(15, 4 * nrows))
            axes = np.atleast_1d(axes).flatten()
            for ax, col in zip(axes, cols):
                ax.hist(df[col].dropna(), bins=bins, color=HIST_COLORS[0], edgecolor='k', alpha=0.85)
                ax.set_title(col, fontsize=font_size+1, fontfamily=font_family)
                ax.set_xlabel(col, fontsize=font_size-1, fontfamily=font_family)
                ax.set_ylabel("Count", fontsize=font_size-1, fontfamily=font_family)
            for ax in axes[n:]:
                fig.delaxes(ax)
            fig.tight_layout()
            figs.append(fig)
    return figs


# === Working-ion comparisons ===

def plot_ion_counts(df):
    """Number of battery records per working ion."""
    counts = df[ION_COLUMN].value_counts().rename_axis(ION_COLUMN).reset_index(name="Count")
    counts["Ion Name"] = counts[ION_COLUMN].map(ion_full_name)
    counts["Tooltip"] = [
        f"{_ion_label(ion, name)}<br>Records: {n}"
        for ion, name, n in zip(counts[ION_COLUMN], counts["Ion Name"], counts["Count"])
    ]
    fig = px.bar(
        counts, x=ION_COLUMN, y="Count",
        custom_data=["Tooltip"],
        color_discrete_sequence=COLOR_SEQ,
        text_auto=True
    )
    fig.update_traces(hovertemplate="%{customdata[0]}<extra></extra>")
    fig.update_layout(xaxis_title="Working Ion", yaxis_title="Number of Records")
    return _apply_common_layout(fig, "Records per Working Ion")


def aggregate_by_ion(df, columns, aggs=("mean",)):
    """
    Per-ion aggregates of outlier-filtered columns, in long form.

    Each column is IQR-filtered within each working-ion group before it is
    aggregated.

    Returns:
        pd.DataFrame: Columns [ION_COLUMN, 'Ion Name', 'Measure', 'Statistic', 'Value'].
    """
    long_cols = [ION_COLUMN, "Ion Name", "Measure", "Statistic", "Value"]
    named = add_ion_names(df[[ION_COLUMN] + list(columns)])

    records = []
    for (ion, name), group in named.groupby([ION_COLUMN, "Ion Name"]):
        row = {ION_COLUMN: ion, "Ion Name": name}
        for col in columns:
            kept = filter_outlier_values(group[col])
            for agg in aggs:
                row[f"{col}|{agg}"] = kept.agg(agg) if not kept.empty else np.nan
        records.append(row)
    if not records:
        return pd.DataFrame(columns=long_cols)

    wide = pd.DataFrame(records)
    long_df = wide.melt(id_vars=[ION_COLUMN, "Ion Name"], var_name="Series", value_name="Value")
    long_df[["Measure", "Statistic"]] = long_df["Series"].str.rsplit("|", n=1, expand=True)
    return long_df[long_cols]


def _ion_bar_chart(long_df, color_col, title, y_label, ion_order=None):
    """Grouped bars per working ion with a name/value tooltip."""
    plot_df = long_df.copy()
    plot_df["Tooltip"] = [
        f"{_ion_label(ion, name)}<br>{measure} ({stat}): {value:.2f}"
        for ion, name, measure, stat, value in zip(
            plot_df[ION_COLUMN], plot_df["Ion Name"], plot_df["Measure"], plot_df["Statistic"], plot_df["Value"]
        )
    ]
    category_orders = {ION_COLUMN: ion_order} if ion_order else None
    fig = px.bar(
        plot_df,
        x=ION_COLUMN, y="Value", color=color_col, barmode="group",
        custom_data=["Tooltip"],
        category_orders=category_orders,
        color_discrete_sequence=COLOR_SEQ
    )
    fig.update_traces(hovertemplate="%{customdata[0]}<extra></extra>")
    fig.update_layout(xaxis_title="Working Ion", yaxis_title=y_label)
    return _apply_common_layout(fig, title)


def plot_voltage_by_ion(df):
    """Mean, minimum and maximum average voltage per working ion."""
    long_df = aggregate_by_ion(df, ["Average Voltage"], aggs=("mean", "min", "max"))
    return _ion_bar_chart(long_df, "Statistic", "Average Voltage by Working Ion", "Average Voltage (V)",
                          ion_order=ion_groups(df))


def plot_capacity_by_ion(df):
    """Mean gravimetric and volumetric capacity per working ion."""
    long_df = aggregate_by_ion(df, ["Gravimetric Capacity", "Volumetric Capacity"])
    return _ion_bar_chart(long_df, "Measure", "Mean Capacity by Working Ion", "Capacity (mAh/g, mAh/cm³)",
                          ion_order=ion_groups(df))


def plot_energy_by_ion(df):
    """Mean gravimetric and volumetric energy per working ion."""
    long_df = aggregate_by_ion(df, ["Gravimetric Energy", "Volumetric Energy"])
    return _ion_bar_chart(long_df, "Measure", "Mean Energy by Working Ion", "Energy (Wh/kg, Wh/L)",
                          ion_order=ion_groups(df))


def plot_stability_by_ion(df):
    """Mean stability in the charged and discharged state per working ion."""
    long_df = aggregate_by_ion(df, ["Stability Charge", "Stability Discharge"])
    return _ion_bar_chart(long_df, "Measure", "Mean Stability by Working Ion", "Stability (eV/atom)",
                          ion_order=ion_groups(df))


# === Correlation ===

def compute_correlation_matrix(df):
    """Pearson correlation of all numeric columns using pairwise-complete observations."""
    cols = numeric_columns(df) or df.select_dtypes(include=[np.number]).columns.tolist()
    return df[cols].corr(method="pearson", min_periods=1)


def plot_correlation_matrix(df, corr=None):
    """
    Correlation matrix with mixed encodings.

    The upper triangle shows circles sized and colored by the coefficient, the
    lower triangle shows the coefficient as text.
    """
    if corr is None:
        corr = compute_correlation_matrix(df)
    cols = list(corr.columns)

    upper_x, upper_y, upper_r = [], [], []
    lower_x, lower_y, lower_r = [], [], []
    for i, row_name in enumerate(cols):
        for j, col_name in enumerate(cols):
            r = corr.iloc[i, j]
            if j > i:
                upper_x.append(col_name)
                upper_y.append(row_name)
                upper_r.append(r)
            elif j < i:
                lower_x.append(col_name)
                lower_y.append(row_name)
                lower_r.append(r)

    upper_r = np.array(upper_r, dtype=float)
    lower_r = np.array(lower_r, dtype=float)
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=upper_x, y=upper_y, mode="markers",
        marker=dict(
            size=np.nan_to_num(np.abs(upper_r)) * 30 + 4,
            color=upper_r, colorscale="RdBu", cmin=-1, cmax=1,
            colorbar=dict(title="r"), line=dict(color="#666", width=0.5)
        ),
        text=[f"{y} vs {x}<br>r = {r:.2f}" for x, y, r in zip(upper_x, upper_y, upper_r)],
        hovertemplate="%{text}<extra></extra>",
        name="upper"
    ))
    fig.add_trace(go.Scatter(
        x=lower_x, y=lower_y, mode="text",
        text=[f"{r:.2f}" for r in lower_r],
        textfont=dict(
            size=11,
            color=["#b2182b" if r < 0 else "#2166ac" for r in np.nan_to_num(lower_r)]
        ),
        hovertext=[f"{y} vs {x}<br>r = {r:.2f}" for x, y, r in zip(lower_x, lower_y, lower_r)],
        hoverinfo="text",
        name="lower"
    ))
    fig.update_layout(showlegend=False, height=750, width=850)
    fig.update_xaxes(categoryorder="array", categoryarray=cols, tickangle=45)
    fig.update_yaxes(categoryorder="array", categoryarray=cols[::-1])
    return _apply_common_layout(fig, "Correlation Matrix of Numeric Attributes")


def plot_correlation_heatmap_static(df, corr_matrix=None):
    """Seaborn heatmap of the correlation matrix for the static report."""
    import matplotlib.pyplot as plt
    import seaborn as sns

    if corr_matrix is None:
        corr_matrix = compute_correlation_matrix(df)
    fig, ax = plt.subplots(figsize=(10, 8))
    sns.heatmap(
        corr_matrix,
        annot=True,
        fmt='.2f',
        cmap='coolwarm',
        vmin=-1, vmax=1,
        square=True,
        annot_kws={"size": 8},
        cbar_kws={"shrink": 0.8},
        ax=ax
    )
    ax.set_title('Correlation Matrix of Numeric Attributes', fontsize=12, pad=15)
    ax.tick_params(axis='x', labelsize=8, labelrotation=45)
    ax.tick_params(axis='y', labelsize=8, labelrotation=0)
    fig.tight_layout()
    return fig


# === Model ===

def plot_sensitivity(sensitivity_df, target=TARGET):
    """One panel per predictor showing the predicted target along its ramp."""
    predictors = list(dict.fromkeys(sensitivity_df["Predictor"]))
    if not predictors:
        return _apply_common_layout(go.Figure(), "No sensitivity data to display")
    cols = 2
    rows = (len(predictors) + 1) // cols
    fig = make_subplots(rows=rows, cols=cols, subplot_titles=predictors,
                        horizontal_spacing=0.1, vertical_spacing=0.15)
    for i, predictor in enumerate(predictors):
        row, col = divmod(i, cols)
        part = sensitivity_df[sensitivity_df["Predictor"] == predictor]
        fig.add_trace(go.Scatter(
            x=part["Value"], y=part["Predicted"],
            mode="lines",
            line=dict(color=COLOR_SEQ[i % len(COLOR_SEQ)], width=2),
            hovertemplate=f"{predictor}: %{{x:.3f}}<br>Predicted {target}: %{{y:.1f}}<extra></extra>",
            showlegend=False
        ), row=row + 1, col=col + 1)
        fig.update_xaxes(title_text=predictor, row=row + 1, col=col + 1)
        fig.update_yaxes(title_text=f"Predicted {target}" if col == 0 else "", row=row + 1, col=col + 1)
    fig.update_layout(height=400 * rows, autosize=True)
    return _apply_common_layout(fig, f"Model Sensitivity of {target} to Each Predictor")


def plot_predicted_vs_actual(comparison_df, target=TARGET):
    """Parity plot of actual vs. predicted target for sampled records."""
    hover = [
        f"{bid} ({ion})<br>Actual: {a:.1f}<br>Predicted: {p:.1f}"
        for bid, ion, a, p in zip(comparison_df[ID_COLUMN], comparison_df[ION_COLUMN],
                                  comparison_df["Actual"], comparison_df["Predicted"])
    ]
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=comparison_df["Actual"], y=comparison_df["Predicted"],
        mode='markers',
        marker=dict(color=COLOR_SEQ[0], size=10, opacity=0.8),
        text=hover,
        hovertemplate="%{text}<extra></extra>",
        name="Predicted vs. Actual"
    ))
    if len(comparison_df):
        min_val = min(comparison_df["Actual"].min(), comparison_df["Predicted"].min())
        max_val = max(comparison_df["Actual"].max(), comparison_df["Predicted"].max())
        fig.add_trace(go.Scatter(
            x=[min_val, max_val], y=[min_val, max_val],
            mode='lines',
            line=dict(color='#111', dash='dash', width=1),
            name='Ideal'
        ))
    fig.update_layout(xaxis_title=f"Actual {target}", yaxis_title=f"Predicted {target}")
    return _apply_common_layout(fig, f"Predicted vs. Actual {target} (Random Sample)")


def plot_feature_importance(importances_df):
    fig = go.Figure(go.Bar(
        x=importances_df["Importance"][::-1],
        y=importances_df["Predictor"][::-1],
        orientation='h',
        marker_color=COLOR_SEQ[1]
    ))
    fig.update_layout(xaxis_title="Importance", yaxis_title="Predictor")
    return _apply_common_layout(fig, "Random Forest Feature Importances")


# === Clustering ===

def plot_clusters_2d(projection_df):
    """2D PCA scatter of the DBSCAN clusters; noise points are drawn in grey."""
    hover = pd.Series(
        [f"{bid} ({ion})" for bid, ion in zip(projection_df.get(ID_COLUMN, projection_df.index), projection_df[ION_COLUMN])],
        index=projection_df.index
    )
    fig = go.Figure()
    noise = projection_df["Cluster"] == NOISE_LABEL
    if noise.any():
        fig.add_trace(go.Scatter(
            x=projection_df.loc[noise, 'PC1'], y=projection_df.loc[noise, 'PC2'],
            mode='markers', name='Noise',
            marker=dict(color=NOISE_COLOR, size=5, opacity=0.5),
            text=hover[noise], hoverinfo='text+x+y'
        ))
    for i, cluster_id in enumerate(sorted(projection_df.loc[~noise, "Cluster"].unique())):
        mask = projection_df["Cluster"] == cluster_id
        fig.add_trace(go.Scatter(
            x=projection_df.loc[mask, 'PC1'], y=projection_df.loc[mask, 'PC2'],
            mode='markers', name=f'Cluster {cluster_id}',
            marker=dict(color=COLOR_SEQ[i % len(COLOR_SEQ)], size=7, opacity=0.8),
            text=hover[mask], hoverinfo='text+x+y'
        ))
    fig.update_layout(xaxis_title='Principal Component 1', yaxis_title='Principal Component 2', legend_title='Cluster')
    return _apply_common_layout(fig, '2D PCA of DBSCAN Clusters')


def plot_cluster_means(cluster_summary, columns):
    """Grouped bars of the per-cluster means of the clustering columns."""
    if cluster_summary.empty:
        return _apply_common_layout(go.Figure(), "No clusters to display")
    long_df = cluster_summary.melt(id_vars=["Cluster", "Count", "Working Ions"], value_vars=list(columns),
                                   var_name="Measure", value_name="Mean")
    long_df["Cluster"] = long_df["Cluster"].astype(str)
    fig = px.bar(
        long_df, x="Measure", y="Mean", color="Cluster", barmode="group",
        hover_data=["Count", "Working Ions"],
        color_discrete_sequence=COLOR_SEQ
    )
    fig.update_layout(xaxis_title="", yaxis_title="Cluster Mean")
    return _apply_common_layout(fig, "Cluster Means of Clustering Attributes")


def plot_k_distance(distances, eps, suggested_eps=None):
    """Sorted k-distance curve with the configured and suggested DBSCAN radius."""
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=list(range(len(distances))),
            y=distances,
            mode="lines",
            name="k-distance",
            line=dict(color="blue", dash="solid")
        )
    )
    fig.add_hline(y=eps, line_dash="dash", line_color="red",
                  annotation_text=f"eps = {eps}", annotation_position="top left")
    if suggested_eps is not None:
        fig.add_hline(y=suggested_eps, line_dash="dot", line_color="green",
                      annotation_text=f"knee = {suggested_eps:.3f}", annotation_position="bottom right")
    fig.update_layout(xaxis_title="Points (sorted)", yaxis_title="Distance to k-th Neighbor")
    return _apply_common_layout(fig, "k-Distance Curve for DBSCAN")
