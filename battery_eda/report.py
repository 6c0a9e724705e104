"""
report.py

Runs the full battery-materials analysis and writes the report files:
an HTML page with tables and interactive charts, static PDF figures, and the
cluster summary as CSV.
"""

import html
import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import plotly.io as pio

from .clustering import (
    assign_clusters,
    clustering_metrics,
    k_distance_curve,
    project_clusters_2d,
    scale_cluster_features,
    suggest_eps,
    summarize_clusters,
)
from .config import (
    CLUSTER_COLUMNS,
    DATA_PATH,
    DBSCAN_EPS,
    DBSCAN_MIN_SAMPLES,
    ION_COLUMN,
    MODEL_PATH,
    N_ESTIMATORS,
    REPORT_DIR,
    SAMPLE_SIZE,
    TARGET,
)
from .data import load_battery_data
from .modeling import (
    evaluate_model,
    feature_importances,
    load_or_train_model,
    sample_predictions,
    sensitivity_analysis,
)
from .utils import (
    frequency_table,
    log_and_print,
    perform_normality_tests,
    save_plot,
    setup_environment,
    style_df,
    summarize_dataset,
)
from . import viz


HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: "Segoe UI", Arial, sans-serif; margin: 2em auto; max-width: 1100px; color: #222; }}
h1, h2 {{ border-bottom: 1px solid #ddd; padding-bottom: 0.2em; }}
table {{ border-collapse: collapse; margin: 1em 0; font-size: 0.9em; }}
.metrics td {{ padding: 4px 12px; }}
</style>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""


class ReportBuilder:
    """Collects report sections and renders them into one HTML page."""

    def __init__(self, title):
        self.title = title
        self.parts = []
        self._plotlyjs_included = False

    def heading(self, text):
        self.parts.append(f"<h2>{html.escape(text)}</h2>")

    def paragraph(self, text):
        self.parts.append(f"<p>{html.escape(text)}</p>")

    def metrics(self, values):
        rows = "".join(
            f"<tr><td><b>{html.escape(str(k))}</b></td><td>{html.escape(_format_value(v))}</td></tr>"
            for k, v in values.items()
        )
        self.parts.append(f'<table class="metrics">{rows}</table>')

    def table(self, df, index=False):
        styler = style_df(df)
        if not index:
            styler = styler.hide(axis="index")
        self.parts.append(styler.to_html())

    def figure(self, fig):
        include = "cdn" if not self._plotlyjs_included else False
        self._plotlyjs_included = True
        self.parts.append(pio.to_html(fig, full_html=False, include_plotlyjs=include))

    def render(self):
        return HTML_TEMPLATE.format(title=html.escape(self.title), body="\n".join(self.parts))

    def write(self, path):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.render())
        print(f"Report saved to {path}")


def _format_value(value):
    if isinstance(value, float):
        return f"{value:.3f}"
    return str(value)


def save_histogram_pdf(df, path):
    """Write the paginated matplotlib histograms to a multi-page PDF."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    figs = viz.plot_numeric_histograms_paginated(df, per_page=9)
    with PdfPages(path) as pdf:
        for fig in figs:
            pdf.savefig(fig)
            plt.close(fig)
    print(f"Paginated numeric histograms PDF saved to {path}")


def build_report(data_path=DATA_PATH, output_dir=REPORT_DIR, model_path=MODEL_PATH,
                 retrain_if_stale=False, n_estimators=N_ESTIMATORS, param_grid=None,
                 cv=None, eps=DBSCAN_EPS, min_samples=DBSCAN_MIN_SAMPLES):
    """
    Run every analysis step and write the report files to `output_dir`.

    Returns:
        dict: Paths of the written files keyed by 'html', 'histograms', 'correlation' and 'clusters'.
    """
    setup_environment()
    df = load_battery_data(data_path)
    os.makedirs(output_dir, exist_ok=True)
    report = ReportBuilder("Battery Materials: Exploratory Data Analysis")
    outputs = {
        "html": os.path.join(output_dir, "report.html"),
        "histograms": os.path.join(output_dir, "histograms.pdf"),
        "correlation": os.path.join(output_dir, "correlation_heatmap.pdf"),
        "clusters": os.path.join(output_dir, "cluster_summary.csv"),
    }

    # --- Descriptive summary ---
    log_and_print("Summarizing dataset...")
    summary = summarize_dataset(df)
    report.heading("Dataset Overview")
    report.metrics({
        "Records": summary["n_rows"],
        "Columns": summary["n_columns"],
        "Missing values": summary["n_missing"],
    })
    report.table(summary["categorical"])
    report.table(frequency_table(df, ION_COLUMN))
    report.table(summary["numeric"], index=True)
    report.paragraph("Shapiro-Wilk normality tests (p < 0.05 suggests a non-normal distribution).")
    report.table(perform_normality_tests(df, columns=list(summary["numeric"].index)))

    # --- Descriptive charts ---
    log_and_print("Building descriptive charts...")
    report.heading("Distributions")
    report.figure(viz.plot_numeric_histograms(df))
    report.figure(viz.plot_ion_counts(df))
    save_histogram_pdf(df, outputs["histograms"])

    report.heading("Comparison by Working Ion")
    for builder in (viz.plot_voltage_by_ion, viz.plot_capacity_by_ion,
                    viz.plot_energy_by_ion, viz.plot_stability_by_ion):
        report.figure(builder(df))

    report.heading("Correlation")
    corr = viz.compute_correlation_matrix(df)
    report.figure(viz.plot_correlation_matrix(df, corr=corr))
    fig_corr = viz.plot_correlation_heatmap_static(df, corr_matrix=corr)
    save_plot(fig_corr, outputs["correlation"])
    plt.close(fig_corr)

    # --- Regression model ---
    log_and_print("Preparing regression model...")
    model_kwargs = {"model_path": model_path, "retrain_if_stale": retrain_if_stale,
                    "n_estimators": n_estimators, "param_grid": param_grid}
    if cv is not None:
        model_kwargs["cv"] = cv
    result = load_or_train_model(df, **model_kwargs)
    model = result["model"]
    predictors = result["predictors"]

    report.heading(f"Random Forest Model for {TARGET}")
    status = "loaded from cache" if result["from_cache"] else "trained"
    if result["stale"]:
        status += " (cache does not match the current data)"
    test_metrics = evaluate_model(model, result["X_test"][predictors], result["y_test"])
    report.metrics({
        "Model": status,
        "Predictors": ", ".join(predictors),
        "Training rows": len(result["X_train"]),
        "Held-out rows": len(result["X_test"]),
        "Held-out MAE": test_metrics["mae"],
        "Held-out RMSE": test_metrics["rmse"],
        "Held-out R²": test_metrics["r2"],
    })
    if result.get("cv_results") is not None:
        report.table(result["cv_results"])
    report.figure(viz.plot_feature_importance(feature_importances(model, predictors)))

    log_and_print("Scoring sensitivity ramps and sampled records...")
    sensitivity = sensitivity_analysis(model, result["X_train"][predictors])
    report.figure(viz.plot_sensitivity(sensitivity, target=result["target"]))
    comparison = sample_predictions(model, df, predictors=predictors, target=result["target"], n=SAMPLE_SIZE)
    report.table(comparison)
    report.figure(viz.plot_predicted_vs_actual(comparison, target=result["target"]))

    # --- Clustering ---
    log_and_print("Clustering...")
    labels = assign_clusters(df, eps=eps, min_samples=min_samples)
    X_scaled = scale_cluster_features(df)
    metrics = clustering_metrics(X_scaled, labels)
    distances = k_distance_curve(X_scaled.to_numpy(), min_samples=min_samples)
    cluster_summary = summarize_clusters(df, labels)
    cluster_summary.to_csv(outputs["clusters"], index=False)
    print(f"Cluster summary saved to {outputs['clusters']}")

    report.heading("DBSCAN Clustering")
    report.metrics({
        "eps": eps,
        "min_samples": min_samples,
        "Clusters": metrics["n_clusters"],
        "Noise points": metrics["n_noise"],
        "Noise fraction": metrics["noise_fraction"],
        "Silhouette (non-noise)": metrics["silhouette"] if metrics["silhouette"] is not None else "n/a",
    })
    report.figure(viz.plot_k_distance(distances, eps, suggest_eps(distances)))
    report.table(cluster_summary)
    report.figure(viz.plot_clusters_2d(project_clusters_2d(df, labels)))
    report.figure(viz.plot_cluster_means(cluster_summary, CLUSTER_COLUMNS))

    report.write(outputs["html"])
    return outputs
