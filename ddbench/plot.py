"""
Render a ddbench result file (r_results.data / w_results.data) as a PNG.

Usage:
    ddbench-plot r_results.data r_results.png

Columns 1, 3 and 5 of the data file (RAM before, RAM after, rate) are
plotted against the iteration number. Memory is converted to MB using the
unit in the following column, the rate to MB/s.
"""

import argparse
import logging
import os
import sys

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from ddbench.units import eng_to_bytes, rate_to_mbps

logger = logging.getLogger(__name__)

COLUMNS = ["ram_before", "ram_before_unit", "ram_after", "ram_after_unit", "rate", "rate_units"]

# Tableau 10
tableau_colors = ["#4E79A7", "#F28E2B", "#E15759", "#76B7B2", "#59A14F"]


def load_results(path: str) -> pd.DataFrame:
    """
    Read a result data file into a DataFrame.

    Returns:
        DataFrame indexed by iteration (starting at 1) with the raw columns plus
        'ram_before_mb', 'ram_after_mb' and 'rate_mbps'.
    """
    try:
        df = pd.read_csv(path, sep=r"\s+", skiprows=1, header=None, names=COLUMNS, dtype=str)
    except pd.errors.EmptyDataError:
        # header only
        df = pd.DataFrame(columns=COLUMNS)
    df.index = pd.RangeIndex(1, len(df) + 1, name="iteration")
    if df.empty:
        return df

    df["ram_before_mb"] = [
        eng_to_bytes(v, u) / (1024 * 1024) for v, u in zip(df["ram_before"], df["ram_before_unit"])
    ]
    df["ram_after_mb"] = [
        eng_to_bytes(v, u) / (1024 * 1024) for v, u in zip(df["ram_after"], df["ram_after_unit"])
    ]
    df["rate_mbps"] = [rate_to_mbps(r, u) for r, u in zip(df["rate"], df["rate_units"])]
    return df


def create_figure(df: pd.DataFrame, title: str) -> go.Figure:
    fig = make_subplots(specs=[[{"secondary_y": True}]])

    for i, (column, name) in enumerate([("ram_before_mb", "RAM before"), ("ram_after_mb", "RAM after")]):
        fig.add_trace(
            go.Scatter(
                x=df.index,
                y=df[column],
                mode="lines+markers",
                line=dict(color=tableau_colors[i], width=2),
                marker=dict(size=5),
                name=name,
            ),
            secondary_y=False,
        )

    fig.add_trace(
        go.Scatter(
            x=df.index,
            y=df["rate_mbps"],
            mode="lines+markers",
            line=dict(color=tableau_colors[2], width=2),
            marker=dict(size=5),
            name="Rate",
        ),
        secondary_y=True,
    )

    fig.update_layout(
        title=title,
        xaxis_title="Iteration",
        template="plotly_white",
        xaxis=dict(showgrid=True, gridcolor="lightgray", dtick=1),
    )
    fig.update_yaxes(title_text="Free memory (MB)", secondary_y=False)
    fig.update_yaxes(title_text="Rate (MB/s)", secondary_y=True)
    return fig


def plot_results(input_file: str, output_file: str) -> bool:
    """Plot input_file to output_file. Returns False if there was nothing to plot."""
    df = load_results(input_file)
    if df.empty:
        logger.warning(f"No rows in {input_file}, skipping plot")
        return False

    title = os.path.splitext(os.path.basename(input_file))[0]
    fig = create_figure(df, title)
    fig.write_image(output_file, width=1200, height=600)
    logger.info(f"Created plot: {output_file}")
    return True


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

    parser = argparse.ArgumentParser(description="Plot a ddbench result data file.")
    parser.add_argument("input_file", help="r_results.data or w_results.data")
    parser.add_argument("output_file", help="PNG file to write")
    args = parser.parse_args(argv)

    if not os.path.isfile(args.input_file):
        logger.error(f"Input file does not exist: {args.input_file}")
        sys.exit(1)

    if not plot_results(args.input_file, args.output_file):
        sys.exit(1)


if __name__ == "__main__":
    main()
