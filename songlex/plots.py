from __future__ import annotations

import logging
import pathlib
from typing import Dict, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from .config import SonglexConfig
from .lsa import LsaSpace


def _save(fig, config: SonglexConfig, name: str) -> pathlib.Path:
    path = config.output_path("figures", name)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    logging.info("Saved figure %s", path)
    return path


def length_histogram(records: pd.DataFrame, config: SonglexConfig) -> Optional[pathlib.Path]:
    lengths = records["length_cm"].dropna()
    if lengths.empty:
        return None
    fig, ax = plt.subplots(figsize=(7, 4))
    for guide, group in records.dropna(subset=["length_cm"]).groupby("guide"):
        ax.hist(group["length_cm"], bins=30, alpha=0.5, label=guide)
    ax.set_xlabel("Length (cm)")
    ax.set_ylabel("Species")
    ax.legend()
    return _save(fig, config, "length_histogram.png")


def top_lemmas_chart(tokens: pd.DataFrame, config: SonglexConfig, n: int = 25) -> Optional[pathlib.Path]:
    counts = tokens["lemma"].value_counts().head(n)
    if counts.empty:
        return None
    fig, ax = plt.subplots(figsize=(7, max(3, 0.25 * len(counts))))
    ax.barh(counts.index[::-1], counts.to_numpy()[::-1], color="steelblue")
    ax.set_xlabel("Tokens")
    ax.set_title(f"Top {len(counts)} lemmas")
    return _save(fig, config, "top_lemmas.png")


def residual_chart(name: str, table: pd.DataFrame, config: SonglexConfig, n: int = 30) -> pathlib.Path:
    shown = table.dropna(subset=["std_residual"])
    if len(shown) > n:
        half = n // 2
        shown = pd.concat([shown.head(half), shown.tail(half)])
    colors = ["firebrick" if v > 0 else "steelblue" for v in shown["std_residual"]]
    fig, ax = plt.subplots(figsize=(7, max(3, 0.25 * len(shown))))
    ax.barh([str(k) for k in shown.index[::-1]], shown["std_residual"].to_numpy()[::-1], color=colors[::-1])
    threshold = config.residual_threshold
    ax.axvline(threshold, color="grey", linestyle="--", linewidth=0.8)
    ax.axvline(-threshold, color="grey", linestyle="--", linewidth=0.8)
    ax.set_xlabel("Standardized residual (corpus vs reference)")
    ax.set_title(f"{name}: chi2 = {table.attrs.get('chi2', float('nan')):.1f}")
    return _save(fig, config, f"residuals_{name}.png")


def lsa_scatter(space: LsaSpace, clusters: pd.DataFrame, config: SonglexConfig, label_top: int = 40) -> Optional[pathlib.Path]:
    frame = space.term_frame().merge(clusters, on="term", how="left")
    if "dim_2" not in frame.columns:
        return None
    fig, ax = plt.subplots(figsize=(8, 7))
    scatter = ax.scatter(frame["dim_1"], frame["dim_2"], c=frame["cluster_id"], cmap="tab20", s=12)
    # label the terms furthest from the origin
    spread = (frame["dim_1"] ** 2 + frame["dim_2"] ** 2).sort_values(ascending=False)
    for idx in spread.index[:label_top]:
        ax.annotate(frame.at[idx, "term"], (frame.at[idx, "dim_1"], frame.at[idx, "dim_2"]), fontsize=7)
    ax.set_xlabel("LSA dimension 1")
    ax.set_ylabel("LSA dimension 2")
    fig.colorbar(scatter, ax=ax, label="cluster")
    return _save(fig, config, "lsa_terms.png")


def plot_all(
    records: pd.DataFrame,
    tokens: pd.DataFrame,
    residuals: Dict[str, pd.DataFrame],
    config: SonglexConfig,
    space: Optional[LsaSpace] = None,
    clusters: Optional[pd.DataFrame] = None,
) -> None:
    length_histogram(records, config)
    top_lemmas_chart(tokens, config)
    for name, table in residuals.items():
        residual_chart(name, table, config)
    if space is not None and clusters is not None:
        lsa_scatter(space, clusters, config)
