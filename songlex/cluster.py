from __future__ import annotations

import logging
from typing import Dict

import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.metrics.pairwise import cosine_similarity
from sklearn.preprocessing import normalize

from .config import SonglexConfig
from .lsa import LsaSpace


def _fit_kmeans(vectors: np.ndarray, k: int, seed: int) -> KMeans:
    k = min(k, len(vectors)) or 1
    return KMeans(n_clusters=k, random_state=seed, n_init=10)


def cluster_terms(space: LsaSpace, config: SonglexConfig):
    vectors = normalize(space.term_vectors)
    model = _fit_kmeans(vectors, config.clustering_k, config.random_seed)
    labels = model.fit_predict(vectors)
    sims = cosine_similarity(vectors, model.cluster_centers_)
    cluster_df = pd.DataFrame(
        {
            "term": space.terms,
            "cluster_id": labels,
            "strength": sims[np.arange(len(labels)), labels],
        }
    )
    coherence: Dict[int, Dict[str, float]] = {}
    for cid in np.unique(labels):
        mask = labels == cid
        cluster_vectors = vectors[mask]
        centroid = cluster_vectors.mean(axis=0, keepdims=True)
        coherence[int(cid)] = {
            "size": int(mask.sum()),
            "coherence": float(cosine_similarity(cluster_vectors, centroid).mean()),
        }
    path = config.output_path("songlex_term_clusters.parquet")
    cluster_df.to_parquet(path, index=False)
    logging.info("Clustered %d terms into %d clusters", len(cluster_df), len(coherence))
    return cluster_df, coherence


def cluster_report(cluster_df: pd.DataFrame, coherence: dict, space: LsaSpace, config: SonglexConfig) -> None:
    lines = [
        "# LSA term clusters",
        f"Run: {config.run_id}",
        f"Terms: {len(space.terms)}, species: {len(space.species)}",
        f"Components: {space.term_vectors.shape[1]} "
        f"(variance explained {100 * float(space.explained_variance.sum()):.1f}%)",
        f"Clusters: {cluster_df['cluster_id'].nunique()}",
    ]
    coh_values = [m["coherence"] for m in coherence.values()]
    if coh_values:
        lines.append(f"Coherence mean: {float(np.mean(coh_values)):.3f}")
        lines.append(f"Coherence median: {float(np.median(coh_values)):.3f}")
    for cid, group in cluster_df.groupby("cluster_id"):
        top = group.sort_values("strength", ascending=False)["term"].head(15)
        lines.append(f"\n## Cluster {cid} (size {coherence[int(cid)]['size']}, coherence {coherence[int(cid)]['coherence']:.3f})")
        lines.append(", ".join(top))
        anchor = top.iloc[0]
        neighbours = ", ".join(f"{t} ({s:.2f})" for t, s in space.neighbours(anchor, 8))
        lines.append(f"Nearest to *{anchor}*: {neighbours}")
    report_path = config.output_path("songlex_cluster_report.md")
    report_path.write_text("\n".join(lines))
    logging.info("Wrote cluster report to %s", report_path)
