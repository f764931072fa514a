from __future__ import annotations

import collections
import logging
from typing import Dict, Set

import pandas as pd
from spacy.lang.en.stop_words import STOP_WORDS

from .config import SonglexConfig


def load_noise_lists(config: SonglexConfig) -> Dict[str, Set[str]]:
    keep = {t.lower() for t in config.noise.get("keep", [])}
    stopwords = {t.lower() for t in STOP_WORDS} | {
        t.lower() for t in config.noise.get("stopwords", [])
    }
    return {"stopwords": stopwords - keep, "keep": keep}


def is_noise_token(token: str, noise: Dict[str, Set[str]]) -> bool:
    return token.lower() in noise["stopwords"]


def normalize_token(token: str) -> str:
    token = token.strip().lower()
    token = token.strip("'-")
    token = " ".join(token.split())
    return token


def noise_report(records: pd.DataFrame, config: SonglexConfig) -> None:
    removed_counts = collections.Counter()
    kept_counts = collections.Counter()
    for removed in records.get("noise_hits", []):
        removed_counts.update(removed or [])
    for tokens in records["tokens"]:
        kept_counts.update(tokens)
    lines = [
        "# Stop-word report",
        f"Run: {config.run_id}",
        "",
        "## Top removed stop words",
    ]
    for tok, count in removed_counts.most_common(25):
        lines.append(f"- {tok}: {count}")
    lines.append("\n## Top kept tokens")
    for tok, count in kept_counts.most_common(25):
        lines.append(f"- {tok}: {count}")
    report_path = config.output_path("songlex_stopword_report.md")
    report_path.write_text("\n".join(lines))
    logging.info("Wrote stop-word report to %s", report_path)
