from __future__ import annotations

import collections
import logging
from typing import Dict

import pandas as pd

from .config import SonglexConfig


def describe_corpus(records: pd.DataFrame, tokens: pd.DataFrame, config: SonglexConfig) -> Dict[str, object]:
    guides_per_species = records.groupby("scientific_name")["guide"].nunique()
    n_tokens = records["n_tokens"]
    ono_counts = collections.Counter()
    for spans in records["onomatopoeia"]:
        ono_counts.update(spans)
    lengths = records["length_cm"].dropna() if "length_cm" in records.columns else pd.Series(dtype=float)
    stats = {
        "records": len(records),
        "species": int(records["scientific_name"].nunique()),
        "records_per_guide": records["guide"].value_counts().sort_index().to_dict(),
        "species_in_all_guides": int((guides_per_species == records["guide"].nunique()).sum()),
        "tokens": int(len(tokens)),
        "types": int(tokens["surface"].nunique()),
        "lemma_types": int(tokens["lemma"].nunique()),
        "type_token_ratio": tokens["surface"].nunique() / len(tokens) if len(tokens) else 0.0,
        "tokens_per_record_mean": float(n_tokens.mean()) if len(n_tokens) else 0.0,
        "tokens_per_record_median": float(n_tokens.median()) if len(n_tokens) else 0.0,
        "tokens_per_record_max": int(n_tokens.max()) if len(n_tokens) else 0,
        "records_with_onomatopoeia": int(records["onomatopoeia"].map(bool).sum()),
        "top_onomatopoeia": ono_counts.most_common(20),
        "top_lemmas": tokens["lemma"].value_counts().head(25).to_dict(),
        "top_lemmas_by_guide": {
            guide: group["lemma"].value_counts().head(10).to_dict()
            for guide, group in tokens.groupby("guide")
        },
        "length_cm": lengths.describe().to_dict() if len(lengths) else {},
    }

    lines = [
        "# Corpus description",
        f"Run: {config.run_id}",
        f"Records: {stats['records']} ({stats['species']} species)",
        f"Species present in every guide: {stats['species_in_all_guides']}",
        f"Tokens: {stats['tokens']}, types: {stats['types']}, lemma types: {stats['lemma_types']}",
        f"Type/token ratio: {stats['type_token_ratio']:.3f}",
        f"Tokens per description: mean {stats['tokens_per_record_mean']:.1f}, "
        f"median {stats['tokens_per_record_median']:.1f}, max {stats['tokens_per_record_max']}",
        f"Descriptions quoting onomatopoeia: {stats['records_with_onomatopoeia']}",
        "",
        "## Records per guide",
    ]
    for guide, count in stats["records_per_guide"].items():
        lines.append(f"- {guide}: {count}")
    if stats["length_cm"]:
        lines.append("\n## Length (cm)")
        for key in ["count", "mean", "std", "min", "50%", "max"]:
            lines.append(f"- {key}: {stats['length_cm'][key]:.1f}")
    lines.append("\n## Top lemmas")
    for lemma, count in stats["top_lemmas"].items():
        lines.append(f"- {lemma}: {count}")
    lines.append("\n## Top lemmas by guide")
    for guide, top in stats["top_lemmas_by_guide"].items():
        lines.append(f"- **{guide}**: " + ", ".join(f"{lem} ({c})" for lem, c in top.items()))
    lines.append("\n## Top onomatopoeia")
    for span, count in stats["top_onomatopoeia"]:
        lines.append(f"- \"{span}\": {count}")
    report_path = config.output_path("songlex_corpus_report.md")
    report_path.write_text("\n".join(lines))
    logging.info("Wrote corpus description to %s", report_path)
    return stats
