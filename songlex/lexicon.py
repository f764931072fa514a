from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Set

import numpy as np
import pandas as pd
from scipy.stats import chi2_contingency

from .config import SonglexConfig
from .ingest import _choose_column, read_table

WORD_COLUMNS = ["word", "term", "adjective", "descriptor", "lemma"]
FREQ_COLUMNS = ["frequency", "freq", "freqcount", "count", "n"]
POS_COLUMNS = ["pos", "dom_pos_subtlex", "dom_pos", "part_of_speech", "tag"]
DOMINANT_COLUMNS = ["dominant_modality", "dominant.perceptual", "dominantmodality", "dominant"]
MODALITY_RE = re.compile(
    r"^(auditory|gustatory|haptic|olfactory|visual|interoceptive)(?:[._ ]mean)?$", re.I
)


def load_lexicon(path: str, word_column: Optional[str] = None, extra: Optional[Dict[str, List[str]]] = None) -> pd.DataFrame:
    """Read a reference word list keyed by lowercased ``word``.

    ``extra`` maps canonical names to header candidates; matched columns are
    renamed, unmatched ones are left out.
    """
    # "null" and "na" are words in these lists
    raw = read_table(path, keep_default_na=False, na_values=[""])
    word_col = word_column or _choose_column(raw, WORD_COLUMNS)
    if word_col is None or word_col not in raw.columns:
        raise ValueError(f"No word column in lexicon {path}; columns: {list(raw.columns)}")
    raw = raw[raw[word_col].notna()]
    out = pd.DataFrame({"word": raw[word_col].astype(str).str.strip().str.lower()})
    for canonical, candidates in (extra or {}).items():
        col = _choose_column(raw, candidates)
        if col is not None:
            out[canonical] = raw[col].to_numpy()
    out = out[out["word"] != ""]
    dupes = out.duplicated(subset="word", keep="first")
    if dupes.any():
        logging.info("Lexicon %s: keeping first of %d duplicate words", path, int(dupes.sum()))
    out = out[~dupes].reset_index(drop=True)
    logging.info("Loaded lexicon %s with %d words", path, len(out))
    return out


def load_timbre(path: str) -> pd.DataFrame:
    lex = load_lexicon(path, extra={"frequency": FREQ_COLUMNS})
    if "frequency" in lex.columns:
        lex["frequency"] = pd.to_numeric(lex["frequency"], errors="coerce").fillna(0)
    return lex


def load_pos(path: str) -> pd.DataFrame:
    lex = load_lexicon(path, extra={"pos": POS_COLUMNS, "frequency": FREQ_COLUMNS})
    if "pos" not in lex.columns:
        raise ValueError(f"No part-of-speech column in {path}")
    lex["pos"] = lex["pos"].replace("", np.nan)
    if "frequency" in lex.columns:
        lex["frequency"] = pd.to_numeric(lex["frequency"], errors="coerce").fillna(0)
    return lex


def load_modality(path: str) -> pd.DataFrame:
    raw = read_table(path, keep_default_na=False, na_values=[""], nrows=0)
    strengths = {}
    for col in raw.columns:
        match = MODALITY_RE.match(str(col).strip())
        if match:
            strengths[match.group(1).lower()] = [col]
    lex = load_lexicon(path, extra={"dominant_modality": DOMINANT_COLUMNS, **strengths})
    for modality in strengths:
        lex[modality] = pd.to_numeric(lex[modality], errors="coerce")
    if "dominant_modality" not in lex.columns:
        if not strengths:
            raise ValueError(f"No modality columns in {path}")
        values = lex[list(strengths)]
        lex["dominant_modality"] = values.fillna(-np.inf).idxmax(axis=1)
        lex.loc[values.isna().all(axis=1), "dominant_modality"] = np.nan
    lex["dominant_modality"] = lex["dominant_modality"].astype(str).str.strip().str.lower()
    lex.loc[lex["dominant_modality"].isin(["", "nan"]), "dominant_modality"] = np.nan
    return lex


def corpus_vocabulary(tokens: pd.DataFrame) -> Set[str]:
    return set(tokens["surface"]) | set(tokens["lemma"])


def attested(lexicon: pd.DataFrame, vocabulary: Iterable[str]) -> pd.DataFrame:
    vocab = set(vocabulary)
    out = lexicon.copy()
    out["attested"] = out["word"].isin(vocab)
    return out


def _match_key(tokens: pd.DataFrame, words: pd.Index) -> pd.Series:
    """Surface form when the lexicon has it, otherwise the lemma."""
    return tokens["surface"].where(tokens["surface"].isin(words), tokens["lemma"])


def annotate_tokens(
    tokens: pd.DataFrame,
    timbre: Optional[pd.DataFrame] = None,
    modality: Optional[pd.DataFrame] = None,
    pos: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    out = tokens.copy()
    if timbre is not None:
        words = pd.Index(timbre["word"])
        out["is_timbre"] = _match_key(out, words).isin(words)
    if modality is not None:
        table = modality.set_index("word")
        key = _match_key(out, table.index)
        for col in table.columns.drop(["attested", "frequency"], errors="ignore"):
            out[col] = key.map(table[col]).to_numpy()
    if pos is not None:
        table = pos.set_index("word")
        out["pos"] = _match_key(out, table.index).map(table["pos"]).to_numpy()
    return out


def residual_table(
    reference: pd.Series, observed: pd.Series, threshold: float = 1.96
) -> pd.DataFrame:
    """Chi-square comparison of a reference distribution against corpus counts.

    Both series are reindexed on the union of their keys and zero-filled so a
    category missing on one side still counts toward the expected values.
    Keys that are zero on both sides carry no information and get NaN
    residuals. Test statistics are stored in ``attrs``.
    """
    keys = reference.index.union(observed.index)
    ref = reference.reindex(keys).fillna(0).astype(float)
    obs = observed.reindex(keys).fillna(0).astype(float)
    informative = ((ref + obs) > 0).to_numpy()
    if informative.sum() < 2:
        raise ValueError("Residual analysis needs at least two categories with counts")
    if ref.sum() == 0 or obs.sum() == 0:
        raise ValueError("Residual analysis needs counts on both the reference and the corpus side")

    table = np.vstack([ref.to_numpy()[informative], obs.to_numpy()[informative]])
    chi2, p_value, dof, expected = chi2_contingency(table, correction=False)
    n = table.sum()
    row_share = table.sum(axis=1, keepdims=True) / n
    col_share = table.sum(axis=0, keepdims=True) / n
    pearson = (table - expected) / np.sqrt(expected)
    adjusted = (table - expected) / np.sqrt(expected * (1 - row_share) * (1 - col_share))

    result = pd.DataFrame(
        {
            "reference": ref,
            "observed": obs,
            "reference_share": ref / ref.sum(),
            "observed_share": obs / obs.sum(),
            "expected": np.nan,
            "pearson_residual": np.nan,
            "std_residual": np.nan,
        },
        index=keys,
    )
    result.loc[informative, "expected"] = expected[1]
    result.loc[informative, "pearson_residual"] = pearson[1]
    result.loc[informative, "std_residual"] = adjusted[1]
    result["direction"] = np.select(
        [
            result["std_residual"].isna(),
            result["std_residual"] > threshold,
            result["std_residual"] < -threshold,
        ],
        ["absent", "over", "under"],
        default="even",
    )
    result.index.name = reference.index.name or observed.index.name or "key"
    result = result.sort_values("std_residual", ascending=False, na_position="last")
    result.attrs.update({"chi2": float(chi2), "p_value": float(p_value), "dof": int(dof)})
    return result


def modality_comparison(modality: pd.DataFrame, annotated: pd.DataFrame, threshold: float = 1.96) -> pd.DataFrame:
    reference = modality["dominant_modality"].value_counts().rename_axis("dominant_modality")
    observed = annotated["dominant_modality"].dropna().value_counts().rename_axis("dominant_modality")
    return residual_table(reference, observed, threshold)


def pos_comparison(pos: pd.DataFrame, annotated: pd.DataFrame, threshold: float = 1.96) -> pd.DataFrame:
    reference = pos["pos"].dropna().value_counts().rename_axis("pos")
    observed = annotated["pos"].dropna().value_counts().rename_axis("pos")
    return residual_table(reference, observed, threshold)


def word_frequency_comparison(lexicon: pd.DataFrame, tokens: pd.DataFrame, threshold: float = 1.96) -> pd.DataFrame:
    """Per-word residuals of corpus frequency against the lexicon's own frequency column."""
    words = pd.Index(lexicon["word"])
    reference = lexicon.set_index("word")["frequency"].rename_axis("word")
    key = _match_key(tokens, words)
    observed = key[key.isin(words)].value_counts().rename_axis("word")
    return residual_table(reference, observed, threshold)


def presence_summary(name: str, lexicon: pd.DataFrame) -> Dict[str, float]:
    n_words = len(lexicon)
    n_attested = int(lexicon["attested"].sum())
    return {
        "lexicon": name,
        "words": n_words,
        "attested": n_attested,
        "attested_share": n_attested / n_words if n_words else 0.0,
    }


def _residual_lines(title: str, table: pd.DataFrame, limit: int = 15) -> List[str]:
    lines = [
        f"\n## {title}",
        f"chi2 = {table.attrs['chi2']:.2f}, dof = {table.attrs['dof']}, p = {table.attrs['p_value']:.3g}",
        "",
        "| key | reference | observed | expected | std residual | direction |",
        "| --- | ---: | ---: | ---: | ---: | --- |",
    ]
    shown = pd.concat([table.head(limit), table.dropna(subset=["std_residual"]).tail(limit)])
    shown = shown[~shown.index.duplicated()]
    for key, row in shown.iterrows():
        lines.append(
            f"| {key} | {row['reference']:.0f} | {row['observed']:.0f} | {row['expected']:.1f} "
            f"| {row['std_residual']:.2f} | {row['direction']} |"
        )
    return lines


def cross_reference(tokens: pd.DataFrame, config: SonglexConfig) -> Dict[str, object]:
    lexicons: Dict[str, pd.DataFrame] = {}
    if config.timbre_path:
        lexicons["timbre"] = load_timbre(config.timbre_path)
    if config.modality_path:
        lexicons["modality"] = load_modality(config.modality_path)
    if config.pos_path:
        lexicons["pos"] = load_pos(config.pos_path)
    if not lexicons:
        logging.warning("No reference lexicons configured; skipping cross-referencing.")
        return {"annotated": tokens, "presence": [], "residuals": {}, "lexicons": {}}

    vocabulary = corpus_vocabulary(tokens)
    presence = []
    for name, lex in list(lexicons.items()):
        lexicons[name] = attested(lex, vocabulary)
        lexicons[name].to_parquet(config.output_path(f"songlex_lexicon_{name}.parquet"), index=False)
        presence.append(presence_summary(name, lexicons[name]))

    annotated = annotate_tokens(
        tokens, lexicons.get("timbre"), lexicons.get("modality"), lexicons.get("pos")
    )
    annotated.to_parquet(config.output_path("songlex_tokens_annotated.parquet"), index=False)

    residuals: Dict[str, pd.DataFrame] = {}
    threshold = config.residual_threshold
    comparisons = {}
    if "modality" in lexicons:
        comparisons["modality"] = lambda: modality_comparison(lexicons["modality"], annotated, threshold)
    if "pos" in lexicons:
        comparisons["pos"] = lambda: pos_comparison(lexicons["pos"], annotated, threshold)
    if "timbre" in lexicons and "frequency" in lexicons["timbre"].columns:
        comparisons["timbre"] = lambda: word_frequency_comparison(lexicons["timbre"], tokens, threshold)
    for name, compare in comparisons.items():
        try:
            residuals[name] = compare()
        except ValueError as exc:
            logging.warning("Skipping %s residuals: %s", name, exc)
    for name, table in residuals.items():
        table.reset_index().to_parquet(
            config.output_path(f"songlex_residuals_{name}.parquet"), index=False
        )

    lines = ["# Lexical cross-reference report", f"Run: {config.run_id}", "", "## Attestation"]
    for row in presence:
        lines.append(
            f"- {row['lexicon']}: {row['attested']}/{row['words']} attested ({row['attested_share']:.1%})"
        )
    if "is_timbre" in annotated.columns and len(annotated):
        share = annotated.groupby("guide")["is_timbre"].mean()
        lines.append("\n## Timbre token share by guide")
        for guide, value in share.items():
            lines.append(f"- {guide}: {value:.2%}")
    for name, table in residuals.items():
        lines.extend(_residual_lines(f"Residuals: {name}", table))
    report_path = config.output_path("songlex_crossref_report.md")
    report_path.write_text("\n".join(lines))
    logging.info("Wrote cross-reference report to %s", report_path)
    return {"annotated": annotated, "presence": presence, "residuals": residuals, "lexicons": lexicons}
