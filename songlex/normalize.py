from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

import pandas as pd
import spacy
from spacy.language import Language
from spacy.tokens import Doc

from .config import SonglexConfig
from .noise import is_noise_token, load_noise_lists, normalize_token

INNER_APOSTROPHE_RE = re.compile(r"(?<=\w)’(?=\w)")
QUOTE_RE = re.compile(r"[\"“”]([^\"“”]*)[\"“”]|‘([^‘’]*)’|(?<!\w)'([^']+)'(?!\w)")
MARKER_RE = re.compile(r"\*([^*]*)\*")
STRAY_RE = re.compile(r"[\"“”‘’*]")
SPLIT_RE = re.compile(r"[^\w'\-]+")
NUMERIC_RE = re.compile(r"^[\d.,/\-]+$")

ONO_PLACEHOLDER = "__ono__"
MARKER_PLACEHOLDER = "__mark__"
PLACEHOLDERS = {ONO_PLACEHOLDER, MARKER_PLACEHOLDER}

TEXT_VIEW_VERSION = "songlex.v1"

NORMALIZED_COLUMNS = [
    "voice_clean",
    "onomatopoeia",
    "markers",
    "tokens",
    "lemmas",
    "noise_hits",
    "n_tokens",
]


class NormalizedText(NamedTuple):
    clean_text: str
    onomatopoeia: List[str]
    markers: List[str]
    tokens: List[str]
    lemmas: List[str]
    noise_hits: List[str]


def load_nlp(model_name: str) -> Language:
    try:
        return spacy.load(model_name, disable=["parser", "ner"])
    except OSError:
        logging.warning(
            "spaCy model %s not installed; lemmas fall back to surface forms.", model_name
        )
        return spacy.blank("en")


def extract_spans(text: str) -> Tuple[str, List[str], List[str]]:
    """Pull quoted onomatopoeia and *marker* spans out of lowercased text.

    Each span is replaced by a placeholder so word positions around it survive
    tokenization; the placeholders themselves never become tokens.
    """
    onomatopoeia: List[str] = []
    markers: List[str] = []

    def _ono(match: re.Match) -> str:
        span = next(g for g in match.groups() if g is not None).strip()
        if span:
            onomatopoeia.append(span)
        return f" {ONO_PLACEHOLDER} "

    def _marker(match: re.Match) -> str:
        span = match.group(1).strip()
        if span:
            markers.append(span)
        return f" {MARKER_PLACEHOLDER} "

    text = INNER_APOSTROPHE_RE.sub("'", text)
    text = QUOTE_RE.sub(_ono, text)
    text = MARKER_RE.sub(_marker, text)
    text = STRAY_RE.sub(" ", text)
    return " ".join(text.split()), onomatopoeia, markers


def compound_patterns(compounds: Iterable[str]) -> List[Tuple[re.Pattern, str]]:
    patterns = []
    # longest first so "three note" style phrases are not split by shorter ones
    for phrase in sorted({c.lower().strip() for c in compounds if c.strip()}, key=len, reverse=True):
        words = re.split(r"[\s\-]+", phrase)
        pattern = re.compile(r"\b" + r"[\s\-]+".join(re.escape(w) for w in words) + r"\b")
        patterns.append((pattern, "-".join(words)))
    return patterns


def fuse_compounds(text: str, patterns: List[Tuple[re.Pattern, str]]) -> str:
    for pattern, fused in patterns:
        text = pattern.sub(fused, text)
    return text


def tokenize(text: str) -> List[str]:
    tokens = []
    for raw in SPLIT_RE.split(text):
        tok = normalize_token(raw)
        if not tok or tok in PLACEHOLDERS or NUMERIC_RE.match(tok):
            continue
        tokens.append(tok)
    return tokens


def remove_stopwords(tokens: List[str], noise: Dict[str, Set[str]]) -> Tuple[List[str], List[str]]:
    kept, removed = [], []
    for tok in tokens:
        if is_noise_token(tok, noise):
            removed.append(tok)
        else:
            kept.append(tok)
    return kept, removed


def lemmatize(tokens: List[str], nlp: Language, exceptions: Set[str]) -> List[str]:
    """Lemmatize pre-split tokens; hyphenated compounds and exceptions keep their surface."""
    if not tokens:
        return []
    doc = Doc(nlp.vocab, words=tokens)
    for _, proc in nlp.pipeline:
        doc = proc(doc)
    lemmas = []
    for tok in doc:
        if tok.text in exceptions or "-" in tok.text:
            lemmas.append(tok.text)
        else:
            lemmas.append(tok.lemma_.lower().strip() or tok.text)
    return lemmas


def normalize_description(
    text: Optional[str],
    nlp: Language,
    noise: Dict[str, Set[str]],
    patterns: List[Tuple[re.Pattern, str]],
    exceptions: Set[str],
) -> NormalizedText:
    if text is None or pd.isna(text):
        text = ""
    lowered = str(text).lower()
    clean, onomatopoeia, markers = extract_spans(lowered)
    clean = fuse_compounds(clean, patterns)
    tokens, removed = remove_stopwords(tokenize(clean), noise)
    lemmas = lemmatize(tokens, nlp, exceptions)
    return NormalizedText(clean, onomatopoeia, markers, tokens, lemmas, removed)


def normalize_records(
    records: pd.DataFrame, config: SonglexConfig, nlp: Optional[Language] = None
) -> pd.DataFrame:
    nlp = nlp if nlp is not None else load_nlp(config.spacy_model)
    noise = load_noise_lists(config)
    patterns = compound_patterns(config.compounds)
    exceptions = {e.lower() for e in config.lemma_exceptions} | {fused for _, fused in patterns}
    rows = []
    for voice in records["voice_raw"]:
        normalized = normalize_description(voice, nlp, noise, patterns, exceptions)
        rows.append(
            {
                "voice_clean": normalized.clean_text,
                "onomatopoeia": normalized.onomatopoeia,
                "markers": normalized.markers,
                "tokens": normalized.tokens,
                "lemmas": normalized.lemmas,
                "noise_hits": normalized.noise_hits,
                "n_tokens": len(normalized.tokens),
            }
        )
    normalized_df = pd.DataFrame(rows, index=records.index, columns=NORMALIZED_COLUMNS)
    out = pd.concat([records, normalized_df], axis=1)
    out["text_view_version"] = TEXT_VIEW_VERSION
    logging.info(
        "Normalized %d descriptions into %d tokens", len(out), int(out["n_tokens"].sum())
    )
    return out


def token_table(records: pd.DataFrame) -> pd.DataFrame:
    rows = []
    for _, row in records.iterrows():
        for position, (surface, lemma) in enumerate(zip(row["tokens"], row["lemmas"])):
            rows.append(
                {
                    "record_id": row["record_id"],
                    "guide": row["guide"],
                    "scientific_name": row["scientific_name"],
                    "position": position,
                    "surface": surface,
                    "lemma": lemma,
                }
            )
    columns = ["record_id", "guide", "scientific_name", "position", "surface", "lemma"]
    return pd.DataFrame(rows, columns=columns)


def prepare_corpus(
    records: pd.DataFrame, config: SonglexConfig, nlp: Optional[Language] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    normalized = normalize_records(records, config, nlp=nlp)
    tokens = token_table(normalized)
    normalized.to_parquet(config.output_path("songlex_records.parquet"), index=False)
    tokens.to_parquet(config.output_path("songlex_tokens.parquet"), index=False)
    logging.info("Token table: %d rows, %d types", len(tokens), tokens["surface"].nunique())
    return normalized, tokens
