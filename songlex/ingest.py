from __future__ import annotations

import logging
import pathlib
import re
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .config import SonglexConfig

CANONICAL_COLUMNS = {
    "common_name": ["common_name", "common name", "english name", "name"],
    "scientific_name": ["scientific_name", "scientific name", "latin name", "binomial", "sci_name"],
    "size_raw": ["size", "size_raw", "length", "measurements", "dimensions"],
}

# guides that split the description keep it in several of these, merged in file order
VOICE_COLUMNS = ["voice", "voice_raw", "vocalizations", "song", "songs", "call", "calls"]

RECORD_COLUMNS = ["record_id", "guide", "common_name", "scientific_name", "size_raw", "voice_raw"]

GUIDE_SUFFIXES = {".csv": ",", ".tsv": "\t", ".txt": "\t"}


def _header_key(name: str) -> str:
    return re.sub(r"[\s_]+", " ", str(name).strip().lower())


def _choose_column(df: pd.DataFrame, candidates: Iterable[str]) -> Optional[str]:
    keyed = {_header_key(col): col for col in df.columns}
    for name in candidates:
        col = keyed.get(_header_key(name))
        if col is not None:
            return col
    return None


def voice_columns(df: pd.DataFrame) -> List[str]:
    wanted = {_header_key(c) for c in VOICE_COLUMNS}
    return [col for col in df.columns if _header_key(col) in wanted]


def merge_voice(df: pd.DataFrame) -> pd.Series:
    """Concatenate every voice-like column, treating missing values as empty strings."""
    parts = voice_columns(df)
    if not parts:
        return pd.Series([None] * len(df), index=df.index, dtype=object)
    merged = df[parts[0]].fillna("").astype(str)
    for col in parts[1:]:
        merged = merged.str.cat(df[col].fillna("").astype(str), sep=" ")
    return merged.str.split().str.join(" ")


def normalize_columns(df: pd.DataFrame, guide: str) -> pd.DataFrame:
    renamed: Dict[str, str] = {}
    for canonical, options in CANONICAL_COLUMNS.items():
        col = _choose_column(df, options)
        if col:
            renamed[col] = canonical
    normalized = df.rename(columns=renamed)
    if "scientific_name" not in normalized.columns or not voice_columns(df):
        raise ValueError(
            f"Guide {guide!r} needs a scientific name column and at least one voice column; "
            f"found {list(df.columns)}"
        )
    for missing in ["common_name", "size_raw"]:
        if missing not in normalized.columns:
            normalized[missing] = None
    normalized["voice_raw"] = merge_voice(df)
    normalized["scientific_name"] = (
        normalized["scientific_name"].fillna("").astype(str).str.strip().str.split().str.join(" ")
    )
    normalized["guide"] = guide
    normalized["record_id"] = [f"{guide}:{i}" for i in range(len(normalized))]
    return normalized[RECORD_COLUMNS]


def read_table(path: pathlib.Path, **kwargs) -> pd.DataFrame:
    """Read a delimited export, inferring the separator from the file suffix."""
    path = pathlib.Path(path)
    sep = GUIDE_SUFFIXES.get(path.suffix.lower())
    if sep is None:
        raise ValueError(f"Unsupported table file type: {path}")
    if not path.is_file():
        raise FileNotFoundError(f"Table not found: {path}")
    return pd.read_csv(path, sep=sep, **kwargs)


def read_guide(path: pathlib.Path) -> pd.DataFrame:
    df = read_table(path, dtype=str, keep_default_na=True)
    logging.info("Loaded guide %s with %d rows", path.name, len(df))
    return normalize_columns(df, path.stem)


def guide_files(guide_dir: str) -> List[pathlib.Path]:
    root = pathlib.Path(guide_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"Guide directory not found: {guide_dir}")
    files = sorted(p for p in root.iterdir() if p.is_file() and p.suffix.lower() in GUIDE_SUFFIXES)
    if not files:
        raise FileNotFoundError(f"No guide files (.csv/.tsv/.txt) in {guide_dir}")
    return files


def load_guides(guide_dir: str) -> pd.DataFrame:
    frames = [read_guide(path) for path in guide_files(guide_dir)]
    records = pd.concat(frames, ignore_index=True)
    unnamed = records["scientific_name"] == ""
    if unnamed.any():
        logging.warning(
            "Dropping %d rows without a scientific name: %s",
            int(unnamed.sum()),
            ", ".join(records.loc[unnamed, "record_id"].tolist()[:10]),
        )
    records = records[~unnamed]
    dupes = records.duplicated(subset=["scientific_name", "guide"], keep="first")
    if dupes.any():
        logging.warning(
            "Dropping %d duplicate species rows within guides: %s",
            int(dupes.sum()),
            ", ".join(sorted(records.loc[dupes, "record_id"])[:10]),
        )
    records = records[~dupes].reset_index(drop=True)
    empty = int((records["voice_raw"].str.strip() == "").sum())
    if empty:
        logging.info("%d records have no voice description", empty)
    logging.info(
        "Loaded %d records from %d guides", len(records), records["guide"].nunique()
    )
    return records


def ingest(config: SonglexConfig) -> pd.DataFrame:
    records = load_guides(config.guide_dir)
    path = config.output_path("songlex_records_raw.parquet")
    records.to_parquet(path, index=False)
    return records
