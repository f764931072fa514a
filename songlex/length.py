from __future__ import annotations

import logging
import re
from typing import Optional

import numpy as np
import pandas as pd

from .config import SonglexConfig

NUMBER = r"(?:\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?)"

VULGAR_FRACTIONS = {
    "½": " 1/2",
    "⅓": " 1/3",
    "⅔": " 2/3",
    "¼": " 1/4",
    "¾": " 3/4",
    "⅛": " 1/8",
    "⅜": " 3/8",
    "⅝": " 5/8",
    "⅞": " 7/8",
}
VULGAR_RE = re.compile("|".join(VULGAR_FRACTIONS))

MEASURE_RE = re.compile(
    r"(?:\b(?P<label>length|wingspan|weight|ws|wt|l|w)\b\.?\s*:?\s*)?"
    rf"(?P<low>{NUMBER})"
    rf"(?:\s*(?:-|–|—|to)\s*(?P<high>{NUMBER}))?"
    r"\s*(?P<unit>cm\b|mm\b|inches\b|inch\b|in\b\.?|\"|”|''|m\b|kg\b|g\b|oz\b|lbs?\b)?"
)

TO_CM = {"cm": 1.0, "mm": 0.1, "in": 2.54, "m": 100.0}
SKIP_LABELS = {"wingspan", "weight", "ws", "wt", "w"}
SKIP_UNITS = {"g", "kg", "oz", "lb", "lbs"}


def _number(text: str) -> float:
    parts = text.split()
    total = 0.0
    for part in parts:
        if "/" in part:
            num, den = part.split("/")
            total += float(num) / float(den)
        else:
            total += float(part)
    return total


def _unit(raw: Optional[str], default: str) -> str:
    if not raw:
        return default
    raw = raw.rstrip(".")
    if raw in ("in", "inch", "inches", '"', "”", "''"):
        return "in"
    return raw


def parse_length_cm(text, default_unit: str = "in") -> float:
    """Return the body length in centimeters described by a guide size field.

    The first length measurement wins; wingspan and weight figures are skipped
    and ranges collapse to their midpoint. Returns NaN when nothing parses.
    """
    if text is None or (isinstance(text, float) and pd.isna(text)):
        return np.nan
    lowered = VULGAR_RE.sub(lambda m: VULGAR_FRACTIONS[m.group(0)], str(text).lower())
    for match in MEASURE_RE.finditer(lowered):
        label = match.group("label")
        unit = _unit(match.group("unit"), default_unit)
        if label in SKIP_LABELS or unit in SKIP_UNITS:
            continue
        low = _number(match.group("low"))
        high = _number(match.group("high")) if match.group("high") else low
        value = (low + high) / 2.0
        return value * TO_CM[unit]
    return np.nan


def in_plausible_range(value: float, config: SonglexConfig) -> bool:
    return bool(config.min_length_cm <= value <= config.max_length_cm)


def add_length_column(df: pd.DataFrame, config: SonglexConfig) -> pd.DataFrame:
    lengths = []
    unparsed, implausible = 0, 0
    for raw in df["size_raw"]:
        value = parse_length_cm(raw, config.default_length_unit)
        if pd.isna(value):
            unparsed += 1
        elif not in_plausible_range(value, config):
            logging.debug("Discarding implausible length %.1f cm from %r", value, raw)
            implausible += 1
            value = np.nan
        lengths.append(value)
    out = df.copy()
    out["length_cm"] = pd.Series(lengths, index=df.index, dtype=float)
    logging.info(
        "Parsed lengths for %d/%d records (%d unparsed, %d implausible)",
        int(out["length_cm"].notna().sum()),
        len(out),
        unparsed,
        implausible,
    )
    return out
