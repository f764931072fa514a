from __future__ import annotations

import argparse
import json
import pathlib
import uuid
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional


def _default_noise() -> Dict[str, List[str]]:
    return {
        # guide boilerplate that carries no acoustic meaning
        "stopwords": [
            "song",
            "songs",
            "call",
            "calls",
            "callnote",
            "note",
            "notes",
            "given",
            "also",
            "usually",
            "often",
            "sometimes",
            "typically",
            "generally",
            "variable",
            "including",
            "e.g",
            "i.e",
            "etc",
            "like",
            "similar",
            "sp",
        ],
        # spaCy stop words that describe sound in this corpus
        "keep": [
            "down",
            "up",
            "over",
            "off",
            "back",
            "full",
            "empty",
        ],
    }


def _default_compounds() -> List[str]:
    return [
        "high pitched",
        "low pitched",
        "thin voiced",
        "down slurred",
        "up slurred",
        "two parted",
        "three parted",
        "two note",
        "three note",
        "rapid fire",
        "buzzy trill",
        "sing song",
    ]


def _default_lemma_exceptions() -> List[str]:
    return [
        "rattling",
        "ringing",
        "whistled",
        "slurred",
        "burry",
        "scratchy",
        "warbling",
        "bubbling",
        "piping",
        "chattering",
        "cooing",
        "lisping",
    ]


@dataclass
class SonglexConfig:
    """Central configuration for a songlex run."""

    guide_dir: str
    output_dir: str = "outputs"
    timbre_path: Optional[str] = None
    modality_path: Optional[str] = None
    pos_path: Optional[str] = None
    spacy_model: str = "en_core_web_sm"
    default_length_unit: str = "in"
    min_length_cm: float = 5.0
    max_length_cm: float = 200.0
    min_term_count: int = 5
    min_doc_tokens: int = 5
    lsa_components: int = 50
    clustering_k: int = 12
    random_seed: int = 7
    residual_threshold: float = 1.96
    make_plots: bool = True
    noise: Dict[str, List[str]] = field(default_factory=_default_noise)
    compounds: List[str] = field(default_factory=_default_compounds)
    lemma_exceptions: List[str] = field(default_factory=_default_lemma_exceptions)
    run_id: Optional[str] = None

    @classmethod
    def from_args(cls, args: Optional[List[str]] = None) -> "SonglexConfig":
        parser = argparse.ArgumentParser(
            description="Analyse bird voice descriptions from field guides."
        )
        parser.add_argument("guide_dir", help="Directory of delimited field guide exports")
        parser.add_argument(
            "--output-dir",
            default="outputs",
            help="Directory for run artifacts (default: outputs)",
        )
        parser.add_argument("--timbre", dest="timbre_path", help="Timbre adjective list")
        parser.add_argument(
            "--modality-norms", dest="modality_path", help="Sensory modality norm table"
        )
        parser.add_argument("--pos-lexicon", dest="pos_path", help="Part-of-speech lexicon")
        parser.add_argument(
            "--spacy-model",
            default="en_core_web_sm",
            help="spaCy pipeline used for lemmatization",
        )
        parser.add_argument(
            "--default-length-unit",
            choices=["in", "cm", "mm"],
            default="in",
            help="Unit assumed for size fields that print none",
        )
        parser.add_argument(
            "--lsa-components", type=int, default=50, help="Truncated SVD dimensions"
        )
        parser.add_argument(
            "--clusters",
            dest="clustering_k",
            type=int,
            default=12,
            help="Number of KMeans clusters over LSA term vectors",
        )
        parser.add_argument(
            "--min-term-count",
            type=int,
            default=5,
            help="Drop terms seen fewer times than this across species",
        )
        parser.add_argument(
            "--min-doc-tokens",
            type=int,
            default=5,
            help="Drop species documents shorter than this",
        )
        parser.add_argument(
            "--random-seed", type=int, default=7, help="Random seed for reproducibility"
        )
        parser.add_argument(
            "--no-plots",
            dest="make_plots",
            action="store_false",
            help="Skip writing PNG figures",
        )
        parsed = parser.parse_args(args=args)
        return cls(
            guide_dir=parsed.guide_dir,
            output_dir=parsed.output_dir,
            timbre_path=parsed.timbre_path,
            modality_path=parsed.modality_path,
            pos_path=parsed.pos_path,
            spacy_model=parsed.spacy_model,
            default_length_unit=parsed.default_length_unit,
            lsa_components=parsed.lsa_components,
            clustering_k=parsed.clustering_k,
            min_term_count=parsed.min_term_count,
            min_doc_tokens=parsed.min_doc_tokens,
            random_seed=parsed.random_seed,
            make_plots=parsed.make_plots,
        )

    def ensure_run_id(self) -> str:
        if not self.run_id:
            self.run_id = str(uuid.uuid4())
        return self.run_id

    def output_path(self, *parts: str) -> pathlib.Path:
        path = pathlib.Path(self.output_dir).joinpath(*parts)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, sort_keys=True)


def save_config_snapshot(config: SonglexConfig) -> None:
    path = config.output_path("songlex_config_snapshot.json")
    path.write_text(config.to_json())
