"""End-to-end test of the command-line pipeline."""

from pathlib import Path

import pandas as pd

from songlex.config import SonglexConfig
from songlex.run import main


def _write_lexicons(root: Path) -> dict:
    timbre = root / "timbre.csv"
    timbre.write_text("word,frequency\nclear,40\nthin,25\nbuzzy,5\nrich,10\nsharp,12\n", encoding="utf-8")
    norms = root / "norms.csv"
    norms.write_text(
        "Word,Auditory.mean,Visual.mean,Haptic.mean\n"
        "whistled,4.0,1.0,0.5\n"
        "clear,2.0,4.0,0.5\n"
        "sharp,2.0,2.5,4.0\n"
        "thin,1.5,3.5,2.0\n"
        "ringing,4.8,0.5,0.2\n"
        "trill,4.6,0.2,0.1\n",
        encoding="utf-8",
    )
    pos = root / "pos.csv"
    pos.write_text(
        "Word,Dom_PoS_SUBTLEX,FREQcount\n"
        "clear,Adjective,5000\n"
        "thin,Adjective,2100\n"
        "buzzy,Adjective,3\n"
        "sharp,Adjective,3900\n"
        "rich,Adjective,2600\n"
        "trill,Noun,40\n"
        "phrases,Noun,300\n"
        "whistled,Verb,150\n"
        "ringing,Verb,900\n"
        "ending,Verb,1800\n",
        encoding="utf-8",
    )
    return {"timbre": timbre, "norms": norms, "pos": pos}


def test_main_writes_artifacts(guide_dir: Path, tmp_path: Path) -> None:
    lexicons = _write_lexicons(tmp_path)
    out = tmp_path / "run"
    main(
        [
            str(guide_dir),
            "--output-dir",
            str(out),
            "--timbre",
            str(lexicons["timbre"]),
            "--modality-norms",
            str(lexicons["norms"]),
            "--pos-lexicon",
            str(lexicons["pos"]),
            "--spacy-model",
            "not_an_installed_model",
            "--min-term-count",
            "1",
            "--min-doc-tokens",
            "1",
            "--lsa-components",
            "2",
            "--clusters",
            "2",
        ]
    )

    for name in [
        "songlex_config_snapshot.json",
        "songlex_records.parquet",
        "songlex_tokens.parquet",
        "songlex_tokens_annotated.parquet",
        "songlex_corpus_report.md",
        "songlex_stopword_report.md",
        "songlex_crossref_report.md",
        "songlex_cluster_report.md",
        "songlex_residuals_modality.parquet",
        "songlex_residuals_pos.parquet",
        "songlex_residuals_timbre.parquet",
        "figures/length_histogram.png",
        "figures/top_lemmas.png",
        "figures/lsa_terms.png",
        "figures/residuals_modality.png",
        "figures/residuals_pos.png",
        "figures/residuals_timbre.png",
    ]:
        assert (out / name).exists(), name

    records = pd.read_parquet(out / "songlex_records.parquet")
    assert len(records) == 6
    valid = records["length_cm"].dropna()
    assert len(valid) == 6
    assert valid.between(5, 200).all()
    for text in records["voice_clean"]:
        assert '"' not in text and "*" not in text

    tokens = pd.read_parquet(out / "songlex_tokens.parquet")
    assert (tokens["lemma"].str.len() > 0).all()
    assert "high-pitched" in set(tokens["surface"])

    pos = pd.read_parquet(out / "songlex_residuals_pos.parquet").set_index("pos")
    assert {"Adjective", "Noun", "Verb"} <= set(pos.index)
    assert (pos["observed"] > 0).all()


def test_no_plots_flag(guide_dir: Path, tmp_path: Path) -> None:
    out = tmp_path / "run"
    main([str(guide_dir), "--output-dir", str(out), "--no-plots", "--spacy-model", "missing_model"])
    assert not (out / "figures").exists()
    assert (out / "songlex_corpus_report.md").exists()


def test_from_args_defaults() -> None:
    config = SonglexConfig.from_args(["guides"])
    assert config.guide_dir == "guides"
    assert config.make_plots is True
    assert config.timbre_path is None
    assert config.default_length_unit == "in"
