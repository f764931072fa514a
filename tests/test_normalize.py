"""Tests for voice description normalization."""

import pandas as pd
import pytest
import spacy
from spacy.language import Language

from songlex.config import SonglexConfig
from songlex.noise import load_noise_lists
from songlex.normalize import (
    compound_patterns,
    extract_spans,
    fuse_compounds,
    lemmatize,
    normalize_description,
    normalize_records,
    token_table,
    tokenize,
)


@Language.component("suffix_lemmas")
def suffix_lemmas(doc):
    """Crude lemmatizer: strip -ing/-s, and leave one-letter words without a lemma."""
    for token in doc:
        text = token.text
        if len(text) == 1:
            token.lemma_ = ""
        elif text.endswith("ing"):
            token.lemma_ = text[:-3]
        elif text.endswith("s"):
            token.lemma_ = text[:-1]
        else:
            token.lemma_ = text
    return doc


@pytest.fixture(scope="module")
def suffix_nlp():
    nlp = spacy.blank("en")
    nlp.add_pipe("suffix_lemmas")
    return nlp


@pytest.fixture
def parts(config: SonglexConfig):
    patterns = compound_patterns(config.compounds)
    exceptions = set(config.lemma_exceptions) | {fused for _, fused in patterns}
    return load_noise_lists(config), patterns, exceptions


class TestExtractSpans:
    """Tests for onomatopoeia and marker extraction."""

    def test_quotes_and_markers(self) -> None:
        clean, ono, markers = extract_spans('a sharp "peek" and *tut tut* then “chip”')
        assert ono == ["peek", "chip"]
        assert markers == ["tut tut"]
        assert clean == "a sharp __ono__ and __mark__ then __ono__"

    def test_apostrophes_inside_words_kept(self) -> None:
        clean, ono, _ = extract_spans("the bird’s ‘tsip’ note")
        assert ono == ["tsip"]
        assert "bird's" in clean

    def test_straight_single_quotes(self) -> None:
        clean, ono, _ = extract_spans("a thin 'tsip' and a 'chip-chip' call")
        assert ono == ["tsip", "chip-chip"]
        assert clean == "a thin __ono__ and a __ono__ call"

    def test_straight_apostrophes_inside_words_kept(self) -> None:
        clean, ono, _ = extract_spans("the thrush's 'seet' and the birds' song")
        assert ono == ["seet"]
        assert "thrush's" in clean
        assert "birds' song" in clean

    @pytest.mark.parametrize(
        "text",
        [
            'a "chip" and *flight call*',
            'unbalanced "chip and *note',
            "curly “see-see” and ‘tsip’",
            '"" ** empty spans',
        ],
    )
    def test_no_residual_spans(self, text: str) -> None:
        clean, _, _ = extract_spans(text)
        for char in '"*“”‘’':
            assert char not in clean


class TestCompounds:
    """Tests for compound phrase fusion."""

    def test_space_and_hyphen_variants(self, config: SonglexConfig) -> None:
        patterns = compound_patterns(config.compounds)
        assert fuse_compounds("high pitched and high - pitched", patterns) == (
            "high-pitched and high-pitched"
        )

    def test_word_boundaries(self, config: SonglexConfig) -> None:
        patterns = compound_patterns(["two note"])
        assert fuse_compounds("two notes", patterns) == "two notes"
        assert fuse_compounds("a two note song", patterns) == "a two-note song"


class TestTokenize:
    """Tests for punctuation-based tokenization."""

    def test_split_on_punctuation(self) -> None:
        assert tokenize("clear, whistled (rising) notes; 2-3 secs __ono__") == [
            "clear",
            "whistled",
            "rising",
            "notes",
            "secs",
        ]

    def test_edge_hyphens_stripped(self) -> None:
        assert tokenize("-trill- see-see") == ["trill", "see-see"]


class TestNormalizeDescription:
    """Tests for the full normalization chain."""

    def test_pipeline_order(self, blank_nlp, parts) -> None:
        noise, patterns, exceptions = parts
        result = normalize_description(
            'A High pitched, buzzy "tsee-tsee" followed by *flight call* and rising whistles.',
            blank_nlp,
            noise,
            patterns,
            exceptions,
        )
        assert result.onomatopoeia == ["tsee-tsee"]
        assert result.markers == ["flight call"]
        assert result.tokens == ["high-pitched", "buzzy", "followed", "rising", "whistles"]
        assert result.lemmas == result.tokens
        assert {"a", "by", "and"} <= set(result.noise_hits)

    def test_keep_words_survive_stopword_removal(self, blank_nlp, parts) -> None:
        noise, patterns, exceptions = parts
        result = normalize_description("slurs down then up", blank_nlp, noise, patterns, exceptions)
        assert result.tokens == ["slurs", "down", "up"]

    def test_compound_not_split_by_stop_words(self, blank_nlp, parts) -> None:
        noise, patterns, exceptions = parts
        result = normalize_description("a two note phrase", blank_nlp, noise, patterns, exceptions)
        assert result.tokens == ["two-note", "phrase"]

    def test_empty_and_missing_text(self, blank_nlp, parts) -> None:
        noise, patterns, exceptions = parts
        for text in [None, "", '"only onomatopoeia"', float("nan"), pd.NA, "'tsip'"]:
            result = normalize_description(text, blank_nlp, noise, patterns, exceptions)
            assert result.tokens == []
            assert result.lemmas == []

    def test_deterministic(self, blank_nlp, parts) -> None:
        noise, patterns, exceptions = parts
        text = 'rich caroling of whistled phrases; a sharp "peek"'
        first = normalize_description(text, blank_nlp, noise, patterns, exceptions)
        second = normalize_description(text, blank_nlp, noise, patterns, exceptions)
        assert first == second


class TestLemmatize:
    """Tests for lemmatization with exceptions."""

    def test_exceptions_and_compounds_keep_surface(self, suffix_nlp) -> None:
        tokens = ["whistles", "rattling", "trilling", "high-pitched"]
        lemmas = lemmatize(tokens, suffix_nlp, exceptions={"rattling"})
        assert lemmas == ["whistle", "rattling", "trill", "high-pitched"]

    def test_lemma_never_empty(self, suffix_nlp) -> None:
        tokens = ["x", "notes", "ss", "y"]
        lemmas = lemmatize(tokens, suffix_nlp, exceptions=set())
        assert len(lemmas) == len(tokens)
        assert all(lemma for lemma in lemmas)
        assert lemmas[0] == "x"


class TestNormalizeRecords:
    """Tests for table-level normalization."""

    def test_columns_and_token_table(self, config: SonglexConfig, blank_nlp) -> None:
        records = pd.DataFrame(
            {
                "record_id": ["g:0", "g:1"],
                "guide": ["g", "g"],
                "scientific_name": ["Turdus migratorius", "Hylocichla mustelina"],
                "voice_raw": ['clear whistled "cheerily" phrases', None],
            }
        )
        out = normalize_records(records, config, nlp=blank_nlp)
        assert out.loc[0, "tokens"] == ["clear", "whistled", "phrases"]
        assert out.loc[0, "onomatopoeia"] == ["cheerily"]
        assert out.loc[1, "n_tokens"] == 0

        tokens = token_table(out)
        assert len(tokens) == 3
        assert tokens["position"].tolist() == [0, 1, 2]
        assert set(tokens["record_id"]) == {"g:0"}
        nonempty = tokens[tokens["surface"] != ""]
        assert (nonempty["lemma"].str.len() > 0).all()

    def test_no_records(self, config: SonglexConfig, blank_nlp) -> None:
        records = pd.DataFrame(columns=["record_id", "guide", "scientific_name", "voice_raw"])
        out = normalize_records(records, config, nlp=blank_nlp)
        assert len(out) == 0
        assert {"voice_clean", "tokens", "lemmas", "n_tokens"} <= set(out.columns)

        tokens = token_table(out)
        assert tokens.empty
        assert list(tokens.columns) == [
            "record_id",
            "guide",
            "scientific_name",
            "position",
            "surface",
            "lemma",
        ]
