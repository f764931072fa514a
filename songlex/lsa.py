from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, NamedTuple, Tuple

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.decomposition import TruncatedSVD
from sklearn.feature_extraction.text import CountVectorizer, TfidfTransformer
from sklearn.metrics.pairwise import cosine_similarity

from .config import SonglexConfig


class TermMatrix(NamedTuple):
    counts: sparse.csr_matrix
    terms: List[str]
    species: List[str]


@dataclass
class LsaSpace:
    """Reduced term and species vectors from a truncated SVD."""

    terms: List[str]
    species: List[str]
    term_vectors: np.ndarray
    species_vectors: np.ndarray
    explained_variance: np.ndarray

    def _lookup(self, names: List[str], name: str) -> int:
        try:
            return names.index(name)
        except ValueError:
            raise KeyError(f"{name!r} is not in the LSA space") from None

    def neighbours(self, term: str, n: int = 10) -> List[Tuple[str, float]]:
        idx = self._lookup(self.terms, term)
        sims = cosine_similarity(self.term_vectors[idx : idx + 1], self.term_vectors).ravel()
        order = [i for i in np.argsort(-sims, kind="stable") if i != idx]
        return [(self.terms[i], float(sims[i])) for i in order[:n]]

    def similar_species(self, name: str, n: int = 10) -> List[Tuple[str, float]]:
        idx = self._lookup(self.species, name)
        sims = cosine_similarity(self.species_vectors[idx : idx + 1], self.species_vectors).ravel()
        order = [i for i in np.argsort(-sims, kind="stable") if i != idx]
        return [(self.species[i], float(sims[i])) for i in order[:n]]

    def term_frame(self) -> pd.DataFrame:
        coords = self.term_vectors[:, :2]
        frame = pd.DataFrame(
            coords,
            index=pd.Index(self.terms, name="term"),
            columns=["dim_1", "dim_2"][: coords.shape[1]],
        )
        return frame.reset_index()


def _identity(doc: List[str]) -> List[str]:
    return doc


def species_documents(tokens: pd.DataFrame) -> pd.Series:
    """Lemmas per species, pooled across guides in guide/position order."""
    ordered = tokens.sort_values(["scientific_name", "guide", "record_id", "position"])
    return ordered.groupby("scientific_name", sort=True)["lemma"].agg(list)


def build_term_matrix(documents: pd.Series, config: SonglexConfig) -> TermMatrix:
    kept_docs = documents[documents.map(len) >= config.min_doc_tokens]
    logging.info(
        "Kept %d/%d species documents with >= %d tokens",
        len(kept_docs),
        len(documents),
        config.min_doc_tokens,
    )
    if len(kept_docs) < 2:
        raise ValueError("Need at least two species documents for LSA")
    vectorizer = CountVectorizer(analyzer=_identity)
    counts = vectorizer.fit_transform(kept_docs.tolist()).tocsr()
    totals = np.asarray(counts.sum(axis=0)).ravel()
    keep_terms = totals >= config.min_term_count
    counts = counts[:, keep_terms]
    terms = vectorizer.get_feature_names_out()[keep_terms].tolist()
    nonempty = np.asarray(counts.sum(axis=1)).ravel() > 0
    counts = counts[nonempty]
    species = kept_docs.index[nonempty].tolist()
    if len(terms) < 2 or len(species) < 2:
        raise ValueError(
            f"Term matrix too small after filtering ({len(species)} species x {len(terms)} terms)"
        )
    logging.info("Term matrix: %d species x %d terms", len(species), len(terms))
    return TermMatrix(counts, terms, species)


def fit_lsa(matrix: TermMatrix, config: SonglexConfig) -> LsaSpace:
    weighted = TfidfTransformer().fit_transform(matrix.counts)
    n_components = max(1, min(config.lsa_components, min(weighted.shape) - 1))
    svd = TruncatedSVD(n_components=n_components, random_state=config.random_seed)
    species_vectors = svd.fit_transform(weighted)
    term_vectors = svd.components_.T * svd.singular_values_
    logging.info(
        "LSA with %d components explains %.1f%% of variance",
        n_components,
        100 * float(svd.explained_variance_ratio_.sum()),
    )
    return LsaSpace(
        terms=list(matrix.terms),
        species=list(matrix.species),
        term_vectors=term_vectors,
        species_vectors=species_vectors,
        explained_variance=svd.explained_variance_ratio_,
    )


def build_space(tokens: pd.DataFrame, config: SonglexConfig) -> LsaSpace:
    matrix = build_term_matrix(species_documents(tokens), config)
    space = fit_lsa(matrix, config)
    vectors = pd.DataFrame(
        {"term": space.terms, "vector": [v.tolist() for v in space.term_vectors]}
    )
    path = config.output_path("songlex_lsa_terms.parquet")
    vectors.to_parquet(path, index=False)
    logging.info("Wrote LSA term vectors to %s", path)
    return space
