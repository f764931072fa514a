from __future__ import annotations

import logging
import sys

from .cluster import cluster_report, cluster_terms
from .config import SonglexConfig, save_config_snapshot
from .describe import describe_corpus
from .ingest import ingest
from .length import add_length_column
from .lexicon import cross_reference
from .lsa import build_space
from .noise import noise_report
from .normalize import load_nlp, prepare_corpus
from .plots import plot_all


def main(argv=None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    config = SonglexConfig.from_args(argv)
    logging.info("Starting songlex run with run_id %s", config.ensure_run_id())
    save_config_snapshot(config)

    raw = ingest(config)
    sized = add_length_column(raw, config)
    nlp = load_nlp(config.spacy_model)
    records, tokens = prepare_corpus(sized, config, nlp=nlp)
    noise_report(records, config)
    describe_corpus(records, tokens, config)
    crossref = cross_reference(tokens, config)

    space, clusters = None, None
    try:
        space = build_space(tokens, config)
    except ValueError as exc:
        logging.warning("Skipping LSA: %s", exc)
    else:
        clusters, coherence = cluster_terms(space, config)
        cluster_report(clusters, coherence, space, config)

    if config.make_plots:
        plot_all(records, tokens, crossref["residuals"], config, space=space, clusters=clusters)
    logging.info("Finished run %s; artifacts in %s", config.run_id, config.output_dir)


if __name__ == "__main__":
    main(sys.argv[1:])
