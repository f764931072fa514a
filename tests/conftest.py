"""Pytest configuration for songlex tests."""

import sys
from pathlib import Path

import pytest
import spacy

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from songlex.config import SonglexConfig  # noqa: E402


@pytest.fixture
def config(tmp_path: Path) -> SonglexConfig:
    """Config writing into a temporary output directory."""
    cfg = SonglexConfig(
        guide_dir=str(tmp_path / "guides"),
        output_dir=str(tmp_path / "out"),
        min_term_count=1,
        min_doc_tokens=1,
        lsa_components=3,
        clustering_k=2,
        make_plots=False,
    )
    cfg.ensure_run_id()
    return cfg


@pytest.fixture(scope="session")
def blank_nlp():
    """spaCy pipeline without a lemmatizer, so lemmas fall back to surface forms."""
    return spacy.blank("en")


@pytest.fixture
def guide_dir(tmp_path: Path) -> Path:
    """Two small guide exports with different header conventions."""
    root = tmp_path / "guides"
    root.mkdir()
    (root / "sibley.csv").write_text(
        "\n".join(
            [
                "Common Name,Scientific Name,Size,Voice",
                'American Robin,Turdus migratorius,L 10 in,'
                '"Song a rich caroling of whistled phrases; call a sharp ""peek"" and *tut tut*"',
                "Wood Thrush,Hylocichla mustelina,L 8 in,Song of clear flutelike whistled phrases ending in a trill",
                "Cedar Waxwing,Bombycilla cedrorum,L 7 in,Call a very high pitched thin buzzy trill",
            ]
        ),
        encoding="utf-8",
    )
    (root / "natgeo.tsv").write_text(
        "\n".join(
            [
                "English Name\tLatin Name\tLength\tSong\tCall",
                "American Robin\tTurdus migratorius\t25 cm\tClear whistled phrases\tA sharp tut",
                "Wood Thrush\tHylocichla mustelina\t19-21 cm\tFlutelike ringing phrases\t",
                "Cedar Waxwing\tBombycilla cedrorum\t18 cm\t\tHigh thin buzzy trill",
            ]
        ),
        encoding="utf-8",
    )
    return root
