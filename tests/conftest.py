"""Shared fixtures for the Inspection Toolkit test-suite.

Every test runs against an isolated user config directory so packaged YAML
defaults are used and nothing is written to the real home directory.
"""

import logging
from pathlib import Path
import sys

import pytest

# Ensure the repository root is importable when running pytest from anywhere
sys.path.insert(0, str(Path(__file__).parent.parent))

from inspection_toolkit.config import ConfigManager
from inspection_toolkit.core.models import (
    Detail,
    DetailType,
    Document,
    Item,
    Media,
    MediaKind,
    NonConformity,
    Severity,
    Topic,
)

# Configure test logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config manager at an empty per-test directory."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("INSPECTION_TOOLKIT_CONFIG_DIR", str(config_dir))
    ConfigManager.reset()
    yield config_dir
    ConfigManager.reset()


def make_media(media_id: str, kind: MediaKind = MediaKind.IMAGE) -> Media:
    return Media(id=media_id, kind=kind, url=f"https://cdn.example.com/{media_id}")


@pytest.fixture
def img1():
    return make_media("img1")


@pytest.fixture
def img2():
    return make_media("img2")


@pytest.fixture
def sample_document(img1, img2):
    """Three topics; the first one is fully populated down to a non-conformity.

    0 Sala [topic_photo]
      0/0 Parede
        0/0/0 Pintura [img1, img2] observation="x"
          0/0/0/0 nc_paint "Fissura"
        0/0/1 Tomadas (boolean)
      0/1 Piso
    1 Cozinha
      1/0 Pia
    2 Quarto
    """
    painting = Detail(
        name="Pintura",
        observation="x",
        media=(img1, img2),
        non_conformities=(
            NonConformity(id="nc_paint", description="Fissura", severity=Severity.ALTA),
        ),
    )
    sockets = Detail(name="Tomadas", type=DetailType.BOOLEAN, value=True)
    return Document(
        id="insp-1",
        title="Apartamento 101",
        topics=(
            Topic(
                name="Sala",
                media=(make_media("topic_photo"),),
                items=(
                    Item(name="Parede", details=(painting, sockets)),
                    Item(name="Piso"),
                ),
            ),
            Topic(name="Cozinha", items=(Item(name="Pia"),)),
            Topic(name="Quarto"),
        ),
    )


@pytest.fixture
def scenario_document(img1, img2):
    """Topic "A" > Item "B" > Detail "C" carrying two images."""
    return Document(
        id="insp-2",
        topics=(
            Topic(name="A", items=(Item(name="B", details=(Detail(name="C", media=(img1, img2)),)),)),
        ),
    )
