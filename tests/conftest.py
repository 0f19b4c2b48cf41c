import random

import pytest

from track_extractor.core.progress import ProgressEstimator
from track_extractor.models.config import ExtractorConfig
from track_extractor.models.media import MediaFile

from .helpers import FakeToolbox


@pytest.fixture
def toolbox():
    return FakeToolbox()


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "movie.mkv"
    path.write_bytes(b"\x1a\x45\xdf\xa3 fake matroska payload")
    return MediaFile.from_path(path)


@pytest.fixture
def config(tmp_path):
    return ExtractorConfig(
        invocation_timeout=5,
        job_timeout=30,
        progress_tick=0.01,
        config_path=str(tmp_path),
    )


@pytest.fixture
def seeded_estimator():
    return lambda: ProgressEstimator(tick=0.01, rng=random.Random(7))
