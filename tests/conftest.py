import pytest

import pybioinf as pb


@pytest.fixture(autouse=True)
def _clear_genomes():
    pb.Genome.clear_cache()
    yield
    pb.Genome.clear_cache()


@pytest.fixture
def genome():
    return pb.Genome.from_sizes(
        "test", {"chr1": 10000, "chr2": 5000, "chrM": 100, "chr1_random": 50}
    )


@pytest.fixture
def gq(genome):
    return pb.GenomeQuery(genome)


@pytest.fixture
def chr1(gq):
    return gq["chr1"]


@pytest.fixture
def chr2(gq):
    return gq["chr2"]


@pytest.fixture
def restore_config():
    saved = dict(pb.CONFIG)
    yield pb.CONFIG
    pb.CONFIG.clear()
    pb.CONFIG.update(saved)
