"""Shared test fixtures."""
import pytest

from flexipos.config import ReaderConfig, TrainerConfig
from flexipos.conllu import SentenceReader

FEATURE_XML = """<feature_template>
  <cutoff label="0" feature="0" df="0" ambiguity="0.9"/>
  <cutoff label="0" feature="0" df="1" ambiguity="0.9"/>
  <feature f0="i:f"/>
  <feature f0="i:m"/>
  <feature f0="i-1:p"/>
  <feature f0="i:a"/>
  <feature f0="i:sf2"/>
  <feature f0="i-1:f" f1="i:f"/>
</feature_template>
"""

CONFIG_XML = """<configuration>
  <reader type="pos">
    <column index="0" field="form"/>
    <column index="1" field="lemma"/>
    <column index="2" field="pos"/>
  </reader>
  <train>
    <algorithm name="liblinear" cost="1.0" tolerance="0.01" max_iter="2000" bias="1"/>
  </train>
</configuration>
"""

# Three shards of (form, lemma, tag) sentences
SAMPLE_SHARDS = [
    [
        [("the", "the", "DT"), ("dog", "dog", "NN"), ("runs", "run", "VBZ")],
        [("a", "a", "DT"), ("cat", "cat", "NN"), ("sleeps", "sleep", "VBZ")],
        [("the", "the", "DT"), ("run", "run", "NN"), ("ends", "end", "VBZ")],
    ],
    [
        [("the", "the", "DT"), ("cat", "cat", "NN"), ("runs", "run", "VBZ")],
        [("dogs", "dog", "NNS"), ("run", "run", "VBP")],
        [("a", "a", "DT"), ("bird", "bird", "NN"), ("sings", "sing", "VBZ")],
    ],
    [
        [("the", "the", "DT"), ("bird", "bird", "NN"), ("sleeps", "sleep", "VBZ")],
        [("a", "a", "DT"), ("dog", "dog", "NN"), ("barks", "bark", "VBZ")],
        [("cats", "cat", "NNS"), ("run", "run", "VBP")],
    ],
]


def format_shard(sentences):
    blocks = ["\n".join("\t".join(row) for row in sentence) for sentence in sentences]
    return "\n\n".join(blocks) + "\n"


@pytest.fixture
def write_corpus(tmp_path):
    """Factory writing shards as ``shard-NN.txt`` files and returning their sorted paths."""
    def _write(shards, name="corpus"):
        directory = tmp_path / name
        directory.mkdir()
        paths = []
        for index, sentences in enumerate(shards):
            path = directory / f"shard-{index:02d}.txt"
            path.write_text(format_shard(sentences), encoding="utf-8")
            paths.append(path)
        return paths
    return _write


@pytest.fixture
def sample_files(write_corpus):
    return write_corpus(SAMPLE_SHARDS)


@pytest.fixture
def feature_file(tmp_path):
    path = tmp_path / "feature.xml"
    path.write_text(FEATURE_XML, encoding="utf-8")
    return path


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.xml"
    path.write_text(CONFIG_XML, encoding="utf-8")
    return path


@pytest.fixture
def pos_reader():
    return SentenceReader(ReaderConfig(type="pos", form_column=0, lemma_column=1, pos_column=2))


@pytest.fixture
def trainer_config():
    return TrainerConfig(cost=1.0, tolerance=0.01, max_iter=2000)
