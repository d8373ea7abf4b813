import math

import numpy as np
import pytest

from flexipos.doc import Token
from flexipos.features import FeatureDescriptor
from flexipos.tagger import Collect, Extract, POSTagger, cosine_similarity, traverse
from flexipos.trainer import StringModel, TrainingSet
from flexipos.vocabulary import Lexica, LexiconCounts

TEMPLATES_XML = (
    "<feature_template>"
    '<feature f0="i:f"/>'
    '<feature f0="i-1:p"/>'
    "</feature_template>"
)


def _sentence(*pairs):
    return [Token(form=form, gold=gold) for form, gold in pairs]


@pytest.fixture
def templates():
    return FeatureDescriptor.from_string(TEMPLATES_XML).templates


@pytest.fixture
def lexica():
    return Lexica(lemmas=frozenset({"the", "dog"}), forms=frozenset({"the"}))


@pytest.fixture
def history_model():
    # "the" -> DT; anything after DT -> NN; otherwise no evidence
    return StringModel(
        labels=["DT", "NN"],
        features=["0:the", "1:DT"],
        weights=np.array([[2.0, 0.0], [0.0, 1.0]]),
    )


class TestTraverse:
    def test_collect_mode_counts_and_returns_gold_history(self, lexica):
        counts = LexiconCounts()
        tokens = _sentence(("the", "DT"), ("dog", "NN"), ("zorp", "VB"))
        history = traverse(tokens, Collect(counts), (), lexica)
        assert history == ["DT", "NN", "VB"]
        assert counts.forms == {"the": 1, "dog": 1, "zorp": 1}
        assert "zorp" not in counts.tags

    def test_extract_mode_uses_gold_history(self, templates, lexica):
        space = TrainingSet()
        tokens = _sentence(("the", "DT"), ("dog", "NN"))
        traverse(tokens, Extract(space), templates, lexica)
        assert space.instances == [("DT", ["0:the"]), ("NN", ["1:DT"])]

    def test_predict_mode_feeds_predictions_forward(self, templates, lexica, history_model):
        tagger = POSTagger(templates, lexica, history_model)
        tokens = _sentence(("the", "NN"), ("dog", "DT"), ("runs", "VB"))
        assert tagger.tag(tokens) == ["DT", "NN", "DT"]
        assert [t.pos for t in tokens] == ["DT", "NN", "DT"]
        # gold tags are never read while predicting
        assert [t.gold for t in tokens] == ["NN", "DT", "VB"]

    def test_tag_without_model_raises(self, templates, lexica):
        with pytest.raises(RuntimeError):
            POSTagger(templates, lexica).tag(_sentence(("the", "DT")))


class TestCosineSimilarity:
    def test_distinct_lemmas_against_vocabulary(self):
        tokens = _sentence(("the", ""), ("dog", ""), ("the", ""))
        vocabulary = frozenset({"the", "dog", "cat", "bird"})
        assert cosine_similarity(tokens, vocabulary) == pytest.approx(2 / math.sqrt(2 * 4))

    def test_empty_vocabulary_or_sentence_is_zero(self):
        assert cosine_similarity(_sentence(("the", "")), frozenset()) == 0.0
        assert cosine_similarity([], frozenset({"the"})) == 0.0

    def test_bounded_by_one(self):
        tokens = _sentence(("a", ""), ("b", ""))
        assert cosine_similarity(tokens, frozenset({"a", "b"})) == pytest.approx(1.0)
        assert cosine_similarity(_sentence(("c", "")), frozenset({"a", "b"})) == 0.0


class TestPOSTaggerSerialisation:
    def test_dict_round_trip_keeps_predictions(self, templates, lexica, history_model):
        tagger = POSTagger(templates, lexica, history_model)
        restored = POSTagger.from_dict(tagger.to_dict(), templates)
        assert restored.lexica == lexica
        tokens = _sentence(("the", ""), ("dog", ""), ("the", ""))
        assert restored.tag(tokens) == tagger.tag(tokens)
