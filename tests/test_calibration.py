import logging
from pathlib import Path

import pytest

from flexipos import calibration
from flexipos.calibration import FoldResult, cross_validate, derive_threshold, predict_fold
from flexipos.features import FeatureDescriptor

from conftest import FEATURE_XML


class StubTagger:
    """Tags every token with gold (``right``) or a fixed wrong tag; fixed similarity."""

    def __init__(self, right, similarity=0.5):
        self.right = right
        self.similarity = similarity

    def tag(self, tokens):
        for token in tokens:
            token.pos = token.gold if self.right(token) else "WRONG"

    def cosine_similarity(self, tokens):
        return self.similarity


class TestDeriveThreshold:
    def test_single_value(self):
        assert derive_threshold([0.42]) == 0.42

    def test_rounds_up_to_three_decimals(self):
        assert derive_threshold([0.1231]) == 0.124
        assert derive_threshold([0.0001]) == 0.001

    def test_fifth_percentile_with_half_up_index(self):
        values = [0.9, 0.05, 0.1234] + [0.5] * 17
        # 20 values: n = floor(1.0 + 0.5) = 1, the second smallest
        assert derive_threshold(values) == 0.124

    def test_small_lists_pick_the_minimum(self):
        assert derive_threshold([0.7, 0.3, 0.9]) == 0.3

    def test_empty_list_falls_back_to_one(self, caplog, monkeypatch):
        monkeypatch.setattr(logging.getLogger("flexipos"), "propagate", True)
        with caplog.at_level(logging.WARNING, logger="flexipos.calibration"):
            assert derive_threshold([]) == 1.0
        assert "No held-out sentence" in caplog.text

    @pytest.mark.parametrize("values", [[1.0], [0.9999], [0.0005, 0.2], [0.333333] * 50])
    def test_always_within_unit_interval(self, values):
        assert 0.0 <= derive_threshold(values) <= 1.0


class TestPredictFold:
    def test_only_strict_domain_wins_with_positive_similarity(self, write_corpus, pos_reader):
        path = write_corpus(
            [
                [
                    [("the", "the", "DT"), ("dog", "dog", "NN")],
                    [("cat", "cat", "NN")],
                    [("a", "a", "DT")],
                ]
            ]
        )[0]
        # domain right on nouns, general right on determiners
        domain = StubTagger(lambda token: token.gold == "NN", similarity=0.6)
        general = StubTagger(lambda token: token.gold == "DT")
        result = predict_fold(pos_reader, path, [domain, general], index=3)
        # sentence 1 ties, sentence 2 is a domain win, sentence 3 a general win
        assert result.similarities == [0.6]
        assert result.index == 3
        assert (result.metrics[0].correct, result.metrics[0].total) == (2, 4)
        assert (result.metrics[1].correct, result.metrics[1].total) == (2, 4)

    def test_zero_similarity_is_not_collected(self, write_corpus, pos_reader):
        path = write_corpus([[[("cat", "cat", "NN")]]])[0]
        domain = StubTagger(lambda token: True, similarity=0.0)
        general = StubTagger(lambda token: False)
        assert predict_fold(pos_reader, path, [domain, general]).similarities == []


class TestCrossValidate:
    @pytest.fixture
    def descriptor(self):
        return FeatureDescriptor.from_string(FEATURE_XML)

    def _fake_folds(self, monkeypatch, winners):
        calls = []

        def fake_evaluate_fold(reader, files, fold_index, descriptor, trainer_config):
            calls.append(fold_index)
            return FoldResult(fold_index, Path(files[fold_index]), list(winners.get(fold_index, [])))

        monkeypatch.setattr(calibration, "evaluate_fold", fake_evaluate_fold)
        return calls

    def test_twenty_shards_one_domain_win(self, monkeypatch, pos_reader, descriptor, trainer_config):
        calls = self._fake_folds(monkeypatch, {7: [0.42]})
        files = [Path(f"shard-{i:02d}.txt") for i in range(20)]
        assert cross_validate(pos_reader, files, descriptor, trainer_config) == 0.42
        assert calls == list(range(20))

    def test_parallel_folds_give_same_threshold(self, monkeypatch, pos_reader, descriptor, trainer_config):
        winners = {i: [0.1 * (i % 9) + 0.05] for i in range(12)}
        self._fake_folds(monkeypatch, winners)
        files = [Path(f"shard-{i:02d}.txt") for i in range(12)]
        serial = cross_validate(pos_reader, files, descriptor, trainer_config, workers=1)
        parallel = cross_validate(pos_reader, files, descriptor, trainer_config, workers=4)
        assert serial == parallel

    def test_needs_two_files(self, pos_reader, descriptor, trainer_config):
        with pytest.raises(ValueError):
            cross_validate(pos_reader, [Path("only.txt")], descriptor, trainer_config)

    def test_failing_fold_aborts(self, monkeypatch, pos_reader, descriptor, trainer_config):
        def broken(*args):
            raise OSError("corrupted shard")

        monkeypatch.setattr(calibration, "evaluate_fold", broken)
        with pytest.raises(OSError):
            cross_validate(pos_reader, [Path("a"), Path("b")], descriptor, trainer_config, workers=2)

    def test_real_folds_on_sample_corpus(self, pos_reader, sample_files, descriptor, trainer_config):
        threshold = cross_validate(pos_reader, sample_files, descriptor, trainer_config)
        assert 0.0 <= threshold <= 1.0
