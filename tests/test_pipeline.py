import pytest

from flexipos import pipeline
from flexipos.config import parse_config
from flexipos.features import FeatureDescriptorError
from flexipos.model_storage import load_models
from flexipos.pipeline import FLAG_DOMAIN, FLAG_DYNAMIC, FLAG_GENERAL, required_slots, run_training

from conftest import CONFIG_XML


@pytest.fixture
def config():
    return parse_config(CONFIG_XML)


class TestRequiredSlots:
    def test_flags_map_to_slots(self):
        assert required_slots(FLAG_DOMAIN) == [0]
        assert required_slots(FLAG_GENERAL) == [1]
        assert required_slots(FLAG_DYNAMIC) == [0, 1]

    def test_unknown_flag_raises(self):
        with pytest.raises(ValueError):
            required_slots(7)


class TestRunTraining:
    def test_descriptor_checked_before_any_corpus_pass(self, tmp_path, config):
        descriptor = tmp_path / "one-cutoff.xml"
        descriptor.write_text(
            '<feature_template><cutoff df="0"/><feature f0="i:f"/></feature_template>', encoding="utf-8"
        )
        # the training directory does not even exist
        with pytest.raises(FeatureDescriptorError):
            run_training(config, descriptor, tmp_path / "missing", tmp_path / "model.zip", flag=FLAG_DYNAMIC)
        assert not (tmp_path / "model.zip").exists()

    def test_empty_training_directory_raises(self, tmp_path, config, feature_file):
        (tmp_path / "empty").mkdir()
        with pytest.raises(ValueError):
            run_training(config, feature_file, tmp_path / "empty", tmp_path / "model.zip")

    def test_general_model_only(self, tmp_path, config, feature_file, sample_files):
        model_path = tmp_path / "general.zip"
        assert run_training(config, feature_file, sample_files[0].parent, model_path, flag=FLAG_GENERAL) is None
        artifact = load_models(model_path)
        assert len(artifact.taggers) == 1
        assert artifact.threshold is None

    def test_dynamic_with_given_threshold_skips_calibration(
        self, tmp_path, config, feature_file, sample_files, monkeypatch
    ):
        def fail(*args, **kwargs):
            raise AssertionError("calibration must not run")

        monkeypatch.setattr(pipeline, "cross_validate", fail)
        model_path = tmp_path / "dynamic.zip"
        threshold = run_training(
            config, feature_file, sample_files[0].parent, model_path, threshold=0.3, flag=FLAG_DYNAMIC
        )
        assert threshold == 0.3
        artifact = load_models(model_path)
        assert len(artifact.taggers) == 2
        assert artifact.threshold == 0.3
        # the domain model keeps every lemma, the general one only those seen in two shards
        assert artifact.taggers[1].lexica.lemmas <= artifact.taggers[0].lexica.lemmas

    def test_dynamic_calibrates_negative_threshold(self, tmp_path, config, feature_file, sample_files, monkeypatch):
        monkeypatch.setattr(pipeline, "cross_validate", lambda *args: 0.25)
        model_path = tmp_path / "dynamic.zip"
        assert run_training(config, feature_file, sample_files[0].parent, model_path, flag=FLAG_DYNAMIC) == 0.25
        assert load_models(model_path).threshold == 0.25
