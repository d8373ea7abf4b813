from __future__ import annotations

import logging
from pathlib import Path
from typing import AbstractSet, List, Optional, Sequence

from .config import TrainerConfig
from .conllu import SentenceReader
from .features import FeatureDescriptor, FeatureTemplate
from .lexicon import collect_lexica
from .tagger import Extract, POSTagger, traverse
from .trainer import TrainingSet, train_model
from .vocabulary import Lexica, collect_lemma_set, included_files, merge_all

logger = logging.getLogger(__name__)

# Model slots, shared by the feature descriptor, the archive and the selector
DOMAIN = 0
GENERAL = 1
MODEL_SIZE = 2


def count_document_instances(
    reader: SentenceReader,
    path: Path,
    templates: Sequence[FeatureTemplate],
    lexica: Lexica,
    label_cutoff: int,
    feature_cutoff: int,
) -> TrainingSet:
    space = TrainingSet(label_cutoff, feature_cutoff)
    strategy = Extract(space)
    for tokens in reader.iter_sentences(path):
        traverse(tokens, strategy, templates, lexica)
    return space


def collect_training_set(
    reader: SentenceReader,
    files: Sequence[Path],
    descriptor: FeatureDescriptor,
    slot: int,
    lexica: Lexica,
    fold: Optional[AbstractSet[int]] = None,
) -> TrainingSet:
    """Third pass: feature instances of every non-held-out token, with gold history."""
    label_cutoff = descriptor.label_cutoff(slot)
    feature_cutoff = descriptor.feature_cutoff(slot)
    logger.info("Collecting training instances (label cutoff: %d, feature cutoff: %d)", label_cutoff, feature_cutoff)
    space = merge_all(
        (
            count_document_instances(reader, path, descriptor.templates, lexica, label_cutoff, feature_cutoff)
            for path in included_files(files, fold)
        ),
        TrainingSet(label_cutoff, feature_cutoff),
    )
    logger.info("- # of instances: %d", len(space))
    return space


def train_tagger(
    reader: SentenceReader,
    descriptor: FeatureDescriptor,
    trainer_config: TrainerConfig,
    files: Sequence[Path],
    slot: int,
    fold: Optional[AbstractSet[int]] = None,
) -> POSTagger:
    """Train the model of ``slot`` on every shard outside ``fold``."""
    lemmas = collect_lemma_set(reader, files, descriptor.document_frequency(slot), fold)
    lexica = collect_lexica(
        reader,
        files,
        lemmas,
        descriptor.feature_cutoff(slot),
        descriptor.ambiguity_threshold(slot),
        fold,
    )
    space = collect_training_set(reader, files, descriptor, slot, lexica, fold)
    model = train_model(space, trainer_config)
    return POSTagger(descriptor.templates, lexica, model)


def train_taggers(
    reader: SentenceReader,
    descriptor: FeatureDescriptor,
    trainer_config: TrainerConfig,
    files: Sequence[Path],
    fold: Optional[AbstractSet[int]] = None,
) -> List[POSTagger]:
    """Domain-specific and generalised taggers, in slot order."""
    taggers = []
    for slot in range(MODEL_SIZE):
        logger.info("===== Training model %d =====", slot)
        taggers.append(train_tagger(reader, descriptor, trainer_config, files, slot, fold))
    return taggers
