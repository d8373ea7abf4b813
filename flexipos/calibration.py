"""
Similarity threshold calibration for dynamic model selection.

Leave-one-shard-out cross-validation: for every shard, a domain-specific and
a generalised model are trained on the remaining shards and both tag the
held-out shard. Sentences the domain model tags strictly better contribute
their cosine similarity to the domain vocabulary; the threshold is the
(rounded up) 5th percentile of those similarities.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from .check import Metric, format_accuracy, format_accuracy_table
from .config import TrainerConfig
from .conllu import SentenceReader
from .doc import count_correct, get_labels
from .features import FeatureDescriptor
from .tagger import POSTagger
from .train import DOMAIN, GENERAL, MODEL_SIZE, train_taggers
from .vocabulary import Fold

logger = logging.getLogger(__name__)

SIMILARITY_PERCENTILE = 0.05
THRESHOLD_PRECISION = 1000
# Used when no held-out sentence favoured the domain model
EMPTY_LIST_THRESHOLD = 1.0


@dataclass
class FoldResult:
    index: int
    path: Path
    similarities: List[float] = field(default_factory=list)
    metrics: List[Metric] = field(default_factory=lambda: [Metric() for _ in range(MODEL_SIZE)])


def predict_fold(reader: SentenceReader, path: Path, taggers: Sequence[POSTagger], index: int = 0) -> FoldResult:
    """Tag a held-out shard with both taggers and keep the similarities of domain wins."""
    result = FoldResult(index=index, path=Path(path))
    logger.info("Predicting: %s", path)
    for tokens in reader.iter_sentences(path):
        gold = get_labels(tokens)
        local = [0] * MODEL_SIZE
        for slot in range(MODEL_SIZE):
            taggers[slot].tag(tokens)
            local[slot] = count_correct(tokens, gold)
            result.metrics[slot].update(local[slot], len(gold))

        if local[DOMAIN] > local[GENERAL]:
            similarity = taggers[DOMAIN].cosine_similarity(tokens)
            if similarity > 0:
                result.similarities.append(similarity)

    for slot in range(MODEL_SIZE):
        logger.info("- accuracy %d: %s", slot, format_accuracy(result.metrics[slot]))
    return result


def evaluate_fold(
    reader: SentenceReader,
    files: Sequence[Path],
    fold_index: int,
    descriptor: FeatureDescriptor,
    trainer_config: TrainerConfig,
) -> FoldResult:
    """Train both models without shard ``fold_index`` and score them on it.

    Uses a private reader, so folds can run side by side.
    """
    logger.info("<== Cross validation %d ==>", fold_index)
    fold_reader = SentenceReader(reader.config)
    fold: Fold = frozenset({fold_index})
    taggers = train_taggers(fold_reader, descriptor, trainer_config, files, fold)
    return predict_fold(fold_reader, files[fold_index], taggers, fold_index)


def derive_threshold(similarities: Iterable[float]) -> float:
    """Rounded-up 5th percentile of the similarities; ``1.0`` for an empty list."""
    values = sorted(similarities)
    if not values:
        logger.warning(
            "No held-out sentence was tagged better by the domain model; using threshold %s",
            EMPTY_LIST_THRESHOLD,
        )
        return EMPTY_LIST_THRESHOLD
    # Half-up rounding of the percentile position
    n = min(int(math.floor(len(values) * SIMILARITY_PERCENTILE + 0.5)), len(values) - 1)
    scaled = round(values[n] * THRESHOLD_PRECISION, 6)
    return min(math.ceil(scaled) / THRESHOLD_PRECISION, 1.0)


def run_folds(
    reader: SentenceReader,
    files: Sequence[Path],
    descriptor: FeatureDescriptor,
    trainer_config: TrainerConfig,
    workers: int = 1,
) -> List[FoldResult]:
    if workers <= 1:
        return [evaluate_fold(reader, files, index, descriptor, trainer_config) for index in range(len(files))]

    results: List[FoldResult] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [
            executor.submit(evaluate_fold, reader, files, index, descriptor, trainer_config)
            for index in range(len(files))
        ]
        for future in as_completed(futures):
            results.append(future.result())
    return sorted(results, key=lambda result: result.index)


def summarize_folds(results: Sequence[FoldResult]) -> str:
    rows = []
    totals = [Metric() for _ in range(MODEL_SIZE)]
    for result in results:
        rows.append(
            [result.index, result.path.name]
            + [format_accuracy(metric) for metric in result.metrics]
            + [len(result.similarities)]
        )
        totals = [total.merge(metric) for total, metric in zip(totals, result.metrics)]
    rows.append(["", "(all)"] + [format_accuracy(metric) for metric in totals] + [sum(len(r.similarities) for r in results)])
    return format_accuracy_table(rows, ["Fold", "Held-out file", "Domain", "General", "Domain wins"])


def cross_validate(
    reader: SentenceReader,
    files: Sequence[Path],
    descriptor: FeatureDescriptor,
    trainer_config: TrainerConfig,
    workers: int = 1,
) -> float:
    """Calibrate the similarity threshold over every shard of the training corpus."""
    if len(files) < 2:
        raise ValueError("Cross-validation needs at least two training files")

    results = run_folds(reader, files, descriptor, trainer_config, workers)
    logger.info("Cross-validation results:\n%s", summarize_folds(results))

    similarities = [value for result in results for value in result.similarities]
    threshold = derive_threshold(similarities)
    logger.info("Out-of-domain validation:")
    logger.info("- threshold: %s", threshold)
    return threshold
