"""
Trainer module for flexipos.

``TrainingSet`` collects string-feature instances, ``train_model`` fits a
liblinear one-vs-rest SVM on them and ``StringModel`` is the resulting
scoring model, reduced to plain weights so it can be written into the model
archive and reloaded without scikit-learn objects.
"""
from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy import sparse
from sklearn.svm import LinearSVC

from .config import TrainerConfig

logger = logging.getLogger(__name__)


class TrainingSet:
    """Labelled feature instances with label and feature frequency pruning.

    Labels and features are kept only if they occur more often than their
    cutoff; instances whose label is pruned are dropped.
    """

    def __init__(self, label_cutoff: int = 0, feature_cutoff: int = 0):
        self.label_cutoff = label_cutoff
        self.feature_cutoff = feature_cutoff
        self.instances: List[Tuple[str, List[str]]] = []
        self.label_counts: Counter = Counter()
        self.feature_counts: Counter = Counter()

    def __len__(self) -> int:
        return len(self.instances)

    def add_instance(self, label: str, features: Sequence[str]) -> None:
        features = list(dict.fromkeys(features))
        self.instances.append((label, features))
        self.label_counts[label] += 1
        self.feature_counts.update(features)

    def merge(self, other: "TrainingSet") -> "TrainingSet":
        """Fold ``other`` into this set in place."""
        self.instances.extend(other.instances)
        self.label_counts.update(other.label_counts)
        self.feature_counts.update(other.feature_counts)
        return self

    def labels(self) -> List[str]:
        return sorted(label for label, count in self.label_counts.items() if count > self.label_cutoff)

    def features(self) -> List[str]:
        return sorted(name for name, count in self.feature_counts.items() if count > self.feature_cutoff)

    def build(self) -> Tuple[sparse.csr_matrix, np.ndarray, List[str], Dict[str, int]]:
        """Vectorise the pruned instances.

        Returns:
            Tuple of (binary feature matrix, label index per row, labels, feature index)
        """
        labels = self.labels()
        label_index = {label: i for i, label in enumerate(labels)}
        feature_index = {name: i for i, name in enumerate(self.features())}

        rows: List[int] = []
        cols: List[int] = []
        targets: List[int] = []
        for label, features in self.instances:
            if label not in label_index:
                continue
            row = len(targets)
            targets.append(label_index[label])
            for name in features:
                col = feature_index.get(name)
                if col is not None:
                    rows.append(row)
                    cols.append(col)

        matrix = sparse.csr_matrix(
            (np.ones(len(rows)), (np.array(rows, dtype=int), np.array(cols, dtype=int))),
            shape=(len(targets), len(feature_index)),
        )
        return matrix, np.array(targets, dtype=int), labels, feature_index


class StringModel:
    """Linear scoring model over string features."""

    def __init__(
        self,
        labels: List[str],
        features: List[str],
        weights: np.ndarray,
        intercepts: Optional[np.ndarray] = None,
    ):
        self.labels = list(labels)
        self.feature_index = {name: i for i, name in enumerate(features)}
        self.weights = np.asarray(weights, dtype=float).reshape(len(self.labels), len(features))
        if intercepts is None:
            intercepts = np.zeros(len(self.labels))
        self.intercepts = np.asarray(intercepts, dtype=float)

    def scores(self, features: Iterable[str]) -> np.ndarray:
        columns = sorted({self.feature_index[name] for name in features if name in self.feature_index})
        scores = self.intercepts.copy()
        if columns:
            scores += self.weights[:, columns].sum(axis=1)
        return scores

    def predict(self, features: Iterable[str]) -> str:
        return self.labels[int(np.argmax(self.scores(features)))]

    def to_dict(self) -> dict:
        features = sorted(self.feature_index, key=self.feature_index.get)
        return {
            "labels": self.labels,
            "features": features,
            "weights": self.weights.tolist(),
            "intercepts": self.intercepts.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StringModel":
        features = data.get("features", [])
        labels = data["labels"]
        weights = np.array(data.get("weights", []), dtype=float)
        if weights.size == 0:
            weights = np.zeros((len(labels), len(features)))
        intercepts = data.get("intercepts")
        return cls(labels, features, weights, np.array(intercepts, dtype=float) if intercepts else None)


def train_model(space: TrainingSet, config: Optional[TrainerConfig] = None) -> StringModel:
    """Fit a one-vs-rest liblinear SVM on ``space``."""
    config = config or TrainerConfig()
    matrix, targets, labels, feature_index = space.build()
    features = sorted(feature_index, key=feature_index.get)

    if not labels or matrix.shape[0] == 0:
        raise ValueError("Training set is empty after label pruning; nothing to train")
    logger.info(
        "Training %s: %d instances, %d labels, %d features",
        config.algorithm, matrix.shape[0], len(labels), len(features),
    )

    if len(labels) == 1 or not features:
        # Degenerate problem: predict the most frequent surviving label
        majority = int(np.bincount(targets, minlength=len(labels)).argmax())
        intercepts = np.zeros(len(labels))
        intercepts[majority] = 1.0
        return StringModel(labels, features, np.zeros((len(labels), len(features))), intercepts)

    classifier = LinearSVC(
        C=config.cost,
        tol=config.tolerance,
        max_iter=config.max_iter,
        fit_intercept=config.bias > 0,
        intercept_scaling=config.bias if config.bias > 0 else 1.0,
        dual=True,
        random_state=0,
    )
    classifier.fit(matrix, targets)

    coef = classifier.coef_
    # intercept_ is a plain 0.0 when fit_intercept is off
    intercept = np.zeros(coef.shape[0]) + np.asarray(classifier.intercept_, dtype=float)
    if coef.shape[0] == 1:
        # Binary problems come back as a single decision function for classes_[1]
        coef = np.vstack([-coef[0], coef[0]])
        intercept = np.array([-intercept[0], intercept[0]])

    weights = np.zeros((len(labels), len(features)))
    intercepts = np.zeros(len(labels))
    for row, label_id in enumerate(classifier.classes_):
        weights[label_id] = coef[row]
        intercepts[label_id] = intercept[row]
    return StringModel(labels, features, weights, intercepts)
