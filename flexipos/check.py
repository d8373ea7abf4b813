from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Sequence

from tabulate import tabulate

from .conllu import SentenceReader
from .doc import count_correct, get_labels

if TYPE_CHECKING:  # pragma: no cover - satisfied at type-check time
    from .model_storage import ModelArtifact


@dataclass
class Metric:
    correct: int = 0
    total: int = 0

    def update(self, correct: int, total: int) -> None:
        self.correct += correct
        self.total += total

    def merge(self, other: "Metric") -> "Metric":
        return Metric(self.correct + other.correct, self.total + other.total)

    @property
    def accuracy(self) -> float | None:
        if self.total == 0:
            return None
        return self.correct / self.total


def format_accuracy(metric: Metric) -> str:
    accuracy = metric.accuracy
    if accuracy is None:
        return "-"
    return f"{accuracy * 100:7.5f} ({metric.correct}/{metric.total})"


def format_accuracy_table(rows: Sequence[Sequence], headers: Sequence[str]) -> str:
    return tabulate(rows, headers=list(headers))


def evaluate_artifact(
    artifact: "ModelArtifact",
    reader: SentenceReader,
    files: Sequence[Path],
) -> List[Dict]:
    """Tag every gold sentence of ``files`` and tally accuracy and model routing per file."""
    results: List[Dict] = []
    for path in files:
        metric = Metric()
        routed = [0] * len(artifact.taggers)
        for tokens in reader.iter_sentences(path):
            gold = get_labels(tokens)
            slot = artifact.tag(tokens)
            routed[slot] += 1
            metric.update(count_correct(tokens, gold), len(gold))
        results.append({"file": path.name, "metric": metric, "routed": routed})
    return results


def summarize_evaluation(results: List[Dict], model_count: int) -> str:
    headers = ["File", "Accuracy"]
    if model_count > 1:
        headers += ["Domain sentences", "General sentences"]
    rows = []
    overall = Metric()
    for result in results:
        overall = overall.merge(result["metric"])
        row = [result["file"], format_accuracy(result["metric"])]
        if model_count > 1:
            row += result["routed"]
        rows.append(row)
    total_row = ["(all)", format_accuracy(overall)]
    if model_count > 1:
        total_row += [sum(r["routed"][0] for r in results), sum(r["routed"][1] for r in results)]
    rows.append(total_row)
    return format_accuracy_table(rows, headers)
