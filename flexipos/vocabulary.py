"""
Vocabulary module for flexipos.

Holds the mergeable accumulators filled by the corpus passes and the lemma
vocabulary pass itself. Accumulators never live at module level: every pass
builds its own, per shard, and folds them together with ``merge``.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import AbstractSet, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from .conllu import SentenceReader
from .doc import Token, normalize_forms

logger = logging.getLogger(__name__)

Fold = FrozenSet[int]
LemmaVocabulary = FrozenSet[str]
FormVocabulary = FrozenSet[str]
AmbiguityMap = Mapping[str, str]


def included_files(files: Sequence[Path], fold: Optional[AbstractSet[int]] = None) -> List[Path]:
    """Shards taking part in a pass: every file whose index is not held out."""
    if not fold:
        return list(files)
    return [path for index, path in enumerate(files) if index not in fold]


@dataclass
class DocumentFrequency:
    """Number of shards each lemma occurs in (at least once)."""
    counts: Counter = field(default_factory=Counter)

    def add_document(self, lemmas: AbstractSet[str]) -> None:
        self.counts.update(lemmas)

    def merge(self, other: "DocumentFrequency") -> "DocumentFrequency":
        self.counts.update(other.counts)
        return self

    def vocabulary(self, cutoff: int) -> FrozenSet[str]:
        return frozenset(lemma for lemma, count in self.counts.items() if count > cutoff)


@dataclass
class LexiconCounts:
    """Occurrence counts of simplified forms and their tag distribution."""
    forms: Counter = field(default_factory=Counter)
    tags: Dict[str, Counter] = field(default_factory=lambda: defaultdict(Counter))

    def add(self, token: Token, lemmas: AbstractSet[str]) -> None:
        self.forms[token.simplified] += 1
        if token.lemma in lemmas and token.gold:
            self.tags[token.simplified][token.gold] += 1

    def merge(self, other: "LexiconCounts") -> "LexiconCounts":
        self.forms.update(other.forms)
        for form, counter in other.tags.items():
            self.tags[form].update(counter)
        return self

    def form_set(self, cutoff: int) -> FrozenSet[str]:
        return frozenset(form for form, count in self.forms.items() if count > cutoff)

    def ambiguity_map(self, threshold: float) -> Dict[str, str]:
        """Forms whose most frequent tag covers less than ``threshold`` of their occurrences."""
        ambiguity: Dict[str, str] = {}
        for form, counter in self.tags.items():
            total = sum(counter.values())
            if not total:
                continue
            if max(counter.values()) / total < threshold:
                ambiguity[form] = ambiguity_class(counter)
        return ambiguity


def ambiguity_class(counter: Mapping[str, int]) -> str:
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return "_".join(tag for tag, _ in ranked)


@dataclass(frozen=True)
class Lexica:
    """Vocabularies bound to one model; built together, saved together."""
    lemmas: LemmaVocabulary = frozenset()
    forms: FormVocabulary = frozenset()
    ambiguity: AmbiguityMap = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "lemmas": sorted(self.lemmas),
            "forms": sorted(self.forms),
            "ambiguity": dict(sorted(self.ambiguity.items())),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Lexica":
        return cls(
            lemmas=frozenset(data.get("lemmas", [])),
            forms=frozenset(data.get("forms", [])),
            ambiguity=dict(data.get("ambiguity", {})),
        )


def count_document_lemmas(reader: SentenceReader, path: Path) -> DocumentFrequency:
    lemmas = set()
    for tokens in reader.iter_sentences(path):
        normalize_forms(tokens)
        lemmas.update(token.lemma for token in tokens)
    frequency = DocumentFrequency()
    frequency.add_document(lemmas)
    return frequency


def collect_lemma_set(
    reader: SentenceReader,
    files: Sequence[Path],
    df_cutoff: int,
    fold: Optional[AbstractSet[int]] = None,
) -> FrozenSet[str]:
    """Lemmas whose document frequency over the non-held-out shards exceeds ``df_cutoff``."""
    logger.info("Collecting lemma set (document frequency cutoff: %d)", df_cutoff)
    frequency = merge_all(
        (count_document_lemmas(reader, path) for path in included_files(files, fold)),
        DocumentFrequency(),
    )
    lemmas = frequency.vocabulary(df_cutoff)
    logger.info("- lemma reduction: %d -> %d", len(frequency.counts), len(lemmas))
    return lemmas


def merge_all(accumulators: Iterable, start):
    """Fold a sequence of mergeable accumulators onto ``start``, in place."""
    result = start
    for accumulator in accumulators:
        result = result.merge(accumulator)
    return result
