"""
Lexicon collection for flexipos.

Second corpus pass: runs the tagger in collect mode to build the word-form
vocabulary and the ambiguity classes of genuinely ambiguous forms.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import AbstractSet, FrozenSet, Optional, Sequence

from .conllu import SentenceReader
from .tagger import Collect, traverse
from .vocabulary import Lexica, LexiconCounts, included_files, merge_all

logger = logging.getLogger(__name__)


def count_document_lexica(reader: SentenceReader, path: Path, lemmas: FrozenSet[str]) -> LexiconCounts:
    """Form and tag counts of one shard."""
    counts = LexiconCounts()
    strategy = Collect(counts)
    partial = Lexica(lemmas=lemmas)
    for tokens in reader.iter_sentences(path):
        traverse(tokens, strategy, (), partial)
    return counts


def collect_lexica(
    reader: SentenceReader,
    files: Sequence[Path],
    lemmas: FrozenSet[str],
    feature_cutoff: int,
    ambiguity_threshold: float,
    fold: Optional[AbstractSet[int]] = None,
) -> Lexica:
    """
    Build the form vocabulary and ambiguity map from the non-held-out shards.

    Args:
        reader: Reader used to stream the shards
        files: All corpus shards, in order
        lemmas: Lemma vocabulary of the same fold
        feature_cutoff: Forms must occur more often than this to be kept
        ambiguity_threshold: Forms whose dominant tag share is below this get an ambiguity class
        fold: Indices of held-out shards

    Returns:
        ``Lexica`` bundling ``lemmas`` with the new form set and ambiguity map
    """
    logger.info("Collecting lexica (cutoff: %d, ambiguity threshold: %s)", feature_cutoff, ambiguity_threshold)
    counts = merge_all(
        (count_document_lexica(reader, path, lemmas) for path in included_files(files, fold)),
        LexiconCounts(),
    )
    forms = counts.form_set(feature_cutoff)
    ambiguity = counts.ambiguity_map(ambiguity_threshold)
    logger.info("- # of word-forms: %d", len(forms))
    logger.info("- # of word-forms with ambiguity classes: %d", len(ambiguity))
    return Lexica(lemmas=lemmas, forms=forms, ambiguity=ambiguity)
