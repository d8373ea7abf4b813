"""
Tagger module for flexipos.

Every corpus pass and inference share one left-to-right traversal. What
happens at each token is decided by the strategy handed to :func:`traverse`:

* :class:`Collect` counts word-forms and their tags (lexicon pass)
* :class:`Extract` turns each token into a training instance (feature pass)
* :class:`Predict` queries a model and writes the predicted tag back

The traversal carries the tags assigned so far as ``history``; predicted tags
feed the features of the tokens that follow, so one sentence is always tagged
sequentially.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence, Union

from .doc import Token, normalize_forms
from .features import FeatureTemplate, extract_features
from .trainer import StringModel, TrainingSet
from .vocabulary import Lexica, LexiconCounts


@dataclass
class Collect:
    counts: LexiconCounts

    def on_token(self, tokens: Sequence[Token], index: int, history: Sequence[str], templates, lexica: Lexica) -> str:
        token = tokens[index]
        self.counts.add(token, lexica.lemmas)
        return token.gold


@dataclass
class Extract:
    space: TrainingSet

    def on_token(self, tokens: Sequence[Token], index: int, history: Sequence[str], templates, lexica: Lexica) -> str:
        token = tokens[index]
        self.space.add_instance(token.gold, extract_features(tokens, index, history, templates, lexica))
        return token.gold


@dataclass
class Predict:
    model: StringModel

    def on_token(self, tokens: Sequence[Token], index: int, history: Sequence[str], templates, lexica: Lexica) -> str:
        token = tokens[index]
        token.pos = self.model.predict(extract_features(tokens, index, history, templates, lexica))
        return token.pos


Strategy = Union[Collect, Extract, Predict]


def traverse(
    tokens: Sequence[Token],
    strategy: Strategy,
    templates: Sequence[FeatureTemplate],
    lexica: Lexica,
) -> List[str]:
    """Visit ``tokens`` in order; returns the tag history built along the way."""
    normalize_forms(tokens)
    history: List[str] = []
    for index in range(len(tokens)):
        history.append(strategy.on_token(tokens, index, history, templates, lexica))
    return history


def cosine_similarity(tokens: Sequence[Token], lemmas: AbstractSet[str]) -> float:
    """Cosine between the sentence's binary lemma vector and the vocabulary's indicator vector."""
    normalize_forms(tokens)
    present = {token.lemma for token in tokens}
    if not present or not lemmas:
        return 0.0
    overlap = sum(1 for lemma in present if lemma in lemmas)
    return overlap / math.sqrt(len(present) * len(lemmas))


class POSTagger:
    """A trained model together with the lexica its features were built from."""

    def __init__(
        self,
        templates: Sequence[FeatureTemplate],
        lexica: Lexica,
        model: Optional[StringModel] = None,
    ):
        self.templates = list(templates)
        self.lexica = lexica
        self.model = model

    def tag(self, tokens: Sequence[Token]) -> List[str]:
        if self.model is None:
            raise RuntimeError("POSTagger.tag() needs a trained model")
        return traverse(tokens, Predict(self.model), self.templates, self.lexica)

    def cosine_similarity(self, tokens: Sequence[Token]) -> float:
        return cosine_similarity(tokens, self.lexica.lemmas)

    def to_dict(self) -> dict:
        if self.model is None:
            raise RuntimeError("Cannot serialise a POSTagger without a model")
        return {"lexica": self.lexica.to_dict(), "model": self.model.to_dict()}

    @classmethod
    def from_dict(cls, data: dict, templates: Sequence[FeatureTemplate]) -> "POSTagger":
        return cls(
            templates,
            Lexica.from_dict(data.get("lexica", {})),
            StringModel.from_dict(data["model"]),
        )
