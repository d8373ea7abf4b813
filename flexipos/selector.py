"""
Dynamic model selection: route each sentence to the domain-specific or the
generalised tagger depending on its similarity to the domain vocabulary.
"""
from __future__ import annotations

from typing import Sequence

from .doc import Token
from .tagger import POSTagger
from .train import DOMAIN, GENERAL


class DynamicModelSelector:
    """Picks a model per sentence; keeps no state between sentences."""

    def __init__(self, domain: POSTagger, general: POSTagger, threshold: float):
        self.taggers = (domain, general)
        self.threshold = threshold

    @classmethod
    def from_artifact(cls, artifact) -> "DynamicModelSelector":
        if len(artifact.taggers) != 2 or artifact.threshold is None:
            raise ValueError("Dynamic model selection needs a domain model, a general model and a threshold")
        return cls(artifact.taggers[DOMAIN], artifact.taggers[GENERAL], artifact.threshold)

    def choose(self, tokens: Sequence[Token]) -> int:
        similarity = self.taggers[DOMAIN].cosine_similarity(tokens)
        return DOMAIN if similarity >= self.threshold else GENERAL

    def tagger_for(self, tokens: Sequence[Token]) -> POSTagger:
        return self.taggers[self.choose(tokens)]

    def tag(self, tokens: Sequence[Token]) -> int:
        """Tag ``tokens`` in place with the selected model and return its slot."""
        slot = self.choose(tokens)
        self.taggers[slot].tag(tokens)
        return slot
