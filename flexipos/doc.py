from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List

# Placeholder used by CoNLL-U and the column readers for empty fields
EMPTY_VALUE = "_"

URL_FORM = "#url#"

_URL_RE = re.compile(r"^(?:(?:https?|ftp)://|www\.)\S+$|^\S+@\S+\.\w+$", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+(?:[.,]\d+)*")
_PUNCT_RUN_RE = re.compile(r"([^\w\s])\1+")


@dataclass
class Token:
    """A single token of a sentence.

    ``gold`` carries the annotated tag read from the corpus (training only);
    ``pos`` is overwritten by the tagger. ``simplified`` is filled in by
    :func:`normalize_forms`.
    """

    form: str
    lemma: str = ""
    gold: str = ""
    pos: str = ""
    simplified: str = ""


Sentence = List[Token]


def _clean(value: str) -> str:
    return "" if not value or value == EMPTY_VALUE else value


def simplify_form(form: str) -> str:
    """Normalise a surface form: URLs, digit runs and repeated punctuation."""
    if _URL_RE.match(form):
        return URL_FORM
    simplified = _DIGITS_RE.sub("0", form)
    simplified = _PUNCT_RUN_RE.sub(r"\1", simplified)
    return simplified


def normalize_forms(tokens: Iterable[Token]) -> None:
    """Set ``simplified`` and the lower-cased normalised ``lemma`` on each token.

    Tokens without a lemma (empty or ``_``) get their simplified form as lemma.
    Running this twice leaves the tokens unchanged.
    """
    for token in tokens:
        token.simplified = simplify_form(token.form)
        lemma = _clean(token.lemma)
        token.lemma = simplify_form(lemma).lower() if lemma else token.simplified.lower()


def get_labels(tokens: Iterable[Token]) -> List[str]:
    return [token.gold for token in tokens]


def count_correct(tokens: Iterable[Token], gold: List[str]) -> int:
    """Number of tokens whose predicted tag equals the gold tag at the same position."""
    return sum(1 for token, label in zip(tokens, gold) if token.pos == label)
