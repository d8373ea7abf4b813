"""
Sentence readers and writers for flexipos.

Corpus shards are plain text: one token per line, sentences separated by
blank lines. Two layouts are supported, selected by the reader configuration:
``pos`` (tab-separated columns at configurable positions) and ``conllu``.
"""
from __future__ import annotations

from pathlib import Path
from typing import IO, Iterator, List, Optional, TextIO

from .config import ReaderConfig
from .doc import EMPTY_VALUE, Sentence, Token


def get_sorted_file_list(directory: Path) -> List[Path]:
    """Return the regular, non-hidden files of ``directory`` sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Training directory not found: {directory}")
    return sorted(
        path for path in directory.iterdir()
        if path.is_file() and not path.name.startswith(".")
    )


def _is_conllu_word_line(token_id: str) -> bool:
    # Multiword ranges ("3-4") and empty nodes ("5.1") carry no tag of their own
    return token_id.isdigit()


class SentenceReader:
    """Streams sentences out of one shard at a time.

    Mirrors the open/next/close protocol the training passes expect::

        reader.open(path)
        while (tokens := reader.next()) is not None:
            ...
        reader.close()
    """

    def __init__(self, config: Optional[ReaderConfig] = None):
        self.config = config or ReaderConfig()
        self._handle: Optional[TextIO] = None
        self.path: Optional[Path] = None

    def open(self, path: Path) -> "SentenceReader":
        self.close()
        self.path = Path(path)
        self._handle = self.path.open("r", encoding="utf-8", errors="replace")
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "SentenceReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def next(self) -> Optional[Sentence]:
        """Return the next sentence, or ``None`` at the end of the shard."""
        if self._handle is None:
            raise RuntimeError("SentenceReader.next() called before open()")
        tokens: Sentence = []
        for raw_line in self._handle:
            line = raw_line.rstrip("\r\n")
            if not line.strip():
                if tokens:
                    return tokens
                continue
            if line.startswith("#") and self._is_comment(line):
                continue
            token = self._parse_line(line)
            if token is not None:
                tokens.append(token)
        return tokens or None

    def _is_comment(self, line: str) -> bool:
        # CoNLL-U word lines start with a numeric ID; in column files "#" is a
        # legitimate form ("#\t#", "#hashtag\tNN"), so only a bare line is a comment
        if self.config.type == "conllu":
            return True
        return self.config.delimiter not in line

    def _parse_line(self, line: str) -> Optional[Token]:
        columns = line.split(self.config.delimiter)
        if self.config.type == "conllu":
            if len(columns) < 5:
                raise ValueError(f"Malformed CoNLL-U line in {self.path}: {line!r}")
            if not _is_conllu_word_line(columns[0]):
                return None
            tag_column = 4 if self.config.tag == "xpos" else 3
            return Token(form=columns[1], lemma=columns[2], gold=_field(columns, tag_column))

        form_index = self.config.form_column
        if form_index >= len(columns):
            raise ValueError(f"Missing form column {form_index} in {self.path}: {line!r}")
        lemma = _field(columns, self.config.lemma_column) if self.config.lemma_column is not None else ""
        gold = _field(columns, self.config.pos_column)
        return Token(form=columns[form_index], lemma=lemma, gold=gold)

    def iter_sentences(self, path: Path) -> Iterator[Sentence]:
        self.open(path)
        try:
            while True:
                tokens = self.next()
                if tokens is None:
                    break
                yield tokens
        finally:
            self.close()


def _field(columns: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(columns):
        return ""
    value = columns[index]
    return "" if value == EMPTY_VALUE else value


def write_sentences(sentences: List[Sentence], handle: IO[str]) -> None:
    """Write ``form<TAB>predicted[<TAB>gold]`` rows, one blank line per sentence."""
    for tokens in sentences:
        for token in tokens:
            row = [token.form, token.pos or EMPTY_VALUE]
            if token.gold:
                row.append(token.gold)
            handle.write("\t".join(row) + "\n")
        handle.write("\n")
