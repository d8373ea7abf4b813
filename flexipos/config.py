"""
Configuration classes for flexipos.

The configuration file is a small XML document describing how corpus shards
are read and how the classifier is trained::

    <configuration>
      <reader type="pos">
        <column index="0" field="form"/>
        <column index="1" field="lemma"/>
        <column index="2" field="pos"/>
      </reader>
      <train>
        <algorithm name="liblinear" cost="0.1" tolerance="0.1" max_iter="1000" bias="1"/>
      </train>
    </configuration>
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

READER_TYPES = ("pos", "conllu")
ALGORITHMS = ("liblinear",)

TAG_READER = "reader"
TAG_TRAIN = "train"


@dataclass
class ReaderConfig:
    """Column layout of the corpus shards."""
    type: str = "pos"
    form_column: int = 0
    lemma_column: Optional[int] = None
    pos_column: int = 1
    delimiter: str = "\t"
    tag: str = "upos"  # CoNLL-U only: 'upos' or 'xpos'


@dataclass
class TrainerConfig:
    """Hyperparameters handed to the classifier trainer."""
    algorithm: str = "liblinear"
    cost: float = 0.1
    tolerance: float = 0.1
    max_iter: int = 1000
    bias: float = 1.0


@dataclass
class FlexiPosConfig:
    reader: ReaderConfig = field(default_factory=ReaderConfig)
    trainer: TrainerConfig = field(default_factory=TrainerConfig)


def _number(element: ET.Element, name: str, default, cast):
    value = element.get(name)
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError as exc:
        raise ValueError(f"Invalid value for '{name}' on <{element.tag}>: {value!r}") from exc


def _parse_reader(element: Optional[ET.Element]) -> ReaderConfig:
    config = ReaderConfig()
    if element is None:
        return config

    config.type = element.get("type", config.type).lower()
    if config.type not in READER_TYPES:
        raise ValueError(f"Unsupported reader type '{config.type}'. Choose from {', '.join(READER_TYPES)}.")
    config.tag = element.get("tag", config.tag).lower()
    if config.tag not in ("upos", "xpos"):
        raise ValueError(f"Unsupported CoNLL-U tag column '{config.tag}'. Choose from upos, xpos.")
    if config.type == "conllu":
        return config

    columns = {}
    for column in element.findall("column"):
        name = column.get("field", "").lower()
        if name not in ("form", "lemma", "pos"):
            raise ValueError(f"Unknown reader column field '{name}'")
        columns[name] = _number(column, "index", None, int)
        if columns[name] is None or columns[name] < 0:
            raise ValueError(f"Reader column '{name}' needs a non-negative index")
    if columns:
        missing = [name for name in ("form", "pos") if name not in columns]
        if missing:
            raise ValueError(f"Reader configuration is missing column(s): {', '.join(missing)}")
        config.form_column = columns["form"]
        config.pos_column = columns["pos"]
        config.lemma_column = columns.get("lemma")
    delimiter = element.get("delimiter")
    if delimiter:
        config.delimiter = delimiter.encode("utf-8").decode("unicode_escape")
    return config


def _parse_trainer(element: Optional[ET.Element]) -> TrainerConfig:
    config = TrainerConfig()
    if element is None:
        return config
    algorithm = element.find("algorithm")
    if algorithm is None:
        return config

    config.algorithm = algorithm.get("name", config.algorithm).lower()
    if config.algorithm not in ALGORITHMS:
        raise ValueError(f"Unsupported training algorithm '{config.algorithm}'")
    config.cost = _number(algorithm, "cost", config.cost, float)
    config.tolerance = _number(algorithm, "tolerance", config.tolerance, float)
    config.max_iter = _number(algorithm, "max_iter", config.max_iter, int)
    config.bias = _number(algorithm, "bias", config.bias, float)
    if config.cost <= 0:
        raise ValueError("Training cost must be positive")
    return config


def parse_config(text: str) -> FlexiPosConfig:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"Configuration is not well-formed XML: {exc}") from exc
    return FlexiPosConfig(
        reader=_parse_reader(root.find(TAG_READER)),
        trainer=_parse_trainer(root.find(TAG_TRAIN)),
    )


def load_config(path: Path) -> FlexiPosConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    return parse_config(path.read_text(encoding="utf-8"))
