"""
Feature descriptor for flexipos.

The descriptor is an XML file holding the per-model cutoffs and the feature
templates shared by both models::

    <feature_template>
      <cutoff label="0" feature="0" df="0" ambiguity="0.9"/>   <!-- domain -->
      <cutoff label="0" feature="0" df="1" ambiguity="0.9"/>   <!-- general -->
      <feature f0="i-1:f"/>
      <feature f0="i-1:p" f1="i:a"/>
      <feature f0="i:sf3"/>
    </feature_template>

Each ``fN`` attribute of a ``<feature>`` names a token relative to the
current one (``i``, ``i-2``, ``i+1``) and a field:

* ``f``   simplified word form (only if it is in the form vocabulary)
* ``m``   lemma (only if it is in the lemma vocabulary)
* ``p``   tag already assigned to a preceding token
* ``a``   ambiguity class of the form
* ``pfN`` / ``sfN``  prefix / suffix of length N of the lower-cased form
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from .doc import Token

if TYPE_CHECKING:  # pragma: no cover - satisfied at type-check time
    from .vocabulary import Lexica

TAG_CUTOFF = "cutoff"
TAG_FEATURE = "feature"

_FIELD_RE = re.compile(r"^i([+-]\d+)?:(f|m|p|a|pf\d+|sf\d+)$")


class FeatureDescriptorError(ValueError):
    """Raised for a malformed or incomplete feature descriptor."""


@dataclass(frozen=True)
class Cutoff:
    label: int = 0
    feature: int = 0
    document_frequency: int = 0
    ambiguity: float = 0.0


@dataclass(frozen=True)
class FieldSpec:
    offset: int
    field: str
    length: int = 0


@dataclass(frozen=True)
class FeatureTemplate:
    fields: Tuple[FieldSpec, ...]


def parse_field(value: str) -> FieldSpec:
    match = _FIELD_RE.match(value.strip())
    if not match:
        raise FeatureDescriptorError(f"Malformed feature field '{value}'")
    offset = int(match.group(1)) if match.group(1) else 0
    name = match.group(2)
    if name.startswith(("pf", "sf")):
        length = int(name[2:])
        if length < 1:
            raise FeatureDescriptorError(f"Affix length must be positive in '{value}'")
        return FieldSpec(offset=offset, field=name[:2], length=length)
    if name == "p" and offset >= 0:
        raise FeatureDescriptorError(f"Tag history is only available for preceding tokens: '{value}'")
    return FieldSpec(offset=offset, field=name)


def _parse_cutoff(element: ET.Element) -> Cutoff:
    try:
        return Cutoff(
            label=int(element.get("label", 0)),
            feature=int(element.get("feature", 0)),
            document_frequency=int(element.get("df", 0)),
            ambiguity=float(element.get("ambiguity", 0.0)),
        )
    except ValueError as exc:
        raise FeatureDescriptorError(f"Invalid <cutoff> attributes: {element.attrib}") from exc


def _parse_template(element: ET.Element) -> FeatureTemplate:
    keys = sorted(
        (key for key in element.attrib if re.fullmatch(r"f\d+", key)),
        key=lambda key: int(key[1:]),
    )
    if not keys:
        raise FeatureDescriptorError("<feature> element without any fN attribute")
    return FeatureTemplate(fields=tuple(parse_field(element.get(key)) for key in keys))


class FeatureDescriptor:
    """Parsed feature descriptor; ``source`` keeps the descriptor text verbatim."""

    def __init__(self, source: str, cutoffs: List[Cutoff], templates: List[FeatureTemplate]):
        self.source = source
        self.cutoffs = cutoffs
        self.templates = templates

    @classmethod
    def from_string(cls, text: str) -> "FeatureDescriptor":
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise FeatureDescriptorError(f"Feature descriptor is not well-formed XML: {exc}") from exc
        cutoffs = [_parse_cutoff(element) for element in root.findall(TAG_CUTOFF)]
        templates = [_parse_template(element) for element in root.findall(TAG_FEATURE)]
        if not templates:
            raise FeatureDescriptorError("Feature descriptor defines no <feature> templates")
        return cls(text, cutoffs, templates)

    @classmethod
    def from_file(cls, path: Path) -> "FeatureDescriptor":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Feature descriptor not found: {path}")
        return cls.from_string(path.read_text(encoding="utf-8"))

    def validate(self, slots: Iterable[int]) -> None:
        for slot in slots:
            self.cutoff(slot)

    def cutoff(self, slot: int) -> Cutoff:
        if slot < 0 or slot >= len(self.cutoffs):
            raise FeatureDescriptorError(f"Feature descriptor has no <cutoff> for model {slot}")
        return self.cutoffs[slot]

    def document_frequency(self, slot: int) -> int:
        return self.cutoff(slot).document_frequency

    def feature_cutoff(self, slot: int) -> int:
        return self.cutoff(slot).feature

    def label_cutoff(self, slot: int) -> int:
        return self.cutoff(slot).label

    def ambiguity_threshold(self, slot: int) -> float:
        return self.cutoff(slot).ambiguity


def _field_value(
    spec: FieldSpec,
    tokens: Sequence[Token],
    index: int,
    history: Sequence[str],
    lexica: "Lexica",
) -> Optional[str]:
    position = index + spec.offset
    if position < 0 or position >= len(tokens):
        return None
    token = tokens[position]

    if spec.field == "f":
        return token.simplified if token.simplified in lexica.forms else None
    if spec.field == "m":
        return token.lemma if token.lemma in lexica.lemmas else None
    if spec.field == "p":
        return history[position] if position < len(history) else None
    if spec.field == "a":
        return lexica.ambiguity.get(token.simplified)

    lowered = token.simplified.lower()
    if len(lowered) <= spec.length:
        return None
    return lowered[:spec.length] if spec.field == "pf" else lowered[-spec.length:]


def extract_features(
    tokens: Sequence[Token],
    index: int,
    history: Sequence[str],
    templates: Sequence[FeatureTemplate],
    lexica: "Lexica",
) -> List[str]:
    """Instantiate every template at ``index``; templates with a missing field are skipped."""
    features: List[str] = []
    for template_id, template in enumerate(templates):
        values = []
        for spec in template.fields:
            value = _field_value(spec, tokens, index, history, lexica)
            if value is None:
                break
            values.append(value)
        else:
            features.append(f"{template_id}:{'_'.join(values)}")
    return features
