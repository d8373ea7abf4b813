"""
Model archive for flexipos.

A trained model is a single zip file with up to three entries:

* ``CONFIGURATION``  similarity threshold (only for dynamic model selection)
* ``FEATURE``        the feature descriptor, verbatim
* ``MODEL``          first line the number of taggers, then one JSON line per
                     tagger in slot order (lexica and model weights together)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional, Sequence

from .doc import Token
from .features import FeatureDescriptor
from .selector import DynamicModelSelector
from .tagger import POSTagger

logger = logging.getLogger(__name__)

ENTRY_CONFIGURATION = "CONFIGURATION"
ENTRY_FEATURE = "FEATURE"
ENTRY_MODEL = "MODEL"


class ModelArtifact:
    """A loaded archive: the descriptor, one or two taggers and the threshold."""

    def __init__(self, descriptor: FeatureDescriptor, taggers: List[POSTagger], threshold: Optional[float] = None):
        if not taggers:
            raise ValueError("A model archive needs at least one tagger")
        self.descriptor = descriptor
        self.taggers = taggers
        self.threshold = threshold
        self.selector = DynamicModelSelector.from_artifact(self) if len(taggers) > 1 else None

    @property
    def is_dynamic(self) -> bool:
        return self.selector is not None

    def tagger_for(self, tokens: Sequence[Token]) -> POSTagger:
        if self.selector is None:
            return self.taggers[0]
        return self.selector.tagger_for(tokens)

    def tag(self, tokens: Sequence[Token]) -> int:
        """Tag ``tokens`` in place; returns the index of the tagger that was used."""
        if self.selector is None:
            self.taggers[0].tag(tokens)
            return 0
        return self.selector.tag(tokens)


def _write_entries(archive: zipfile.ZipFile, feature_source: str, taggers: Sequence[POSTagger], threshold: Optional[float]) -> None:
    if len(taggers) > 1:
        archive.writestr(ENTRY_CONFIGURATION, f"{threshold}\n")
    archive.writestr(ENTRY_FEATURE, feature_source)
    lines = [str(len(taggers))]
    lines.extend(json.dumps(tagger.to_dict(), ensure_ascii=False) for tagger in taggers)
    archive.writestr(ENTRY_MODEL, "\n".join(lines) + "\n")


def save_models(
    path: Path,
    feature_source: str,
    taggers: Sequence[POSTagger],
    threshold: Optional[float] = None,
) -> Path:
    """
    Write the model archive to ``path``.

    The archive is assembled in a temporary file next to ``path`` and moved
    into place once complete, so a failure never leaves a partial archive.
    """
    path = Path(path)
    if not taggers:
        raise ValueError("No taggers to save")
    if len(taggers) > 1 and threshold is None:
        raise ValueError("A dynamic model archive needs a similarity threshold")

    target_dir = path.parent if str(path.parent) else Path(".")
    target_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(suffix=".tmp", dir=target_dir, delete=False) as tmp:
        tmp_path = Path(tmp.name)
    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            _write_entries(archive, feature_source, taggers, threshold)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info("Saved %d model(s) to %s", len(taggers), path)
    return path


def load_models(path: Path) -> ModelArtifact:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model archive not found: {path}")

    with zipfile.ZipFile(path, "r") as archive:
        names = set(archive.namelist())
        for entry in (ENTRY_FEATURE, ENTRY_MODEL):
            if entry not in names:
                raise ValueError(f"Model archive {path} has no {entry} entry")
        descriptor = FeatureDescriptor.from_string(archive.read(ENTRY_FEATURE).decode("utf-8"))
        lines = archive.read(ENTRY_MODEL).decode("utf-8").splitlines()
        threshold = None
        if ENTRY_CONFIGURATION in names:
            threshold = float(archive.read(ENTRY_CONFIGURATION).decode("utf-8").strip())

    try:
        count = int(lines[0])
    except (IndexError, ValueError) as exc:
        raise ValueError(f"Model archive {path} has a malformed {ENTRY_MODEL} entry") from exc
    if len(lines) - 1 < count:
        raise ValueError(f"Model archive {path} declares {count} models but holds {len(lines) - 1}")

    taggers = [POSTagger.from_dict(json.loads(line), descriptor.templates) for line in lines[1:count + 1]]
    logger.debug("Loaded %d model(s) from %s", count, path)
    return ModelArtifact(descriptor, taggers, threshold)
