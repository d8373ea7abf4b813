from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .calibration import cross_validate
from .config import FlexiPosConfig
from .conllu import SentenceReader, get_sorted_file_list
from .features import FeatureDescriptor
from .model_storage import save_models
from .tagger import POSTagger
from .train import DOMAIN, GENERAL, MODEL_SIZE, train_tagger, train_taggers

logger = logging.getLogger(__name__)

# Run flags: which model(s) end up in the archive
FLAG_DOMAIN = 0
FLAG_GENERAL = 1
FLAG_DYNAMIC = 2
FLAGS = (FLAG_DOMAIN, FLAG_GENERAL, FLAG_DYNAMIC)


def required_slots(flag: int) -> List[int]:
    if flag == FLAG_DYNAMIC:
        return list(range(MODEL_SIZE))
    if flag == FLAG_DOMAIN:
        return [DOMAIN]
    if flag == FLAG_GENERAL:
        return [GENERAL]
    raise ValueError(f"Unknown training flag {flag}. Choose from {', '.join(str(f) for f in FLAGS)}.")


def run_training(
    config: FlexiPosConfig,
    descriptor_path: Path,
    train_dir: Path,
    model_path: Path,
    threshold: float = -1,
    flag: int = FLAG_GENERAL,
    workers: int = 1,
) -> Optional[float]:
    """
    Train the model(s) selected by ``flag`` on every shard of ``train_dir`` and save the archive.

    With ``FLAG_DYNAMIC`` a negative ``threshold`` is calibrated by cross-validation
    first. Returns the threshold stored in the archive (``None`` for single-model runs).
    """
    slots = required_slots(flag)
    descriptor = FeatureDescriptor.from_file(descriptor_path)
    descriptor.validate(slots)

    files = get_sorted_file_list(train_dir)
    if not files:
        raise ValueError(f"No training files found in {train_dir}")
    logger.info("Training on %d file(s) from %s", len(files), train_dir)

    reader = SentenceReader(config.reader)
    taggers: List[POSTagger]
    stored_threshold: Optional[float] = None

    if flag == FLAG_DYNAMIC:
        if threshold < 0:
            threshold = cross_validate(reader, files, descriptor, config.trainer, workers)
        stored_threshold = float(threshold)
        taggers = train_taggers(reader, descriptor, config.trainer, files)
    else:
        slot = slots[0]
        logger.info("===== Training model %d =====", slot)
        taggers = [train_tagger(reader, descriptor, config.trainer, files, slot)]

    save_models(model_path, descriptor.source, taggers, stored_threshold)
    return stored_threshold
