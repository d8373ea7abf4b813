"""
FlexiPOS: part-of-speech tagger training with dynamic model selection.

Trains a domain-specific and a generalised tagger from sharded corpora and
calibrates the similarity threshold that routes each sentence to one of them.
"""

__version__ = "1.0.0"

from flexipos.config import FlexiPosConfig, load_config
from flexipos.model_storage import ModelArtifact, load_models, save_models
from flexipos.pipeline import run_training
from flexipos.selector import DynamicModelSelector
from flexipos.tagger import POSTagger

__all__ = [
    'DynamicModelSelector',
    'FlexiPosConfig',
    'ModelArtifact',
    'POSTagger',
    'load_config',
    'load_models',
    'run_training',
    'save_models',
    '__version__',
]
