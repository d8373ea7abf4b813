from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .check import evaluate_artifact, summarize_evaluation
from .config import load_config
from .conllu import SentenceReader, get_sorted_file_list, write_sentences
from .model_storage import load_models
from .pipeline import FLAG_GENERAL, FLAGS, run_training

TASK_CHOICES = ["train", "tag", "evaluate"]

LOG_FORMAT = "[flexipos] %(message)s"


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logger = logging.getLogger("flexipos")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flexipos",
        description="Part-of-speech tagger training with dynamic model selection",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    subparsers = parser.add_subparsers(dest="task", required=False)

    # Create a parent parser with common arguments that all subcommands inherit
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging")
    parent_parser.add_argument("--verbose", action="store_true", help="Print high-level progress messages")

    # train -------------------------------------------------------------------
    train_parser = subparsers.add_parser(
        "train",
        help="Train POS model(s) from a directory of corpus shards",
        parents=[parent_parser],
    )
    train_parser.add_argument("-i", "--train-dir", type=Path, required=True, help="Directory of training shards")
    train_parser.add_argument("-c", "--config", type=Path, required=True, help="Configuration XML file")
    train_parser.add_argument("-f", "--feature", type=Path, required=True, help="Feature descriptor XML file")
    train_parser.add_argument("-m", "--model", type=Path, required=True, help="Output model archive")
    train_parser.add_argument(
        "-t",
        "--threshold",
        type=float,
        default=-1,
        help="Similarity threshold for dynamic model selection; negative means calibrate by cross-validation",
    )
    train_parser.add_argument(
        "--flag",
        type=int,
        choices=list(FLAGS),
        default=FLAG_GENERAL,
        help="0: domain-specific model, 1: generalised model, 2: both with dynamic model selection",
    )
    train_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of cross-validation folds to run in parallel",
    )

    # tag ---------------------------------------------------------------------
    tag_parser = subparsers.add_parser(
        "tag",
        help="Tag a corpus file with a trained model archive",
        parents=[parent_parser],
    )
    tag_parser.add_argument("-m", "--model", type=Path, required=True, help="Model archive")
    tag_parser.add_argument("-c", "--config", type=Path, required=True, help="Configuration XML file (reader layout)")
    tag_parser.add_argument("-i", "--input", type=Path, required=True, help="Input file")
    tag_parser.add_argument("-o", "--output", type=Path, default=None, help="Output file (default: stdout)")

    # evaluate ----------------------------------------------------------------
    evaluate_parser = subparsers.add_parser(
        "evaluate",
        help="Report tagging accuracy of a model archive on gold shards",
        parents=[parent_parser],
    )
    evaluate_parser.add_argument("-m", "--model", type=Path, required=True, help="Model archive")
    evaluate_parser.add_argument("-c", "--config", type=Path, required=True, help="Configuration XML file (reader layout)")
    evaluate_parser.add_argument("-i", "--input", type=Path, required=True, help="Directory of gold shards")

    return parser


def run_train(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    threshold = run_training(
        config,
        args.feature,
        args.train_dir,
        args.model,
        threshold=args.threshold,
        flag=args.flag,
        workers=args.workers,
    )
    if threshold is not None:
        print(f"[flexipos] Similarity threshold: {threshold}", file=sys.stderr)
    print(f"[flexipos] Model saved to {args.model}", file=sys.stderr)
    return 0


def run_tag(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    artifact = load_models(args.model)
    reader = SentenceReader(config.reader)
    sentences = []
    for tokens in reader.iter_sentences(args.input):
        artifact.tag(tokens)
        sentences.append(tokens)

    if args.output is None:
        write_sentences(sentences, sys.stdout)
    else:
        with args.output.open("w", encoding="utf-8") as handle:
            write_sentences(sentences, handle)
    return 0


def run_evaluate(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    artifact = load_models(args.model)
    reader = SentenceReader(config.reader)
    files = get_sorted_file_list(args.input)
    results = evaluate_artifact(artifact, reader, files)
    print(summarize_evaluation(results, len(artifact.taggers)))
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    else:
        argv = list(argv)

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.task:
        parser.error("No task specified. Use one of: " + ", ".join(TASK_CHOICES))

    configure_logging(verbose=args.verbose, debug=args.debug)

    if args.task == "train":
        return run_train(args)
    if args.task == "tag":
        return run_tag(args)
    if args.task == "evaluate":
        return run_evaluate(args)

    parser.error(f"Unknown task '{args.task}'. Supported tasks: {', '.join(TASK_CHOICES)}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
