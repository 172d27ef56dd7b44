from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .core.models import Sequence
from .core.validation import validate_sequence
from .data.sequence_loader import SequenceLoadError, SequenceRepository, get_repository
from .play import run_play
from .ui.presenters import RichPresenter

_COMMANDS = ("play", "validate", "list")


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--sequence", type=str, default="mystical-academy", help="Bundled sequence id")
    p.add_argument("--file", type=Path, default=None, help="Load the sequence from a JSON file instead")


def _add_play_args(p: argparse.ArgumentParser) -> None:
    _add_source_args(p)
    # If omitted, runs with a random seed for variety. Pass an int to reproduce.
    p.add_argument("--seed", type=int, default=None, help="RNG seed (random if omitted)")
    p.add_argument(
        "--source",
        choices=("draw", "angle"),
        default="draw",
        help="Pick outcomes by weighted draw or by simulated landing angle",
    )
    p.add_argument("--auto", action="store_true", help="Spin every wheel without prompting")


def _load(args: argparse.Namespace, repository: SequenceRepository) -> Sequence:
    if args.file is not None:
        return SequenceRepository.load_file(args.file)
    return repository.get(args.sequence)


def main(argv: list[str] | None = None) -> int:
    """Play a sequence (default), validate sequences, or list the bundled ones."""

    argv = list(sys.argv[1:] if argv is None else argv)
    command = next((t for t in argv if t in _COMMANDS), "play")
    if command in argv:
        argv.remove(command)
    argv.insert(0, command)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--no-color", action="store_true", help="Disable colored output (default is colored)")
    common.add_argument("--verbose", action="store_true", help="Log engine decisions to stderr")

    parser = argparse.ArgumentParser(prog="spinverse", description="Spin your way through a branching story")
    sub = parser.add_subparsers(dest="command")
    _add_play_args(sub.add_parser("play", parents=[common], help="Play a sequence"))
    validate = sub.add_parser("validate", parents=[common], help="Check sequences for authoring problems")
    _add_source_args(validate)
    validate.add_argument("--all", action="store_true", help="Validate every bundled sequence")
    sub.add_parser("list", parents=[common], help="List bundled sequences")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    presenter = RichPresenter(no_color=args.no_color)
    repository = get_repository()
    try:
        if args.command == "list":
            for sequence in repository.all():
                presenter.console.print(f"[bold cyan]{sequence.id}[/]  {sequence.name} ({len(sequence.steps)} steps)")
            return 0
        if args.command == "validate":
            targets = repository.all() if args.all else [_load(args, repository)]
            reports = [(sequence, validate_sequence(sequence)) for sequence in targets]
            for sequence, report in reports:
                presenter.show_validation(sequence, report)
            return 0 if all(report.is_valid for _, report in reports) else 1
        sequence = _load(args, repository)
    except (KeyError, SequenceLoadError) as exc:
        presenter.console.print(f"[red]{exc}[/]")
        return 2

    report = validate_sequence(sequence)
    if not report.is_valid:
        presenter.show_validation(sequence, report)
        return 2

    run_play(sequence, seed=args.seed, source=args.source, presenter=presenter, auto=args.auto)
    return 0


if __name__ == "__main__":
    sys.exit(main())
