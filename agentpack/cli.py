"""
Command-line interface for the agentpack tool.

This module orchestrates all other components and provides
the user-facing CLI commands:
- build
- reconstruct
- inspect
- explain
- rules
- help
"""

from __future__ import annotations

import argparse
import logging
import sys
import warnings
from pathlib import Path
from typing import List, Optional

from .archive import Artifact, ArtifactMetadata, ArchiveBuilder
from .config import (
    EXIT_ABORTED,
    EXIT_CAPABILITY_UNAVAILABLE,
    EXIT_FAILURE,
    EXIT_INVALID_INPUT,
    EXIT_OK,
    RECORD_SUFFIX,
    TOOL_VERSION,
    colors_enabled,
    default_artifact_name,
    get_log_level,
)
from .errors import (
    AgentPackError,
    AmbiguousRuleWarning,
    ArtifactFormatError,
    CapabilityUnavailable,
    MappingError,
    SelectionAborted,
)
from .filters import PathFilter
from .log import setup_base_logger
from .mapping import MappingSpec
from .prompts import (
    AcceptAllDecisions,
    ConsolePrompter,
    DecisionSource,
    ScriptedDecisions,
    ask_yes_no,
    overwrite_policy,
)
from .reconstruct import ArchiveReconstructor, Outcome
from .rules import Direction, MappingResolver
from .selector import Selector
from .utils import decode_payload, relative_to_root, short_hash


# ---------------------------------------------------------------------------
# Color output helpers
# ---------------------------------------------------------------------------


class Colors:
    """ANSI color codes for terminal output."""
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def colored(text: str, color: str) -> str:
    """Return colored text for terminal output."""
    if not colors_enabled():
        return text
    return f"{color}{text}{Colors.RESET}"


def print_error(msg: str) -> None:
    """Print error message to stderr."""
    print(colored(f"✗ Error: {msg}", Colors.RED), file=sys.stderr)


def print_success(msg: str) -> None:
    """Print success message."""
    print(colored(f"✓ {msg}", Colors.GREEN))


def print_warning(msg: str) -> None:
    """Print warning message."""
    print(colored(f"⚠ Warning: {msg}", Colors.YELLOW))


def print_info(msg: str) -> None:
    """Print info message."""
    print(colored(f"ℹ {msg}", Colors.CYAN))


# ---------------------------------------------------------------------------
# CLI context
# ---------------------------------------------------------------------------


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(self, verbose: bool, quiet: bool, interactive: Optional[bool] = None):
        self.verbose = verbose
        self.quiet = quiet
        self.interactive = sys.stdin.isatty() if interactive is None else interactive

    def log(self, msg: str) -> None:
        """Log message if not quiet."""
        if not self.quiet:
            print(msg)

    def log_verbose(self, msg: str) -> None:
        """Log message if verbose."""
        if self.verbose:
            print(colored(f"  → {msg}", Colors.BLUE))

    def load_mapping(self, path: Optional[str]) -> Optional[MappingSpec]:
        """
        Load the mapping file named on the command line, if any.

        When a capability needed to read it is missing, an interactive
        operator may choose to carry on without any mapping.
        """

        if not path:
            return None
        try:
            mapping = MappingSpec.load(path)
        except CapabilityUnavailable as e:
            print_warning(str(e))
            if self.interactive and ask_yes_no("Continue WITHOUT applying the mapping? [y/N]"):
                return None
            raise

        summary = mapping.describe()
        self.log_verbose(
            f"Mapping {path}: {summary['groups']} group(s), {summary['rules']} rule(s), "
            f"ignored folders: {', '.join(summary['ignore_folders']) or '(none)'}"
        )
        return mapping

    def choose_artifact_name(self) -> str:
        default_name = default_artifact_name()
        if not self.interactive:
            return default_name
        if ask_yes_no(f"No artifact name provided. Use autogenerated {default_name}? [Y/n]", default=True):
            return default_name
        try:
            name = input("Enter artifact file name: ").strip()
        except EOFError:
            name = ""
        return name or default_name


def _generator_paths() -> List[Path]:
    """The running script, when launched from a file, and the agentpack package itself."""
    paths = [Path(__file__).resolve().parent]
    candidate = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if candidate is not None and candidate.is_file():
        paths.append(candidate)
    return paths


def _report_ambiguities(resolver: MappingResolver, paths: List[str]) -> None:
    reported = set()
    for path in paths:
        for placeholder, sources in resolver.ambiguities(path).items():
            if placeholder in reported:
                continue
            reported.add(placeholder)
            print_warning(
                f"placeholder {placeholder!r} is shared by {len(sources)} sources; "
                f"reconstruction will restore it as {sources[0]!r}"
            )


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def cmd_build(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Select project files and package them into an artifact.
    """
    root = Path(args.root).resolve()
    if not root.is_dir():
        print_error(f"Project root is not a directory: {root}")
        return EXIT_FAILURE

    mapping = ctx.load_mapping(args.mapping)

    artifact_path = Path(args.name or ctx.choose_artifact_name())
    record_path = artifact_path.with_name(artifact_path.stem + RECORD_SUFFIX)

    path_filter = PathFilter.for_project(
        root,
        outputs=[artifact_path, record_path],
        generators=_generator_paths(),
        mapping=mapping,
        mapping_file=Path(args.mapping) if args.mapping else None,
        include_vcs=args.include_git,
        include_ignored=args.include_gitignore,
    )

    decisions: DecisionSource
    if args.all:
        decisions = AcceptAllDecisions()
    elif args.answers:
        decisions = ScriptedDecisions.from_file(Path(args.answers))
    elif ctx.interactive:
        decisions = ConsolePrompter(label=artifact_path.name)
    else:
        print_error("No terminal to ask on; use --all or --answers FILE")
        return EXIT_FAILURE

    ctx.log(colored(f"Selecting files under {root}", Colors.BOLD))
    record = Selector(root, path_filter, decisions).walk()
    ctx.log_verbose(f"{len(record.included)} file(s) selected")
    for failure in record.failures:
        print_error(f"Cannot read directory {failure.path}: {failure.reason}")

    resolver = MappingResolver(mapping) if mapping is not None else None
    if resolver is not None:
        _report_ambiguities(resolver, list(record.included))

    metadata = ArtifactMetadata(project_name=root.name, artifact_name=artifact_path.name)
    result = ArchiveBuilder(root, resolver).build(record.included, metadata)
    artifact = result.artifact

    if args.dry_run:
        ctx.log(colored("[DRY RUN] Files that would be packaged:", Colors.YELLOW))
        ctx.log(artifact.tree)
        return EXIT_OK if result.ok and record.ok else EXIT_FAILURE

    artifact.dump(artifact_path)
    record.dump(
        record_path,
        project_name=metadata.project_name,
        timestamp=artifact.metadata.timestamp,
        artifact_name=artifact_path.name,
        files_tree=artifact.tree,
    )

    for failure in result.failures:
        print_error(f"Failed to read {failure.path}: {failure.reason}")

    if not record.included:
        print_warning("No files were selected")

    print_success(f"Generated {artifact_path} with {len(artifact.entries)} file(s)")
    ctx.log(f"Saved selections to {record_path}")
    if mapping is not None:
        print_info(f"Mapping applied from: {args.mapping} (ignored folders respected)")

    if not result.ok:
        print_warning(f"{len(result.failures)} file(s) could not be read and were left out")
    if not record.ok:
        print_warning(f"{len(record.failures)} directory listing(s) failed; their contents were left out")
    if not (result.ok and record.ok):
        return EXIT_FAILURE
    return EXIT_OK


def cmd_reconstruct(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Write the files of an artifact below a target directory.
    """
    artifact = Artifact.load(args.artifact)
    mapping = ctx.load_mapping(args.mapping)
    meta = artifact.metadata

    ctx.log(colored("Artifact metadata", Colors.BOLD))
    ctx.log("-----------------")
    ctx.log(f"Project   : {meta.project_name}")
    ctx.log(f"Timestamp : {meta.timestamp}")
    ctx.log(f"Mapped    : {'yes' if meta.mapped else 'no'}")
    ctx.log("Files to write:")
    ctx.log(artifact.tree)
    ctx.log("")

    overwrite_all = args.overwrite_all
    prompter: Optional[ConsolePrompter] = None
    if not overwrite_all and ctx.interactive and not args.no_input:
        overwrite_all = ask_yes_no("Proceed and overwrite all existing files without prompting? [y/N]")
        prompter = ConsolePrompter(label=meta.artifact_name)
    overwrite = overwrite_policy(overwrite_all, prompter)

    resolver = MappingResolver(mapping) if mapping is not None else None
    print_info(f"Writing into {Path(args.target).resolve()}")
    reconstructor = ArchiveReconstructor(args.target, resolver=resolver, overwrite=overwrite)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", AmbiguousRuleWarning)
        report = reconstructor.reconstruct(artifact)

    for warning in caught:
        if issubclass(warning.category, AmbiguousRuleWarning):
            print_warning(str(warning.message))

    for result in report.results:
        if result.outcome is Outcome.WRITTEN:
            ctx.log(f"  ✓ Written {result.path}")
        elif result.outcome is Outcome.SKIPPED:
            print_warning(f"Skipping {result.path}")
        else:
            print_error(f"Failed to write {result.path}: {result.reason}")

    ctx.log("")
    summary = (
        f"{len(report.written)} written, {len(report.skipped)} skipped, "
        f"{len(report.failed)} failed"
    )
    if not report.ok:
        print_warning(f"Reconstruction finished with errors: {summary}")
        return EXIT_FAILURE
    print_success(f"Project reconstruction complete: {summary}")
    return EXIT_OK


def cmd_inspect(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Show metadata, tree and per-file details of an artifact.
    """
    artifact = Artifact.load(args.artifact)
    meta = artifact.metadata

    ctx.log(colored(f"\n{'='*60}", Colors.CYAN))
    ctx.log(colored("Artifact Inspection", Colors.BOLD))
    ctx.log(colored(f"{'='*60}\n", Colors.CYAN))

    ctx.log(f"{colored('Artifact:', Colors.BOLD)}     {meta.artifact_name or args.artifact}")
    ctx.log(f"{colored('Project:', Colors.BOLD)}      {meta.project_name}")
    ctx.log(f"{colored('Created:', Colors.BOLD)}      {meta.timestamp}")
    ctx.log(f"{colored('Tool version:', Colors.BOLD)} {meta.tool_version}")
    ctx.log(f"{colored('Mapped:', Colors.BOLD)}       {'yes' if meta.mapped else 'no'}")
    ctx.log(f"{colored('Files:', Colors.BOLD)}        {len(artifact.entries)}\n")

    ctx.log(colored("Tree:", Colors.CYAN))
    ctx.log(artifact.tree)

    ctx.log(f"\n{colored('Payloads:', Colors.CYAN)}")
    corrupt = 0
    for entry in artifact.entries:
        try:
            data = decode_payload(entry.payload)
        except ValueError as e:
            corrupt += 1
            ctx.log(f"  {colored('✗', Colors.RED)} {entry.path}: {e}")
            continue
        digest_ok = not entry.sha256 or short_hash(data) == entry.sha256[:8]
        mark = colored("✓", Colors.GREEN) if digest_ok else colored("✗", Colors.RED)
        if not digest_ok:
            corrupt += 1
        ctx.log(f"  {mark} {entry.path}  {len(data)} bytes  sha256:{entry.sha256[:8] or '-'}")

    ctx.log(colored(f"\n{'='*60}\n", Colors.CYAN))
    return EXIT_FAILURE if corrupt else EXIT_OK


def cmd_explain(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    Explain whether a path would be packaged and which rules rewrite it.
    """
    root = Path(args.root).resolve()
    mapping = ctx.load_mapping(args.mapping)

    rel = relative_to_root(root, args.path) if Path(args.path).exists() else None
    rel = rel or args.path

    path_filter = PathFilter.for_project(
        root,
        mapping=mapping,
        mapping_file=Path(args.mapping) if args.mapping else None,
        include_vcs=args.include_git,
        include_ignored=args.include_gitignore,
    )
    reason = path_filter.explain(rel)

    ctx.log(colored(f"\n{'='*60}", Colors.CYAN))
    ctx.log(colored("Path Evaluation", Colors.BOLD))
    ctx.log(colored(f"{'='*60}\n", Colors.CYAN))

    ctx.log(f"{colored('Path:', Colors.BOLD)} {rel}")
    ctx.log(f"{colored('Root:', Colors.BOLD)} {root}\n")

    ctx.log(colored("Result:", Colors.BOLD))
    if reason is None:
        ctx.log(colored("  ✓ ELIGIBLE for packaging", Colors.GREEN))
    else:
        ctx.log(colored(f"  ✗ EXCLUDED ({reason.value})", Colors.RED))

    if mapping is not None:
        resolver = MappingResolver(mapping)
        groups = resolver.matching_groups(rel)
        ctx.log(f"\n{colored('Rule groups in scope:', Colors.CYAN)}")
        if not groups:
            ctx.log("  (none)")
        for idx, group in groups:
            ctx.log(f"  #{idx}  scope={group.scope}  rules={len(group.substitutions)}")

        direction = Direction.INVERSE if args.inverse else Direction.FORWARD
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", AmbiguousRuleWarning)
            rules = resolver.rules_for(rel, direction)

        ctx.log(f"\n{colored(f'Resolved {direction.value} order:', Colors.CYAN)}")
        for key, replacement in rules.pairs:
            ctx.log(f"  {key!r} → {replacement!r}")

        for placeholder, sources in resolver.ambiguities(rel).items():
            print_warning(
                f"placeholder {placeholder!r} is shared by {', '.join(repr(s) for s in sources)}"
            )

    ctx.log(colored(f"\n{'='*60}\n", Colors.CYAN))
    return EXIT_OK


def cmd_rules(ctx: CLIContext, args: argparse.Namespace) -> int:
    """
    List the ignored folders and rule groups of a mapping file.
    """
    mapping = ctx.load_mapping(args.mapping)
    if mapping is None:
        print_error("A mapping file is required (-m FILE)")
        return EXIT_INVALID_INPUT

    ctx.log(colored(f"Mapping: {args.mapping}", Colors.BOLD))
    ctx.log("")

    ctx.log(colored("Ignored folders:", Colors.CYAN))
    for folder in sorted(mapping.ignore_folders) or ["(none)"]:
        ctx.log(f"  {folder}")
    ctx.log("")

    for idx, group in enumerate(mapping.groups):
        ctx.log(colored(f"Group {idx}:", Colors.CYAN))
        ctx.log(f"  Scope:  {group.scope}")
        ctx.log(f"  Rules:  {len(group.substitutions)}")
        for sub in group.substitutions:
            ctx.log(f"    {sub.source!r} → {sub.placeholder!r}")
        ctx.log("")

    return EXIT_OK


def cmd_help(ctx: Optional[CLIContext], args: argparse.Namespace) -> int:
    """
    Show help message.
    """
    help_text = f"""
{colored('agentpack', Colors.BOLD)} - package project files into a portable, reversible artifact

{colored('USAGE:', Colors.CYAN)}
  agentpack <command> [options]

{colored('DESCRIPTION:', Colors.CYAN)}
  agentpack walks a project, asks which folders and files to include,
  and writes them into one artifact that can rebuild them elsewhere.

  With a mapping file, sensitive strings are replaced by placeholders
  before encoding. Passing the same mapping to 'reconstruct' restores
  them. The mapping file itself is never packaged.

{colored('COMMANDS:', Colors.CYAN)}
  build         Select files and write the artifact and selection record
  reconstruct   Write the files of an artifact into a directory
  inspect       Show metadata, tree and payload details of an artifact
  explain       Explain whether a path is packaged and which rules apply
  rules         List the ignored folders and rule groups of a mapping
  help          Show this help message

{colored('GLOBAL OPTIONS:', Colors.CYAN)}
  -v, --verbose             Enable verbose output
  -q, --quiet               Suppress non-error output
  -h, --help                Show this help message and exit

{colored('BUILD OPTIONS:', Colors.CYAN)}
  -n, --name NAME           Artifact file name (default: Agent<timestamp>.AI)
  -m, --mapping FILE        Mapping file (ignore folders, substitutions)
  -ig, --include-git        Include .git/ and git dotfiles
  -igi, --include-gitignore Include files matched by .gitignore
  --all                     Include every eligible file without asking
  --answers FILE            Answer questions from a JSON file
  --dry-run                 Show what would be packaged

{colored('RECONSTRUCT OPTIONS:', Colors.CYAN)}
  -m, --mapping FILE        Mapping used at build time (inverts substitutions)
  -C, --target DIR          Directory to write into (default: .)
  -y, --overwrite-all       Overwrite existing files without asking
  --no-input                Never prompt; existing files are skipped

{colored('ENVIRONMENT:', Colors.CYAN)}
  AGENTPACK_LOG_LEVEL       Log level for diagnostics (default: WARNING)
  AGENTPACK_NO_GIT          Set to 1 to never use 'git check-ignore'
  NO_COLOR                  Disable colored output

{colored('EXAMPLES:', Colors.CYAN)}
  agentpack build -n project.AI -m map.json
  agentpack build --all -igi
  agentpack reconstruct project.AI -m map.json -C ./restored
  agentpack explain src/config.py -m map.json

{colored('VERSION:', Colors.CYAN)}
  {TOOL_VERSION}
"""
    print(help_text)
    return EXIT_OK


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentpack",
        description="Package project files into a portable, reversible artifact",
        add_help=False,
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )
    parser.add_argument(
        "-h", "--help",
        action="store_true",
        help="Show help message",
    )

    mapping_opt = argparse.ArgumentParser(add_help=False)
    mapping_opt.add_argument("-m", "--mapping", help="Path to mapping file")

    selection_opts = argparse.ArgumentParser(add_help=False)
    selection_opts.add_argument("--root", default=".", help="Project root (default: current directory)")
    selection_opts.add_argument("-ig", "--include-git", action="store_true", help="Include git metadata")
    selection_opts.add_argument("-igi", "--include-gitignore", action="store_true", help="Include gitignored files")

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # build command
    build_parser_ = subparsers.add_parser("build", parents=[mapping_opt, selection_opts], help="Package files")
    build_parser_.add_argument("-n", "--name", help="Artifact file name")
    choose = build_parser_.add_mutually_exclusive_group()
    choose.add_argument("--all", action="store_true", help="Include every eligible file without asking")
    choose.add_argument("--answers", help="JSON file with path -> decision answers")
    build_parser_.add_argument("--dry-run", action="store_true", help="Show what would be packaged")

    # reconstruct command
    reconstruct_parser = subparsers.add_parser("reconstruct", parents=[mapping_opt], help="Rebuild files")
    reconstruct_parser.add_argument("artifact", help="Artifact file")
    reconstruct_parser.add_argument("-C", "--target", default=".", help="Directory to write into")
    reconstruct_parser.add_argument("-y", "--overwrite-all", action="store_true", help="Overwrite without asking")
    reconstruct_parser.add_argument("--no-input", action="store_true", help="Never prompt")

    # inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Show artifact details")
    inspect_parser.add_argument("artifact", help="Artifact file")

    # explain command
    explain_parser = subparsers.add_parser("explain", parents=[mapping_opt, selection_opts], help="Explain a path")
    explain_parser.add_argument("path", help="Project-relative path to explain")
    explain_parser.add_argument("--inverse", action="store_true", help="Show reconstruction order")

    # rules command
    subparsers.add_parser("rules", parents=[mapping_opt], help="List mapping rules")

    # help command
    subparsers.add_parser("help", help="Show help message")

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Show help if requested or no command
    if args.help or not args.command:
        return cmd_help(None, args)

    setup_base_logger(level=logging.DEBUG if args.verbose else get_log_level())

    ctx = CLIContext(verbose=args.verbose, quiet=args.quiet)

    # Dispatch to command
    commands = {
        "build": cmd_build,
        "reconstruct": cmd_reconstruct,
        "inspect": cmd_inspect,
        "explain": cmd_explain,
        "rules": cmd_rules,
        "help": cmd_help,
    }

    cmd_func = commands.get(args.command)
    if not cmd_func:
        print_error(f"Unknown command: {args.command}")
        return EXIT_FAILURE

    try:
        return cmd_func(ctx, args)
    except (MappingError, ArtifactFormatError) as e:
        print_error(str(e))
        return EXIT_INVALID_INPUT
    except CapabilityUnavailable as e:
        print_error(str(e))
        return EXIT_CAPABILITY_UNAVAILABLE
    except (KeyboardInterrupt, SelectionAborted):
        print_error("Interrupted")
        return EXIT_ABORTED
    except AgentPackError as e:
        print_error(str(e))
        return EXIT_FAILURE
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
