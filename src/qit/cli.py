"""
Command line interface for qit.

Running ``qit`` without a subcommand starts the interactive review: scan the
work tree, classify the changes, let the user pick files or hunks, compose
the commit message and commit it as one transaction. The ``push``, ``undo``
and ``log`` subcommands are thin conveniences around the matching git
commands. Exit codes are listed below and in the README.
"""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from collections import Counter
from pathlib import Path
from typing import List, Optional

import click

from qit import __version__
from qit.changes.scanner import ChangeScanner
from qit.commit.orchestrator import CommitOrchestrator
from qit.commit.plan import CommitPlan
from qit.config.loader import QitConfig, load_config
from qit.errors import (
    AmbiguousOutcomeError,
    CommitFailedError,
    IndexSnapshotError,
    MessageError,
    ProcessError,
    ProcessTimeoutError,
    ScanError,
    StagingDivergedError,
)
from qit.grouping.change_classifier import CommitType, classify
from qit.message.composer import TYPE_ALIASES, CommitMessage, alias_emoji, compose, normalize_type
from qit.output import (
    ProgressIndicator,
    print_error,
    print_info,
    print_process_output,
    print_step,
    print_success,
    print_summary_box,
    print_warning,
)
from qit.selection.review import review_changes
from qit.selection.selector import Selector, SelectorState
from qit.vcs.gateway import ProcessGateway
from qit.vcs.git_client import GitClient

# Create a module-level logger. Attach a null handler and disable
# propagation to avoid logging errors when the root logger's stream is
# closed (such as during unit tests).
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_MESSAGE_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_ROLLED_BACK = 7
EXIT_CANCELLED = 8
EXIT_AMBIGUOUS_OUTCOME = 9

TYPE_CHOICES = [t.value for t in CommitType] + sorted(TYPE_ALIASES)
TOTAL_STEPS = 6


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def configure_logging(verbose: bool) -> None:
    # force=True reconfigures handlers on repeated invocations (tests).
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    if verbose:
        # Module loggers stay silent unless debugging was asked for.
        for name, item in logging.root.manager.loggerDict.items():
            if name.startswith("qit") and isinstance(item, logging.Logger):
                item.propagate = True


def open_repository(config: QitConfig) -> GitClient:
    """Return a client for the repository containing the current directory.

    Raises
    ------
    click.exceptions.Exit
        With code EXIT_NO_REPO outside a git work tree.
    """
    gateway = ProcessGateway(default_timeout=config.git_timeout)
    root = GitClient.find_repo_root(Path.cwd(), gateway, config.git_executable)
    if root is None:
        print_error("Not inside a git repository.")
        raise click.exceptions.Exit(EXIT_NO_REPO)
    return GitClient(root, gateway, config.git_executable)


def edit_text(gateway: ProcessGateway, initial: str = "") -> str:
    """Let the user write free text in ``$EDITOR`` or, without one, inline."""
    editor = os.environ.get("EDITOR")
    if editor:
        print_info("Opening editor...")
        with tempfile.NamedTemporaryFile(mode="w+", delete=False, suffix=".txt", encoding="utf-8") as tmp:
            tmp.write(initial)
            tmp_path = tmp.name
        try:
            parts = shlex.split(editor)
            gateway.run_interactive(parts[0], [*parts[1:], tmp_path])
            with open(tmp_path, "r", encoding="utf-8") as f:
                return f.read().strip()
        except (ProcessError, ProcessTimeoutError) as exc:
            print_error(f"Editor failed: {exc}")
        finally:
            os.unlink(tmp_path)

    click.echo("\n   Enter the commit body below.")
    click.echo("   End with a line containing only a period (.)")
    click.echo("")
    lines: List[str] = []
    while True:
        line = click.prompt("   ", default="", show_default=False)
        if line.strip() == ".":
            break
        lines.append(line)
    return "\n".join(lines).strip()


def show_message(message: CommitMessage) -> None:
    click.echo("\n💬 Commit message:")
    click.echo("   ┌" + "─" * 56 + "┐")
    for line in message.render().splitlines():
        display_line = line[:54] if len(line) > 54 else line
        click.echo(f"   │ {display_line.ljust(54)} │")
    click.echo("   └" + "─" * 56 + "┘")


# ---------------------------------------------------------------------------
# Review workflow
# ---------------------------------------------------------------------------

def run_review(
    yes: bool,
    summary: Optional[str],
    body: Optional[str],
    edit: bool,
    commit_type: Optional[str],
    area: Optional[str],
) -> int:
    """Run the scan, select, compose and commit steps; return the exit code."""
    # Step 1: Configuration
    print_step(1, TOTAL_STEPS, "Loading Configuration")
    config = load_config()
    for name, value in config.describe():
        print_info(f"{name} = {value}", indent=1)

    # Step 2: Scan
    print_step(2, TOTAL_STEPS, "Scanning Changes")
    client = open_repository(config)
    try:
        with ProgressIndicator("Reading work tree changes"):
            change_set = ChangeScanner(client).scan()
    except (ScanError, ProcessTimeoutError) as exc:
        print_error(f"Could not scan the repository: {exc}")
        return EXIT_VCS_FAILURE
    if not len(change_set):
        print_warning("No changes detected to commit.")
        return EXIT_NO_CHANGES
    print_success(f"Found {len(change_set)} changed file{'s' if len(change_set) != 1 else ''}")

    # Step 3: Classify
    print_step(3, TOTAL_STEPS, "Classifying Changes")
    classifications = classify(change_set, config.fix_max_lines)
    counts = Counter(c.commit_type.value for c in classifications)
    for type_name, count in counts.most_common():
        print_info(f"{type_name}: {count} file{'s' if count != 1 else ''}", indent=1)

    # Step 4: Select
    print_step(4, TOTAL_STEPS, "Selecting Changes")
    selector = Selector(change_set)
    if yes:
        selector.select_all()
        selector.confirm()
        print_info("Auto-accept mode enabled - selecting every change")
    else:
        review_changes(selector, classifications)
    if selector.state is SelectorState.CANCELLED:
        print_warning("Cancelled; nothing was staged or committed.")
        return EXIT_CANCELLED
    selected = selector.selected_entries()
    print_success(f"Selected {len(selected)} file{'s' if len(selected) != 1 else ''}")

    # Step 5: Compose
    print_step(5, TOTAL_STEPS, "Composing Commit Message")
    try:
        type_override = normalize_type(commit_type) if commit_type else None
        if summary is None and not yes:
            summary = click.prompt("   Summary", default="", show_default=False)
        if edit or (body is None and not yes and click.confirm("   Add a body?", default=False)):
            body = edit_text(client.gateway, body or "")
        message = compose(
            selected,
            classifications,
            summary,
            config,
            body=body,
            type_override=type_override,
            scope_override=area,
            emoji_override=alias_emoji(commit_type) if commit_type else None,
        )
    except MessageError as exc:
        print_error(f"Invalid commit message: {exc}")
        return EXIT_MESSAGE_ERROR
    show_message(message)
    if not yes and not click.confirm("   Commit these changes?", default=True):
        print_warning("Cancelled; nothing was staged or committed.")
        return EXIT_CANCELLED

    # Step 6: Commit
    print_step(6, TOTAL_STEPS, "Committing")
    plan = CommitPlan.build(selected, message, change_set.base)
    try:
        with ProgressIndicator(f"Committing {len(plan.selected_entries)} file(s)"):
            result = CommitOrchestrator(client).commit(plan)
    except AmbiguousOutcomeError as exc:
        print_error(f"Outcome unknown: {exc}")
        print_process_output(exc)
        print_warning("Check 'git status' and 'git log -1' before trying again.")
        return EXIT_AMBIGUOUS_OUTCOME
    except (StagingDivergedError, CommitFailedError) as exc:
        print_error(str(exc))
        print_process_output(exc)
        print_info("The index was restored; nothing was committed.")
        return EXIT_ROLLED_BACK
    except (ProcessError, ProcessTimeoutError, IndexSnapshotError) as exc:
        print_error(f"Git failure: {exc}")
        print_process_output(exc)
        return EXIT_VCS_FAILURE

    print_summary_box(
        "✨ Committed",
        [
            f"Commit: {result.short_hash}",
            f"Subject: {result.subject}",
            f"Files: {len(plan.selected_entries)}",
        ],
    )
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@click.group(invoke_without_command=True)
@click.option("--yes", "yes", is_flag=True, help="Select every change and commit without prompting.")
@click.option("-m", "--message", "summary", help="Commit summary line.")
@click.option("--body", help="Commit message body.")
@click.option("--edit", is_flag=True, help="Write the commit body in $EDITOR.")
@click.option(
    "-t",
    "--type",
    "commit_type",
    type=click.Choice(TYPE_CHOICES, case_sensitive=False),
    help=(
        "Override the detected commit type. Aliases: feature=feat, doc=docs, "
        "deps=build, deploy=build (keeps the 🚀 emoji)."
    ),
)
@click.option("-a", "--area", help="The section of the code this commit focuses on.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="qit")
@click.pass_context
def main(
    ctx: click.Context,
    yes: bool,
    summary: Optional[str],
    body: Optional[str],
    edit: bool,
    commit_type: Optional[str],
    area: Optional[str],
    verbose: bool,
) -> None:
    """Review, select and commit changes with a meaningful commit message.

    \b
    Format:
        <emoji> <type>[(<area>)]: <message>
    """
    configure_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return

    click.echo("\n" + "=" * 60)
    click.echo("🧰 qit".center(60))
    click.echo("=" * 60)

    try:
        code = run_review(yes, summary, body, edit, commit_type, area)
    except click.exceptions.Exit:
        raise
    except click.Abort:
        click.echo("")
        print_warning("Cancelled; nothing was staged or committed.")
        code = EXIT_CANCELLED
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        code = EXIT_GENERIC_ERROR
    raise click.exceptions.Exit(code)


@main.command("push")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Force push. Ignores uncommitted changes. **WARNING**: This is the same as `git push -f`!",
)
def push_command(force: bool) -> None:
    """Push the current branch. Refuses while there are uncommitted changes."""
    client = open_repository(load_config())
    try:
        if not force and client.has_pending_changes():
            print_error("There are uncommitted changes")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)
        client.push(force=force)
    except (ProcessError, ProcessTimeoutError) as exc:
        print_error(f"Push failed: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    print_success("Pushed")


@main.command("undo")
def undo_command() -> None:
    """Undo the last commit, keeping its changes staged."""
    client = open_repository(load_config())
    try:
        client.undo_last_commit()
    except (ProcessError, ProcessTimeoutError) as exc:
        print_error(f"Undo failed: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    print_success("Undid the last commit; its changes are still staged")


@main.command("log")
@click.option("-s", "--short", is_flag=True, help="Show a shortened git log.")
def log_command(short: bool) -> None:
    """Show the git log."""
    client = open_repository(load_config())
    try:
        client.log(short=short)
    except (ProcessError, ProcessTimeoutError) as exc:
        print_error(f"Log failed: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)


main.add_command(push_command, name="p")
main.add_command(undo_command, name="u")
main.add_command(log_command, name="l")
