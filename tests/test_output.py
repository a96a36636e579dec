import pytest

from qit.errors import CommitFailedError, ProcessError
from qit.output import (
    BOX_WIDTH,
    ProgressIndicator,
    print_error,
    print_process_output,
    print_summary_box,
)


def test_progress_reports_success(capsys):
    with ProgressIndicator("Reading work tree changes"):
        pass
    out = capsys.readouterr().out
    assert out.startswith("… Reading work tree changes")
    assert "\r✓ Reading work tree changes (took " in out


def test_progress_names_the_failure_and_reraises(capsys):
    with pytest.raises(CommitFailedError):
        with ProgressIndicator("Committing 1 file(s)"):
            raise CommitFailedError("git commit failed: rejected")
    out = capsys.readouterr().out
    assert "\r✗ Committing 1 file(s) (CommitFailedError after " in out


def test_errors_go_to_stderr(capsys):
    print_error("Not inside a git repository.")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == "✗ Not inside a git repository.\n"


def test_process_output_echoes_git_stderr(capsys):
    cause = ProcessError(["git", "commit"], 1, "hook: lint failed\n\n  src/core.py:3\n")
    print_process_output(CommitFailedError("git commit failed", cause=cause))
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.splitlines() == ["    │ hook: lint failed", "    │   src/core.py:3"]


def test_process_output_without_stderr_prints_nothing(capsys):
    print_process_output(ValueError("plain"))
    assert capsys.readouterr() == ("", "")


def test_summary_box_truncates_long_lines(capsys):
    print_summary_box("✨ Committed", ["Commit: 1234567", "Subject: " + "x" * 100])
    lines = capsys.readouterr().out.strip("\n").splitlines()
    assert len({len(line) for line in lines}) == 1
    assert len(lines[0]) == BOX_WIDTH
    assert lines[2].startswith("├")
    assert "Commit: 1234567" in lines[3]
    assert lines[4].endswith("x… │")
