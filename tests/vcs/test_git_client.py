import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

from qit.errors import IndexSnapshotError, ProcessError
from qit.vcs.gateway import ProcessResult
from qit.vcs.git_client import EMPTY_TREE, GLOBAL_OPTIONS, GitClient


class FakeGateway:
    """Records every call and answers with canned results per git subcommand."""

    def __init__(self, results=None, error=None):
        self.calls = []
        self.interactive = []
        self.results = results or {}
        self.error = error

    def run(self, command, args, timeout=None, cwd=None, input=None, ok_codes=(0,), cancel=None):
        self.calls.append(SimpleNamespace(command=command, args=list(args), cwd=cwd, input=input, ok_codes=tuple(ok_codes)))
        if self.error is not None:
            raise self.error
        sub = args[len(GLOBAL_OPTIONS)] if args[: len(GLOBAL_OPTIONS)] == GLOBAL_OPTIONS else args[0]
        exit_code, stdout = self.results.get(sub, (0, ""))
        return ProcessResult(argv=(command, *args), exit_code=exit_code, stdout=stdout, stderr="")

    def run_interactive(self, command, args, cwd=None, timeout=None, ok_codes=(0,)):
        self.interactive.append([command, *args])
        return 0


def git_args(call):
    return call.args[len(GLOBAL_OPTIONS):]


class TestGitClient(unittest.TestCase):
    def make(self, **kwargs):
        gateway = FakeGateway(**kwargs)
        return GitClient(Path("/repo"), gateway), gateway

    def test_commands_run_in_repo_root_with_global_options(self) -> None:
        client, gateway = self.make()
        client.undo_last_commit()
        call = gateway.calls[0]
        self.assertEqual(call.command, "git")
        self.assertEqual(call.cwd, Path("/repo"))
        self.assertEqual(call.args[: len(GLOBAL_OPTIONS)], GLOBAL_OPTIONS)
        self.assertEqual(git_args(call), ["reset", "--soft", "HEAD~1"])

    def test_head_commit_unborn_branch(self) -> None:
        client, gateway = self.make(results={"rev-parse": (1, "")})
        self.assertIsNone(client.head_commit())
        self.assertIn(1, gateway.calls[0].ok_codes)

    def test_head_commit(self) -> None:
        client, _ = self.make(results={"rev-parse": (0, "abc123\n")})
        self.assertEqual(client.head_commit(), "abc123")

    def test_diff_patch_pins_format(self) -> None:
        client, gateway = self.make(results={"diff": (0, "patch")})
        self.assertEqual(client.diff_patch("abc123"), "patch")
        args = git_args(gateway.calls[0])
        self.assertEqual(args[:2], ["diff", "abc123"])
        for flag in ("-M", "-C", "--no-color", "--no-ext-diff", "--src-prefix=a/", "--dst-prefix=b/"):
            self.assertIn(flag, args)
        self.assertEqual(args[-1], "--")

    def test_cached_diff_without_renames(self) -> None:
        client, gateway = self.make()
        client.diff_name_status("abc123", cached=True, detect_renames=False)
        args = git_args(gateway.calls[0])
        self.assertEqual(args[:3], ["diff", "--cached", "abc123"])
        self.assertIn("--no-renames", args)
        self.assertIn("-z", args)
        self.assertNotIn("-M", args)

    def test_untracked_files_split_on_nul(self) -> None:
        client, _ = self.make(results={"ls-files": (0, "a.txt\0dir/b c.txt\0")})
        self.assertEqual(client.untracked_files(), ["a.txt", "dir/b c.txt"])

    def test_untracked_patch_tolerates_difference_exit_code(self) -> None:
        client, gateway = self.make(results={"diff": (1, "diff --git a/x b/x\n")})
        self.assertEqual(client.untracked_patch("x"), "diff --git a/x b/x\n")
        call = gateway.calls[0]
        self.assertIn("--no-index", call.args)
        self.assertEqual(call.args[-2:], ["/dev/null", "x"])
        self.assertIn(1, call.ok_codes)

    def test_read_tree_empty(self) -> None:
        client, gateway = self.make()
        client.read_tree(EMPTY_TREE)
        client.read_tree(None)
        client.read_tree("deadbeef")
        self.assertEqual(git_args(gateway.calls[0]), ["read-tree", "--empty"])
        self.assertEqual(git_args(gateway.calls[1]), ["read-tree", "--empty"])
        self.assertEqual(git_args(gateway.calls[2]), ["read-tree", "deadbeef"])

    def test_stage_paths(self) -> None:
        client, gateway = self.make()
        client.stage_paths([])
        self.assertEqual(gateway.calls, [])
        client.stage_paths(["a.py", ":weird"])
        self.assertEqual(git_args(gateway.calls[0]), ["add", "-A", "--", "a.py", ":weird"])

    def test_apply_and_commit_use_stdin(self) -> None:
        client, gateway = self.make()
        client.apply_cached("PATCH")
        client.commit("fix: thing\n")
        apply_call, commit_call = gateway.calls
        self.assertEqual(git_args(apply_call)[:2], ["apply", "--cached"])
        self.assertEqual(apply_call.input, "PATCH")
        self.assertEqual(git_args(commit_call), ["commit", "--quiet", "--file=-"])
        self.assertEqual(commit_call.input, "fix: thing\n")

    def test_pending_changes(self) -> None:
        client, _ = self.make(results={"status": (0, " M a.py\n")})
        self.assertTrue(client.has_pending_changes())
        client, _ = self.make(results={"status": (0, "")})
        self.assertFalse(client.has_pending_changes())

    def test_push_log_and_undo(self) -> None:
        client, gateway = self.make()
        client.push()
        client.push(force=True)
        client.log(short=True)
        client.undo_last_commit()
        self.assertEqual(gateway.interactive[0], ["git", "push"])
        self.assertEqual(gateway.interactive[1], ["git", "push", "--force"])
        self.assertEqual(gateway.interactive[2], ["git", "log", "--oneline"])
        self.assertEqual(git_args(gateway.calls[0]), ["reset", "--soft", "HEAD~1"])

    def test_find_repo_root(self) -> None:
        gateway = FakeGateway(results={"rev-parse": (0, "/work/repo\n")})
        self.assertEqual(GitClient.find_repo_root(Path("/work/repo/src"), gateway), Path("/work/repo"))
        failing = FakeGateway(error=ProcessError(["git"], 128, "fatal: not a git repository"))
        self.assertIsNone(GitClient.find_repo_root(Path("/tmp"), failing))


class TestIndexSnapshot(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.git_dir = Path(tmp.name)
        self.index = self.git_dir / "index"

    def make(self, index_path: str):
        gateway = FakeGateway(results={"rev-parse": (0, index_path + "\n"), "write-tree": (0, "abc123\n")})
        return GitClient(self.git_dir.parent, gateway), gateway

    def test_restore_puts_back_the_exact_bytes(self) -> None:
        self.index.write_bytes(b"DIRC\x00\x00\x00\x02intent-to-add")
        client, gateway = self.make(str(self.index))
        snapshot = client.snapshot_index()
        self.assertEqual(snapshot.tree, "abc123")
        self.assertEqual(git_args(gateway.calls[0]), ["rev-parse", "--git-path", "index"])
        self.assertEqual(git_args(gateway.calls[1]), ["write-tree"])

        self.index.write_bytes(b"DIRC rewritten by git add")
        client.restore_index(snapshot)
        self.assertEqual(self.index.read_bytes(), b"DIRC\x00\x00\x00\x02intent-to-add")

        client.discard_snapshot(snapshot)
        self.assertFalse(snapshot.backup.exists())
        self.assertEqual(sorted(p.name for p in self.git_dir.iterdir()), ["index"])

    def test_relative_index_path_is_resolved_against_repo_root(self) -> None:
        client, _ = self.make(f"{self.git_dir.name}/index")
        self.assertEqual(client.index_file(), self.index)

    def test_missing_index_is_removed_again(self) -> None:
        client, _ = self.make(str(self.index))
        snapshot = client.snapshot_index()
        self.assertIsNone(snapshot.backup)
        self.index.write_bytes(b"DIRC")
        client.restore_index(snapshot)
        self.assertFalse(self.index.exists())
        client.discard_snapshot(snapshot)

    def test_unwritable_backup_raises(self) -> None:
        self.index.write_bytes(b"DIRC")
        client, _ = self.make(str(self.index))
        snapshot = client.snapshot_index()
        snapshot.backup.unlink()
        with self.assertRaises(IndexSnapshotError):
            client.restore_index(snapshot)
        self.assertEqual(self.index.read_bytes(), b"DIRC")

if __name__ == "__main__":
    unittest.main()
