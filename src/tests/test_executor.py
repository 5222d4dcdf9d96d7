"""Tests for path sanitization and the operation handlers."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from django.test import SimpleTestCase

from syscalls.executor import (
    COMMAND_TIMEOUT_SECONDS,
    MAX_COMMAND_OUTPUT_BYTES,
    CommandNotWhitelisted,
    SandboxViolation,
    SyscallError,
    delete_file,
    get_sandbox_root,
    get_system_info,
    list_directory,
    list_processes,
    read_file,
    run_safe_command,
    sanitize_path,
    write_file,
)
from tests.utils import SandboxMixin

TRAVERSAL_INPUTS = [
    "../../etc/passwd",
    "../etc/passwd",
    "..\\..\\etc\\passwd",
    "..\\../..//etc/shadow",
    "%2e%2e%2f%2e%2e%2fetc%2fpasswd",
    "%2E%2E/%2E%2E/etc",
    "%252e%252e%252fetc",
    "....//....//etc/passwd",
    ".../...//etc",
    "foo/../../bar",
    "foo/../../../../../../root/.ssh/id_rsa",
    "/etc/passwd",
    "\\etc\\passwd",
    "./././../secret.txt",
    "a/b/c/../../../../..",
]


class SanitizePathTests(SandboxMixin, SimpleTestCase):
    """No sanitized path may resolve outside the sandbox root."""

    def _assert_inside_or_rejected(self, user_path: str) -> None:
        root = get_sandbox_root()
        try:
            resolved = sanitize_path(user_path)
        except SandboxViolation:
            return
        self.assertTrue(
            resolved == root or root in resolved.parents,
            f"{user_path!r} resolved to {resolved} outside {root}",
        )

    def test_traversal_inputs_never_escape(self):
        """Every traversal variant resolves inside the root or raises."""
        for user_path in TRAVERSAL_INPUTS:
            with self.subTest(path=user_path):
                self._assert_inside_or_rejected(user_path)

    def test_parent_traversal_to_passwd_is_rejected(self):
        """``../../etc/passwd`` collapses to an absolute path and is refused."""
        with self.assertRaises(SandboxViolation):
            sanitize_path("../../etc/passwd")

    def test_relative_path_stays_under_root(self):
        """Plain relative paths are joined under the root."""
        resolved = sanitize_path("docs/notes.txt")
        self.assertEqual(resolved, get_sandbox_root() / "docs" / "notes.txt")

    def test_dot_dot_segments_are_stripped_not_followed(self):
        """``foo/../bar`` keeps both names instead of stepping up a level."""
        resolved = sanitize_path("foo/../bar")
        self.assertEqual(resolved, get_sandbox_root() / "foo" / "bar")

    def test_empty_and_slash_mean_root(self):
        """Empty or slash-only paths address the sandbox root itself."""
        root = get_sandbox_root()
        self.assertEqual(sanitize_path(""), root)
        self.assertEqual(sanitize_path("/"), root)
        self.assertEqual(sanitize_path(".."), root)

    def test_null_byte_rejected(self):
        """Embedded NUL bytes, raw or encoded, are refused."""
        with self.assertRaises(SandboxViolation):
            sanitize_path("file\x00.txt")
        with self.assertRaises(SandboxViolation):
            sanitize_path("file%00.txt")

    @unittest.skipIf(sys.platform.startswith("win"), "symlinks need privileges on Windows")
    def test_symlink_pointing_outside_is_rejected(self):
        """Symlinks are followed before the containment check."""
        outside = tempfile.mkdtemp(prefix="outside-")
        self.addCleanup(shutil.rmtree, outside, ignore_errors=True)
        os.symlink(outside, Path(self.sandbox_dir) / "escape")

        with self.assertRaises(SandboxViolation):
            sanitize_path("escape/secret.txt")

    @unittest.skipIf(sys.platform.startswith("win"), "symlinks need privileges on Windows")
    def test_symlink_loop_is_rejected(self):
        """A self-referencing link fails as a sandbox error, not a platform error."""
        os.symlink("loop", Path(self.sandbox_dir) / "loop")

        with self.assertRaises(SyscallError):
            read_file("loop/x")

    def test_unresolvable_path_is_a_sandbox_violation(self):
        root = get_sandbox_root()
        with mock.patch("syscalls.executor.get_sandbox_root", return_value=root), mock.patch(
            "syscalls.executor.Path.resolve", side_effect=RuntimeError("Symlink loop")
        ):
            with self.assertRaisesMessage(SandboxViolation, "could not be resolved"):
                sanitize_path("anything.txt")

    def test_sandbox_root_created_on_demand(self):
        """The root directory is created on first use."""
        shutil.rmtree(self.sandbox_dir)
        root = get_sandbox_root()
        self.assertTrue(root.is_dir())


class FileHandlerTests(SandboxMixin, SimpleTestCase):
    """Behavior of the list/read/write/delete handlers inside the sandbox."""

    def test_write_then_read_is_byte_identical(self):
        """UTF-8 content, including CRLF and non-ASCII text, round-trips exactly."""
        content = "line one\r\nline two\nzürich ✓\n"
        written = write_file("notes/round.txt", content)
        read_back = read_file("notes/round.txt")

        self.assertEqual(read_back["content"], content)
        self.assertEqual(written["size"], len(content.encode("utf-8")))
        self.assertEqual(
            (Path(self.sandbox_dir) / "notes" / "round.txt").read_bytes(), content.encode("utf-8")
        )

    def test_repeated_write_is_idempotent(self):
        """Writing the same content twice yields the same file and size."""
        first = write_file("same.txt", "hello world")
        second = write_file("same.txt", "hello world")

        self.assertEqual(first["size"], second["size"])
        self.assertEqual(read_file("same.txt")["content"], "hello world")

    def test_write_creates_parent_directories(self):
        """Missing parent directories are created."""
        write_file("a/b/c/deep.txt", "x")
        self.assertTrue((Path(self.sandbox_dir) / "a" / "b" / "c" / "deep.txt").is_file())

    def test_write_empty_content(self):
        """An empty string produces an empty file."""
        result = write_file("empty.txt", "")
        self.assertEqual(result["size"], 0)
        self.assertEqual(read_file("empty.txt")["content"], "")

    def test_write_to_root_is_rejected(self):
        """A path that names the root itself cannot be written."""
        with self.assertRaises(SyscallError):
            write_file("/", "data")

    def test_read_missing_file_fails(self):
        """Reading a file that does not exist is a descriptive failure."""
        with self.assertRaisesMessage(SyscallError, "Failed to read file"):
            read_file("missing.txt")

    def test_read_directory_fails(self):
        """Only regular files can be read."""
        (Path(self.sandbox_dir) / "folder").mkdir()
        with self.assertRaisesMessage(SyscallError, "not a regular file"):
            read_file("folder")

    def test_read_binary_file_fails(self):
        """Non-UTF-8 content is reported instead of raising a decode error."""
        (Path(self.sandbox_dir) / "blob.bin").write_bytes(b"\xff\xfe\x00\x81")
        with self.assertRaisesMessage(SyscallError, "not valid UTF-8"):
            read_file("blob.bin")

    def test_list_directory_entries(self):
        """Entries carry name, type, size, modified time and permissions."""
        write_file("docs/a.txt", "abc")
        (Path(self.sandbox_dir) / "docs" / "sub").mkdir()

        result = list_directory("docs")
        entries = {item["name"]: item for item in result["items"]}

        self.assertEqual(result["count"], 2)
        self.assertEqual(entries["a.txt"]["type"], "file")
        self.assertEqual(entries["a.txt"]["size"], 3)
        self.assertEqual(entries["sub"]["type"], "directory")
        self.assertIn("modified", entries["a.txt"])
        self.assertIn("permissions", entries["a.txt"])

    def test_list_root(self):
        """Listing ``/`` lists the sandbox root."""
        write_file("top.txt", "1")
        names = [item["name"] for item in list_directory("/")["items"]]
        self.assertEqual(names, ["top.txt"])

    def test_list_missing_directory_fails(self):
        """A missing directory is a descriptive failure."""
        with self.assertRaisesMessage(SyscallError, "Failed to list directory"):
            list_directory("nowhere")

    def test_list_file_fails(self):
        """A regular file cannot be listed as a directory."""
        write_file("plain.txt", "x")
        with self.assertRaisesMessage(SyscallError, "not a directory"):
            list_directory("plain.txt")

    def test_delete_file(self):
        """Deleting removes the file."""
        write_file("gone.txt", "bye")
        delete_file("gone.txt")
        self.assertFalse((Path(self.sandbox_dir) / "gone.txt").exists())

    def test_delete_directory_rejected(self):
        """Directories are never removed by the file delete operation."""
        (Path(self.sandbox_dir) / "keep").mkdir()
        with self.assertRaisesMessage(SyscallError, "cannot delete directories"):
            delete_file("keep")
        self.assertTrue((Path(self.sandbox_dir) / "keep").is_dir())

    def test_delete_missing_file_fails(self):
        """Deleting a missing file is a descriptive failure."""
        with self.assertRaisesMessage(SyscallError, "Failed to delete file"):
            delete_file("missing.txt")

    def test_file_handlers_reject_traversal(self):
        """Every file handler sanitizes before touching storage."""
        for call in (
            lambda: list_directory("../../etc"),
            lambda: read_file("../../etc/passwd"),
            lambda: write_file("../../tmp/evil.txt", "x"),
            lambda: delete_file("../../etc/hosts"),
        ):
            with self.assertRaises(SandboxViolation):
                call()


class RunSafeCommandTests(SandboxMixin, SimpleTestCase):
    """Whitelist enforcement and subprocess limits for command execution."""

    def test_non_whitelisted_commands_never_spawn(self):
        """A first token outside the whitelist fails before any subprocess call."""
        with mock.patch("syscalls.executor.subprocess.run") as run:
            for command in ["rm -rf /", "ls", "cat /etc/passwd", "echo;rm -rf /", "echoo hi", "", "   "]:
                with self.subTest(command=command):
                    with self.assertRaises(CommandNotWhitelisted):
                        run_safe_command(command)
        run.assert_not_called()

    @unittest.skipUnless(shutil.which("echo"), "echo binary not available")
    def test_echo_returns_stdout(self):
        """``echo test`` runs and reports its standard output."""
        result = run_safe_command("echo test")
        self.assertIn("test", result["stdout"])
        self.assertEqual(result["exit_code"], 0)

    def test_command_name_is_case_insensitive(self):
        """The whitelist match ignores case and runs the lower-cased binary."""
        completed = subprocess.CompletedProcess(["echo", "hi"], 0, stdout=b"hi\n", stderr=b"")
        with mock.patch("syscalls.executor.subprocess.run", return_value=completed) as run:
            result = run_safe_command("ECHO hi")

        self.assertEqual(result["stdout"], "hi")
        args, kwargs = run.call_args
        self.assertEqual(args[0], ["echo", "hi"])
        self.assertFalse(kwargs["shell"])
        self.assertEqual(kwargs["timeout"], COMMAND_TIMEOUT_SECONDS)

    def test_timeout_is_a_failure(self):
        """A command exceeding the time limit is reported, not retried."""
        with mock.patch(
            "syscalls.executor.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd=["date"], timeout=COMMAND_TIMEOUT_SECONDS),
        ) as run:
            with self.assertRaisesMessage(SyscallError, "timed out"):
                run_safe_command("date")
        self.assertEqual(run.call_count, 1)

    def test_output_over_cap_is_a_failure(self):
        """More than 100 KB of combined output is rejected."""
        completed = subprocess.CompletedProcess(
            ["echo"], 0, stdout=b"x" * (MAX_COMMAND_OUTPUT_BYTES + 1), stderr=b""
        )
        with mock.patch("syscalls.executor.subprocess.run", return_value=completed):
            with self.assertRaisesMessage(SyscallError, "output exceeded"):
                run_safe_command("echo big")

    def test_non_zero_exit_is_a_failure(self):
        """A failing command surfaces its stderr."""
        completed = subprocess.CompletedProcess(["date"], 1, stdout=b"", stderr=b"bad date\n")
        with mock.patch("syscalls.executor.subprocess.run", return_value=completed):
            with self.assertRaisesMessage(SyscallError, "bad date"):
                run_safe_command("date --bogus")

    def test_missing_binary_is_a_failure(self):
        """A whitelisted name with no binary on this host is a descriptive failure."""
        with mock.patch(
            "syscalls.executor.subprocess.run", side_effect=FileNotFoundError(2, "No such file or directory")
        ):
            with self.assertRaisesMessage(SyscallError, "Command execution failed"):
                run_safe_command("dir")


class SystemHandlerTests(SimpleTestCase):
    """System information and process listing."""

    def test_system_info_fields(self):
        """System info reports platform, CPU and memory figures."""
        info = get_system_info()
        for key in (
            "platform",
            "architecture",
            "hostname",
            "os_release",
            "cpu_count",
            "cpu_model",
            "total_memory",
            "free_memory",
            "used_memory",
            "memory_usage_percent",
            "uptime",
            "load_average",
        ):
            self.assertIn(key, info)
        self.assertGreater(info["cpu_count"], 0)
        self.assertEqual(info["used_memory"], info["total_memory"] - info["free_memory"])

    def test_process_list_is_capped_and_truncated(self):
        """At most 20 entries, each at most 100 characters, returned as opaque strings."""
        stdout = "\n".join(f"proc-{i} " + "x" * 200 for i in range(40))
        completed = subprocess.CompletedProcess(["ps", "aux"], 0, stdout=stdout, stderr="")
        with mock.patch("syscalls.executor.subprocess.run", return_value=completed):
            result = list_processes()

        self.assertEqual(result["process_count"], 20)
        self.assertEqual(len(result["processes"]), 20)
        self.assertTrue(all(len(p["info"]) <= 100 for p in result["processes"]))
        self.assertTrue(result["processes"][0]["info"].startswith("proc-0 "))

    def test_process_list_failure(self):
        """A failing enumeration command is a descriptive failure."""
        with mock.patch("syscalls.executor.subprocess.run", side_effect=OSError(13, "Permission denied")):
            with self.assertRaisesMessage(SyscallError, "Failed to list processes"):
                list_processes()
