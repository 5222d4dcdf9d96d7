"""Host-level operation handlers and the sandbox every file operation goes through.

Each handler takes already-validated keyword parameters and either returns
a JSON-serializable payload or raises a ``SyscallError`` with a message that
is safe to hand back to the caller. Platform exceptions are converted at
this boundary.

Filesystem calls carry no timeout; only subprocess calls are time-bounded.
"""

import logging
import os
import platform
import shlex
import socket
import stat
import subprocess
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
from urllib.parse import unquote

import psutil
from django.conf import settings

logger = logging.getLogger(__name__)

WHITELISTED_COMMANDS = ("dir", "echo", "date", "time")
COMMAND_TIMEOUT_SECONDS = 5
MAX_COMMAND_OUTPUT_BYTES = 100 * 1024
MAX_PROCESS_ENTRIES = 20
MAX_PROCESS_LINE_WIDTH = 100


class SyscallError(Exception):
    """Descriptive failure of an operation handler."""


class SandboxViolation(SyscallError):
    """A path resolved outside the sandbox root."""


class CommandNotWhitelisted(SyscallError):
    """The requested command name is not on the whitelist."""


def get_sandbox_root() -> Path:
    """Return the resolved sandbox root, creating it on first use."""
    root = Path(settings.SANDBOX_ROOT)
    root.mkdir(parents=True, exist_ok=True)
    return root.resolve()


def sanitize_path(user_path: str) -> Path:
    """Map a caller-supplied path onto an absolute path inside the sandbox.

    Percent-encoding is decoded once, every literal ``..`` is removed, and
    backslashes become forward slashes. The result is resolved against the
    sandbox root with symlinks followed; anything that lands outside the root
    raises ``SandboxViolation``. An absolute result (e.g. ``/etc/passwd``) is
    never reinterpreted as relative. An empty or slash-only path means the
    root itself.
    """
    if "\x00" in user_path:
        raise SandboxViolation("Invalid path: null bytes are not allowed")

    root = get_sandbox_root()
    cleaned = unquote(user_path).replace("..", "").replace("\\", "/")
    if "\x00" in cleaned:
        raise SandboxViolation("Invalid path: null bytes are not allowed")
    if not cleaned.strip("/").strip():
        return root

    try:
        candidate = (root / cleaned).resolve()
    except (OSError, RuntimeError) as exc:
        logger.warning("Could not resolve path %r: %s", user_path, exc)
        raise SandboxViolation("Invalid path: could not be resolved") from exc
    if candidate != root and root not in candidate.parents:
        logger.warning("Rejected path outside sandbox: %r", user_path)
        raise SandboxViolation("Invalid path: Access denied outside sandbox directory")
    return candidate


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def list_directory(path: str) -> dict[str, Any]:
    target = sanitize_path(path)
    try:
        if not target.is_dir():
            raise SyscallError(f"Failed to list directory: '{path}' is not a directory")
        items = []
        for entry in sorted(target.iterdir(), key=lambda p: p.name):
            info = entry.stat()
            items.append(
                {
                    "name": entry.name,
                    "type": "directory" if stat.S_ISDIR(info.st_mode) else "file",
                    "size": info.st_size,
                    "modified": _isoformat(info.st_mtime),
                    "permissions": oct(stat.S_IMODE(info.st_mode)),
                }
            )
    except OSError as exc:
        raise SyscallError(f"Failed to list directory: {exc.strerror or exc}") from exc
    return {"path": path, "items": items, "count": len(items)}


def read_file(path: str) -> dict[str, Any]:
    target = sanitize_path(path)
    try:
        if not target.is_file():
            raise SyscallError(f"Failed to read file: '{path}' is not a regular file")
        with open(target, "r", encoding="utf-8", newline="") as fh:
            content = fh.read()
        info = target.stat()
    except UnicodeDecodeError as exc:
        raise SyscallError("Failed to read file: content is not valid UTF-8 text") from exc
    except OSError as exc:
        raise SyscallError(f"Failed to read file: {exc.strerror or exc}") from exc
    return {
        "path": path,
        "content": content,
        "size": info.st_size,
        "modified": _isoformat(info.st_mtime),
    }


def write_file(path: str, content: str) -> dict[str, Any]:
    target = sanitize_path(path)
    if target == get_sandbox_root():
        raise SyscallError("Failed to write file: a file name is required")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        # newline="" keeps the bytes on disk identical to what was sent.
        with open(target, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
        size = target.stat().st_size
    except OSError as exc:
        raise SyscallError(f"Failed to write file: {exc.strerror or exc}") from exc
    return {"path": path, "size": size, "message": "File written successfully"}


def delete_file(path: str) -> dict[str, Any]:
    target = sanitize_path(path)
    try:
        if target.is_dir():
            raise SyscallError("Failed to delete file: cannot delete directories with deleteFile")
        target.unlink()
    except OSError as exc:
        raise SyscallError(f"Failed to delete file: {exc.strerror or exc}") from exc
    return {"path": path, "message": "File deleted successfully"}


def get_system_info() -> dict[str, Any]:
    try:
        memory = psutil.virtual_memory()
        total, free = memory.total, memory.available
        used = total - free
        return {
            "platform": sys.platform,
            "architecture": platform.machine(),
            "hostname": socket.gethostname(),
            "os_type": platform.system(),
            "os_release": platform.release(),
            "cpu_count": os.cpu_count() or 0,
            "cpu_model": platform.processor() or "Unknown",
            "total_memory": total,
            "free_memory": free,
            "used_memory": used,
            "memory_usage_percent": f"{used / total * 100:.2f}" if total else "0.00",
            "uptime": int(time.time() - psutil.boot_time()),
            "load_average": list(psutil.getloadavg()),
        }
    except (OSError, psutil.Error) as exc:
        raise SyscallError(f"Failed to get system info: {exc}") from exc


def _process_listing_command() -> list[str]:
    if sys.platform.startswith("win"):
        return ["tasklist", "/fo", "csv", "/nh"]
    return ["ps", "aux"]


def list_processes() -> dict[str, Any]:
    """Return raw process-table lines; the format differs per platform."""
    try:
        proc = subprocess.run(
            _process_listing_command(),
            shell=False,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired as exc:
        raise SyscallError(
            f"Failed to list processes: timed out after {COMMAND_TIMEOUT_SECONDS} seconds"
        ) from exc
    except OSError as exc:
        raise SyscallError(f"Failed to list processes: {exc.strerror or exc}") from exc

    if proc.returncode != 0:
        raise SyscallError(f"Failed to list processes: {proc.stderr.strip() or proc.returncode}")

    lines = proc.stdout.strip().splitlines()[:MAX_PROCESS_ENTRIES]
    return {
        "platform": sys.platform,
        "process_count": len(lines),
        "processes": [
            {"id": index, "info": line[:MAX_PROCESS_LINE_WIDTH]}
            for index, line in enumerate(lines, start=1)
        ],
        "message": f"Process list retrieved (limited to {MAX_PROCESS_ENTRIES} entries)",
    }


def command_name(command: str) -> str:
    """First whitespace-delimited token, lower-cased."""
    parts = command.strip().split()
    return parts[0].lower() if parts else ""


def run_safe_command(command: str) -> dict[str, Any]:
    name = command_name(command)
    if name not in WHITELISTED_COMMANDS:
        logger.warning("Rejected non-whitelisted command: %r", name)
        raise CommandNotWhitelisted(
            f"Command not whitelisted. Allowed commands: {', '.join(WHITELISTED_COMMANDS)}"
        )

    try:
        args = shlex.split(command)
    except ValueError as exc:
        raise SyscallError(f"Command execution failed: {exc}") from exc
    args[0] = name

    try:
        proc = subprocess.run(
            args,
            shell=False,
            capture_output=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
            cwd=str(get_sandbox_root()),
        )
    except subprocess.TimeoutExpired as exc:
        logger.warning("Command %r timed out", name)
        raise SyscallError(
            f"Command execution failed: timed out after {COMMAND_TIMEOUT_SECONDS} seconds"
        ) from exc
    except OSError as exc:
        raise SyscallError(f"Command execution failed: {exc.strerror or exc}") from exc

    if len(proc.stdout) + len(proc.stderr) > MAX_COMMAND_OUTPUT_BYTES:
        raise SyscallError(
            f"Command execution failed: output exceeded {MAX_COMMAND_OUTPUT_BYTES // 1024} KB"
        )

    stdout = proc.stdout.decode("utf-8", errors="replace").strip()
    stderr = proc.stderr.decode("utf-8", errors="replace").strip()
    if proc.returncode != 0:
        raise SyscallError(
            f"Command execution failed: exit status {proc.returncode}: {stderr or stdout}"
        )

    return {
        "command": command,
        "stdout": stdout,
        "stderr": stderr,
        "exit_code": proc.returncode,
        "message": "Command executed successfully",
    }


HANDLERS: dict[str, Callable[..., dict[str, Any]]] = {
    "listDirectory": list_directory,
    "readFile": read_file,
    "writeFile": write_file,
    "deleteFile": delete_file,
    "getSystemInfo": get_system_info,
    "listProcesses": list_processes,
    "runSafeCommand": run_safe_command,
}


__all__ = [
    "COMMAND_TIMEOUT_SECONDS",
    "CommandNotWhitelisted",
    "HANDLERS",
    "MAX_COMMAND_OUTPUT_BYTES",
    "SandboxViolation",
    "SyscallError",
    "WHITELISTED_COMMANDS",
    "command_name",
    "delete_file",
    "get_sandbox_root",
    "get_system_info",
    "list_directory",
    "list_processes",
    "read_file",
    "run_safe_command",
    "sanitize_path",
    "write_file",
]
