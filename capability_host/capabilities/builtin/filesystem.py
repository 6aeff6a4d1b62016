"""Filesystem and command capabilities.

Provides file read/write, directory listing and shell command execution for
agents working on a local workspace. Relative paths resolve against the
plugin's workspace root. Failures raise and are reported by the dispatcher as
``ExecutionFailure``.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ...core.logging_config import get_logger
from ..registry import CapabilityRegistry
from ..schema_builder import describe_callable, parameters_from_model

logger = get_logger(__name__)

PLUGIN_NAME = "filesystem"


class CommandRunInput(BaseModel):
    """Input schema for command execution."""

    command: str = Field(..., description="Command to execute (shell command or script)")
    cwd: Optional[str] = Field(None, description="Working directory for command execution")
    timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds (default: 30)")


class CommandRunOutput(BaseModel):
    """Output schema for command execution."""

    success: bool = Field(..., description="Whether the command exited with status 0")
    exit_code: Optional[int] = Field(None, description="Command exit code")
    stdout: str = Field(default="", description="Standard output")
    stderr: str = Field(default="", description="Standard error")
    command: str = Field(..., description="Command that was executed")
    duration_seconds: float = Field(..., description="Execution duration in seconds")


class FilesystemPlugin:
    """File and command capabilities bound to one workspace root."""

    def __init__(self, root: Optional[Union[str, Path]] = None) -> None:
        self._root = Path(root) if root else Path(os.getcwd())

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        candidate = Path(path).expanduser()
        return candidate if candidate.is_absolute() else self._root / candidate

    def read_file(
        self,
        file_path: Annotated[str, "Path to the file to read (relative paths resolve against the workspace root)"],
        offset: Annotated[int, "Line number to start reading from (1-based). Default: 1"] = 1,
        limit: Annotated[int, "Maximum number of lines to read. Default: 500 (0 = all lines)"] = 500,
    ) -> Dict[str, Any]:
        """Read file contents with optional line offset and limit. Returns numbered lines."""
        if offset < 1:
            raise ValueError(f"offset must be >= 1, got {offset}")
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")

        path = self._resolve(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not path.is_file():
            raise IsADirectoryError(f"Path is not a file: {path}")

        lines = path.read_text(encoding="utf-8").splitlines()
        end = len(lines) if limit == 0 else min(len(lines), offset - 1 + limit)
        selected = lines[offset - 1 : end]
        numbered = "\n".join(f"{offset + i:6d}\t{line}" for i, line in enumerate(selected))

        logger.info(f"Read file: {path} (lines {offset}-{offset + len(selected) - 1} of {len(lines)})")
        return {
            "file_path": str(path),
            "content": numbered,
            "total_lines": len(lines),
            "truncated": end < len(lines),
        }

    def write_file(
        self,
        file_path: Annotated[str, "Path to the file to write"],
        content: Annotated[str, "Content to write to the file"],
        create_dirs: Annotated[bool, "Create parent directories if they don't exist"] = True,
    ) -> Dict[str, Any]:
        """Write content to a file, creating or overwriting it."""
        path = self._resolve(file_path)
        if create_dirs:
            path.parent.mkdir(parents=True, exist_ok=True)
        existed = path.exists()
        bytes_written = path.write_text(content, encoding="utf-8")

        logger.info(f"Wrote file: {path} ({bytes_written} chars)")
        return {"file_path": str(path), "bytes_written": bytes_written, "created": not existed}

    def list_directory(
        self,
        directory_path: Annotated[str, "Directory to list. If empty, uses the workspace root."] = "",
        show_hidden: Annotated[bool, "Include hidden files/directories. Default: false"] = False,
    ) -> List[Dict[str, Any]]:
        """List directory contents with file metadata."""
        path = self._resolve(directory_path) if directory_path else self._root
        if not path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {path}")

        entries: List[Dict[str, Any]] = []
        for child in sorted(path.iterdir(), key=lambda p: (not p.is_dir(), p.name)):
            if not show_hidden and child.name.startswith("."):
                continue
            entries.append(
                {
                    "name": child.name,
                    "type": "directory" if child.is_dir() else "file",
                    "size_bytes": child.stat().st_size if child.is_file() else None,
                }
            )
        return entries

    async def run_command(self, **arguments: Any) -> CommandRunOutput:
        """Execute a shell command and capture its output."""
        request = CommandRunInput(**arguments)
        cwd = str(self._resolve(request.cwd)) if request.cwd else str(self._root)
        if not os.path.isdir(cwd):
            raise NotADirectoryError(f"Working directory not found: {cwd}")

        logger.info(f"Executing command: {request.command} (cwd={cwd})")
        start_time = time.time()
        process = await asyncio.create_subprocess_shell(
            request.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=request.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Command execution timeout after {request.timeout} seconds") from None
        finally:
            # timeout or cancellation: never leave the child running
            if process.returncode is None:
                logger.warning(f"Killing command still running: {request.command}")
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        duration = time.time() - start_time
        logger.info(f"Command completed with exit code {process.returncode} (duration: {duration:.2f}s)")
        return CommandRunOutput(
            success=process.returncode == 0,
            exit_code=process.returncode,
            stdout=stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else "",
            stderr=stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else "",
            command=request.command,
            duration_seconds=duration,
        )

    def register(self, registry: CapabilityRegistry) -> None:
        registry.register(describe_callable(self.read_file, plugin_name=PLUGIN_NAME), self.read_file)
        registry.register(
            describe_callable(self.write_file, plugin_name=PLUGIN_NAME, required_permissions=["filesystem.write"]),
            self.write_file,
        )
        registry.register(describe_callable(self.list_directory, plugin_name=PLUGIN_NAME), self.list_directory)
        registry.register(
            describe_callable(
                self.run_command,
                plugin_name=PLUGIN_NAME,
                required_permissions=["shell.execute"],
                parameters=parameters_from_model(CommandRunInput),
            ),
            self.run_command,
        )
