"""File operation tools: read, write, edit and list.

Each call is self-contained; no file handle outlives the call. Failures the
arguments could not predict (the file vanished, a permission problem) come
back as structured payloads rather than exceptions, so the model can see
and react to them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field

from codeloop.errors import ToolValidationError
from codeloop.models.tools import ToolParameter
from codeloop.tools.base import Tool, ToolArguments

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp"}


# =============================================================================
# read_file
# =============================================================================

class ReadFileArgs(ToolArguments):
    file_path: str = Field(min_length=1)
    offset: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, gt=0)


@dataclass
class ReadFileOutput:
    """Content of a file, or why it could not be read.

    ``type`` is one of ``text``, ``image`` or ``error``.
    """

    type: str
    content: str = ""
    error: Optional[str] = None


class ReadFileTool(Tool[ReadFileArgs]):
    """Read a text file, optionally a window of its lines."""

    name = "read_file"
    description = (
        "Read the contents of a file. Use offset and limit to read a range "
        "of lines. Image files are reported by type instead of content."
    )
    parameters = [
        ToolParameter(
            name="file_path",
            type="string",
            description="Path to the file to read",
        ),
        ToolParameter(
            name="offset",
            type="integer",
            description="Line number to start reading from (0-based)",
            required=False,
        ),
        ToolParameter(
            name="limit",
            type="integer",
            description="Maximum number of lines to read",
            required=False,
        ),
    ]
    arguments_model = ReadFileArgs
    read_only = True

    async def run(self, args: ReadFileArgs) -> ReadFileOutput:
        path = self.resolve_path(args.file_path)

        if not path.exists():
            return ReadFileOutput(type="error", error="File does not exist")
        if path.is_dir():
            return ReadFileOutput(type="error", error="Path is a directory, not a file")

        if path.suffix.lower() in IMAGE_EXTENSIONS:
            return ReadFileOutput(type="image", content=f"[image file: {path.name}]")

        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            return ReadFileOutput(type="error", error=str(e))

        lines = text.split("\n")[args.offset:]
        if args.limit is not None:
            lines = lines[:args.limit]

        logger.debug(f"Read {len(lines)} lines from {path}")
        return ReadFileOutput(type="text", content="\n".join(lines))


# =============================================================================
# write_file
# =============================================================================

class WriteFileArgs(ToolArguments):
    file_path: str = Field(min_length=1)
    content: str
    append: bool = False
    leading_newline: Optional[bool] = None
    trailing_newline: Optional[bool] = None


@dataclass
class WriteFileOutput:
    success: bool
    error: Optional[str] = None


class WriteFileTool(Tool[WriteFileArgs]):
    """Create, overwrite or append to a file.

    Overwrites end with a newline unless ``trailing_newline`` is false.
    Appends start with a newline unless ``leading_newline`` is false, so an
    appended segment does not run into the previous content.
    """

    name = "write_file"
    description = (
        "Write content to a file, creating parent directories as needed. "
        "Overwrites by default; set append to add to the end instead."
    )
    parameters = [
        ToolParameter(
            name="file_path",
            type="string",
            description="Path to the file to write",
        ),
        ToolParameter(
            name="content",
            type="string",
            description="Content to write",
        ),
        ToolParameter(
            name="append",
            type="boolean",
            description="Append to the file instead of overwriting it (default: false)",
            required=False,
        ),
        ToolParameter(
            name="leading_newline",
            type="boolean",
            description="Prefix the content with a newline (default: same as append)",
            required=False,
        ),
        ToolParameter(
            name="trailing_newline",
            type="boolean",
            description="End an overwrite with a newline (default: true)",
            required=False,
        ),
    ]
    arguments_model = WriteFileArgs
    read_only = False

    async def run(self, args: WriteFileArgs) -> WriteFileOutput:
        path = self.resolve_path(args.file_path)

        leading = args.append if args.leading_newline is None else args.leading_newline
        trailing = True if args.trailing_newline is None else args.trailing_newline

        content = args.content
        if leading:
            content = "\n" + content
        if trailing and not args.append:
            content = content + "\n"

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return WriteFileOutput(success=False, error=f"Failed to create directory: {e}")

        try:
            with open(path, "a" if args.append else "w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            logger.warning(f"Failed to write {path}: {e}")
            return WriteFileOutput(success=False, error=str(e))

        logger.debug(f"{'Appended' if args.append else 'Wrote'} {len(content)} chars to {path}")
        return WriteFileOutput(success=True)


# =============================================================================
# edit_file
# =============================================================================

class EditFileArgs(ToolArguments):
    file_path: str = Field(min_length=1)
    old_text: str = Field(min_length=1)
    new_text: str


@dataclass
class EditFileOutput:
    success: bool
    replacements: int = 0
    error: Optional[str] = None


class EditFileTool(Tool[EditFileArgs]):
    """Replace every literal occurrence of a text in a file."""

    name = "edit_file"
    description = (
        "Edit a file by replacing every occurrence of old_text with new_text. "
        "The match is literal, not a regular expression."
    )
    parameters = [
        ToolParameter(
            name="file_path",
            type="string",
            description="Path to the file to edit",
        ),
        ToolParameter(
            name="old_text",
            type="string",
            description="Exact text to find",
        ),
        ToolParameter(
            name="new_text",
            type="string",
            description="Replacement text",
        ),
    ]
    arguments_model = EditFileArgs
    read_only = False

    def check(self, args: EditFileArgs) -> None:
        if not self.resolve_path(args.file_path).is_file():
            raise ToolValidationError(self.name, "file_path", "file does not exist")

    async def run(self, args: EditFileArgs) -> EditFileOutput:
        path = self.resolve_path(args.file_path)

        try:
            with open(path, encoding="utf-8", newline="") as f:
                content = f.read()
        except OSError as e:
            return EditFileOutput(success=False, error=f"Failed to read file: {e}")

        count = content.count(args.old_text)
        if count == 0:
            return EditFileOutput(success=False, error="Old text not found in file")

        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(content.replace(args.old_text, args.new_text))
        except OSError as e:
            logger.warning(f"Failed to write {path}: {e}")
            return EditFileOutput(success=False, error=f"Failed to write file: {e}")

        logger.debug(f"Replaced {count} occurrence(s) in {path}")
        return EditFileOutput(success=True, replacements=count)


# =============================================================================
# list_directory
# =============================================================================

class ListDirectoryArgs(ToolArguments):
    path: str = "."
    show_hidden: bool = False
    sort_by: Literal["name", "size", "type"] = "name"


@dataclass
class DirectoryEntry:
    name: str
    path: str
    is_dir: bool
    size: int
    extension: str = ""


@dataclass
class ListDirectoryOutput:
    entries: list[DirectoryEntry] = field(default_factory=list)
    error: Optional[str] = None


_SORT_KEYS = {
    "name": lambda e: e.name,
    "size": lambda e: e.size,
    "type": lambda e: (not e.is_dir, e.name),
}


class ListDirectoryTool(Tool[ListDirectoryArgs]):
    """List a directory, or describe a single file."""

    name = "list_directory"
    description = (
        "List files and directories at a path with their size and type. "
        "Hidden entries are skipped unless show_hidden is set."
    )
    parameters = [
        ToolParameter(
            name="path",
            type="string",
            description="Directory to list (default: current directory)",
            required=False,
        ),
        ToolParameter(
            name="show_hidden",
            type="boolean",
            description="Include entries starting with a dot (default: false)",
            required=False,
        ),
        ToolParameter(
            name="sort_by",
            type="string",
            description="Sort order (default: name)",
            required=False,
            enum=["name", "size", "type"],
        ),
    ]
    arguments_model = ListDirectoryArgs
    read_only = True

    def check(self, args: ListDirectoryArgs) -> None:
        if not self.resolve_path(args.path).exists():
            raise ToolValidationError(self.name, "path", "path does not exist")

    async def run(self, args: ListDirectoryArgs) -> ListDirectoryOutput:
        path = self.resolve_path(args.path)

        try:
            info = path.stat()
        except OSError as e:
            return ListDirectoryOutput(
                error=f"Directory does not exist or cannot be accessed: {e}"
            )

        if not path.is_dir():
            return ListDirectoryOutput(entries=[
                DirectoryEntry(
                    name=path.name,
                    path=str(path),
                    is_dir=False,
                    size=info.st_size,
                    extension=path.suffix,
                )
            ])

        entries = []
        try:
            for child in path.iterdir():
                if not args.show_hidden and child.name.startswith("."):
                    continue
                try:
                    is_dir = child.is_dir()
                    size = child.stat().st_size
                except OSError:
                    # Dangling symlink or vanished entry
                    is_dir, size = False, 0
                entries.append(DirectoryEntry(
                    name=child.name,
                    path=str(child),
                    is_dir=is_dir,
                    size=size,
                    extension="" if is_dir else child.suffix,
                ))
        except OSError as e:
            return ListDirectoryOutput(error=f"Failed to read directory: {e}")

        entries.sort(key=_SORT_KEYS[args.sort_by])
        return ListDirectoryOutput(entries=entries)
