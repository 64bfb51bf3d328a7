"""Search tools: literal content search and file-name globbing."""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Union

from pydantic import Field

from codeloop.errors import ToolValidationError
from codeloop.models.tools import ToolParameter
from codeloop.tools.base import Tool, ToolArguments

logger = logging.getLogger(__name__)

DEFAULT_MAX_MATCHES = 100


# =============================================================================
# search_files
# =============================================================================

class SearchFilesArgs(ToolArguments):
    pattern: str = Field(min_length=1)
    file_paths: Union[str, list[str]]
    max_matches: int = Field(default=DEFAULT_MAX_MATCHES, gt=0)


@dataclass
class SearchMatch:
    file: str
    line: int  # 1-based
    content: str


@dataclass
class SearchFilesOutput:
    matches: list[SearchMatch] = field(default_factory=list)
    files_searched: int = 0
    truncated: bool = False
    error: Optional[str] = None


class SearchFilesTool(Tool[SearchFilesArgs]):
    """Find lines containing a literal string.

    ``max_matches`` caps the total across all files; scanning stops as soon
    as it is reached.
    """

    name = "search_files"
    description = (
        "Search files for lines containing a text (literal match, not a "
        "regular expression). file_paths may contain glob patterns."
    )
    parameters = [
        ToolParameter(
            name="pattern",
            type="string",
            description="Text to search for",
        ),
        ToolParameter(
            name="file_paths",
            type="array",
            description="Files or glob patterns to search (a single string is accepted)",
            any_of=[
                {"type": "string"},
                {"type": "array", "items": {"type": "string"}},
            ],
        ),
        ToolParameter(
            name="max_matches",
            type="integer",
            description=f"Maximum number of matches to return (default {DEFAULT_MAX_MATCHES})",
            required=False,
        ),
    ]
    arguments_model = SearchFilesArgs
    read_only = True

    def _paths(self, args: SearchFilesArgs) -> list[str]:
        paths = [args.file_paths] if isinstance(args.file_paths, str) else args.file_paths
        return [p for p in paths if p]

    def check(self, args: SearchFilesArgs) -> None:
        if not self._paths(args):
            raise ToolValidationError(
                self.name, "file_paths", "at least one file path is required"
            )

    def _expand(self, path: str) -> list[str]:
        """Resolve a path or glob; a glob with no matches is taken literally."""
        resolved = str(self.resolve_path(path))
        matches = sorted(glob.glob(resolved, recursive=True))
        return matches or [resolved]

    def _files(self, args: SearchFilesArgs) -> list[str]:
        """Files named by the arguments, each once, in first-seen order."""
        files: dict[str, str] = {}
        for path in self._paths(args):
            for file_path in self._expand(path):
                if os.path.isfile(file_path):
                    files.setdefault(os.path.realpath(file_path), file_path)
        return list(files.values())

    async def run(self, args: SearchFilesArgs) -> SearchFilesOutput:
        output = SearchFilesOutput()

        for file_path in self._files(args):
            try:
                with open(file_path, encoding="utf-8", errors="replace") as f:
                    lines = f.read().split("\n")
            except OSError as e:
                logger.debug(f"Skipping unreadable file {file_path}: {e}")
                continue

            output.files_searched += 1
            for number, line in enumerate(lines, start=1):
                if args.pattern in line:
                    output.matches.append(SearchMatch(file_path, number, line))
                    if len(output.matches) >= args.max_matches:
                        output.truncated = True
                        logger.debug(
                            f"Match limit {args.max_matches} reached after "
                            f"{output.files_searched} file(s)"
                        )
                        return output

        return output


# =============================================================================
# glob_files
# =============================================================================

class GlobFilesArgs(ToolArguments):
    pattern: str = Field(min_length=1)
    base_dir: str = "."


@dataclass
class GlobFilesOutput:
    files: list[str] = field(default_factory=list)
    error: Optional[str] = None


class GlobFilesTool(Tool[GlobFilesArgs]):
    """Find files by name pattern.

    A pattern without a path separator is searched for recursively under
    ``base_dir``.
    """

    name = "glob_files"
    description = (
        "Find files matching a glob pattern such as '*.py' or 'src/**/*.ts'. "
        "Patterns without a directory part match at any depth."
    )
    parameters = [
        ToolParameter(
            name="pattern",
            type="string",
            description="Glob pattern to match",
        ),
        ToolParameter(
            name="base_dir",
            type="string",
            description="Directory to search from (default: current directory)",
            required=False,
        ),
    ]
    arguments_model = GlobFilesArgs
    read_only = True

    def check(self, args: GlobFilesArgs) -> None:
        if not self.resolve_path(args.base_dir or ".").is_dir():
            raise ToolValidationError(self.name, "base_dir", "base directory does not exist")

    async def run(self, args: GlobFilesArgs) -> GlobFilesOutput:
        base = self.resolve_path(args.base_dir or ".")
        if not base.is_dir():
            return GlobFilesOutput(error="Base directory does not exist")

        if os.sep not in args.pattern and "/" not in args.pattern:
            pattern = os.path.join(str(base), "**", args.pattern)
        elif os.path.isabs(args.pattern):
            pattern = args.pattern
        else:
            pattern = os.path.join(str(base), args.pattern)

        files = sorted(
            match for match in glob.glob(pattern, recursive=True)
            if os.path.isfile(match)
        )
        logger.debug(f"Glob {pattern} matched {len(files)} file(s)")
        return GlobFilesOutput(files=files)
