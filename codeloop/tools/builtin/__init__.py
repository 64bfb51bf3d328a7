"""Built-in tools.

- Shell command execution (bash)
- File operations (read, write, edit, list)
- Search (content search, glob)
- Reasoning passthrough (think)
"""

from codeloop.tools.builtin.files import (
    EditFileTool,
    ListDirectoryTool,
    ReadFileTool,
    WriteFileTool,
)
from codeloop.tools.builtin.search import GlobFilesTool, SearchFilesTool
from codeloop.tools.builtin.shell import DENIED_COMMANDS, BashTool
from codeloop.tools.builtin.think import ThinkTool

# Registration order is the order tools are advertised to the model
BUILTIN_TOOLS = (
    BashTool,
    ReadFileTool,
    WriteFileTool,
    EditFileTool,
    ListDirectoryTool,
    SearchFilesTool,
    GlobFilesTool,
    ThinkTool,
)

__all__ = [
    "BUILTIN_TOOLS",
    "DENIED_COMMANDS",
    "BashTool",
    "ReadFileTool",
    "WriteFileTool",
    "EditFileTool",
    "ListDirectoryTool",
    "SearchFilesTool",
    "GlobFilesTool",
    "ThinkTool",
]
