"""Built-in tool schemas and assembly of the default tool set."""

import functools
import logging
from typing import Awaitable, Callable, List, Optional

from backend import LocalBackend
from orchestrator.registry import FlowRegistry, FunctionTool, ToolHandler
from tools._common import _schema
from tools.external_ops import make_user_input, shell_command
from tools.file_ops import read_file, write_file
from tools.flows import make_iterator, make_sub_flow
from tools.search_ops import list_directory

logger = logging.getLogger(__name__)

SHELL_COMMAND_SCHEMA = _schema(
    {
        "command": {"type": "string", "description": "Shell command to run in the working directory"},
        "timeout": {"type": "integer", "description": "Timeout in seconds (default: 30)"},
    },
    ["command"],
)

READ_FILE_SCHEMA = _schema(
    {
        "path": {"type": "string", "description": "File path (relative to working directory)"},
        "offset": {"type": "integer", "description": "1-based line to start from"},
        "limit": {"type": "integer", "description": "Number of lines to read"},
    },
    ["path"],
)

WRITE_FILE_SCHEMA = _schema(
    {
        "path": {"type": "string", "description": "File path (relative to working directory)"},
        "content": {"type": "string", "description": "Full file content to write"},
    },
    ["path", "content"],
)

LIST_DIRECTORY_SCHEMA = _schema(
    {
        "path": {"type": "string", "description": "Directory to list (default: working directory)"},
    },
    [],
)

USER_INPUT_SCHEMA = _schema(
    {
        "prompt": {"type": "string", "description": "The message to display to the user when asking for input."},
    },
    ["prompt"],
)

SUB_FLOW_SCHEMA = _schema(
    {
        "flow": {"type": "string", "description": "Name of a registered flow"},
        "params": {"type": "object", "description": "Parameters passed to the flow"},
    },
    ["flow"],
)

ITERATOR_SCHEMA = _schema(
    {
        "flow": {"type": "string", "description": "Name of a registered flow"},
        "items": {"type": "array", "description": "Items; the flow runs once per item"},
        "params": {"type": "object", "description": "Extra parameters passed on every run"},
    },
    ["flow", "items"],
)


def build_default_tools(
    backend: LocalBackend,
    ask: Optional[Callable[[str], Awaitable[str]]] = None,
    flow_registry: Optional[FlowRegistry] = None,
    command_timeout: int = 30,
) -> List[ToolHandler]:
    """Assemble the built-in tools for a working directory.

    user_input is included only when an ask channel is given; sub_flow and
    iterator only when a flow registry is given.
    """
    tools: List[ToolHandler] = [
        FunctionTool(
            "shell_command",
            "Execute a shell command in the working directory and return its output.",
            SHELL_COMMAND_SCHEMA,
            functools.partial(_shell_with_default_timeout, backend, command_timeout),
        ),
        FunctionTool(
            "read_file",
            "Read a text file. Returns line-numbered content; use offset/limit for large files.",
            READ_FILE_SCHEMA,
            functools.partial(read_file, backend),
        ),
        FunctionTool(
            "write_file",
            "Create or overwrite a text file with the given content.",
            WRITE_FILE_SCHEMA,
            functools.partial(write_file, backend),
        ),
        FunctionTool(
            "list_directory",
            "List files and directories at a path, skipping .gitignore'd entries.",
            LIST_DIRECTORY_SCHEMA,
            functools.partial(list_directory, backend),
        ),
    ]
    if ask is not None:
        tools.append(FunctionTool(
            "user_input",
            "Prompts the user for input and waits for their response.",
            USER_INPUT_SCHEMA,
            make_user_input(ask),
        ))
    if flow_registry is not None:
        tools.append(FunctionTool(
            "sub_flow",
            "Run a predefined flow by name and return its result.",
            SUB_FLOW_SCHEMA,
            make_sub_flow(flow_registry),
        ))
        tools.append(FunctionTool(
            "iterator",
            "Run a predefined flow once for each item of a list and return all results.",
            ITERATOR_SCHEMA,
            make_iterator(flow_registry),
        ))
    logger.debug(f"Built {len(tools)} default tools")
    return tools


def _shell_with_default_timeout(backend: LocalBackend, default_timeout: int, command: str, timeout: Optional[int] = None) -> str:
    return shell_command(backend, command, timeout=timeout or default_timeout)
