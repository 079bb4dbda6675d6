"""
Built-in tools for the orchestrator.
Each tool is a FunctionTool with a JSON schema; failures are raised, not returned.
Tools reach files and commands through a LocalBackend confined to the working directory.
"""

from tools.external_ops import shell_command, make_user_input, CommandFailed  # noqa: F401
from tools.file_ops import read_file, write_file  # noqa: F401
from tools.flows import make_sub_flow, make_iterator  # noqa: F401
from tools.search_ops import list_directory, clear_ignore_cache  # noqa: F401
from tools.schemas import build_default_tools  # noqa: F401
