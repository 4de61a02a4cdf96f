"""
Client-side orchestration of pipe runs with local tool execution.
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .config import Settings
from .pipes import (
    Pipe,
    PipeOptions,
    RunOptions,
    RunResponse,
    RunResponseStream,
    Message,
    ToolDefinition,
    generate_text,
    stream_text,
    process_chunk,
    is_content,
    is_tool_call,
    is_unknown,
    get_text_content,
    get_text_delta,
    print_stream_to_stdout,
    PipeError,
    ToolNotFoundError,
    MalformedToolArgumentsError,
    DuplicateToolError,
    APIError,
)
