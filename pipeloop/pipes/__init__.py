# pyright: reportUnusedImport=false
# flake8: noqa

from .errors import (
    PipeError,
    ToolError,
    ToolNotFoundError,
    MalformedToolArgumentsError,
    DuplicateToolError,
    APIError,
)
from .messages import (
    FunctionCall,
    ToolCall,
    Message,
    Variable,
    RunOptions,
    RunResponse,
    RunResponseStream,
    ChunkStream,
)
from .tools import ToolDefinition, ToolRegistry
from .executor import ToolExecutor
from .chunks import (
    Chunk,
    ContentChunk,
    ToolCallChunk,
    UnknownChunk,
    process_chunk,
    is_content,
    is_tool_call,
    is_unknown,
    get_text_content,
    get_text_delta,
    print_stream_to_stdout,
)
from .stream import tee, get_tools_from_stream
from .request import PipeRequest, cleanup_clients
from .pipe import Pipe, PipeOptions, generate_text, stream_text
