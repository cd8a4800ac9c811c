"""Closed tool catalog and the dispatch boundary.

Every tool is identified by a ToolName, has one JSON Schema for its
arguments, and is exposed through a uniform async contract regardless of
whether the underlying handler is synchronous.
"""

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import jsonschema

from agentic_repo_agent.errors import ToolArgumentError, UnknownToolError, ValidationError
from agentic_repo_agent.tools import build, command, dev_server, filesystem, git, web
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.result import ToolResult, fail

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    # Filesystem
    WRITE_FILE = "write_file"
    READ_FILE = "read_file"
    LIST_FILES = "list_files"
    SEARCH_FILES = "search_files"
    # Git
    GIT_CLONE = "git_clone"
    GIT_STATUS = "git_status"
    GIT_DIFF = "git_diff"
    GIT_ADD = "git_add"
    GIT_COMMIT = "git_commit"
    GIT_PUSH = "git_push"
    GIT_CREATE_PR = "git_create_pr"
    GIT_STASH_BACKUP = "git_stash_backup"
    GIT_RESTORE_BACKUP = "git_restore_backup"
    GIT_CLEAR_BACKUP = "git_clear_backup"
    GIT_LOG = "git_log"
    # Build
    NPM_INSTALL = "npm_install"
    RUN_BUILD = "run_build"
    RUN_LINT = "run_lint"
    CHECK_BUILD_OUTPUT = "check_build_output"
    START_DEV_SERVER = "start_dev_server"
    STOP_DEV_SERVER = "stop_dev_server"
    CHECK_DEV_SERVER = "check_dev_server"
    # Command
    RUN_COMMAND = "run_command"
    # Verification
    VERIFY_URL = "verify_url"


AsyncHandler = Callable[..., Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    handler: Callable[..., Any]
    signature: str
    description: str
    category: str
    properties: Dict[str, Any] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)
    aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": self.properties,
            "required": self.required,
            "additionalProperties": False,
        }


_STRING = {"type": "string"}
_PATH = {"type": "string", "minLength": 1}

TOOL_SPECS: Dict[ToolName, ToolSpec] = {
    spec.name: spec
    for spec in [
        ToolSpec(
            ToolName.WRITE_FILE, filesystem.write_file,
            "write_file(path, content)", "Write/update a file", "FILESYSTEM",
            properties={"path": _PATH, "content": _STRING},
            required=["path", "content"],
        ),
        ToolSpec(
            ToolName.READ_FILE, filesystem.read_file,
            "read_file(path)", "Read file contents", "FILESYSTEM",
            properties={"path": _PATH},
            required=["path"],
        ),
        ToolSpec(
            ToolName.LIST_FILES, filesystem.list_files,
            "list_files(dir)", "List directory (default \".\")", "FILESYSTEM",
            properties={"dir": _PATH},
            aliases={"path": "dir", "directory": "dir"},
        ),
        ToolSpec(
            ToolName.SEARCH_FILES, filesystem.search_files,
            "search_files(query, dir)", "Search file names and contents", "FILESYSTEM",
            properties={"query": {"type": "string", "minLength": 1}, "dir": _PATH},
            required=["query"],
            aliases={"path": "dir"},
        ),
        ToolSpec(
            ToolName.GIT_STASH_BACKUP, git.git_stash_backup,
            "git_stash_backup()", "Create backup BEFORE modifications (ALWAYS call first!)", "GIT",
        ),
        ToolSpec(
            ToolName.GIT_RESTORE_BACKUP, git.git_restore_backup,
            "git_restore_backup()", "Rollback all changes if build fails", "GIT",
        ),
        ToolSpec(
            ToolName.GIT_CLEAR_BACKUP, git.git_clear_backup,
            "git_clear_backup()", "Clear backup after successful build", "GIT",
        ),
        ToolSpec(
            ToolName.GIT_STATUS, git.git_status,
            "git_status()", "Check working directory status", "GIT",
        ),
        ToolSpec(
            ToolName.GIT_DIFF, git.git_diff,
            "git_diff(file?)", "View changes", "GIT",
            properties={"file": _PATH},
        ),
        ToolSpec(
            ToolName.GIT_ADD, git.git_add,
            "git_add(files)", "Stage files (default \".\")", "GIT",
            properties={"files": {
                "oneOf": [
                    _PATH,
                    {"type": "array", "items": _PATH, "minItems": 1},
                ],
            }},
        ),
        ToolSpec(
            ToolName.GIT_COMMIT, git.git_commit,
            "git_commit(message)", "Commit staged changes", "GIT",
            properties={"message": {"type": "string", "minLength": 1}},
            required=["message"],
        ),
        ToolSpec(
            ToolName.GIT_PUSH, git.git_push,
            "git_push(branch?)", "Push to a feature branch (NEVER pushes to the primary branch)", "GIT",
            properties={"branch": _STRING},
        ),
        ToolSpec(
            ToolName.GIT_CREATE_PR, git.git_create_pr,
            "git_create_pr(title, body?)", "Create pull request from the feature branch", "GIT",
            properties={"title": {"type": "string", "minLength": 1}, "body": _STRING},
            required=["title"],
        ),
        ToolSpec(
            ToolName.GIT_CLONE, git.git_clone,
            "git_clone(url, target_dir)", "Clone repository (https or ssh only)", "GIT",
            properties={"url": {"type": "string", "minLength": 1}, "target_dir": _PATH},
            required=["url"],
            aliases={"targetDir": "target_dir"},
        ),
        ToolSpec(
            ToolName.GIT_LOG, git.git_log,
            "git_log(count)", "View recent commits", "GIT",
            properties={"count": {"type": "integer", "minimum": 1, "maximum": 100}},
        ),
        ToolSpec(
            ToolName.NPM_INSTALL, build.npm_install,
            "npm_install()", "Install dependencies", "BUILD",
        ),
        ToolSpec(
            ToolName.RUN_BUILD, build.run_build,
            "run_build()", "Run npm build (PRIMARY verification)", "BUILD",
        ),
        ToolSpec(
            ToolName.RUN_LINT, build.run_lint,
            "run_lint()", "Run linter", "BUILD",
        ),
        ToolSpec(
            ToolName.CHECK_BUILD_OUTPUT, build.check_build_output,
            "check_build_output()", "Check build output directory exists and is non-empty", "BUILD",
        ),
        ToolSpec(
            ToolName.START_DEV_SERVER, dev_server.start_dev_server,
            "start_dev_server(port?)", "Start the dev server (default port 3000)", "BUILD",
            properties={"port": {"type": "integer", "minimum": 1024, "maximum": 65535}},
        ),
        ToolSpec(
            ToolName.STOP_DEV_SERVER, dev_server.stop_dev_server,
            "stop_dev_server()", "Stop the dev server", "BUILD",
        ),
        ToolSpec(
            ToolName.CHECK_DEV_SERVER, dev_server.check_dev_server,
            "check_dev_server(path?)", "GET a path on the running dev server", "BUILD",
            properties={"path": _STRING},
        ),
        ToolSpec(
            ToolName.RUN_COMMAND, command.run_command,
            "run_command(command, args)", "Run an allow-listed command", "COMMAND",
            properties={
                "command": {"type": "string", "minLength": 1},
                "args": {"type": "array", "items": _STRING},
            },
            required=["command"],
        ),
        ToolSpec(
            ToolName.VERIFY_URL, web.verify_url,
            "verify_url(url, expected_content?, timeout?)", "Verify a URL is reachable (plain HTTP GET)", "VERIFICATION",
            properties={
                "url": {"type": "string", "minLength": 1},
                "expected_content": _STRING,
                "timeout": {"type": "number", "exclusiveMinimum": 0, "maximum": 60},
            },
            required=["url"],
            aliases={"expectedContent": "expected_content"},
        ),
    ]
}


def _as_async(handler: Callable[..., Any]) -> AsyncHandler:
    """Give sync and async handlers the same awaitable signature."""
    if inspect.iscoroutinefunction(handler):
        return handler

    @functools.wraps(handler)
    async def wrapper(*args, **kwargs):
        return await asyncio.to_thread(handler, *args, **kwargs)

    return wrapper


def resolve_tool(name: Any) -> ToolSpec:
    """Map a tool identifier onto the closed catalog."""
    try:
        return TOOL_SPECS[ToolName(name)]
    except ValueError:
        raise UnknownToolError(str(name))


def validate_args(spec: ToolSpec, args: Any) -> Dict[str, Any]:
    """Normalize declared aliases, drop nulls, and validate against the tool schema."""
    if args is None:
        args = {}
    if not isinstance(args, dict):
        raise ToolArgumentError(spec.name.value, "args must be an object")

    normalized: Dict[str, Any] = {
        key: value for key, value in args.items()
        if value is not None and key not in spec.aliases
    }
    for alias, target in spec.aliases.items():
        if args.get(alias) is not None and target not in normalized:
            normalized[target] = args[alias]

    errors = sorted(
        jsonschema.Draft7Validator(spec.schema).iter_errors(normalized),
        key=lambda e: list(e.path),
    )
    if errors:
        first = errors[0]
        where = ".".join(str(p) for p in first.path) or "args"
        raise ToolArgumentError(spec.name.value, f"{where}: {first.message}")
    return normalized


class ToolRegistry:
    """Binds the tool catalog to one ToolContext and dispatches calls."""

    def __init__(self, ctx: ToolContext, specs: Optional[Dict[ToolName, ToolSpec]] = None):
        self.ctx = ctx
        self.specs = dict(specs or TOOL_SPECS)
        self._handlers: Dict[ToolName, AsyncHandler] = {
            name: _as_async(spec.handler) for name, spec in self.specs.items()
        }

    def override(self, name: ToolName, handler: Callable[..., Any]) -> None:
        """Replace a handler (sync or async) while keeping its schema."""
        self._handlers[name] = _as_async(handler)

    async def dispatch(self, name: Any, args: Any) -> ToolResult:
        """
        Validate and run one tool call.

        Never raises: unknown tools, schema violations and unexpected
        handler exceptions all come back as failed ToolResults.
        """
        try:
            spec = resolve_tool(name)
            if spec.name not in self._handlers:
                raise UnknownToolError(str(name))
            kwargs = validate_args(spec, args)
        except ValidationError as e:
            logger.warning("Rejected tool call %r: %s", name, e)
            return fail(str(e), error_type=type(e).__name__)

        try:
            return await self._handlers[spec.name](self.ctx, **kwargs)
        except Exception as e:
            logger.exception("Tool %s raised", spec.name.value)
            return fail(f"{spec.name.value} raised {type(e).__name__}: {e}")

    def render_catalog(self) -> str:
        """Tool section of the system prompt, grouped by category."""
        lines: List[str] = ["AVAILABLE TOOLS:"]
        category = None
        for spec in self.specs.values():
            if spec.category != category:
                category = spec.category
                lines.append("")
                lines.append(f"=== {category} ===")
            lines.append(f"- {spec.signature}: {spec.description}")
        return "\n".join(lines)
