"""Tests for the closed tool catalog and dispatch boundary."""

import asyncio

import pytest

from agentic_repo_agent.errors import ToolArgumentError, UnknownToolError
from agentic_repo_agent.tools.registry import (
    TOOL_SPECS,
    ToolName,
    ToolRegistry,
    resolve_tool,
    validate_args,
)
from agentic_repo_agent.tools.result import ok


class TestCatalog:

    def test_every_tool_name_has_a_spec(self):
        assert set(TOOL_SPECS) == set(ToolName)

    def test_schemas_are_closed(self):
        for spec in TOOL_SPECS.values():
            assert spec.schema["additionalProperties"] is False
            assert set(spec.required) <= set(spec.properties)

    def test_resolve_known(self):
        assert resolve_tool("write_file").name is ToolName.WRITE_FILE

    def test_resolve_unknown_raises_typed_error(self):
        with pytest.raises(UnknownToolError) as exc:
            resolve_tool("rm_rf")
        assert exc.value.name == "rm_rf"

    def test_catalog_groups_by_category(self, plain_ctx):
        text = ToolRegistry(plain_ctx).render_catalog()
        assert text.startswith("AVAILABLE TOOLS:")
        for header in ("=== FILESYSTEM ===", "=== GIT ===", "=== BUILD ===", "=== COMMAND ===", "=== VERIFICATION ==="):
            assert header in text
        assert "- git_stash_backup(): Create backup BEFORE modifications" in text


class TestValidateArgs:

    def test_missing_required(self):
        with pytest.raises(ToolArgumentError, match="write_file"):
            validate_args(TOOL_SPECS[ToolName.WRITE_FILE], {"path": "a.txt"})

    def test_unexpected_property(self):
        with pytest.raises(ToolArgumentError):
            validate_args(TOOL_SPECS[ToolName.READ_FILE], {"path": "a", "mode": "rb"})

    def test_wrong_type(self):
        with pytest.raises(ToolArgumentError):
            validate_args(TOOL_SPECS[ToolName.GIT_LOG], {"count": "five"})

    def test_aliases_are_normalized(self):
        args = validate_args(TOOL_SPECS[ToolName.LIST_FILES], {"path": "src"})
        assert args == {"dir": "src"}
        args = validate_args(TOOL_SPECS[ToolName.GIT_CLONE], {"url": "https://x/y.git", "targetDir": "app"})
        assert args == {"url": "https://x/y.git", "target_dir": "app"}

    def test_canonical_name_wins_over_alias(self):
        args = validate_args(TOOL_SPECS[ToolName.LIST_FILES], {"path": "b", "dir": "a"})
        assert args == {"dir": "a"}

    def test_null_values_dropped(self):
        assert validate_args(TOOL_SPECS[ToolName.GIT_DIFF], {"file": None}) == {}

    def test_none_args_treated_as_empty(self):
        assert validate_args(TOOL_SPECS[ToolName.GIT_STATUS], None) == {}

    def test_git_add_accepts_string_or_list(self):
        spec = TOOL_SPECS[ToolName.GIT_ADD]
        assert validate_args(spec, {"files": "."}) == {"files": "."}
        assert validate_args(spec, {"files": ["a", "b"]}) == {"files": ["a", "b"]}
        with pytest.raises(ToolArgumentError):
            validate_args(spec, {"files": []})

    def test_args_must_be_object(self):
        with pytest.raises(ToolArgumentError):
            validate_args(TOOL_SPECS[ToolName.GIT_STATUS], ["x"])


class TestDispatch:
    """dispatch() never raises; it always returns a ToolResult."""

    def test_unknown_tool_is_failed_result(self, plain_ctx):
        result = asyncio.run(ToolRegistry(plain_ctx).dispatch("format_disk", {}))
        assert not result.success
        assert result.error == "Unknown tool: format_disk"
        assert result.data["error_type"] == "UnknownToolError"

    def test_bad_args_are_failed_result(self, plain_ctx):
        result = asyncio.run(ToolRegistry(plain_ctx).dispatch("read_file", {}))
        assert not result.success
        assert result.data["error_type"] == "ToolArgumentError"

    def test_sync_handler_runs_through_async_contract(self, plain_ctx):
        (plain_ctx.root / "hello.txt").write_text("hi")
        result = asyncio.run(ToolRegistry(plain_ctx).dispatch(ToolName.READ_FILE, {"path": "hello.txt"}))
        assert result.success
        assert result.data["content"] == "hi"

    def test_override_with_async_handler(self, plain_ctx):
        registry = ToolRegistry(plain_ctx)
        seen = {}

        async def fake_build(ctx):
            seen["root"] = ctx.root
            return ok(exitCode=0)

        registry.override(ToolName.RUN_BUILD, fake_build)
        result = asyncio.run(registry.dispatch("run_build", {}))
        assert result.success
        assert seen["root"] == plain_ctx.root

    def test_handler_exception_becomes_failed_result(self, plain_ctx):
        registry = ToolRegistry(plain_ctx)

        def explode(ctx):
            raise RuntimeError("kaboom")

        registry.override(ToolName.RUN_LINT, explode)
        result = asyncio.run(registry.dispatch("run_lint", {}))
        assert not result.success
        assert "kaboom" in result.error

    def test_validation_happens_before_handler(self, plain_ctx):
        registry = ToolRegistry(plain_ctx)
        called = []
        registry.override(ToolName.WRITE_FILE, lambda ctx, **kw: called.append(kw))
        result = asyncio.run(registry.dispatch("write_file", {"path": "a.txt"}))
        assert not result.success
        assert called == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
