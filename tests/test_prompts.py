"""Tests for prompt rendering, tool-result feedback and context caps."""

import json

import pytest

from agentic_repo_agent.constants import CONTEXT_FIELD_LIMIT, CONTEXT_MESSAGE_LIMIT
from agentic_repo_agent.execution_state import ExecutionState
from agentic_repo_agent.prompts import (
    build_system_prompt,
    format_goal,
    format_state_summary,
    format_tool_result,
)
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.registry import ToolRegistry
from agentic_repo_agent.tools.result import ToolResult, fail, ok
from agentic_repo_agent.truncation import cap_fields, truncate_text


# =============================================================================
# Truncation
# =============================================================================

class TestTruncateText:

    def test_short_text_untouched(self):
        assert truncate_text("hello", 10) == ("hello", False)

    def test_marker_reports_dropped_size(self):
        text, cut = truncate_text("a" * 25, 10)
        assert cut
        assert text.startswith("a" * 10)
        assert text.endswith("[truncated 15 chars]")

    def test_none_is_empty(self):
        assert truncate_text(None, 10) == ("", False)


class TestCapFields:

    def test_nested_paths_reported(self):
        value = {"stdout": "x" * 30, "files": [{"content": "y" * 30}, {"content": "ok"}], "exitCode": 1}
        capped, paths = cap_fields(value, limit=10)
        assert paths == ["stdout", "files[0].content"]
        assert capped["exitCode"] == 1
        assert capped["files"][1]["content"] == "ok"
        assert "[truncated 20 chars]" in capped["stdout"]

    def test_bare_string(self):
        _, paths = cap_fields("z" * 20, limit=5)
        assert paths == ["<value>"]


# =============================================================================
# Prompts
# =============================================================================

class TestSystemPrompt:

    def test_contains_catalog_and_format(self, tmp_path):
        catalog = ToolRegistry(ToolContext.for_root(tmp_path)).render_catalog()
        prompt = build_system_prompt(catalog)
        assert "AVAILABLE TOOLS:" in prompt
        assert "- git_stash_backup(): " in prompt
        assert '{"done": true, "result": "Summary of changes"}' in prompt
        assert "PROJECT KNOWLEDGE" not in prompt

    def test_knowledge_block(self):
        prompt = build_system_prompt("AVAILABLE TOOLS:", knowledge="  Uses Next.js app router\n")
        assert "=== PROJECT KNOWLEDGE ===\nUses Next.js app router\n" in prompt

    def test_goal_message(self):
        assert format_goal("Add a footer").startswith("GOAL: Add a footer\n\nFirst, provide a plan")


class TestFormatToolResult:

    def test_success(self):
        text = format_tool_result("list_files", ok(files=["a.txt"]))
        assert text.startswith('Tool "list_files" succeeded:\n')
        assert json.loads(text.split("\n", 1)[1]) == {"files": ["a.txt"]}

    def test_nonzero_exit_code_is_command_failure(self):
        result = ToolResult(success=False, error="Build failed", data={"exitCode": 2, "stderr": "TS2304"})
        text = format_tool_result("run_build", result)
        assert text.startswith("⚠️ COMMAND FAILED (exitCode=2):\nBuild failed\n")
        assert "TS2304" in text
        assert text.endswith("You MUST fix the error before marking done.")

    def test_exit_code_checked_even_when_success_flag_set(self):
        result = ToolResult(success=True, data={"exitCode": 1})
        assert format_tool_result("run_command", result).startswith("⚠️ COMMAND FAILED (exitCode=1)")

    def test_tool_error_without_data(self):
        text = format_tool_result("read_file", fail("File not found: x"))
        assert text == "⚠️ TOOL ERROR: File not found: x\n\nYou may need to try a different approach."

    def test_tool_error_with_details(self):
        text = format_tool_result("write_file", fail("Path escapes project root", reason="outside_root"))
        assert "\n\nDetails:\n" in text
        assert '"reason": "outside_root"' in text

    def test_large_fields_are_capped(self):
        text = format_tool_result("read_file", ok(content="x" * (CONTEXT_FIELD_LIMIT * 2)))
        assert "[truncated" in text
        assert len(text) < CONTEXT_FIELD_LIMIT + 200

    def test_whole_message_is_capped(self):
        data = {f"f{i}": "y" * (CONTEXT_FIELD_LIMIT - 1) for i in range(5)}
        text = format_tool_result("search_files", ok(**data))
        assert text.endswith("chars]")
        assert len(text) <= CONTEXT_MESSAGE_LIMIT + 50


class TestStateSummary:

    def test_fields(self):
        state = ExecutionState.new(max_steps=10)
        state.set_goal("g")
        state.add_changed_file("a.txt")
        state.set_build_status(False, errors=["boom"])
        state.increment_iteration()
        state.record_repair("boom")
        text = format_state_summary(state)
        assert text.splitlines() == [
            "CURRENT STATE:",
            "- Files changed: a.txt",
            "- Build: failed",
            "- Verification: not run",
            "- Git: uncommitted",
            "- Iteration: 1/10",
            "- Repairs: 1",
        ]

    def test_plan_step_shown(self):
        state = ExecutionState.new(max_steps=5)
        state.set_plan(["one", "two"])
        assert format_state_summary(state).endswith("- Plan step: 1/2")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
