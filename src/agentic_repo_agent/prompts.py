"""Prompt text and message formatting for the agent loop."""

import json
from typing import Optional

from agentic_repo_agent.constants import CONTEXT_FIELD_LIMIT, CONTEXT_MESSAGE_LIMIT
from agentic_repo_agent.execution_state import ExecutionState
from agentic_repo_agent.tools.result import ToolResult
from agentic_repo_agent.truncation import cap_fields, truncate_text


SYSTEM_PROMPT_TEMPLATE = """You are a repository maintenance agent.

YOUR MISSION:
Make precise, minimal modifications to the repository in the working directory
so that the user's goal is met, the build passes, and the change is proposed
as a pull request for human review.
{knowledge}
SAFE WORKFLOW (CRITICAL - FOLLOW THIS ORDER):
1. BACKUP: Call git_stash_backup() BEFORE any file modifications
2. MODIFY: Make targeted changes with write_file()
3. BUILD: Call run_build() - this validates your changes
4. IF BUILD FAILS: Call git_restore_backup() to rollback, then fix and retry
5. IF BUILD PASSES: Call git_clear_backup()
6. COMMIT: git_add(), git_commit() with a descriptive message
7. PUSH: git_push() - this always uses a feature branch, never the primary branch
8. PR: git_create_pr(title, body) to open a pull request for review
9. DONE: Report success with the PR URL

{catalog}

RESPONSE FORMAT (JSON only, exactly one of):

Plan: {{"plan": ["Step 1", "Step 2", ...]}}
Tool: {{"tool": "tool_name", "args": {{...}}}}
Done: {{"done": true, "result": "Summary of changes"}}

RULES:
1. ONE tool call at a time
2. ALWAYS call git_stash_backup() before any write_file()
3. ALWAYS call git_restore_backup() if the build fails
4. ALWAYS create a PR instead of pushing to the primary branch
5. The build MUST pass before marking done
6. Match the existing code style exactly
7. Paths are relative to the repository root; never leave it

ERROR HANDLING:
- Build fails? Call git_restore_backup(), fix the issue, create a new backup, retry
- Max 3 retries per error
- Report failure if stuck

EXAMPLE WORKFLOW:

Goal: "Add a footer link to the changelog"
{{"plan": ["Backup state", "Read footer", "Add link", "Build", "Commit and PR"]}}
{{"tool": "git_stash_backup", "args": {{}}}}
{{"tool": "read_file", "args": {{"path": "src/components/Footer.tsx"}}}}
{{"tool": "write_file", "args": {{"path": "src/components/Footer.tsx", "content": "..."}}}}
{{"tool": "run_build", "args": {{}}}}
{{"tool": "git_clear_backup", "args": {{}}}}
{{"tool": "git_add", "args": {{"files": "."}}}}
{{"tool": "git_commit", "args": {{"message": "feat: link changelog from footer"}}}}
{{"tool": "git_push", "args": {{}}}}
{{"tool": "git_create_pr", "args": {{"title": "Link changelog from footer", "body": "Adds a footer link"}}}}
{{"done": true, "result": "Added changelog link - PR created at [url]"}}"""

PLAN_FOLLOWUP = "Execute the plan step by step. Start with step 1."


def build_system_prompt(catalog: str, knowledge: Optional[str] = None) -> str:
    """Render the system prompt from the registry's tool catalog."""
    block = ""
    if knowledge and knowledge.strip():
        block = f"\n=== PROJECT KNOWLEDGE ===\n{knowledge.strip()}\n"
    return SYSTEM_PROMPT_TEMPLATE.format(knowledge=block, catalog=catalog)


def format_goal(goal: str) -> str:
    return f"GOAL: {goal}\n\nFirst, provide a plan with concrete steps. Then execute each step."


def format_tool_result(tool: str, result: ToolResult) -> str:
    """
    Feed a tool outcome back to the model.

    Large fields are capped before serialization so one verbose result
    cannot crowd the rest of the history out of the context window.
    """
    capped, _ = cap_fields(result.data or {}, CONTEXT_FIELD_LIMIT)
    body = json.dumps(capped, indent=2, default=str)

    if result.exit_code not in (None, 0):
        text = (
            f"⚠️ COMMAND FAILED (exitCode={result.exit_code}):\n"
            f"{result.error or ''}\n{body}\n\n"
            f"You MUST fix the error before marking done."
        )
    elif not result.success:
        text = (
            f"⚠️ TOOL ERROR: {result.error}\n\n"
            f"You may need to try a different approach."
        )
        if result.data:
            text += f"\n\nDetails:\n{body}"
    else:
        text = f'Tool "{tool}" succeeded:\n{body}'
    return truncate_text(text, CONTEXT_MESSAGE_LIMIT)[0]


def format_state_summary(state: ExecutionState) -> str:
    files = ", ".join(state.changed_files) if state.changed_files else "none"
    lines = [
        "CURRENT STATE:",
        f"- Files changed: {files}",
        f"- Build: {state.build_outcome()}",
        f"- Verification: {state.verification_outcome()}",
        f"- Git: {state.git.label}",
        f"- Iteration: {state.iteration.count}/{state.iteration.max}",
        f"- Repairs: {state.iteration.repairs}",
    ]
    if state.plan.steps:
        lines.append(f"- Plan step: {state.plan.current_step + 1}/{len(state.plan.steps)}")
    return "\n".join(lines)
