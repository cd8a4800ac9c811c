"""Constants for the repository agent."""

import os

# Model defaults. OPENAI_MODEL overrides the primary model at config load.
DEFAULT_MODEL = "gpt-4o"
FALLBACK_MODEL = "gpt-4o-mini"

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
GITHUB_API_URL = "https://api.github.com"

# Loop budget
DEFAULT_MAX_STEPS = 15
STATE_SUMMARY_EVERY = 3

GOAL_FILE = "goal.txt"
DEFAULT_GOAL = "List all files in the current directory and report the project structure."

# Version control
DEFAULT_PRIMARY_BRANCH = "main"
FEATURE_BRANCH_PREFIX = "agent/changes-"
BACKUP_LABEL = "AGENT_BACKUP_PRE_MODIFICATION"
AGENT_GIT_NAME = "repo-agent[bot]"
AGENT_GIT_EMAIL = "repo-agent[bot]@users.noreply.github.com"

# Timeouts (seconds)
COMMAND_TIMEOUT_S = 30.0
GIT_TIMEOUT_S = 60.0
LINT_TIMEOUT_S = 120.0
BUILD_TIMEOUT_S = 120.0
INSTALL_TIMEOUT_S = 300.0
HTTP_TIMEOUT_S = 10.0
LLM_TIMEOUT_S = float(os.getenv("AGENT_LLM_TIMEOUT_S", "120"))
DEV_SERVER_START_TIMEOUT_S = 60.0

# LLM request shape
LLM_MAX_TOKENS = 16384
LLM_MAX_RETRIES = 3
RATE_LIMIT_DEFAULT_WAIT_S = 20.0
RATE_LIMIT_BUFFER_S = 1.0
BACKOFF_BASE_S = 2.0

# Output budgets
BUILD_OUTPUT_CAP = 2000          # chars of stdout/stderr kept by build/lint tools
MAX_ERROR_LINES = 10
SEARCH_RESULT_LIMIT = 20
CONTEXT_FIELD_LIMIT = 6000       # chars per string field placed into LLM context
CONTEXT_MESSAGE_LIMIT = 16000    # chars per tool-result message
PROGRESS_DATA_LIMIT = 500        # chars of tool data echoed to the progress stream

PROJECT_MARKER = "package.json"
LOCKFILE = "package-lock.json"
BUILD_OUTPUT_DIRS = [".next", "dist", "build", "out"]
SEARCH_SKIP_DIRS = {".git", "node_modules", ".next", "__pycache__"}
