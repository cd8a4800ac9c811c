"""Tests for build, lint, install and command tools (subprocess stubbed)."""

import shutil

import pytest

from agentic_repo_agent.tools import build
from agentic_repo_agent.tools.command import run_command
from agentic_repo_agent.tools.process import ProcessOutput, run_process


class FakeProcess:
    """Stands in for run_process and records every argv."""

    def __init__(self, exit_code=0, stdout="", stderr="", timed_out=False):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        self.calls = []

    def __call__(self, argv, *, cwd, timeout_s, env=None):
        self.calls.append({"argv": list(argv), "cwd": cwd, "timeout_s": timeout_s, "env": env})
        return ProcessOutput(
            argv=list(argv),
            exit_code=self.exit_code,
            stdout=self.stdout,
            stderr=self.stderr,
            timed_out=self.timed_out,
        )


@pytest.fixture
def fake(monkeypatch):
    def install(**kwargs):
        proc = FakeProcess(**kwargs)
        monkeypatch.setattr(build, "run_process", proc)
        return proc
    return install


class TestNpmInstall:

    def test_uses_install_without_lockfile(self, plain_ctx, fake):
        proc = fake()
        result = build.npm_install(plain_ctx)
        assert result.success
        assert proc.calls[0]["argv"][:2] == ["npm", "install"]
        assert "--no-audit" in proc.calls[0]["argv"]
        assert proc.calls[0]["env"]["CI"] == "true"

    def test_uses_ci_with_lockfile(self, plain_ctx, fake):
        (plain_ctx.root / "package-lock.json").write_text("{}")
        proc = fake()
        build.npm_install(plain_ctx)
        assert proc.calls[0]["argv"][:2] == ["npm", "ci"]

    def test_failure_carries_exit_code(self, plain_ctx, fake):
        fake(exit_code=1, stderr="npm ERR! network")
        result = build.npm_install(plain_ctx)
        assert not result.success
        assert result.exit_code == 1
        assert result.failed


class TestRunBuild:

    def test_success(self, plain_ctx, fake):
        fake(stdout="Compiled successfully")
        result = build.run_build(plain_ctx)
        assert result.success
        assert result.data["exitCode"] == 0
        assert result.data["errors"] == []
        assert not result.failed

    def test_failure_extracts_error_lines(self, plain_ctx, fake):
        stderr = "\n".join(
            ["info compiling"]
            + [f"Error: Type 'x' is not assignable ({i})" for i in range(15)]
        )
        fake(exit_code=1, stderr=stderr)
        result = build.run_build(plain_ctx)
        assert not result.success
        assert result.exit_code == 1
        assert len(result.data["errors"]) == 10
        assert all("Error:" in line for line in result.data["errors"])

    def test_output_is_capped(self, plain_ctx, fake):
        fake(stdout="x" * 10000)
        result = build.run_build(plain_ctx)
        assert len(result.data["stdout"]) == 2000

    def test_timeout_is_a_failed_result(self, plain_ctx, fake):
        fake(exit_code=-1, stderr="Execution timed out after 120 seconds", timed_out=True)
        result = build.run_build(plain_ctx)
        assert result.failed
        assert result.data["errors"][0].startswith("Execution timed out")


class TestRunLint:

    def test_lint_failure(self, plain_ctx, fake):
        fake(exit_code=2, stdout="  1:1  error  Unexpected var")
        result = build.run_lint(plain_ctx)
        assert result.failed
        assert result.data["summary"] == "Lint failed"

    def test_lint_and_build_share_timeout(self, plain_ctx, fake):
        proc = fake()
        build.run_lint(plain_ctx)
        build.run_build(plain_ctx)
        assert [c["timeout_s"] for c in proc.calls] == [120.0, 120.0]


class TestCheckBuildOutput:

    def test_missing(self, plain_ctx):
        result = build.check_build_output(plain_ctx)
        assert not result.success

    def test_empty_directory_does_not_count(self, plain_ctx):
        (plain_ctx.root / "dist").mkdir()
        assert not build.check_build_output(plain_ctx).success

    def test_found(self, plain_ctx):
        (plain_ctx.root / ".next").mkdir()
        (plain_ctx.root / ".next" / "BUILD_ID").write_text("1")
        result = build.check_build_output(plain_ctx)
        assert result.success
        assert result.data["build_dir"] == ".next"


class TestRunCommand:

    def test_blocked_command_never_runs(self, plain_ctx):
        result = run_command(plain_ctx, "rm", ["-rf", "/"])
        assert not result.success
        assert result.data["blocked"] is True

    @pytest.mark.skipif(shutil.which("echo") is None, reason="echo not available")
    def test_allowed_command_runs_with_verbatim_args(self, plain_ctx):
        result = run_command(plain_ctx, "echo", ["$HOME", "; rm -rf /"])
        assert result.success
        assert result.data["exitCode"] == 0
        assert result.data["stdout"].strip() == "$HOME ; rm -rf /"

    @pytest.mark.skipif(shutil.which("ls") is None, reason="ls not available")
    def test_non_zero_exit_is_failure(self, plain_ctx):
        result = run_command(plain_ctx, "ls", ["definitely-missing-file"])
        assert result.failed
        assert result.exit_code != 0


class TestRunProcess:

    def test_missing_executable_is_not_raised(self, tmp_path):
        out = run_process(["definitely-not-a-real-binary-xyz"], cwd=tmp_path, timeout_s=5)
        assert out.exit_code == -1
        assert out.stderr


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
