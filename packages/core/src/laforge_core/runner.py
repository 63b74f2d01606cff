"""Runs the agent CLI with the resolved model.

The agent's stream-json output is passed through to the job log untouched.
If the agent changed files outside the PR working directory but did not
write a commit message, it is asked to write one in a continuation run.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from laforge_core.resolver import CRITIQUE_MODE, AgentDecision

logger = logging.getLogger(__name__)

COMMIT_MESSAGE_PROMPT = "Write a commit message to {path}"


def _agent_command(executable: str, model_id: str, prompt: str, continue_session: bool = False) -> list[str]:
    cmd = [executable, "--model", model_id, "--output-format", "stream-json", "--verbose"]
    if continue_session:
        cmd.append("-c")
    return cmd + ["-p", prompt]


def _agent_env(decision: AgentDecision) -> dict[str, str]:
    return {
        **os.environ,
        "AGENT_NAME": decision.agent,
        "AGENT_MODE": decision.mode,
        "MODEL_ID": decision.model_id,
        "MODELNAME": decision.model_id,  # name used by the earlier shell wrapper
    }


def has_changes_outside(pr_dir: str, cwd: str | Path = ".") -> bool:
    """Return True if the worktree differs from HEAD anywhere but ``pr_dir``."""
    result = subprocess.run(
        ["git", "diff", "--quiet", "HEAD", "--", f":!{pr_dir}"],
        cwd=cwd,
        capture_output=True,
        text=True,
    )
    if result.returncode not in (0, 1):
        logger.warning("git diff failed (%d): %s", result.returncode, result.stderr.strip())
        return False
    return result.returncode == 1


def run_agent(decision: AgentDecision, config: dict, cwd: str | Path = ".") -> int:
    """Run the agent for this invocation and return its exit code.

    Raises FileNotFoundError if the agent executable is not installed.
    """
    executable = config.get("agent_command", "claude")
    prompt = config["critique_prompt"] if decision.mode == CRITIQUE_MODE else config["prompt"]
    env = _agent_env(decision)

    logger.info("Running %s (%s, %s mode)", decision.agent, decision.model_id, decision.mode)
    returncode = subprocess.run(
        _agent_command(executable, decision.model_id, prompt), cwd=cwd, env=env, check=False
    ).returncode
    if returncode != 0:
        logger.error("Agent exited with status %d", returncode)
        return returncode

    pr_dir = config.get("pr_dir", ".pr")
    commit_file = Path(cwd) / pr_dir / config.get("commit_message_file", "commit.md")
    if not has_changes_outside(pr_dir, cwd=cwd):
        logger.info("No changes outside %s, skipping commit message generation", pr_dir)
        return 0
    if commit_file.exists():
        return 0

    logger.info("Asking the agent for a commit message")
    commit_prompt = COMMIT_MESSAGE_PROMPT.format(path=f"{pr_dir}/{commit_file.name}")
    return subprocess.run(
        _agent_command(executable, decision.model_id, commit_prompt, continue_session=True),
        cwd=cwd,
        env=env,
        check=False,
    ).returncode
