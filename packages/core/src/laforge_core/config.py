import logging
import os
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "pr_dir": ".pr",
    "snapshot_file": "pr.md",
    "attachments_dir": "attachments",  # relative to pr_dir
    "session_file": "agent-config.json",
    "status_file": "status.yaml",
    "legacy_status_file": "status.md",
    "commit_message_file": "commit.md",
    "ledger_file": "published.json",
    "dedupe_publish": True,
    "default_agent": "sonnet",
    "agents": None,  # None = built-in registry; set to {name: model_id} to replace it
    "agent_command": "claude",
    "prompt": "Work on the current PR.",
    "critique_prompt": (
        "Critique the current state of the PR. Review the changes and the discussion, "
        "and write your findings to the status file. Do not modify code."
    ),
}

# Environment variables each command needs before it can talk to Gitea.
API_ENV_VARS = {
    "gitea_api_url": "GITEA_API_URL",
    "gitea_token": "GITEA_TOKEN",
    "repo_owner": "GITEA_REPO_OWNER",
    "repo_name": "GITEA_REPO_NAME",
}


def load_config(config_path: Optional[str] = ".laforge.yml") -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .laforge.yml in the current directory (skipped if config_path is None)
    and then resolve the invocation inputs from the environment.

    Raises yaml.YAMLError or OSError if the file cannot be read, and
    ValueError if it does not hold a mapping.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path) if config_path else None
    if path is not None and path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    # Gitea Actions exposes the job token under the GitHub-compatible name as well.
    config["gitea_api_url"] = os.environ.get("GITEA_API_URL")
    config["gitea_token"] = os.environ.get("GITEA_TOKEN") or os.environ.get("GITHUB_TOKEN")
    config["repo_owner"] = os.environ.get("GITEA_REPO_OWNER")
    config["repo_name"] = _repo_name(os.environ.get("GITEA_REPO_NAME"))
    config["pr_index"] = _env_int("PR_INDEX")
    config["comment_id"] = _env_int("COMMENT_ID")
    config["github_output"] = os.environ.get("GITHUB_OUTPUT")

    return config


def missing_api_settings(config: dict) -> list[str]:
    """Return the names of the environment variables the Gitea client still needs."""
    return [env for key, env in API_ENV_VARS.items() if not config.get(key)]


def pr_path(config: dict, key: str) -> Path:
    """Resolve a file name from config relative to the ``pr_dir`` directory."""
    return Path(config["pr_dir"]) / config[key]


def _repo_name(raw: str | None) -> str | None:
    # GITEA_REPO_NAME is often populated from ${{ github.repository }}, i.e. "owner/name".
    if not raw:
        return None
    return raw.split("/")[-1]


def _env_int(name: str) -> int | None:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return None
