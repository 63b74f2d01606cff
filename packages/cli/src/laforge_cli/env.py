"""Validation of the environment-level invocation inputs.

Workflow steps pass their inputs as environment variables, not flags, so a
missing value is reported by variable name.
"""

from __future__ import annotations

import click

from laforge_core.config import missing_api_settings


def require_api_settings(config: dict, need_pr: bool = True) -> None:
    """Raise a UsageError naming every missing variable the command needs."""
    missing = missing_api_settings(config)
    if need_pr and config.get("pr_index") is None:
        missing.append("PR_INDEX")
    if missing:
        raise click.UsageError(f"Missing required environment variable(s): {', '.join(missing)}")
