"""Command resolution: which agent runs this invocation, and in which mode.

    no directive          -> persisted primary agent, mode "primary"
    /agent <valid>        -> persist it as primary, mode "primary"
    /agent <invalid>      -> persisted primary agent, mode "primary"
    /critique <valid>     -> that agent for this run only, mode "critique"
    /critique <invalid>   -> persisted primary agent, mode "primary"

Directives are read only from the comment that triggered the invocation,
never re-scanned from history. Resolution never fails the invocation: every
error path ends in the persisted (or default) primary agent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from laforge_core.agents import AgentRegistry
from laforge_core.directives import AGENT, CRITIQUE, CommandDirective, parse_directive
from laforge_core.errors import GiteaError, InvalidDirectiveError
from laforge_store.models import AgentSessionConfig

logger = logging.getLogger(__name__)

PRIMARY_MODE = "primary"
CRITIQUE_MODE = "critique"


@dataclass(frozen=True)
class AgentDecision:
    agent: str
    model_id: str
    mode: str  # "primary" | "critique"
    directive: CommandDirective | None = None
    invalid_agent: str | None = None  # set when a directive named an unknown agent

    def outputs(self) -> dict[str, str]:
        """Step outputs consumed by the rest of the workflow."""
        return {"agent_mode": self.mode, "agent_name": self.agent, "model_id": self.model_id}


def default_decision(registry: AgentRegistry) -> AgentDecision:
    return AgentDecision(agent=registry.default, model_id=registry.model_id(registry.default), mode=PRIMARY_MODE)


def decide(
    directive: CommandDirective | None,
    session: AgentSessionConfig,
    registry: AgentRegistry,
    now: str | None = None,
) -> tuple[AgentDecision, AgentSessionConfig | None]:
    """Apply ``directive`` to ``session``.

    Pure: returns the decision and the session record to persist, or None
    when persisted state must stay untouched. ``session.primary_agent`` must
    already be a registry key.
    """
    primary = AgentDecision(
        agent=session.primary_agent,
        model_id=registry.model_id(session.primary_agent),
        mode=PRIMARY_MODE,
        directive=directive,
    )
    if directive is None:
        return primary, None

    try:
        spec = registry.get(directive.target_agent)
    except InvalidDirectiveError as e:
        logger.error("Ignoring /%s directive: %s", directive.kind, e)
        return AgentDecision(
            agent=primary.agent,
            model_id=primary.model_id,
            mode=PRIMARY_MODE,
            directive=directive,
            invalid_agent=directive.target_agent,
        ), None

    if directive.kind == CRITIQUE:
        decision = AgentDecision(
            agent=directive.target_agent, model_id=spec.model_id, mode=CRITIQUE_MODE, directive=directive
        )
        return decision, None

    if directive.kind == AGENT:
        updated = AgentSessionConfig(
            primary_agent=directive.target_agent,
            last_updated=now or datetime.now(timezone.utc).isoformat(),
            updated_by=directive.actor or "unknown",
        )
        decision = AgentDecision(
            agent=directive.target_agent, model_id=spec.model_id, mode=PRIMARY_MODE, directive=directive
        )
        return decision, updated

    raise ValueError(f"Unknown directive kind: {directive.kind!r}")


def load_session(store, registry: AgentRegistry) -> AgentSessionConfig:
    """Read the persisted session, falling back to the registry default.

    A missing record yields a default record that is not written back; a
    record naming an agent the registry no longer knows is replaced by the
    default for this invocation.
    """
    try:
        session = store.load()
    except Exception as e:
        logger.warning("Could not read agent config, using default agent: %s", e)
        session = None

    if session is None:
        return AgentSessionConfig.default(registry.default)
    if session.primary_agent not in registry:
        logger.warning(
            "Persisted primary agent %r is not registered, using %r", session.primary_agent, registry.default
        )
        return AgentSessionConfig.default(registry.default)
    return session


async def resolve_agent(client, store, registry: AgentRegistry, comment_id: int | None = None) -> AgentDecision:
    """Resolve the agent for this invocation from the triggering comment, if any.

    ``client`` is only used when ``comment_id`` is given, and then only to
    fetch that single comment.
    """
    session = load_session(store, registry)
    logger.info("Current primary agent: %s", session.primary_agent)

    if comment_id is None:
        logger.info("No triggering comment, using primary agent from config")
        decision, _ = decide(None, session, registry)
        return decision

    logger.info("Processing triggering comment %s", comment_id)
    try:
        comment = await client.get_issue_comment(comment_id)
    except GiteaError as e:
        logger.error("Error fetching comment %s: %s. Using current primary agent.", comment_id, e)
        decision, _ = decide(None, session, registry)
        return decision

    directive = parse_directive(
        comment.get("body"),
        actor=((comment.get("user") or {}).get("login")) or "",
        timestamp=comment.get("created_at", ""),
    )
    if directive is None:
        logger.info("No agent command found in comment, using primary agent")
    else:
        logger.info("Found command: /%s %s", directive.kind, directive.target_agent)

    decision, updated = decide(directive, session, registry)
    if updated is not None:
        try:
            store.save(updated)
        except OSError as e:
            # The decision still stands for this run; only the persistence is lost.
            logger.error("Error writing agent config: %s", e)
    return decision
