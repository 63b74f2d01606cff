"""Agent registry: short agent names mapped to the model each one runs."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from laforge_core.errors import InvalidDirectiveError

DEFAULT_AGENT = "sonnet"


@dataclass(frozen=True)
class AgentSpec:
    model_id: str


BUILTIN_AGENTS: Mapping[str, AgentSpec] = MappingProxyType(
    {
        "sonnet": AgentSpec(model_id="claude-sonnet-4-5-20250929"),
        "opus": AgentSpec(model_id="claude-opus-4-5-20251101"),
        "haiku": AgentSpec(model_id="claude-haiku-4-5-20251001"),
    }
)


class AgentRegistry:
    """Read-only, ordered mapping of agent name to AgentSpec with a default entry."""

    def __init__(self, agents: Mapping[str, AgentSpec] = BUILTIN_AGENTS, default: str = DEFAULT_AGENT):
        if not agents:
            raise ValueError("Agent registry must contain at least one agent.")
        if default not in agents:
            raise ValueError(f"Default agent {default!r} is not in the registry ({', '.join(agents)}).")
        self._agents = MappingProxyType(dict(agents))
        self.default = default

    @classmethod
    def from_config(cls, config: dict) -> AgentRegistry:
        """Build the registry from ``agents``/``default_agent`` config keys.

        ``agents: {name: model_id}`` replaces the built-in registry entirely.
        """
        custom = config.get("agents")
        agents = {name: AgentSpec(model_id=str(model)) for name, model in custom.items()} if custom else BUILTIN_AGENTS
        return cls(agents, default=config.get("default_agent") or DEFAULT_AGENT)

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __iter__(self):
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def names(self) -> list[str]:
        return list(self._agents)

    def get(self, name: str) -> AgentSpec:
        """Return the AgentSpec for ``name``; raise InvalidDirectiveError if it is unknown."""
        try:
            return self._agents[name]
        except KeyError:
            raise InvalidDirectiveError(name, self.names()) from None

    def model_id(self, name: str) -> str:
        return self.get(name).model_id
