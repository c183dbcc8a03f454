"""
Team router.

Holds the agent registry and runs the conversation protocol:

1. Refuse turns deeper than MAX_DELEGATION_DEPTH.
2. Resolve the agent (case-insensitive); unknown names get the list of
   registered agents.
3. Let the agent answer.
4. If the answer contains a delegation tag, run the delegate's turn
   (depth + 1), then hand the delegate's answer back to the originating
   agent and return its final answer.

Only the first tag of the first answer is resolved per chat() call. The
follow-up answer is returned as-is, even if it carries another tag.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

from completion import CompleteFn
from logger import get_logger
from .agent import ERROR_REPLY_PREFIX, Agent
from .delegation import parse_delegation
from .specialists import SPECIALISTS
from .store import DocumentStore

logger = get_logger()

MAX_DELEGATION_DEPTH = 3

DEPTH_EXCEEDED_MESSAGE = f"Error: too many delegation hops (max {MAX_DELEGATION_DEPTH})."


def unknown_agent_message(agent_name: str, known: Sequence[str]) -> str:
    return f"Agent '{agent_name}' not found. Available: {', '.join(known)}"


def followup_message(target_agent: str, delegate_reply: str) -> str:
    """Message handing a delegate's answer back to the agent that asked for it."""
    return (
        f'[SYSTEM]: {target_agent} replied: "{delegate_reply}". '
        f"Use this to give the user your final answer."
    )


class TeamRouter:
    """Registry of agents plus the chat/broadcast protocol."""

    def __init__(self, agents: Sequence[Agent], store: DocumentStore):
        self.store = store
        self.agents: Dict[str, Agent] = {}
        for agent in agents:
            if agent.name in self.agents:
                raise ValueError(f"Duplicate agent name: {agent.name}")
            self.agents[agent.name] = agent

    @property
    def agent_names(self) -> List[str]:
        return list(self.agents)

    def resolve(self, name: str) -> Optional[Agent]:
        if not name:
            return None
        return self.agents.get(name.lower())

    def list_agents(self) -> List[Dict[str, str]]:
        return [agent.describe() for agent in self.agents.values()]

    def status(self) -> Dict[str, str]:
        """Current goals, decisions and project status."""
        return self.store.snapshot()

    async def chat(self, agent_name: str, message: str, depth: int = 0) -> str:
        """
        Send ``message`` to ``agent_name`` and resolve one delegation hop.

        Args:
            agent_name: Routing name of the agent (case-insensitive)
            message: User message or delegated task
            depth: Delegation hops already taken for this request

        Returns:
            str: Final answer, or a fixed message for unknown agents and
            over-deep delegation chains
        """
        if depth > MAX_DELEGATION_DEPTH:
            logger.warning(
                "Delegation depth exceeded",
                extra={"agent": agent_name, "metadata": {"depth": depth}}
            )
            return DEPTH_EXCEEDED_MESSAGE

        agent = self.resolve(agent_name)
        if agent is None:
            return unknown_agent_message(agent_name, self.agent_names)

        response = await agent.process(message)

        request = parse_delegation(response)
        if request is None:
            return response

        logger.info(
            f"Delegation: {agent_name} -> {request.target_agent}: {request.task}",
            extra={
                "agent": agent.name,
                "metadata": {"target": request.target_agent, "depth": depth + 1}
            }
        )

        delegate_response = await self.chat(request.target_agent, request.task, depth + 1)

        return await agent.process(followup_message(request.target_agent, delegate_response))

    async def broadcast(self, message: str) -> Dict[str, str]:
        """
        Send ``message`` to every agent concurrently, without delegation.

        Returns:
            dict: agent name -> answer, in registration order
        """
        names = self.agent_names
        results = await asyncio.gather(
            *(self.agents[name].process(message) for name in names),
            return_exceptions=True
        )

        responses: Dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Broadcast to {name} failed: {result}",
                    extra={"agent": name, "metadata": {"error": str(result)}}
                )
                result = f"{ERROR_REPLY_PREFIX} {result}"
            responses[name] = result
        return responses


def create_default_team(
    store: DocumentStore,
    complete: Optional[CompleteFn] = None,
    context: Optional[Dict[str, Any]] = None,
    provider: Optional[str] = None,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None
) -> TeamRouter:
    """
    Initialize the shared documents and build Milo, Josh, Marketing and Dev.

    Args:
        store: Document store shared by the team
        complete: Completion function (defaults to completion.complete)
        context: Context bag given to every agent (api, tools, ...)
        provider: Completion provider name
        timeout: Completion timeout in seconds
        env: Provider credentials

    Returns:
        TeamRouter: router over the four default agents
    """
    store.ensure_namespace()

    agents = [
        agent_class(
            store,
            complete=complete,
            context=context,
            provider=provider,
            timeout=timeout,
            env=env
        )
        for agent_class in SPECIALISTS
    ]

    logger.info(
        "Team initialized",
        extra={"metadata": {"agents": [agent.display_name for agent in agents]}}
    )
    return TeamRouter(agents, store)
