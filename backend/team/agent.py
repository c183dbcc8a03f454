"""
Team agent: a named reasoning unit with a private persona and access to the
shared team documents.

The system prompt is built by an ordered pipeline of prompt sections:

    persona (SOUL.md) -> team shared context -> protocol instructions -> specializations

Specializations are appended after the base sections, so the base prompt is
always an unchanged prefix of a specialized agent's prompt.

An agent never raises out of respond()/process(): completion failures are
logged and turned into a short apology text so the conversation continues.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from completion import DEFAULT_PROVIDER, DEFAULT_TIMEOUT, CompleteFn, complete as default_complete
from logger import get_logger
from .delegation import format_delegation_tag
from .store import DocumentStore

logger = get_logger()

PERSONA_KEY = "SOUL.md"

DEFAULT_PERSONA_TEMPLATE = """# SOUL.md — {display_name}

You are {display_name}, acting as {role}.

## Responsibilities
- [List responsibilities here]

## Personality
- Professional, efficient.

## Channel
- API/CLI (@{name} replies)
"""

SHARED_CONTEXT_TEMPLATE = """## TEAM SHARED CONTEXT
You are part of a multi-agent team. You have access to the following shared documents:

### GOALS
{goals}

### PROJECT STATUS
{status}

### DECISION LOG
{decisions}"""

PROTOCOL_INSTRUCTIONS = f"""## INSTRUCTIONS
1. Act according to your SOUL.md and your role.
2. If you make an important decision, ask for DECISIONS.md to be updated.
3. If you need another agent's expertise, use this format in your reply:
   `{format_delegation_tag("AgentName", "Question or task")}`
   Example: `{format_delegation_tag("Josh", "Check the profit margin on iPhone cases")}`
4. Be short and concise."""

ERROR_REPLY_PREFIX = "I encountered an error:"

PromptSection = Callable[["Agent"], str]


def persona_section(agent: "Agent") -> str:
    return agent.load_persona()


def shared_context_section(agent: "Agent") -> str:
    return SHARED_CONTEXT_TEMPLATE.format(**agent.store.snapshot())


def protocol_section(agent: "Agent") -> str:
    return PROTOCOL_INSTRUCTIONS


def static_section(text: str) -> PromptSection:
    """A section that always renders the same text."""
    def render(agent: "Agent") -> str:
        return text
    return render


BASE_SECTIONS = (persona_section, shared_context_section, protocol_section)


@dataclass
class AgentReply:
    """Outcome of one completion call made by an agent."""
    agent: str
    ok: bool
    text: str
    error: Optional[str] = None
    duration_ms: int = 0


class Agent:
    """
    Base team agent.

    Args:
        name: Display name; its lowercase form is the routing key
        role: Role label
        store: Shared document store
        complete: Completion function ``complete(message, options, env) -> str``
        context: Opaque bag of handles the agent may use (api, tools, ...)
        sections: Extra prompt sections appended after the base sections
        provider: Completion provider name
        timeout: Seconds to wait for a completion
        env: Mapping with provider credentials (defaults to os.environ)
    """

    def __init__(
        self,
        name: str,
        role: str,
        store: DocumentStore,
        complete: Optional[CompleteFn] = None,
        context: Optional[Dict[str, Any]] = None,
        sections: Iterable[PromptSection] = (),
        provider: Optional[str] = None,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None
    ):
        self.name = name.lower()
        self.display_name = name
        self.role = role
        self.store = store
        self.complete = complete or default_complete
        self.context = dict(context or {})
        self.sections: List[PromptSection] = list(BASE_SECTIONS) + list(sections)
        self.provider = provider or DEFAULT_PROVIDER
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.env = env

        self.subspace = store.get_agent_subspace(self.name)
        self.ensure_persona()

    def __repr__(self):
        return f"<Agent(name={self.name}, role={self.role})>"

    def ensure_persona(self) -> bool:
        """Create SOUL.md from the default template unless it already exists."""
        default_persona = DEFAULT_PERSONA_TEMPLATE.format(
            display_name=self.display_name,
            role=self.role,
            name=self.name
        )
        created = self.subspace.write_if_absent(PERSONA_KEY, default_persona)
        if created:
            logger.info(f"Default persona created for {self.display_name}", extra={"agent": self.name})
        return created

    def load_persona(self) -> str:
        """Read SOUL.md as stored; re-read on every call so external edits apply."""
        return self.subspace.read(PERSONA_KEY)

    def compose_system_prompt(self) -> str:
        return "\n\n".join(section(self) for section in self.sections)

    def describe(self) -> Dict[str, str]:
        return {"name": self.name, "display_name": self.display_name, "role": self.role}

    async def think(self, message: str) -> AgentReply:
        """
        Run one completion with the composed system prompt.

        Returns:
            AgentReply: ok=True with the completion text, or ok=False with an
            apology text and the error message
        """
        start_time = time.time()
        try:
            options = {
                "provider": self.provider,
                "system_context": self.compose_system_prompt(),
                "timeout": self.timeout,
            }
            text = await asyncio.wait_for(
                asyncio.to_thread(self.complete, message, options, self.env),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            error = f"completion timed out after {self.timeout} seconds"
        except Exception as e:
            error = str(e) or type(e).__name__
        else:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"Agent {self.display_name} answered",
                extra={"agent": self.name, "metadata": {"duration_ms": duration_ms}}
            )
            return AgentReply(
                agent=self.name,
                ok=True,
                text="" if text is None else str(text),
                duration_ms=duration_ms
            )

        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Agent {self.display_name} crashed",
            extra={"agent": self.name, "metadata": {"error": error, "duration_ms": duration_ms}}
        )
        return AgentReply(
            agent=self.name,
            ok=False,
            text=f"{ERROR_REPLY_PREFIX} {error}",
            error=error,
            duration_ms=duration_ms
        )

    async def respond(self, message: str) -> str:
        reply = await self.think(message)
        return reply.text

    async def process(self, message: str) -> str:
        """Entry point used by the team router."""
        logger.info(f"Agent {self.display_name} processing message", extra={"agent": self.name})
        return await self.respond(message)
