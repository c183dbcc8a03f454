"""
Multi-Agent Team Module.

A small team of specialized agents (Milo, Josh, Marketing, Dev) sharing a
persisted set of team documents and delegating sub-tasks to one another.
"""

__version__ = "0.1.0"

# Lazy imports so the store can be used without loading the agent stack
__all__ = [
    "TeamRouter",
    "create_default_team",
    "Agent",
    "AgentReply",
    "DocumentStore",
    "FileDocumentStore",
    "SqlDocumentStore",
    "create_store_from_env",
    "DelegationRequest",
    "parse_delegation",
]


def __getattr__(name):
    """Lazy import on attribute access."""
    if name in ("TeamRouter", "create_default_team"):
        from . import router
        return getattr(router, name)
    elif name in ("Agent", "AgentReply"):
        from . import agent
        return getattr(agent, name)
    elif name in ("DocumentStore", "FileDocumentStore", "SqlDocumentStore", "create_store_from_env"):
        from . import store
        return getattr(store, name)
    elif name in ("DelegationRequest", "parse_delegation"):
        from . import delegation
        return getattr(delegation, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
