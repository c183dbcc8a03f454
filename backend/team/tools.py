"""
External tool access for specialized agents.

Tools (repricer, analytics, sentiment, ...) are external collaborators placed
in an agent's context bag under ``context["tools"][<name>]``. Each exposes
``execute(params, context) -> dict`` with a ``success`` field and may offer
convenience methods (``analyze_competitors``, ``get_sales_report``).

Tool methods may be plain or async functions.
"""

import inspect
from typing import Any, Dict, Optional

from logger import get_logger

logger = get_logger()

REPRICER = "repricer"
ANALYTICS = "analytics"
SENTIMENT = "sentiment"


def get_tool(context: Dict[str, Any], name: str) -> Optional[Any]:
    """Return the tool registered under ``name`` in the context bag, if any."""
    tools = context.get("tools") or {}
    return tools.get(name)


def tool_error(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}


async def call_tool(
    context: Dict[str, Any],
    tool_name: str,
    method: str,
    *args: Any,
    agent: Optional[str] = None
) -> Any:
    """
    Call ``method`` on the named tool and return its raw result.

    A missing tool or method, or an exception raised by the tool, is
    returned as ``{"success": False, "error": ...}``.
    """
    tool = get_tool(context, tool_name)
    if tool is None:
        return tool_error(f"Tool '{tool_name}' is not configured")

    handler = getattr(tool, method, None)
    if handler is None:
        return tool_error(f"Tool '{tool_name}' has no method '{method}'")

    logger.info(
        f"Tool called: {tool_name}.{method}",
        extra={"agent": agent, "metadata": {"tool": tool_name, "method": method}}
    )

    try:
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        logger.error(
            f"Tool {tool_name}.{method} failed: {e}",
            extra={"agent": agent, "metadata": {"tool": tool_name, "error": str(e)}}
        )
        return tool_error(str(e))

    return result
