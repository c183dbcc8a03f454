"""
The specialized team members.

Each specialist is a base Agent plus one persona section describing its role
and daily routine, and a few direct capabilities that call external tools
without going through the language model.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from completion import provider_status
from .agent import Agent, static_section
from .store import GOALS
from .tools import ANALYTICS, REPRICER, SENTIMENT, call_tool

MILO_SECTION = """## YOUR SPECIFIC ROLE: MILO (STRATEGY LEAD)
- You are the team lead. Confident, charismatic, you see the big picture.
- **Responsibilities**:
    - Lead the team (Josh, Marketing, Dev).
    - Record the weekly goals in GOALS.md.
    - Synthesize the reports coming from the other agents.
    - Make high-level decisions.
- **Tools**:
    - You can ask the other agents for reports.
    - You can update GOALS.md.

## DAILY ROUTINE
- Review the progress made overnight.
- Publish the morning meeting summary.
- Post the end-of-day summary."""

JOSH_SECTION = """## YOUR SPECIFIC ROLE: JOSH (BUSINESS ANALYST)
- You speak in numbers. Pragmatic and results-driven.
- **Responsibilities**:
    - Track revenue, profit and margins.
    - Watch competitor pricing.
    - Propose pricing strategies.
- **Tools**:
    - Competitor analysis (Repricer)
    - Sales reports (Analytics)

## DAILY ROUTINE
- Pull the key metrics at 09:00.
- Warn the team when profit margins fall below target."""

MARKETING_SECTION = """## YOUR SPECIFIC ROLE: MARKETING AGENT
- Creative, curious, always following the trends.
- **Responsibilities**:
    - Produce content ideas for social media.
    - Monitor customer sentiment (reviews, questions).
    - SEO optimizations.
- **Tools**:
    - Sentiment analysis (Sentiment)
    - Vision AI (for product photos)

## DAILY ROUTINE
- Suggest 3 content ideas every day.
- Check for negative review trends."""

DEV_SECTION = """## YOUR SPECIFIC ROLE: SOFTWARE AGENT (DEV)
- Meticulous, detail-oriented, security-minded.
- **Responsibilities**:
    - Monitor system health (logs, errors).
    - Review the technical implementation of new features.
    - Manage technical debt.
- **Tools**:
    - Log analysis
    - Configuration management

## DAILY ROUTINE
- Check the system logs for errors.
- Verify the API connections."""


class MiloAgent(Agent):
    """Strategy lead; owns the team goals."""

    def __init__(self, store, **kwargs):
        super().__init__("Milo", "Strategy Lead", store, sections=[static_section(MILO_SECTION)], **kwargs)

    def set_goal(self, goal_text: str) -> str:
        """Replace GOALS.md with ``goal_text`` under the standard heading."""
        if self.store.write(GOALS, f"# Current Goals & OKRs\n\n{goal_text}"):
            return "Goals updated successfully."
        return "Goals could not be updated."


class JoshAgent(Agent):
    """Business and growth analyst; reads pricing and sales data."""

    def __init__(self, store, **kwargs):
        super().__init__("Josh", "Business & Growth Analyst", store, sections=[static_section(JOSH_SECTION)], **kwargs)

    async def check_competitors(self, barcode: str) -> Any:
        return await call_tool(self.context, REPRICER, "analyze_competitors", barcode, self.context, agent=self.name)

    async def get_sales_report(self, period: str = "7d") -> Any:
        return await call_tool(self.context, ANALYTICS, "get_sales_report", period, self.context, agent=self.name)


class MarketingAgent(Agent):
    """Marketing researcher; watches customer sentiment."""

    def __init__(self, store, **kwargs):
        super().__init__("Marketing", "Marketing Researcher", store, sections=[static_section(MARKETING_SECTION)], **kwargs)

    async def analyze_sentiment(self, product_id: str) -> Any:
        params = {"productId": product_id, "platform": "all", "period": "7d"}
        return await call_tool(self.context, SENTIMENT, "execute", params, self.context, agent=self.name)


class DevAgent(Agent):
    """Systems agent; reports on the health of the team's own plumbing."""

    def __init__(self, store, **kwargs):
        super().__init__("Dev", "Dev Agent", store, sections=[static_section(DEV_SECTION)], **kwargs)

    def check_system_health(self) -> Dict[str, Any]:
        store_ok = self.store.exists(GOALS)
        completion = provider_status(self.provider, self.env)
        healthy = store_ok and completion["supported"] and completion["api_key_configured"]
        return {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "document_store": "ok" if store_ok else "unavailable",
            "completion": completion,
        }


SPECIALISTS = (MiloAgent, JoshAgent, MarketingAgent, DevAgent)
