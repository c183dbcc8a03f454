#!/usr/bin/env python3
"""
Agent team command line.

Usage:
    python cli.py status
    python cli.py chat <agent> <message...>
    python cli.py broadcast <message...>

Commands:
    status      Show the team members, goals and project status
    chat        Send a message to one agent (milo, josh, marketing, dev)
    broadcast   Send a message to the whole team
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from logger import get_logger
from team.router import TeamRouter, create_default_team
from team.store import create_store_from_env

logger = get_logger()


def print_status(team: TeamRouter) -> None:
    print("=" * 60)
    print("Agent Team")
    print("=" * 60)

    for agent in team.list_agents():
        print(f"  ● {agent['display_name']}: {agent['role']}")

    snapshot = team.status()
    print(f"\nGoals:\n{snapshot['goals']}")
    print(f"\nStatus:\n{snapshot['status']}")


async def run_chat(team: TeamRouter, agent_name: str, message: str) -> None:
    print(f"{agent_name} is thinking...")
    response = await team.chat(agent_name, message)
    print(f"\n{agent_name}: {response}\n")


async def run_broadcast(team: TeamRouter, message: str) -> None:
    print("Sending to the whole team...")
    responses = await team.broadcast(message)
    for name, response in responses.items():
        print(f"\n{name.upper()}: {response}")
    print("")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Talk to the agent team")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("status", help="Show team members, goals and status")

    chat_parser = subparsers.add_parser("chat", help="Send a message to one agent")
    chat_parser.add_argument("agent", help="Agent name (milo, josh, marketing, dev)")
    chat_parser.add_argument("message", nargs="+", help="Message text")

    broadcast_parser = subparsers.add_parser("broadcast", help="Send a message to every agent")
    broadcast_parser.add_argument("message", nargs="+", help="Message text")

    return parser


def main(argv: Optional[List[str]] = None, team: Optional[TeamRouter] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if team is None:
        team = create_default_team(create_store_from_env(), context={"tools": {}})

    try:
        if args.command == "chat":
            asyncio.run(run_chat(team, args.agent, " ".join(args.message)))
        elif args.command == "broadcast":
            asyncio.run(run_broadcast(team, " ".join(args.message)))
        else:
            print_status(team)
    except Exception as e:
        logger.error(f"Team command failed: {e}", exc_info=True)
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
