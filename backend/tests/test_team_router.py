"""Tests for the team router: dispatch, delegation and broadcast."""

from unittest.mock import AsyncMock, patch

import pytest

from team.agent import ERROR_REPLY_PREFIX, Agent
from team.router import (
    DEPTH_EXCEEDED_MESSAGE,
    MAX_DELEGATION_DEPTH,
    TeamRouter,
    create_default_team,
    followup_message,
)


@pytest.fixture
def completions(fake_complete):
    """One scripted completion per agent."""
    return {
        "milo": fake_complete("Milo here."),
        "josh": fake_complete("Josh here."),
        "dev": fake_complete("Dev here."),
    }


@pytest.fixture
def router(file_store, completions):
    agents = [
        Agent("Milo", "Strategy Lead", file_store, complete=completions["milo"]),
        Agent("Josh", "Business & Growth Analyst", file_store, complete=completions["josh"]),
        Agent("Dev", "Dev Agent", file_store, complete=completions["dev"]),
    ]
    return TeamRouter(agents, file_store)


def test_resolve_is_case_insensitive(router):
    """Test names resolve regardless of case."""
    assert router.resolve("MILO") is router.resolve("milo")
    assert router.resolve("Josh").display_name == "Josh"
    assert router.resolve("nobody") is None
    assert router.resolve("") is None


def test_duplicate_agent_names_rejected(file_store, fake_complete):
    """Test two agents cannot share a routing name."""
    agents = [
        Agent("Milo", "Strategy Lead", file_store, complete=fake_complete()),
        Agent("milo", "Impostor", file_store, complete=fake_complete()),
    ]

    with pytest.raises(ValueError, match="Duplicate agent name"):
        TeamRouter(agents, file_store)


@pytest.mark.asyncio
async def test_direct_answer_returned_unchanged(router, completions):
    """Test a reply without a tag is returned as-is."""
    completions["milo"].replies = ["Margins are fine, no help needed."]

    response = await router.chat("milo", "How are we doing?")

    assert response == "Margins are fine, no help needed."
    assert completions["milo"].messages == ["How are we doing?"]
    assert completions["josh"].calls == []


@pytest.mark.asyncio
async def test_unknown_agent_lists_registered_names(router, completions):
    """Test unknown agents get the exact list of registered names."""
    response = await router.chat("oracle", "Predict sales")

    assert response == "Agent 'oracle' not found. Available: milo, josh, dev"
    assert all(not c.calls for c in completions.values())


@pytest.mark.asyncio
@pytest.mark.parametrize("depth", [MAX_DELEGATION_DEPTH + 1, 7, 100])
async def test_depth_exceeded_contacts_no_agent(router, completions, depth):
    """Test depth above the limit returns the fixed message."""
    response = await router.chat("milo", "Anything", depth=depth)

    assert response == DEPTH_EXCEEDED_MESSAGE
    assert all(not c.calls for c in completions.values())


@pytest.mark.asyncio
async def test_depth_at_limit_still_answers(router, completions):
    """Test depth equal to the limit is still served."""
    response = await router.chat("milo", "Anything", depth=MAX_DELEGATION_DEPTH)

    assert response == "Milo here."


@pytest.mark.asyncio
async def test_delegation_round_trip(router, completions):
    """Test delegate runs, its reply goes back to the originator, and the originator's second reply is returned."""
    completions["milo"].replies = [
        "Let me check. [DELEGATE: Josh Check margins] One moment.",
        "Final: margins are 23%, we hold prices.",
    ]
    completions["josh"].replies = ["Margins are 23%."]

    with patch.object(router, "chat", wraps=router.chat) as spy:
        response = await router.chat("milo", "Should we cut prices?")

    assert response == "Final: margins are 23%, we hold prices."
    spy.assert_any_call("Josh", "Check margins", 1)

    assert completions["josh"].messages == ["Check margins"]
    assert completions["milo"].messages == [
        "Should we cut prices?",
        followup_message("Josh", "Margins are 23%."),
    ]
    assert 'Josh replied: "Margins are 23%."' in completions["milo"].messages[1]


@pytest.mark.asyncio
async def test_followup_reply_is_not_rescanned(router, completions):
    """Test a tag in the follow-up reply is returned unresolved."""
    completions["milo"].replies = [
        "[DELEGATE: Josh Check margins]",
        "Now ask Dev. [DELEGATE: Dev Check logs]",
    ]
    completions["josh"].replies = ["Margins are 23%."]

    response = await router.chat("milo", "Status?")

    assert response == "Now ask Dev. [DELEGATE: Dev Check logs]"
    assert completions["dev"].calls == []


@pytest.mark.asyncio
async def test_only_first_tag_is_resolved(router, completions):
    """Test a reply with two tags delegates once, to the first target."""
    completions["milo"].replies = [
        "[DELEGATE: Josh Check margins] [DELEGATE: Dev Check logs]",
        "Done.",
    ]

    await router.chat("milo", "Status?")

    assert completions["josh"].messages == ["Check margins"]
    assert completions["dev"].calls == []


@pytest.mark.asyncio
async def test_delegate_that_delegates(router, completions):
    """Test a delegate's own tag is resolved inside its turn."""
    completions["milo"].replies = ["[DELEGATE: Josh Check margins]", "Milo final."]
    completions["josh"].replies = ["[DELEGATE: Dev Export sales logs]", "Josh final."]
    completions["dev"].replies = ["Logs exported."]

    response = await router.chat("milo", "Status?")

    assert response == "Milo final."
    assert completions["dev"].messages == ["Export sales logs"]
    assert completions["josh"].messages[1] == followup_message("Dev", "Logs exported.")
    assert completions["milo"].messages[1] == followup_message("Josh", "Josh final.")


@pytest.mark.asyncio
async def test_cyclic_delegation_is_bounded(router, completions):
    """Test agents delegating to each other forever stop at the depth limit."""
    completions["milo"].replies = ["[DELEGATE: Josh ping]"]
    completions["josh"].replies = ["[DELEGATE: Milo pong]"]

    response = await router.chat("milo", "Start")

    assert isinstance(response, str)
    assert DEPTH_EXCEEDED_MESSAGE in "".join(
        completions["milo"].messages + completions["josh"].messages
    )


@pytest.mark.asyncio
async def test_empty_task_delegates_to_first_target(router, completions):
    """Test an empty-task tag still delegates to its target, not to a later tag."""
    completions["milo"].replies = ["[DELEGATE: Josh ] then [DELEGATE: Dev check logs]", "Done."]

    response = await router.chat("milo", "Status?")

    assert response == "Done."
    assert completions["josh"].messages == [""]
    assert completions["dev"].calls == []


@pytest.mark.asyncio
async def test_delegation_to_unknown_agent(router, completions):
    """Test delegating to an unknown agent feeds the not-found text back."""
    completions["milo"].replies = ["[DELEGATE: Oracle Predict sales]", "No oracle, sorry."]

    response = await router.chat("milo", "Forecast?")

    assert response == "No oracle, sorry."
    assert "Agent 'Oracle' not found. Available: milo, josh, dev" in completions["milo"].messages[1]


@pytest.mark.asyncio
async def test_completion_failure_still_returns_value(router, completions):
    """Test a provider error does not escape chat()."""
    completions["milo"].replies = [RuntimeError("provider down")]

    response = await router.chat("milo", "Hi")

    assert response.startswith(ERROR_REPLY_PREFIX)
    assert "provider down" in response


@pytest.mark.asyncio
async def test_delegate_failure_is_fed_back(router, completions):
    """Test a failing delegate's error text reaches the originator."""
    completions["milo"].replies = ["[DELEGATE: Josh Check margins]", "Josh is unavailable."]
    completions["josh"].replies = [RuntimeError("timeout")]

    response = await router.chat("milo", "Margins?")

    assert response == "Josh is unavailable."
    assert f"{ERROR_REPLY_PREFIX} timeout" in completions["milo"].messages[1]


@pytest.mark.asyncio
async def test_broadcast_keys_match_registry(router, completions):
    """Test broadcast answers from every agent, keyed by name."""
    responses = await router.broadcast("Morning!")

    assert list(responses) == ["milo", "josh", "dev"]
    assert responses == {"milo": "Milo here.", "josh": "Josh here.", "dev": "Dev here."}
    assert all(c.messages == ["Morning!"] for c in completions.values())


@pytest.mark.asyncio
async def test_broadcast_does_not_resolve_delegation(router, completions):
    """Test broadcast returns tags unresolved."""
    completions["milo"].replies = ["[DELEGATE: Josh Check margins]"]

    responses = await router.broadcast("Morning!")

    assert responses["milo"] == "[DELEGATE: Josh Check margins]"
    assert completions["josh"].messages == ["Morning!"]


@pytest.mark.asyncio
async def test_broadcast_survives_agent_failure(router, completions):
    """Test one failing agent does not stop the others."""
    completions["josh"].replies = [RuntimeError("provider down")]

    responses = await router.broadcast("Morning!")

    assert set(responses) == {"milo", "josh", "dev"}
    assert responses["josh"].startswith(ERROR_REPLY_PREFIX)
    assert responses["milo"] == "Milo here."
    assert responses["dev"] == "Dev here."


@pytest.mark.asyncio
async def test_broadcast_survives_unexpected_exception(router):
    """Test an exception escaping process() is converted to error text."""
    router.agents["dev"].process = AsyncMock(side_effect=RuntimeError("boom"))

    responses = await router.broadcast("Morning!")

    assert set(responses) == {"milo", "josh", "dev"}
    assert responses["dev"] == f"{ERROR_REPLY_PREFIX} boom"


def test_list_agents_and_status(router, file_store):
    """Test the registry listing and shared status."""
    assert [a["name"] for a in router.list_agents()] == ["milo", "josh", "dev"]
    assert router.status() == file_store.snapshot()


@pytest.mark.asyncio
async def test_create_default_team(tmp_path, fake_complete):
    """Test the default team registers the four specialists and the shared documents."""
    from team.store import FileDocumentStore, GOALS

    store = FileDocumentStore(tmp_path / "team")
    complete = fake_complete("hello")

    team = create_default_team(store, complete=complete, context={"api": "api-handle"})

    assert team.agent_names == ["milo", "josh", "marketing", "dev"]
    assert store.read(GOALS).startswith("# Current Goals & OKRs")
    for name in team.agent_names:
        assert store.exists(f"agents/{name}/SOUL.md")
        assert team.resolve(name).context == {"api": "api-handle"}

    assert await team.chat("Marketing", "Ideas?") == "hello"
