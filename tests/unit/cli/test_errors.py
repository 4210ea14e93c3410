"""Tests for quarry rich error messages."""

from __future__ import annotations

import pytest

from quarry.cli.errors import (
    err_ask_failed,
    err_config,
    err_conversation_not_found,
    err_file_not_found,
    err_ingest_failed,
    err_no_api_key,
    err_no_input,
    warn_nothing_ingested,
)


def _has_action(msg: str) -> bool:
    """Every error must contain an actionable instruction."""
    lower = msg.lower()
    return any(kw in lower for kw in ["run:", "set:", "retry", "check", "fix "])


# ---------------------------------------------------------------------------
# err_no_api_key
# ---------------------------------------------------------------------------


def test_err_no_api_key_contains_provider_and_env_var() -> None:
    msg = err_no_api_key("openai")
    assert "'openai'" in msg
    assert "OPENAI_API_KEY" in msg


def test_err_no_api_key_unknown_provider_fallback() -> None:
    assert "MYPROVIDER_API_KEY" in err_no_api_key("myprovider")


# ---------------------------------------------------------------------------
# Markup safety
# ---------------------------------------------------------------------------


def test_user_text_is_escaped() -> None:
    msg = err_ingest_failed("https://x.example/[red]", "bad [bold]markup[/bold]")
    assert "\\[red]" in msg
    assert "\\[bold]" in msg


def test_err_config_escapes_message() -> None:
    assert "\\[x]" in err_config("value [x] is wrong")


# ---------------------------------------------------------------------------
# Ask errors
# ---------------------------------------------------------------------------


def test_err_ask_failed_with_conversation_suggests_retry() -> None:
    msg = err_ask_failed("provider down", conversation_id=7)
    assert "provider down" in msg
    assert "--conversation 7" in msg


def test_err_ask_failed_without_conversation() -> None:
    msg = err_ask_failed("boom")
    assert "--conversation" not in msg
    assert "API key" in msg


def test_err_conversation_not_found_mentions_id() -> None:
    msg = err_conversation_not_found(12)
    assert "Conversation 12 not found" in msg
    assert "quarry conversations" in msg


# ---------------------------------------------------------------------------
# Every message is actionable
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "msg",
    [
        err_no_api_key("openai"),
        err_config("bad"),
        err_no_input(),
        err_file_not_found("notes.txt"),
        err_conversation_not_found(1),
        err_ask_failed("x", 1),
        err_ask_failed("x"),
        warn_nothing_ingested(),
    ],
)
def test_messages_have_action(msg: str) -> None:
    assert _has_action(msg)
