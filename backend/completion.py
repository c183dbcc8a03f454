"""
Chat-completion adapter.

Implements ``complete(message, options, env)`` on top of the supported
language-model providers. The Anthropic provider goes through the official
SDK; the others are plain REST calls.

Errors are raised as CompletionError. Callers that must never fail (the team
agents) catch it at their own boundary.
"""

import os
from typing import Any, Callable, Dict, Mapping, Optional

import requests
from anthropic import Anthropic
from dotenv import load_dotenv

from logger import get_logger

load_dotenv()

logger = get_logger()

DEFAULT_PROVIDER = os.getenv("VANTUZ_AI_PROVIDER") or os.getenv("AI_PROVIDER", "gemini")
DEFAULT_TIMEOUT = float(os.getenv("COMPLETION_TIMEOUT", "30"))
MAX_TOKENS = 1000

CompleteFn = Callable[[str, Mapping[str, Any], Optional[Mapping[str, str]]], str]


class CompletionError(Exception):
    """Raised when a completion request cannot produce text."""
    pass


def _openai_compatible(url: str, model: str) -> Dict[str, Any]:
    return {
        "url": url,
        "model": model,
        "body": lambda system_prompt, message, model_name: {
            "model": model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": message},
            ],
            "max_tokens": MAX_TOKENS,
        },
        "headers": lambda api_key: {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        "parse": lambda data: (data.get("choices") or [{}])[0].get("message", {}).get("content"),
    }


PROVIDER_CONFIG: Dict[str, Dict[str, Any]] = {
    "gemini": {
        "url": "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
        "model": "gemini-1.5-flash",
        "body": lambda system_prompt, message, model_name: {
            "contents": [{"parts": [{"text": f"{system_prompt}\n\nUser: {message}"}]}]
        },
        "headers": lambda api_key: {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        },
        "parse": lambda data: (
            (data.get("candidates") or [{}])[0]
            .get("content", {})
            .get("parts", [{}])[0]
            .get("text")
        ),
    },
    "groq": _openai_compatible(
        "https://api.groq.com/openai/v1/chat/completions", "llama-3.3-70b-versatile"
    ),
    "openai": _openai_compatible(
        "https://api.openai.com/v1/chat/completions", "gpt-4o-mini"
    ),
    "deepseek": _openai_compatible(
        "https://api.deepseek.com/v1/chat/completions", "deepseek-chat"
    ),
    "anthropic": {
        "model": "claude-3-haiku-20240307",
    },
}


def api_key_name(provider: str) -> str:
    """Environment variable holding the API key for a provider."""
    return f"{provider.upper()}_API_KEY"


def _complete_anthropic(message: str, system_prompt: str, api_key: str, timeout: float) -> str:
    client = Anthropic(api_key=api_key, timeout=timeout)

    create_kwargs = {
        "model": PROVIDER_CONFIG["anthropic"]["model"],
        "max_tokens": MAX_TOKENS,
        "messages": [{"role": "user", "content": message}],
    }
    if system_prompt:
        create_kwargs["system"] = system_prompt

    response = client.messages.create(**create_kwargs)

    response_text = ""
    for block in response.content:
        if hasattr(block, "text"):
            response_text += block.text
    return response_text


def _complete_rest(
    provider: str,
    message: str,
    system_prompt: str,
    api_key: str,
    timeout: float
) -> str:
    config = PROVIDER_CONFIG[provider]
    url = config["url"].format(model=config["model"])

    response = requests.post(
        url,
        json=config["body"](system_prompt, message, config["model"]),
        headers=config["headers"](api_key),
        timeout=timeout
    )
    response.raise_for_status()
    return config["parse"](response.json()) or ""


def complete(
    message: str,
    options: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None
) -> str:
    """
    Send one message with a system context to the configured provider.

    Args:
        message: User message
        options: ``provider`` (defaults to the configured provider),
            ``system_context`` (system prompt) and optional ``timeout`` in seconds
        env: Mapping holding provider API keys (defaults to os.environ)

    Returns:
        str: Completion text

    Raises:
        CompletionError: On unknown provider, missing key, transport failure
            or empty response
    """
    options = options or {}
    env = os.environ if env is None else env

    provider = (options.get("provider") or DEFAULT_PROVIDER).lower()
    system_prompt = options.get("system_context", "")
    timeout = float(options.get("timeout") or DEFAULT_TIMEOUT)

    if provider not in PROVIDER_CONFIG:
        raise CompletionError(f"Unsupported AI provider: {provider}")

    api_key = env.get(api_key_name(provider))
    if not api_key:
        raise CompletionError(f"{api_key_name(provider)} is not set")

    logger.info(
        f"Completion request: {provider}",
        extra={"metadata": {"provider": provider, "message": message[:100]}}
    )

    try:
        if provider == "anthropic":
            text = _complete_anthropic(message, system_prompt, api_key, timeout)
        else:
            text = _complete_rest(provider, message, system_prompt, api_key, timeout)
    except Exception as e:
        raise CompletionError(f"{provider} request failed: {e}") from e

    if not text:
        raise CompletionError(f"{provider} returned an empty response")

    logger.info(
        f"Completion received from {provider}",
        extra={"metadata": {"provider": provider, "chars": len(text)}}
    )
    return text


def provider_status(provider: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Report whether a provider is known and has an API key configured."""
    env = os.environ if env is None else env
    provider = (provider or DEFAULT_PROVIDER).lower()
    return {
        "provider": provider,
        "supported": provider in PROVIDER_CONFIG,
        "api_key_configured": bool(env.get(api_key_name(provider))),
    }
