"""Chat-completion client for OpenAI-compatible endpoints."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from ..config import ProviderSettings
from ..errors import ChatRequestError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.openai.com/v1"


class ChatClient:
    """Sends message lists to the chat-completions endpoint and returns the reply text."""

    def __init__(self, timeout_seconds: float = 60.0):
        """Initialize chat client.

        Args:
            timeout_seconds: Total timeout for one request
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        logger.info(f"ChatClient initialized (timeout {timeout_seconds}s)")

    @staticmethod
    def endpoint(settings: ProviderSettings) -> str:
        """Resolve the chat-completions URL for the configured call method."""
        if settings.api_call_method == "proxy" and not settings.api_base:
            raise ConfigurationError("Proxy call method requires an API base URL")
        base = (settings.api_base or DEFAULT_API_BASE).rstrip("/")
        if base.endswith("/chat/completions"):
            return base
        return f"{base}/chat/completions"

    async def chat_completion(self,
                              settings: ProviderSettings,
                              messages: List[Dict[str, Any]],
                              temperature: Optional[float] = None,
                              max_tokens: Optional[int] = None) -> str:
        """Send messages to the chat endpoint and get the reply.

        Args:
            settings: Provider settings (key, model, base URL)
            messages: Ordered role/content messages
            temperature: Optional sampling temperature
            max_tokens: Optional reply length limit

        Returns:
            Reply text

        Raises:
            ConfigurationError: If the API key or proxy URL is missing
            ChatRequestError: If the call fails or the endpoint reports an error
        """
        if not settings.chat_api_key:
            raise ConfigurationError("Chat API key not configured")
        url = self.endpoint(settings)

        headers = {
            "Authorization": f"Bearer {settings.chat_api_key}",
            "Content-Type": "application/json"
        }

        data: Dict[str, Any] = {
            "model": settings.chat_model,
            "messages": messages,
        }
        if temperature is not None:
            data["temperature"] = temperature
        if max_tokens is not None:
            data["max_tokens"] = max_tokens

        logger.info(f"Sending {len(messages)} messages to {settings.chat_model}")
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, headers=headers, json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ChatRequestError(f"Chat API error: {response.status} - {error_text}")

                    result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChatRequestError(f"Chat API request failed: {e!r}") from e
        except ValueError as e:
            # 200 with a non-JSON body, e.g. a gateway page
            raise ChatRequestError(f"Chat API returned invalid JSON: {e}") from e

        if isinstance(result, dict) and result.get("error"):
            raise ChatRequestError(f"Chat API error: {_error_text(result['error'])}")

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ChatRequestError("Unexpected API response structure") from e

        return content_to_text(content)

    async def test_api_config(self, partial: Dict[str, Any]) -> Dict[str, Any]:
        """Check that the given settings can complete a minimal request.

        Provider error detail is returned so the settings screen can show it.
        """
        try:
            settings = ProviderSettings(**partial)
        except ValidationError as e:
            return {"success": False, "error": str(e)}

        try:
            await self.chat_completion(settings, [{"role": "user", "content": "Hello"}], max_tokens=5)
        except (ChatRequestError, ConfigurationError) as e:
            logger.warning(f"API configuration test failed: {e}")
            return {"success": False, "error": str(e)}

        logger.info("API configuration test succeeded")
        return {"success": True}


def content_to_text(content: Any) -> str:
    """Flatten string or content-part list replies to text.

    Image parts are kept as their URL so nothing is silently lost.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                if part.get("type") == "text":
                    parts.append(str(part.get("text", "")))
                elif part.get("type") == "image_url":
                    parts.append(str(part.get("image_url", {}).get("url", "")))
            else:
                parts.append(str(part))
        return "".join(parts)
    raise ChatRequestError("Unexpected API response structure")


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)
