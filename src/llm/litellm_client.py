"""
LiteLLM Unified Client for the prediction agents

Provides a model-agnostic interface for LLM calls and records the token usage
and cost of every completion.

Usage:
    client = UnifiedLLMClient(tracker=UsageTracker())

    # Async
    text = await client.achat([{"role": "user", "content": "Hello"}], agent_name="momentum")

    # Structured JSON output
    result = await client.astructured_chat(messages)

    client.tracker.total_cost

Environment Variables:
    LITELLM_MODEL: Model to use (default: "bedrock/amazon.nova-lite-v1:0")
    LLM_TEMPERATURE: Temperature (default: 0.1)
    LLM_MAX_TOKENS: Max tokens (default: 2048)
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from litellm import acompletion, completion
from loguru import logger

from costs.calculator import UsageRecord, UsageTracker

from .config import LLMConfig, get_llm_config, pricing_model_name, pricing_provider_for


@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    model: str
    usage: Optional[UsageRecord] = None
    raw_response: Optional[Any] = None


class UnifiedLLMClient:
    """
    Model-agnostic LLM client using LiteLLM.

    Each completion's usage is recorded into `tracker`, a per-analysis
    UsageTracker supplied by the caller.
    """

    def __init__(self, config: Optional[LLMConfig] = None, tracker: Optional[UsageTracker] = None):
        """
        Args:
            config: Optional LLMConfig. Uses singleton if not provided.
            tracker: Usage accumulator (a fresh one if not provided)
        """
        self.config = config or get_llm_config()
        self.tracker = tracker if tracker is not None else UsageTracker()

        logger.info(
            f"UnifiedLLMClient initialized: model={self.config.model}, "
            f"pricing={self.config.provider.value}"
        )

    def _call_kwargs(self, messages: List[Dict[str, str]], **kwargs) -> Dict[str, Any]:
        call_kwargs = self.config.to_litellm_kwargs()
        call_kwargs.update(kwargs)
        call_kwargs["messages"] = messages
        return call_kwargs

    def _record(self, response: Any, model: str, agent_name: Optional[str]) -> Optional[UsageRecord]:
        """Record usage from a LiteLLM response; responses without usage are skipped."""
        usage = getattr(response, "usage", None)
        if not usage:
            return None

        model_name = pricing_model_name(model)
        record = self.tracker.record_usage(
            provider=pricing_provider_for(model).value,
            model_name=model_name,
            input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            agent_name=agent_name,
        )
        logger.debug(
            f"LLM usage: {record.input_tokens} prompt, {record.output_tokens} completion, "
            f"${record.total_cost:.6f} ({record.provider}/{record.model_name})"
        )
        return record

    def chat_response(self, messages: List[Dict[str, str]], agent_name: Optional[str] = None, **kwargs) -> LLMResponse:
        """Synchronous chat completion returning content plus recorded usage."""
        call_kwargs = self._call_kwargs(messages, **kwargs)
        try:
            response = completion(**call_kwargs)
        except Exception as e:
            logger.error(f"LiteLLM error: {e}")
            raise

        return LLMResponse(
            content=response.choices[0].message.content,
            model=call_kwargs["model"],
            usage=self._record(response, call_kwargs["model"], agent_name),
            raw_response=response,
        )

    async def achat_response(
        self,
        messages: List[Dict[str, str]],
        agent_name: Optional[str] = None,
        **kwargs
    ) -> LLMResponse:
        """Async chat completion returning content plus recorded usage."""
        call_kwargs = self._call_kwargs(messages, **kwargs)
        try:
            response = await acompletion(**call_kwargs)
        except Exception as e:
            logger.error(f"LiteLLM async error: {e}")
            raise

        return LLMResponse(
            content=response.choices[0].message.content,
            model=call_kwargs["model"],
            usage=self._record(response, call_kwargs["model"], agent_name),
            raw_response=response,
        )

    def chat(self, messages: List[Dict[str, str]], agent_name: Optional[str] = None, **kwargs) -> str:
        """
        Synchronous chat completion.

        Args:
            messages: List of message dicts with 'role' and 'content'
            agent_name: Agent the usage is attributed to
            **kwargs: Override config (temperature, max_tokens, etc.)

        Returns:
            Response content string
        """
        return self.chat_response(messages, agent_name, **kwargs).content

    async def achat(self, messages: List[Dict[str, str]], agent_name: Optional[str] = None, **kwargs) -> str:
        """Async chat completion. Same arguments as chat()."""
        response = await self.achat_response(messages, agent_name, **kwargs)
        return response.content

    async def astructured_chat(
        self,
        messages: List[Dict[str, str]],
        agent_name: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """
        Get structured JSON output from LLM.

        Returns:
            Parsed JSON dict, or {"error", "raw_response"} when parsing fails
        """
        json_instruction = "\n\nYou MUST respond with valid JSON only. No other text."

        enhanced_messages = [
            {"role": "system", "content": msg["content"] + json_instruction}
            if msg.get("role") == "system" else msg
            for msg in messages
        ]
        if not any(m.get("role") == "system" for m in enhanced_messages):
            enhanced_messages.insert(0, {
                "role": "system",
                "content": "You are a prediction market analyst." + json_instruction
            })

        response = await self.achat(enhanced_messages, agent_name, **kwargs)

        # Handle markdown code fences
        content = response.strip()
        if content.startswith("```json"):
            content = content[7:]
        if content.startswith("```"):
            content = content[3:]
        if content.endswith("```"):
            content = content[:-3]

        try:
            return json.loads(content.strip())
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON response: {e}\nResponse: {response}")
            return {"error": "JSON parse failed", "raw_response": response}

    def switch_model(self, model: str) -> None:
        """
        Switch to a different model at runtime.

        Args:
            model: New model string (e.g., "bedrock/amazon.nova-pro-v1:0")
        """
        old_model = self.config.model
        self.config.model = model
        logger.info(f"Switched model: {old_model} → {model}")
