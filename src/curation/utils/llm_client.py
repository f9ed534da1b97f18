"""LLM client with Instructor integration for structured responses.

Wraps OpenAI's API with Instructor so generation and judging calls return
validated pydantic models, with retry, token accounting and cost estimation.
"""

import hashlib
import logging
import os
import time
from typing import Dict, Optional, Type, TypeVar

import instructor
from openai import OpenAI
from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)

# USD per 1M tokens
MODEL_COSTS: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"input": 0.15, "output": 0.6, "cached": 0.075},
    "gpt-4o": {"input": 2.5, "output": 10, "cached": 1.25},
    "gpt-4.1-mini": {"input": 0.4, "output": 1.6, "cached": 0.1},
    "gpt-4.1": {"input": 2, "output": 8, "cached": 0.5},
    "claude-sonnet-4.5": {"input": 3, "output": 15, "cached": 1.5},
}
DEFAULT_MODEL_COST = {"input": 3, "output": 15, "cached": 1.5}


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0


class LLMClient:
    """Instructor-wrapped OpenAI client for structured responses.

    Features:
    - Structured response generation with pydantic validation
    - Retry with exponential backoff
    - Per-call and cumulative token usage with cost estimates
    - A cheap ``ping`` used by source adapter health checks
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
    ):
        """Initialize LLM client with Instructor.

        Args:
            api_key: OpenAI API key (if None, uses OPENAI_API_KEY env var)
            model: Model to use (if None, uses LLM_MODEL env var or gpt-4o-mini)
            max_retries: Maximum number of attempts per call (default: 3)
            base_delay: Base delay for exponential backoff in seconds (default: 1.0)
            max_delay: Maximum delay between retries in seconds (default: 60.0)
        """
        self.model = model or os.getenv("LLM_MODEL", "gpt-4o-mini")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.total_usage = TokenUsage()
        self.last_usage = TokenUsage()

        self._openai = OpenAI(api_key=api_key)
        self.client = instructor.from_openai(self._openai)

        logger.info(f"LLMClient initialized with model={self.model}, max_retries={max_retries}")

    def generate(
        self,
        prompt: str,
        response_model: Type[T],
        temperature: float = 0.7,
        max_tokens: int = 2048,
        system_prompt: Optional[str] = None,
    ) -> T:
        """Generate a structured response validated against ``response_model``.

        Args:
            prompt: User prompt/instruction
            response_model: Pydantic model class for structured output
            temperature: Sampling temperature (default: 0.7)
            max_tokens: Maximum tokens to generate (default: 2048)
            system_prompt: Optional system prompt

        Returns:
            Validated pydantic model instance

        Raises:
            Exception: If all retry attempts fail
        """
        prompt_hash = self._hash_prompt(prompt)
        logger.info(
            f"Generating structured response: model={self.model}, "
            f"response_model={response_model.__name__}, prompt_hash={prompt_hash}"
        )

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        last_exception = None
        for attempt in range(1, self.max_retries + 1):
            start_time = time.time()
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    response_model=response_model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )

                latency_ms = (time.time() - start_time) * 1000
                usage = self._extract_usage(response)
                self.last_usage = usage
                self._update_total_usage(usage)

                logger.info(
                    "LLM response",
                    extra={
                        "prompt_hash": prompt_hash,
                        "response_model": response_model.__name__,
                        "model": self.model,
                        "latency_ms": round(latency_ms, 2),
                        "attempt": attempt,
                        "total_tokens": usage.total_tokens,
                    },
                )
                return response

            except Exception as e:
                last_exception = e
                logger.warning(
                    f"Attempt {attempt}/{self.max_retries} failed: {str(e)[:200]}",
                    extra={"prompt_hash": prompt_hash, "model": self.model},
                )

                if attempt < self.max_retries:
                    delay = self._calculate_backoff_delay(attempt)
                    logger.info(f"Retrying in {delay:.2f} seconds...")
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} attempts failed for prompt_hash={prompt_hash}"
                    )

        raise Exception(
            f"Failed to generate structured response after {self.max_retries} attempts. "
            f"Last error: {last_exception}"
        )

    def ping(self) -> bool:
        """Cheap reachability probe: retrieve the configured model's metadata."""
        try:
            self._openai.models.retrieve(self.model)
            return True
        except Exception as e:
            logger.warning(f"LLM ping failed for model={self.model}: {str(e)[:200]}")
            return False

    def estimate_cost(self, usage: TokenUsage) -> float:
        """Estimate USD cost of ``usage`` at this client's model rates."""
        rates = MODEL_COSTS.get(self.model, DEFAULT_MODEL_COST)
        uncached_prompt = usage.prompt_tokens - usage.cached_tokens
        input_cost = (
            uncached_prompt * rates["input"] + usage.cached_tokens * rates["cached"]
        ) / 1_000_000
        output_cost = usage.completion_tokens * rates["output"] / 1_000_000
        return round(input_cost + output_cost, 6)

    def get_usage_summary(self) -> dict:
        """Cumulative usage and estimated cost since creation or last reset."""
        return {
            "model": self.model,
            "prompt_tokens": self.total_usage.prompt_tokens,
            "completion_tokens": self.total_usage.completion_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "cached_tokens": self.total_usage.cached_tokens,
            "estimated_cost_usd": round(self.estimate_cost(self.total_usage), 4),
        }

    def reset_usage(self) -> None:
        self.total_usage = TokenUsage()
        self.last_usage = TokenUsage()

    def _extract_usage(self, response: BaseModel) -> TokenUsage:
        usage = TokenUsage()

        # Instructor keeps the raw completion on _raw_response
        raw_response = getattr(response, "_raw_response", None)
        raw_usage = getattr(raw_response, "usage", None)
        if raw_usage is not None:
            usage.prompt_tokens = getattr(raw_usage, "prompt_tokens", 0) or 0
            usage.completion_tokens = getattr(raw_usage, "completion_tokens", 0) or 0
            usage.total_tokens = getattr(raw_usage, "total_tokens", 0) or 0
            details = getattr(raw_usage, "prompt_tokens_details", None)
            if details is not None:
                usage.cached_tokens = getattr(details, "cached_tokens", 0) or 0

        return usage

    def _update_total_usage(self, usage: TokenUsage) -> None:
        self.total_usage.prompt_tokens += usage.prompt_tokens
        self.total_usage.completion_tokens += usage.completion_tokens
        self.total_usage.total_tokens += usage.total_tokens
        self.total_usage.cached_tokens += usage.cached_tokens

    def _hash_prompt(self, prompt: str) -> str:
        """First 16 hex chars of the prompt's SHA256, for log correlation."""
        return hashlib.sha256(prompt.encode()).hexdigest()[:16]

    def _calculate_backoff_delay(self, attempt: int) -> float:
        delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)
