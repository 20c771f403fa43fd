"""Summarization backend: OpenAI chat completions with Gemini fallback, JSON mode."""

import asyncio
import hashlib
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import google.generativeai as genai
import openai

from seo_research.errors import RateLimitError, TransportError
from seo_research.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class UsageStats:
    """Tracks token usage and estimated cost."""
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_requests: int = 0
    total_cost_usd: float = 0.0
    monthly_cost_usd: float = 0.0
    month_start: float = field(default_factory=time.time)

    def add_usage(self, input_tokens: int, output_tokens: int,
                  cost_per_1k_input: float = 0.01,
                  cost_per_1k_output: float = 0.03) -> float:
        """Record token usage and return cost for this call."""
        cost = (input_tokens / 1000) * cost_per_1k_input + \
               (output_tokens / 1000) * cost_per_1k_output
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_requests += 1
        self.total_cost_usd += cost
        self.monthly_cost_usd += cost
        return cost


class ResponseCache:
    """In-memory TTL cache for LLM responses keyed by model, prompt and options."""

    def __init__(self, max_size: int = 1000, ttl_hours: int = 24):
        self._cache: dict[str, tuple[float, Any]] = {}
        self._max_size = max_size
        self._ttl_seconds = ttl_hours * 3600

    @staticmethod
    def _make_key(prompt: str, model: str, **kwargs) -> str:
        raw = f"{model}:{prompt}:{json.dumps(kwargs, sort_keys=True)}"
        return hashlib.sha256(raw.encode()).hexdigest()

    def get(self, prompt: str, model: str, **kwargs) -> Optional[Any]:
        key = self._make_key(prompt, model, **kwargs)
        if key in self._cache:
            ts, value = self._cache[key]
            if time.time() - ts < self._ttl_seconds:
                return value
            del self._cache[key]
        return None

    def set(self, prompt: str, model: str, value: Any, **kwargs) -> None:
        if len(self._cache) >= self._max_size:
            oldest_key = min(self._cache, key=lambda k: self._cache[k][0])
            del self._cache[oldest_key]
        self._cache[self._make_key(prompt, model, **kwargs)] = (time.time(), value)


def parse_json_text(raw: str) -> Any:
    """Parse a JSON document, tolerating a surrounding markdown code fence."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse JSON from LLM response: %s", exc)
        logger.debug("Raw response: %s", raw[:500])
        raise ValueError(f"LLM returned invalid JSON: {exc}") from exc


class LLMClient:
    """Async LLM client with OpenAI primary and Gemini fallback.

    Rate limits are fail-fast: a denied call raises
    :class:`~seo_research.errors.RateLimitError` instead of sleeping.

    Usage::

        client = LLMClient()
        data = await client.generate_json(prompt, system_prompt="Respond in JSON.")
    """

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        gemini_api_key: Optional[str] = None,
        openai_model: str = "gpt-4-turbo-preview",
        gemini_model: str = "gemini-2.0-flash",
        max_tokens: int = 2500,
        temperature: float = 0.7,
        timeout: int = 60,
        openai_rpm: int = 60,
        gemini_rpm: int = 15,
        cache_enabled: bool = True,
        cache_ttl_hours: int = 24,
        cache_max_size: int = 1000,
        max_monthly_budget: float = 100.0,
        budget_warning_pct: float = 80.0,
    ):
        self._openai_key = openai_api_key or os.getenv("OPENAI_API_KEY", "")
        self._gemini_key = gemini_api_key or os.getenv("GEMINI_API_KEY", "")

        self._openai_model = openai_model
        self._gemini_model = gemini_model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout

        self._openai_client: Optional[openai.AsyncOpenAI] = None
        if self._openai_key:
            self._openai_client = openai.AsyncOpenAI(api_key=self._openai_key, timeout=timeout)
        if self._gemini_key:
            genai.configure(api_key=self._gemini_key)

        self._openai_limiter = RateLimiter(openai_rpm, None, name="openai")
        self._gemini_limiter = RateLimiter(gemini_rpm, None, name="gemini")

        self._cache_enabled = cache_enabled
        self._cache = ResponseCache(max_size=cache_max_size, ttl_hours=cache_ttl_hours)

        self.usage = UsageStats()
        self._max_monthly_budget = max_monthly_budget
        self._budget_warning_pct = budget_warning_pct

    @property
    def model_name(self) -> str:
        return self._openai_model if self._openai_client else self._gemini_model

    @property
    def is_configured(self) -> bool:
        return bool(self._openai_client or self._gemini_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str = "You are a helpful SEO analyst.",
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
        use_cache: bool = True,
    ) -> str:
        """Generate text from the LLM.  Falls back to Gemini on OpenAI failure."""
        max_tokens = max_tokens or self._max_tokens
        temperature = temperature if temperature is not None else self._temperature

        if use_cache and self._cache_enabled:
            cached = self._cache.get(prompt, self.model_name, system=system_prompt,
                                     temp=temperature, json=json_mode)
            if cached is not None:
                logger.debug("Cache hit for prompt (len=%d)", len(prompt))
                return cached

        result: Optional[str] = None
        if self._openai_client:
            try:
                result = await self._call_openai(prompt, system_prompt, max_tokens, temperature, json_mode)
            except RateLimitError:
                raise
            except openai.OpenAIError as exc:
                if not self._gemini_key:
                    raise TransportError(f"OpenAI call failed: {exc}") from exc
                logger.warning("OpenAI call failed: %s -- falling back to Gemini", exc)

        if result is None and self._gemini_key:
            result = await self._call_gemini(prompt, system_prompt, max_tokens, temperature, json_mode)

        if result is None:
            raise RuntimeError("No LLM provider configured. Set OPENAI_API_KEY or GEMINI_API_KEY.")

        if use_cache and self._cache_enabled:
            self._cache.set(prompt, self.model_name, result, system=system_prompt,
                            temp=temperature, json=json_mode)
        return result

    async def generate_json(
        self,
        prompt: str,
        system_prompt: str = "You are a helpful assistant. Respond ONLY with valid JSON.",
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Any:
        """Generate a JSON response and parse it.

        Raises:
            ValueError: the model's reply is not valid JSON.
        """
        raw = await self.generate_text(
            prompt=prompt,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=True,
        )
        return parse_json_text(raw)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _call_openai(
        self, prompt: str, system_prompt: str,
        max_tokens: int, temperature: float, json_mode: bool,
    ) -> str:
        """Call OpenAI Chat Completions API."""
        self._check_budget()
        if not self._openai_limiter.try_acquire():
            raise RateLimitError("openai", self._openai_limiter.status())

        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self._openai_client.chat.completions.create(
            model=self._openai_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            **kwargs,
        )
        choice = response.choices[0].message.content or ""
        usage = response.usage
        if usage:
            cost = self.usage.add_usage(usage.prompt_tokens, usage.completion_tokens)
            logger.info(
                "OpenAI call: %d in / %d out tokens, $%.6f",
                usage.prompt_tokens, usage.completion_tokens, cost,
            )
        return choice.strip()

    async def _call_gemini(
        self, prompt: str, system_prompt: str,
        max_tokens: int, temperature: float, json_mode: bool,
    ) -> str:
        """Call Google Gemini API."""
        if not self._gemini_limiter.try_acquire():
            raise RateLimitError("gemini", self._gemini_limiter.status())

        model = genai.GenerativeModel(
            model_name=self._gemini_model,
            system_instruction=system_prompt,
            generation_config=genai.types.GenerationConfig(
                max_output_tokens=max_tokens,
                temperature=temperature,
                response_mime_type="application/json" if json_mode else None,
            ),
        )
        # The Gemini SDK call is synchronous
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, model.generate_content, prompt)
        text = response.text or ""
        logger.info("Gemini call completed (len=%d)", len(text))
        return text.strip()

    def _check_budget(self) -> None:
        """Raise if monthly budget is exceeded; warn if approaching."""
        if self.usage.monthly_cost_usd >= self._max_monthly_budget:
            raise RuntimeError(
                f"Monthly LLM budget exceeded: ${self.usage.monthly_cost_usd:.2f} "
                f">= ${self._max_monthly_budget:.2f}"
            )
        warning_threshold = self._max_monthly_budget * (self._budget_warning_pct / 100)
        if self.usage.monthly_cost_usd >= warning_threshold:
            logger.warning(
                "LLM budget warning: $%.2f / $%.2f (%.0f%%)",
                self.usage.monthly_cost_usd,
                self._max_monthly_budget,
                (self.usage.monthly_cost_usd / self._max_monthly_budget) * 100,
            )

    def get_usage_summary(self) -> dict[str, Any]:
        """Return a summary of token usage and costs."""
        return {
            "total_requests": self.usage.total_requests,
            "total_input_tokens": self.usage.total_input_tokens,
            "total_output_tokens": self.usage.total_output_tokens,
            "total_cost_usd": round(self.usage.total_cost_usd, 6),
            "monthly_cost_usd": round(self.usage.monthly_cost_usd, 6),
            "max_monthly_budget": self._max_monthly_budget,
        }
