"""Chart generation gateway.

Sends a prompt package to the external text-generation backend and
enforces the output contract on what comes back: JSON only, shaped as a
single chart object (chart mode), an array of chart items (insight mode),
an agent reply, or an array of records (synthetic data).

All retry policy lives here. A failed call, whether a backend error or a
contract violation, is retried at most once; a contract violation is
retried with a reinforced instruction. Nothing returned from this module
is persisted by it.
"""

import asyncio
import json
import logging
import os
import re
from typing import Any, Protocol

from anthropic import APIError, AsyncAnthropic

from src.errors.domain import (
    GenerationBackendError,
    GenerationBackendNotConfiguredError,
    GenerationContractViolation,
)
from src.orchestrator.models.chart import (
    AgentReply,
    ChartCandidate,
    DataSourceAnalysis,
    GenerationMode,
    PromptPackage,
)
from src.orchestrator.nl_engine.config import (
    get_generation_timeout,
    get_max_tokens,
    get_model,
    get_temperature,
)

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*\n?(.*?)\n?\s*```", re.DOTALL | re.IGNORECASE)
_GENERIC_FENCE = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)\n?\s*```", re.DOTALL)

_TITLE_KEYS = ("question", "title")
_PAYLOAD_KEYS = ("chart_payload", "chart_data", "chartData", "data")
_TYPE_KEYS = ("chart_type", "chartType", "type")
# Keys a batch response is sometimes wrapped under
_BATCH_WRAPPER_KEYS = ("insights", "charts", "items", "records", "data")

REINFORCED_REMINDER = (
    "IMPORTANT: Your previous response could not be used. Reply with ONLY "
    "valid JSON exactly matching the requested shape. Do not include any "
    "text before or after the JSON and do not use markdown code fences."
)


class GenerationBackend(Protocol):
    """Text-generation backend used by the gateway."""

    async def complete(
        self,
        system: str,
        instruction: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the raw text produced for one instruction."""
        ...


class AnthropicBackend:
    """Generation backend backed by the Anthropic Messages API.

    Retries are owned by the gateway, so the SDK client is created with
    ``max_retries=0``.
    """

    def __init__(
        self,
        client: AsyncAnthropic | None = None,
        model: str | None = None,
    ) -> None:
        self._client = client
        self._model = model or get_model()

    @property
    def has_client(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            if not os.environ.get("ANTHROPIC_API_KEY"):
                raise GenerationBackendNotConfiguredError("ANTHROPIC_API_KEY is not set")
            self._client = AsyncAnthropic(
                timeout=get_generation_timeout(),
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        system: str,
        instruction: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            response = await self.client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": instruction}],
            )
        except APIError as e:
            raise GenerationBackendError(f"Anthropic API call failed: {e}") from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence wrappers around a JSON response.

    Example:
        >>> strip_code_fences('```json\\n[{"a": 1}]\\n```')
        '[{"a": 1}]'
    """
    match = _JSON_FENCE.search(text)
    if match:
        return match.group(1).strip()
    match = _GENERIC_FENCE.search(text)
    if match:
        return match.group(1).strip()

    stripped = text.strip()
    if stripped[:1] in ("[", "{"):
        return stripped
    # Prose around a bare JSON value: take the outermost bracketed span
    starts = [i for i in (stripped.find("["), stripped.find("{")) if i >= 0]
    if not starts:
        return stripped
    start = min(starts)
    closer = "]" if stripped[start] == "[" else "}"
    end = stripped.rfind(closer)
    return stripped[start : end + 1] if end > start else stripped


def parse_json_response(text: str) -> Any:
    """Strip fences and parse a backend response as JSON.

    Raises:
        GenerationContractViolation: If the text is not valid JSON.
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        raise GenerationContractViolation("Generation backend returned an empty response", raw_text=text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationContractViolation(
            f"Response is not valid JSON: {e.msg} at position {e.pos}",
            raw_text=text,
        ) from e


def _first(item: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def validate_chart_item(item: Any) -> ChartCandidate:
    """Check one parsed item carries a title, a chart payload and a type.

    Raises:
        GenerationContractViolation: If the item is not an object or a
            required field is missing.
    """
    if not isinstance(item, dict):
        raise GenerationContractViolation(
            f"Chart item must be an object, got {type(item).__name__}"
        )
    title = _first(item, _TITLE_KEYS)
    payload = _first(item, _PAYLOAD_KEYS)
    chart_type = _first(item, _TYPE_KEYS)

    missing = [
        name
        for name, value in (
            ("question/title", title),
            ("chart_payload", payload),
            ("chart_type", chart_type),
        )
        if value is None
    ]
    if missing:
        raise GenerationContractViolation(
            f"Chart item is missing required field(s): {', '.join(missing)}"
        )

    description = item.get("description") or item.get("summary") or ""
    category = item.get("insight_category") or item.get("category")
    return ChartCandidate(
        title=str(title).strip(),
        description=str(description).strip(),
        chart_type=str(chart_type),
        category=str(category) if category else None,
        chart_payload=payload,
    )


class ChartGenerationGateway:
    """Invokes the generation backend and validates its output.

    Args:
        backend: Text-generation backend. Defaults to AnthropicBackend.
        timeout: Per-call timeout in seconds; expiry is a backend error.
        max_retries: Extra attempts after a failed call. Capped at 1.
    """

    def __init__(
        self,
        backend: GenerationBackend | None = None,
        timeout: float | None = None,
        max_retries: int = 1,
    ) -> None:
        self.backend = backend or AnthropicBackend()
        self.timeout = timeout if timeout is not None else get_generation_timeout()
        self.max_retries = max(0, min(max_retries, 1))

    async def generate(
        self,
        package: PromptPackage,
        expected_count: int | None = None,
    ) -> list[ChartCandidate]:
        """Generate and validate chart items.

        In chart mode exactly one object is required. In batch modes an
        array is required; invalid items are dropped, extra items are
        truncated to ``expected_count`` and fewer items than requested
        are returned as-is.

        Returns:
            Shape-validated candidates, not yet reconciled.

        Raises:
            GenerationBackendError: Backend failure or timeout after retry.
            GenerationContractViolation: Unusable output after retry.
        """
        count = expected_count if expected_count is not None else package.expected_count
        if package.mode == GenerationMode.chart:
            return await self._with_retry(package, self._parse_single)
        return await self._with_retry(
            package, lambda text: self._parse_batch(text, max(count, 1))
        )

    async def generate_agent_reply(self, package: PromptPackage) -> AgentReply:
        """Generate the agent's prose answer plus up to ``expected_count`` charts."""
        return await self._with_retry(
            package, lambda text: self._parse_agent(text, package.expected_count)
        )

    async def generate_records(self, package: PromptPackage) -> list[dict]:
        """Generate a non-empty array of flat records (synthetic data)."""
        return await self._with_retry(package, self._parse_records)

    async def generate_analysis(self, package: PromptPackage) -> DataSourceAnalysis:
        """Generate a data source overview; a non-empty summary is required.

        Findings and suggested questions are trimmed to
        ``package.expected_count`` each.
        """
        return await self._with_retry(
            package, lambda text: self._parse_analysis(text, package.expected_count)
        )

    async def _with_retry(self, package: PromptPackage, parse):
        instruction = package.instruction
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                text = await self._call(package.system_prompt, instruction)
                return parse(text)
            except GenerationBackendNotConfiguredError:
                raise
            except GenerationContractViolation as e:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Generation contract violation (%s mode, attempt %d/%d): %s",
                    package.mode.value, attempt, attempts, e,
                )
                instruction = f"{package.instruction}\n\n{REINFORCED_REMINDER}"
            except GenerationBackendError as e:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Generation backend error (%s mode, attempt %d/%d): %s",
                    package.mode.value, attempt, attempts, e,
                )
        raise AssertionError("unreachable")

    async def _call(self, system: str, instruction: str) -> str:
        try:
            return await asyncio.wait_for(
                self.backend.complete(
                    system=system,
                    instruction=instruction,
                    max_tokens=get_max_tokens(),
                    temperature=get_temperature(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationBackendError(
                f"Generation backend timed out after {self.timeout:g}s"
            ) from e

    @staticmethod
    def _parse_single(text: str) -> list[ChartCandidate]:
        parsed = parse_json_response(text)
        if isinstance(parsed, list) and len(parsed) == 1:
            parsed = parsed[0]
        if not isinstance(parsed, dict):
            raise GenerationContractViolation(
                f"Expected a single chart object, got {type(parsed).__name__}",
                raw_text=text,
            )
        return [validate_chart_item(parsed)]

    @staticmethod
    def _parse_batch(text: str, expected_count: int) -> list[ChartCandidate]:
        items = _unwrap_array(parse_json_response(text), text)
        candidates = []
        for index, item in enumerate(items):
            try:
                candidates.append(validate_chart_item(item))
            except GenerationContractViolation as e:
                logger.warning("Dropping invalid chart item %d: %s", index, e)
        if not candidates:
            raise GenerationContractViolation(
                "Response contained no valid chart items", raw_text=text
            )
        if len(candidates) < expected_count:
            logger.info(
                "Generation returned %d of %d requested items",
                len(candidates), expected_count,
            )
        return candidates[:expected_count]

    @staticmethod
    def _parse_agent(text: str, max_charts: int) -> AgentReply:
        parsed = parse_json_response(text)
        if not isinstance(parsed, dict):
            raise GenerationContractViolation(
                f"Expected an agent reply object, got {type(parsed).__name__}",
                raw_text=text,
            )
        response = parsed.get("response") or parsed.get("message")
        if not isinstance(response, str) or not response.strip():
            raise GenerationContractViolation(
                "Agent reply is missing 'response'", raw_text=text
            )
        charts = []
        raw_charts = parsed.get("charts") or []
        if isinstance(raw_charts, list):
            for index, item in enumerate(raw_charts):
                try:
                    charts.append(validate_chart_item(item))
                except GenerationContractViolation as e:
                    logger.warning("Dropping invalid agent chart %d: %s", index, e)
        return AgentReply(response=response.strip(), charts=charts[:max_charts])

    @staticmethod
    def _parse_analysis(text: str, max_items: int) -> DataSourceAnalysis:
        parsed = parse_json_response(text)
        if not isinstance(parsed, dict):
            raise GenerationContractViolation(
                f"Expected an analysis object, got {type(parsed).__name__}",
                raw_text=text,
            )
        summary = parsed.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise GenerationContractViolation(
                "Analysis is missing 'summary'", raw_text=text
            )
        return DataSourceAnalysis(
            summary=summary.strip(),
            key_findings=_text_items(parsed.get("key_findings"))[:max_items],
            suggested_questions=_text_items(parsed.get("suggested_questions"))[:max_items],
        )

    @staticmethod
    def _parse_records(text: str) -> list[dict]:
        items = _unwrap_array(parse_json_response(text), text)
        records = [item for item in items if isinstance(item, dict) and item]
        if not records:
            raise GenerationContractViolation(
                "Response contained no data records", raw_text=text
            )
        return records


def _text_items(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [item.strip() for item in raw if isinstance(item, str) and item.strip()]


def _unwrap_array(parsed: Any, text: str) -> list:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in _BATCH_WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return parsed[key]
    raise GenerationContractViolation(
        f"Expected a JSON array, got {type(parsed).__name__}", raw_text=text
    )
