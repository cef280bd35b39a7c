"""Prompt/context builder for chart generation.

Assembles a bounded, deterministic prompt package from the dashboard's
data, the recent conversational memory and the titles already on the
dashboard. The output contract for each generation mode is stated in the
system prompt; the gateway enforces it on the way back.
"""

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from src.orchestrator.models.chart import GenerationMode, PriorTurn, PromptPackage
from src.services.data_normalizer import Relation

# Rows included per relation; field names and row counts are always listed
SAMPLE_ROW_LIMIT = 5
# Conversational memory window
PRIOR_TURN_LIMIT = 6

CHART_TYPES_HINT = "bar|line|pie|doughnut|area|scatter"
INSIGHT_CATEGORIES_HINT = "trend|comparison|distribution|correlation|performance|anomaly"

_CHART_ITEM_SCHEMA = """{
  "title": "short chart title",
  "description": "one sentence on what the chart shows",
  "chart_type": "%s",
  "chart_payload": [{"label": "category or period", "value": 123}]
}""" % CHART_TYPES_HINT

_INSIGHT_ITEM_SCHEMA = """{
  "question": "the business question this chart answers",
  "description": "one or two sentences with the key finding",
  "chart_type": "%s",
  "insight_category": "%s",
  "chart_payload": [{"label": "category or period", "value": 123}]
}""" % (CHART_TYPES_HINT, INSIGHT_CATEGORIES_HINT)

_JSON_ONLY = (
    "Respond with ONLY the JSON described below. No prose, no explanations, "
    "no markdown, no code fences."
)

SYSTEM_PROMPTS: dict[GenerationMode, str] = {
    GenerationMode.chart: f"""You are a data visualization expert generating one chart for an analytics dashboard.
Use only the data provided. Aggregate rows when the question asks for totals, averages or counts.
"value" must always be a number.

{_JSON_ONLY}

Return a single JSON object:
{_CHART_ITEM_SCHEMA}""",
    GenerationMode.insights: f"""You are a senior data analyst proposing smart insights for an analytics dashboard.
Each insight is a distinct business question answered by one chart built from the data provided.
"value" must always be a number.

{_JSON_ONLY}

Return a JSON array of insight objects, each shaped like:
{_INSIGHT_ITEM_SCHEMA}""",
    GenerationMode.agent: f"""You are Epesi Agent, an AI analytics assistant embedded in a dashboard builder.
Answer the user's question about their data and propose charts that support the answer.
"value" must always be a number.

{_JSON_ONLY}

Return a single JSON object:
{{
  "response": "a concise answer for the user (plain text)",
  "charts": [{_CHART_ITEM_SCHEMA}]
}}""",
    GenerationMode.synthetic_data: f"""You generate realistic synthetic business datasets for analytics demos.
Every record is a flat object with the same keys. Use numbers for numeric fields and ISO dates for dates.

{_JSON_ONLY}

Return a JSON array of 50 to 100 records.""",
    GenerationMode.analysis: f"""You are a senior data analyst giving a first read of a newly connected data source.
Describe what the data covers, what stands out in it and which questions are worth charting next.
Base every statement on the fields and rows provided.

{_JSON_ONLY}

Return a single JSON object:
{{
  "summary": "two or three sentences on what the data contains",
  "key_findings": ["one notable pattern, outlier or quality issue per item"],
  "suggested_questions": ["a question a chart built from this data could answer"]
}}""",
}


@dataclass(frozen=True)
class RelationContext:
    """A named relation offered to the generation backend."""

    name: str
    relation: Relation


def build_context(
    relations: Sequence[RelationContext],
    prior_turns: Sequence[PriorTurn],
    existing_titles: Iterable[str],
    user_prompt: str,
    mode: GenerationMode = GenerationMode.chart,
    expected_count: int = 1,
) -> PromptPackage:
    """Assemble the prompt package for one generation call.

    Args:
        relations: Data available to the request. Every relation is
            described by name, fields and row count; at most
            SAMPLE_ROW_LIMIT rows of each are included.
        prior_turns: Earlier turns, most recent first. Only the first
            PRIOR_TURN_LIMIT are used.
        existing_titles: Titles already on the dashboard, listed verbatim so
            the backend avoids duplicates. Order does not matter.
        user_prompt: The user's request.
        mode: What is being generated.
        expected_count: Number of items requested (batch modes).

    Returns:
        PromptPackage. Identical inputs give an identical package.
    """
    sections = [f"USER REQUEST:\n{user_prompt.strip()}"]

    if relations:
        sections.append("DATA SOURCES:\n" + "\n\n".join(_describe(r) for r in relations))
    else:
        sections.append("DATA SOURCES:\nNo data sources are connected.")

    turns = list(prior_turns)[:PRIOR_TURN_LIMIT]
    if turns:
        lines = [_describe_turn(i, turn) for i, turn in enumerate(turns, start=1)]
        sections.append(
            "CONVERSATION HISTORY (most recent first):\n"
            + "\n".join(lines)
            + "\nFollow-up requests such as \"make it a pie chart\" refer to turn 1."
        )

    titles = sorted({t.strip() for t in existing_titles if t and t.strip()})
    if titles:
        sections.append(
            "EXISTING INSIGHTS TO AVOID DUPLICATING:\n"
            + "\n".join(f"- {t}" for t in titles)
        )

    sections.append(_output_instruction(mode, expected_count))

    return PromptPackage(
        mode=mode,
        system_prompt=SYSTEM_PROMPTS[mode],
        instruction="\n\n".join(sections),
        expected_count=expected_count,
    )


def _describe(context: RelationContext) -> str:
    relation = context.relation
    header = (
        f'Data Source "{context.name}": {", ".join(relation.fields) or "(no fields)"} '
        f"({relation.row_count} records)"
    )
    sample = relation.sample(SAMPLE_ROW_LIMIT)
    if not sample:
        return header
    return f"{header}\nSample rows:\n{json.dumps(sample, ensure_ascii=False, default=str)}"


def _describe_turn(index: int, turn: PriorTurn) -> str:
    line = f"{index}. Q: {turn.question.strip()}"
    if turn.chart is not None:
        line += f"\n   Chart: {turn.chart.summary()}"
    if turn.answer:
        line += f"\n   Answer: {turn.answer.strip()}"
    return line


def _output_instruction(mode: GenerationMode, expected_count: int) -> str:
    if mode == GenerationMode.insights:
        return (
            f"OUTPUT:\nReturn a JSON array of exactly {expected_count} distinct insights. "
            "Each must use a different question than the existing insights."
        )
    if mode == GenerationMode.agent:
        return (
            f"OUTPUT:\nReturn the JSON object with at most {expected_count} charts. "
            "Use an empty charts list when no chart helps answer the question."
        )
    if mode == GenerationMode.synthetic_data:
        return "OUTPUT:\nReturn the JSON array of records."
    if mode == GenerationMode.analysis:
        return (
            f"OUTPUT:\nReturn the JSON analysis object with at most {expected_count} "
            f"key findings and at most {expected_count} suggested questions."
        )
    return "OUTPUT:\nReturn the single JSON chart object."
