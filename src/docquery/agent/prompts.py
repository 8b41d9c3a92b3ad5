"""Prompt templates sent to the LLM transport."""

from __future__ import annotations

from collections.abc import Iterable

from docquery.types import Fragment, FragmentSet

DIVISION_PROMPT = """
You are an expert at analysing and organising long documents.

TASK: Split the document below into logical divisions (chapters, sections,
articles, annexes or main themes), name each division and write a concise
summary of it.

RULES:
1. Divide along the document's own structure; do not split related concepts.
2. Give every division a distinct, descriptive name.
3. Summaries are 2-3 lines explaining what the division contains.
4. Produce at most 20 divisions.
5. Reply with valid JSON only, escaping quotes and newlines inside strings.

RESPONSE FORMAT:
{
  "fragments": [
    {"name": "Division name", "content": "Full text of the division", "summary": "What it covers"}
  ],
  "method": "How and why the document was divided this way"
}

DOCUMENT:
""".lstrip()

SELECTION_PROMPT = """
You decide which parts of a document are needed to answer a question.

QUESTION:
{question}

AVAILABLE PARTS AND THEIR SUMMARIES:
{parts}

RULES:
1. Select only the parts strictly necessary to answer the question.
2. Use the exact part names as listed (for example "Part 1").
3. If the question is unrelated to the document, return an empty list.

Reply with valid JSON only:
{{
  "selected_names": ["Part 1", "Part 4"],
  "reasoning": "Why these parts were selected"
}}
""".strip()

ANSWER_PROMPT = """
Answer the question using only the document sections provided.

QUESTION:
{question}

SELECTED DOCUMENT SECTIONS:
{sections}

INSTRUCTIONS:
1. Rely only on the sections above; say so if they do not contain the answer.
2. Cite the section names your answer draws on.
3. Be direct and concise.
""".strip()

GENERAL_PROMPT = """
Answer the following question accurately and concisely. No document context
is available for it.

QUESTION:
{question}
""".strip()


def build_division_prompt(content: str) -> str:
    return DIVISION_PROMPT + content


def format_summaries(fragment_set: FragmentSet) -> str:
    return "\n".join(
        f'{position}. "{fragment.name}": {fragment.summary}'
        for position, fragment in enumerate(fragment_set, start=1)
    )


def build_selection_prompt(question: str, fragment_set: FragmentSet) -> str:
    return SELECTION_PROMPT.format(question=question, parts=format_summaries(fragment_set))


def format_sections(fragments: Iterable[Fragment]) -> str:
    return "\n".join(f"=== {fragment.name} ===\n{fragment.content}\n" for fragment in fragments)


def build_answer_prompt(question: str, fragments: Iterable[Fragment]) -> str:
    return ANSWER_PROMPT.format(question=question, sections=format_sections(fragments))


def build_general_prompt(question: str) -> str:
    return GENERAL_PROMPT.format(question=question)
