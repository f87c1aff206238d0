"""Prompt templates and response schemas for the pipeline."""

from typing import Optional

from maker.schemas import Attachment

DECOMPOSITION_PROMPT = """Task: {task}

Decompose this task into a sequential list of atomic, execution-ready subtasks.
Each subtask must be completable on its own given the results of the previous ones.
Do not output any explanation. Output ONLY a JSON object of the form {{"steps": [...]}}
where each string is a step.
Example: {{"steps": ["Find the current stock price of AAPL", "Compare it to the 50-day moving average", "Generate a buy/sell recommendation"]}}"""

PLAN_SCHEMA = {
    "name": "plan",
    "schema": {
        "type": "object",
        "properties": {
            "steps": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["steps"],
        "additionalProperties": False,
    },
}

CANDIDATE_PROMPT = """Context so far:
{context}

Current Step: {step}

Execute this step. Be concise and precise."""

VOTING_PROMPT = """I need to evaluate the best response for the step: "{step}".

Candidates:
{candidates}

Analyze these candidates for correctness, completeness, and adherence to the step.
Select the index (0-{last_index}) of the best candidate.

Output JSON: {{"bestIndex": number, "reason": string}}"""

VOTE_SCHEMA = {
    "name": "vote",
    "schema": {
        "type": "object",
        "properties": {
            "bestIndex": {"type": "integer"},
            "reason": {"type": "string"},
        },
        "required": ["bestIndex", "reason"],
        "additionalProperties": False,
    },
}


def build_context(task: str, completed: str) -> str:
    """Running context handed to each step: the request plus chained results."""
    return f"Original Request: {task}\n\nCompleted Steps:\n{completed}"


def format_step_result(index: int, step: str, result: str) -> str:
    return f"Step {index + 1}: {step}\nResult: {result}\n\n"


def format_candidates(texts: list[str], preview_chars: int) -> str:
    """Number candidates for the judge, truncating each to bound prompt size."""
    blocks = []
    for i, text in enumerate(texts):
        preview = text if len(text) <= preview_chars else text[:preview_chars] + "..."
        blocks.append(f"Candidate {i}:\n{preview}\n---")
    return "\n".join(blocks)


def user_message(text: str, attachments: Optional[list[Attachment]] = None) -> dict:
    """Build a user message, inlining text attachments and attaching images."""
    if not attachments:
        return {"role": "user", "content": text}

    parts: list[dict] = [{"type": "text", "text": text}]
    for attachment in attachments:
        if attachment.is_image:
            parts.append({
                "type": "image_url",
                "image_url": {"url": f"data:{attachment.mime_type};base64,{attachment.data}"},
            })
        else:
            parts.append({
                "type": "text",
                "text": f"Attached file {attachment.name}:\n{attachment.data}",
            })
    return {"role": "user", "content": parts}
