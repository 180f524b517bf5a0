from __future__ import annotations

EXECUTION_PROMPT_TEMPLATE = (
    "You are an AI assistant specialized in {task}. {user_prompt}\nContent:\n{content}"
)


def compose_prompt(*, task: str, user_prompt: str, content: str) -> str:
    """Fill the execution template; inputs were validated upstream."""
    return EXECUTION_PROMPT_TEMPLATE.format(task=task, user_prompt=user_prompt, content=content)
