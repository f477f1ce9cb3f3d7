# hybrid_ai/infrastructure/adapters/ai/prompt_builder.py

"""Prompt assembly for backends that take free text"""

import json
from datetime import datetime
from typing import Optional

from .models import AIRequest, RequestKind

PROMPT_HEADERS = {
    RequestKind.DRAFT_ANALYSIS: "Analyze this fantasy football draft situation",
    RequestKind.TRADE_EVALUATION: "Evaluate this fantasy football trade",
    RequestKind.LINEUP_OPTIMIZATION: "Optimize this fantasy football lineup",
    RequestKind.PLAYER_ANALYSIS: "Analyze this fantasy football player",
    RequestKind.GENERAL_ADVICE: "Answer this fantasy football question",
}


def build_system_prompt(now: Optional[datetime] = None) -> str:
    """
    System prompt for chat-style backends.

    Args:
        now: Reference time (defaults to the current time)

    Returns:
        Prompt text
    """
    now = now or datetime.now()
    parts = [
        "You are an expert fantasy football coach.",
        f"Today is {now.strftime('%A, %B %d, %Y')}.",
        "Give concrete recommendations, state your reasoning briefly and "
        "mention the main risk of each recommendation."
    ]
    return "\n\n".join(parts)


def build_user_prompt(request: AIRequest) -> str:
    """Flatten a request into a single prompt string"""
    prompt = f"{PROMPT_HEADERS[request.kind]}:\n\n{request.query_text}"
    if request.context_payload:
        context = json.dumps(dict(request.context_payload), indent=2, default=str)
        prompt += f"\n\nContext:\n{context}"
    return prompt
