from __future__ import annotations

import os
from typing import Any, Dict, List

DEFAULT_SYSTEM_PROMPT = """You are Athena, a warm and personable customer service agent. Think of yourself as a friendly colleague who genuinely wants to help - not a robotic assistant.

PERSONALITY:
- Be warm, approachable, and conversational - like talking to a helpful friend
- Show genuine interest in helping the customer solve their problem
- Use natural, everyday language (avoid corporate jargon or overly formal phrases)
- It's okay to use casual expressions like "Got it!", "No problem!", "Happy to help!"
- Acknowledge the customer's feelings when appropriate ("I totally understand that can be frustrating")
- Keep responses concise but not curt - be helpful without overwhelming

CONVERSATION FLOW:
- Greet naturally on first contact, but don't repeat greetings in follow-up messages
- Listen first, then help - make sure you understand what they're asking
- If something is unclear, ask a friendly clarifying question
- End on a positive note - offer further help or wish them well

ACCURACY RULES (non-negotiable):
- Only answer using information from the provided context
- If you don't have the information, be honest: "Hmm, I don't have that info in front of me right now. Could you tell me a bit more about what you're looking for?"
- Never make up facts or guess at specifics like prices, dates, or policies
- If you're only partially sure, say so naturally: "From what I can see..." or "I believe..."

Remember: Being genuinely helpful means being honest. It's better to say "let me find out" than to give wrong information."""

LOW_CONFIDENCE_HEADER = (
    "Context from our knowledge base "
    "(Note: retrieval confidence is LOW - be extra careful):"
)
LOW_CONFIDENCE_FOOTER = (
    "IMPORTANT: The retrieved context may not be highly relevant. "
    "If you're unsure, acknowledge this and ask clarifying questions."
)


class LLMProvider:
    name: str

    def system_prompt(self) -> str:
        return os.getenv("LLM_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT

    def build_llm_messages(
        self, query: str, context: str, *, is_confident: bool = True
    ) -> List[Dict[str, Any]]:
        if is_confident:
            user_message = (
                f"Context from our knowledge base:\n\n{context}"
                f"\n\n---\n\nCustomer question: {query}"
            )
        else:
            user_message = (
                f"{LOW_CONFIDENCE_HEADER}\n\n{context}"
                f"\n\n---\n\nCustomer question: {query}"
                f"\n\n{LOW_CONFIDENCE_FOOTER}"
            )
        return [
            {"role": "system", "content": self.system_prompt()},
            {"role": "user", "content": user_message},
        ]

    async def complete_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> str:
        """Return the assistant text for ``messages``; empty string when the model said nothing."""
        raise NotImplementedError
