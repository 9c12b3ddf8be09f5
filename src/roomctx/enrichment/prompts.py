"""Prompt templates for Claude calls."""

SUMMARY_EXTRACTION_PROMPT = """Analyze the following conversation and extract key information.

Conversation:
{conversation}

Only include items that are clearly present in the conversation. If a category has no items, use an empty array.

Respond with ONLY a single JSON object in this exact format:
{{
  "decisions": [
    {{"content": "What was decided", "reasoning": "Why this decision was made"}}
  ],
  "tasks": [
    {{"content": "Actionable task description", "metadata": {{"priority": "high|medium|low", "estimated_effort": "if mentioned"}}}}
  ],
  "action_points": [
    {{"content": "Follow-up action needed"}}
  ],
  "questions": [
    {{"content": "Unresolved question"}}
  ]
}}"""

ANSWER_SYSTEM_PROMPT = (
    "You are an assistant taking part in a meeting. Answer from the provided document context "
    "and conversation history. If the context doesn't contain the answer, say so clearly."
)

ANSWER_PROMPT = """{context}

{history}

User: {question}"""
