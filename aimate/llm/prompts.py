"""Prompts for the AI assistant capabilities."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

TRANSCRIPT_PROMPT_LIMIT = 15000

JSON_ONLY = """CRITICAL: Your response MUST be valid JSON only. No markdown, no explanations, no text outside the JSON.
"""

TASK_PLANNER_SYSTEM = "You are a productivity assistant that breaks goals into actionable tasks.\n" + JSON_ONLY

TASK_PLANNER_PROMPT = """Break down the following goal into 5-7 structured, actionable daily tasks.
Return a JSON array of tasks, each with: title, description, priority (low/medium/high), and estimatedDays.

Goal: {goal}"""

EXPENSE_CLASSIFIER_SYSTEM = (
    "You are an expense classifier. Classify expenses into one of these categories: "
    "{categories}. Return only the category name."
)

EXPENSE_CLASSIFIER_PROMPT = 'Classify this expense: "{description}"'

BUDGET_ADVISOR_SYSTEM = """You are a financial advisor for an Indian user. Analyze expenses and provide actionable budget insights.
Always use Indian Rupee (INR) and the rupee symbol (₹) for every amount. Do NOT use dollars ($).
Keep the tone concise and professional."""

BUDGET_ADVISOR_PROMPT = """Analyze these expenses (currency: INR ₹) and provide budget insights.
When listing amounts, prefix with the rupee symbol (₹).
{expenses}"""

MEETING_PLANNER_SYSTEM = (
    "You are a professional meeting coordinator that creates detailed meeting descriptions, "
    "agendas, and action items based on meeting titles.\n" + JSON_ONLY
)

MEETING_PLANNER_PROMPT = """Based on the meeting title "{title}"{participants}, generate:
1. A detailed description of what this meeting should cover (2-3 paragraphs)
2. A list of 4-6 key agenda items or discussion points
3. 3-5 suggested action items or outcomes for this meeting

Return a JSON object with this exact structure:
{{
  "summary": "detailed description text",
  "keyPoints": ["agenda item 1", "agenda item 2"],
  "actionItems": ["action 1", "action 2"]
}}"""

MEETING_SUMMARY_SYSTEM = (
    "You are a meeting assistant that summarizes meetings and extracts key information.\n" + JSON_ONLY
)

MEETING_SUMMARY_PROMPT = """Analyze the following meeting transcription and provide:
1. A concise summary (2-3 paragraphs)
2. Key points as an array of strings
3. Action items mentioned (if any) as an array of strings

Transcription: {transcript}

Return a JSON object with this exact structure:
{{
  "summary": "summary text here",
  "keyPoints": ["point 1", "point 2"],
  "actionItems": ["action 1", "action 2"]
}}"""

EMAIL_REPLY_SYSTEM = (
    "You are an email assistant. Generate professional, concise email replies. "
    "Keep replies under 150 words unless the situation requires more detail. "
    "Return only the reply body."
)

EMAIL_REPLY_PROMPT = """Generate a reply to this email:

{body}
{context}"""


def task_planner_prompt(goal: str) -> str:
    return TASK_PLANNER_PROMPT.format(goal=goal)


def expense_classifier_system(categories: Sequence[str]) -> str:
    return EXPENSE_CLASSIFIER_SYSTEM.format(categories=", ".join(categories))


def budget_advisor_prompt(expenses: List[Dict[str, Any]]) -> str:
    return BUDGET_ADVISOR_PROMPT.format(expenses=json.dumps(expenses, indent=2, ensure_ascii=False))


def meeting_planner_prompt(title: str, participants: Sequence[str]) -> str:
    participants_info = f"\nParticipants: {', '.join(participants)}" if participants else ""
    return MEETING_PLANNER_PROMPT.format(title=title, participants=participants_info)


def meeting_summary_prompt(transcript: str) -> str:
    excerpt = transcript[:TRANSCRIPT_PROMPT_LIMIT]
    if len(transcript) > TRANSCRIPT_PROMPT_LIMIT:
        excerpt += "... (truncated)"
    return MEETING_SUMMARY_PROMPT.format(transcript=excerpt)


def email_reply_prompt(body: str, context: str = "") -> str:
    return EMAIL_REPLY_PROMPT.format(
        body=body,
        context=f"\nContext: {context}" if context else "",
    )
