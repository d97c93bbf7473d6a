"""System prompts and message builders for the text-generation gateway."""

import json
from typing import Any, Dict, List

HABITS_SYSTEM_PROMPT = (
    "You are a habit coach. Generate 3-5 micro-habits to help users build healthier YouTube viewing patterns. "
    "Each habit should be specific, measurable, and achievable.\n"
    "Return ONLY a JSON array of objects with exactly these keys:\n"
    "{\"title\": string, \"priority\": \"low\" | \"medium\" | \"high\", \"category\": string, \"description\": string}\n"
    "No markdown, no extra keys, no extra text."
)

INSIGHTS_SYSTEM_PROMPT = (
    "You are a YouTube habit analyzer. Generate 3-5 personalized insights based on viewing data. "
    "Each insight should be concise, actionable, and focused on building healthier habits.\n"
    "Write plain text paragraphs. No markdown headers."
)

PATTERN_FALLBACK = "We could not summarize your viewing pattern this time. Check back after your next sync."

RECOMMENDATION_FALLBACK = (
    "Based on your viewing patterns, we recommend setting daily limits and exploring more educational content."
)

DEFAULT_HABITS: List[Dict[str, str]] = [
    {
        "title": "Limit YouTube Shorts to 15 minutes today",
        "priority": "high",
        "category": "Content Control",
        "description": "Short-form content can be addictive. Set a timer and stick to your limit.",
    },
    {
        "title": "Watch 1 educational video before entertainment",
        "priority": "medium",
        "category": "Learning",
        "description": "Balance your content by starting with something educational.",
    },
    {
        "title": "No YouTube after 10 PM",
        "priority": "high",
        "category": "Sleep Hygiene",
        "description": "Better sleep starts with evening screen time limits.",
    },
]


def habits_user_message(weekly_hours: int, short_form_pct: int) -> str:
    return (
        f"User watches {weekly_hours} hours per week, {short_form_pct}% are Shorts. "
        "Generate personalized micro-habits."
    )


def insights_user_message(analytics: Dict[str, Any]) -> str:
    return "Analyze this YouTube viewing data and provide insights:\n" + json.dumps(analytics, indent=2)


def late_night_description(late_night_pct: int) -> str:
    return (
        f"You watched {late_night_pct}% of your videos late at night (after 11 PM). "
        "Consider setting a viewing cutoff time to improve sleep quality."
    )
