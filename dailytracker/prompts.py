"""Prompt templates and fallback content for the Daily Tracker coach."""

from __future__ import annotations

import random
from datetime import date
from typing import Dict, List, Optional, Sequence

COACH_PERSONA = (
    "You are Daily Tracker AI, a calm, disciplined habit coach. "
    "You are grounded and optimistic, never cheesy."
)

CHAT_SYSTEM_PROMPT = """
You are Foundation AI, a calm, supportive, slightly stoic and optimistic coach.
Be VERY concise and practical.
Respond in at most 3 short paragraphs or 5 bullet points, and keep it under ~120 words.
Avoid fluffy quotes. Focus on one or two specific, doable suggestions.
"""

CHAT_CONTEXT_MODES = {
    "last7days": "Focus on the last 7 days of routines and reflections.",
    "allReflections": "Use all available reflections and high-level routine/goal data.",
    "celebration": "Celebrate the user's milestone in one or two sentences, tied to their goals.",
    "general": "Give general advice based on healthy routines and consistent habits.",
}

DAILY_QUESTION_SYSTEM_PROMPT = """
You are a thoughtful, philosophical AI coach.
Generate a single, short, thought-provoking question for the user to reflect on today.
It should be deep but accessible.
Examples: "What is one thing you are holding onto that you need to let go of?",
"How did you show up for yourself today?", "What is the most important thing you learned this week?"
Return ONLY the question text.
"""

ONBOARDING_SYSTEM_PROMPT = """
You are a pragmatic, optimistic planner. Output must be a SINGLE JSON object matching this schema:
{"keyTruth": string,
 "board": [{"name": string, "role": string, "why": string}],
 "goals": {"3y": [{"title": string}], "1y": [{"title": string}],
           "6m": [{"title": string}], "1m": [{"title": string}]},
 "aiVoice": string}

Rules:
- "board": 4-6 members max. Realistic archetypes (e.g. "CFO mentor", "Family advisor",
  "Strength & cardio coach", "Stoic mentor"). Include "why" for each (1 short sentence).
- "goals": for each horizon (3y, 1y, 6m, 1m) propose 1-3 specific, measurable goals that together
  lead toward the user's 10-year intent. Optimistic, not delusional.
- "keyTruth": 1 concise guiding belief for the next decade.
- "aiVoice": 2-3 sentences describing the tone the app should use with this user.
No additional commentary.
"""

# Used whenever generation fails or comes back empty.
FALLBACKS: Dict[str, Sequence[str]] = {
    "gold_streak": ("Keep going.",),
    "habit_streak": ("Keep going.",),
    "intention": ("Discipline is the bridge between goals and accomplishment.",),
    "daily_question": (
        "What are you most grateful for today?",
        "What is one small win you had today?",
        "How can you be 1% better tomorrow?",
        "What is draining your energy right now?",
    ),
}


def fallback(content_type: str, *, choose=random.choice) -> str:
    """Return fallback text for a content type."""
    options = FALLBACKS.get(content_type) or FALLBACKS["gold_streak"]
    return options[0] if len(options) == 1 else choose(list(options))


def _user_context(goal_titles: Sequence[str], key_truth: Optional[str]) -> str:
    goals_text = ", ".join(goal_titles) if goal_titles else "No specific goals"
    return f"User Context:\nGoals: {goals_text}\nKey Truth: {key_truth or ''}\n"


def celebration_prompt(
    content_type: str,
    streak_days: int,
    *,
    goal_titles: Sequence[str] = (),
    key_truth: Optional[str] = None,
    habit_title: Optional[str] = None,
) -> str:
    if content_type == "gold_streak":
        return (
            "Generate a bold, powerful celebration message for the user's Gold Streak "
            f"reaching {streak_days} days.\n\n"
            "Constraints:\n1-2 sentences, maximum 35 words.\n"
            "Tone: iconic, disciplined, confident.\nMust feel rare and special.\n\n"
            + _user_context(goal_titles, key_truth)
        )
    return (
        f'Generate a powerful celebration message for the user\'s habit "{habit_title or "habit"}" '
        f"reaching {streak_days} days in a row.\n\n"
        "Constraints:\n1-2 sentences, maximum 35 words.\n"
        "Tone: respectful, focused, disciplined.\nEmphasize identity and consistency.\n\n"
        + _user_context(goal_titles, None)
    )


def intention_prompt(
    day: date, *, goal_titles: Sequence[str] = (), key_truth: Optional[str] = None
) -> str:
    return (
        f"Generate a Daily Intention for {day.isoformat()}.\n"
        "Constraints: 1-2 sentences, max 40 words. Wise, disciplined, grounded. "
        "Do NOT mention Stoicism directly.\n"
        + _user_context(goal_titles, key_truth)
    )


def chat_prompt(
    message: str,
    context_mode: Optional[str],
    *,
    goal_titles: Sequence[str] = (),
    key_truth: Optional[str] = None,
    ai_voice: Optional[str] = None,
    reflections: Optional[List[str]] = None,
) -> str:
    description = CHAT_CONTEXT_MODES.get(
        context_mode or "general", CHAT_CONTEXT_MODES["general"]
    )
    sections = [f"Context: {description}"]
    if ai_voice:
        sections.append(f"Voice: {ai_voice}")
    if goal_titles or key_truth:
        sections.append(_user_context(goal_titles, key_truth).strip())
    if reflections:
        sections.append("Recent reflections:\n" + "\n".join(f"- {r}" for r in reflections))
    sections.append(f"User says: {message}")
    return "\n\n".join(sections)


def onboarding_prompt(priorities: str, life_summary: str, ideology: str) -> str:
    return (
        f"Priorities (ranked): {priorities}\n"
        f"Life today & desired 10-year future: {life_summary}\n"
        f"Ideology / worldview: {ideology}\n"
    )
