"""LLM prompt contracts for message enrichment."""

from __future__ import annotations

from datetime import date

SUMMARY_MAX_LINES = 3


def build_summary_prompt(*, body: str, language: str) -> str:
    """Build the bullet summary prompt.

    Response contract:
        - at most ``SUMMARY_MAX_LINES`` bullet lines
        - no greeting or preamble
    """

    return (
        "You are a summarisation assistant for a very busy professional.\n"
        "Follow these rules strictly when summarising the email below.\n\n"
        f"- Summarise the content in AT MOST {SUMMARY_MAX_LINES} bullet points.\n"
        "- Do NOT add greetings or explanations such as 'Here is the summary'.\n"
        "- Do NOT copy the body verbatim; restate only the key points.\n"
        f"- Write the summary in {language}.\n\n"
        f"Email content:\n{body}\n"
    )


def build_extraction_prompt(*, body: str, today: date) -> str:
    """Build the combined importance/deadline extraction prompt.

    One call returns both values.

    Response contract:
        ``importance:<digit>, deadline:<YYYY-MM-DD or none>``
    """

    return (
        "You are the strict executive assistant of an extremely busy CEO.\n"
        "Analyse the email below and extract TWO values, judging them very strictly.\n\n"
        "1. importance: a single digit from 1 (unnecessary) to 5 (urgent)\n"
        "   - 5: the company suffers unless the CEO replies right now\n"
        "   - 3: a normal business message that needs the CEO's confirmation\n"
        "   - 1: advertising, newsletters, automatic notifications, greetings, reports that can wait\n"
        "   If in doubt, answer 1.\n\n"
        "2. deadline: the single most important FUTURE date (reply deadline, meeting, event) "
        "as YYYY-MM-DD, or 'none' if there is no date.\n\n"
        f"Today is {today.isoformat()}. Resolve relative expressions such as 'tomorrow' or "
        "'next week' against today.\n"
        "Answer ONLY in the form 'importance:<digit>, deadline:<date>'. No explanation.\n\n"
        f"Email content:\n{body}\n"
    )
