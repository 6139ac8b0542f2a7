"""
rag/fallbacks.py - Canned answers for degraded operation
========================================================

When the generation service times out, the user still gets an answer: the
question is scanned for domain keywords and the matching canned response is
returned. If nothing matches, an apologetic message is used instead.

Topics are checked in order; the first keyword hit wins.
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class FallbackResult:
    """
    Canned answer picked for a question.

    Attributes:
        topic: Topic key, e.g. "password"
        message: User-facing answer
        matched_keyword: The keyword that selected it (for logging)
    """
    topic: str
    message: str
    matched_keyword: str


# topic -> (keywords, canned answer)
KEYWORD_RESPONSES = {
    "password": (
        ["password", "passcode", "login", "log in", "sign in", "pin"],
        "To reset your password:\n"
        "1. Open the app and tap Forgot Password\n"
        "2. Confirm the code we send to your phone\n"
        "3. Choose a new password",
    ),
    "balance": (
        ["balance", "how much money", "funds"],
        "Your balance is on the Accounts screen of the app.\n"
        "• You can also check it at any ATM",
    ),
    "transfer": (
        ["transfer", "send money", "wire", "payment"],
        "To send money:\n"
        "1. Go to Payments > Transfer\n"
        "2. Enter the recipient and amount\n"
        "3. Confirm with your PIN",
    ),
    "card": (
        ["card", "debit", "credit", "atm"],
        "Manage your cards under Cards in the app.\n"
        "• Freeze a lost or stolen card right away\n"
        "• Order a replacement from the same screen",
    ),
}

TIMEOUT_MESSAGE = "That took longer than expected. Please try again in a moment."


def keyword_fallback(question: str) -> Optional[FallbackResult]:
    """
    Pick a canned answer by scanning the question for domain keywords.

    Returns:
        FallbackResult for the first matching topic, None if nothing matches

    Example:
        >>> keyword_fallback("I forgot my password").topic
        'password'
        >>> keyword_fallback("what's the weather") is None
        True
    """
    normalized = question.lower().strip()

    for topic, (keywords, message) in KEYWORD_RESPONSES.items():
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}\b", normalized):
                return FallbackResult(topic=topic, message=message, matched_keyword=keyword)

    return None
