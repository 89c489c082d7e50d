"""Label normalisation and the common button vocabulary."""

from __future__ import annotations

import re
from typing import Final

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

COMMON_BUTTON_LABELS: Final[frozenset[str]] = frozenset(
    {
        # core actions
        "submit", "ok", "yes", "no", "cancel", "close", "exit", "back",
        "continue", "next", "previous", "done", "finish", "confirm", "apply",
        "save", "edit", "update", "delete", "remove", "clear", "reset", "discard",
        # account
        "login", "log in", "sign in", "signin", "sign up", "signup", "register",
        "create account", "join", "logout", "log out", "sign out", "forgot password",
        "reset password", "change password", "verify", "verify email", "resend code",
        # forms
        "add", "create", "upload", "download", "browse", "select", "choose",
        "import", "export", "generate", "preview", "submit form",
        # commerce
        "buy", "purchase", "checkout", "add to cart", "add to bag", "view cart",
        "place order", "pay", "confirm payment", "apply coupon", "redeem",
        "subscribe", "unsubscribe", "book now",
        # media and social
        "play", "pause", "stop", "record", "mute", "unmute", "like", "share",
        "comment", "post", "reply", "follow", "unfollow",
        # dialogs
        "accept", "decline", "agree", "disagree", "allow", "deny", "retry",
        "ignore", "skip", "dismiss", "got it",
        # support
        "help", "contact us", "send message", "submit feedback", "rate now",
        "leave review",
        # search
        "search", "filter", "sort", "apply filters", "clear filters",
        "show results", "load more", "view more",
        # onboarding
        "get started", "lets go", "start", "learn more", "try now", "tap to continue",
    }
)

_LABEL_PATTERN = re.compile(
    r"\b(?:"
    + "|".join(re.escape(label) for label in sorted(COMMON_BUTTON_LABELS, key=len, reverse=True))
    + r")\b"
)

__all__ = ["COMMON_BUTTON_LABELS", "has_button_like_name", "normalize_label"]


def normalize_label(label: str) -> str:
    """Lowercase, trim, drop punctuation, and collapse whitespace."""

    cleaned = _NON_WORD.sub("", label.lower().strip())
    return _WHITESPACE.sub(" ", cleaned).strip()


def has_button_like_name(normalized_name: str) -> bool:
    """Return whether a normalised node name reads like a button.

    Common labels must match whole words so that names such as ``Notes``
    do not qualify through ``no``.
    """

    if "button" in normalized_name or "btn" in normalized_name.split():
        return True
    return _LABEL_PATTERN.search(normalized_name) is not None
