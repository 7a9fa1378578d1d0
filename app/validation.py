"""
Form validation shared by the routes: accounts, job basics and reviews.
"""
from __future__ import annotations

import re
from typing import Dict, List

from email_validator import EmailNotValidError, validate_email
from password_strength import PasswordPolicy

# password_strength uses specific built-in test names; lowercase is checked by hand.
password_policy = PasswordPolicy.from_names(length=8, numbers=1, uppercase=1, special=0)

JOB_LOCATION_TYPES = ("remote", "in-person", "hybrid")
REVIEW_MIN_LENGTH = 10
REVIEW_MAX_LENGTH = 1000

PROFANITY_LIST = [
    # common
    "fuck", "shit", "bitch", "ass", "bastard", "damn", "crap", "piss",
    "dick", "cock", "pussy", "cunt", "whore", "slut", "fag", "nigger",
    "retard", "idiot", "moron", "stupid", "dumb", "kill yourself",
    # variations and misspellings
    "f*ck", "f**k", "sh*t", "sh!t", "b*tch", "b!tch", "a**", "a$$",
    "fck", "fuk", "shyt", "biatch", "azz", "wtf", "stfu",
    # other offensive terms
    "motherfucker", "asshole", "dickhead", "douchebag", "twat",
    "prick", "wanker", "bollocks", "bullshit", "horseshit",
]

_PROFANITY_RE = re.compile(r"\b(" + "|".join(re.escape(w) for w in PROFANITY_LIST) + r")\b", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def is_valid_email(email: str) -> bool:
    email = (email or "").strip()
    if not email or "@" not in email:
        return False
    # Reject punycode/IDNA domains for now
    domain = email.split("@", 1)[1].lower()
    if domain.startswith("xn--") or ".xn--" in domain:
        return False
    if not re.fullmatch(r"[^@\s]+@[^@\s]+\.[^@\s]+", email):
        return False
    try:
        # Syntax only; no MX lookups at signup time.
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_password(pw: str) -> bool:
    """Signup rule: 8-25 chars, no whitespace, a letter and a digit, then the strength policy."""
    raw_pw = pw or ""
    if re.search(r"\s", raw_pw):
        return False
    if not 8 <= len(raw_pw) <= 25:
        return False
    if not (re.search(r"[A-Za-z]", raw_pw) and re.search(r"\d", raw_pw)):
        return False
    return not password_policy.test(raw_pw)


def is_valid_reset_password(pw: str) -> bool:
    """Reset rule: at least 8 chars with a lowercase letter, an uppercase letter and a digit."""
    pw = pw or ""
    return (
        len(pw) >= 8
        and re.search(r"[a-z]", pw) is not None
        and re.search(r"[A-Z]", pw) is not None
        and re.search(r"\d", pw) is not None
    )


def validate_job_basics(data: Dict) -> Dict[str, str]:
    """Return {field: message}; empty when the basics can be saved."""
    errors: Dict[str, str] = {}
    if not (data.get("title") or "").strip():
        errors["title"] = "Job title is required"

    location_type = (data.get("work_location") or "").strip()
    if not location_type:
        errors["work_location"] = "Job location type is required"
    elif location_type not in JOB_LOCATION_TYPES:
        errors["work_location"] = "Job location type is required"

    if location_type in ("in-person", "hybrid") and not (data.get("location") or "").strip():
        errors["location"] = "Job location is required for in-person and hybrid positions"
    return errors


# -------- Reviews --------

def contains_profanity(text: str | None) -> bool:
    if not text:
        return False
    return _PROFANITY_RE.search(text) is not None


def find_profanity(text: str | None) -> List[str]:
    """Distinct offending words, lowercased, in order of first appearance."""
    if not text:
        return []
    found: List[str] = []
    for match in _PROFANITY_RE.finditer(text):
        word = match.group(0).lower()
        if word not in found:
            found.append(word)
    return found


def filter_profanity(text: str | None, replacement: str = "***") -> str:
    if not text:
        return text or ""
    return _PROFANITY_RE.sub(replacement, text)


def sanitize_review_text(text: str | None) -> str:
    if not text:
        return ""
    cleaned = _TAG_RE.sub("", text)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return _CONTROL_RE.sub("", cleaned)


def validate_review_text(text: str | None) -> Dict:
    """{"valid": bool, "error": str | None}. Empty text is allowed."""
    if not text or not text.strip():
        return {"valid": True, "error": None}
    if contains_profanity(text):
        return {
            "valid": False,
            "error": "Your review contains inappropriate language. Please edit it before submitting.",
        }
    length = len(text.strip())
    if length < REVIEW_MIN_LENGTH:
        return {"valid": False, "error": "Review must be at least 10 characters long if provided."}
    if length > REVIEW_MAX_LENGTH:
        return {"valid": False, "error": "Review cannot exceed 1000 characters."}
    return {"valid": True, "error": None}


def validate_review(rating, text: str | None) -> List[str]:
    """Every problem with a submitted review; empty list when it can be saved."""
    errors: List[str] = []
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        errors.append("Rating must be a whole number between 1 and 5.")
    text_check = validate_review_text(text)
    if not text_check["valid"]:
        errors.append(text_check["error"])
    return errors
