"""Whitelist validation for every untrusted input field.

Each field name an operation accepts is bound to one fixed rule. Patterns are
matched against the whole value so a valid prefix cannot smuggle trailing
content through.
"""
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from payportal.errors import ValidationFailed

NAME = re.compile(r"[A-Za-z\s]{1,100}", re.ASCII)
NATIONAL_ID = re.compile(r"\d{13}", re.ASCII)
ACCOUNT_NUMBER = re.compile(r"\d{6,20}", re.ASCII)
AMOUNT = re.compile(r"\d+(\.\d{1,2})?", re.ASCII)
CURRENCY = re.compile(r"[A-Z]{3}", re.ASCII)
SWIFT_CODE = re.compile(r"[A-Z0-9]{8}([A-Z0-9]{3})?", re.ASCII)
USERNAME = re.compile(r"[A-Za-z0-9_]{3,20}", re.ASCII)
EMPLOYEE_ID = re.compile(r"EMP\d{6}", re.ASCII)
NOTES = re.compile(r"[^<>\x00-\x08\x0b\x0c\x0e-\x1f\x7f]{0,500}")

PASSWORD_MIN_LENGTH = 10
PROVIDERS = ("SWIFT",)
ACTIONS = ("verify", "reject")


class Rule:
    def __init__(self, reason: str, pattern=None, choices=None, min_length=0, strip=True):
        self.reason = reason
        self.pattern = pattern
        self.choices = choices
        self.min_length = min_length
        self.strip = strip

    def clean(self, value: str) -> Optional[str]:
        """Return the normalized value, or None when it is not acceptable."""
        if self.strip:
            value = value.strip()
        if len(value) < self.min_length:
            return None
        if self.pattern is not None and not self.pattern.fullmatch(value):
            return None
        if self.choices is not None and value not in self.choices:
            return None
        return value


RULES: Dict[str, Rule] = {
    "full_name": Rule("must be 1-100 letters or spaces", NAME),
    "beneficiary_name": Rule("must be 1-100 letters or spaces", NAME),
    "id_number": Rule("must be exactly 13 digits", NATIONAL_ID),
    "account_number": Rule("must be 6-20 digits", ACCOUNT_NUMBER),
    "beneficiary_account": Rule("must be 6-20 digits", ACCOUNT_NUMBER),
    "password": Rule(
        f"must be at least {PASSWORD_MIN_LENGTH} characters",
        min_length=PASSWORD_MIN_LENGTH,
        strip=False,
    ),
    "secret": Rule("is required", min_length=1, strip=False),
    "amount": Rule("must be a non-negative amount with at most 2 decimals", AMOUNT),
    "currency": Rule("must be a 3-letter uppercase currency code", CURRENCY),
    "swift_code": Rule("must be 8 or 11 uppercase letters or digits", SWIFT_CODE),
    "provider": Rule("must be one of: " + ", ".join(PROVIDERS), choices=PROVIDERS),
    "username": Rule("must be 3-20 letters, digits or underscores", USERNAME),
    "employee_id": Rule("must be EMP followed by 6 digits", EMPLOYEE_ID),
    "action": Rule("must be one of: " + ", ".join(ACTIONS), choices=ACTIONS),
    "notes": Rule("must be at most 500 characters without markup", NOTES),
}

REGISTRATION = {
    "full_name": "full_name",
    "id_number": "id_number",
    "account_number": "account_number",
    "password": "password",
}
CUSTOMER_LOGIN = {
    "full_name": "full_name",
    "account_number": "account_number",
    "password": "secret",
}
STAFF_LOGIN = {
    "username": "username",
    "password": "secret",
}
PAYMENT = {
    "amount": "amount",
    "currency": "currency",
    "provider": "provider",
    "beneficiary_name": "beneficiary_name",
    "beneficiary_account": "beneficiary_account",
    "swift_code": "swift_code",
}
DECISION = {
    "action": "action",
    "notes": "notes",
}


def find_violations(
    raw: Mapping[str, Any],
    fields: Mapping[str, str],
    optional: Iterable[str] = (),
) -> Tuple[Dict[str, str], List[Tuple[str, str]]]:
    """Check ``raw`` against ``fields`` (field name -> rule name).

    Returns the normalized values and the violations found; callers must
    discard the values when any violation is reported.
    """
    optional = set(optional)
    cleaned: Dict[str, str] = {}
    violations: List[Tuple[str, str]] = []

    for name in raw:
        if name not in fields:
            violations.append((str(name), "is not an accepted field"))

    for name, rule_name in fields.items():
        if name not in raw or raw[name] is None:
            if name not in optional:
                violations.append((name, "is required"))
            continue

        value = raw[name]
        if not isinstance(value, str):
            violations.append((name, "must be a string"))
            continue

        try:
            value.encode("utf-8")
        except UnicodeEncodeError:
            violations.append((name, "must be valid text"))
            continue

        rule = RULES[rule_name]
        normalized = rule.clean(value)
        if normalized is None:
            violations.append((name, rule.reason))
        else:
            cleaned[name] = normalized

    return cleaned, violations


def validate(
    raw: Mapping[str, Any],
    fields: Mapping[str, str],
    optional: Iterable[str] = (),
) -> Dict[str, str]:
    cleaned, violations = find_violations(raw, fields, optional)
    if violations:
        raise ValidationFailed(violations)
    return cleaned
