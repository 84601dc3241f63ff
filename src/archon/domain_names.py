"""
Domain name validation and normalization.

Domains are checked once, when they are created or edited: the name is
lowercased, international names are IDNA-encoded, and names with forbidden
characters or without a top-level label are rejected.
"""

import re
from dataclasses import dataclass
from typing import Optional

import idna

from .exceptions import ValidationError


# Control characters, whitespace and symbols that never occur in host names
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'
    r'\s'
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)

MAX_NAME_LENGTH = 253


@dataclass
class DomainNameResult:
    """Result of validating a domain name."""

    valid: bool
    canonical_name: Optional[str]
    error: Optional[str] = None


class DomainNameValidator:
    """
    Validates and normalizes domain names entered in the console.

    Handles:
    - Conversion to lowercase canonical form
    - IDNA encoding for international characters
    - Rejection of forbidden characters, empty labels and missing TLDs
    """

    def validate(self, raw_name: str) -> DomainNameResult:
        """
        Validate and normalize a domain name.

        Args:
            raw_name: The name as typed by the operator

        Returns:
            DomainNameResult with the canonical name or an error message
        """
        if not raw_name or not raw_name.strip():
            return DomainNameResult(False, None, "Domain name is empty")

        name = raw_name.strip().rstrip(".")

        forbidden = FORBIDDEN_CHARS_PATTERN.findall(name)
        if forbidden:
            return DomainNameResult(
                False,
                None,
                f"Domain name contains forbidden characters: {''.join(sorted(set(forbidden)))!r}",
            )

        try:
            canonical = self.normalize(name)
        except ValidationError as e:
            return DomainNameResult(False, None, e.message)

        labels = canonical.split(".")
        if len(labels) < 2 or not labels[-1]:
            return DomainNameResult(False, None, f"Domain name has no TLD: {canonical}")
        if any(not label for label in labels):
            return DomainNameResult(False, None, f"Domain name has an empty label: {canonical}")
        if len(canonical) > MAX_NAME_LENGTH:
            return DomainNameResult(False, None, "Domain name is too long")

        return DomainNameResult(True, canonical)

    def normalize(self, name: str) -> str:
        """
        Convert a name to canonical form (lowercase, IDNA-encoded).

        Raises:
            ValidationError: If IDNA encoding fails
        """
        lowered = name.lower()
        if all(ord(c) < 128 for c in lowered):
            return lowered
        try:
            return idna.encode(lowered, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code="idna_error",
                message=f"IDNA encoding failed: {e}",
                details={"domain": name},
            )
