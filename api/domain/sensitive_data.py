# SPDX-License-Identifier: Apache-2.0

"""
Sensitive data screening for complaint text.

Simple local regex patterns for Brazilian personal data (CPF, CNPJ, RG,
phone, e-mail and street addresses). Nothing is sent to external services.
"""

import re
from dataclasses import dataclass, asdict
from typing import Dict, List, Any

from models.enums import SensitiveDataType

# Address matches this long are usually whole sentences, not an address
MAX_ADDRESS_LENGTH = 100

PATTERNS = {
    SensitiveDataType.CPF: re.compile(r'\b\d{3}\.?\d{3}\.?\d{3}-?\d{2}\b', re.ASCII),
    SensitiveDataType.CNPJ: re.compile(r'\b\d{2}\.?\d{3}\.?\d{3}/?\d{4}-?\d{2}\b', re.ASCII),
    SensitiveDataType.EMAIL: re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b', re.ASCII),
    SensitiveDataType.PHONE: re.compile(r'\b(?:\+55\s?)?(?:\(?\d{2}\)?\s?)?\d{4,5}-?\d{4}\b', re.ASCII),
    SensitiveDataType.RG: re.compile(r'\b\d{1,2}\.?\d{3}\.?\d{3}[-/]?\d{1,2}\b', re.ASCII),
    SensitiveDataType.ADDRESS: re.compile(
        r'(?<![A-Za-z0-9_])(?:rua|avenida|av\.|alameda|travessa|praça|pça|passagem|via|estrada'
        r'|rodovia|caminho|beco|largo|logradouro)\s+[^\n,]+',
        re.IGNORECASE
    ),
}

LABELS = {
    SensitiveDataType.CPF: "CPF",
    SensitiveDataType.CNPJ: "CNPJ",
    SensitiveDataType.EMAIL: "E-mail",
    SensitiveDataType.PHONE: "Telefone",
    SensitiveDataType.RG: "RG",
    SensitiveDataType.ADDRESS: "Endereço",
}


@dataclass
class SensitiveDataMatch:
    """A piece of personal data found in a text."""
    type: str
    value: str
    index: int
    length: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def detect_sensitive_data(text: str) -> List[SensitiveDataMatch]:
    """
    Detect personal data in a text.

    Every pattern runs over the whole text, so the same digits may be
    reported under more than one type (a CPF is also a valid phone shape).

    Args:
        text: Text to screen

    Returns:
        Matches ordered by position in the text
    """
    matches = []
    if not text:
        return matches

    for data_type, pattern in PATTERNS.items():
        for match in pattern.finditer(text):
            value = match.group(0)
            if data_type == SensitiveDataType.ADDRESS and len(value) >= MAX_ADDRESS_LENGTH:
                continue
            matches.append(SensitiveDataMatch(
                type=data_type.value,
                value=value,
                index=match.start(),
                length=len(value)
            ))

    # sorted() is stable: equal indices keep pattern order
    return sorted(matches, key=lambda m: m.index)


def get_sensitive_data_label(data_type: str) -> str:
    """Readable label of a sensitive data type."""
    return LABELS[SensitiveDataType(data_type)]


def has_sensitive_data(text: str) -> bool:
    """Check whether a text contains personal data."""
    return len(detect_sensitive_data(text)) > 0


def get_sensitive_data_summary(text: str) -> List[str]:
    """
    Labels of the personal data found in a text.

    Args:
        text: Text to screen

    Returns:
        Distinct labels in order of first appearance
    """
    labels = [get_sensitive_data_label(m.type) for m in detect_sensitive_data(text)]
    return list(dict.fromkeys(labels))


def mask_sensitive_data(text: str, mask_char: str = "*") -> str:
    """
    Replace every detected span with mask characters of the same length.

    Args:
        text: Text to mask
        mask_char: Replacement character

    Returns:
        Masked text with the original length
    """
    masked = list(text or "")
    for match in detect_sensitive_data(text):
        for position in range(match.index, match.index + match.length):
            masked[position] = mask_char
    return "".join(masked)


def screen_text(text: str) -> Dict[str, Any]:
    """
    Full screening report used by the API.

    Args:
        text: Text to screen

    Returns:
        Dictionary with detection flag, types, labels, matches and masked text
    """
    matches = detect_sensitive_data(text)
    types = list(dict.fromkeys(m.type for m in matches))

    return {
        "has_sensitive_data": len(matches) > 0,
        "types": types,
        "labels": [get_sensitive_data_label(t) for t in types],
        "matches": [m.to_dict() for m in matches],
        "masked_text": mask_sensitive_data(text)
    }
