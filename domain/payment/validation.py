"""
Payment input validation.

Pure checks for Brazilian tax documents (CPF / CNPJ), card numbers (Luhn)
and transaction identifiers (UUID). Formatting characters in documents are
ignored; card numbers only tolerate spaces and dashes.
"""
from __future__ import annotations

import re
import uuid
from typing import Optional

_NON_DIGITS = re.compile(r"\D")
_CARD_SEPARATORS = re.compile(r"[\s-]")

_CPF_WEIGHTS_1 = tuple(range(10, 1, -1))
_CPF_WEIGHTS_2 = tuple(range(11, 1, -1))
_CNPJ_WEIGHTS_1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_WEIGHTS_2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def digits_only(value: Optional[str]) -> str:
    return _NON_DIGITS.sub("", value or "")


def _check_digit(digits: str, weights: tuple[int, ...]) -> int:
    remainder = sum(int(d) * w for d, w in zip(digits, weights)) % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cpf(value: str) -> bool:
    cpf = digits_only(value)
    if len(cpf) != 11 or len(set(cpf)) == 1:
        return False
    first = _check_digit(cpf[:9], _CPF_WEIGHTS_1)
    second = _check_digit(cpf[:10], _CPF_WEIGHTS_2)
    return cpf[9:] == f"{first}{second}"


def is_valid_cnpj(value: str) -> bool:
    cnpj = digits_only(value)
    if len(cnpj) != 14 or len(set(cnpj)) == 1:
        return False
    first = _check_digit(cnpj[:12], _CNPJ_WEIGHTS_1)
    second = _check_digit(cnpj[:13], _CNPJ_WEIGHTS_2)
    return cnpj[12:] == f"{first}{second}"


def validate_document(document: Optional[str]) -> bool:
    """11 digits are checked as CPF, 14 as CNPJ, anything else is invalid."""
    digits = digits_only(document)
    if len(digits) == 11:
        return is_valid_cpf(digits)
    if len(digits) == 14:
        return is_valid_cnpj(digits)
    return False


def validate_card_number(number: Optional[str]) -> bool:
    """Spaces and dashes are allowed as separators; any other non-digit is invalid."""
    digits = _CARD_SEPARATORS.sub("", number or "")
    if not digits.isascii() or not digits.isdigit():
        return False
    if not 13 <= len(digits) <= 19:
        return False
    total = 0
    for index, char in enumerate(reversed(digits)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_transaction_id_format(transaction_id: Optional[str]) -> bool:
    if not transaction_id:
        return False
    try:
        uuid.UUID(transaction_id.strip())
    except (ValueError, AttributeError):
        return False
    return True
