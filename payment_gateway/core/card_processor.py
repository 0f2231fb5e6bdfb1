"""
Card validation and tokenization.

The raw card number (PAN) only travels inside PrimaryAccountNumber, which
masks itself when printed and refuses to be pickled or copied. Everything the
gateway persists about a card is derived here: an opaque random token, the
brand and the last four digits.
"""
import base64
import re
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple, Union

import structlog

from payment_gateway.core.errors import CardNumberTooShortError, InvalidCardNumberError

logger = structlog.get_logger(__name__)

TOKEN_BYTES = 32


class PrimaryAccountNumber:
    """Transient holder for a raw card number."""

    __slots__ = ("_number",)

    def __init__(self, number: str):
        self._number = number

    def reveal(self) -> str:
        """Return the raw card number. Never log or persist the result."""
        return self._number

    def masked(self) -> str:
        if len(self._number) < 4:
            return "*" * len(self._number)
        return "*" * (len(self._number) - 4) + self._number[-4:]

    def __len__(self) -> int:
        return len(self._number)

    def __repr__(self) -> str:
        return f"PrimaryAccountNumber('{self.masked()}')"

    __str__ = __repr__

    def __reduce_ex__(self, protocol: Any) -> Any:
        raise TypeError("PrimaryAccountNumber cannot be serialized")


CardNumberInput = Union[str, PrimaryAccountNumber]


def _raw(card_number: CardNumberInput) -> str:
    if isinstance(card_number, PrimaryAccountNumber):
        return card_number.reveal()
    return card_number


class CardBrand(str, Enum):
    """Card network derived from the card number."""

    VISA = "Visa"
    MASTERCARD = "Mastercard"
    AMERICAN_EXPRESS = "American Express"
    DINERS_CLUB = "Diners Club"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value


# Checked in this order; the first matching rule wins.
BRAND_PATTERNS: Tuple[Tuple[CardBrand, "re.Pattern[str]"], ...] = (
    (CardBrand.VISA, re.compile(r"^4[0-9]{12}(?:[0-9]{3})?$")),
    (CardBrand.MASTERCARD, re.compile(r"^5[1-5][0-9]{14}$")),
    (CardBrand.AMERICAN_EXPRESS, re.compile(r"^3[47][0-9]{13}$")),
    (CardBrand.DINERS_CLUB, re.compile(r"^3(?:0[0-5]|[68][0-9])[0-9]{11}$")),
)


@dataclass(frozen=True)
class TokenizedCard:
    """Non-sensitive card data that may be stored and returned to callers."""

    token: str
    brand: CardBrand
    last_four: str


def luhn_check(card_number: CardNumberInput) -> bool:
    """
    Mod-10 checksum over a digit string.

    Walks from the least significant digit, doubling every second digit and
    subtracting 9 when the doubled value exceeds 9.
    """
    number = _raw(card_number)
    if not number:
        return False

    total = 0
    double = False
    for char in reversed(number):
        if char not in "0123456789":
            return False
        digit = int(char)
        if double:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
        double = not double
    return total % 10 == 0


def validate(card_number: CardNumberInput) -> None:
    """
    Validate a card number.

    Raises:
        InvalidCardNumberError: If the checksum fails or a character is not a digit
    """
    if not luhn_check(card_number):
        raise InvalidCardNumberError()


def classify_brand(card_number: CardNumberInput) -> CardBrand:
    """Classify the card network from prefix and length rules."""
    number = _raw(card_number)
    for brand, pattern in BRAND_PATTERNS:
        if pattern.match(number):
            return brand
    return CardBrand.UNKNOWN


def last_four(card_number: CardNumberInput) -> str:
    """
    Return the final four characters of the card number.

    Raises:
        CardNumberTooShortError: If the number has fewer than four characters
    """
    number = _raw(card_number)
    if len(number) < 4:
        raise CardNumberTooShortError()
    return number[-4:]


def tokenize(card_number: CardNumberInput) -> str:
    """
    Issue an opaque token standing in for a card.

    The token is 32 random bytes, URL-safe base64 encoded. The card number
    only triggers issuance; it is not part of the encoding.
    """
    return base64.urlsafe_b64encode(secrets.token_bytes(TOKEN_BYTES)).decode("ascii")


def process(card_number: CardNumberInput) -> TokenizedCard:
    """
    Run validation, brand classification, last-four extraction and
    tokenization, in that order. The first failure propagates.
    """
    validate(card_number)
    brand = classify_brand(card_number)
    suffix = last_four(card_number)
    token = tokenize(card_number)

    logger.info("card_tokenized", card_brand=brand.value, last_four=suffix)

    return TokenizedCard(token=token, brand=brand, last_four=suffix)
