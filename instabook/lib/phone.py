"""
Phone number handling for the Kyrgyzstan numbering plan.

Normalizes free-form input to ``+996XXXXXXXXX``, validates it, maps it to a
mobile carrier by prefix, and masks it for logs.
"""
import re
from typing import Iterable, Optional, Tuple

from instabook.lib.catalog import CarrierProfile


_NON_DIGITS = re.compile(r"\D", re.ASCII)
_DIGIT = re.compile(r"\d", re.ASCII)


class PhoneClassifier:
    """
    Country-specific phone normalization and carrier detection.

    Args:
        carriers: Carrier profiles in priority order
        country_code: Country calling code digits, without ``+``
        national_length: Length of the national significant number
    """

    def __init__(
        self,
        carriers: Iterable[CarrierProfile],
        country_code: str = "996",
        national_length: int = 9,
    ):
        self.carriers: Tuple[CarrierProfile, ...] = tuple(carriers)
        self.country_code = country_code
        self.national_length = national_length
        self._canonical = re.compile(rf"^\+{re.escape(country_code)}\d{{{national_length}}}$", re.ASCII)

    def normalize(self, raw: str) -> str:
        """
        Canonicalize a phone number.

        Input that cannot be normalized is returned unchanged.

        Examples:
            >>> classifier.normalize("0770 123 456")  # doctest: +SKIP
            '0770 123 456'
            >>> classifier.normalize("770-123-456")  # doctest: +SKIP
            '+996770123456'
        """
        digits = _NON_DIGITS.sub("", raw or "")
        if not digits:
            return raw
        if digits.startswith(self.country_code):
            return "+" + digits
        if len(digits) == self.national_length:
            return f"+{self.country_code}{digits}"
        return raw

    def validate(self, raw: str) -> bool:
        """True if the number normalizes to ``+<country code><national number>``."""
        return bool(self._canonical.match(self.normalize(raw)))

    def classify_carrier(self, phone: str) -> Optional[CarrierProfile]:
        """
        Longest-prefix match against every carrier's prefixes.

        On equal prefix length the carrier registered first wins. Returns None
        for unknown carriers.
        """
        normalized = self.normalize(phone)
        best: Optional[CarrierProfile] = None
        best_length = 0
        for carrier in self.carriers:
            for prefix in carrier.prefixes:
                if len(prefix) > best_length and normalized.startswith(prefix):
                    best = carrier
                    best_length = len(prefix)
        return best

    @staticmethod
    def mask(phone: str) -> str:
        """Replace every digit except the last four with ``*``."""
        digit_count = len(_DIGIT.findall(phone))
        to_mask = max(digit_count - 4, 0)
        masked = []
        for char in phone:
            if to_mask and char.isdigit():
                masked.append("*")
                to_mask -= 1
            else:
                masked.append(char)
        return "".join(masked)
