"""
Unit tests for phone normalization and carrier detection.
"""
import pytest

from instabook.lib.catalog import CarrierProfile
from instabook.lib.phone import PhoneClassifier


@pytest.mark.unit
@pytest.mark.parametrize("raw,expected", [
    ("+996 770 123 456", "+996770123456"),
    ("996770123456", "+996770123456"),
    ("770-123-456", "+996770123456"),
    ("(555) 98-76-54", "+996555987654"),
    ("0770123456", "0770123456"),
    ("12345", "12345"),
    ("", ""),
    ("no digits", "no digits"),
])
def test_normalize(classifier, raw, expected):
    assert classifier.normalize(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize("raw", [
    "+996 770 123 456",
    "770123456",
    "0770123456",
    "12345",
    "abc",
    "",
    "+7 (701) 123-45-67",
])
def test_normalize_is_idempotent(classifier, raw):
    once = classifier.normalize(raw)
    assert classifier.normalize(once) == once


@pytest.mark.unit
@pytest.mark.parametrize("raw,valid", [
    ("+996770123456", True),
    ("996 555 98 76 54", True),
    ("500123456", True),
    ("+99677012345", False),
    ("+9967701234567", False),
    ("0770123456", False),
    ("", False),
])
def test_validate(classifier, raw, valid):
    assert classifier.validate(raw) is valid


@pytest.mark.unit
def test_non_ascii_digits_are_not_phone_digits(classifier):
    arabic_indic = "٧٧٠١٢٣٤٥٦"

    assert classifier.validate(arabic_indic) is False
    assert classifier.normalize(arabic_indic) == arabic_indic
    assert classifier.normalize("+996٧٧٠١٢٣٤٥٦") == "+996"


@pytest.mark.unit
def test_classify_beeline_from_raw_digits(classifier):
    carrier = classifier.classify_carrier("996770123456")

    assert carrier is not None
    assert carrier.key == "beeline"
    assert "+996770" in carrier.prefixes


@pytest.mark.unit
@pytest.mark.parametrize("phone,key", [
    ("+996555987654", "megacom"),
    ("+996501000111", "o_mobile"),
    ("+996777000111", "beeline"),
])
def test_classify_known_carriers(classifier, phone, key):
    assert classifier.classify_carrier(phone).key == key


@pytest.mark.unit
def test_unknown_carrier(classifier):
    assert classifier.classify_carrier("+996312123456") is None


@pytest.mark.unit
def test_longest_prefix_wins():
    generic = CarrierProfile(key="generic", name="Generic", prefixes=("+99677",))
    specific = CarrierProfile(key="specific", name="Specific", prefixes=("+996770",))
    classifier = PhoneClassifier(carriers=[generic, specific])

    assert classifier.classify_carrier("+996770123456").key == "specific"
    assert classifier.classify_carrier("+996771123456").key == "generic"


@pytest.mark.unit
def test_equal_prefix_first_registered_wins():
    first = CarrierProfile(key="first", name="First", prefixes=("+996700",))
    second = CarrierProfile(key="second", name="Second", prefixes=("+996700",))
    classifier = PhoneClassifier(carriers=[first, second])

    assert classifier.classify_carrier("+996700123456").key == "first"


@pytest.mark.unit
@pytest.mark.parametrize("phone,masked", [
    ("+996770123456", "+********3456"),
    ("3456", "3456"),
    ("+996 770 12 34 56", "+*** *** ** 34 56"),
])
def test_mask_keeps_last_four_digits(phone, masked):
    assert PhoneClassifier.mask(phone) == masked


@pytest.mark.unit
def test_other_country_plan():
    kz = CarrierProfile(key="kcell", name="Kcell", prefixes=("+7701",))
    classifier = PhoneClassifier(carriers=[kz], country_code="7", national_length=10)

    assert classifier.normalize("+7 701 123 45 67") == "+77011234567"
    assert classifier.validate("+7 701 123 45 67") is True
    assert classifier.classify_carrier("77011234567").key == "kcell"
