"""
Unit tests for the locale and region catalog.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from instabook.lib.catalog import WorkingHours, build_default_catalog
from instabook.lib.errors import TemplateNotFound
from instabook.models.enums import Language, PaymentMethod, PaymentStatus, Region, Urgency


@pytest.mark.unit
def test_regional_settings(catalog):
    bishkek = catalog.regional_settings(Region.BISHKEK)
    other = catalog.regional_settings("other")

    assert bishkek.multiplier == Decimal("1.0")
    assert (bishkek.working_hours.start_hour, bishkek.working_hours.end_hour) == (8, 22)
    assert bishkek.currency == "KGS"
    assert other.multiplier == Decimal("0.6")
    assert other.tzinfo.key == "Asia/Bishkek"


@pytest.mark.unit
def test_multiplier_tables(catalog):
    assert catalog.urgency_multiplier(Urgency.ASAP) == Decimal("1.5")
    assert catalog.payment_multiplier(PaymentMethod.MEGA_PAY) == Decimal("1.02")
    assert catalog.commission_rate(PaymentMethod.CRYPTO_USDT) == Decimal("0.015")


@pytest.mark.unit
@pytest.mark.parametrize("method,status", [
    (PaymentMethod.CASH_ON_MEETING, PaymentStatus.PENDING_MEETING),
    (PaymentMethod.CRYPTO_USDT, PaymentStatus.PENDING_CRYPTO),
    (PaymentMethod.O_MONEY, PaymentStatus.PENDING_PAYMENT),
    (PaymentMethod.DEMIR_BANK, PaymentStatus.PENDING_PAYMENT),
])
def test_initial_payment_status(catalog, method, status):
    assert catalog.initial_payment_status(method) is status


@pytest.mark.unit
def test_message_localized_with_fallbacks(catalog):
    assert catalog.message("slot_not_available", Language.KY) == "Тандалган убакыт жеткиликсиз"
    assert catalog.message("slot_not_available", "en") == "Выбранное время недоступно"
    assert catalog.message("no_such_key", "ru") == "no_such_key"


@pytest.mark.unit
def test_template_falls_back_to_default_language():
    catalog = build_default_catalog()
    partial = catalog.model_copy(update={"templates": {"greeting": {"ru": "Привет, {name}"}}})

    assert partial.template("greeting", Language.KY) == "Привет, {name}"


@pytest.mark.unit
def test_missing_template_raises(catalog):
    with pytest.raises(TemplateNotFound) as exc_info:
        catalog.template("no_such_template", "ru")

    assert exc_info.value.code == "TEMPLATE_NOT_FOUND"
    assert exc_info.value.details["template_id"] == "no_such_template"


@pytest.mark.unit
def test_every_template_has_both_languages(catalog):
    for template_id, texts in catalog.templates.items():
        assert set(texts) == {"ru", "ky"}, template_id


@pytest.mark.unit
def test_payment_instructions_and_next_steps(catalog):
    assert "*5005#" in catalog.payment_instructions(PaymentMethod.O_MONEY, "ky")
    assert len(catalog.next_steps("ru")) == 3
    assert catalog.next_steps("en") == catalog.next_steps("ru")


@pytest.mark.unit
def test_format_datetime_russian(catalog):
    instant = datetime(2025, 1, 15, 8, 30, tzinfo=timezone.utc)

    assert catalog.format_datetime(instant, "ru") == "15 января 2025, 14:30"


@pytest.mark.unit
def test_format_datetime_kyrgyz(catalog):
    instant = datetime(2025, 1, 15, 8, 30, tzinfo=timezone.utc)

    assert catalog.format_datetime(instant, Language.KY) == "2025-ж. 15-январь, 14:30"


@pytest.mark.unit
def test_default_language_is_configurable():
    catalog = build_default_catalog("ky")

    assert catalog.default_language is Language.KY
    assert catalog.message("booking_created", "en") == "Заказ ийгиликтүү түзүлдү"


@pytest.mark.unit
def test_working_hours_validation():
    with pytest.raises(ValidationError):
        WorkingHours(start_hour=20, end_hour=8)

    hours = WorkingHours(start_hour=8, end_hour=22)
    assert hours.contains(8) and hours.contains(22)
    assert not hours.contains(23)


@pytest.mark.unit
def test_catalog_is_immutable(catalog):
    with pytest.raises(ValidationError):
        catalog.default_language = Language.KY

    with pytest.raises(TypeError):
        catalog.templates["new_template"] = {"ru": "текст"}

    with pytest.raises(TypeError):
        catalog.templates["booking_completed"]["ru"] = "текст"

    with pytest.raises(AttributeError):
        catalog.next_step_texts["ru"].append("шаг")
