"""
Locale and region catalog for the Kyrgyzstan market.

Static lookup tables used across the engine:
- Regional settings (price multiplier, working hours, currency, timezone)
- Urgency and payment-method multipliers, platform commission rates
- Mobile carriers (prefixes, SMS length limits)
- Localized UI messages, SMS templates, payment instructions, next steps

The catalog is built once at startup by ``build_default_catalog()`` and passed
to each component, so tests can substitute their own tables.
"""
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from instabook.lib.errors import TemplateNotFound
from instabook.models.enums import Language, PaymentMethod, PaymentStatus, Region, Urgency


LanguageLike = Union[Language, str, None]


def _freeze(value: Any) -> Any:
    """Read-only view of nested tables: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


class WorkingHours(BaseModel):
    """Local working-hour window, both bounds inclusive."""

    model_config = ConfigDict(frozen=True)

    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=0, le=23)

    @model_validator(mode="after")
    def _check_order(self) -> "WorkingHours":
        if self.start_hour > self.end_hour:
            raise ValueError("start_hour must not be after end_hour")
        return self

    def contains(self, hour: int) -> bool:
        return self.start_hour <= hour <= self.end_hour


class RegionalSettings(BaseModel):
    """Per-region pricing and scheduling settings."""

    model_config = ConfigDict(frozen=True)

    multiplier: Decimal
    working_hours: WorkingHours
    currency: str = "KGS"
    timezone: str = "Asia/Bishkek"

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class CarrierProfile(BaseModel):
    """Mobile operator metadata used to format outbound SMS."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    prefixes: Tuple[str, ...]
    max_length: int = Field(default=160, ge=10)
    encoding: str = "UTF-8"


class LocaleCatalog(BaseModel):
    """Immutable bundle of every static table the engine reads."""

    model_config = ConfigDict(frozen=True)

    default_language: Language = Language.RU
    regions: Mapping[Region, RegionalSettings]
    urgency_multipliers: Mapping[Urgency, Decimal]
    payment_multipliers: Mapping[PaymentMethod, Decimal]
    commission_rates: Mapping[PaymentMethod, Decimal]
    carriers: Tuple[CarrierProfile, ...]
    messages: Mapping[str, Mapping[str, str]]
    templates: Mapping[str, Mapping[str, str]]
    payment_instruction_texts: Mapping[PaymentMethod, Mapping[str, str]]
    next_step_texts: Mapping[str, Tuple[str, ...]]
    month_names: Mapping[str, Tuple[str, ...]]

    @field_validator(
        "regions",
        "urgency_multipliers",
        "payment_multipliers",
        "commission_rates",
        "messages",
        "templates",
        "payment_instruction_texts",
        "next_step_texts",
        "month_names",
        mode="after",
    )
    @classmethod
    def _read_only(cls, value: Any) -> Any:
        return _freeze(value)

    def language_code(self, language: LanguageLike) -> str:
        """Language code to look up, defaulting to the catalog default."""
        if language is None:
            return self.default_language.value
        if isinstance(language, Language):
            return language.value
        return str(language)

    def regional_settings(self, region: Region) -> RegionalSettings:
        return self.regions[Region(region)]

    def urgency_multiplier(self, urgency: Urgency) -> Decimal:
        return self.urgency_multipliers[Urgency(urgency)]

    def payment_multiplier(self, method: PaymentMethod) -> Decimal:
        return self.payment_multipliers[PaymentMethod(method)]

    def commission_rate(self, method: PaymentMethod) -> Decimal:
        return self.commission_rates[PaymentMethod(method)]

    def initial_payment_status(self, method: PaymentMethod) -> PaymentStatus:
        method = PaymentMethod(method)
        if method is PaymentMethod.CASH_ON_MEETING:
            return PaymentStatus.PENDING_MEETING
        if method is PaymentMethod.CRYPTO_USDT:
            return PaymentStatus.PENDING_CRYPTO
        return PaymentStatus.PENDING_PAYMENT

    def message(self, key: str, language: LanguageLike = None) -> str:
        """Localized UI message; falls back to the default language, then to the key."""
        texts = self.messages.get(key)
        if not texts:
            return key
        return texts.get(self.language_code(language)) or texts.get(self.default_language.value) or key

    def template(self, template_id: str, language: LanguageLike = None) -> str:
        """
        Resolve an SMS template.

        Raises:
            TemplateNotFound: if neither the requested nor the default language has it
        """
        texts = self.templates.get(template_id, {})
        text = texts.get(self.language_code(language)) or texts.get(self.default_language.value)
        if text is None:
            raise TemplateNotFound(
                message=f"Template {template_id} not found for language {self.language_code(language)}",
                details={"template_id": template_id, "language": self.language_code(language)},
            )
        return text

    def payment_instructions(self, method: PaymentMethod, language: LanguageLike = None) -> str:
        texts = self.payment_instruction_texts.get(PaymentMethod(method), {})
        return texts.get(self.language_code(language)) or texts.get(self.default_language.value) or ""

    def next_steps(self, language: LanguageLike = None) -> List[str]:
        steps = self.next_step_texts.get(self.language_code(language))
        if steps is None:
            steps = self.next_step_texts.get(self.default_language.value, [])
        return list(steps)

    def format_datetime(self, instant: datetime, language: LanguageLike = None, timezone: Optional[str] = None) -> str:
        """
        Human-readable local date and time.

        ru: ``15 января 2025, 14:30``; ky: ``2025-ж. 15-январь, 14:30``.
        """
        tz = ZoneInfo(timezone or self.regions[Region.BISHKEK].timezone)
        local = instant.astimezone(tz)
        lang = self.language_code(language)
        months = self.month_names.get(lang) or self.month_names[self.default_language.value]
        month = months[local.month - 1]
        clock = f"{local.hour:02d}:{local.minute:02d}"
        if lang == Language.KY.value:
            return f"{local.year}-ж. {local.day}-{month}, {clock}"
        return f"{local.day} {month} {local.year}, {clock}"


_BISHKEK_TZ = "Asia/Bishkek"


def _region(multiplier: str, start: int, end: int) -> RegionalSettings:
    return RegionalSettings(
        multiplier=Decimal(multiplier),
        working_hours=WorkingHours(start_hour=start, end_hour=end),
        currency="KGS",
        timezone=_BISHKEK_TZ,
    )


DEFAULT_MESSAGES: Dict[str, Dict[str, str]] = {
    "slot_not_available": {
        "ru": "Выбранное время недоступно",
        "ky": "Тандалган убакыт жеткиликсиз",
    },
    "booking_confirmed": {
        "ru": "Бронирование подтверждено",
        "ky": "Бронирование ырасталды",
    },
    "master_not_found": {
        "ru": "Мастер не найден",
        "ky": "Усталык табылган жок",
    },
    "service_not_found": {
        "ru": "Услуга не найдена",
        "ky": "Кызмат табылган жок",
    },
    "client_not_found": {
        "ru": "Профиль клиента не найден",
        "ky": "Кардардын профили табылган жок",
    },
    "booking_not_found": {
        "ru": "Заказ не найден",
        "ky": "Заказ табылган жок",
    },
    "not_found": {
        "ru": "Не найдено",
        "ky": "Табылган жок",
    },
    "outside_working_hours": {
        "ru": "Время вне рабочих часов",
        "ky": "Иш убактысынан тышкары",
    },
    "time_conflict": {
        "ru": "Мастер занят в это время",
        "ky": "Усталык бул убакта бош эмес",
    },
    "payment_pending": {
        "ru": "Ожидается оплата",
        "ky": "Төлөм күтүлүүдө",
    },
    "booking_created": {
        "ru": "Заказ создан успешно",
        "ky": "Заказ ийгиликтүү түзүлдү",
    },
    "invalid_address": {
        "ru": "Укажите адрес подробнее",
        "ky": "Даректи толугураак көрсөтүңүз",
    },
    "invalid_request": {
        "ru": "Некорректные данные запроса",
        "ky": "Сурамдын маалыматтары туура эмес",
    },
    "invalid_phone": {
        "ru": "Некорректный номер телефона",
        "ky": "Телефон номери туура эмес",
    },
    "template_not_found": {
        "ru": "Шаблон сообщения не найден",
        "ky": "Билдирүүнүн үлгүсү табылган жок",
    },
    "invalid_status_transition": {
        "ru": "Недопустимое изменение статуса заказа",
        "ky": "Заказдын статусун мындай өзгөртүүгө болбойт",
    },
    "temporarily_unavailable": {
        "ru": "Сервис временно недоступен, попробуйте позже",
        "ky": "Кызмат убактылуу жеткиликсиз, кийинчерээк аракет кылыңыз",
    },
    "notification_failed": {
        "ru": "Не удалось отправить уведомление",
        "ky": "Билдирүү жөнөтүлгөн жок",
    },
    "booking_failed": {
        "ru": "Не удалось создать заказ. Попробуйте еще раз.",
        "ky": "Заказ түзүлгөн жок. Кайра аракет кылыңыз.",
    },
    "master": {
        "ru": "Мастер",
        "ky": "Усталык",
    },
}


DEFAULT_TEMPLATES: Dict[str, Dict[str, str]] = {
    "new_booking": {
        "ru": "HandShakeMe: Новый заказ от {clientName} на {datetime}. Ответить: {link}",
        "ky": "HandShakeMe: {clientName} тарабынан жаңы заказ {datetime}. Жооп берүү: {link}",
    },
    "booking_confirmed": {
        "ru": "HandShakeMe: Заказ подтвержден. Мастер: {masterName}, тел: {phone}. Время: {datetime}",
        "ky": "HandShakeMe: Заказ ырасталды. Усталык: {masterName}, тел: {phone}. Убакыт: {datetime}",
    },
    "booking_reminder": {
        "ru": "HandShakeMe: Напоминание о встрече через 1 час. Адрес: {address}. Тел мастера: {phone}",
        "ky": "HandShakeMe: 1 сааттан кийин жолугушуу эскертүү. Дарек: {address}. Усталыктын тел: {phone}",
    },
    "payment_reminder": {
        "ru": "HandShakeMe: Не забудьте оплатить услугу. Способ: {paymentMethod}. Сумма: {amount} сом",
        "ky": "HandShakeMe: Кызматты төлөөнү унутпаңыз. Жол: {paymentMethod}. Сумма: {amount} сом",
    },
    "address_confirmation": {
        "ru": "HandShakeMe: Мастер {masterName} свяжется с вами для уточнения адреса. Тел: {phone}",
        "ky": "HandShakeMe: Усталык {masterName} даректи так билүү үчүн байланышат. Тел: {phone}",
    },
    "booking_cancelled": {
        "ru": "HandShakeMe: Заказ отменен. Причина: {reason}. Возврат: {refund} сом",
        "ky": "HandShakeMe: Заказ жокко чыгарылды. Себеби: {reason}. Кайтаруу: {refund} сом",
    },
    "booking_completed": {
        "ru": "HandShakeMe: Работа завершена. Оцените мастера в приложении. Спасибо!",
        "ky": "HandShakeMe: Иш аяктады. Усталыкты колдонмодо баалаңыз. Рахмат!",
    },
}


DEFAULT_PAYMENT_INSTRUCTIONS: Dict[PaymentMethod, Dict[str, str]] = {
    PaymentMethod.CASH_ON_MEETING: {
        "ru": "Оплата наличными при встрече с мастером",
        "ky": "Усталык менен жолуккандагы накт акча төлөө",
    },
    PaymentMethod.OPTIMA_BANK: {
        "ru": "Перевод через Оптима Банк: *111# или мобильное приложение",
        "ky": "Оптима Банк аркылуу которуу: *111# же мобилдик тиркеме",
    },
    PaymentMethod.DEMIR_BANK: {
        "ru": "Перевод через Демир Банк: *880# или банкомат",
        "ky": "Демир Банк аркылуу которуу: *880# же банкомат",
    },
    PaymentMethod.O_MONEY: {
        "ru": "O!Money (Beeline): *5005# - мобильные платежи",
        "ky": "O!Money (Beeline): *5005# - мобилдик төлөмдөр",
    },
    PaymentMethod.MEGA_PAY: {
        "ru": "MegaPay (MegaCom): *1415# - быстрые переводы",
        "ky": "MegaPay (MegaCom): *1415# - тез которуулар",
    },
    PaymentMethod.CRYPTO_USDT: {
        "ru": "Оплата USDT - реквизиты будут отправлены отдельно",
        "ky": "USDT төлөө - реквизиттер өзүнчө жөнөтүлөт",
    },
}


DEFAULT_NEXT_STEPS: Dict[str, List[str]] = {
    "ru": [
        "Мастер свяжется с вами для подтверждения адреса",
        "Подготовьте необходимые материалы",
        "Ожидайте мастера в указанное время",
    ],
    "ky": [
        "Усталык даректи ырастоо үчүн сиз менен байланышат",
        "Керектүү материалдарды даярдаңыз",
        "Белгиленген убакытта усталыкты күтүңүз",
    ],
}


DEFAULT_MONTH_NAMES: Dict[str, Tuple[str, ...]] = {
    "ru": (
        "января", "февраля", "марта", "апреля", "мая", "июня",
        "июля", "августа", "сентября", "октября", "ноября", "декабря",
    ),
    "ky": (
        "январь", "февраль", "март", "апрель", "май", "июнь",
        "июль", "август", "сентябрь", "октябрь", "ноябрь", "декабрь",
    ),
}


def build_default_catalog(default_language: LanguageLike = Language.RU) -> LocaleCatalog:
    """Assemble the production tables for the Kyrgyzstan market."""
    return LocaleCatalog(
        default_language=Language(default_language or Language.RU),
        regions={
            Region.BISHKEK: _region("1.0", 8, 22),
            Region.OSH: _region("0.8", 9, 21),
            Region.JALAL_ABAD: _region("0.7", 9, 20),
            Region.KARAKOL: _region("0.9", 9, 20),
            Region.OTHER: _region("0.6", 10, 19),
        },
        urgency_multipliers={
            Urgency.NORMAL: Decimal("1.0"),
            Urgency.URGENT: Decimal("1.2"),
            Urgency.ASAP: Decimal("1.5"),
        },
        payment_multipliers={
            PaymentMethod.CASH_ON_MEETING: Decimal("0.95"),
            PaymentMethod.OPTIMA_BANK: Decimal("1.0"),
            PaymentMethod.DEMIR_BANK: Decimal("1.0"),
            PaymentMethod.O_MONEY: Decimal("1.02"),
            PaymentMethod.MEGA_PAY: Decimal("1.02"),
            PaymentMethod.CRYPTO_USDT: Decimal("0.98"),
        },
        commission_rates={
            PaymentMethod.CASH_ON_MEETING: Decimal("0.02"),
            PaymentMethod.OPTIMA_BANK: Decimal("0.025"),
            PaymentMethod.DEMIR_BANK: Decimal("0.025"),
            PaymentMethod.O_MONEY: Decimal("0.03"),
            PaymentMethod.MEGA_PAY: Decimal("0.03"),
            PaymentMethod.CRYPTO_USDT: Decimal("0.015"),
        },
        carriers=(
            CarrierProfile(
                key="beeline",
                name="Beeline KG",
                prefixes=("+996770", "+996775", "+996776", "+996777"),
            ),
            CarrierProfile(
                key="megacom",
                name="MegaCom",
                prefixes=("+996555", "+996556", "+996557", "+996558"),
            ),
            CarrierProfile(
                key="o_mobile",
                name="O! (Kcell)",
                prefixes=("+996500", "+996501", "+996502", "+996503"),
            ),
        ),
        messages=DEFAULT_MESSAGES,
        templates=DEFAULT_TEMPLATES,
        payment_instruction_texts=DEFAULT_PAYMENT_INSTRUCTIONS,
        next_step_texts=DEFAULT_NEXT_STEPS,
        month_names=DEFAULT_MONTH_NAMES,
    )


@lru_cache(maxsize=1)
def get_default_catalog() -> LocaleCatalog:
    """Process-wide catalog built from settings on first use."""
    from instabook.lib.settings import settings

    return build_default_catalog(settings.default_language)
