"""
Localized strings and date/time formatting for booking messages.

Supported: en, ru, es, pt, he. Unknown codes fall back to English, and a
key missing from a language falls back to the English text.
"""

import logging
from datetime import date, time
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

TRANSLATIONS: dict[str, dict[str, str]] = {
    "en": {
        # Buttons
        "button.confirm": "Confirm",
        "button.change_time": "Change Time",
        "button.select_time": "Select Time",
        # Slot offer
        "slots.available_on": "Available times on {day}:",
        "slots.tap_to_select": "Tap to select your time",
        "slots.next_available": "Next available times",
        "slots.duration": "⏱️ {duration} min",
        "slots.price": "💰 {price}",
        # Confirmation
        "confirm.details": "Your appointment is on {date} at {time}",
        "confirm.with_staff": "With {staff}",
        "slots.minutes": "{duration} min",
        "booking.confirmed": "Booking confirmed! ✅",
        "booking.cancelled": "Booking cancelled",
        "booking.already_confirmed": "Your booking is already confirmed ✅",
        # Errors and fallbacks
        "error.slot_taken": "Sorry, this slot was just booked",
        "error.generic": "Something went wrong. Please try again.",
        "error.no_slots": "Sorry, no available slots found for your requested time. "
                          "Would you like to try another time?",
        "error.session_expired": "Your booking session has expired. Let's start over: "
                                 "just tell me what you'd like to book.",
        "error.unknown_service": "Sorry, we couldn't find the service \"{service}\". "
                                 "Could you tell me which service you'd like?",
        "error.unavailable": "Sorry, this option isn't available yet.",
        "error.stale_selection": "That time is no longer on offer. Please pick one of these:",
        "conversation.fallback": "Hi! I can help you book an appointment. "
                                 "Just tell me the service and when you'd like to come in.",
    },
    "ru": {
        "button.confirm": "Подтвердить",
        "button.change_time": "Другое время",
        "button.select_time": "Выбрать время",
        "slots.available_on": "Свободное время на {day}:",
        "slots.tap_to_select": "Нажмите, чтобы выбрать время",
        "slots.next_available": "Ближайшее свободное время",
        "slots.duration": "⏱️ {duration} мин",
        "slots.price": "💰 {price}",
        "confirm.details": "Ваша запись на {date} в {time}",
        "confirm.with_staff": "Мастер: {staff}",
        "slots.minutes": "{duration} мин",
        "booking.confirmed": "Запись подтверждена! ✅",
        "booking.cancelled": "Запись отменена",
        "booking.already_confirmed": "Ваша запись уже подтверждена ✅",
        "error.slot_taken": "Извините, это время только что заняли",
        "error.generic": "Что-то пошло не так. Пожалуйста, попробуйте ещё раз.",
        "error.no_slots": "К сожалению, на это время нет свободных окон. "
                          "Хотите выбрать другое время?",
        "error.session_expired": "Время ожидания истекло. Давайте начнём сначала: "
                                 "напишите, на какую услугу вы хотите записаться.",
        "error.unknown_service": "Извините, мы не нашли услугу «{service}». "
                                 "Уточните, пожалуйста, на какую услугу вы хотите записаться?",
        "error.unavailable": "Извините, эта функция пока недоступна.",
        "error.stale_selection": "Это время больше не предлагается. Выберите, пожалуйста, одно из этих:",
        "conversation.fallback": "Здравствуйте! Я помогу вам записаться. "
                                 "Напишите услугу и удобное время.",
    },
    "es": {
        "button.confirm": "Confirmar",
        "button.change_time": "Cambiar hora",
        "button.select_time": "Elegir hora",
        "slots.available_on": "Horarios disponibles el {day}:",
        "slots.tap_to_select": "Toca para elegir tu horario",
        "slots.next_available": "Próximos horarios disponibles",
        "slots.duration": "⏱️ {duration} min",
        "slots.price": "💰 {price}",
        "confirm.details": "Tu cita es el {date} a las {time}",
        "confirm.with_staff": "Con {staff}",
        "slots.minutes": "{duration} min",
        "booking.confirmed": "¡Reserva confirmada! ✅",
        "booking.cancelled": "Reserva cancelada",
        "booking.already_confirmed": "Tu reserva ya está confirmada ✅",
        "error.slot_taken": "Lo sentimos, este horario acaba de ser reservado",
        "error.generic": "Algo salió mal. Por favor, inténtalo de nuevo.",
        "error.no_slots": "Lo sentimos, no hay horarios disponibles para el momento solicitado. "
                          "¿Quieres probar otro horario?",
        "error.session_expired": "Tu sesión de reserva ha expirado. Empecemos de nuevo: "
                                 "dime qué servicio quieres reservar.",
        "error.unknown_service": "Lo sentimos, no encontramos el servicio \"{service}\". "
                                 "¿Qué servicio te gustaría reservar?",
        "error.unavailable": "Lo sentimos, esta opción aún no está disponible.",
        "error.stale_selection": "Ese horario ya no está disponible. Elige uno de estos:",
        "conversation.fallback": "¡Hola! Puedo ayudarte a reservar una cita. "
                                 "Dime el servicio y cuándo te gustaría venir.",
    },
    "pt": {
        "button.confirm": "Confirmar",
        "button.change_time": "Mudar horário",
        "button.select_time": "Escolher horário",
        "slots.available_on": "Horários disponíveis em {day}:",
        "slots.tap_to_select": "Toque para escolher seu horário",
        "slots.next_available": "Próximos horários disponíveis",
        "slots.duration": "⏱️ {duration} min",
        "slots.price": "💰 {price}",
        "confirm.details": "Seu horário é em {date} às {time}",
        "confirm.with_staff": "Com {staff}",
        "slots.minutes": "{duration} min",
        "booking.confirmed": "Agendamento confirmado! ✅",
        "booking.cancelled": "Agendamento cancelado",
        "booking.already_confirmed": "Seu agendamento já está confirmado ✅",
        "error.slot_taken": "Desculpe, este horário acabou de ser reservado",
        "error.generic": "Algo deu errado. Por favor, tente novamente.",
        "error.no_slots": "Desculpe, não há horários disponíveis para o período solicitado. "
                          "Quer tentar outro horário?",
        "error.session_expired": "Sua sessão de agendamento expirou. Vamos recomeçar: "
                                 "diga qual serviço você quer agendar.",
        "error.unknown_service": "Desculpe, não encontramos o serviço \"{service}\". "
                                 "Qual serviço você gostaria de agendar?",
        "error.unavailable": "Desculpe, esta opção ainda não está disponível.",
        "error.stale_selection": "Esse horário não está mais disponível. Escolha um destes:",
        "conversation.fallback": "Olá! Posso ajudar você a agendar um horário. "
                                 "Diga o serviço e quando gostaria de vir.",
    },
    "he": {
        "button.confirm": "אישור",
        "button.change_time": "שינוי שעה",
        "button.select_time": "בחירת שעה",
        "slots.available_on": "שעות פנויות ב{day}:",
        "slots.tap_to_select": "הקישו כדי לבחור שעה",
        "slots.next_available": "השעות הפנויות הקרובות",
        "slots.duration": "⏱️ {duration} דק׳",
        "slots.price": "💰 {price}",
        "confirm.details": "התור שלך בתאריך {date} בשעה {time}",
        "confirm.with_staff": "עם {staff}",
        "slots.minutes": "{duration} דק׳",
        "booking.confirmed": "התור אושר! ✅",
        "booking.cancelled": "התור בוטל",
        "booking.already_confirmed": "התור שלך כבר אושר ✅",
        "error.slot_taken": "מצטערים, השעה הזו נתפסה הרגע",
        "error.generic": "משהו השתבש. אנא נסו שוב.",
        "error.no_slots": "מצטערים, אין שעות פנויות בזמן המבוקש. "
                          "לנסות שעה אחרת?",
        "error.session_expired": "תוקף ההזמנה פג. נתחיל מחדש: "
                                 "כתבו לאיזה טיפול תרצו לקבוע תור.",
        "error.unknown_service": "מצטערים, לא מצאנו את הטיפול \"{service}\". "
                                 "לאיזה טיפול תרצו לקבוע תור?",
        "error.unavailable": "מצטערים, האפשרות הזו עדיין לא זמינה.",
        "error.stale_selection": "השעה הזו כבר לא מוצעת. בחרו אחת מאלה:",
        "conversation.fallback": "שלום! אשמח לעזור לקבוע תור. "
                                 "כתבו את הטיפול ומתי נוח לכם להגיע.",
    },
}

# Monday first, matching date.weekday()
DAY_NAMES: dict[str, list[str]] = {
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
    "ru": ["Понедельник", "Вторник", "Среда", "Четверг", "Пятница", "Суббота", "Воскресенье"],
    "es": ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"],
    "pt": ["Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo"],
    "he": ["יום שני", "יום שלישי", "יום רביעי", "יום חמישי", "יום שישי", "שבת", "יום ראשון"],
}

DAY_NAMES_SHORT: dict[str, list[str]] = {
    "en": ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
    "ru": ["Пн", "Вт", "Ср", "Чт", "Пт", "Сб", "Вс"],
    "es": ["lun", "mar", "mié", "jue", "vie", "sáb", "dom"],
    "pt": ["seg", "ter", "qua", "qui", "sex", "sáb", "dom"],
    "he": ["יום ב׳", "יום ג׳", "יום ד׳", "יום ה׳", "יום ו׳", "שבת", "יום א׳"],
}

MONTH_NAMES_SHORT: dict[str, list[str]] = {
    "en": ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
    "ru": ["янв", "фев", "мар", "апр", "мая", "июн", "июл", "авг", "сен", "окт", "ноя", "дек"],
    "es": ["ene", "feb", "mar", "abr", "may", "jun", "jul", "ago", "sep", "oct", "nov", "dic"],
    "pt": ["jan", "fev", "mar", "abr", "mai", "jun", "jul", "ago", "set", "out", "nov", "dez"],
    "he": ["ינו׳", "פבר׳", "מרץ", "אפר׳", "מאי", "יוני", "יולי", "אוג׳", "ספט׳", "אוק׳", "נוב׳", "דצמ׳"],
}


def is_supported_language(language: Optional[str]) -> bool:
    return language in TRANSLATIONS


def normalize_language(language: Optional[str]) -> str:
    """Map an unknown or missing code to English."""
    if language and language.lower() in TRANSLATIONS:
        return language.lower()
    return DEFAULT_LANGUAGE


def get_translations(language: Optional[str]) -> dict[str, str]:
    """Full catalogue for a language (English when unsupported)."""
    return TRANSLATIONS[normalize_language(language)]


def t(key: str, language: Optional[str] = None, **kwargs) -> str:
    """
    Look up and format a localized string.

    Falls back to English for a missing key; an unknown key is returned
    as-is so a typo shows up in the message rather than crashing a reply.
    """
    text = get_translations(language).get(key) or TRANSLATIONS[DEFAULT_LANGUAGE].get(key)
    if text is None:
        logger.warning(f"Missing translation key: {key}")
        return key
    return text.format(**kwargs) if kwargs else text


def format_time(value: time, language: Optional[str] = None) -> str:
    """12h with AM/PM for English ("3:30 PM"), 24h elsewhere ("15:30")."""
    if normalize_language(language) == "en":
        hour = value.hour % 12 or 12
        meridiem = "AM" if value.hour < 12 else "PM"
        return f"{hour}:{value.minute:02d} {meridiem}"
    return f"{value.hour:02d}:{value.minute:02d}"


def format_date(value: date, language: Optional[str] = None) -> str:
    """MM/DD/YYYY for English, DD/MM/YYYY elsewhere."""
    if normalize_language(language) == "en":
        return f"{value.month:02d}/{value.day:02d}/{value.year}"
    return f"{value.day:02d}/{value.month:02d}/{value.year}"


def day_name(value: date, language: Optional[str] = None) -> str:
    return DAY_NAMES[normalize_language(language)][value.weekday()]


def short_day_name(value: date, language: Optional[str] = None) -> str:
    """Abbreviated weekday for tight labels, e.g. "Tue"."""
    return DAY_NAMES_SHORT[normalize_language(language)][value.weekday()]


def day_header(value: date, language: Optional[str] = None) -> str:
    """List section title, e.g. "Monday, Jun 3"."""
    lang = normalize_language(language)
    month = MONTH_NAMES_SHORT[lang][value.month - 1]
    if lang == "en":
        return f"{day_name(value, lang)}, {month} {value.day}"
    return f"{day_name(value, lang)}, {value.day} {month}"
