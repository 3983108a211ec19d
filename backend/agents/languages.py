from types import MappingProxyType

from agents.state import LanguageDetail

DEFAULT_SUPPORTED_LANGUAGE_CODES: tuple[str, ...] = (
    "en", "es", "fr", "de", "it", "pt", "nl", "sv", "da", "no", "fi", "pl",
    "cs", "hu", "ro", "bg", "hr", "sk", "sl", "et", "lv", "lt", "el", "ru",
    "uk", "tr", "he", "ar", "hi", "th", "vi", "id", "ms", "tl", "zh", "ja",
    "ko", "zh-CN", "zh-TW", "pt-BR", "pt-PT", "en-US", "en-GB", "fr-CA",
    "es-ES", "es-MX",
)

# code -> (English name, native name)
LANGUAGE_TABLE = MappingProxyType({
    "en": ("English", "English"),
    "es": ("Spanish", "Español"),
    "fr": ("French", "Français"),
    "de": ("German", "Deutsch"),
    "it": ("Italian", "Italiano"),
    "pt": ("Portuguese", "Português"),
    "zh": ("Chinese", "中文"),
    "zh-CN": ("Chinese (Simplified)", "简体中文"),
    "zh-TW": ("Chinese (Traditional)", "繁體中文"),
    "zh-HK": ("Chinese (Hong Kong)", "繁體中文 (香港)"),
    "ja": ("Japanese", "日本語"),
    "ko": ("Korean", "한국어"),
    "ar": ("Arabic", "العربية"),
    "hi": ("Hindi", "हिन्दी"),
    "ru": ("Russian", "Русский"),
    "nl": ("Dutch", "Nederlands"),
    "sv": ("Swedish", "Svenska"),
    "da": ("Danish", "Dansk"),
    "no": ("Norwegian", "Norsk"),
    "fi": ("Finnish", "Suomi"),
    "pl": ("Polish", "Polski"),
    "tr": ("Turkish", "Türkçe"),
    "he": ("Hebrew", "עברית"),
    "th": ("Thai", "ไทย"),
    "vi": ("Vietnamese", "Tiếng Việt"),
    "id": ("Indonesian", "Bahasa Indonesia"),
    "ms": ("Malay", "Bahasa Melayu"),
    "tl": ("Filipino", "Filipino"),
    "uk": ("Ukrainian", "Українська"),
    "cs": ("Czech", "Čeština"),
    "hu": ("Hungarian", "Magyar"),
    "ro": ("Romanian", "Română"),
    "bg": ("Bulgarian", "Български"),
    "hr": ("Croatian", "Hrvatski"),
    "sk": ("Slovak", "Slovenčina"),
    "sl": ("Slovenian", "Slovenščina"),
    "et": ("Estonian", "Eesti"),
    "lv": ("Latvian", "Latviešu"),
    "lt": ("Lithuanian", "Lietuvių"),
    "el": ("Greek", "Ελληνικά"),
    "is": ("Icelandic", "Íslenska"),
    "mt": ("Maltese", "Malti"),
    "cy": ("Welsh", "Cymraeg"),
    "ga": ("Irish", "Gaeilge"),
    "eu": ("Basque", "Euskera"),
    "ca": ("Catalan", "Català"),
    "gl": ("Galician", "Galego"),
    "pt-BR": ("Portuguese (Brazil)", "Português (Brasil)"),
    "pt-PT": ("Portuguese (Portugal)", "Português (Portugal)"),
    "en-US": ("English (US)", "English (US)"),
    "en-GB": ("English (UK)", "English (UK)"),
    "en-AU": ("English (Australia)", "English (Australia)"),
    "en-CA": ("English (Canada)", "English (Canada)"),
    "fr-CA": ("French (Canada)", "Français (Canada)"),
    "es-ES": ("Spanish (Spain)", "Español (España)"),
    "es-MX": ("Spanish (Mexico)", "Español (México)"),
    "es-AR": ("Spanish (Argentina)", "Español (Argentina)"),
    "de-DE": ("German (Germany)", "Deutsch (Deutschland)"),
    "de-AT": ("German (Austria)", "Deutsch (Österreich)"),
    "de-CH": ("German (Switzerland)", "Deutsch (Schweiz)"),
    "it-IT": ("Italian (Italy)", "Italiano (Italia)"),
    "nl-NL": ("Dutch (Netherlands)", "Nederlands (Nederland)"),
    "nl-BE": ("Dutch (Belgium)", "Nederlands (België)"),
    "ja-JP": ("Japanese (Japan)", "日本語 (日本)"),
    "ko-KR": ("Korean (South Korea)", "한국어 (대한민국)"),
    "ar-SA": ("Arabic (Saudi Arabia)", "العربية (السعودية)"),
    "ar-EG": ("Arabic (Egypt)", "العربية (مصر)"),
    "hi-IN": ("Hindi (India)", "हिन्दी (भारत)"),
})


def get_language_details(codes: list[str]) -> list[LanguageDetail]:
    """Display names for each code; codes missing from the table degrade to the upper-cased code."""
    details: list[LanguageDetail] = []
    for code in codes:
        name, native_name = LANGUAGE_TABLE.get(code, (code.upper(), code.upper()))
        details.append({"code": code, "name": name, "native_name": native_name})
    return details


def validate_language_codes(
    codes: object,
    supported: tuple[str, ...] | list[str],
    max_languages: int,
) -> list[str]:
    """Allow-listed, de-duplicated codes in first-seen order, at most max_languages."""
    if not isinstance(codes, list):
        return []
    allowed = set(supported)
    result: list[str] = []
    for code in codes:
        if not isinstance(code, str) or not code or code not in allowed:
            continue
        if code in result:
            continue
        result.append(code)
        if len(result) == max_languages:
            break
    return result
