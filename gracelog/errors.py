from __future__ import annotations

MESSAGES = {
    "ko": {
        "reflection_required": "묵상 내용을 입력해주세요.",
        "premium_required": "AI 도움은 프리미엄 전용입니다.",
        "report_premium_required": "리포트는 프리미엄 전용입니다.",
        "reflection_too_short": "묵상을 더 작성해주세요.",
        "assist_busy": "AI 묵상 중입니다. 잠시만 기다려주세요.",
    },
    "en": {
        "reflection_required": "Please enter your reflection.",
        "premium_required": "AI Assist is for Premium users.",
        "report_premium_required": "Reports are for Premium users.",
        "reflection_too_short": "Write more reflection first.",
        "assist_busy": "AI is already thinking. Please wait.",
    },
}


def message(key: str, locale: str) -> str:
    table = MESSAGES.get(locale, MESSAGES["en"])
    return table.get(key, key)


class GraceLogError(Exception):
    """Base class for errors reported back to the user."""


class ValidationError(GraceLogError, ValueError):
    def __init__(self, key: str, locale: str = "en"):
        self.key = key
        self.locale = locale
        super().__init__(message(key, locale))


class PremiumRequiredError(ValidationError):
    pass


class AssistError(GraceLogError, RuntimeError):
    pass


class AssistBusyError(AssistError):
    def __init__(self, locale: str = "en"):
        self.locale = locale
        super().__init__(message("assist_busy", locale))
