from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import google.generativeai as genai
import requests
from google.api_core import exceptions as google_exceptions
from typing_extensions import TypedDict

from .errors import AssistError, PremiumRequiredError, ValidationError
from .models import LOCALE_KO, UserProfile

log = logging.getLogger(__name__)

MIN_REFLECTION_LENGTH = 5
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_OLLAMA_MODEL = "llama3.2"
DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"
DEFAULT_TIMEOUT_SECONDS = 60.0
PROVIDERS = ("gemini", "ollama")


@dataclass(frozen=True)
class AssistRequest:
    book: str
    chapter: int
    reflection_text: str
    tags: tuple[str, ...]
    locale: str


@dataclass(frozen=True)
class SharingSummary:
    summary: str
    questions: list[str] = field(default_factory=list)
    prayer_point: str = ""


@dataclass(frozen=True)
class AssistResponse:
    observations: list[str]
    applications: list[str]
    prayers: list[str]
    sharing_summary: SharingSummary


class AssistGateway(Protocol):
    def generate(self, request: AssistRequest) -> AssistResponse:
        ...


class SharingSummaryPayload(TypedDict):
    summary: str
    questions: list[str]
    prayer_point: str


class AssistPayload(TypedDict):
    observations: list[str]
    applications: list[str]
    prayers: list[str]
    sharing_summary: SharingSummaryPayload


def check_assist_allowed(profile: UserProfile, reflection_text: str) -> None:
    if not profile.is_premium:
        raise PremiumRequiredError("premium_required", profile.locale)
    if len(reflection_text) < MIN_REFLECTION_LENGTH:
        raise ValidationError("reflection_too_short", profile.locale)


def system_instruction(locale: str) -> str:
    if locale == LOCALE_KO:
        return (
            "당신은 깊이 있고 겸손한 성경 묵상 도우미입니다. "
            "사용자가 하나님 앞에서 정직하게 자신을 돌아보도록 도우십시오.\n"
            "규칙:\n"
            "1. 정확히 세 문단으로 작성합니다. 첫 문단은 본문의 성경적, 역사적 배경, "
            "둘째 문단은 오늘의 삶과 신앙에 주는 의미, 셋째 문단은 성찰 질문 두 개입니다.\n"
            "2. 문단 사이에는 빈 줄을 넣고 소제목이나 번호는 쓰지 않습니다.\n"
            "3. 각 질문은 물음표로 끝나며 한 줄에 하나씩 둡니다.\n"
            "4. 공백 포함 400~600자, 이모지와 느낌표는 쓰지 않습니다.\n"
            "5. 완성된 글은 sharing_summary.summary 필드에 넣습니다."
        )
    return (
        "You are a biblical meditation assistant with a deep, humble and thoughtful voice. "
        "Help the user face themselves honestly before God.\n"
        "Rules:\n"
        "1. Exactly three paragraphs: biblical and historical context, relevance for life and "
        "faith today, then two self-reflection questions.\n"
        "2. Separate paragraphs with a blank line. No headers, titles or numbering.\n"
        "3. Each question ends with a question mark and sits on its own line.\n"
        "4. 400 to 600 characters. No emojis.\n"
        "5. Put the full essay in the sharing_summary.summary field."
    )


def build_prompt(request: AssistRequest) -> str:
    reflection = request.reflection_text if request.reflection_text.strip() else "No content yet"
    return (
        f"Scripture: {request.book} {request.chapter}. "
        f"User's reflection: {reflection}. "
        f"Tags: {', '.join(request.tags)}."
    )


class GeminiAssistant:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if not api_key.strip():
            raise ValueError("API key is required for this provider.")
        if not model.strip():
            raise ValueError("Model is required.")
        genai.configure(api_key=api_key.strip())
        self.model = model.strip()
        self.timeout = timeout

    def generate(self, request: AssistRequest) -> AssistResponse:
        log.debug("Requesting Gemini commentary for %s %s", request.book, request.chapter)
        model = genai.GenerativeModel(
            self.model,
            system_instruction=system_instruction(request.locale),
        )
        try:
            response = model.generate_content(
                build_prompt(request),
                generation_config=genai.GenerationConfig(
                    response_mime_type="application/json",
                    response_schema=AssistPayload,
                ),
                request_options={"timeout": self.timeout},
            )
            text = response.text
        except google_exceptions.GoogleAPIError as exc:
            raise AssistError(f"AI request failed: {exc}") from exc
        except ValueError as exc:
            # response.text raises ValueError when the candidate was blocked
            raise AssistError(f"AI response was not usable: {exc}") from exc
        return _normalize_response(_parse_ai_json(text))


class OllamaAssistant:
    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_ENDPOINT,
        model: str = DEFAULT_OLLAMA_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if not model.strip():
            raise ValueError("Model is required.")
        self.base_url = (base_url.strip() or DEFAULT_OLLAMA_ENDPOINT).rstrip("/")
        self.model = model.strip()
        self.timeout = timeout

    def generate(self, request: AssistRequest) -> AssistResponse:
        schema_hint = (
            "Return strict JSON with this shape only: "
            "{\"observations\": [\"...\"], \"applications\": [\"...\"], \"prayers\": [\"...\"], "
            "\"sharing_summary\": {\"summary\": \"...\", \"questions\": [\"...\"], "
            "\"prayer_point\": \"...\"}}"
        )
        log.debug("Requesting Ollama commentary for %s %s", request.book, request.chapter)
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "system": system_instruction(request.locale),
                    "prompt": f"{build_prompt(request)}\n{schema_hint}",
                    "format": "json",
                    "stream": False,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AssistError(f"AI request failed: {exc}") from exc

        if response.status_code != 200:
            raise AssistError(f"AI request failed ({response.status_code}): {response.text}")
        try:
            body = response.json()
        except ValueError as exc:
            raise AssistError("AI provider returned non-JSON response.") from exc
        if not isinstance(body, dict):
            raise AssistError("AI provider returned an unexpected payload.")
        return _normalize_response(_parse_ai_json(str(body.get("response", ""))))


def build_assistant(
    provider: str,
    api_key: str = "",
    model: str = "",
    endpoint: str = "",
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> AssistGateway:
    if provider == "gemini":
        return GeminiAssistant(api_key, model or DEFAULT_GEMINI_MODEL, timeout)
    if provider == "ollama":
        return OllamaAssistant(endpoint or DEFAULT_OLLAMA_ENDPOINT, model or DEFAULT_OLLAMA_MODEL, timeout)
    raise ValueError(f"Unsupported provider: {provider}")


def _parse_ai_json(text: str) -> dict[str, Any]:
    trimmed = text.strip()
    if not trimmed:
        raise AssistError("AI response was empty.")
    try:
        parsed = json.loads(trimmed)
    except json.JSONDecodeError:
        start = trimmed.find("{")
        end = trimmed.rfind("}")
        if start == -1 or end == -1 or start >= end:
            raise AssistError("AI response did not contain valid JSON.")
        try:
            parsed = json.loads(trimmed[start : end + 1])
        except json.JSONDecodeError as exc:
            raise AssistError("AI response contained invalid JSON.") from exc
    if not isinstance(parsed, dict):
        raise AssistError("AI response was not a JSON object.")
    return parsed


def _normalize_response(data: dict[str, Any]) -> AssistResponse:
    sharing = data.get("sharing_summary", data.get("sharingSummary"))
    if not isinstance(sharing, dict):
        sharing = {}
    summary = SharingSummary(
        summary=str(sharing.get("summary", "")).strip(),
        questions=_string_list(sharing.get("questions")),
        prayer_point=str(sharing.get("prayer_point", sharing.get("prayerPoint", ""))).strip(),
    )
    response = AssistResponse(
        observations=_string_list(data.get("observations")),
        applications=_string_list(data.get("applications")),
        prayers=_string_list(data.get("prayers")),
        sharing_summary=summary,
    )
    if not summary.summary and not response.observations:
        raise AssistError("AI response did not include any commentary.")
    return response


def _string_list(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, Sequence):
        return []
    items: list[str] = []
    for value in raw:
        text = str(value).strip()
        if text:
            items.append(text)
    return items
