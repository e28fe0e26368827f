"""Question analysis and practice-question generation using OpenAI's Responses API."""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from openai import AsyncOpenAI

from models.inference_results import AnalysisResult, SimilarQuestionResult
from services.openai.media_inputs import build_image_inputs, build_text_inputs, resolve_image_input
from services.openai.mistake_prompts import (
    build_analysis_prompt,
    build_similar_prompt,
    build_system_prompt,
    normalize_language,
)
from services.openai.mistake_schema import analysis_format, similar_format
from services.openai.response_parser import extract_output_text, extract_usage, safe_json_parse
from services.openai.retry import INITIAL_DELAY_SECONDS, MAX_ATTEMPTS, with_retry
from utils.app_config import DEFAULT_MODEL
from utils.errors import EmptyInferenceResponse

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 8192
ANALYSIS_TEMPERATURE = 0.4


class MistakeAnalyzer:
    """Transcribe and explain a missed question, or write a similar practice question.

    Args:
        client: Async OpenAI client.
        http: Async HTTP client used to download images given by URL.
        model: Model identifier used for every call.
        retries: Total attempts per call for transient failures.
        initial_delay: Seconds before the first retry; doubles each time.
        sleep: Awaitable sleep used between retries.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        http: Optional[httpx.AsyncClient] = None,
        model: str = DEFAULT_MODEL,
        retries: int = MAX_ATTEMPTS,
        initial_delay: float = INITIAL_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.http = http
        self.model = model
        self.retries = retries
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def analyze_image(
        self,
        image: str,
        hint: Optional[str] = None,
        language: Optional[str] = None,
        custom_instructions: Optional[str] = None,
    ) -> AnalysisResult:
        """Transcribe, solve, and explain the question in an image.

        Args:
            image: http(s) URL, data URL, or bare base64 image.
            hint: Optional note from the student.
            language: One of `ja`, `en`, `zh`.
            custom_instructions: Optional extra instructions appended to the prompt.

        Raises:
            ImageDownloadFailed: If a URL image cannot be fetched.
            EmptyInferenceResponse: If the model returns no text on the final attempt.
        """
        lang = normalize_language(language)
        image_url = await resolve_image_input(image, self.http)
        inputs = build_image_inputs(
            build_system_prompt(lang),
            build_analysis_prompt(lang, hint, custom_instructions),
            image_url,
        )
        text_format = analysis_format(lang)

        async def _attempt() -> AnalysisResult:
            response = await self._create_response(inputs, text_format, temperature=ANALYSIS_TEMPERATURE)
            payload = self._parse_response(response)
            return AnalysisResult(
                question_text=str(payload.get("questionText") or ""),
                solution=str(payload.get("solution") or ""),
                analysis=str(payload.get("analysis") or ""),
                tags=[str(tag) for tag in payload.get("tags") or []],
                suggested_subject=str(payload.get("suggestedSubject") or ""),
                diagram_markup=payload.get("svgDiagram") or None,
                token_usage=extract_usage(response),
            )

        return await self._run(_attempt, "analysis")

    async def generate_similar_question(
        self,
        question: str,
        analysis: Optional[str] = None,
        language: Optional[str] = None,
    ) -> SimilarQuestionResult:
        """Write a new practice question that tests the same concept."""
        if not question or not question.strip():
            raise ValueError("The original question text is required.")
        lang = normalize_language(language)
        inputs = build_text_inputs(build_system_prompt(lang), build_similar_prompt(lang, question, analysis))
        text_format = similar_format(lang)

        async def _attempt() -> SimilarQuestionResult:
            response = await self._create_response(inputs, text_format)
            payload = self._parse_response(response)
            return SimilarQuestionResult(
                question=str(payload.get("question") or ""),
                answer=str(payload.get("answer") or ""),
                diagram_markup=payload.get("svgDiagram") or None,
                token_usage=extract_usage(response),
            )

        return await self._run(_attempt, "similar question")

    async def _run(self, attempt: Callable[[], Awaitable[Any]], label: str) -> Any:
        start_time = time.time()
        result = await with_retry(attempt, retries=self.retries, initial_delay=self.initial_delay, sleep=self._sleep)
        LOGGER.info("Model %s latency: %.3fs", label, time.time() - start_time)
        return result

    async def _create_response(
        self,
        inputs: List[Dict[str, Any]],
        text_format: Dict[str, Any],
        temperature: Optional[float] = None,
    ) -> Any:
        """Send the request to the OpenAI Responses API."""
        options: Dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        try:
            return await self.client.responses.create(
                model=self.model,
                input=inputs,
                text={"format": text_format},
                max_output_tokens=MAX_OUTPUT_TOKENS,
                **options,
            )
        except Exception as exc:
            LOGGER.error("Error during OpenAI Responses API call: %s", exc)
            raise

    def _parse_response(self, response: Any) -> Dict[str, Any]:
        """Parse the structured JSON output from the model."""
        text = extract_output_text(response)
        if not text:
            raise EmptyInferenceResponse(
                "No response text from the model. The content may have been filtered; please try again."
            )
        try:
            return safe_json_parse(text)
        except ValueError as exc:
            LOGGER.error("Error parsing model output as JSON: %s", exc)
            raise
