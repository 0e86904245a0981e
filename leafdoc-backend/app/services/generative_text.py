# app/services/generative_text.py
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout

import requests

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def _first_candidate_text(result) -> str | None:
    """
    candidates[0].content.parts[0].text, or None when any step is missing.
    """
    try:
        text = result["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text:
        return None
    return text


class GenerativeTextClient:
    """
    Single entry point for Gemini generateContent calls.

    generate() never raises for service trouble: missing key, timeout,
    transport errors, non-2xx, odd payloads all come back as None.

    Each call gets its own worker thread and the response body is read
    against the same deadline, so a slow call never holds up another one.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    @staticmethod
    def build_payload(prompt: str, structured: bool = False) -> dict:
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if structured:
            payload["generationConfig"] = {"responseMimeType": "application/json"}
        return payload

    def _post(self, payload: dict, deadline_at: float):
        """
        POST and read the whole body before deadline_at (monotonic).
        Returns (status_code, body_bytes).
        """
        remaining = deadline_at - time.monotonic()
        if remaining <= 0:
            raise requests.Timeout("deadline passed before the request was sent")

        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        response = self.session.post(self.url, headers=headers, json=payload, timeout=remaining, stream=True)
        try:
            chunks = []
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if time.monotonic() > deadline_at:
                    raise requests.Timeout("response body not received before the deadline")
                chunks.append(chunk)
            return response.status_code, b"".join(chunks)
        finally:
            response.close()

    def generate(self, prompt: str, structured: bool = False, timeout: float | None = None) -> str | None:
        if not self.api_key:
            logger.error("GEMINI_API_KEY is not configured; text generation disabled.")
            return None

        deadline = self.timeout_seconds if timeout is None else float(timeout)
        deadline_at = time.monotonic() + deadline
        payload = self.build_payload(prompt, structured)

        worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gemini")
        future = worker.submit(self._post, payload, deadline_at)
        worker.shutdown(wait=False)
        try:
            status_code, body = future.result(timeout=deadline)
        except FuturesTimeout:
            logger.warning("Gemini call exceeded %.1fs deadline", deadline)
            return None
        except requests.Timeout:
            logger.warning("Gemini call timed out after %.1fs", deadline)
            return None
        except requests.RequestException as e:
            logger.error("Error calling Gemini API: %s", e)
            return None

        if not 200 <= status_code < 300:
            logger.error("Gemini API returned %s: %s", status_code, body.decode("utf-8", errors="replace"))
            return None

        try:
            result = json.loads(body)
        except ValueError:
            logger.error("Gemini API returned a non-JSON body")
            return None

        text = _first_candidate_text(result)
        if text is None:
            logger.warning("Gemini response had no candidate text")
        return text

    def close(self):
        self.session.close()
