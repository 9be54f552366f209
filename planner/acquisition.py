"""Candidate acquisition: obtain a draft schedule for a brief.

A candidate source is anything with ``propose(brief) -> str | dict``. The
engine treats its output as untrusted; it only has to be recoverable as a
``{date: [entry]}`` mapping, everything else is the validator's job.

Sources shipped here:
  - GeminiCandidateSource   language model via google-genai
  - StaticCandidateSource   fixed payload (file, replay, human entry)
The CP-SAT source lives in planner.local_solver.
"""

import json
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import date
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from config.schema import AcquisitionConfig
from planner.brief import GenerationBrief, render_prompt
from planner.errors import (
    AcquisitionError,
    AcquisitionTimeoutError,
    ParseFailureError,
    PlannerError,
)

logger = logging.getLogger(__name__)

RawCandidate = Union[str, dict]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


class CandidateSource(Protocol):
    name: str

    def propose(self, brief: GenerationBrief) -> RawCandidate:
        ...


# ─── Sources ──────────────────────────────────────────────────────────────────

class StaticCandidateSource:
    """Returns a fixed payload, e.g. a saved model response or hand-written plan."""

    name = "static"

    def __init__(self, payload: RawCandidate) -> None:
        self.payload = payload

    @classmethod
    def from_file(cls, path: Path) -> "StaticCandidateSource":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Candidate file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls(f.read())

    def propose(self, brief: GenerationBrief) -> RawCandidate:
        return self.payload


class GeminiCandidateSource:
    """Draft schedules from Gemini (JSON response mode)."""

    name = "gemini"

    def __init__(self, config: AcquisitionConfig, api_key: Optional[str] = None) -> None:
        self.config = config
        key = api_key or os.getenv(config.api_key_env)
        if not key:
            raise AcquisitionError(
                f"No Gemini API key: set the {config.api_key_env} environment variable "
                f"or use --offline / --candidate."
            )
        self.client = genai.Client(
            api_key=key,
            http_options=types.HttpOptions(timeout=config.timeout_seconds * 1000),
        )

    def propose(self, brief: GenerationBrief) -> RawCandidate:
        prompt = render_prompt(brief)
        logger.info(f"Requesting draft from {self.config.model} ({len(prompt)} prompt chars)")
        try:
            response = self.client.models.generate_content(
                model=self.config.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    temperature=self.config.temperature,
                    response_mime_type="application/json",
                ),
            )
        except genai_errors.APIError as e:
            if e.code == 429:
                raise AcquisitionError(
                    "Rate limit exceeded at the generation backend. Please try again in a moment."
                ) from e
            if e.code == 402:
                raise AcquisitionError(
                    "The generation backend requires payment or more credits."
                ) from e
            raise AcquisitionError(f"Generation backend error {e.code}: {e.message}") from e

        text = response.text
        if not text or not text.strip():
            raise AcquisitionError("Generation backend returned an empty response")
        return text


# ─── Bounded acquisition ──────────────────────────────────────────────────────

def acquire_candidate(source: CandidateSource, brief: GenerationBrief,
                      timeout_seconds: float) -> RawCandidate:
    """Run `source.propose(brief)` with a wall-clock limit.

    Raises AcquisitionTimeoutError when the limit is hit and AcquisitionError
    for any other failure. A timed-out call is abandoned, never awaited.
    """
    name = getattr(source, "name", type(source).__name__)
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="acquire")
    future = pool.submit(source.propose, brief)
    try:
        raw = future.result(timeout=timeout_seconds)
    except FutureTimeout as e:
        future.cancel()
        logger.error(f"Candidate source '{name}' timed out after {timeout_seconds}s")
        raise AcquisitionTimeoutError(
            f"Candidate source '{name}' did not answer within {timeout_seconds:g} seconds"
        ) from e
    except PlannerError:
        raise
    except Exception as e:
        logger.warning(f"Candidate source '{name}' failed: {e}")
        raise AcquisitionError(f"Candidate source '{name}' failed: {e}") from e
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    if raw is None:
        raise AcquisitionError(f"Candidate source '{name}' returned nothing")
    logger.info(f"Candidate received from '{name}'")
    return raw


# ─── Payload extraction ───────────────────────────────────────────────────────

def _is_iso_date(key: Any) -> bool:
    try:
        date.fromisoformat(str(key))
    except ValueError:
        return False
    return True


def _schedule_mapping(obj: Any) -> Optional[dict]:
    """The date mapping inside `obj`, or None if `obj` is not a schedule."""
    if not isinstance(obj, dict):
        return None
    if "schedule" in obj:
        inner = obj["schedule"]
        return inner if isinstance(inner, dict) else None
    if obj and any(_is_iso_date(k) for k in obj):
        return obj
    return None


def _decode_objects(text: str):
    """Yield every top-level JSON object decodable from `text`, left to right."""
    decoder = json.JSONDecoder()
    pos = text.find("{")
    while pos != -1:
        try:
            obj, end = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue
        yield obj
        pos = text.find("{", end)


def extract_candidate_payload(raw: RawCandidate) -> dict:
    """Recover the ``{date: [entry]}`` mapping from a raw candidate.

    Accepts a dict or text. Text may wrap the JSON in commentary or ```json
    fences. Raises ParseFailureError when no schedule object is recoverable.
    """
    if isinstance(raw, dict):
        mapping = _schedule_mapping(raw)
        if mapping is None:
            raise ParseFailureError("Candidate object contains no schedule mapping")
        return mapping

    if not isinstance(raw, str) or not raw.strip():
        raise ParseFailureError("Candidate payload is empty")

    texts = [m.group(1) for m in _FENCE_RE.finditer(raw)] + [raw]
    for text in texts:
        for obj in _decode_objects(text):
            mapping = _schedule_mapping(obj)
            if mapping is not None:
                return mapping

    preview = raw.strip()[:120].replace("\n", " ")
    logger.error(f"No schedule object recoverable from candidate: {preview!r}")
    raise ParseFailureError("No valid schedule object could be recovered from the candidate")
