"""Execution engine: sends a task to an LLM and parses the artifact bundle."""

import json
import logging
from typing import Any, Callable

import litellm
import openai

from .models import ArtifactBundle, OutputFile
from .providers import Provider

logger = logging.getLogger(__name__)

# Suppress litellm's verbose debug/info logging
litellm.suppress_debug_info = True

MAX_TOKENS = 8192
TEMPERATURE = 0.7

SYSTEM_PROMPT = """You are an autonomous task execution agent operating in YOLO mode.
You receive an Asana task and execute it completely and thoroughly.

## Output Format
Respond ONLY with a valid JSON object (no markdown fences, no preamble):
{
  "output_type": "markdown" | "code_folder" | "mixed",
  "summary": "Brief summary of what you did",
  "files": [
    {
      "path": "relative/path/to/file.ext",
      "content": "full file content here",
      "description": "what this file does"
    }
  ],
  "notes": "Any important notes, caveats, or follow-up suggestions"
}

## Rules
- Be thorough, never produce partial deliverables
- For code tasks: include tests, a README, and proper project structure
- For writing tasks: produce publication-ready content
- Make reasonable assumptions and document them in "notes"
- ALWAYS produce actual file content, never just describe what to do"""

USER_PROMPT = "## Asana Task\n\n{task}\n\nExecute this task completely. Return valid JSON as specified."

RAW_SUMMARY = "AI response (raw, JSON parsing failed)"


class EngineError(Exception):
    """The provider could not be reached or returned an error."""


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        parts = text.split("\n", 1)
        if len(parts) == 2:
            text = parts[1]
        text = text.strip()
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


def _raw_bundle(raw: str, reason: str) -> ArtifactBundle:
    return ArtifactBundle(
        output_type="markdown",
        summary=RAW_SUMMARY,
        files=(OutputFile(path="output.md", content=raw, description="Raw AI output"),),
        notes=f"JSON parse error: {reason}",
    )


def parse_result(raw: str) -> ArtifactBundle:
    """Parse the model's JSON answer into an ArtifactBundle.

    Anything that isn't a well-formed result object degrades to a single
    ``output.md`` file wrapping the raw text instead of failing.
    """
    text = _strip_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return _raw_bundle(raw, str(e))
    if not isinstance(data, dict):
        return _raw_bundle(raw, f"expected an object, got {type(data).__name__}")

    files_data = data.get("files") or []
    if not isinstance(files_data, list):
        return _raw_bundle(raw, "'files' is not a list")
    files = []
    for entry in files_data:
        if not isinstance(entry, dict) or not isinstance(entry.get("path"), str) or not entry["path"]:
            return _raw_bundle(raw, "malformed file entry")
        files.append(
            OutputFile(
                path=entry["path"],
                content=str(entry.get("content") or ""),
                description=str(entry.get("description") or ""),
            )
        )
    return ArtifactBundle(
        output_type=str(data.get("output_type") or "markdown"),
        summary=str(data.get("summary") or ""),
        files=tuple(files),
        notes=str(data.get("notes") or ""),
    )


class ExecutionEngine:
    """Runs one task against a provider/model.

    Routing:
    - api_base set → openai SDK direct (Moonshot, Ollama)
    - otherwise    → litellm with a "<prefix>/<model>" string
    """

    def __init__(self, provider: Provider, model: str, api_key: str = "") -> None:
        self.provider = provider
        self.model = model
        self.api_key = api_key

    def _complete(self, messages: list[dict[str, str]]) -> Any:
        if self.provider.api_base:
            client = openai.OpenAI(
                base_url=self.provider.api_base,
                api_key=self.api_key or self.provider.id,
            )
            return client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
            )

        kwargs: dict = {
            "model": f"{self.provider.litellm_prefix}/{self.model}" if self.provider.litellm_prefix else self.model,
            "messages": messages,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        return litellm.completion(**kwargs)

    def execute(self, task_description: str, on_progress: Callable[[str], None] | None = None) -> ArtifactBundle:
        """Execute a task and return its artifact bundle.

        ``on_progress`` receives human-readable status strings in order.
        Raises EngineError when the provider call fails.
        """

        def emit(message: str) -> None:
            logger.debug("engine: %s", message)
            if on_progress is not None:
                on_progress(message)

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": USER_PROMPT.format(task=task_description)},
        ]

        emit(f"Calling {self.provider.id} / {self.model}…")
        emit(f"Sending request to {self.provider.name}…")
        try:
            response = self._complete(messages)
        except (litellm.exceptions.Timeout, openai.APITimeoutError, TimeoutError) as e:
            raise EngineError(f"{self.provider.name} request timed out") from e
        except (litellm.exceptions.APIConnectionError, openai.APIConnectionError, ConnectionError) as e:
            raise EngineError(f"{self.provider.name} unavailable: {e}") from e
        except openai.OpenAIError as e:
            raise EngineError(f"{self.provider.name} error: {e}") from e

        usage = getattr(response, "usage", None)
        if usage is not None:
            emit(f"Received {usage.prompt_tokens or 0} input / {usage.completion_tokens or 0} output tokens")

        try:
            raw = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise EngineError(f"{self.provider.name} returned no choices") from e
        if not raw.strip():
            raise EngineError(f"{self.provider.name} returned an empty response")

        emit("Parsing response…")
        bundle = parse_result(raw)
        emit(f"Got {len(bundle.files)} file(s), output type: {bundle.output_type}")
        return bundle
