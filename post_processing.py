"""Transcript reformatting through a llama.cpp style command-line tool.

The adapter never loses text: whatever goes wrong, the outcome carries the
original transcript with ``succeeded=False``.
"""

from __future__ import annotations

import logging
import re
import shutil
import threading
import time
from pathlib import Path
from typing import Mapping, Optional

from config import PostProcessingConfig
from errors import ErrorKind, LaunchFailed, ProcessCancelled
from glossary import format_glossary_for_prompt
from models import OutputMode, PostProcessingOutcome
from process_invoker import ProcessInvocationResult, ProcessInvocationSpec, ProcessInvoker

logger = logging.getLogger(__name__)

TRIGGER_PATTERN = re.compile(r"\bmarkdown\s+mode\b", re.IGNORECASE)
TRIGGER_WINDOW_WORDS = 5

GPU_LAYERS = "99"

# Failure phrases only; llama.cpp also mentions CUDA, Metal and GPU offload
# in ordinary startup lines.
GPU_FAILURE_PATTERN = re.compile(
    r"cuda error|cudamalloc failed|cublas_status_\w+|out of memory|\boom\b|"
    r"failed to allocate|allocating failed|erroroutofdevicememory|"
    r"vk::\w*error|ggml_metal\w*: error|hip error",
    re.IGNORECASE,
)

LOG_LINE_PREFIXES = (
    "llama_",
    "llm_",
    "ggml_",
    "main:",
    "system_info:",
    "build:",
    "load_backend:",
    "sampler",
    "generate:",
    "print_info:",
    "common_",
    "load:",
)
END_OF_TEXT_MARKER = "[end of text]"

_ORPHAN_PUNCTUATION = ".,;:!?"
_DANGLING_SEPARATORS = ",;:"

_BASE_PROMPT = """System: You are a careful transcript formatter and light copy editor.

INPUT: Raw text from speech recognition. May contain run-on sentences, missing punctuation.

YOUR GOAL: Make text easy to read while preserving intent and personality.

DO:
- Fix grammar, punctuation, capitalization.
- Split long sentences when it improves clarity.
- Insert paragraph breaks between distinct topics.
{format_rule}
- Remove filler words ("uh", "um", "like") when safe.

DON'T:
- Don't add new ideas or explanations.
- Don't change meaning.
- Don't summarize or shorten.
- Don't change technical terms or names.
{format_restriction}
OUTPUT: {output_rule}
"""

PLAIN_PROMPT = _BASE_PROMPT.format(
    format_rule="- Turn clearly spoken lists into simple bullets (- item) or numbers (1. item).",
    format_restriction="- Don't use Markdown headings, bold, italics.\n",
    output_rule="Plain text only. Blank lines between paragraphs. Simple lists only.",
)

STRUCTURED_PROMPT = _BASE_PROMPT.format(
    format_rule="- Use Markdown formatting: ## headings for sections, **bold**, - lists.",
    format_restriction="",
    output_rule="Markdown formatted text.",
)


def _cut(text: str, start: int, end: int) -> str:
    """Remove text[start:end] plus punctuation left dangling by the cut."""
    left = text[:start].rstrip()
    right = text[end:].lstrip().lstrip(_ORPHAN_PUNCTUATION).lstrip()
    if not left:
        return right
    if not right:
        return left.rstrip(_DANGLING_SEPARATORS).rstrip()
    return f"{left} {right}"


def detect_mode(transcript: str) -> tuple[OutputMode, str]:
    """Look for the trigger phrase in the first and last words only."""
    words = list(re.finditer(r"\S+", transcript))
    if not words:
        return OutputMode.PLAIN, transcript

    head_end = words[min(TRIGGER_WINDOW_WORDS, len(words)) - 1].end()
    match = TRIGGER_PATTERN.search(transcript, 0, head_end)
    if match is None:
        tail_start = words[max(len(words) - TRIGGER_WINDOW_WORDS, 0)].start()
        tail_matches = list(TRIGGER_PATTERN.finditer(transcript, tail_start))
        match = tail_matches[-1] if tail_matches else None
    if match is None:
        return OutputMode.PLAIN, transcript

    return OutputMode.STRUCTURED, _cut(transcript, match.start(), match.end()).strip()


def build_system_prompt(mode: OutputMode, glossary: Optional[Mapping[str, str]] = None) -> str:
    prompt = STRUCTURED_PROMPT if mode == OutputMode.STRUCTURED else PLAIN_PROMPT
    return prompt + format_glossary_for_prompt(glossary)


def clean_output(stdout: str) -> str:
    kept = []
    for line in stdout.splitlines():
        stripped = line.strip()
        if stripped.startswith(LOG_LINE_PREFIXES):
            continue
        if stripped == END_OF_TEXT_MARKER:
            continue
        kept.append(line.rstrip())
    return "\n".join(kept).strip()


def is_gpu_failure(stderr: str) -> bool:
    return bool(GPU_FAILURE_PATTERN.search(stderr or ""))


def _executable_exists(path: str) -> bool:
    return bool(path) and (Path(path).is_file() or shutil.which(path) is not None)


class PostProcessingAdapter:
    def __init__(
        self,
        config: PostProcessingConfig,
        invoker: Optional[ProcessInvoker] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._config = config
        self._invoker = invoker or ProcessInvoker()
        self._cancel_event = cancel_event

    @property
    def config(self) -> PostProcessingConfig:
        return self._config

    def build_invocation(self, system_prompt: str, transcript: str, use_gpu: bool) -> ProcessInvocationSpec:
        config = self._config
        prompt = f"{system_prompt}\n\nUser: {transcript}\n\nAssistant:"
        arguments = [
            "-m",
            config.model_path,
            "-p",
            prompt,
            "--temp",
            f"{config.temperature:.1f}",
            "--top-p",
            f"{config.top_p:.2f}",
            "--repeat-penalty",
            f"{config.repeat_penalty:.2f}",
            "-n",
            str(config.max_tokens),
            "--no-display-prompt",
            "-no-cnv",
        ]
        if use_gpu:
            arguments += ["-ngl", GPU_LAYERS]
        arguments.append("--log-disable")
        return ProcessInvocationSpec(
            executable_path=config.llm_cli_path,
            arguments=tuple(arguments),
            timeout_s=config.timeout_s,
        )

    def process(
        self,
        transcript: str,
        glossary: Optional[Mapping[str, str]] = None,
    ) -> PostProcessingOutcome:
        started = time.monotonic()
        mode = OutputMode.PLAIN
        try:
            mode, cleaned = detect_mode(transcript)
            if not cleaned:
                logger.info("Transcript is only the trigger phrase, skipping post-processing")
                return self._fallback(transcript, mode, started)
            return self._run(transcript, cleaned, mode, glossary, started)
        except Exception:
            logger.exception("Unexpected error in post-processing, keeping original transcript")
            return self._fallback(transcript, mode, started)

    def _run(
        self,
        original: str,
        cleaned: str,
        mode: OutputMode,
        glossary: Optional[Mapping[str, str]],
        started: float,
    ) -> PostProcessingOutcome:
        config = self._config
        if not _executable_exists(config.llm_cli_path):
            logger.warning("LLM CLI not found at %r, keeping original transcript", config.llm_cli_path)
            return self._fallback(original, mode, started)
        if not config.model_path or not Path(config.model_path).is_file():
            logger.warning("LLM model not found at %r, keeping original transcript", config.model_path)
            return self._fallback(original, mode, started)

        system_prompt = build_system_prompt(mode, glossary)
        use_gpu = config.gpu_acceleration

        result = self._attempt(system_prompt, cleaned, use_gpu)
        if result is None:
            return self._fallback(original, mode, started)

        if use_gpu and self._should_retry_on_cpu(result):
            logger.warning(
                "%s: GPU attempt failed (exit %d), retrying on CPU",
                ErrorKind.GPU_FAILURE.value,
                result.exit_code,
            )
            use_gpu = False
            result = self._attempt(system_prompt, cleaned, use_gpu)
            if result is None:
                return self._fallback(original, mode, started)

        if result.timed_out:
            logger.warning("Post-processing timed out after %.1fs, keeping original transcript", config.timeout_s)
            return self._fallback(original, mode, started)
        if result.exit_code != 0:
            logger.warning(
                "Post-processing failed with exit %d, keeping original transcript: %s",
                result.exit_code,
                result.stderr.strip()[-500:],
            )
            return self._fallback(original, mode, started)

        output = clean_output(result.stdout)
        if not output:
            logger.warning("Post-processing returned empty output, keeping original transcript")
            return self._fallback(original, mode, started)

        elapsed_s = time.monotonic() - started
        logger.info(
            "Post-processing completed: mode=%s gpu=%s %d -> %d chars in %.2fs",
            mode.value,
            use_gpu,
            len(original),
            len(output),
            elapsed_s,
        )
        return PostProcessingOutcome(succeeded=True, text=output, mode=mode, gpu_used=use_gpu, elapsed_s=elapsed_s)

    def _attempt(self, system_prompt: str, transcript: str, use_gpu: bool) -> Optional[ProcessInvocationResult]:
        spec = self.build_invocation(system_prompt, transcript, use_gpu)
        try:
            return self._invoker.invoke(spec, self._cancel_event)
        except LaunchFailed as exc:
            logger.warning("Post-processing could not start: %s", exc)
        except ProcessCancelled:
            logger.warning("Post-processing cancelled, keeping original transcript")
        return None

    @staticmethod
    def _should_retry_on_cpu(result: ProcessInvocationResult) -> bool:
        return not result.timed_out and result.exit_code != 0 and is_gpu_failure(result.stderr)

    @staticmethod
    def _fallback(original: str, mode: OutputMode, started: float) -> PostProcessingOutcome:
        return PostProcessingOutcome(
            succeeded=False,
            text=original,
            mode=mode,
            gpu_used=False,
            elapsed_s=time.monotonic() - started,
        )
