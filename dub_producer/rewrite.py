"""Translation and duration-driven rewriting through the OpenAI API."""

import asyncio
import copy
import logging

import openai
from openai import AsyncOpenAI

from dub_producer.config import SyncConfig
from dub_producer.constants import OPENAI_MAX_TOKENS
from dub_producer.errors import RewriteError
from dub_producer.models import Segment

logger = logging.getLogger(__name__)

TRANSLATION_INSTRUCTION = """\
You are a professional dubbing translator.
Translate only the segment marked TEXT TO TRANSLATE into the target language.
The previous and next segments are context: never translate or output them.
Keep the meaning, tone, register and politeness level of the speaker, keep
verbal tics and "--" pause markers, write numbers out in words, and expand
units and currencies. If the text is already in the target language, return it
unchanged. Output only the translated text."""

SHORTEN_INSTRUCTION = """\
You adapt dubbing scripts. The translated line below takes longer to speak than
the original. Rephrase it so it can be spoken in the original time while
keeping exactly the same meaning, register and punctuation. If it cannot be
shortened without losing meaning, shorten minimally or return it unchanged.
Numbers are written out in words. Output only the rewritten text."""

LENGTHEN_INSTRUCTION = """\
You adapt dubbing scripts. The translated line below is spoken faster than the
original. Make it last longer. When rewriting is allowed you may add or
rephrase a few words without changing the meaning. When it is not allowed you
may only insert pauses: <break time="X.Xs" /> for pauses of {min_break}s or
more, punctuation (comma, period) for shorter ones. Place pauses where the
original speaker paused, then at punctuation. Never end the text with a pause.
Less is better than too much. Output only the updated text."""


def _pause_budget(difference: float) -> float:
    """Seconds of pause to ask for; models tend to overshoot large budgets."""
    return round(difference - 0.4, 2) if difference > 0.5 else round(difference, 2)


def build_translation_prompt(
    text: str,
    previous_text: str,
    next_text: str,
    target_language: str,
    source_language: str,
    summary: str,
    speaker=None,
    previous_speaker=None,
    next_speaker=None,
) -> str:
    return (
        f"Target language: {target_language}\n"
        f"Source language: {source_language}\n\n"
        f"--- PREVIOUS TEXT (speaker {previous_speaker}, context only):\n{previous_text}\n---END---\n\n"
        f"--- TEXT TO TRANSLATE (speaker {speaker}):\n{text}\n---END---\n\n"
        f"--- NEXT TEXT (speaker {next_speaker}, context only):\n{next_text}\n---END---\n\n"
        f"Summary of the recording: {summary}\n"
    )


def build_shorten_prompt(
    text: str,
    original_text: str,
    target_language: str,
    target_duration: float,
    actual_duration: float,
    summary: str,
) -> str:
    overage = actual_duration - target_duration
    return (
        f"Original text (untranslated):\n{original_text}\n---END---\n\n"
        f"Translated text (too long):\n{text}\n---END---\n\n"
        f"Original duration: {target_duration:.2f} seconds.\n"
        f"Translated speech duration: {actual_duration:.2f} seconds.\n"
        f"The text is {overage:.2f} seconds too long; make it {overage:.2f} seconds shorter.\n"
        f"Answer in {target_language.upper()} only.\n\n"
        f"Summary of the recording: {summary}\n"
    )


def build_lengthen_prompt(
    text: str,
    words_with_silence: str,
    target_language: str,
    source_language: str,
    target_duration: float,
    actual_duration: float,
    allow_rewrite: bool,
    summary: str,
) -> str:
    difference = target_duration - actual_duration
    padded_actual = actual_duration + 0.4 if difference > 0.5 else actual_duration
    return (
        f"allowRewrite: {str(allow_rewrite).lower()}\n"
        f"Original duration: {target_duration:.2f} seconds\n"
        f"Translated speech duration: {padded_actual:.2f} seconds\n"
        f"Seconds of pause to distribute: {_pause_budget(difference):.2f}\n"
        f"Source language: {source_language}\n"
        f"Target language: {target_language}\n\n"
        f"Text to update:\n{text}\n---END---\n\n"
        f"Original words with the silence after each word:\n{words_with_silence}\n---END---\n\n"
        f"Summary of the recording: {summary}\n"
    )


class OpenAIRewriter:
    """Translation/rewrite collaborator backed by a chat completion model."""

    def __init__(self, config: SyncConfig | None = None, api_key: str | None = None, client=None):
        self.config = config or SyncConfig()
        if client is None:
            try:
                client = AsyncOpenAI(api_key=api_key)
            except openai.OpenAIError as e:
                raise RewriteError(f"Could not create OpenAI client: {e}") from e
        self.client = client

    async def complete(self, prompt: str, instruction: str) -> str:
        """One chat completion, retried with a fixed delay."""
        attempts = self.config.rewrite_retry_count
        last_error = None
        for attempt in range(attempts):
            try:
                response = await self.client.chat.completions.create(
                    model=self.config.openai_model,
                    messages=[
                        {"role": "system", "content": instruction},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.config.openai_temperature,
                    max_tokens=OPENAI_MAX_TOKENS,
                )
                content = response.choices[0].message.content if response.choices else None
                if content:
                    return content.strip()
                last_error = RewriteError("No content in response")
            except openai.OpenAIError as e:
                last_error = e

            logger.warning("OpenAI request %d/%d failed: %s", attempt + 1, attempts, last_error)
            if attempt < attempts - 1:
                await asyncio.sleep(self.config.rewrite_retry_delay)

        raise RewriteError(f"Error with OpenAI API: {last_error}") from last_error

    async def translate(
        self,
        text: str,
        previous_text: str,
        next_text: str,
        target_language: str,
        source_language: str,
        summary: str = "",
        speaker=None,
        previous_speaker=None,
        next_speaker=None,
    ) -> str:
        prompt = build_translation_prompt(
            text, previous_text, next_text, target_language, source_language, summary,
            speaker=speaker, previous_speaker=previous_speaker, next_speaker=next_speaker,
        )
        return await self.complete(prompt, TRANSLATION_INSTRUCTION)

    async def shorten(
        self,
        text: str,
        original_text: str,
        target_language: str,
        target_duration: float,
        actual_duration: float,
        summary: str = "",
    ) -> str:
        prompt = build_shorten_prompt(
            text, original_text, target_language, target_duration, actual_duration, summary
        )
        return await self.complete(prompt, SHORTEN_INSTRUCTION)

    async def lengthen(
        self,
        text: str,
        words_with_silence: str,
        target_language: str,
        source_language: str,
        target_duration: float,
        actual_duration: float,
        allow_rewrite: bool,
        summary: str = "",
    ) -> str:
        prompt = build_lengthen_prompt(
            text, words_with_silence, target_language, source_language,
            target_duration, actual_duration, allow_rewrite, summary,
        )
        instruction = LENGTHEN_INSTRUCTION.format(min_break=self.config.break_tag_min_seconds)
        return await self.complete(prompt, instruction)


async def retry_until_changed(produce, original: str, attempts: int) -> str:
    """Call produce() until it returns something other than original.

    Gives up after `attempts` calls and accepts the unchanged text.
    """
    result = original
    for attempt in range(max(1, attempts)):
        result = await produce()
        if result.strip() != original.strip():
            return result
        logger.debug("Collaborator echoed its input (attempt %d/%d)", attempt + 1, attempts)
    logger.warning("Text unchanged after %d attempts, accepting it: %r", attempts, original[:50])
    return result


async def translate_segments(
    segments: list[Segment],
    rewriter,
    target_language: str,
    summary: str = "",
    config: SyncConfig | None = None,
) -> list[Segment]:
    """Translate segments in bounded-width batches.

    Returns copies sorted by index with the source text kept in
    original_text; the input list is not modified.
    """
    config = config or SyncConfig()
    ordered = sorted(copy.deepcopy(segments), key=lambda s: s.index)
    width = max(1, config.max_simultaneous_translations)
    total = len(ordered)
    # Context is always the source text, even once a neighbour is translated.
    sources = [s.text for s in ordered]

    async def translate_one(position: int) -> tuple[int, str]:
        seg = ordered[position]
        prev = ordered[position - 1] if position > 0 else None
        nxt = ordered[position + 1] if position + 1 < total else None

        async def produce():
            return await rewriter.translate(
                sources[position],
                sources[position - 1] if prev else "",
                sources[position + 1] if nxt else "",
                target_language,
                seg.language,
                summary,
                speaker=seg.speaker,
                previous_speaker=prev.speaker if prev else "",
                next_speaker=nxt.speaker if nxt else "",
            )

        text = await retry_until_changed(produce, sources[position], config.rewrite_attempts)
        return position, text

    logger.debug("Translating %d segments into %s", total, target_language)
    for start in range(0, total, width):
        results = await asyncio.gather(
            *(translate_one(p) for p in range(start, min(start + width, total)))
        )
        for position, text in results:
            seg = ordered[position]
            seg.original_text = seg.text
            seg.text = text
            seg.language = target_language
        print(f"  Translated {min(start + width, total)}/{total} segments")

    return ordered
