"""Voice assignment: one target-language voice per original speaker."""

import hashlib
import json
import logging
import os

logger = logging.getLogger(__name__)

# Hardcoded edge-tts voices per target language (avoids network call at startup)
VOICE_POOLS = {
    "en": [
        "en-US-AriaNeural", "en-US-GuyNeural", "en-US-JennyNeural", "en-US-DavisNeural",
        "en-GB-SoniaNeural", "en-GB-RyanNeural",
    ],
    "fr": ["fr-FR-DeniseNeural", "fr-FR-HenriNeural", "fr-FR-EloiseNeural", "fr-CA-AntoineNeural"],
    "es": ["es-ES-ElviraNeural", "es-ES-AlvaroNeural", "es-MX-DaliaNeural", "es-MX-JorgeNeural"],
    "de": ["de-DE-KatjaNeural", "de-DE-ConradNeural", "de-DE-AmalaNeural", "de-DE-KillianNeural"],
    "it": ["it-IT-ElsaNeural", "it-IT-DiegoNeural", "it-IT-IsabellaNeural"],
    "pt": ["pt-BR-FranciscaNeural", "pt-BR-AntonioNeural", "pt-PT-RaquelNeural", "pt-PT-DuarteNeural"],
    "ja": ["ja-JP-NanamiNeural", "ja-JP-KeitaNeural"],
    "ko": ["ko-KR-SunHiNeural", "ko-KR-InJoonNeural"],
    "zh": ["zh-CN-XiaoxiaoNeural", "zh-CN-YunxiNeural", "zh-CN-XiaoyiNeural", "zh-CN-YunjianNeural"],
    "vi": ["vi-VN-HoaiMyNeural", "vi-VN-NamMinhNeural"],
}

LANGUAGE_CODES = {
    "english": "en", "british english": "en", "french": "fr", "french canadian": "fr",
    "spanish": "es", "german": "de", "italian": "it", "portuguese": "pt",
    "japanese": "ja", "korean": "ko", "mandarin": "zh", "chinese": "zh", "vietnamese": "vi",
}


def language_code(language: str) -> str:
    key = (language or "").strip().lower()
    return LANGUAGE_CODES.get(key, key.split("-")[0])


def voice_pool(language: str) -> list[str]:
    """Voices available for a target language; English when unknown."""
    code = language_code(language)
    if code not in VOICE_POOLS:
        logger.warning("No voice pool for language %r, falling back to English", language)
        return VOICE_POOLS["en"]
    return VOICE_POOLS[code]


def load_voice_map(path: str | None) -> dict:
    """Load a {speaker: voice} JSON file.

    Returns empty dict if not given, not found, or malformed.
    """
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError:
        logger.warning("Malformed voice map: %s; using hash fallback", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Voice map %s is not a JSON object; using hash fallback", path)
        return {}
    return {str(k): v for k, v in data.items()}


def _hash_voice(speaker: str, pool: list[str]) -> str:
    """Deterministic voice assignment via sha256 hash."""
    h = hashlib.sha256(speaker.encode()).hexdigest()
    return pool[int(h, 16) % len(pool)]


def assign_voices(speakers: list, target_language: str, voice_map: dict | None = None) -> dict:
    """Map every speaker to a voice.

    Explicit entries from voice_map win. Remaining speakers get distinct pool
    voices in order of appearance while the pool lasts, then a hash pick.
    """
    voice_map = {str(k): v for k, v in (voice_map or {}).items()}
    pool = voice_pool(target_language)
    available = [v for v in pool if v not in voice_map.values()]

    result = {}
    for speaker in speakers:
        key = str(speaker)
        if key in result:
            continue
        if voice_map.get(key):
            result[key] = voice_map[key]
        elif available:
            result[key] = available.pop(0)
        else:
            result[key] = _hash_voice(key, pool)
    return result
