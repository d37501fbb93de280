"""All magic numbers and configuration constants."""

# Segment formatting
MERGE_THRESHOLD_SECONDS = 0.7       # max gap between same-speaker segments to merge
MAX_CHARS_PER_SEGMENT = 350         # merge cap for Latin-script languages
MAX_CHARS_PER_SEGMENT_NON_LATIN = 175  # merge cap for non-Latin-script languages
SEGMENT_SPLIT_THRESHOLD = 500       # chars, split utterances longer than this
SEGMENT_ABSOLUTE_MAX_CHARS = 4000   # chars, any merged segment this long is fatal

# Timing adaptation
MIN_SPEED_FACTOR = 0.9              # below this the clip is too short
MAX_SPEED_FACTOR = 1.15             # above this the clip is too long
MAX_REFORMULATION_ROUNDS = 2        # rewrite + resynthesis rounds per segment
FINE_CORRECTION_LOW_BAND = (0.8, 0.9)
FINE_CORRECTION_HIGH_BAND = (1.1, 1.2)
FINE_CORRECTION_ACCEPT_BAND = (0.9, 1.1)   # exclusive bounds
REWRITE_ALLOWED_BELOW_FACTOR = 0.75  # lengthening may change wording below this
REWRITE_ALLOWED_ABOVE_GAP = 2.0      # ...or when this many seconds are missing
BREAK_TAG_MIN_SECONDS = 0.8          # shorter pauses are punctuation only
PAUSE_THRESHOLD_SECONDS = 0.5        # gap at which neighbour text stops being context

# Audio utility layer
MIN_PLAYBACK_SPEED = 0.5
MAX_PLAYBACK_SPEED = 2.0
SILENCE_EPSILON_SECONDS = 0.001     # gaps at or below this are not filled
FRAME_RATE = 44100
SILENCE_THRESHOLD_DB = -50.0         # trim_silence floor
SILENCE_CHUNK_MS = 10

# Collaborators
MAX_SIMULTANEOUS_TTS = 1
MAX_SIMULTANEOUS_TRANSLATIONS = 10
TTS_RETRY_COUNT = 3                 # max attempts per TTS request
TTS_RETRY_DELAY = 10.0              # seconds, fixed delay between attempts
TTS_RATE = "+0%"                    # edge-tts base speech rate
TTS_CONTEXT_REQUEST_IDS = 3         # rolling window of previous request ids
REWRITE_ATTEMPTS = 3                # retry while collaborator echoes its input
REWRITE_RETRY_COUNT = 2             # attempts per OpenAI request
REWRITE_RETRY_DELAY = 1.0
OPENAI_MODEL = "gpt-4o-mini"
OPENAI_TEMPERATURE = 0.5
OPENAI_MAX_TOKENS = 8000

OUTPUT_DIR = "output"
VERSION = "0.1.0"
