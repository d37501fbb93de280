"""Exception hierarchy for the dubbing pipeline."""


class DubbingError(Exception):
    """Base class for every error raised by dub_producer."""


class InputValidationError(DubbingError):
    """Malformed input: the whole run must stop."""


class FormattingError(InputValidationError):
    """Transcription could not be shaped into usable segments."""


class SegmentError(InputValidationError):
    """A segment violates its timing invariants."""


class CollaboratorError(DubbingError):
    """An external service failed after its own retries."""


class SynthesisError(CollaboratorError):
    pass


class ProtectedVoiceError(SynthesisError):
    """The voice cannot be used for synthesis. Never retried."""


class InvalidMediaError(SynthesisError):
    """The service answered with audio that cannot be decoded. Never retried."""


class RewriteError(CollaboratorError):
    pass


class AudioUtilityError(DubbingError):
    """Missing file or codec failure in the audio layer."""
