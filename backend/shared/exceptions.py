"""Error taxonomy shared by the extraction, synthesis and composition stages."""


class DeckCastError(Exception):
    """Base class for all pipeline errors."""


class FatalExtractionError(DeckCastError):
    """The presentation package is unusable (missing manifests, malformed XML, rasterizer failure)."""


class PartialExtractionWarning(DeckCastError):
    """A single slide's notes could not be read; the slide falls back to sentinel text."""


class SynthesisError(DeckCastError):
    """Base class for speech synthesis failures."""


class SynthesisTransientError(SynthesisError):
    """Timeout or transport failure. Retried until the attempt budget is exhausted."""


class SynthesisConfigError(SynthesisError):
    """Missing credentials or unsupported engine. Never retried."""


class SubtitleError(DeckCastError):
    """Subtitle could not be burned onto a slide image."""


class CompositionError(DeckCastError):
    """Probe, clip encoding or concatenation failed."""


class JobFatalError(DeckCastError):
    """A stage failure that terminates a render job."""


class JobNotFoundError(DeckCastError):
    """No working directory exists for the requested job."""


class JobConflictError(DeckCastError):
    """A render for this job id is already pending or processing."""
