"""Exception types raised by the pipeline and its collaborators."""


class CaptionTranslatorError(Exception):
    """Base class for all errors raised by this package."""


class VideoProbeError(CaptionTranslatorError):
    """The input video could not be read (corrupt or unsupported)."""


class RenderError(CaptionTranslatorError):
    """Frame extraction or subtitle burn-in failed."""


class TranslationError(CaptionTranslatorError):
    """The translation collaborator failed or returned an unusable response."""


class FontError(CaptionTranslatorError):
    """A font could not be downloaded or is not a valid font file."""


class UnsupportedMediaError(CaptionTranslatorError):
    """An upload has an unsupported type or exceeds the size limit."""
