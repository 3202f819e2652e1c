"""Exception hierarchy for catalog encoding.

Fatal errors (configuration and input catalog problems) abort the run before any work is
done. Everything raised while handling a single media item is caught by the orchestrator,
logged, and recorded by marking the entry unpublished.
"""


class CatalogEncoderError(Exception):
    """Base exception for catalog encoder errors."""

    pass


class ConfigError(CatalogEncoderError):
    """Invalid command line or format spec input."""

    pass


class CatalogError(CatalogEncoderError):
    """The input catalog is missing or malformed."""

    pass


class MediaMethodError(CatalogError):
    """A media record uses a retrieval method other than fetch."""

    pass


class PreviousCatalogError(CatalogEncoderError):
    """The previous output catalog could not be read or parsed."""

    pass


class FetchError(CatalogEncoderError):
    """A source could not be downloaded."""

    pass


class StoreError(CatalogEncoderError):
    """An output could not be written to its destination URL."""

    pass


class EncodeError(CatalogEncoderError):
    """The transcoder failed to produce an output file."""

    pass


class ProbeError(CatalogEncoderError):
    """Output metadata could not be determined."""

    pass


class ThumbnailError(CatalogEncoderError):
    """The thumbnail extractor failed."""

    pass
