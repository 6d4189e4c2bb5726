# pulse_feed/errors.py

"""Error taxonomy shared by the lookup and generation pipelines.

Every error carries a stable ``code`` so a gateway can map it to a
distinguishable response instead of a bare 500.
"""


class PulseFeedError(Exception):
    """Base class for all pulse_feed failures."""

    code: str = "pulse_feed_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigurationError(PulseFeedError):
    """Required configuration (usually credentials) is missing."""

    code = "configuration_error"


class ProviderUnavailable(ConfigurationError):
    """An external provider cannot be used because it is not configured."""

    code = "provider_unavailable"


class ProviderTransientError(PulseFeedError):
    """Non-2xx, timeout or malformed payload from an external provider."""

    code = "provider_error"


class NoResultsError(ProviderTransientError):
    """The retailer provider returned zero usable listings."""

    code = "no_results"


class PayloadValidationError(PulseFeedError):
    """An AI payload failed schema validation."""

    code = "validation_error"


class GenerationFailed(PulseFeedError):
    """All AI description attempts were exhausted."""

    code = "generation_failed"
