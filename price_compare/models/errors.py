# price_compare/models/errors.py

"""Exception taxonomy for the comparison core.

Transport and source errors are recovered per source by the orchestrator;
``UnknownSource`` and ``NoAllowedSources`` are configuration errors that
propagate to the caller.
"""


class PriceCompareError(Exception):
    """Base class for all price_compare errors."""


class FetchError(PriceCompareError):
    """A fetch failed after exhausting the transport fallback chain."""

    def __init__(
        self,
        message: str,
        light_error: str | None = None,
        heavy_error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.light_error = light_error
        self.heavy_error = heavy_error


TransportError = FetchError


class SourceUnavailable(PriceCompareError):
    """A source could not be searched at all."""

    def __init__(self, source_id: str, cause: Exception) -> None:
        super().__init__(f"{source_id} unavailable: {cause}")
        self.source_id = source_id
        self.cause = cause


class UnknownSource(PriceCompareError):
    """The requested source id is not configured or not allowed."""

    def __init__(self, source_id: str, available: list[str]) -> None:
        super().__init__(
            f"Unknown source '{source_id}' "
            f"(available: {', '.join(available) or 'none'})"
        )
        self.source_id = source_id
        self.available = available


class NoAllowedSources(PriceCompareError):
    """None of the configured sources is on the allow-list."""
