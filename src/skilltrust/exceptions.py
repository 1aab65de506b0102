"""Custom exceptions for SkillTrust."""


class SkillTrustError(Exception):
    """Base exception for all SkillTrust errors."""


class ParseError(SkillTrustError):
    """Raised when skill content cannot be parsed at all."""


class RuleLoadError(SkillTrustError):
    """Raised when rules YAML cannot be loaded or is malformed."""


class AnalyzerError(SkillTrustError):
    """Raised when an analyzer encounters an unexpected failure."""


class ConfigError(SkillTrustError):
    """Raised when configuration is invalid."""


class ScanTargetError(SkillTrustError):
    """Raised when a scan target path does not exist or is unsupported."""


class FetchError(SkillTrustError):
    """Base class for content retrieval failures."""

    retryable = False
    retry_after: float | None = None


class BlockedUrlError(FetchError):
    """Raised when a URL violates the outbound request policy (SSRF guard)."""


class ResponseTooLargeError(FetchError):
    """Raised when a response exceeds its size cap."""


class ArchiveError(FetchError):
    """Raised when a downloaded archive is malformed or exceeds its bounds."""


class HttpStatusError(FetchError):
    """Raised for non-success HTTP responses."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code == 429 or 500 <= self.status_code <= 599


class TransientFetchError(FetchError):
    """Raised for timeouts and transient network failures."""

    retryable = True
