"""
Pydantic models for the media caching and warmup services.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cinevault.models.enums import TmdbSize, WarmupScope


class RemoteMediaDescriptor(BaseModel):
    """Identifies one image at the TMDb origin.

    Attributes
    ----------
    file_path : str
        TMDb file path (e.g. ``"/abc.jpg"``). Leading slashes are stripped.
    size : TmdbSize
        Size variant (default ``original``).
    content_type_hint : str | None
        Content type to use when the origin sends none.
    long_cache : bool
        Whether the stored object gets an immutable one-year cache-control.
    """

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., min_length=1)
    size: TmdbSize = TmdbSize.ORIGINAL
    content_type_hint: str | None = None
    long_cache: bool = True

    @field_validator("file_path")
    @classmethod
    def strip_leading_slashes(cls, v: str) -> str:
        """Remove leading slashes so the path joins cleanly."""
        cleaned = v.strip().lstrip("/")
        if not cleaned:
            raise ValueError("file_path must contain a file name")
        return cleaned


class ObjectHead(BaseModel):
    """Result of a HEAD request against the object store.

    Attributes
    ----------
    key : str
        Object key.
    content_type : str | None
        Stored ``Content-Type``.
    content_length : int | None
        Body size in bytes.
    etag : str | None
        Entity tag reported by the store.
    cache_control : str | None
        Stored ``Cache-Control`` directive.
    metadata : dict[str, str]
        User metadata (lower-cased keys, e.g. ``cv-sha256``).
    """

    key: str
    content_type: str | None = None
    content_length: int | None = None
    etag: str | None = None
    cache_control: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class WarmOptions(BaseModel):
    """Per-run options for the CDN warmup engine.

    Attributes
    ----------
    timeout_ms : int
        Timeout for one GET attempt in milliseconds.
    retries : int
        Extra attempts after the first for 429/5xx/timeouts.
    backoff_base_ms : int
        Base delay for exponential backoff in milliseconds.
    skip_recently_warmed_ttl_seconds : int
        When > 0, URLs warmed within this window are skipped and
        successful warms are remembered for this long.
    """

    timeout_ms: int = Field(default=8000, ge=1)
    retries: int = Field(default=2, ge=0)
    backoff_base_ms: int = Field(default=500, ge=0)
    skip_recently_warmed_ttl_seconds: int = Field(default=0, ge=0)


class WarmResult(BaseModel):
    """Result of a CDN warmup call.

    Attributes
    ----------
    requested : int
        Number of keys passed in (before deduplication).
    warmed : int
        URLs that returned 2xx or 304.
    skipped : int
        URLs skipped because they were warmed recently.
    failed : int
        URLs that failed after retries or with a non-retryable status.
    unresolved : int
        Distinct keys that have no absolute public URL.
    """

    requested: int = 0
    warmed: int = 0
    skipped: int = 0
    failed: int = 0
    unresolved: int = 0

    @property
    def attempted(self) -> int:
        """Number of URLs that went through the worker pool."""
        return self.warmed + self.skipped + self.failed


class WarmupRunResult(BaseModel):
    """Result of a scheduled or cron-triggered warmup job.

    Attributes
    ----------
    warmed : int
        Number of non-empty image keys submitted across all scopes.
    scope : WarmupScope
        Scope that was processed.
    limit : int
        Rows fetched per entity type.
    concurrency : int
        Worker pool size used.
    errors : list[str]
        One ``"<scope>: <message>"`` entry per failed scope.
    """

    warmed: int = 0
    scope: WarmupScope = WarmupScope.ALL
    limit: int = 400
    concurrency: int = 10
    errors: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every scope completed without error."""
        return not self.errors
