"""Cache-control policy models.

A ``CachePolicy`` maps path prefixes to caching rules.  Resolution is
longest-prefix-match; paths that match nothing get ``NO_CACHE_HEADER``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

NO_CACHE_HEADER = "no-cache, no-store, must-revalidate"


class CacheRule(BaseModel):
    """Caching rule for one class of objects (e.g. hashed bundles, HTML)."""

    model_config = ConfigDict(frozen=True)

    max_age: int = Field(default=0, ge=0)
    revalidate: bool = False
    immutable: bool = False

    def header(self) -> str:
        """Render the Cache-Control header value for this rule."""
        parts = ["public", f"max-age={self.max_age}"]
        if self.revalidate:
            parts.append("must-revalidate")
        if self.immutable:
            parts.append("immutable")
        return ", ".join(parts)


class CachePolicy(BaseModel):
    """Path-prefix -> CacheRule.  Static for a given environment.

    An empty-string prefix acts as a catch-all that any longer prefix
    overrides.
    """

    model_config = ConfigDict(frozen=True)

    rules: dict[str, CacheRule] = {}
    default_header: str = NO_CACHE_HEADER

    def match(self, path: str) -> str | None:
        """Return the longest rule prefix matching ``path``, or None."""
        best: str | None = None
        for prefix in self.rules:
            if path.startswith(prefix) and (best is None or len(prefix) > len(best)):
                best = prefix
        return best

    def resolve(self, path: str) -> str:
        """Return the Cache-Control header value for ``path``."""
        prefix = self.match(path)
        if prefix is None:
            return self.default_header
        return self.rules[prefix].header()
