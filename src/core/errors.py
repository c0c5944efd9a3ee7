"""Error types surfaced to callers of the recommendation core.

AI-path failures never appear here: they are recovered inside the
orchestrator and only show up in logs and in ``fallback_reason``.
"""


class InvalidQueryError(ValueError):
    """The caller's query or limit is unusable (empty, too long, limit < 1)."""


class CatalogUnavailableError(RuntimeError):
    """The course catalog collaborator could not be reached or queried."""


class UserNotFoundError(LookupError):
    """No profile exists for the requested user id."""
