"""
Store error classification for datagate.

Driver errors are mapped through a fixed lookup to a descriptive category
before they surface. PostgreSQL drivers expose a SQLSTATE code (psycopg2:
`pgcode`, psycopg 3: `sqlstate`); SQLite only exposes a generic error name,
so a small message table is consulted for it. Unmapped errors keep their raw
code under the "unknown" category.
"""

from sqlalchemy.exc import SQLAlchemyError

from datagate.errors import StoreExecutionError

UNKNOWN_CATEGORY = "unknown"

SQLSTATE_CATEGORIES: dict[str, str] = {
    "42P01": "missing_relation",
    "42703": "missing_column",
    "42601": "syntax_error",
    "42501": "insufficient_privilege",
    "28P01": "authentication_failed",
    "28000": "authentication_failed",
    "23505": "unique_violation",
    "23503": "foreign_key_violation",
    "25006": "read_only_transaction",
    "57014": "statement_timeout",
}

CATEGORY_DESCRIPTIONS: dict[str, str] = {
    "missing_relation": "Table or view does not exist",
    "missing_column": "Column does not exist",
    "syntax_error": "SQL syntax error",
    "insufficient_privilege": "Permission denied",
    "authentication_failed": "Authentication failed",
    "unique_violation": "Unique constraint violation",
    "foreign_key_violation": "Foreign key constraint violation",
    "read_only_transaction": "Write attempted in a read-only transaction",
    "statement_timeout": "Statement cancelled by the store's timeout",
    UNKNOWN_CATEGORY: "Database error",
}

# Substring -> category, checked when the driver gives no usable code
MESSAGE_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("no such table", "missing_relation"),
    ("no such column", "missing_column"),
    ("syntax error", "syntax_error"),
    ("readonly database", "read_only_transaction"),
    ("unique constraint failed", "unique_violation"),
    ("foreign key constraint failed", "foreign_key_violation"),
)


def error_code(exc: BaseException) -> str | None:
    """Extract the raw driver error code, if the driver provides one."""
    orig = getattr(exc, "orig", None) or exc
    for attr in ("pgcode", "sqlstate", "sqlite_errorname"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return None


def categorize(code: str | None, message: str) -> str:
    """Map a driver code (or, failing that, its message) to a category."""
    if code in SQLSTATE_CATEGORIES:
        return SQLSTATE_CATEGORIES[code]
    lowered = message.lower()
    for needle, category in MESSAGE_CATEGORIES:
        if needle in lowered:
            return category
    return UNKNOWN_CATEGORY


def classify_store_error(exc: BaseException, environment: str = "") -> StoreExecutionError:
    """
    Wrap a driver or SQLAlchemy error in a StoreExecutionError.

    Args:
        exc: The exception raised while executing a statement
        environment: Environment the statement ran against

    Returns:
        StoreExecutionError with category and raw code filled in
    """
    orig = getattr(exc, "orig", None) if isinstance(exc, SQLAlchemyError) else None
    message = str(orig if orig is not None else exc).strip()
    code = error_code(exc)
    category = categorize(code, message)
    description = CATEGORY_DESCRIPTIONS[category]
    return StoreExecutionError(
        message=f"{description}: {message}" if message else description,
        environment=environment,
        category=category,
        sqlstate=code,
        underlying_error=message,
    )
