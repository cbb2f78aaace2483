"""
Query Guard for datagate.

The Query Guard is the fast capability gate in front of every statement.
It classifies SQL text lexically; it does not parse it.

How it works:
    1. Trim and lower-case the text
    2. Require a read-only leading keyword (select, with, explain)
    3. Require the substring "limit" somewhere in the text

Known Limitations:
    The bound check is a substring test, not a clause check. A quoted
    literal such as `select 'no limit' from t` passes. The backing store's
    own permissions are the real defense; this gate only keeps obvious
    writes and unbounded scans away from it.

    A read-only prefix does not make a statement read-only on every store:
    `with x as (delete ... returning *) select ...` passes on PostgreSQL.
    Run environments under a role without write grants.

    Only the prefix is checked, so several statements in one string pass as
    long as the first is a read. psycopg2 sends such a string as one batch,
    and `select 1 limit 1; commit; begin read write; ...` opens a writable
    transaction despite the read-only session default. SQLite refuses
    multi-statement strings outright.
"""

from datagate.schema import HARD_CEILING, GuardVerdict, RejectReason

READ_ONLY_PREFIXES = ("select", "with", "explain")
BOUND_TOKEN = "limit"


class QueryGuard:
    """
    Lexical classifier for read-only, bounded SQL.

    Usage:
        guard = QueryGuard()
        verdict = guard.classify("select * from users limit 10")
        if verdict.accepted:
            ...

    Attributes:
        hard_ceiling: Largest row cap any caller may request
    """

    def __init__(self, hard_ceiling: int = HARD_CEILING) -> None:
        self.hard_ceiling = hard_ceiling

    def classify(self, text: str) -> GuardVerdict:
        """
        Classify SQL text.

        Args:
            text: The raw SQL text as supplied by the caller

        Returns:
            GuardVerdict: accepted, or rejected with not_read_only / missing_bound
        """
        if not isinstance(text, str):
            return GuardVerdict.reject(RejectReason.NOT_READ_ONLY, "Query must be a string")

        normalized = text.strip().lower()

        if not normalized.startswith(READ_ONLY_PREFIXES):
            return GuardVerdict.reject(
                RejectReason.NOT_READ_ONLY,
                "Only SELECT, WITH, and EXPLAIN queries are allowed",
            )

        if BOUND_TOKEN not in normalized:
            return GuardVerdict.reject(
                RejectReason.MISSING_BOUND,
                "All queries must include a LIMIT clause",
            )

        return GuardVerdict.accept()

    def check_cap(self, cap: int) -> GuardVerdict:
        """
        Check a requested row cap against the hard ceiling.

        A cap above the ceiling is rejected outright, never clamped.
        """
        if isinstance(cap, bool) or not isinstance(cap, int):
            return GuardVerdict.reject(RejectReason.INVALID_CAP, f"Cap must be an integer, got {cap!r}")
        if cap < 1:
            return GuardVerdict.reject(RejectReason.INVALID_CAP, f"Cap must be at least 1, got {cap}")
        if cap > self.hard_ceiling:
            return GuardVerdict.reject(
                RejectReason.CAP_EXCEEDED,
                f"Limit cannot exceed {self.hard_ceiling} rows",
            )
        return GuardVerdict.accept()
