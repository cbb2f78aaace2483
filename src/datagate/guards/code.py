"""
Code Guard for datagate.

Scans analysis code against a fixed, ordered denylist before it is
evaluated. The first matching pattern wins.

Security Note:
    This is a literal/regex denylist, not static analysis. It cannot see
    through string-built names, aliasing or alternate attribute access, and
    it runs in the same process as the host. It is a speed bump in front of
    the restricted evaluation context in datagate.sandbox, not a boundary on
    its own. Patterns match anywhere in the text, including comments and
    string literals.
"""

import re
from dataclasses import dataclass

from datagate.schema import GuardVerdict, RejectReason


@dataclass(frozen=True)
class BlockedPattern:
    """A denylist entry: compiled regex plus the name reported on a match."""

    pattern: re.Pattern
    name: str

    @classmethod
    def of(cls, regex: str, name: str) -> "BlockedPattern":
        return cls(re.compile(regex), name)


# Order matters: the first match is the reported reason.
DEFAULT_PATTERNS: tuple[BlockedPattern, ...] = (
    # Ambient process environment
    BlockedPattern.of(r"os\.environ", "os.environ access"),
    BlockedPattern.of(r"getenv", "getenv() function"),
    # Process control
    BlockedPattern.of(r"\bos\.", "os module access"),
    BlockedPattern.of(r"\.system\s*\(", "system() calls"),
    BlockedPattern.of(r"popen", "popen() calls"),
    BlockedPattern.of(r"spawn", "spawn() calls"),
    # Dynamic code construction
    BlockedPattern.of(r"\bimport\s+", "import statements"),
    BlockedPattern.of(r"__import__", "__import__() function"),
    BlockedPattern.of(r"\beval\s*\(", "eval() function"),
    BlockedPattern.of(r"\bexec\s*\(", "exec() function"),
    BlockedPattern.of(r"\bcompile\s*\(", "compile() function"),
    # Introspection and global state
    BlockedPattern.of(r"__\w+__", "dunder attribute access"),
    BlockedPattern.of(r"\bglobals\s*\(", "globals() function"),
    BlockedPattern.of(r"\blocals\s*\(", "locals() function"),
    BlockedPattern.of(r"\bvars\s*\(", "vars() function"),
    BlockedPattern.of(r"\b(?:get|set|del)attr\s*\(", "attribute reflection"),
    BlockedPattern.of(r"\bbuiltins\b", "builtins access"),
    BlockedPattern.of(r"\bsys\.", "sys module access"),
    BlockedPattern.of(r"\bsubprocess\b", "subprocess module access"),
    BlockedPattern.of(r"\bopen\s*\(", "open() function"),
    # Timers
    BlockedPattern.of(r"\bTimer\s*\(", "Timer() scheduling"),
    BlockedPattern.of(r"\bsleep\s*\(", "sleep() function"),
    BlockedPattern.of(r"\bsched\b", "sched module access"),
    BlockedPattern.of(r"\bthreading\b", "threading module access"),
    BlockedPattern.of(r"\basyncio\b", "asyncio module access"),
    # Network
    BlockedPattern.of(r"\bsocket\b", "socket access"),
    BlockedPattern.of(r"\burllib\b", "urllib access"),
    BlockedPattern.of(r"\brequests\b", "requests access"),
    BlockedPattern.of(r"http", "http is not allowed"),
    # Nested datastore access
    BlockedPattern.of(r"\.execute\s*\(", "execute() method calls"),
    BlockedPattern.of(r"\.connect\s*\(", "connect() method calls"),
    BlockedPattern.of(r"\.pool", "pool property access"),
    BlockedPattern.of(r"sqlalchemy", "sqlalchemy references"),
    BlockedPattern.of(r"psycopg", "psycopg references"),
    BlockedPattern.of(r"sqlite", "sqlite references"),
    BlockedPattern.of(r"postgres", "postgres references"),
    BlockedPattern.of(r"database", "database references"),
    BlockedPattern.of(r"read_sql", "read_sql is not allowed"),
    BlockedPattern.of(r"\bread_\w+\s*\(", "file readers are not allowed"),
    BlockedPattern.of(
        r"\bto_(?:csv|json|parquet|excel|pickle|sql|hdf|feather|orc|stata|xml|html|clipboard)\s*\(",
        "file writers are not allowed",
    ),
    # Credentials
    BlockedPattern.of(r"password", "password is not allowed"),
    BlockedPattern.of(r"secret", "secret is not allowed"),
    BlockedPattern.of(r"credential", "credential is not allowed"),
)


class CodeGuard:
    """
    Denylist scanner for analysis code.

    Usage:
        guard = CodeGuard()
        verdict = guard.classify("return len(data)")
        assert verdict.accepted

    Attributes:
        patterns: Ordered denylist; the first match is reported
    """

    def __init__(self, patterns: tuple[BlockedPattern, ...] = DEFAULT_PATTERNS) -> None:
        self.patterns = patterns

    def classify(self, code: str) -> GuardVerdict:
        """
        Classify analysis code.

        Empty code matches nothing and is accepted; it evaluates to None.

        Returns:
            GuardVerdict: accepted, or rejected with blocked_pattern and the
            matching pattern's name as detail
        """
        if not isinstance(code, str):
            return GuardVerdict.reject(RejectReason.BLOCKED_PATTERN, "analysis code must be a string")

        for entry in self.patterns:
            if entry.pattern.search(code):
                return GuardVerdict.reject(RejectReason.BLOCKED_PATTERN, entry.name)

        return GuardVerdict.accept()

    def pattern_names(self) -> list[str]:
        """Names of all blocked patterns, in evaluation order."""
        return [entry.name for entry in self.patterns]
