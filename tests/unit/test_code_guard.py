"""
Unit tests for the Code Guard.

Tests cover:
- Accepting ordinary analysis code
- Each family of blocked patterns
- First-match ordering
"""

import pytest

from datagate.guards import DEFAULT_PATTERNS, BlockedPattern, CodeGuard
from datagate.schema import RejectReason


@pytest.fixture
def guard() -> CodeGuard:
    return CodeGuard()


class TestAccepts:
    """Ordinary analysis code passes."""

    @pytest.mark.parametrize(
        "code",
        [
            "len(data)",
            "pd.DataFrame(data).describe()",
            "df = pd.DataFrame(data)\nreturn df.groupby('role')['score'].mean()",
            "sum(row['score'] for row in data) / len(data)",
            "statistics.median([row['score'] for row in data])",
            "pd.DataFrame(data).to_dict(orient='records')",
            "[row['pos'] for row in data if row['cost'] > 0]",
        ],
    )
    def test_accepts(self, guard: CodeGuard, code: str) -> None:
        assert guard.classify(code).accepted


class TestRejects:
    """Blocked patterns reject with the pattern name as detail."""

    @pytest.mark.parametrize(
        ("code", "name"),
        [
            ("os.environ['HOME']", "os.environ access"),
            ("import os", "import statements"),
            ("__import__('os')", "__import__() function"),
            ("eval('1 + 1')", "eval() function"),
            ("exec('x = 1')", "exec() function"),
            ("compile('1', 'f', 'eval')", "compile() function"),
            ("data.__class__", "dunder attribute access"),
            ("globals()", "globals() function"),
            ("getattr(pd, 'read_sql')", "attribute reflection"),
            ("open('/etc/passwd').read()", "open() function"),
            ("Timer(1, print).start()", "Timer() scheduling"),
            ("socket.create_connection(('x', 80))", "socket access"),
            ("requests.get('x')", "requests access"),
            ("'https://example.com'", "http is not allowed"),
            ("conn.execute('drop table users')", "execute() method calls"),
            ("engine.pool", "pool property access"),
            ("pd.read_sql('select 1', None)", "read_sql is not allowed"),
            ("pd.read_csv('x.csv')", "file readers are not allowed"),
            ("pd.DataFrame(data).to_csv('out.csv')", "file writers are not allowed"),
            ("pd.DataFrame(data).to_csv(path)", "file writers are not allowed"),
            ("df.to_feather(target)", "file writers are not allowed"),
            ("pd.read_table('/etc/hostname', header=None)", "file readers are not allowed"),
            ("pd.read_fwf(name)", "file readers are not allowed"),
            ("pd.io.common.os.system('id')", "os module access"),
            ("shell.system('id')", "system() calls"),
            ("pd.io.common.subprocess_popen('id')", "popen() calls"),
            ("handle.spawnv(0, 'sh', [])", "spawn() calls"),
            ("[r['password'] for r in data]", "password is not allowed"),
            ("data[0]['secret']", "secret is not allowed"),
        ],
    )
    def test_rejects(self, guard: CodeGuard, code: str, name: str) -> None:
        verdict = guard.classify(code)
        assert not verdict.accepted
        assert verdict.reason == RejectReason.BLOCKED_PATTERN
        assert verdict.detail == name

    def test_matches_inside_comments(self, guard: CodeGuard) -> None:
        """Patterns match anywhere, including comments."""
        verdict = guard.classify("return len(data)  # os.environ['SECRET']")
        assert verdict.detail == "os.environ access"

    def test_first_match_wins(self, guard: CodeGuard) -> None:
        """When several patterns match, the earliest in order is reported."""
        verdict = guard.classify("import socket")
        assert verdict.detail == "import statements"

    @pytest.mark.parametrize("code", ["", "   \n"])
    def test_empty_code_accepted(self, guard: CodeGuard, code: str) -> None:
        """Blank code matches no pattern."""
        assert guard.classify(code).accepted

    def test_non_string_rejected(self, guard: CodeGuard) -> None:
        verdict = guard.classify(None)  # type: ignore[arg-type]
        assert verdict.reason == RejectReason.BLOCKED_PATTERN
        assert verdict.detail == "analysis code must be a string"


class TestPatterns:
    """Tests for the pattern table itself."""

    def test_pattern_names_in_order(self, guard: CodeGuard) -> None:
        names = guard.pattern_names()
        assert names[0] == "os.environ access"
        assert names == [p.name for p in DEFAULT_PATTERNS]

    def test_custom_patterns(self) -> None:
        guard = CodeGuard(patterns=(BlockedPattern.of(r"\bdrop\b", "drop keyword"),))
        assert guard.classify("import os").accepted
        assert guard.classify("x = 'drop'").detail == "drop keyword"

    def test_blocked_pattern_is_frozen(self) -> None:
        entry = BlockedPattern.of(r"x", "x")
        with pytest.raises(AttributeError):
            entry.name = "y"  # type: ignore[misc]
