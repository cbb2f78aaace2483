"""
Security tests for analysis code.

These tests verify that analysis code:
1. Cannot name host facilities the Code Guard blocks
2. Cannot reach them through the restricted builtins even with the guard bypassed
3. Cannot mutate the caller's rows
4. Always comes back as data, never as a raised exception

The evaluation context shares the host process, so these are checks on
the speed bumps, not proof of isolation.
"""

import pytest

from datagate.engine import ExecutionEngine
from datagate.guards import CodeGuard
from datagate.sandbox import run_analysis_code
from datagate.schema import RejectReason, ResultStatus

ROWS = [{"id": 1, "secret_col": "x"}]


class TestGuardBlocksEscapes:
    """Classic escape attempts are stopped by the Code Guard."""

    @pytest.mark.parametrize(
        "code",
        [
            "().__class__.__bases__[0].__subclasses__()",
            "[c for c in ().__class__.__base__.__subclasses__()]",
            "__builtins__['open']('/etc/passwd')",
            "pd.io.common.os.environ",
            "getattr(pd, 'read_' + 'sql')",
            "pd.read_pickle('payload.pkl')",
            "pd.DataFrame(data).to_sql('users', con)",
            "from os import system",
            "import subprocess",
            "json.loads(open('/etc/passwd').read())",
            "datetime.sys.modules",
            "pd.io.sql.read_sql_query('select 1', con)",
            "statistics.sys.exit()",
            "urllib.request.urlopen('http://example.com')",
            "pd.read_json('https://example.com/data.json')",
            "return [r['password'] for r in data]",
            "pd.io.common.os.system('id')",
            "pd.io.common.os.popen('id').read()",
            "pd.io.common.os.spawnlp(0, 'sh', 'sh')",
            "pd.read_table('/etc/hostname', header=None).iloc[0, 0]",
            "pd.read_xml(path)",
            "pd.read_hdf(path)",
            "pd.read_feather(path)",
            "pd.DataFrame(data).to_csv(path)",
            "pd.DataFrame(data).to_parquet(target)",
            "pd.DataFrame(data).to_clipboard()",
        ],
    )
    def test_blocked(self, code: str) -> None:
        verdict = CodeGuard().classify(code)
        assert not verdict.accepted
        assert verdict.reason == RejectReason.BLOCKED_PATTERN

    def test_blocked_before_any_query(self, engine: ExecutionEngine) -> None:
        result = engine.run_analysis(
            "select * from users limit 10",
            "().__class__.__bases__[0].__subclasses__()",
        )
        assert result.status == ResultStatus.REJECTED
        assert result.row_set is None

    def test_shell_through_pandas_never_runs(self, engine: ExecutionEngine, temp_dir) -> None:
        marker = temp_dir / "marker"
        result = engine.run_analysis(
            "select * from users limit 1",
            f"pd.io.common.os.system('touch {marker}')",
        )
        assert result.status == ResultStatus.REJECTED
        assert result.verdict.detail == "os module access"
        assert not marker.exists()

    def test_file_read_through_pandas_rejected(self, engine: ExecutionEngine) -> None:
        result = engine.run_analysis(
            "select * from users limit 1",
            "pd.read_table('/etc/hostname', header=None).iloc[0, 0]",
        )
        assert result.status == ResultStatus.REJECTED
        assert result.verdict.detail == "file readers are not allowed"


class TestRestrictedBuiltins:
    """Even when the guard is skipped, the evaluation namespace is narrow."""

    @pytest.mark.parametrize(
        "code",
        [
            "open('/etc/passwd').read()",
            "__import__('os').getcwd()",
            "eval('1 + 1')",
            "exec('x = 1')",
            "globals()",
            "getattr(data, 'append')",
            "breakpoint()",
            "input()",
            "print('x')",
        ],
    )
    def test_unavailable(self, code: str) -> None:
        result = run_analysis_code(code, ROWS)
        assert set(result) == {"error"}
        assert result["error"].startswith("NameError")

    def test_import_statement_fails(self) -> None:
        result = run_analysis_code("import os\nreturn os.getcwd()", ROWS)
        assert set(result) == {"error"}
        assert "ImportError" in result["error"]

    def test_host_globals_not_visible(self) -> None:
        result = run_analysis_code("logger", ROWS)
        assert result == {"error": "NameError: name 'logger' is not defined"}


class TestIsolationOfRows:
    def test_rows_not_mutated(self) -> None:
        rows = [{"id": 1}]
        run_analysis_code("data.clear()", rows)
        assert rows == [{"id": 1}]

    def test_engine_rows_not_mutated(self, engine: ExecutionEngine) -> None:
        result = engine.run_analysis(
            "select id from users limit 3",
            "data[0].update({'id': -1})\nreturn data[0]['id']",
        )
        assert result.analysis == -1
        assert result.row_set.rows[0]["id"] == 1


class TestFailuresAreData:
    @pytest.mark.parametrize(
        "code",
        [
            "raise ValueError('bad')",
            "1 / 0",
            "return (",
            "undefined_name",
            "[][0]",
        ],
    )
    def test_returned_as_error(self, engine: ExecutionEngine, code: str) -> None:
        result = engine.run_analysis("select * from users limit 10", code)
        assert result.status == ResultStatus.SUCCESS
        assert set(result.analysis) == {"error"}
