"""
Execution Engine for datagate.

The Engine is the orchestration layer between callers and the stores. It
coordinates between:
- Guards: Decide whether a query / analysis snippet may run at all
- Environment Registry: Supplies a pooled connection for the call
- Result Shaper: Bounds what comes back
- Sandbox: Evaluates analysis code against the shaped rows

Execution Flow (query):
    1. Classify the query and check the row cap (reject -> envelope, no I/O)
    2. Capture the environment handle once
    3. Lease a (read-only) connection and execute the text verbatim
    4. Release the connection (always), shape rows, return envelope

Execution Flow (analysis):
    Same as above, with the Code Guard checked before the lease, then the
    analysis code is evaluated against the shaped rows after the connection
    has been released.

Design Principles:
    - Nothing raises across this boundary: every outcome is an envelope
    - Guards run before any store access
    - One connection per call, released on every exit path
"""

import logging
import time
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from datagate.errors import StoreError, StoreExecutionError, UnknownEnvironmentError
from datagate.guards import CodeGuard, QueryGuard
from datagate.sandbox import run_analysis_code
from datagate.schema import (
    DEFAULT_ANALYSIS_CAP,
    DEFAULT_QUERY_CAP,
    AnalysisResult,
    GuardVerdict,
    QueryResult,
    ResultStatus,
    RowSet,
)
from datagate.shaper import shape
from datagate.store import Environment, EnvironmentRegistry, classify_store_error

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """
    Guarded query and analysis execution.

    Usage:
        engine = ExecutionEngine(registry)
        result = engine.run_query("select id from users limit 5", cap=3)
        if result.success:
            print(result.row_set.rows)

    Attributes:
        registry: Environment registry supplying pools
        query_guard: Classifier for SQL text and row caps
        code_guard: Classifier for analysis code
    """

    def __init__(
        self,
        registry: EnvironmentRegistry,
        query_guard: QueryGuard | None = None,
        code_guard: CodeGuard | None = None,
    ) -> None:
        self.registry = registry
        self.query_guard = query_guard or QueryGuard()
        self.code_guard = code_guard or CodeGuard()

    @property
    def hard_ceiling(self) -> int:
        return self.query_guard.hard_ceiling

    # =========================================================================
    # Public API
    # =========================================================================

    def run_query(
        self,
        query: str,
        cap: int = DEFAULT_QUERY_CAP,
        environment: str | None = None,
    ) -> QueryResult:
        """
        Execute a read-only, bounded query.

        Args:
            query: SQL text, executed verbatim if accepted
            cap: Maximum rows to return (must not exceed the hard ceiling)
            environment: Environment name, or None for the active one

        Returns:
            QueryResult with status success, rejected or error
        """
        start = time.perf_counter()

        verdict = self._check_query(query, cap)
        if not verdict.accepted:
            return self._rejected(QueryResult, verdict, start)

        try:
            env = self.registry.resolve(environment)
            row_set = self._fetch(env, query, cap)
        except (UnknownEnvironmentError, StoreError) as e:
            return self._failed(QueryResult, e, start, environment)
        except Exception as e:
            logger.exception("Unexpected failure running query")
            return self._failed(QueryResult, e, start, environment)

        return QueryResult(
            status=ResultStatus.SUCCESS,
            environment=env.name,
            row_set=row_set,
            verdict=verdict,
            duration_ms=_elapsed_ms(start),
        )

    def run_analysis(
        self,
        query: str,
        code: str,
        cap: int = DEFAULT_ANALYSIS_CAP,
        environment: str | None = None,
    ) -> AnalysisResult:
        """
        Execute a read-only query and evaluate analysis code over its rows.

        Both guards run before the store is touched. Evaluation errors are
        returned inside `analysis` as {"error": message}.

        Args:
            query: SQL text, executed verbatim if accepted
            code: Python expression or function body using `data` and `pd`
            cap: Maximum rows handed to the analysis code
            environment: Environment name, or None for the active one

        Returns:
            AnalysisResult with status success, rejected or error
        """
        start = time.perf_counter()

        verdict = self._check_query(query, cap)
        if verdict.accepted:
            verdict = self.code_guard.classify(code)
        if not verdict.accepted:
            return self._rejected(AnalysisResult, verdict, start)

        try:
            env = self.registry.resolve(environment)
            row_set = self._fetch(env, query, cap)
        except (UnknownEnvironmentError, StoreError) as e:
            return self._failed(AnalysisResult, e, start, environment)
        except Exception as e:
            logger.exception("Unexpected failure running analysis query")
            return self._failed(AnalysisResult, e, start, environment)

        analysis = run_analysis_code(code, row_set.rows)
        if isinstance(analysis, dict) and set(analysis) == {"error"}:
            logger.info("Analysis code failed on %s: %s", env.name, analysis["error"])

        return AnalysisResult(
            status=ResultStatus.SUCCESS,
            environment=env.name,
            row_set=row_set,
            verdict=verdict,
            analysis=analysis,
            duration_ms=_elapsed_ms(start),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_query(self, query: str, cap: int) -> GuardVerdict:
        verdict = self.query_guard.classify(query)
        if verdict.accepted:
            verdict = self.query_guard.check_cap(cap)
        return verdict

    def _fetch(self, env: Environment, query: str, cap: int) -> RowSet:
        """
        Lease a connection, run the statement, and shape the rows.

        The lease context manager returns the connection on every path,
        including when execution or row conversion raises.
        """
        with self.registry.lease(env) as conn:
            try:
                result = conn.exec_driver_sql(query)
                if result.returns_rows:
                    columns = list(result.keys())
                    rows = [dict(row) for row in result.mappings()]
                else:
                    columns, rows = [], []
            except SQLAlchemyError as e:
                raise classify_store_error(e, env.name) from e

        return shape(
            rows,
            cap,
            self.hard_ceiling,
            total_available=len(rows),
            columns=columns,
        )

    def _rejected(self, result_cls: type[QueryResult], verdict: GuardVerdict, start: float) -> Any:
        rejection = verdict.to_error()
        logger.info("Request rejected: %s", rejection.message)
        return result_cls(
            status=ResultStatus.REJECTED,
            verdict=verdict,
            error=verdict.detail or verdict.describe(),
            error_category="guard",
            error_code=verdict.reason.value,
            suggestion=rejection.suggestion,
            duration_ms=_elapsed_ms(start),
        )

    def _failed(
        self,
        result_cls: type[QueryResult],
        error: Exception,
        start: float,
        environment: str | None,
    ) -> Any:
        if isinstance(error, StoreError):
            logger.warning("Store error on %s: %s", error.environment, error.message)
            return result_cls(
                status=ResultStatus.ERROR,
                environment=error.environment or environment,
                error=error.message,
                error_category=error.category,
                error_code=error.sqlstate if isinstance(error, StoreExecutionError) else None,
                duration_ms=_elapsed_ms(start),
            )
        if isinstance(error, UnknownEnvironmentError):
            return result_cls(
                status=ResultStatus.ERROR,
                environment=environment,
                error=error.message,
                error_category="unknown_environment",
                duration_ms=_elapsed_ms(start),
            )
        return result_cls(
            status=ResultStatus.ERROR,
            environment=environment,
            error=f"{type(error).__name__}: {error}",
            error_category="internal",
            duration_ms=_elapsed_ms(start),
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
