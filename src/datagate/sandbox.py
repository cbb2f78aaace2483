"""
Evaluation context for analysis code.

Analysis code is Python that operates on the shaped rows of a query. It is
either a single expression:

    len(data)
    pd.DataFrame(data).describe()

or a function body that returns a value:

    df = pd.DataFrame(data)
    return df.groupby("category")["amount"].sum()

Bindings:
    data        list of row dicts (a private copy of the shaped RowSet)
    pd          pandas
    math, statistics, datetime, json
    a restricted builtins table (no open, import, getattr, eval, print, ...)

Security Note:
    Code runs in the host process with no CPU, memory or time limit. A
    pathological expression can block the calling thread indefinitely.
    Restricted builtins plus the CodeGuard denylist narrow what is reachable
    but do not make this a sandbox in the isolation sense.
"""

import copy
import datetime
import json
import math
import statistics
import textwrap
from typing import Any, Sequence

import pandas as pd

from datagate.errors import EvaluationError
from datagate.shaper import normalize_analysis

ANALYSIS_FILENAME = "<analysis>"
ANALYSIS_FUNCTION = "_analysis"

SAFE_BUILTINS: dict[str, Any] = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "enumerate": enumerate,
    "filter": filter,
    "float": float,
    "int": int,
    "isinstance": isinstance,
    "len": len,
    "list": list,
    "map": map,
    "max": max,
    "min": min,
    "range": range,
    "reversed": reversed,
    "round": round,
    "set": set,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
    "Exception": Exception,
    "KeyError": KeyError,
    "TypeError": TypeError,
    "ValueError": ValueError,
    "ZeroDivisionError": ZeroDivisionError,
}

UTILITIES: dict[str, Any] = {
    "math": math,
    "statistics": statistics,
    "datetime": datetime,
    "json": json,
}


def build_namespace(rows: Sequence[dict[str, Any]]) -> dict[str, Any]:
    """Create a fresh global namespace for one evaluation."""
    return {
        "__builtins__": dict(SAFE_BUILTINS),
        "data": copy.deepcopy(list(rows)),
        "pd": pd,
        **UTILITIES,
    }


def evaluate(code: str, rows: Sequence[dict[str, Any]]) -> Any:
    """
    Evaluate analysis code against rows and return its raw value.

    Raises:
        EvaluationError: If the code does not compile or raises
    """
    namespace = build_namespace(rows)

    try:
        expression = compile(code.strip(), ANALYSIS_FILENAME, "eval")
    except SyntaxError:
        expression = None

    try:
        if expression is not None:
            return eval(expression, namespace)  # noqa: S307 - restricted builtins

        body = textwrap.indent(code.strip("\n"), "    ") if code.strip() else "    pass"
        program = compile(f"def {ANALYSIS_FUNCTION}():\n{body}\n", ANALYSIS_FILENAME, "exec")
        exec(program, namespace)  # noqa: S102 - restricted builtins
        return namespace[ANALYSIS_FUNCTION]()
    except Exception as e:
        raise EvaluationError(
            error_type=type(e).__name__,
            underlying_error=str(e),
        ) from e


def run_analysis_code(code: str, rows: Sequence[dict[str, Any]]) -> Any:
    """
    Evaluate analysis code and normalize the result for transport.

    Evaluation and normalization errors are returned as {"error": message}
    rather than raised, so the surrounding call always completes.
    """
    try:
        return normalize_analysis(evaluate(code, rows))
    except EvaluationError as e:
        return {"error": e.message}
    except Exception as e:
        return {"error": f"Could not serialize analysis result: {type(e).__name__}: {e}"}
