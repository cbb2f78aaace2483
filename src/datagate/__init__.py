"""
datagate - Guarded query and analysis execution for relational stores.

datagate sits between untrusted producers of SQL and analysis code (people,
scripts, language models) and a set of databases. It provides:
- Read-only, row-bounded query execution
- Denylist-checked analysis code evaluated over the returned rows
- Named per-environment connection pools with a timed active selection
- A plain-data tool-call boundary and a CLI

Example usage:
    $ datagate query "select * from users limit 10" --env dev
    $ datagate analyze "select * from orders limit 500" "pd.DataFrame(data).describe()"
    $ datagate envs --probe
"""

__version__ = "0.1.0"
__author__ = "datagate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
