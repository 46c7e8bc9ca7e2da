"""entql: composable SQL queries and a lightweight entity layer, built on Pydantic."""

from .entity import Entity
from .connection import connect
from .transaction import TransactionError, rollback, transaction
from .relations import (
    BelongsTo,
    BelongsToManyToMany,
    ConfigurationError,
    HasMany,
    HasManyToMany,
    HasOne,
    get_rel,
    rel,
)
from .expressions import F
from .query import (
    Query,
    delete,
    delete_query,
    insert,
    insert_query,
    raw,
    select,
    select_query,
    sqlfn,
    subselect,
    update,
    update_query,
)
from .compiler import compile_query
from .execution import current_mode, dry_run, exec_raw, pg_schema, query_only, sql_only
from .persistence import create, insert_or_update_with_rels, save
from .validation import get_errors
