from .namespace import (
    FeedRecord,
    Namespace,
    delete_namespace,
    ensure_feeds_table,
    get_feed,
    list_feeds,
    namespace_tables,
    register_feed,
)
from .sqlite import (
    StoreConfig,
    chunked,
    connect,
    dict_rows,
    quote_ident,
    table_columns,
    table_exists,
    transaction,
)

__all__ = [
    "FeedRecord",
    "Namespace",
    "delete_namespace",
    "ensure_feeds_table",
    "get_feed",
    "list_feeds",
    "namespace_tables",
    "register_feed",
    "StoreConfig",
    "chunked",
    "connect",
    "dict_rows",
    "quote_ident",
    "table_columns",
    "table_exists",
    "transaction",
]
