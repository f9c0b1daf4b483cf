from firegrid.datasources.base import ColumnSource, DocumentStore, InMemoryDocumentStore, RowSource
from firegrid.datasources.catalog import CatalogRowSource, TableCatalog
from firegrid.datasources.documents import SqlDocumentStore
from firegrid.datasources.http import HttpRowSource, flatten_object

__all__ = [
    "CatalogRowSource",
    "ColumnSource",
    "DocumentStore",
    "HttpRowSource",
    "InMemoryDocumentStore",
    "RowSource",
    "SqlDocumentStore",
    "TableCatalog",
    "flatten_object",
]
