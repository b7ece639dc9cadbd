"""docquery: build, serialize and locally evaluate document-store queries.

The package is the query layer of a client SDK:
- query: the Criteria model, boolean operator algebra, local evaluator and
  serializer
- utils: configuration and structured logging shared by the query layer

Transport, authentication and cache persistence are handled by the callers.
"""

from .query import Criteria, Query, QueryError, RegexOptions

__version__ = "0.1.0"

__all__ = ["Criteria", "Query", "QueryError", "RegexOptions", "__version__"]
