from models.connection import ConnectionRequest, ConnectionResponse, ConnectionListItem  # noqa: F401
from models.table import TableDescriptor, ColumnDescriptor  # noqa: F401
from models.joins import JoinSuggestion, JoinDefinition, JoinCatalogEntry, CachedJoinSuggestion, SuggestionStats  # noqa: F401
from models.validation import ValidationResult, ColumnReferenceResult, ExecutionResult  # noqa: F401
