from core.db_connector import create_engine_from_request, reflect_table  # noqa: F401
from core.join_service import CrossSourceJoinService  # noqa: F401
from core.sql_validator import validate_cleaning_sql, validate_table_reference, validate_column_references  # noqa: F401
from core.cleaning_executor import execute_cleaning_sql  # noqa: F401
