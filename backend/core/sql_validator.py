"""
Cleaning SQL validator — static safety screen for AI-generated data-cleaning SQL.

Nothing here executes the SQL under review. `validate_cleaning_sql` is pure;
the reference checks only run parameterized information_schema lookups and
fail closed on any error.
"""
import logging
import re

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection

from models.validation import ColumnReferenceResult, ValidationResult

logger = logging.getLogger(__name__)

# Never allowed, anywhere in the script.
BLOCKED_OPERATIONS = [
    "DROP",
    "TRUNCATE",
    "ALTER",
    "CREATE DATABASE",
    "DROP DATABASE",
    "CREATE USER",
    "DROP USER",
    "GRANT",
    "REVOKE",
    "VACUUM",
    "ANALYZE",
]

# Reported for information only.
ALLOWED_OPERATIONS = [
    "SELECT",
    "UPDATE",
    "DELETE",
    "INSERT",
    "WITH",
    "BEGIN",
    "COMMIT",
    "ROLLBACK",
    "SAVEPOINT",
]

INJECTION_PATTERNS = [
    re.compile(r";\s*DROP"),
    re.compile(r";\s*DELETE\s+FROM"),
    re.compile(r"UNION(\s+ALL)?\s+SELECT"),
    re.compile(r"\b1\s*=\s*1\b"),
    re.compile(r"'\s*OR\b"),
]

# Checked on the raw SQL; normalization has already removed comments.
_DANGLING_COMMENT = re.compile(r"--\s*$", re.MULTILINE)

_TEMP_QUALIFIERS = {"TEMP", "TEMPORARY"}

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_WHITESPACE = re.compile(r"\s+")
_CREATE_TABLE = re.compile(r"\bCREATE\s+(?:(\w+)\s+)?TABLE\b")


def _word(op: str) -> re.Pattern:
    return re.compile(rf"\b{op}\b", re.IGNORECASE)


_BLOCKED_RES = [(op, _word(op)) for op in BLOCKED_OPERATIONS]
_ALLOWED_RES = [(op, _word(op)) for op in ALLOWED_OPERATIONS]


def normalize_sql(sql: str) -> str:
    """Strip comments, collapse whitespace, uppercase."""
    sql = _LINE_COMMENT.sub("", sql)
    sql = _BLOCK_COMMENT.sub("", sql)
    sql = _WHITESPACE.sub(" ", sql)
    return sql.upper().strip()


def split_statements(sql: str) -> list[str]:
    """Split on semicolons outside single-quoted literals; drops empty statements."""
    statements: list[str] = []
    current: list[str] = []
    in_literal = False
    for ch in sql:
        if ch == "'":
            # '' inside a literal toggles out and straight back in
            in_literal = not in_literal
        if ch == ";" and not in_literal:
            statements.append("".join(current))
            current = []
        else:
            current.append(ch)
    statements.append("".join(current))
    return [s.strip() for s in statements if s.strip()]


def detect_blocked_operations(normalized: str) -> list[str]:
    return [op for op, pattern in _BLOCKED_RES if pattern.search(normalized)]


def extract_allowed_operations(normalized: str) -> list[str]:
    return [op for op, pattern in _ALLOWED_RES if pattern.search(normalized)]


def has_permanent_create_table(normalized: str) -> bool:
    """CREATE TABLE that is not CREATE TEMP/TEMPORARY TABLE."""
    for match in _CREATE_TABLE.finditer(normalized):
        qualifier = match.group(1)
        if qualifier not in _TEMP_QUALIFIERS:
            return True
    return False


def has_unguarded_mutation(statements: list[str]) -> bool:
    """DELETE without WHERE (outside a CTE) or UPDATE ... SET without WHERE or FROM."""
    for stmt in statements:
        has_where = re.search(r"\bWHERE\b", stmt)
        if re.search(r"\bDELETE\s+FROM\b", stmt) and not has_where:
            if not re.search(r"\bWITH\b", stmt):
                return True
        if re.search(r"\bUPDATE\b", stmt) and re.search(r"\bSET\b", stmt) and not has_where:
            if not re.search(r"\bFROM\b", stmt):
                return True
    return False


def is_wrapped_in_transaction(normalized: str) -> bool:
    return bool(re.search(r"\bBEGIN\b", normalized)) and bool(
        re.search(r"\b(COMMIT|ROLLBACK)\b", normalized)
    )


def detect_injection_risk(normalized: str, raw: str = "") -> bool:
    """Signatures on the normalized SQL, plus a bare `--` ending a line of the raw SQL."""
    return any(p.search(normalized) for p in INJECTION_PATTERNS) or bool(_DANGLING_COMMENT.search(raw))


def validate_cleaning_sql(sql: str) -> ValidationResult:
    """
    Classify cleaning SQL as safe or unsafe.

    Issues (blocked keywords, permanent CREATE TABLE, injection signatures)
    make the result unsafe. Unguarded DELETE/UPDATE and untransacted
    multi-statement scripts are only warnings.
    """
    issues: list[str] = []
    warnings: list[str] = []
    normalized = normalize_sql(sql)
    logger.debug("Validating cleaning SQL (%d chars)", len(normalized))

    blocked = detect_blocked_operations(normalized)
    if blocked:
        issues.append(
            f"Blocked operations detected: {', '.join(blocked)}. "
            "These operations are not allowed for safety reasons."
        )

    if has_permanent_create_table(normalized):
        issues.append("CREATE TABLE is not allowed. Use CREATE TEMP TABLE for temporary tables.")

    statements = split_statements(normalized)
    if has_unguarded_mutation(statements):
        warnings.append(
            "DELETE or UPDATE statement without WHERE clause detected. "
            "This will affect all rows. Ensure this is intentional."
        )

    if len(statements) > 1 and not is_wrapped_in_transaction(normalized):
        warnings.append(
            f"{len(statements)} statements detected but not wrapped in transaction. "
            "Consider adding BEGIN...COMMIT for atomicity."
        )

    if detect_injection_risk(normalized, sql):
        issues.append(
            "Potential SQL injection pattern detected. "
            "Ensure all user input is properly parameterized."
        )

    result = ValidationResult(
        issues=issues,
        warnings=warnings,
        allowed_operations=extract_allowed_operations(normalized),
        blocked_operations=blocked,
    )
    if not result.safe:
        logger.warning("Cleaning SQL rejected: %s", "; ".join(issues))
    return result


def validate_table_reference(schema: str, table_name: str, conn: Connection) -> bool:
    """True only if information_schema confirms the table exists."""
    try:
        exists = conn.execute(
            text(
                "SELECT EXISTS ("
                " SELECT 1 FROM information_schema.tables"
                " WHERE table_schema = :schema AND table_name = :table"
                ")"
            ),
            {"schema": schema, "table": table_name},
        ).scalar()
        return bool(exists)
    except Exception as e:
        logger.error("Error validating table reference %s.%s: %s", schema, table_name, e)
        return False


def validate_column_references(schema: str, table_name: str, columns: list[str],
                               conn: Connection) -> ColumnReferenceResult:
    """Columns missing from information_schema; every column counts as missing on error."""
    if not columns:
        return ColumnReferenceResult(valid=True, missing_columns=[])

    stmt = text(
        "SELECT column_name FROM information_schema.columns"
        " WHERE table_schema = :schema AND table_name = :table"
        " AND column_name IN :columns"
    ).bindparams(bindparam("columns", expanding=True))
    try:
        existing = {
            row[0] for row in conn.execute(
                stmt, {"schema": schema, "table": table_name, "columns": list(columns)}
            )
        }
    except Exception as e:
        logger.error("Error validating column references for %s.%s: %s", schema, table_name, e)
        return ColumnReferenceResult(valid=False, missing_columns=list(columns))

    missing = [col for col in columns if col not in existing]
    return ColumnReferenceResult(valid=not missing, missing_columns=missing)
