"""
LangChain prompt templates for cleaning SQL drafts.
"""
from langchain_core.prompts import PromptTemplate

CLEANING_SQL_TEMPLATE = """\
You are a careful PostgreSQL data engineer preparing a data-cleaning script.

TABLE: {qualified_table}

COLUMNS:
{column_lines}

TASK:
{instruction}

Rules:
- Use only UPDATE, DELETE, INSERT, SELECT, WITH and CREATE TEMP TABLE.
- Never use DROP, TRUNCATE, ALTER, GRANT, REVOKE, VACUUM or ANALYZE.
- Every UPDATE and DELETE must have a WHERE clause.
- Wrap multiple statements in BEGIN; ... COMMIT;
- Use only the columns listed above.

Return ONLY the raw SQL with no markdown, no backticks, no explanation.
"""

cleaning_sql_prompt = PromptTemplate(
    input_variables=["qualified_table", "column_lines", "instruction"],
    template=CLEANING_SQL_TEMPLATE,
)
