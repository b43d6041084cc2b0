"""
Cleaning SQL drafts — asks the local LLM for cleaning SQL and screens the
draft with the validator before anything can run it.
"""
import logging
import re

from core.sql_validator import validate_cleaning_sql
from integrations.ollama_client import OllamaClient
from models.table import TableDescriptor
from models.validation import CleaningDraft
from prompts.cleaning_sql import cleaning_sql_prompt

logger = logging.getLogger(__name__)

_FENCED = re.compile(r"```(?:sql)?\s*([\s\S]*?)```", re.IGNORECASE)


def _format_columns(table: TableDescriptor) -> str:
    return "\n".join(f"  - {c.column_name} ({c.data_type})" for c in table.columns)


def extract_sql(raw: str) -> str:
    """Pull SQL out of an LLM reply, dropping markdown fences if present."""
    match = _FENCED.search(raw)
    if match:
        return match.group(1).strip()
    return raw.strip().strip("`").strip()


def draft_cleaning_sql(table: TableDescriptor, instruction: str, ollama: OllamaClient) -> CleaningDraft:
    """Raises RuntimeError when the LLM is unreachable or returns nothing."""
    prompt = cleaning_sql_prompt.format(
        qualified_table=f"{table.schema_name}.{table.table_name}",
        column_lines=_format_columns(table),
        instruction=instruction.strip(),
    )
    sql = extract_sql(ollama.generate(prompt))
    if not sql:
        raise RuntimeError("LLM returned an empty cleaning SQL draft")

    validation = validate_cleaning_sql(sql)
    logger.info("Drafted cleaning SQL for %s (safe=%s, %d warnings)",
                table.table_name, validation.safe, len(validation.warnings))
    return CleaningDraft(sql=sql, validation=validation)
