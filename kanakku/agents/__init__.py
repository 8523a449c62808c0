"""Assistant integration package."""

from kanakku.agents.tools import (
    TOOL_DECLARATIONS,
    AssistantToolDispatcher,
    TransactionParser,
    coerce_parsed_transaction,
    parse_transaction,
)

__all__ = [
    "TOOL_DECLARATIONS",
    "AssistantToolDispatcher",
    "TransactionParser",
    "coerce_parsed_transaction",
    "parse_transaction",
]
