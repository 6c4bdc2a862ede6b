# limsrag/retrieval/assembler.py

"""
Answer and Prompt Assembly
==========================

Combines the user query with retrieved records, either into a
final answer (no model involved) or into a prompt for a remote model.

File: limsrag/retrieval/assembler.py
"""

from typing import Optional, Sequence

NO_INFO_MESSAGE = (
    "I couldn't find any relevant information in my knowledge base for your query. "
    "Please try rephrasing or provide more details."
)

RECORD_SEPARATOR = "\n\n"

SIMPLIFIED_NOTE = (
    "(Note: This is a simplified response. A real LLM would synthesize and summarize.)"
)


def compose_answer(
    query: str,
    retrieved: Sequence[str],
    no_info_message: Optional[str] = None
) -> str:
    """
    Build the answer by concatenating retrieved records.

    Args:
        query: Original user query
        retrieved: Record texts, best first
        no_info_message: Text returned when nothing was retrieved

    Returns:
        Answer embedding the query and every record in order
    """
    if not retrieved:
        return no_info_message or NO_INFO_MESSAGE

    combined = RECORD_SEPARATOR.join(retrieved)

    return (
        f"Based on the information I have, for your query about '{query}':"
        f"{RECORD_SEPARATOR}{combined}{RECORD_SEPARATOR}{SIMPLIFIED_NOTE}"
    )


def assemble_prompt(query: str, contexts: Sequence[str]) -> str:
    """
    Assemble the prompt sent to a text generation backend.

    Args:
        query: Original user query
        contexts: Record texts, best first

    Returns:
        Prompt ready for inference
    """
    context_str = RECORD_SEPARATOR.join(contexts)

    return f"""You are a helpful LIMS assistant. Use the following context to answer the user's question.
If the information is not in the context, state that you don't have enough information.

User Question: {query}

Context:
{context_str}

Answer:"""


def get_assembly_stats(query: str, contexts: Sequence[str], prompt: str) -> dict:
    """
    Get statistics about prompt assembly.

    Returns:
        Dictionary with assembly statistics
    """
    return {
        "query_chars": len(query),
        "contexts_used": len(contexts),
        "context_chars": sum(len(c) for c in contexts),
        "prompt_chars": len(prompt)
    }
