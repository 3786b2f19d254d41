"""
Text utilities for cleaning LLM responses.
"""

QUOTE_CHARS = '"\'`'


def clean_llm_response(response: str) -> str:
    """Clean LLM response by removing code block markers and surrounding whitespace.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned text
    """
    response = (response or '').strip()

    # Remove ```lang and ``` markers
    if response.startswith('```'):
        response = response[3:]
        first_newline = response.find('\n')
        if first_newline != -1 and response[:first_newline].strip().isalpha():
            response = response[first_newline + 1:]

    if response.endswith('```'):
        response = response[:-3]

    return response.strip()


def clean_keyword_response(response: str) -> str:
    """Reduce a single-keyword LLM answer to its bare lower-case token.

    Strips code fences, wrapping quotes/backticks and a trailing period.
    """
    keyword = clean_llm_response(response)
    keyword = keyword.strip(QUOTE_CHARS).strip()
    if keyword.endswith('.'):
        keyword = keyword[:-1]
    return keyword.strip(QUOTE_CHARS).strip().lower()
