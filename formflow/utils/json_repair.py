"""
JSON repair for model output

Local instruct models wrap JSON in markdown fences, add chatter around it or
drop a closing brace. repair_json() recovers the object in those cases;
anything else is left for json.loads() to reject.

Only dict output is handled (not arrays).
"""

import logging

logger = logging.getLogger(__name__)


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` fences around model output"""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def repair_json(text: str) -> str:
    """
    Attempt to repair common JSON formatting issues

    Args:
        text: Raw model output

    Returns:
        str: Cleaned JSON string (may still be invalid)

    Examples:
        >>> repair_json('```json\\n{"sufficient": true}\\n```')
        '{"sufficient": true}'
        >>> repair_json('Sure! {"sufficient": false')
        '{"sufficient": false}'
    """
    if text is None:
        return ""

    text = strip_code_fences(text)

    first_brace = text.find("{")
    if first_brace == -1:
        logger.warning("No braces found in JSON repair")
        return text

    last_brace = text.rfind("}")
    if last_brace < first_brace:
        # Truncated output: keep everything after the opening brace
        text = text[first_brace:]
    else:
        text = text[first_brace:last_brace + 1]

    # Naive balancing: does not account for braces inside strings
    open_count = text.count("{")
    close_count = text.count("}")

    if open_count > close_count:
        missing = open_count - close_count
        text += "}" * missing
        logger.debug(f"Added {missing} closing braces")

    elif close_count > open_count:
        diff = close_count - open_count
        for _ in range(diff):
            last_close = text.rfind("}")
            if last_close != -1:
                text = text[:last_close] + text[last_close + 1:]
        logger.debug(f"Removed {diff} extra closing braces")

    return text
