"""Core utility functions for deputy."""
import hashlib


def truncate_string(text: str | None, max_length: int = 100, suffix: str = "...") -> str | None:
    """Truncate text to at most ``max_length`` characters.

    Args:
        text: Text to truncate. ``None`` is returned unchanged.
        max_length: Maximum length of the result, suffix included.
        suffix: Marker appended when the text was cut.

    Returns:
        The original text if short enough, otherwise the truncated text.

    Example:
        >>> truncate_string("abcdefghij", 8)
        'abcde...'
    """
    if text is None or len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def format_cost(cost: float | None) -> str:
    """Format a USD amount with four decimals; missing values print as $0.00."""
    if cost is None:
        return "$0.00"
    return f"${cost:.4f}"


def hash_text(text: str) -> str:
    """Digest used to compare consecutive model responses."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
