"""
Query expansion for suggest-harvest.

Turns a seed phrase and a set of enabled strategies into the ordered queue
of queries sent to the providers.
"""

from .config import StrategiesConfig
from .errors import SeedValidationError
from .models import QueueItem, Tag

SCRIPT_ALPHABET = list("اآبپتثجچحخدذرزژسشصضطظعغفقکگلمنوهی")
GENERIC_ALPHABET = list("abcdefghijklmnopqrstuvwxyz")
QUESTION_PREFIXES = ["how to", "what is", "best", "vs", "review"]

PLACEHOLDERS = ("{}", "_")
GAP_MARKER = "{}"


def has_placeholder(text: str) -> bool:
    """True if the text contains an explicit substitution marker."""
    return any(marker in text for marker in PLACEHOLDERS)


def strip_placeholder(seed: str) -> str:
    """Remove the first ``{}`` and the first ``_`` and tidy the spacing.

    ``"gift {} ideas"`` gives ``"gift ideas"``.
    """
    text = seed
    for marker in PLACEHOLDERS:
        text = text.replace(marker, "", 1)
    return " ".join(text.split())


def _substitute(text: str, symbol: str, position: str = "suffix") -> tuple[str, int | None]:
    """Apply the substitution rule, also returning the cursor after the symbol.

    The cursor is only set when an explicit marker was replaced.
    """
    for marker in PLACEHOLDERS:
        index = text.find(marker)
        if index != -1:
            result = text[:index] + symbol + text[index + len(marker) :]
            return result, index + len(symbol)

    if position == "prefix":
        return f"{symbol} {text}", None
    return f"{text} {symbol}", None


def substitute(text: str, symbol: str, position: str = "suffix") -> str:
    """
    Insert ``symbol`` into ``text``.

    If the text has an explicit marker (``{}`` takes precedence over ``_``),
    the first one is replaced. Otherwise the symbol is joined with a single
    space at the end (``position="suffix"``) or start (``position="prefix"``).
    """
    return _substitute(text, symbol, position)[0]


def _alphabet_items(
    template: str,
    symbols: list[str],
    tag: Tag,
    position: str = "suffix",
) -> list[QueueItem]:
    items = []
    for symbol in symbols:
        query, cursor = _substitute(template, symbol, position)
        items.append(QueueItem(query=query, tag=tag.value, cursor_position=cursor))
    return items


def gap_templates(base: str) -> list[str]:
    """Templates with a marker at every internal word boundary.

    ``"a b c"`` gives ``["a {} b c", "a b {} c"]``; one word gives nothing.
    """
    words = base.split()
    templates = []
    for i in range(1, len(words)):
        pre = " ".join(words[:i])
        post = " ".join(words[i:])
        templates.append(f"{pre} {GAP_MARKER} {post}")
    return templates


def expand(seed: str, strategies: StrategiesConfig) -> list[QueueItem]:
    """
    Build the query queue for a seed.

    Order: seed, script alphabet, script double, middle gaps, generic
    suffix, generic prefix, questions. Identical input always gives an
    identical queue.

    Raises:
        SeedValidationError: if the seed is empty or whitespace.
    """
    clean = seed.strip()
    if not clean:
        raise SeedValidationError("Seed must not be empty")

    explicit = has_placeholder(clean)
    base = strip_placeholder(clean)

    queue = [QueueItem(query=base, tag=Tag.SEED.value)]

    if strategies.script_alphabet:
        queue.extend(_alphabet_items(clean, SCRIPT_ALPHABET, Tag.SCRIPT_ALPHABET))

    if strategies.script_double:
        # n² queries; no cap is applied
        pairs = [a + b for a in SCRIPT_ALPHABET for b in SCRIPT_ALPHABET]
        queue.extend(_alphabet_items(clean, pairs, Tag.SCRIPT_DOUBLE))

    # Skipped with an explicit marker so a template never holds two markers
    if strategies.middle_gap and not explicit:
        generic_enabled = strategies.generic_suffix or strategies.generic_prefix
        for template in gap_templates(base):
            if strategies.script_alphabet:
                queue.extend(_alphabet_items(template, SCRIPT_ALPHABET, Tag.SCRIPT_GAP))
            if generic_enabled:
                queue.extend(_alphabet_items(template, GENERIC_ALPHABET, Tag.GENERIC_GAP))

    if strategies.generic_suffix:
        queue.extend(_alphabet_items(clean, GENERIC_ALPHABET, Tag.GENERIC_SUFFIX))

    if strategies.generic_prefix:
        queue.extend(
            _alphabet_items(clean, GENERIC_ALPHABET, Tag.GENERIC_PREFIX, position="prefix")
        )

    if strategies.questions:
        for prefix in QUESTION_PREFIXES:
            queue.append(QueueItem(query=f"{prefix} {base}", tag=Tag.QUESTION.value))

    return queue
