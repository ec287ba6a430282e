"""
Tag filters for readers.

Include/exclude sets name the untagged stream 'default', matching how tags
are displayed; the predicate itself is evaluated on the real tag (None for
untagged lines).
"""

import re
from typing import Iterable, Optional

from histolog.core.exceptions import ConfigurationError

from .diagnostics import display_tag
from .schema import TagPredicate


def build_tag_predicate(
    include_tags: Iterable[str] = (),
    exclude_tags: Iterable[str] = (),
    pattern: Optional[str] = None,
) -> TagPredicate:
    """
    Build an exclusion predicate for OrderedHistogramLogReader.

    Args:
        include_tags: When non-empty, only these tags are kept
        exclude_tags: Tags to drop
        pattern: Regular expression; tags not matching it are dropped

    Returns:
        Predicate returning True for tags that should be skipped

    Raises:
        ConfigurationError: If pattern is not a valid regular expression
    """
    included = frozenset(include_tags)
    excluded = frozenset(exclude_tags)
    compiled = None
    if pattern is not None:
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid tag pattern '{pattern}': {e}") from e

    def should_exclude(tag: Optional[str]) -> bool:
        name = display_tag(tag)
        if name in excluded:
            return True
        if included and name not in included:
            return True
        if compiled is not None and not compiled.search(name):
            return True
        return False

    return should_exclude
