"""
Task category inference.

Maps free text (tool names, decision types, correction text, chat content)
onto the fixed set of categories used to scope pattern detection and
autonomy graduation.
"""

import re
from typing import List, Tuple

CATEGORIES = (
    'maintenance',
    'financial',
    'scheduling',
    'tenant_relations',
    'compliance',
    'communication',
    'general',
)

# Order matters: specific domains first, communication last because its
# keywords are broad. \b only at the start so stems match inflections
# ("plumb" -> "plumbing") but "contact" never matches "contractor".
# Short whole words carry a closing \b as well ("rent" but not "rental").
_CATEGORY_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ('maintenance', re.compile(r'\b(maintenance|repair|plumb|electri|trade(?:s|sman)|contractor)')),
    ('financial', re.compile(r'\b(rent\b|payment|bond\b|fee\b|cost|price|financial|money|expense)')),
    ('scheduling', re.compile(r'\b(schedul|inspect|appointment|calendar)')),
    ('tenant_relations', re.compile(r'\b(tenant|lease\b|application|vacancy)')),
    ('compliance', re.compile(r'\b(compliance|smoke\b|pool\b|gas\b|safety|insurance)')),
    ('communication', re.compile(r'\b(message|email|sms\b|notify|notification|communicat)')),
]


def infer_category(*texts: str) -> str:
    """
    Infer the task category for the given text fragments.

    Fragments are joined with spaces and lowercased; None/empty fragments
    are ignored. Never fails: unmatched text is 'general'.

    Example:
        >>> infer_category('get_quotes', 'Call the plumber about the leak')
        'maintenance'
    """
    text = ' '.join(t for t in texts if t).lower()

    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return category

    return 'general'
