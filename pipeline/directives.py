"""
directives.py - Mode-specific dead-code removal from HTML comments.

    <!-- to-build remove production -->
    ...
    <!-- /to-build remove production -->

The region is dropped only when both markers carry the same mode token and
that token is the mode being built. Unmatched markers are left in place.
"""

import re

DIRECTIVE_RE = re.compile(
    r"<!--\s*to-build\s+remove\s+(?P<mode>[\w-]+)\s*-->"
    r".*?"
    r"<!--\s*/to-build\s+remove\s+(?P=mode)\s*-->",
    re.DOTALL | re.IGNORECASE,
)


def strip_directives(text, mode):
    mode = getattr(mode, "value", mode)

    def _strip(match):
        if match.group("mode").lower() == str(mode).lower():
            return ""
        return match.group(0)

    return DIRECTIVE_RE.sub(_strip, text)
