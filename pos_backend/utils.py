import re
from typing import Optional

import bleach


def sanitize_text(value: Optional[str]) -> str:
    """Clean a free-text field before it is stored and shown on the till.

    - Removes NUL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Collapses runs of whitespace and trims the ends
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    # bleach escapes bare ampersands; menu text is stored as plain text
    val = val.replace("&amp;", "&")
    val = re.sub(r"\s+", " ", val)
    return val.strip()
