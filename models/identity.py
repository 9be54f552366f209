"""Identity normalization shared by topics, homework, events and subjects."""


def normalize_identity(text: str | None) -> str:
    """Trim, collapse inner whitespace and case-fold a display string.

    Topic names, homework titles, event titles and subject labels are matched
    on this form only. "  Quadratic   equations " and "quadratic equations"
    are the same identity.
    """
    if not text:
        return ""
    return " ".join(str(text).split()).casefold()
