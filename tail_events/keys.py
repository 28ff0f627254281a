"""Field-name uniquification for events."""


def unique_name(candidate: str, existing: dict) -> str:
    """Return *candidate*, prefixed with as many underscores as needed to be
    absent from *existing* (``user`` -> ``_user`` -> ``__user``)."""
    name = candidate
    while name in existing:
        name = "_" + name
    return name
