"""Input checks shared by booking and settlement services."""


def missing_fields(**values: object) -> list[str]:
    """Return the names of arguments that are not non-blank strings."""
    return [
        name
        for name, value in values.items()
        if not isinstance(value, str) or not value.strip()
    ]


def describe_missing(names: list[str]) -> str:
    """Build the detail message for an INVALID_INPUT rejection."""
    return f"Missing parameters: {', '.join(names)}"
