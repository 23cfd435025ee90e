""" Utilities shared by the config and API layers """

import enum
import typing as T
from datetime import datetime, timezone


class StrEnum(str, enum.Enum):
    """Enum whose members compare and format as their string values.

    Remote state labels are matched against these directly."""

    __str__ = str.__str__  # type: ignore


def process_bool_arg(arg: T.Union[int, str, bool]) -> bool:
    """Determine True/False from an argument.

    Similar to parts of the Salesforce API, there are a few true-ish and false-ish strings,
    but "true" and "false" are the canonical ones."""
    if isinstance(arg, (int, bool)):
        return bool(arg)
    elif isinstance(arg, str):
        if arg.lower() in ["yes", "y", "true", "1"]:
            return True
        elif arg.lower() in ["no", "n", "false", "0"]:
            return False
    raise TypeError(f"Cannot interpret {arg!r} as a boolean")


def xml_bool(value: bool) -> str:
    """Render a boolean the way SOAP messages spell it."""
    return "true" if value else "false"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
