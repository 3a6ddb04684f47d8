"""Domain models for transient notifications."""

from dataclasses import dataclass
from enum import StrEnum


class ToastVariant(StrEnum):
    """Visual style of a toast."""

    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Toast:
    """A notification shown to the user."""

    id: str
    title: str
    description: str | None = None
    variant: ToastVariant = ToastVariant.DEFAULT
    open: bool = True
    duration: float | None = None
