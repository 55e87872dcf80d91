"""Pay Your Friends: shared expenses and daily payment reminders."""

__version__ = "0.1.0"
