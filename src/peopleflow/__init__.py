"""PeopleFlow time and overtime accounting core."""

__version__ = "0.1.0"
