"""Exception types raised by the suite's support code."""

from __future__ import annotations


class SuiteError(Exception):
    """Base class for errors raised outside of Playwright assertions."""


class ProfileError(SuiteError):
    """A run profile is unknown, malformed, or holds an invalid value."""


class FixtureDataError(SuiteError):
    """A static JSON data file is missing, unreadable, or incomplete."""


class NoPricesFoundError(SuiteError):
    """None of the product price strings on a listing could be parsed."""
