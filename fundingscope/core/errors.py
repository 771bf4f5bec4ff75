from __future__ import annotations


class FundingScopeError(Exception):
    """Base class for errors raised by the calculation core and its adapters."""


class InvalidInputError(FundingScopeError, ValueError):
    """A numeric input the formulas cannot accept (leverage <= 0, non-finite price, ...)."""


class UnknownScenarioError(FundingScopeError, KeyError):
    def __init__(self, name: object) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unknown scenario: {self.name!r}"


class FeedError(FundingScopeError, RuntimeError):
    """Market feed returned an unusable response."""
