"""
SymJump Exception Hierarchy

Structured exceptions for clear error handling across CLI, API, and MCP
consumers.  Only configuration problems and a missing workspace ever reach
the caller; extraction and persistence failures degrade to empty or stale
results and are logged instead.

Usage::

    from symjump.exceptions import SymJumpError, NoWorkspaceError

    try:
        results = client.search("UserSchema", root="./app")
    except NoWorkspaceError:
        print("Open a project directory first.")
    except SymJumpError as exc:
        print(f"SymJump error: {exc}")
"""


class SymJumpError(Exception):
    """Base exception for all SymJump errors."""


class ConfigError(SymJumpError, ValueError):
    """Configuration is invalid (e.g. a negative timeout or a weight outside 0..1).

    Inherits from ``ValueError`` so callers validating user input can
    catch the builtin.
    """


class NoWorkspaceError(SymJumpError, FileNotFoundError):
    """No search root is configured, or the root is not a directory."""


class ExtractionError(SymJumpError):
    """A single ripgrep invocation failed (missing binary, timeout, oversize output).

    Raised by :meth:`RipgrepRunner.run` and caught per pattern by the
    extractor, so one broken pattern never aborts a multi-pattern scan.
    """


class StoreError(SymJumpError):
    """The persistent key/value store could not be written."""
