"""
Exceptions
==========

Errors raised by the decimation package.  Topological illegality of a
single collapse is not an error: it is counted by the decimator and the
edge is skipped.
"""


class DecimationError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(DecimationError, ValueError):
    """Invalid or incomplete decimation options."""


class TopologyError(DecimationError):
    """A mesh operation was requested on an ineligible edge, or the
    half-edge structure is inconsistent."""
