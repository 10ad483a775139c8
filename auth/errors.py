"""
auth/errors.py -- Exception taxonomy for session resolution.

  ResolutionError       something was presented, but no identity could be
   |                    established for a reason other than "not found"
   +-- InvalidToken     malformed token, bad signature, missing claim
   +-- StoreUnavailable the identity store failed (connection, timeout, ...)

  Unauthorized          a gate decided the interaction must not proceed

"No token presented" is not an exception at all -- it is the NoToken outcome
of IdentityResolver.resolve(). Keeping it out of this hierarchy lets every
gate tell "nothing presented" apart from "something presented but bad".

Layer rule: no imports from api/.
"""


class ResolutionError(Exception):
    """Base class for failures while resolving a bearer token to a user."""


class InvalidToken(ResolutionError):
    """The token could not be decoded or verified."""


class StoreUnavailable(ResolutionError):
    """The identity store raised while looking up the token's user."""


class Unauthorized(Exception):
    """Raised by the gates when a request must be rejected with 401.

    Carries no message on purpose: 401 responses never explain themselves,
    so callers cannot distinguish unknown users from bad tokens.
    """
