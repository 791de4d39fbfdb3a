class GrabberError(Exception):
    """Base class for every fatal grabber condition."""


class RemoteUnavailableError(GrabberError):
    """The remote API could not be reached after every retry was used up."""


class RemoteContractError(GrabberError):
    """The remote answered, but not in the shape the engine relies on."""


class RemoteAuthError(GrabberError):
    pass


class StoreContractError(GrabberError):
    """A local constraint was violated; the reconciliation order was not respected."""


class InvalidOptionError(GrabberError):
    pass


class ContentAccessError(GrabberError):
    """Stored revision content could not be loaded to compute its checksum."""
