"""Exception hierarchy for the serial daemon."""


class SerialDaemonError(Exception):
    """Base class for all daemon errors."""


class FatalError(SerialDaemonError):
    """Unrecoverable setup or accept failure; the process exits."""


class DeviceError(FatalError):
    """The serial device could not be opened or configured."""


class ListenError(FatalError):
    """A listening socket could not be created or bound."""


class AcceptError(FatalError):
    """Accepting a client connection failed."""


class SessionEnded(SerialDaemonError):
    """A live descriptor hit EOF or a read error; the session is over."""


class SerialEOFError(SessionEnded):
    """The serial device returned no data or reported an error."""


class CommandError(SerialDaemonError):
    """An aux control line was rejected; it is logged and discarded."""


class MalformedCommandError(CommandError):
    pass


class UnknownCommandError(CommandError):
    pass


class UnsupportedBaudRateError(CommandError):
    pass
