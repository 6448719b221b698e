"""Control-plane endpoint modules.

Each function takes a :class:`~pytelelink._transport.Transport` and raises
:class:`~pytelelink.exceptions.TransportError` on network failure. The
public facades convert those errors into result values.
"""
