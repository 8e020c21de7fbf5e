# ---------------------------------------------------------------------
# Gufo Netloss: Exceptions
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""Gufo Netloss exceptions."""


class NetlossError(Exception):
    """Base class for all Gufo Netloss errors."""


class ResolveError(NetlossError):
    """Target cannot be resolved to the IP address."""


class SocketError(NetlossError):
    """ICMP socket cannot be opened or reopened."""
