"""clockscope: query NTP, NTS and PTP time servers from the command line."""

__version__ = "0.4.0"
