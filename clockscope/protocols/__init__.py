"""Time protocol probes (NTP, NTS, simulated PTP)."""
