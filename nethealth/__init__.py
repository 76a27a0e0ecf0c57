"""nethealth: network latency and bandwidth health monitor."""

__version__ = "0.1.0"
