"""monify-agent: host telemetry agent that samples, reduces and ships OS metrics."""

__version__ = "1.1.1"
