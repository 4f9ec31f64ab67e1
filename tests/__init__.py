"""logsweep test suite."""
