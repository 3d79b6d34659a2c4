"""Engine and pure-logic services."""
