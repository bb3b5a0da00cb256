"""Selection state layer.

This package is the single place where the four-level vehicle selection
is mutated; the orchestrator drives it and presentation layers read it.
"""

from fitsearch.state.selection import SelectionLevel, VehicleSelection

__all__ = ["SelectionLevel", "VehicleSelection"]
