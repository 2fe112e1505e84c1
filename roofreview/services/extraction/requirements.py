"""Required material quantities implied by the roof geometry."""

import re
from typing import Optional

from roofreview.models.extraction import RequiredQuantities, RoofMeasurements

_PITCH_RE = re.compile(r"(\d+)\s*/\s*(\d+)")

# Ice and water coverage beyond the inside of the warm wall
WARM_WALL_COVERAGE_INCHES = 24
DEFAULT_COVERAGE_INCHES = 60


def parse_pitch(pitch: Optional[str]) -> Optional[float]:
    """Return rise/run as a ratio, or None when it cannot be read."""
    if not pitch:
        return None
    match = _PITCH_RE.search(pitch)
    if not match:
        return None
    rise, run = int(match.group(1)), int(match.group(2))
    if run == 0:
        return None
    return rise / run


def compute_requirements(
    measurements: RoofMeasurements,
    soffit_inches: float = 24,
    wall_thickness_inches: float = 6,
) -> RequiredQuantities:
    """Starter LF (eaves), drip edge LF (rakes) and ice and water SF (eaves).

    Ice and water runs from the eave to ``24 + soffit + wall`` inches when the
    pitch is known, otherwise to a flat 60 inches.
    """
    if parse_pitch(measurements.pitch) is not None:
        inches_from_eave = WARM_WALL_COVERAGE_INCHES + soffit_inches + wall_thickness_inches
    else:
        inches_from_eave = DEFAULT_COVERAGE_INCHES

    eave = measurements.eave_length
    rake = measurements.rake_length

    return RequiredQuantities(
        required_starter_lf=eave,
        required_drip_edge_lf=rake,
        required_ice_water_sf=eave * (inches_from_eave / 12) if eave is not None else None,
    )
