# Runs the finishing passes over a freshly emitted ProtoUnit: name fixing, field and enum numbering.
import logging
from typing import Iterable, Protocol

from proto_model import ProtoUnit

logger = logging.getLogger(__name__)


class UnitTransform(Protocol):
    def transform(self, unit: ProtoUnit) -> ProtoUnit: ...


def run_model_transform_pipeline(unit: ProtoUnit, transforms: Iterable[UnitTransform]) -> ProtoUnit:
    """Apply each transform in order; a transform may return the unit it was given or a replacement."""
    for step in transforms:
        logger.debug("%s: %s", unit.package, type(step).__name__)
        unit = step.transform(unit)
    return unit
