"""
diagnostics.py
Error types and non-fatal diagnostics shared by the xsd2proto pipeline.

Fatal problems (missing input, unparseable schemas) are raised as
SchemaCompilerError subclasses. Everything local to a handful of fields is
recorded as a Diagnostic and generation carries on.
"""
import logging
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class SchemaCompilerError(Exception):
    """Base class for errors that abort compilation of a spec."""


class DiagnosticKind(Enum):
    UNRESOLVED_TYPE = "unresolved-type"
    NAME_COLLISION = "name-collision"
    MISSING_VERSION = "missing-version"
    UNSUPPORTED_CONSTRUCT = "unsupported-construct"


# Collisions are resolved deterministically and are not worth a warning.
_QUIET_KINDS = {DiagnosticKind.NAME_COLLISION}


class Diagnostic:
    def __init__(self, kind: DiagnosticKind, message: str, namespace: Optional[str] = None):
        self.kind = kind
        self.message = message
        self.namespace = namespace

    def __repr__(self):
        return f"Diagnostic(kind={self.kind.value!r}, message={self.message!r}, namespace={self.namespace!r})"


class Diagnostics:
    """Collects diagnostics for a single compilation run."""

    def __init__(self):
        self.items: List[Diagnostic] = []

    def report(self, kind: DiagnosticKind, message: str, namespace: Optional[str] = None) -> Diagnostic:
        diagnostic = Diagnostic(kind, message, namespace)
        self.items.append(diagnostic)
        level = logging.DEBUG if kind in _QUIET_KINDS else logging.WARNING
        if namespace:
            logger.log(level, "[%s] %s (namespace %s)", kind.value, message, namespace)
        else:
            logger.log(level, "[%s] %s", kind.value, message)
        return diagnostic

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.items if d.kind == kind]

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)
