from __future__ import annotations


class PatternFillError(ValueError):
    pass


class GraphBuildError(PatternFillError):
    """Raised by a graph builder that cannot express the chart."""


class SynthesisError(PatternFillError):
    """Raised by a note synthesizer that cannot fill a region."""


class ConfigLoadError(PatternFillError):
    pass
