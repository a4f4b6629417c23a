from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures that still end in an error verdict."""

    status_code = 500


class ConfigurationError(AnalysisError):
    status_code = 500


class UpstreamTransportError(AnalysisError):
    status_code = 502


class UpstreamShapeError(AnalysisError):
    status_code = 200


class ModelOutputParseError(AnalysisError):
    status_code = 200
