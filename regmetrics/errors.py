class RegMetricsError(Exception):
    """Base class for errors raised while computing a similarity metric."""


class UnsupportedScalarTypeError(RegMetricsError, TypeError):
    """An input image holds a pixel type outside the supported scalar kinds."""


class UnsupportedOutputTypeError(RegMetricsError, TypeError):
    """The requested joint-histogram output type is not a supported scalar kind."""
