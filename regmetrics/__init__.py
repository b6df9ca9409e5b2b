from regmetrics.config import ExecutionMode, HistogramConfig
from regmetrics.errors import RegMetricsError, UnsupportedOutputTypeError, UnsupportedScalarTypeError
from regmetrics.histogram import ImageData, ImageMutualInformation, ImageStencil, JointHistogramResult
from regmetrics.metrics import MI, NMI

__version__ = "0.1.0"
