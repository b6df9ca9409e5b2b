from regmetrics.histogram.binning import AffineKernel, BinningKernel, PreScaledKernel, select_kernel
from regmetrics.histogram.engine import ImageMutualInformation
from regmetrics.histogram.extent import Extent, split_extent
from regmetrics.histogram.image import ImageData
from regmetrics.histogram.reduction import JointHistogramResult, reduce_histograms
from regmetrics.histogram.scalars import ScalarKind
from regmetrics.histogram.stencil import ImageStencil, iter_spans
from regmetrics.histogram.storage import WorkerSlotStorage
