from regmetrics.metrics.mi import MI
from regmetrics.metrics.nmi import NMI
