from regmetrics.base.base import FullRefMetric
