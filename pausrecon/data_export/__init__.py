from .images import ImageWriter, write_image
from .metrics import MetricsCSVExport
