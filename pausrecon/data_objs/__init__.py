from .params import IOParams, ReconParams, ReconParams2
from .frame import PAUSpair, BScanData, PerformanceMetrics
from .events import FrameCountKnown, FrameIdxChanged, FrameReady, PlaybackFinished, StatusMessage
