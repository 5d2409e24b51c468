from ._gradients import GradientEntry, GradientRegistry, gradient_registry
from ._recorder import (
    TapeRecorder,
    get_recorder,
    set_recorder,
    record,
    pause,
    is_recording,
)

__all__ = [
    GradientEntry.__name__,
    GradientRegistry.__name__,
    "gradient_registry",
    TapeRecorder.__name__,
    "get_recorder",
    "set_recorder",
    "record",
    "pause",
    "is_recording",
]
