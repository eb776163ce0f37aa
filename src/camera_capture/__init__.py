"""Camera capture: bounded frame acquisition from industrial cameras.

Opens one GenICam/GenTL camera, applies a typed acquisition
configuration, pulls a fixed number of frames with a per-frame timeout
and hands each frame to a consumer, tearing the stream and device down
on every exit path.
"""

__version__ = "0.1.0"
