"""lessonvid — manifest validation and timing analytics for lesson videos.

Validates declarative video manifests (templates, shots, timed actions,
voiceover) before they are sent to the renderer, derives timing metrics from
narration data, and rolls generation records up into dashboard metrics.
"""

__version__ = "0.3.0"
