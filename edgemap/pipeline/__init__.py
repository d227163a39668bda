from .edge_detector import default_settings, process_frame, process_image
from .frame_stream import SKIPPED, FrameStream, StreamClosed, StreamStats
