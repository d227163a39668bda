#!/usr/bin/env python3
"""
Edge Detection API Server
Upload an image (or successive video frames) and get the edge map back.
"""

import os
import logging
import threading
import time
from collections import OrderedDict
from io import BytesIO
from typing import Dict, List, Tuple

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

from .models.errors import EdgeDetectionError
from .models.filter_settings import FilterSettings
from .models.pixel_buffer import PixelBuffer
from .pipeline.edge_detector import default_settings, process_image
from .pipeline.frame_stream import FrameStream, SKIPPED, StreamClosed
from .services.image_service import ImageService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,bmp,webp").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "20")) * 1024 * 1024
MAX_STREAMS = int(os.getenv("MAX_STREAMS", "32"))
STREAM_IDLE_SECONDS = float(os.getenv("STREAM_IDLE_SECONDS", "300"))

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

image_service = ImageService()

logger = logging.getLogger(__name__)

# One FrameStream per client stream id, least recently used first
streams: "OrderedDict[str, FrameStream]" = OrderedDict()
stream_last_seen: Dict[str, float] = {}
streams_lock = threading.Lock()


class UploadError(Exception):
    """Request did not carry a usable image file."""


def _evict_streams(keep: str, now: float) -> List[FrameStream]:
    """Pop idle streams, then the least recently used ones beyond MAX_STREAMS. Caller holds streams_lock."""
    evicted = []
    for sid in list(streams):
        if sid != keep and now - stream_last_seen.get(sid, now) >= STREAM_IDLE_SECONDS:
            evicted.append(streams.pop(sid))
            stream_last_seen.pop(sid, None)
    while len(streams) > max(MAX_STREAMS, 1):
        sid = next(s for s in streams if s != keep)
        evicted.append(streams.pop(sid))
        stream_last_seen.pop(sid, None)
    return evicted


def get_or_create_stream(stream_id: str) -> FrameStream:
    now = time.monotonic()
    with streams_lock:
        if stream_id not in streams:
            streams[stream_id] = FrameStream(stream_id=stream_id)
            logger.info(f"Opened stream {stream_id}")
        streams.move_to_end(stream_id)
        stream_last_seen[stream_id] = now
        stream = streams[stream_id]
        evicted = _evict_streams(stream_id, now)

    for old in evicted:
        logger.info(f"Evicting stream {old.stream_id}")
        old.close()
    return stream


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def read_upload() -> Tuple[PixelBuffer, FilterSettings]:
    """Decode the 'image' upload and parse settings from the form fields."""
    if 'image' not in request.files:
        raise UploadError('No image provided')

    file = request.files['image']
    if file.filename == '':
        raise UploadError('No file selected')
    if not allowed_file(secure_filename(file.filename)):
        raise UploadError(f'Unsupported file type: {file.filename}')

    settings = FilterSettings.from_mapping(request.form, defaults=default_settings())
    try:
        buffer = image_service.decode(file.read())
    except ValueError as e:
        raise UploadError(str(e)) from None
    return image_service.prepare_buffer(buffer, settings.quality), settings


def edge_map_response(output: PixelBuffer, settings: FilterSettings, **extra):
    if request.args.get('format') == 'png':
        return send_file(BytesIO(image_service.encode_png(output)), mimetype='image/png',
                         as_attachment=True, download_name='edge-detection-result.png')
    return jsonify({
        'success': True,
        'width': output.width,
        'height': output.height,
        'settings': settings.as_dict(),
        'image': image_service.to_data_url(output),
        **extra,
    })


@app.route('/api/process', methods=['POST'])
def process():
    """Process a single uploaded image."""
    try:
        buffer, settings = read_upload()
        output = process_image(buffer, settings)
        return edge_map_response(output, settings)
    except (UploadError, EdgeDetectionError) as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Processing error: {e}")
        return jsonify({'success': False, 'error': 'Error processing image'}), 500


@app.route('/api/streams/<stream_id>/frames', methods=['POST'])
def process_stream_frame(stream_id):
    """Process one frame of a stream, or report it skipped if the previous frame is still running."""
    try:
        buffer, settings = read_upload()
        stream = get_or_create_stream(stream_id)
        output = stream.process_stream_frame(buffer, settings)
        if output is SKIPPED:
            return jsonify({'success': False, 'skipped': True, 'stream_id': stream_id}), 409
        return edge_map_response(output, settings, stream_id=stream_id, skipped=False)
    except StreamClosed:
        return jsonify({'success': False, 'error': 'Stream was closed', 'stream_id': stream_id}), 410
    except (UploadError, EdgeDetectionError) as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Stream {stream_id} frame error: {e}")
        return jsonify({'success': False, 'error': 'Error processing frame'}), 500


@app.route('/api/streams/<stream_id>', methods=['DELETE'])
def close_stream(stream_id):
    """Close a stream and free its worker."""
    with streams_lock:
        stream = streams.pop(stream_id, None)
        stream_last_seen.pop(stream_id, None)
    if stream is None:
        return jsonify({'success': False, 'message': 'Stream not found'}), 404
    stream.close()
    stats = stream.stats
    return jsonify({
        'success': True,
        'stream_id': stream_id,
        'processed': stats.processed,
        'skipped': stats.skipped,
        'failed': stats.failed,
    })


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    with streams_lock:
        active = len(streams)
    return jsonify({
        'status': 'healthy',
        'message': 'Edge Detection API is running',
        'active_streams': active,
        'max_streams': MAX_STREAMS,
        'default_settings': default_settings().as_dict(),
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "5000"))
    logger.info(f"Starting Edge Detection API on {host}:{port} "
                f"(max upload {MAX_CONTENT_LENGTH // (1024 * 1024)}MB)")
    # threaded so concurrent frames of one stream hit the single-flight guard
    app.run(host=host, port=port, threaded=True)


if __name__ == '__main__':
    main()
