#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import logging
import traceback
from logging.handlers import TimedRotatingFileHandler

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from modules.transcode import (
    get_streaming_config,
    StreamingError,
    PayloadTooLargeError,
    AssetStore,
    UploadReceiver,
    FFmpegRunner,
    TranscodeCoordinator,
    StreamResolver,
)
from modules.transcode.api import register_routes
from modules.transcode.ffmpeg import resolve_ffmpeg_path

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


class StreamRequestFilter(logging.Filter):
    """过滤掉切片请求相关的详细日志"""
    def filter(self, record):
        message = record.getMessage()
        if message.startswith('GET /stream/') and not any(x in message for x in ['playlist.m3u8', 'manifest.mpd']):
            # 只在错误时显示日志
            return record.levelno >= logging.WARNING
        return True


def configure_logging(log_dir='logs'):
    """Configure root logging: console, daily rotating file, quiet third-party modules"""
    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'), format=LOG_FORMAT)

    # 配置较少日志输出的模块
    for module in ['urllib3', 'werkzeug']:
        logging.getLogger(module).setLevel(logging.WARNING)

    root_logger = logging.getLogger()

    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    # 添加按日期滚动的文件处理器
    file_handler = TimedRotatingFileHandler(
        os.path.join(log_dir, 'webserver.log'),
        when='midnight',
        interval=1,
        backupCount=3  # 保留3天日志
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)

    for handler in root_logger.handlers:
        handler.addFilter(StreamRequestFilter())


def create_app(config=None, runner=None):
    """Build the Flask application and its services from one configuration

    Args:
        config: StreamingConfig, loaded from config/config.json and the environment when omitted
        runner: FFmpegRunner override (tests pass one bound to a fake executable)

    Returns:
        Flask application; the services are kept in app.extensions['streaming']
    """
    config = config or get_streaming_config()

    app = Flask(__name__, template_folder='templates', static_folder='static')
    CORS(app)  # Enable CORS

    store = AssetStore(config)
    store.ensure_roots()
    receiver = UploadReceiver(config, store)
    coordinator = TranscodeCoordinator(config, runner or FFmpegRunner(config))
    resolver = StreamResolver(config)

    app.extensions['streaming'] = {
        'config': config,
        'store': store,
        'receiver': receiver,
        'coordinator': coordinator,
        'resolver': resolver,
    }

    register_routes(app, store, receiver, coordinator, resolver)
    register_error_handlers(app)

    @app.after_request
    def log_request(response):
        app.logger.info(f"{request.method} {request.path} {response.status_code}")
        return response

    return app


def register_error_handlers(app):
    """All errors are answered with a JSON body of the form {"error": message}"""

    @app.errorhandler(StreamingError)
    def handle_streaming_error(e):
        """Handle upload, storage, transcode and stream resolution errors"""
        if e.status_code >= 500:
            app.logger.error(f"{request.method} {request.path} failed: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        """A request or form field limit was exceeded while parsing the body"""
        error = PayloadTooLargeError()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle uncaught exceptions"""
        app.logger.error(f"Uncaught exception: {str(e)}")
        app.logger.error(traceback.format_exc())
        return jsonify({"error": "Something went wrong!"}), 500


def main():
    config = get_streaming_config()
    configure_logging(config.log_dir)

    ffmpeg_path = resolve_ffmpeg_path(config.ffmpeg_path)
    if ffmpeg_path:
        logging.info(f"Using ffmpeg executable: {ffmpeg_path}")
    else:
        logging.warning(f"FFmpeg not found at {config.ffmpeg_path!r}; uploads will fail to convert")

    app = create_app(config)
    logging.info(f"Server running on port {config.port}")
    try:
        app.run(host=config.host, port=config.port, debug=False, threaded=True)
    finally:
        app.extensions['streaming']['coordinator'].shutdown(wait_for_jobs=False)


# Start the server
if __name__ == '__main__':
    main()
