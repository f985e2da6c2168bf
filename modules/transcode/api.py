"""
上传 / 流媒体 API 端点

所有依赖（存储、上传接收器、转码协调器、解析器）在注册路由时显式传入。
"""

from flask import jsonify, request, send_file, render_template
import logging

from .stream import mimetype_for
from .task import StreamFormat, stream_url

logger = logging.getLogger(__name__)


def register_routes(app, store, receiver, coordinator, resolver):
    """注册上传和流媒体路由

    Args:
        app: Flask 应用实例
        store: AssetStore 实例
        receiver: UploadReceiver 实例
        coordinator: TranscodeCoordinator 实例
        resolver: StreamResolver 实例
    """

    @app.route('/', methods=['GET'])
    def index():
        """上传页面"""
        return render_template('index.html')

    @app.route('/upload', methods=['POST'])
    def upload():
        """上传视频并转码为 HLS 和 DASH

        multipart 字段名为 file。两个格式都转码成功才返回 200，
        否则返回 500，并在响应中标明失败的格式。

        Returns:
            转码结果 JSON
        """
        asset, raw_path = receiver.receive(request.files.get('file'), request.content_length)

        outcome = coordinator.transcode(asset.asset_id, raw_path, asset.output_root)

        if outcome.succeeded:
            return jsonify(outcome.to_dict())
        return jsonify(outcome.to_dict()), 500

    @app.route('/stream/<asset_id>/<format_type>/<path:file_path>', methods=['GET'])
    def stream(asset_id, format_type, file_path):
        """获取播放列表、清单或切片文件

        支持 Range 请求（206 Partial Content），供播放器 seek 使用。

        Args:
            asset_id: 资源 ID
            format_type: hls 或 dash
            file_path: 相对于格式目录的路径

        Returns:
            文件内容
        """
        path = resolver.resolve(asset_id, format_type, file_path)
        return send_file(path, mimetype=mimetype_for(path), conditional=True)

    @app.route('/player/<asset_id>', methods=['GET'])
    def player(asset_id):
        """播放页面"""
        return render_template(
            'player.html',
            video_id=asset_id,
            hls_url=stream_url(asset_id, StreamFormat.HLS),
            dash_url=stream_url(asset_id, StreamFormat.DASH),
        )

    @app.route('/videos', methods=['GET'])
    def videos():
        """列出所有可播放的视频

        Returns:
            视频列表 JSON
        """
        return jsonify(store.list_assets())
