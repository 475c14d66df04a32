from flask import Blueprint, current_app, jsonify, send_file

from ..services.tts_service import AUDIO_MIME_TYPES, AVAILABLE_VOICES

audio_bp = Blueprint("audio", __name__)


@audio_bp.get("/voices")
def list_voices():
    default_voice = current_app.config.get("TTS_DEFAULT_VOICE")
    voices = [
        {"id": voice_id, **details, "default": voice_id == default_voice}
        for voice_id, details in AVAILABLE_VOICES.items()
    ]
    return jsonify({"voices": voices})


@audio_bp.get("/audio/<string:filename>")
def serve_audio(filename: str):
    path = current_app.config["AUDIO_STORE"].path_for(filename)
    if path is None:
        return jsonify({"error": "Audio file not found."}), 404

    extension = filename.rsplit(".", 1)[1]
    return send_file(
        path,
        mimetype=AUDIO_MIME_TYPES[extension].split(";")[0],
        as_attachment=False,
        download_name=filename,
    )
