import logging

from flask import Flask, Response, request, jsonify
from dotenv import load_dotenv

from helpers.globals import cfg
from helpers.device_profile import ClassificationInput
from helpers.device_classifier import classify_client, with_extra_bot_markers
from helpers.probe_store import (
    ProbeResultReader,
    ProbeState,
    auto_reload_enabled,
    cookie_names,
    probe_state,
    skip_param,
    skip_probe_requested,
)

load_dotenv()

logging.basicConfig(
    level=str(cfg("api.log_level", "info")).upper(),
    format="[%(asctime)s] [%(levelname)s] %(message)s"
)

BOT_RULES = with_extra_bot_markers(cfg("classifier.extra_bot_markers", []))


def preflight():
    names = cookie_names()
    logging.info(
        f"[API] {len(BOT_RULES)} bot markers loaded, probe cookies={sorted(names.values())}, "
        f"skip param='{skip_param()}'"
    )
    return True


preflight()
app = Flask(__name__)


def _render(detection):
    fmt = request.args.get("format", "json")
    if fmt == "debug":
        return Response(detection.debug(), mimetype="text/plain")
    if fmt == "html":
        return Response(detection.debug(as_html=True), mimetype="text/html")
    return jsonify(detection.to_dict())


def _parse_screen(screen: dict) -> dict:
    """Validate the optional "screen" object of a /classify body."""
    if not isinstance(screen, dict):
        raise ValueError("screen must be an object")

    parsed = {}
    for src, dst in (("width", "screen_width"), ("height", "screen_height")):
        value = screen.get(src)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"screen.{src} must be a non-negative integer")
        parsed[dst] = value

    orientation = screen.get("orientation")
    if orientation is not None:
        if orientation not in ("portrait", "landscape"):
            raise ValueError("screen.orientation must be 'portrait' or 'landscape'")
        parsed["orientation"] = orientation

    has_touch = screen.get("hasTouch")
    if has_touch is not None:
        if not isinstance(has_touch, bool):
            raise ValueError("screen.hasTouch must be a boolean")
        parsed["has_touch"] = has_touch

    return parsed


@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({"status": "ok"})


@app.route("/device", methods=["GET"])
def device_endpoint():
    try:
        reader = ProbeResultReader(request.cookies)
        data = reader.build_input(request.headers.get("User-Agent", ""))

        state = probe_state(
            data.has_screen, skip_probe_requested(request.args), auto_reload_enabled()
        )
        if state is ProbeState.PROBE_NEEDED:
            # The caller serves its probe page and re-requests with the skip flag
            return jsonify({
                "probe": "needed",
                "detected": reader.detected,
                "skipParam": skip_param(),
                "cookies": sorted(reader.names.values()),
            }), 202

        detection = classify_client(data, BOT_RULES)
        return _render(detection)

    except Exception as e:
        logging.error(f"[API] /device failed: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


@app.route("/classify", methods=["POST"])
def classify_endpoint():
    try:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"error": "Invalid JSON"}), 400

        user_agent = body.get("userAgent", "")
        if user_agent is None:
            user_agent = ""
        if not isinstance(user_agent, str):
            return jsonify({"error": "userAgent must be a string"}), 400

        extra_vars = body.get("customVars") or {}
        if not isinstance(extra_vars, dict):
            return jsonify({"error": "customVars must be an object"}), 400

        try:
            screen = _parse_screen(body.get("screen") or {})
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        detection = classify_client(ClassificationInput(user_agent=user_agent, **screen), BOT_RULES)

        try:
            detection.custom_vars.update(extra_vars)
        except TypeError as e:
            return jsonify({"error": str(e)}), 400

        return _render(detection)

    except Exception as e:
        logging.error(f"[API] /classify failed: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500


def main():
    if preflight():
        host = cfg("api.host", "127.0.0.1")
        port = cfg("api.port", 5001)
        debug_mode = False

        logging.info(f"Starting Flask on {host}:{port}, debug={debug_mode}")

        app.run(host=host, port=port, debug=debug_mode)


if __name__ == "__main__":
    main()
