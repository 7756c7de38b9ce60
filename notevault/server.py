import logging
import socket
import sys
from datetime import timedelta

from flask import Blueprint, Flask, Response, current_app, jsonify, request

from . import vim_config
from .auth import create_access_token, require_auth, verify_credentials
from .config import load_config, validate_config
from .errors import BadRequest, ConfigError, Unauthorized, VaultError
from .markdown_render import render_preview
from .vault import Vault

log = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")


def _vault() -> Vault:
    return current_app.extensions["notevault.vault"]


def _body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise BadRequest("Expected a JSON object body")
    return body


def _text_field(body: dict, key: str, default: str | None = None) -> str:
    value = body.get(key, default)
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise BadRequest(f"{key} must be a string")
    return value


def _depth_arg() -> int:
    try:
        return max(1, int(request.args.get("depth", 1)))
    except ValueError:
        raise BadRequest("depth must be an integer") from None


@api.route("/login", methods=["POST"])
def api_login():
    body = _body()
    username = body.get("username")
    password = body.get("password")
    cfg = current_app.config
    if not verify_credentials(username, password,
                              cfg["CREDENTIAL_USERNAME"], cfg["CREDENTIAL_PASSWORD"]):
        log.warning("failed login for %r from %s", username, request.remote_addr)
        raise Unauthorized()
    token = create_access_token(username, cfg["JWT_SECRET"],
                                timedelta(days=cfg["TOKEN_EXPIRE_DAYS"]))
    log.info("login for %r", username)
    return jsonify({"token": token})


@api.route("/tree")
@require_auth
def api_tree():
    return jsonify(_vault().list_folder(request.args.get("path"), _depth_arg()))


@api.route("/folder", methods=["GET", "POST"])
@require_auth
def api_folder():
    if request.method == "POST":
        path = _vault().create_folder(_text_field(_body(), "path"))
        return jsonify({"ok": True, "path": path})
    return jsonify(_vault().folder_listing(request.args.get("path")))


@api.route("/file", methods=["GET", "PUT", "POST", "DELETE"])
@require_auth
def api_file():
    vault = _vault()
    if request.method == "PUT":
        body = _body()
        vault.write_file(_text_field(body, "path"), _text_field(body, "content", ""))
        return jsonify({"ok": True})
    if request.method == "POST":
        body = _body()
        path = vault.create_file(_text_field(body, "path"), _text_field(body, "content", ""))
        return jsonify({"ok": True, "path": path})
    path = request.args.get("path", "")
    if request.method == "DELETE":
        return jsonify({"ok": True, "path": vault.delete(path)})
    return jsonify({"path": path, "content": vault.read_file(path)})


@api.route("/file/rename", methods=["POST"])
@require_auth
def api_file_rename():
    body = _body()
    old, new = _vault().rename(_text_field(body, "oldPath"), _text_field(body, "newPath"))
    return jsonify({"ok": True, "oldPath": old, "newPath": new})


@api.route("/file/move", methods=["POST"])
@require_auth
def api_file_move():
    body = _body()
    old, new = _vault().move(
        _text_field(body, "sourcePath"),
        _text_field(body, "destinationParentPath"),
        _text_field(body, "newName", ""),
    )
    return jsonify({"ok": True, "oldPath": old, "newPath": new})


@api.route("/file/toggle-checkbox", methods=["POST"])
@require_auth
def api_toggle_checkbox():
    body = _body()
    checked = _vault().toggle_checkbox(_text_field(body, "path"), _text_field(body, "checkboxText"))
    return jsonify({"ok": True, "checked": checked})


def _preview(path: str):
    vault = _vault()
    text = vault.read_file(path)
    return Response(render_preview(text, vault.file_index()), mimetype="text/html")


@api.route("/preview")
@require_auth
def api_preview():
    return _preview(request.args.get("path", ""))


@api.route("/files/search")
@require_auth
def api_files_search():
    return _preview(request.args.get("q", ""))


@api.route("/v2/file")
@api.route("/v2/preview")
@require_auth
def api_v2_markdown():
    path = request.args.get("path", "")
    return jsonify({"path": path, "markdown": _vault().read_file(path)})


@api.route("/v2/files/search")
@require_auth
def api_v2_search():
    q = request.args.get("q", "")
    return jsonify({"path": q, "markdown": _vault().read_file(q)})


@api.route("/file-index")
@require_auth
def api_file_index():
    return jsonify(_vault().file_index())


@api.route("/vimconfig", methods=["GET", "POST"])
@require_auth
def api_vimconfig():
    root = _vault().root
    if request.method == "POST":
        return jsonify(vim_config.save(root, request.get_json(silent=True)))
    return jsonify(vim_config.load(root))


def handle_vault_error(exc: VaultError):
    status = exc.status_code or 500
    if status >= 500:
        log.error("%s %s failed: %s", request.method, request.path, exc.message)
    return jsonify({"error": exc.message}), status


def create_app(overrides: dict | None = None) -> Flask:
    cfg = load_config()
    if overrides:
        cfg.update(overrides)
    cfg = validate_config(cfg)

    app = Flask(__name__)
    app.config.update(
        VAULT_ROOT=cfg["vault_root"],
        JWT_SECRET=cfg["jwt_secret"],
        CREDENTIAL_USERNAME=cfg["credential_username"],
        CREDENTIAL_PASSWORD=cfg["credential_password"],
        TOKEN_EXPIRE_DAYS=int(cfg["token_expire_days"]),
        CORS_ALLOW_ORIGIN=cfg.get("cors_allow_origin"),
        NOTEVAULT=cfg,
    )
    app.extensions["notevault.vault"] = Vault(
        cfg["vault_root"], cfg["excluded_dirs"], cfg["file_index_ttl"])
    app.register_blueprint(api)
    app.register_error_handler(VaultError, handle_vault_error)

    @app.route("/health")
    def health():
        return Response("Healthy", mimetype="text/plain")

    @app.after_request
    def add_cors_headers(resp):
        origin = app.config["CORS_ALLOW_ORIGIN"]
        if origin:
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            resp.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        return resp

    return app


def main():
    cfg = load_config()
    logging.basicConfig(
        level=getattr(logging, str(cfg["log_level"]).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        app = create_app()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)
    cfg = app.config["NOTEVAULT"]
    hostname = socket.gethostname()
    try:
        local_ip = socket.gethostbyname(hostname)
    except OSError:
        local_ip = "127.0.0.1"
    print(f"Serving vault: {cfg['vault_root']}")
    print(f"Open http://localhost:{cfg['port']}    (this machine)")
    print(f"     http://{local_ip}:{cfg['port']}  (other devices on network)")
    app.run(host=cfg["host"], port=cfg["port"])


if __name__ == "__main__":
    main()
