import os

from flask import Blueprint, current_app, jsonify, send_from_directory

bp = Blueprint("pages", __name__)

# route -> file under PUBLIC_DIR
PAGES = {
    "/": "index.html",
    "/dashboard": "dashboard.html",
    "/trading": "trading.html",
    "/profile": "profile.html",
    "/referrals": "referrals.html",
    "/deposit-withdraw": "deposit-withdraw.html",
    "/admin": "admin.html",
    "/demo": "demo.html",
}


def _serve(filename):
    public_dir = current_app.config["PUBLIC_DIR"]
    if not os.path.isfile(os.path.join(public_dir, filename)):
        return jsonify({"error": "Page not found"}), 404
    return send_from_directory(public_dir, filename)


def _make_view(filename):
    def view():
        return _serve(filename)
    return view


for _route, _filename in PAGES.items():
    _endpoint = _filename.rsplit(".", 1)[0].replace("-", "_")
    bp.add_url_rule(_route, endpoint=_endpoint, view_func=_make_view(_filename))
    bp.add_url_rule(f"/{_filename}", endpoint=f"{_endpoint}_html", view_func=_make_view(_filename))


@bp.route("/uploads/profiles/<path:filename>")
def profile_upload(filename):
    return send_from_directory(current_app.config["UPLOAD_DIR"], filename)
