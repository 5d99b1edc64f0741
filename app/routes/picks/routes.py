"""
Participant pick endpoints. The magic link token in the URL is the only
credential; there are no participant accounts.
"""

from flask import current_app, jsonify

from app import limiter
from app.forms.common import load_json_form
from app.forms.picks import SubmitPickForm
from app.routes.picks import bp
from app.services.pick_service import pick_service


@bp.route("/validate/<token>")
def validate(token):
    """Round, teams and current picks for the link holder"""
    return jsonify(pick_service.validate_link(token))


@bp.route("/<token>", methods=["POST"])
@limiter.limit(lambda: current_app.config["PICK_SUBMIT_RATE_LIMIT"])
def submit(token):
    form = load_json_form(SubmitPickForm)
    pick = pick_service.submit_with_link(token, form.picks.data, user_id=form.userId.data)
    return jsonify({"message": "Pick submitted successfully", "pick": pick.to_dict()})
