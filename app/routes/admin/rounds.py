import logging

from flask import jsonify, request
from flask_login import current_user, login_required

from app.forms.common import load_json_form, provided
from app.forms.picks import AdminPickForm
from app.forms.rounds import (
    CompleteRoundForm,
    ManualScoresForm,
    RoundForm,
    TeamsForm,
    UnlockRoundForm,
    UpdateRoundForm,
)
from app.models import Pick, Round, SeasonParticipant, User
from app.routes.admin import bp
from app.services.pick_service import parse_pick_values, pick_service
from app.services.reminder_service import reminder_service
from app.services.round_service import get_round_or_404, round_service
from app.services.scoring_service import get_round_scores
from app.services.season_service import get_season_or_404
from app.services.scheduler_service import scheduler_service
from app.utils.errors import NotFoundError
from app.utils.timezone_utils import convert_to_utc

logger = logging.getLogger(__name__)


def send_emails_requested():
    return request.args.get("send_emails", "true").lower() != "false"


def scores_payload(scores):
    return {
        str(user_id): {str(place): count for place, count in credits.items()}
        for user_id, credits in scores.items()
    }


@bp.route("/seasons/<int:season_id>/rounds")
@login_required
def list_rounds(season_id):
    season = get_season_or_404(season_id)
    query = season.rounds
    if request.args.get("include_deleted", "").lower() != "true":
        query = query.filter(Round.deleted_at.is_(None))
    rounds = query.order_by(Round.lock_time, Round.id).all()
    return jsonify([round_obj.to_dict(include_teams=True) for round_obj in rounds])


@bp.route("/rounds", methods=["POST"])
@login_required
def create_round():
    form = load_json_form(RoundForm)
    round_obj = round_service.create_round(
        season_id=form.season_id.data,
        sport_name=form.sport_name.data,
        lock_time=convert_to_utc(form.lock_time.data, form.timezone.data),
        pick_type=form.pick_type.data,
        num_write_in_picks=form.num_write_in_picks.data,
        email_message=form.email_message.data,
        timezone_name=form.timezone.data,
        teams=form.teams.data,
    )
    logger.info(f"Admin {current_user.id} created round {round_obj.id}")
    return jsonify(round_obj.to_dict(include_teams=True)), 201


@bp.route("/rounds/<int:round_id>")
@login_required
def get_round(round_id):
    round_obj = get_round_or_404(round_id, include_deleted=True)
    return jsonify(round_obj.to_dict(include_teams=True))


@bp.route("/rounds/<int:round_id>", methods=["PUT"])
@login_required
def update_round(round_id):
    form = load_json_form(UpdateRoundForm)
    round_obj = get_round_or_404(round_id)

    timezone_name = form.timezone.data or round_obj.timezone
    fields = {
        "sport_name": form.sport_name.data or None,
        "pick_type": form.pick_type.data or None,
        "num_write_in_picks": form.num_write_in_picks.data,
        "email_message": form.email_message.data if provided(form, "email_message") else None,
        "timezone": form.timezone.data or None,
        "lock_time": convert_to_utc(form.lock_time.data, timezone_name),
        "teams": form.teams.data if provided(form, "teams") else None,
    }
    round_obj = round_service.update_round(round_id, **fields)
    return jsonify(round_obj.to_dict(include_teams=True))


@bp.route("/rounds/<int:round_id>/teams", methods=["PUT"])
@login_required
def set_round_teams(round_id):
    form = load_json_form(TeamsForm)
    round_obj = round_service.set_teams(round_id, form.teams.data)
    return jsonify(round_obj.to_dict(include_teams=True))


@bp.route("/rounds/<int:round_id>/activate", methods=["POST"])
@login_required
def activate_round(round_id):
    round_obj, invitations = round_service.activate_round(
        round_id, send_emails=send_emails_requested()
    )
    logger.info(f"Admin {current_user.id} activated round {round_id}")
    return jsonify(
        {
            "message": "Round activated",
            "round": round_obj.to_dict(),
            "links_sent": len(invitations),
        }
    )


@bp.route("/rounds/<int:round_id>/lock", methods=["POST"])
@login_required
def lock_round(round_id):
    return jsonify(round_service.lock_round(round_id).to_dict())


@bp.route("/rounds/<int:round_id>/unlock", methods=["POST"])
@login_required
def unlock_round(round_id):
    form = load_json_form(UnlockRoundForm)
    round_obj = get_round_or_404(round_id)
    lock_time = convert_to_utc(form.lock_time.data, round_obj.timezone)
    return jsonify(round_service.unlock_round(round_id, lock_time=lock_time).to_dict())


@bp.route("/rounds/<int:round_id>/complete", methods=["POST"])
@login_required
def complete_round(round_id):
    form = load_json_form(CompleteRoundForm)
    round_obj, scores = round_service.complete_round(
        round_id,
        form.results.data,
        send_emails=send_emails_requested(),
        manual_scores=form.manual_scores.data,
    )
    logger.info(f"Admin {current_user.id} completed round {round_id}")
    return jsonify(
        {
            "message": "Round completed",
            "round": round_obj.to_dict(include_teams=True),
            "scores": scores_payload(scores),
        }
    )


@bp.route("/rounds/<int:round_id>/reminders", methods=["POST"])
@login_required
def send_round_reminder(round_id):
    """Remind everyone still missing a pick right away"""
    round_obj = get_round_or_404(round_id)
    reminded = reminder_service.send_manual_reminder(round_obj)
    logger.info(f"Admin {current_user.id} sent a reminder for round {round_id}")
    return jsonify({"message": "Reminder sent", "reminded": reminded})


@bp.route("/rounds/<int:round_id>/scores")
@login_required
def round_scores(round_id):
    round_obj = get_round_or_404(round_id)
    return jsonify(scores_payload(get_round_scores(round_obj.id)))


@bp.route("/rounds/<int:round_id>/scores", methods=["PUT"])
@login_required
def set_manual_scores(round_id):
    """Enter places by hand, e.g. for a round scored outside the app"""
    form = load_json_form(ManualScoresForm)
    scores = round_service.set_manual_scores(round_id, form.scores.data)
    logger.info(f"Admin {current_user.id} entered manual scores for round {round_id}")
    return jsonify(scores_payload(scores))


@bp.route("/rounds/<int:round_id>", methods=["DELETE"])
@login_required
def delete_round(round_id):
    round_service.soft_delete(round_id)
    return jsonify({"message": "Round deleted"})


@bp.route("/rounds/<int:round_id>/restore", methods=["PUT"])
@login_required
def restore_round(round_id):
    return jsonify(round_service.restore(round_id).to_dict())


@bp.route("/rounds/<int:round_id>/picks")
@login_required
def round_picks(round_id):
    """Every participant of the round's season with their pick, if any"""
    round_obj = get_round_or_404(round_id)
    users = (
        User.query.join(SeasonParticipant, SeasonParticipant.user_id == User.id)
        .filter(SeasonParticipant.season_id == round_obj.season_id)
        .order_by(User.name)
        .all()
    )
    picks = {pick.user_id: pick for pick in Pick.query.filter_by(round_id=round_obj.id)}
    return jsonify(
        [
            {
                "user": user.to_dict(),
                "pick": picks[user.id].to_dict() if user.id in picks else None,
            }
            for user in users
        ]
    )


@bp.route("/rounds/<int:round_id>/picks/<int:user_id>")
@login_required
def participant_pick(round_id, user_id):
    round_obj = get_round_or_404(round_id)
    pick = Pick.query.filter_by(round_id=round_obj.id, user_id=user_id).first()
    if pick is None:
        raise NotFoundError("Pick not found")
    return jsonify(pick.to_dict())


@bp.route("/picks", methods=["POST"])
@login_required
def admin_set_pick():
    form = load_json_form(AdminPickForm)
    values = parse_pick_values(form.picks.data)
    pick = pick_service.admin_set_pick(
        current_user, form.round_id.data, form.user_id.data, values
    )
    return jsonify({"message": "Pick updated", "pick": pick.to_dict()})


@bp.route("/scheduler")
@login_required
def scheduler_status():
    return jsonify(scheduler_service.get_status())


@bp.route("/rounds/lock-expired", methods=["POST"])
@login_required
def lock_expired_rounds():
    rounds = round_service.lock_expired_rounds()
    return jsonify({"locked": [round_obj.id for round_obj in rounds]})
