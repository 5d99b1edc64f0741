import logging

from flask import jsonify, request
from flask_login import current_user, login_required

from app import db
from app.forms.common import load_json_form, provided
from app.forms.users import UpdateUserForm, UserForm
from app.models import MagicLink, Pick, ScoreDetail, SeasonWinner, User
from app.routes.admin import bp
from app.services.season_service import season_service
from app.utils.cache_utils import invalidate_season_caches
from app.utils.db_utils import transaction
from app.utils.errors import NotFoundError, PreconditionError

logger = logging.getLogger(__name__)


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@bp.route("/users")
@login_required
def list_users():
    query = User.query
    if request.args.get("active_only", "").lower() == "true":
        query = query.filter(User.is_active.is_(True))
    return jsonify([user.to_dict() for user in query.order_by(User.name).all()])


@bp.route("/users", methods=["POST"])
@login_required
def create_user():
    form = load_json_form(UserForm)
    with transaction():
        user = User(name=form.name.data, email=form.email.data.strip().lower())
        db.session.add(user)

    if form.season_id.data:
        season_service.add_participants(form.season_id.data, [user.id])

    logger.info(f"Admin {current_user.id} created user {user.id}")
    return jsonify(user.to_dict()), 201


@bp.route("/users/<int:user_id>")
@login_required
def get_user(user_id):
    user = get_user_or_404(user_id)
    data = user.to_dict()
    data["season_ids"] = [m.season_id for m in user.season_memberships]
    return jsonify(data)


@bp.route("/users/<int:user_id>", methods=["PUT"])
@login_required
def update_user(user_id):
    user = get_user_or_404(user_id)
    form = load_json_form(UpdateUserForm)
    with transaction():
        if form.name.data:
            user.name = form.name.data
        if form.email.data:
            user.email = form.email.data.strip().lower()
        if provided(form, "is_active"):
            user.is_active = form.is_active.data
    invalidate_season_caches()
    return jsonify(user.to_dict())


@bp.route("/users/<int:user_id>/deactivate", methods=["PUT"])
@login_required
def deactivate_user(user_id):
    user = get_user_or_404(user_id)
    with transaction():
        user.is_active = False
    logger.info(f"Admin {current_user.id} deactivated user {user.id}")
    return jsonify(user.to_dict())


@bp.route("/users/<int:user_id>/reactivate", methods=["PUT"])
@login_required
def reactivate_user(user_id):
    user = get_user_or_404(user_id)
    with transaction():
        user.is_active = True
    logger.info(f"Admin {current_user.id} reactivated user {user.id}")
    return jsonify(user.to_dict())


@bp.route("/users/<int:user_id>", methods=["DELETE"])
@login_required
def delete_user(user_id):
    """Hard delete, only for users who never picked; deactivate the others"""
    user = get_user_or_404(user_id)
    if Pick.query.filter_by(user_id=user.id).first() is not None:
        raise PreconditionError(
            "Cannot delete a user who has made picks. Deactivate them instead."
        )
    if SeasonWinner.query.filter_by(user_id=user.id).first() is not None:
        raise PreconditionError("Cannot delete a user recorded as a season winner.")
    with transaction():
        # No-pick credits and unused links go with the user
        ScoreDetail.query.filter_by(user_id=user.id).delete(synchronize_session=False)
        MagicLink.query.filter_by(user_id=user.id).delete(synchronize_session=False)
        db.session.delete(user)
    invalidate_season_caches()
    logger.info(f"Admin {current_user.id} deleted user {user_id}")
    return jsonify({"message": "User deleted"})
