import logging

from flask import jsonify
from flask_login import current_user

from app import db
from app.forms.auth import CreateAdminForm
from app.forms.common import load_json_form
from app.models import Admin, Pick
from app.routes.admin import bp
from app.utils.auth import main_admin_required
from app.utils.db_utils import transaction
from app.utils.errors import NotFoundError, PreconditionError

logger = logging.getLogger(__name__)


@bp.route("/admins")
@main_admin_required
def list_admins():
    admins = Admin.query.order_by(Admin.name).all()
    return jsonify([admin.to_dict() for admin in admins])


@bp.route("/admins", methods=["POST"])
@main_admin_required
def create_admin():
    form = load_json_form(CreateAdminForm)
    with transaction():
        admin = Admin(
            name=form.name.data,
            email=form.email.data.strip().lower(),
            is_main_admin=form.is_main_admin.data,
        )
        # Without a password the admin signs in with login links only
        if form.password.data:
            admin.set_password(form.password.data)
        db.session.add(admin)

    logger.info(f"Main admin {current_user.id} created admin {admin.id}")
    return jsonify(admin.to_dict()), 201


@bp.route("/admins/<int:admin_id>", methods=["DELETE"])
@main_admin_required
def delete_admin(admin_id):
    admin = db.session.get(Admin, admin_id)
    if admin is None:
        raise NotFoundError("Admin not found")
    if admin.id == current_user.id:
        raise PreconditionError("You cannot delete your own account")
    if admin.is_main_admin:
        raise PreconditionError("Cannot delete the main admin")

    with transaction():
        # Keep the edit flags on picks this admin changed
        Pick.query.filter_by(edited_by_admin_id=admin.id).update(
            {"edited_by_admin_id": None}, synchronize_session=False
        )
        db.session.delete(admin)
    logger.warning(f"Main admin {current_user.id} deleted admin {admin_id}")
    return jsonify({"message": "Admin deleted"})
