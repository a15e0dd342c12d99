from flask import Blueprint, render_template, request, jsonify

from omniglot.decorators import auth_required, get_current_user
from omniglot.services import matching

bp = Blueprint('search', __name__)


@bp.route('/search')
def search():
    user = get_current_user()
    results = matching.search_users(request.args.get('q', ''), exclude_id=user.id or None)
    return jsonify(results)


@bp.route('/match/partners')
@auth_required
def partners():
    user = get_current_user()
    return render_template('match/partners.html', matches=matching.find_partners(user.to_dict()))


@bp.route('/match/teachers')
@auth_required
def teachers():
    user = get_current_user()
    return render_template('match/teachers.html', matches=matching.find_teachers(user.to_dict()))
