from flask import Blueprint, render_template, jsonify, request, abort
from omniglot.decorators import auth_required, get_current_user
from omniglot import firestore_dao as dao
from omniglot.services import matching, notifications

bp = Blueprint('main', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'}), 200


@bp.route('/')
def index():
    return render_template('index.html')


@bp.route('/users/<username>')
def user_profile(username):
    viewed = dao.get_user_by_username(username)
    if not viewed:
        abort(404)

    offers, reviews = [], []
    if viewed.get('professional'):
        offers = dao.get_offers_by_teacher(viewed['id'])
        reviews = dao.get_reviews_by_subject(viewed['id'])
        authors = dao.get_users_by_ids([r.get('author_id') for r in reviews])
        for review in reviews:
            review['author'] = authors.get(review.get('author_id'))
    average, count = matching.rating_summary(reviews)

    return render_template('user.html',
                           viewed_user=viewed,
                           offers=offers,
                           reviews=reviews,
                           average_rating=average,
                           review_count=count)


def _notification_id():
    data = request.get_json(silent=True) or request.form
    notification_id = data.get('notif_id') or data.get('notifId')
    if not notification_id:
        abort(400)
    return notification_id


@bp.route('/notification/read', methods=['POST'])
@auth_required
def read_notification():
    user = get_current_user()
    notifications.mark_read(_notification_id(), user.id)
    return jsonify({'success': True})


@bp.route('/notification/delete', methods=['POST'])
@auth_required
def delete_notification():
    user = get_current_user()
    notifications.delete(_notification_id(), user.id)
    return jsonify({'success': True})


@bp.route('/notification/read-all', methods=['POST'])
@auth_required
def read_all_notifications():
    user = get_current_user()
    count = notifications.mark_all_read(user.id)
    return jsonify({'success': True, 'count': count})


@bp.route('/notification/unread-count')
@auth_required
def unread_notification_count():
    user = get_current_user()
    count = notifications.unread_count(user.id)
    return jsonify({'count': count})
