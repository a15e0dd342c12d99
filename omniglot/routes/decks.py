from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify

from omniglot.decorators import auth_required, get_current_user
from omniglot import firestore_dao as dao
from omniglot.errors import ValidationError
from omniglot.forms import DeckForm, FlashcardForm
from omniglot.services import decks as deck_service

bp = Blueprint('decks', __name__)


@bp.route('/decks')
def browse():
    language = request.args.get('language') or None
    found = dao.get_decks(language=language)
    creators = dao.get_users_by_ids([d.get('creator_id') for d in found])
    for deck in found:
        deck['creator'] = creators.get(deck.get('creator_id'))
    return render_template('decks/browse.html', decks=found, language=language)


@bp.route('/account/decks')
@auth_required
def my_decks():
    user = get_current_user()
    return render_template('decks/my_decks.html', decks=dao.get_decks_by_creator(user.id))


@bp.route('/account/decks/new', methods=['GET', 'POST'])
@auth_required
def new_deck():
    user = get_current_user()
    form = DeckForm()
    if form.validate_on_submit():
        deck = deck_service.create_deck(user.id, form.language.data, form.level.data, form.topic.data)
        flash('Deck created.', 'success')
        return redirect(url_for('decks.view_deck', deck_id=deck.id))
    return render_template('decks/deck_form.html', form=form, deck=None)


@bp.route('/account/decks/<deck_id>')
@auth_required
def view_deck(deck_id):
    user = get_current_user()
    deck = deck_service.load_deck(deck_id)
    return render_template('decks/deck.html', deck=deck,
                           cards=deck_service.deck_cards(deck),
                           is_owner=deck.creator_id == user.id,
                           card_form=FlashcardForm())


@bp.route('/account/decks/<deck_id>/edit', methods=['GET', 'POST'])
@auth_required
def edit_deck(deck_id):
    user = get_current_user()
    deck = deck_service.load_deck(deck_id)
    form = DeckForm(data=deck.to_dict())
    if form.validate_on_submit():
        deck_service.update_deck(deck_id, user.id, form.language.data, form.level.data, form.topic.data)
        flash('Deck updated.', 'success')
        return redirect(url_for('decks.view_deck', deck_id=deck_id))
    return render_template('decks/deck_form.html', form=form, deck=deck)


@bp.route('/account/decks/<deck_id>/delete', methods=['POST'])
@auth_required
def delete_deck(deck_id):
    user = get_current_user()
    deck_service.delete_deck(deck_id, user.id)
    flash('Deck deleted.', 'info')
    return redirect(url_for('decks.my_decks'))


@bp.route('/account/decks/<deck_id>/cards', methods=['POST'])
@auth_required
def add_card(deck_id):
    user = get_current_user()
    form = FlashcardForm()
    if form.validate_on_submit():
        deck_service.add_card(deck_id, user.id, form.front.data, form.back.data)
        flash('Card added.', 'success')
    else:
        flash('Both sides of the card need some text.', 'danger')
    return redirect(url_for('decks.view_deck', deck_id=deck_id))


@bp.route('/account/decks/<deck_id>/cards/<card_id>/edit', methods=['POST'])
@auth_required
def edit_card(deck_id, card_id):
    user = get_current_user()
    form = FlashcardForm()
    if form.validate_on_submit():
        deck_service.update_card(deck_id, card_id, user.id, form.front.data, form.back.data)
        flash('Card updated.', 'success')
    else:
        flash('Both sides of the card need some text.', 'danger')
    return redirect(url_for('decks.view_deck', deck_id=deck_id))


@bp.route('/account/decks/<deck_id>/cards/<card_id>/delete', methods=['POST'])
@auth_required
def delete_card(deck_id, card_id):
    user = get_current_user()
    deck_service.delete_card(deck_id, card_id, user.id)
    flash('Card deleted.', 'info')
    return redirect(url_for('decks.view_deck', deck_id=deck_id))


@bp.route('/account/decks/<deck_id>/study')
@auth_required
def study(deck_id):
    user = get_current_user()
    deck = deck_service.load_deck(deck_id)
    card = deck_service.next_card(deck_id, user.id)
    return render_template('decks/study.html', deck=deck, card=card)


@bp.route('/account/decks/<deck_id>/cards/<card_id>/review', methods=['POST'])
@auth_required
def review_card(deck_id, card_id):
    user = get_current_user()
    data = request.get_json(silent=True) or request.form
    card = deck_service.review_card(deck_id, card_id, user.id, data.get('outcome'))
    if request.is_json:
        return jsonify({'id': card.id, 'priority': card.priority, 'mastered': card.is_mastered})
    return redirect(url_for('decks.study', deck_id=deck_id))


@bp.route('/decks/<deck_id>/clone', methods=['POST'])
@auth_required
def clone_deck(deck_id):
    user = get_current_user()
    try:
        clone = deck_service.clone_deck(deck_id, user.id)
    except ValidationError as e:
        flash(e.message, 'info')
        return redirect(url_for('decks.browse'))
    flash('The deck has been added to your collection.', 'success')
    return redirect(url_for('decks.view_deck', deck_id=clone.id))
