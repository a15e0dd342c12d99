import random
from datetime import datetime, timezone

from omniglot import create_app
from omniglot.firebase_init import get_auth
from omniglot import firestore_dao as dao
from omniglot.firestore_models import CLASS_TYPES, LEVELS, LOCATION_TYPES, Offer, User
from omniglot.forms import LANGUAGES

COUNTRIES = ['Spain', 'Italy', 'France', 'Germany', 'Portugal', 'Brazil', 'Mexico',
             'Japan', 'Korea', 'Israel', 'Hungary', 'Poland', 'Romania', 'Netherlands']
USER_COUNT = 30
PROFESSIONAL_SHARE = 0.3


def _languages(k_max, exclude=()):
    codes = [code for code, _ in LANGUAGES if code not in exclude]
    return random.sample(codes, random.randint(1, k_max))


def _random_offer(teacher_id, language):
    class_type = random.choice(CLASS_TYPES)
    location_type = random.choice(LOCATION_TYPES)
    return Offer(
        teacher_id=teacher_id,
        name=f'{dict(LANGUAGES)[language]} {random.choice(["conversation", "grammar", "exam prep", "beginners"])}',
        language=language,
        level=random.choice(LEVELS),
        location_type=location_type,
        location=None if location_type == 'online' else f'{random.randint(1, 200)} Main Street',
        duration=random.choice([30, 45, 60, 90]),
        class_type=class_type,
        max_group_size=random.randint(2, 10) if class_type == 'group' else None,
        price=float(random.choice([10, 15, 20, 25, 30, 40])),
    )


def seed_database():
    app = create_app()
    with app.app_context():
        auth = get_auth()
        password = 'Password123'

        print("Creating users...")

        def create_firebase_user(profile):
            try:
                fb_user = auth.create_user(email=profile.email, password=password, display_name=profile.username)
            except auth.EmailAlreadyExistsError:
                fb_user = auth.get_user_by_email(profile.email)
            profile.id = fb_user.uid
            dao.create_user(profile.id, profile.to_dict())
            return profile

        users = []
        for i in range(1, USER_COUNT + 1):
            teaches = _languages(2)
            profile = User(
                username=f'user{i}',
                email=f'user{i}@example.com',
                gender=random.choice(['female', 'male', 'other']),
                birthdate=f'{random.randint(1960, 2005)}-{random.randint(1, 12):02d}-{random.randint(1, 28):02d}',
                country=random.choice(COUNTRIES),
                teaches=teaches,
                learns=_languages(3, exclude=teaches),
                professional=random.random() < PROFESSIONAL_SHARE,
                private=random.random() < 0.1,
                created_at=datetime.now(timezone.utc),
            )
            profile.validate()
            users.append(create_firebase_user(profile))

        print("Creating offers...")
        offer_count = 0
        for teacher in users:
            if not teacher.professional:
                continue
            for language in teacher.teaches:
                for _ in range(random.randint(1, 2)):
                    offer = _random_offer(teacher.id, language)
                    offer.validate()
                    offer_id = dao.create_offer(offer.to_dict())
                    dao.add_user_offer(teacher.id, offer_id)
                    offer_count += 1

        print(f"Seed complete: {len(users)} users, {offer_count} offers.")
        print(f"Every account uses the password {password!r}.")


if __name__ == '__main__':
    seed_database()
