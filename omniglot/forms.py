from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import (BooleanField, DecimalField, IntegerField, PasswordField, SelectField,
                     SelectMultipleField, StringField, SubmitField, TextAreaField)
from wtforms.validators import (DataRequired, Email, EqualTo, InputRequired, Length, NumberRange, Optional,
                                Regexp, ValidationError)

from omniglot.firestore_models import CLASS_TYPES, LEVELS, LOCATION_TYPES
from omniglot.services.storage import PICTURE_EXTENSIONS

LANGUAGES = [
    ('en', 'English'), ('es', 'Spanish'), ('it', 'Italian'), ('pt', 'Portuguese'),
    ('fr', 'French'), ('de', 'German'), ('ru', 'Russian'), ('nl', 'Dutch'),
    ('zh', 'Chinese'), ('hu', 'Hungarian'), ('he', 'Hebrew'), ('ar', 'Arabic'),
    ('kr', 'Korean'), ('jp', 'Japanese'), ('ro', 'Romanian'), ('pl', 'Polish'),
]
LANGUAGE_NAMES = dict(LANGUAGES)

PASSWORD_RULE = Regexp(
    r'(?=.*\d)(?=.*[a-z])(?=.*[A-Z]).{8,}',
    message='Password needs to have at least 8 characters and must contain at least one number, '
            'one lowercase and one uppercase letter.',
)
DATE_RULE = Regexp(r'^\d{4}-\d{2}-\d{2}$', message='Use the YYYY-MM-DD format')
TIMESLOT_RULE = Regexp(r'^([01]\d|2[0-3]):[0-5]\d$', message='Use the HH:MM format')


def _choices(values):
    return [(v, v.replace('-', ' ').capitalize()) for v in values]


class ProfileFieldsMixin:
    def validate_learns(self, field):
        if not field.data and not self.teaches.data:
            raise ValidationError("Please choose at least one language you'd like to teach or learn")


class SignupForm(ProfileFieldsMixin, FlaskForm):
    username = StringField('Username', validators=[DataRequired(message='Choose a username'), Length(min=2, max=40)])
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter a password'), PASSWORD_RULE])
    confirm_password = PasswordField('Confirm password', validators=[DataRequired(), EqualTo('password', message='Passwords do not match')])
    gender = SelectField('Gender', choices=[('', '-'), ('female', 'Female'), ('male', 'Male'), ('other', 'Other')], validators=[Optional()])
    birthdate = StringField('Birth date', validators=[DataRequired(message='Enter your birth date'), DATE_RULE])
    country = StringField('Country', validators=[DataRequired(message='Enter your country of residence'), Length(max=80)])
    teaches = SelectMultipleField('Languages I teach', choices=LANGUAGES)
    learns = SelectMultipleField('Languages I learn', choices=LANGUAGES)
    professional = BooleanField('I am a professional teacher')
    private = BooleanField('Hide my profile from matches')
    profile_picture = FileField('Profile picture', validators=[FileAllowed(sorted(PICTURE_EXTENSIONS), 'Images only')])
    submit = SubmitField('Sign up')


class LoginForm(FlaskForm):
    login = StringField('Username or email', validators=[DataRequired(message='All fields are mandatory')])
    password = PasswordField('Password', validators=[DataRequired(message='All fields are mandatory')])
    submit = SubmitField('Log in')


class ProfileForm(ProfileFieldsMixin, FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=2, max=40)])
    email = StringField('Email', validators=[DataRequired(), Email()])
    gender = SelectField('Gender', choices=[('', '-'), ('female', 'Female'), ('male', 'Male'), ('other', 'Other')], validators=[Optional()])
    birthdate = StringField('Birth date', validators=[DataRequired(), DATE_RULE])
    country = StringField('Country', validators=[DataRequired(), Length(max=80)])
    teaches = SelectMultipleField('Languages I teach', choices=LANGUAGES)
    learns = SelectMultipleField('Languages I learn', choices=LANGUAGES)
    professional = BooleanField('I am a professional teacher')
    private = BooleanField('Hide my profile from matches')
    profile_picture = FileField('New profile picture', validators=[FileAllowed(sorted(PICTURE_EXTENSIONS), 'Images only')])
    submit = SubmitField('Save')


class OfferForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=120)])
    language = SelectField('Language', choices=LANGUAGES, validators=[DataRequired()])
    level = SelectField('Level', choices=_choices(LEVELS), validators=[DataRequired()])
    location_type = SelectField('Location', choices=_choices(LOCATION_TYPES), validators=[DataRequired()])
    location = StringField('Address', validators=[Optional(), Length(max=200)])
    duration = IntegerField('Duration (minutes)', validators=[DataRequired(), NumberRange(min=15, max=600)])
    class_type = SelectField('Class type', choices=_choices(CLASS_TYPES), validators=[DataRequired()])
    max_group_size = IntegerField('Max group size', validators=[Optional(), NumberRange(min=2, max=50)])
    price = DecimalField('Price', places=2, validators=[InputRequired(), NumberRange(min=0)])
    submit = SubmitField('Save')

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators):
            return False
        # Optional() ends the chain on an empty size, so the pairing is checked here
        group = self.class_type.data == 'group'
        if group and not self.max_group_size.data:
            self.max_group_size.errors.append('Group classes need a maximum group size')
            return False
        if not group and self.max_group_size.data:
            self.max_group_size.errors.append('Only group classes have a maximum group size')
            return False
        return True


class BookingForm(FlaskForm):
    date = StringField('Date', validators=[DataRequired(), DATE_RULE])
    timeslot = StringField('Time', validators=[DataRequired(), TIMESLOT_RULE])


class RateForm(FlaskForm):
    rating = SelectField('Rating', choices=[(5, '5'), (4, '4'), (3, '3'), (2, '2'), (1, '1')], coerce=int)
    text = TextAreaField('Your review', validators=[Optional(), Length(max=2000)])
    submit = SubmitField('Send review')


class RescheduleForm(FlaskForm):
    new_date = StringField('New date', validators=[DataRequired(), DATE_RULE])
    new_timeslot = StringField('New time', validators=[DataRequired(), TIMESLOT_RULE])
    submit = SubmitField('Propose')


class DeckForm(FlaskForm):
    language = SelectField('Language', choices=LANGUAGES, validators=[DataRequired()])
    level = SelectField('Level', choices=_choices(LEVELS), validators=[Optional()])
    topic = StringField('Topic', validators=[DataRequired(), Length(max=120)])
    submit = SubmitField('Save')


class FlashcardForm(FlaskForm):
    front = TextAreaField('Front', validators=[DataRequired(), Length(max=500)])
    back = TextAreaField('Back', validators=[DataRequired(), Length(max=500)])
    submit = SubmitField('Save')
