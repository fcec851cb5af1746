from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import Form, StringField, PasswordField, IntegerField
from wtforms.validators import (
    DataRequired, InputRequired, Optional, Email, Length, NumberRange, Regexp
)

# Same pattern the registration frontend checks before submitting
PARTICIPANT_EMAIL = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
PHONE = r"^\d{10}$"


def _text(value):
    """JSON bodies may carry numbers where text is expected."""
    if value is None:
        return value
    return str(value).strip()


def _upper(value):
    return value.upper() if isinstance(value, str) else value


def _lower(value):
    return value.lower() if isinstance(value, str) else value


def first_error(form):
    """The first validation message, in field order."""
    for field in form:
        if field.errors:
            return field.errors[0]
    return "Invalid request"


class JSONForm(FlaskForm):
    """Base for API forms: data comes from the JSON body, CSRF is handled by SameSite cookies."""

    class Meta:
        csrf = False


# ==========================
# AUTH
# ==========================

class SendOTPForm(JSONForm):
    email = StringField(
        "Email",
        filters=[_text, _lower],
        validators=[DataRequired(message="Email is required"), Email(message="Invalid email format"), Length(max=255)],
    )


class VerifyOTPForm(JSONForm):
    email = StringField(
        "Email",
        filters=[_text, _lower],
        validators=[DataRequired(message="Email is required"), Email(message="Invalid email format")],
    )
    otp = StringField("OTP", filters=[_text], validators=[DataRequired(message="OTP is required")])


class CompleteSignupForm(JSONForm):
    username = StringField(
        "Username",
        filters=[_text],
        validators=[DataRequired(message="Username is required"), Length(min=3, max=120)],
    )
    password = PasswordField(
        "Password",
        validators=[DataRequired(message="Password is required"), Length(min=6, max=128)],
    )


class LoginForm(JSONForm):
    email = StringField("Email", filters=[_text, _lower], validators=[DataRequired(message="Email is required")])
    password = PasswordField("Password", validators=[DataRequired(message="Password is required")])


# ==========================
# PROFILE
# ==========================

class ProfileForm(JSONForm):
    fullname = StringField(
        "Full name", filters=[_text, _upper],
        validators=[DataRequired(message="fullname is required"), Length(max=255)],
    )
    phone_number = StringField(
        "Phone number", filters=[_text],
        validators=[
            DataRequired(message="phone number is required"),
            Regexp(PHONE, message="phone number must be 10 digits"),
        ],
    )
    principals_email = StringField(
        "Principal's email", filters=[_text],
        validators=[
            DataRequired(message="principal's email is required"),
            Regexp(PARTICIPANT_EMAIL, message="invalid principal's email format"),
        ],
    )
    individual = StringField(
        "Individual", filters=[_text, _lower],
        validators=[DataRequired(message="individual field is required")],
    )
    institution_name = StringField(
        "Institution", filters=[_text, _upper],
        validators=[DataRequired(message="institution name is required"), Length(max=255)],
    )
    address = StringField(
        "Address", filters=[_text, _upper],
        validators=[DataRequired(message="address is required")],
    )
    principals_name = StringField(
        "Principal's name", filters=[_text, _upper],
        validators=[DataRequired(message="principal's name is required"), Length(max=255)],
    )

    @property
    def is_individual(self):
        return self.individual.data in ("true", "yes", "1", "individual")


# ==========================
# REGISTRATION
# ==========================

class ParticipantForm(Form):
    """One team member. Validated from a plain dict, not the request."""
    name = StringField("Name", filters=[_text, _upper], validators=[DataRequired(message="name is required")])
    email = StringField(
        "Email", filters=[_text],
        validators=[InputRequired(message="email is required"), Regexp(PARTICIPANT_EMAIL, message="invalid email format")],
    )
    # "class" is a keyword; the field is bound under that name in ParticipantForm.build
    grade = IntegerField(
        "Class",
        validators=[
            InputRequired(message="class is required"),
            NumberRange(min=1, max=12, message="class must be between 1 and 12"),
        ],
    )
    phone = StringField(
        "Phone", filters=[_text],
        validators=[InputRequired(message="phone is required"), Regexp(PHONE, message="phone number must be 10 digits")],
    )

    @classmethod
    def build(cls, member):
        member = member if isinstance(member, dict) else {}
        data = MultiDict()
        for key in ("name", "email", "phone"):
            if member.get(key) is not None:
                data.add(key, str(member.get(key)))
        if member.get("class") is not None:
            data.add("grade", str(member.get("class")))
        return cls(formdata=data)

    def as_participant(self):
        return {
            "name": self.name.data,
            "email": self.email.data,
            "class": self.grade.data,
            "phone": self.phone.data,
        }


# ==========================
# ADMIN
# ==========================

class EventUpdateForm(JSONForm):
    event_id = StringField("Event id", filters=[_text], validators=[DataRequired(message="event_id is required")])
    name = StringField("Name", filters=[_text], validators=[Optional()])
    image = StringField("Image", filters=[_text], validators=[Optional()])
    participants = IntegerField(
        "Participants", validators=[InputRequired(), NumberRange(min=1, message="participants must be at least 1")]
    )
    mode = StringField("Mode", filters=[_text], validators=[Optional()])
    points = IntegerField("Points", validators=[Optional()])
    dates = StringField("Dates", filters=[_text], validators=[Optional()])
    min_class = IntegerField("Min class", validators=[InputRequired(), NumberRange(min=1, max=12)])
    max_class = IntegerField("Max class", validators=[InputRequired(), NumberRange(min=1, max=12)])
    description_short = StringField("Short description", filters=[_text], validators=[Optional()])
    description_long = StringField("Long description", filters=[_text], validators=[Optional()])
    open_to_all = StringField("Open to all", filters=[_text, _lower], validators=[Optional()])
    independent_registration = StringField("Independent", filters=[_text, _lower], validators=[Optional()])

    def validate(self, extra_validators=None):
        if not super().validate(extra_validators=extra_validators):
            return False
        if self.min_class.data > self.max_class.data:
            self.min_class.errors.append("min_class must not exceed max_class")
            return False
        return True


class InviteForm(JSONForm):
    to_email = StringField(
        "Email", filters=[_text, _lower],
        validators=[DataRequired(message="to_email is required"), Email(message="Invalid email format")],
    )
    school_name = StringField("School", filters=[_text], validators=[Optional(), Length(max=255)])
    principal_name = StringField("Principal", filters=[_text], validators=[Optional(), Length(max=255)])
    custom_message = StringField("Message", filters=[_text], validators=[Optional()])
