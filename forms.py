from flask_wtf import FlaskForm
from wtforms import (
    HiddenField,
    IntegerField,
    RadioField,
    SelectMultipleField,
    StringField,
    TextAreaField,
    SubmitField,
)
from wtforms.validators import (
    DataRequired,
    InputRequired,
    Length,
    NumberRange,
    Optional,
    Regexp,
    ValidationError,
)

from models.user import GOAL_CHOICES
from utils.fields import parse_timestamp

POSITION_CHOICES = [("bottom", "Add to bottom"), ("top", "Add to top")]


class PhoneLoginForm(FlaskForm):
    phone = StringField(
        "Mobile number",
        validators=[
            DataRequired(message="A phone number is required."),
            Regexp(
                r"^[0-9+()\-.\s]+$",
                message="Phone numbers may only include digits, spaces and + ( ) - .",
            ),
        ],
    )
    submit = SubmitField("Send code")


class VerifyCodeForm(FlaskForm):
    code = StringField(
        "Verification code",
        validators=[
            DataRequired(message="The verification code is required."),
            Regexp(r"^\d{4,10}$", message="The code should only contain digits."),
        ],
    )
    submit = SubmitField("Verify")


class OnboardingForm(FlaskForm):
    name = StringField(
        "Name",
        validators=[
            DataRequired(message="Please tell us your name."),
            Length(max=100, message="Name must be 100 characters or fewer."),
        ],
    )
    goals = SelectMultipleField("Goals", choices=GOAL_CHOICES, validators=[Optional()])
    submit = SubmitField("Continue")


class IdeaForm(FlaskForm):
    title = StringField("Title", [DataRequired(message="The idea needs a title.")])
    summary = TextAreaField("Summary")
    submit = SubmitField("Save Idea")


class TaskForm(FlaskForm):
    name = TextAreaField("Name", [DataRequired(message="The task needs a name.")])
    position = RadioField(
        "Position",
        choices=POSITION_CHOICES,
        validators=[Optional()],
        default="bottom",
    )
    submit = SubmitField("Add Task")


class SubtaskForm(FlaskForm):
    name = TextAreaField("Name", [Optional()])


class MilestoneForm(FlaskForm):
    name = StringField("Name", [DataRequired(message="The milestone needs a name.")])
    target_time = StringField("Target time", [Optional()])
    notes = TextAreaField("Notes")
    submit = SubmitField("Save Milestone")

    def validate_target_time(self, field):
        if field.data and parse_timestamp(field.data) is None:
            raise ValidationError("Please enter a valid date and time.")


class ReorderForm(FlaskForm):
    old_index = IntegerField(
        "From",
        validators=[InputRequired(message="old_index is required."), NumberRange(min=0)],
    )
    new_index = IntegerField(
        "To",
        validators=[InputRequired(message="new_index is required."), NumberRange(min=0)],
    )
    parent = HiddenField("Parent task")
