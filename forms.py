from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField
from wtforms.validators import DataRequired, Length

class RegisterForm(FlaskForm):
    username = StringField("Username", validators=[
        DataRequired(message="Username is required"),
        Length(max=80, message="Username is too long"),
    ])

class LoginForm(FlaskForm):
    username = StringField("Username", validators=[
        DataRequired(message="Username is required"),
        Length(max=80, message="Username is too long"),
    ])

# Sin validadores: titulo y contenido vacios se aceptan
class PostForm(FlaskForm):
    title = StringField("Title")
    content = TextAreaField("Content")
