from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired, FileAllowed
from wtforms import StringField, TextAreaField, SelectField, IntegerField, FloatField, SubmitField
from wtforms.validators import DataRequired, InputRequired, NumberRange, Optional

IMAGE_EXTENSIONS = ['jpg', 'jpeg', 'png', 'gif', 'webp']
STATUS_CHOICES = [('active', 'Active'), ('inactive', 'Inactive'), ('archived', 'Archived')]

class ProductForm(FlaskForm):
    name = StringField('Product name', validators=[DataRequired(message='All fields are required')])
    description = TextAreaField('Description', validators=[DataRequired(message='All fields are required')])
    price = FloatField('Price', validators=[InputRequired(message='All fields are required'), NumberRange(min=0)])
    category = SelectField('Category', coerce=int, validators=[InputRequired(message='All fields are required')])
    image = FileField('Image', validators=[FileRequired(message='All fields are required'), FileAllowed(IMAGE_EXTENSIONS, 'Images only')])
    submit = SubmitField('Add product')

class ProductEditForm(FlaskForm):
    name = StringField('Product name', validators=[DataRequired(message='Name, price, and image URL are required')])
    description = TextAreaField('Description', validators=[Optional()])
    price = FloatField('Price', validators=[InputRequired(message='Name, price, and image URL are required'), NumberRange(min=0, message='Price must be a non-negative number')])
    image_url = StringField('Image URL', validators=[DataRequired(message='Name, price, and image URL are required')])
    category_id = SelectField('Category', coerce=int, default=0)
    stock = IntegerField('Stock', default=0, validators=[Optional(), NumberRange(min=0)])
    status = SelectField('Status', choices=STATUS_CHOICES, default='active')
    submit = SubmitField('Save changes')

class PriceForm(FlaskForm):
    price = FloatField('Price', validators=[InputRequired(), NumberRange(min=0)])
