from flask_wtf import FlaskForm
from wtforms import SelectField, SubmitField
from wtforms.validators import DataRequired

class OrderStatusForm(FlaskForm):
    status = SelectField('Status', validators=[DataRequired()])
    submit = SubmitField('Update status')
