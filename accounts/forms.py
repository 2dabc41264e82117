from django import forms
from django.contrib.auth.models import User
from django.contrib.auth.password_validation import validate_password


class RegistrationForm(forms.Form):

    first_name = forms.CharField(max_length=150)
    last_name = forms.CharField(max_length=150)
    email = forms.EmailField(
        error_messages={
            'required': 'Please enter an email address.',
            'invalid': 'Please enter a valid email address.',
        }
    )
    login_id = forms.CharField(
        max_length=150,
        error_messages={
            'required': 'Please enter a login ID.',
            'max_length': 'Login ID is too long.',
        }
    )
    password = forms.CharField(min_length=8, strip=False)
    confirm_password = forms.CharField(strip=False)
    contact_number = forms.RegexField(
        regex=r'^\+?[0-9]{7,15}$',
        required=False,
        error_messages={'invalid': 'Contact number must be 7 to 15 digits.'}
    )

    def clean_login_id(self):
        login_id = self.cleaned_data.get('login_id', '').strip()

        if not login_id:
            raise forms.ValidationError('Please enter a login ID.')

        return login_id

    def clean_email(self):
        return self.cleaned_data.get('email', '').strip().lower()

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get('password')
        confirm_password = cleaned_data.get('confirm_password')

        if password and confirm_password and password != confirm_password:
            raise forms.ValidationError('Password and confirm password do not match.')

        if password:
            candidate = User(
                username=cleaned_data.get('login_id', ''),
                email=cleaned_data.get('email', ''),
                first_name=cleaned_data.get('first_name', ''),
                last_name=cleaned_data.get('last_name', ''),
            )
            try:
                validate_password(password, candidate)
            except forms.ValidationError as e:
                self.add_error('password', e)

        return cleaned_data

    def first_error(self):
        for errors in self.errors.values():
            return errors[0]
        return 'Invalid registration details.'


class PasswordResetForm(forms.Form):

    token = forms.CharField(max_length=64)
    new_password = forms.CharField(min_length=8, strip=False)
    confirm_password = forms.CharField(strip=False, required=False)

    def clean(self):
        cleaned_data = super().clean()
        new_password = cleaned_data.get('new_password')
        confirm_password = cleaned_data.get('confirm_password')

        if confirm_password and new_password != confirm_password:
            raise forms.ValidationError('Password and confirm password do not match.')

        return cleaned_data
