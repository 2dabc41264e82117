import json
from datetime import timedelta
from io import StringIO

from django.contrib.auth import authenticate
from django.contrib.auth.models import User
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, Client
from django.utils import timezone

from moviebooking.exceptions import Conflict, NotFound, ValidationFailed
from .identity import IdentityResolver
from .models import PasswordResetToken, UserProfile
from .services import UserService

REGISTRATION = {
    'first_name': 'Asha',
    'last_name': 'Rao',
    'email': 'Asha@Example.com',
    'login_id': 'asha',
    'password': 'Sunset-Cinema-42',
    'confirm_password': 'Sunset-Cinema-42',
    'contact_number': '+919876543210',
}

class IdentityResolverTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username='carol', email='carol@example.com', password='testpass123')

    def test_resolve_by_login_name(self):

        identity = IdentityResolver.resolve('carol')

        self.assertEqual(identity.id, self.user.pk)
        self.assertEqual(identity.login_name, 'carol')
        self.assertFalse(identity.is_admin)

    def test_resolve_by_email_and_id(self):

        self.assertEqual(IdentityResolver.resolve('CAROL@example.com').id, self.user.pk)
        self.assertEqual(IdentityResolver.resolve(self.user.pk).login_name, 'carol')
        self.assertEqual(IdentityResolver.resolve(str(self.user.pk)).login_name, 'carol')

    def test_resolve_user_instance(self):

        self.assertEqual(IdentityResolver.resolve(self.user).login_name, 'carol')

    def test_unknown_identity(self):

        with self.assertRaises(NotFound):
            IdentityResolver.resolve('nobody')
        with self.assertRaises(NotFound):
            IdentityResolver.resolve('')
        with self.assertRaises(NotFound):
            IdentityResolver.resolve(User(username='unsaved'))

    def test_staff_and_superuser_are_admins(self):

        staff = User.objects.create_user(username='staff', password='testpass123', is_staff=True)
        root = User.objects.create_superuser(username='root', email='root@example.com', password='testpass123')

        self.assertTrue(IdentityResolver.resolve('staff').is_admin)
        self.assertTrue(IdentityResolver.resolve(root).is_admin)
        self.assertTrue(IdentityResolver.from_user(staff).is_admin)

    def test_lookups_are_cached(self):

        IdentityResolver.resolve('carol')

        with self.assertNumQueries(0):
            identity = IdentityResolver.resolve('carol')

        self.assertEqual(identity.login_name, 'carol')

    def test_user_change_invalidates_cache(self):

        self.assertFalse(IdentityResolver.resolve('carol').is_admin)

        self.user.is_staff = True
        self.user.save()

        self.assertTrue(IdentityResolver.resolve('carol').is_admin)

    def test_user_delete_invalidates_cache(self):

        IdentityResolver.resolve('carol')
        self.user.delete()

        with self.assertRaises(NotFound):
            IdentityResolver.resolve('carol')

    def test_get_user(self):

        self.assertEqual(IdentityResolver.get_user('carol'), self.user)

class UserRegistrationTests(TestCase):

    def test_register_user(self):

        user = UserService.register_user(REGISTRATION)

        self.assertEqual(user.username, 'asha')
        self.assertEqual(user.email, 'asha@example.com')
        self.assertFalse(user.is_staff)
        self.assertNotEqual(user.password, REGISTRATION['password'])
        self.assertTrue(user.check_password(REGISTRATION['password']))
        self.assertEqual(user.profile.contact_number, '+919876543210')
        self.assertEqual(UserProfile.objects.get(user=user).contact_number, '+919876543210')
        self.assertEqual(UserProfile.objects.filter(user=user).count(), 1)

    def test_profile_created_for_every_user(self):

        user = User.objects.create_user(username='plain', password='testpass123')

        self.assertTrue(UserProfile.objects.filter(user=user).exists())

    def test_password_mismatch(self):

        with self.assertRaises(ValidationFailed) as ctx:
            UserService.register_user(dict(REGISTRATION, confirm_password='Different-Pass-1'))

        self.assertIn('do not match', ctx.exception.message)
        self.assertFalse(User.objects.filter(username='asha').exists())

    def test_weak_password_rejected(self):

        with self.assertRaises(ValidationFailed):
            UserService.register_user(dict(REGISTRATION, password='12345678', confirm_password='12345678'))

    def test_invalid_contact_number(self):

        with self.assertRaises(ValidationFailed) as ctx:
            UserService.register_user(dict(REGISTRATION, contact_number='call me'))

        self.assertIn('Contact number', ctx.exception.message)

    def test_duplicate_login_id(self):

        UserService.register_user(REGISTRATION)

        with self.assertRaises(Conflict):
            UserService.register_user(dict(REGISTRATION, email='other@example.com'))

    def test_duplicate_email(self):

        UserService.register_user(REGISTRATION)

        with self.assertRaises(Conflict):
            UserService.register_user(dict(REGISTRATION, login_id='asha2', email='ASHA@example.com'))

class PasswordTests(TestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='carol', email='carol@example.com', password='Old-Password-77')

    def test_update_password(self):

        UserService.update_password('carol', 'Old-Password-77', 'New-Password-88')

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('New-Password-88'))

    def test_update_password_wrong_current(self):

        with self.assertRaises(ValidationFailed):
            UserService.update_password('carol', 'wrong', 'New-Password-88')

    def test_reset_with_token(self):

        reset_token = UserService.create_password_reset_token('carol@example.com')

        UserService.reset_password_with_token(reset_token.token, 'Fresh-Password-99')

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Fresh-Password-99'))
        reset_token.refresh_from_db()
        self.assertTrue(reset_token.used)

    def test_token_cannot_be_reused(self):

        reset_token = UserService.create_password_reset_token('carol')
        UserService.reset_password_with_token(reset_token.token, 'Fresh-Password-99')

        with self.assertRaises(ValidationFailed) as ctx:
            UserService.reset_password_with_token(reset_token.token, 'Another-Password-11')

        self.assertIn('already been used', ctx.exception.message)

    def test_expired_token_rejected(self):

        reset_token = UserService.create_password_reset_token('carol')
        PasswordResetToken.objects.filter(pk=reset_token.pk).update(expires_at=timezone.now() - timedelta(minutes=1))

        with self.assertRaises(ValidationFailed) as ctx:
            UserService.reset_password_with_token(reset_token.token, 'Fresh-Password-99')

        self.assertIn('expired', ctx.exception.message)

    def test_unknown_token_rejected(self):

        with self.assertRaises(ValidationFailed):
            UserService.reset_password_with_token('not-a-token', 'Fresh-Password-99')

    def test_new_token_retires_older_ones(self):

        first = UserService.create_password_reset_token('carol')
        second = UserService.create_password_reset_token('carol')

        first.refresh_from_db()
        self.assertTrue(first.used)
        self.assertTrue(second.is_usable())

    def test_token_for_unknown_user(self):

        with self.assertRaises(NotFound):
            UserService.create_password_reset_token('nobody@example.com')

class EmailBackendTests(TestCase):

    def setUp(self):
        User.objects.create_user(username='carol', email='carol@example.com', password='testpass123')

    def test_login_with_email(self):

        self.assertIsNotNone(authenticate(username='CAROL@example.com', password='testpass123'))

    def test_login_with_login_id(self):

        self.assertIsNotNone(authenticate(username='carol', password='testpass123'))

    def test_wrong_password(self):

        self.assertIsNone(authenticate(username='carol', password='wrong'))

class AccountAPITests(TestCase):

    def setUp(self):
        self.client = Client()

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_register_login_profile_logout(self):

        response = self.post_json('/api/accounts/register/', REGISTRATION)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['data']['login_id'], 'asha')
        self.assertEqual(response.json()['data']['contact_number'], '+919876543210')

        response = self.post_json('/api/accounts/login/', {'login_id': 'asha', 'password': REGISTRATION['password']})
        self.assertEqual(response.status_code, 200)

        response = self.client.get('/api/accounts/profile/')
        self.assertEqual(response.json()['data']['contact_number'], '+919876543210')
        self.assertFalse(response.json()['data']['is_admin'])

        response = self.post_json('/api/accounts/logout/', {})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get('/api/accounts/profile/').status_code, 302)

    def test_register_invalid_returns_400(self):

        response = self.post_json('/api/accounts/register/', dict(REGISTRATION, email='not-an-email'))

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'VALIDATION_FAILED')

    def test_register_duplicate_returns_409(self):

        UserService.register_user(REGISTRATION)

        response = self.post_json('/api/accounts/register/', REGISTRATION)

        self.assertEqual(response.status_code, 409)

    def test_login_failure(self):

        response = self.post_json('/api/accounts/login/', {'login_id': 'ghost', 'password': 'whatever'})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'INVALID_CREDENTIALS')

    def test_login_requires_credentials(self):

        response = self.post_json('/api/accounts/login/', {'login_id': 'asha'})

        self.assertEqual(response.status_code, 400)

    def test_change_password_keeps_session(self):

        User.objects.create_user(username='carol', password='Old-Password-77')
        self.client.login(username='carol', password='Old-Password-77')

        response = self.post_json('/api/accounts/change-password/', {
            'current_password': 'Old-Password-77',
            'new_password': 'New-Password-88',
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get('/api/accounts/profile/').status_code, 200)

    def test_forgot_and_reset_password(self):

        user = User.objects.create_user(username='carol', email='carol@example.com', password='Old-Password-77')

        response = self.post_json('/api/accounts/forgot-password/', {'email': 'carol@example.com'})
        token = response.json()['data']['token']

        response = self.post_json('/api/accounts/reset-password/', {
            'token': token,
            'new_password': 'Fresh-Password-99',
            'confirm_password': 'Fresh-Password-99',
        })

        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertTrue(user.check_password('Fresh-Password-99'))

    def test_reset_password_mismatch(self):

        response = self.post_json('/api/accounts/reset-password/', {
            'token': 'abc',
            'new_password': 'Fresh-Password-99',
            'confirm_password': 'Other-Password-99',
        })

        self.assertEqual(response.status_code, 400)

class MakeUserAdminCommandTests(TestCase):

    def setUp(self):
        cache.clear()
        User.objects.create_user(username='carol', password='testpass123')

    def test_grant_and_revoke(self):

        call_command('make_user_admin', 'carol', stdout=StringIO())
        self.assertTrue(IdentityResolver.resolve('carol').is_admin)

        call_command('make_user_admin', 'carol', revoke=True, stdout=StringIO())
        self.assertFalse(IdentityResolver.resolve('carol').is_admin)

    def test_unknown_user(self):

        with self.assertRaises(CommandError):
            call_command('make_user_admin', 'ghost', stdout=StringIO())
