from django.core.exceptions import ValidationError
from django.test import TestCase

from accounts.models import CustomUser, Restaurant, MAX_FAILED_ATTEMPTS


class SecretCheckTests(TestCase):
    def setUp(self):
        self.restaurant = Restaurant.objects.create(name="Test R", email="r@test.local")
        self.cook = CustomUser.objects.create_user(
            email="cook@test.local",
            pin_code="1234",
            first_name="Test",
            last_name="Cook",
            role="LINE_COOK",
            restaurant=self.restaurant,
        )
        self.manager = CustomUser.objects.create_user(
            email="manager@test.local",
            password="pass12345",
            role="MANAGER",
            restaurant=self.restaurant,
        )

    def test_pin_user_has_no_usable_password(self):
        self.assertFalse(self.cook.has_usable_password())
        self.assertTrue(self.cook.check_secret("1234"))
        self.assertFalse(self.cook.check_secret("pass12345"))

    def test_password_user_is_checked_by_password(self):
        self.assertTrue(self.manager.check_secret("pass12345"))
        self.assertFalse(self.manager.check_secret("1234"))

    def test_lockout_after_repeated_failures(self):
        for _ in range(MAX_FAILED_ATTEMPTS):
            self.assertFalse(self.cook.check_pin("0000"))

        self.cook.refresh_from_db()
        self.assertTrue(self.cook.is_account_locked())
        self.assertFalse(self.cook.check_pin("1234"))

    def test_success_resets_failures(self):
        self.cook.check_pin("0000")
        self.cook.check_pin("1234")
        self.cook.refresh_from_db()
        self.assertEqual(self.cook.failed_login_attempts, 0)
        self.assertIsNotNone(self.cook.last_successful_login)

    def test_managers_cannot_hold_pins(self):
        with self.assertRaises(ValidationError):
            self.manager.set_pin("1234")

    def test_pin_must_be_four_digits(self):
        with self.assertRaises(ValidationError):
            self.cook.set_pin("12a4")

    def test_manager_roster(self):
        other = Restaurant.objects.create(name="Other R", email="o@test.local")
        CustomUser.objects.create_user(email="m2@test.local", password="pass12345", role="ADMIN", restaurant=other)
        self.assertEqual(list(CustomUser.objects.managers(self.restaurant)), [self.manager])
        self.assertEqual(CustomUser.objects.managers().count(), 2)
