from accounts.models import CustomUser, Restaurant
from reviews.models import ReviewCategory, ReviewTemplate


class ReviewFixturesMixin:
    """Restaurant, a line cook, a manager and a three-category opening template."""

    @classmethod
    def setUpTestData(cls):
        cls.restaurant = Restaurant.objects.create(
            name="Test R",
            email="r@test.local",
            timezone="UTC",
        )
        cls.cook = CustomUser.objects.create_user(
            email="cook@test.local",
            pin_code="1234",
            first_name="Test",
            last_name="Cook",
            role="LINE_COOK",
            department="BOH",
            restaurant=cls.restaurant,
        )
        cls.manager = CustomUser.objects.create_user(
            email="manager@test.local",
            password="pass12345",
            first_name="Mgr",
            last_name="User",
            role="MANAGER",
            restaurant=cls.restaurant,
        )
        cls.template = ReviewTemplate.objects.create(
            restaurant=cls.restaurant,
            name="BOH Morning Closer Review",
            department="BOH",
            shift_type="opening",
            trigger_condition="required_before_workflow",
        )
        cls.stations = ReviewCategory.objects.create(template=cls.template, name="Stations Stocked", order_index=1)
        cls.floors = ReviewCategory.objects.create(template=cls.template, name="Floors & Mats", order_index=2)
        cls.drains = ReviewCategory.objects.create(template=cls.template, name="Trash & Drains", order_index=3)

    def responses(self, *ratings, categories=None):
        categories = categories or [self.stations, self.floors, self.drains]
        return [
            {'category_id': category.id, 'rating': rating, 'notes': '', 'photos': []}
            for category, rating in zip(categories, ratings)
        ]
