from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from accounts.models import Restaurant
from reviews.models import ReviewTemplate, ReviewCategory


REVIEW_TEMPLATES = [
    {
        'name': 'BOH Morning Closer Review',
        'department': 'BOH',
        'shift_type': 'opening',
        'trigger_condition': 'required_before_workflow',
        'categories': [
            ('Stations Stocked (Appetizer/Salad/Meat/Fry/Grill)', 'Pars met, backups wrapped, no empty pans, tools clean and staged.'),
            ('Containers Changed & Clean', 'Fresh pans of the right size, no crusted edges, clean lids, inserts seated.'),
            ('FIFO, Dating & Labeling', 'Everything labeled and dated with the oldest product up front.'),
            ('Gyro Cooker', 'Trays emptied and washed, shields clean, machine safely powered off.'),
            ('Blanched Potatoes for AM', 'Par containers present, labeled and chilled.'),
            ('Fryer Oil Condition', 'Oil skimmed or filtered on schedule and at the proper level.'),
            ('Surfaces & Tools', 'Stations sanitized, knives and tools clean and in their home positions.'),
            ('Floors & Mats', 'Swept and mopped, mats washed and placed, nothing under equipment.'),
            ('Stainless, Hood & Walls', 'Fronts smudge-free, hood and walls cleaned on the weekly cadence.'),
            ('To-Go, Bowls & Trays Stocked', 'Enough supply at open to get through the first hour.'),
            ('Trash & Drains', 'Handwash trash emptied, drains bleached on schedule, no odors.'),
        ],
    },
    {
        'name': 'BOH Prep Walk-Through Review',
        'department': 'BOH',
        'shift_type': 'prep',
        'trigger_condition': 'manual_access_clock_in',
        'categories': [
            ('Walk-in Refrigerator', 'Temperature, organization and cleanliness.'),
            ('Labels and Dates | Organization', 'Every item labeled, dated and put away in order.'),
            ('Outside Container Storage', 'Storage areas organized and clean.'),
            ('Cleanliness and Organization of Prep Areas', 'Work surfaces, tools and general prep area condition.'),
            ('Prep List Made from Night Before?', 'Previous shift left an accurate prep list.'),
            ('Notes from the Night Before?', 'Handoff notes from the previous shift are available.'),
        ],
    },
    {
        'name': 'BOH Evening Transition Review',
        'department': 'BOH',
        'shift_type': 'closing',
        'trigger_condition': 'manual_access',
        'categories': [
            ('Appetizer/Salad Station Refilled', 'PM pars met, clean containers, backups wrapped, utensils clean.'),
            ('Main Fridge Refilled', 'Greens rotated, sauces topped and dated, tools staged.'),
            ('Meat/Gyro Station Clean & Stocked', 'Cutting area clean, pans topped, knives sharp and clean.'),
            ('Rice & Potatoes', 'Fresh rice timed for PM, blanched potatoes at par and chilled.'),
            ('Surfaces & Organization', 'Stations sanitized and clutter-free, partials consolidated.'),
            ('Pita & To-Go', 'Pita counts set, to-go boxes, bowls and ramekins stocked.'),
            ('Gyro Readiness', 'New gyros loaded if needed, drip trays emptied, exterior wiped.'),
            ('Floors & Spot-Mopping', 'No debris, dry work zones, mats placed correctly.'),
            ('Handoff Notes Quality', 'Low stock, pending prep and equipment issues clearly flagged.'),
        ],
    },
]


class Command(BaseCommand):
    help = 'Creates the standard BOH line review templates and their categories'

    def add_arguments(self, parser):
        parser.add_argument(
            '--restaurant',
            help='Email of the restaurant that owns the templates (shared across restaurants when omitted)',
        )

    def handle(self, *args, **options):
        restaurant = None
        if options.get('restaurant'):
            restaurant = Restaurant.objects.filter(email=options['restaurant']).first()
            if restaurant is None:
                raise CommandError(f"Restaurant {options['restaurant']} does not exist")

        with transaction.atomic():
            for spec in REVIEW_TEMPLATES:
                template, created = ReviewTemplate.objects.get_or_create(
                    restaurant=restaurant,
                    name=spec['name'],
                    defaults={
                        'department': spec['department'],
                        'shift_type': spec['shift_type'],
                        'trigger_condition': spec['trigger_condition'],
                    },
                )
                self.stdout.write(f"{'Created' if created else 'Found'} template: {template.name}")

                for index, (name, description) in enumerate(spec['categories'], start=1):
                    ReviewCategory.objects.get_or_create(
                        template=template,
                        name=name,
                        defaults={'description': description, 'order_index': index, 'max_rating': 5},
                    )

        self.stdout.write(self.style.SUCCESS('Review templates seeded'))
