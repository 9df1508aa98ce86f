from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from dining.models import MenuItem, OpeningHours, SystemSetting

SETTINGS = [
    (SystemSetting.Key.TOTAL_TABLES, "10", "Number of tables available for reservations"),
    (SystemSetting.Key.SEATS_PER_TABLE, "4", "Maximum guests per table"),
    (SystemSetting.Key.RESERVATION_DURATION, "120", "Minutes a reservation holds its table"),
    (SystemSetting.Key.TIME_SLOT_INTERVAL, "30", "Minutes between bookable time slots"),
    (SystemSetting.Key.MIN_RESERVATION_NOTICE, "60", "Minimum minutes between booking and arrival"),
]

MENU = [
    ("Beef Tartare", "Hand-cut beef, capers, shallots and a quail egg.", "14.50", MenuItem.Category.STARTERS),
    ("Pumpkin Soup", "Styrian pumpkin seed oil and roasted seeds.", "7.90", MenuItem.Category.STARTERS),
    ("Wiener Schnitzel", "Veal escalope with potato salad and lingonberries.", "24.00", MenuItem.Category.MAIN),
    ("Tafelspitz", "Boiled beef with apple horseradish and chive sauce.", "26.50", MenuItem.Category.MAIN),
    ("Mushroom Risotto", "Porcini, parmesan and fresh herbs.", "19.00", MenuItem.Category.MAIN),
    ("Apple Strudel", "Warm strudel with vanilla sauce.", "8.50", MenuItem.Category.DESSERTS),
    ("Sachertorte", "Chocolate cake with apricot jam and whipped cream.", "7.50", MenuItem.Category.DESSERTS),
    ("Gruener Veltliner", "Glass of white wine from the Wachau.", "6.20", MenuItem.Category.DRINKS),
    ("Elderflower Spritzer", "House-made elderflower syrup and soda.", "4.50", MenuItem.Category.DRINKS),
]


class Command(BaseCommand):
    help = 'Seed opening hours, reservation settings and a sample menu'

    def add_arguments(self, parser):
        parser.add_argument(
            '--skip-menu', action='store_true',
            help='Only seed opening hours and settings.',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if OpeningHours.objects.ensure_defaults():
            self.stdout.write("Created default opening hours (09:00-22:00, every day).")
        else:
            self.stdout.write("Opening hours already present, left unchanged.")

        for key, value, description in SETTINGS:
            setting, created = SystemSetting.objects.get_or_create(
                key=key, defaults={'value': value, 'description': description},
            )
            if created:
                self.stdout.write(f"Created setting {setting.key}={setting.value}")

        if not options['skip_menu']:
            created_items = 0
            for name, description, price, category in MENU:
                _, created = MenuItem.objects.get_or_create(
                    name=name,
                    defaults={
                        'description': description,
                        'price': Decimal(price),
                        'category': category,
                    },
                )
                created_items += created
            self.stdout.write(f"Created {created_items} menu item(s).")

        self.stdout.write(self.style.SUCCESS('Site data seeded.'))
