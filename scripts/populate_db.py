import os
import sys
import django
import random
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'equipment_rental.settings')
django.setup()

from core.engine import BookingEngine
from core.exceptions import BookingConflict
from core.models import Category, Equipment, FederatedAccount, LocalAccount

fake = Faker()
engine = BookingEngine()

CATEGORY_EQUIPMENT = {
    "Earthmoving": ["Mini Excavator", "Telehandler"],
    "Access": ["Scissor Lift", "Scaffolding Set"],
    "Concrete": ["Concrete Mixer"],
    "Handling": ["Pallet Truck"],
    "Power": ["Generator 20kVA"],
    "Cleaning": ["Pressure Washer"],
}

EQUIPMENT_NAMES = [name for names in CATEGORY_EQUIPMENT.values() for name in names]


def create_categories():
    print("Creating categories...")

    categories = {}
    for category_name, equipment_names in CATEGORY_EQUIPMENT.items():
        category, _ = Category.objects.get_or_create(
            name=category_name,
            defaults={'description': fake.sentence()},
        )
        for equipment_name in equipment_names:
            categories[equipment_name] = category

    print(f"Created {len(CATEGORY_EQUIPMENT)} categories.")
    return categories


def create_organizations(num_local=12, num_federated=3):
    print(f"Creating {num_local} local and {num_federated} federated organizations...")

    organizations = []

    for _ in range(num_local):
        organization = LocalAccount.objects.create_account(
            fake.unique.company_email(),
            'password123',
            name=fake.company(),
            phone_number=fake.numerify('+1 ### ### ####'),
            description=fake.catch_phrase(),
        )
        organizations.append(organization)

    for _ in range(num_federated):
        organization = FederatedAccount.objects.create_account(
            fake.unique.company_email(),
            fake.unique.uuid4(),
            name=fake.company(),
        )
        organizations.append(organization)

    print(f"Created {len(organizations)} organizations.")
    return organizations


def create_equipment(owners, categories):
    print("Creating equipment...")
    equipment = []

    for owner in owners:
        # Each owner lists 1-3 items
        for name in random.sample(EQUIPMENT_NAMES, random.randint(1, 3)):
            item = Equipment.objects.create(
                owner=owner,
                category=categories[name],
                name=name,
                description=fake.paragraph(),
                daily_rate=Decimal(random.uniform(20.0, 400.0)).quantize(Decimal('0.01')),
                deposit_amount=Decimal(random.choice([0, 100, 250, 500])),
                location=fake.city(),
                usage_conditions=fake.sentence(),
            )
            equipment.append(item)

    print(f"Created {len(equipment)} equipment.")
    return equipment


def create_reservations(renters, equipment):
    print("Creating reservations...")
    reservations = []

    for item in equipment:
        start = timezone.now() + timedelta(days=random.randint(1, 5))

        # Back-to-back periods, so the engine accepts them all
        for _ in range(random.randint(0, 4)):
            end = start + timedelta(days=random.randint(1, 4), hours=random.randint(0, 12))
            renter = random.choice([r for r in renters if r.pk != item.owner_id])
            try:
                reservation = engine.availability.reserve(
                    item.pk,
                    (start, end),
                    renter.pk,
                    delivery_address=fake.address(),
                    notes=fake.sentence(),
                )
            except BookingConflict:
                continue
            reservations.append(reservation)
            start = end

    print(f"Created {len(reservations)} reservations.")
    return reservations


def advance_reservations(reservations):
    print("Advancing reservations through their lifecycle...")
    completed = []

    for reservation in reservations:
        outcome = random.choice(['pending', 'confirmed', 'active', 'completed', 'cancelled'])

        if outcome == 'cancelled':
            engine.lifecycle.cancel(reservation.pk, fake.sentence())
            continue
        if outcome == 'pending':
            continue

        engine.lifecycle.confirm(reservation.pk)
        if outcome in ('active', 'completed'):
            engine.lifecycle.activate(reservation.pk)
        if outcome == 'completed':
            engine.lifecycle.complete(reservation.pk)
            engine.lifecycle.update_payment_status(reservation.pk, 'paid', deposit_paid=True)
            completed.append(reservation)

    print(f"Completed {len(completed)} reservations.")
    return completed


def create_reviews(completed_reservations):
    print("Creating reviews...")
    reviews = []

    for reservation in completed_reservations:
        # 70% chance of leaving a review
        if random.random() < 0.7:
            review = engine.reviews.submit(
                reservation.pk,
                reservation.renter_id,
                random.randint(2, 5),
                fake.paragraph(),
            )
            if random.random() < 0.3:
                engine.reviews.respond(review.pk, reservation.equipment.owner_id, fake.sentence())
            reviews.append(review)

    print(f"Created {len(reviews)} reviews.")
    return reviews


def main():
    print("Starting database population...")

    organizations = create_organizations()
    owners = random.sample(organizations, len(organizations) // 2)

    categories = create_categories()
    equipment = create_equipment(owners, categories)
    reservations = create_reservations(organizations, equipment)
    completed = advance_reservations(reservations)
    create_reviews(completed)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
