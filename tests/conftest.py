import os

# Keep the module-level engine away from any real database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import date, datetime, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from booking_engine import models  # noqa: E402
from booking_engine.clock import FixedClock  # noqa: E402
from booking_engine.database import Base, build_engine  # noqa: E402
from booking_engine.domain.bookings.service import BookingService  # noqa: E402
from booking_engine.domain.pricing.calculator import PricingSettings  # noqa: E402
from booking_engine.domain.pricing.settings import SettingsStore  # noqa: E402
from booking_engine.services.notification_service import InMemoryDispatcher  # noqa: E402

# Wednesday 4 March 2026, 10:00 in Windhoek
NOW = datetime(2026, 3, 4, 8, 0)
SATURDAY = date(2026, 3, 7)
MONDAY = date(2026, 3, 9)


class Seeder:
    """Creates committed rows with sensible defaults"""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def service(self, name="Deep Clean", price="100.00", duration=120, **kwargs):
        return self._save(
            models.Service(
                name=name, price_one_off=Decimal(price), duration_minutes=duration, **kwargs
            )
        )

    def client(self, town="Windhoek", suburb="Olympia", **kwargs):
        return self._save(models.Client(full_name="Test Client", town=town, suburb=suburb, **kwargs))

    def provider(
        self,
        suburb,
        town="Windhoek",
        rating=4.5,
        jobs=10,
        max_tier=2,
        verified=True,
        active=True,
        available=True,
        services=(),
        **kwargs,
    ):
        provider = models.Provider(
            full_name=f"Provider {suburb}",
            town=town,
            suburb=suburb,
            rating=rating,
            total_jobs_completed=jobs,
            max_distance_tier=max_tier,
            verified=verified,
            active=active,
            available=available,
            **kwargs,
        )
        provider.services = list(services)
        return self._save(provider)

    def distance(self, suburb_a, suburb_b, tier, town="Windhoek", both_ways=True):
        self.db.add(
            models.LocationDistance(town=town, suburb_a=suburb_a, suburb_b=suburb_b, distance=tier)
        )
        if both_ways:
            self.db.add(
                models.LocationDistance(
                    town=town, suburb_a=suburb_b, suburb_b=suburb_a, distance=tier
                )
            )
        self.db.commit()

    def package(self, service, quantity=2, cycle_days=30, duration_days=30, **kwargs):
        package = self._save(
            models.SubscriptionPackage(
                name="Monthly Care", price=Decimal("300.00"), duration_days=duration_days, **kwargs
            )
        )
        self._save(
            models.PackageEntitlement(
                package_id=package.id,
                service_id=service.id,
                quantity_per_cycle=quantity,
                cycle_days=cycle_days,
            )
        )
        return package

    def active_package(self, client, package, start=None, expiry=None, status="active"):
        start = start or (NOW.date() - timedelta(days=5))
        return self._save(
            models.ActivePackage(
                client_id=client.id,
                package_id=package.id,
                start_date=start,
                expiry_date=expiry or (start + timedelta(days=package.duration_days)),
                status=status,
            )
        )

    def usage(self, client, package, service, used_at):
        return self._save(
            models.UsageRecord(
                client_id=client.id, package_id=package.id, service_id=service.id, used_at=used_at
            )
        )

    def booking(
        self,
        client,
        service,
        provider=None,
        booking_date=MONDAY,
        booking_time="09:00",
        duration=120,
        status="assigned",
        **kwargs,
    ):
        zero = Decimal("0.00")
        return self._save(
            models.Booking(
                client_id=client.id,
                service_id=service.id,
                provider_id=provider.id if provider else None,
                booking_date=booking_date,
                booking_time=booking_time,
                duration_minutes=duration,
                location_town=client.town,
                location_suburb=client.suburb,
                status=status,
                assignment_status="auto_assigned" if provider else "pending_assignment",
                acceptance_deadline=NOW + timedelta(hours=24),
                base_price=service.price_one_off,
                total_amount=service.price_one_off,
                platform_commission=zero,
                taxable_amount=zero,
                income_tax=zero,
                withholding_tax=zero,
                weekend_bonus=zero,
                net_payout=zero,
                created_at=NOW,
                **kwargs,
            )
        )


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'booking_engine_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def dispatcher():
    return InMemoryDispatcher()


@pytest.fixture
def settings_store(session_factory):
    store = SettingsStore(session_factory)
    store.load()
    return store


@pytest.fixture
def booking_service(db, clock, dispatcher):
    return BookingService(db, clock=clock, settings=PricingSettings(), dispatcher=dispatcher)


@pytest.fixture
def windhoek(seed):
    """Olympia client, a small distance map and one deep clean service"""
    seed.distance("Olympia", "Klein Windhoek", 1)
    seed.distance("Olympia", "Eros", 1)
    seed.distance("Olympia", "Katutura", 3)
    seed.distance("Olympia", "Khomasdal", 4)
    return {"client": seed.client(), "service": seed.service()}
