import pytest
from datetime import datetime, timedelta

from core_library.config import LibsysConfig
from core_library.ledger import Ledger
from core_library.records import Role
from core_library.system import LibrarySystem


class FakeClock:
    """Settable local clock; June dates keep tests clear of DST switches"""

    def __init__(self, start=datetime(2024, 6, 3, 10, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Configuration independent of the environment"""
    return LibsysConfig(
        database_filename="librecords.db",
        text_encoding="utf-8",
        admin_account="admin",
        admin_password="admin",
        default_reset_password="123456",
        currency="CNY",
        late_fee_per_day="0.30",
        log_level="WARNING",
        log_format="text",
        log_file=None,
    )


@pytest.fixture
def ledger(config, clock):
    return Ledger.create(config, clock)


@pytest.fixture
def system(tmp_path, config, clock):
    """Booted library under a temporary root"""
    system = LibrarySystem.open_or_create(tmp_path, config, clock)
    yield system
    system.shutdown()


@pytest.fixture
def admin(system):
    return system.login("admin", "admin")


@pytest.fixture
def alice(system):
    system.register("alice", "pw1", "pw1")
    return system.login("alice", "pw1")


@pytest.fixture
def manager(system, admin):
    account = system.register("mgr", "mgrpw")
    system.assign_role(admin, account.id, Role.MANAGER)
    return system.login("mgr", "mgrpw")


@pytest.fixture
def stocked(system, admin):
    """Catalog with two titles"""
    system.add_book(admin, "A1", "Dune", "Herbert", 2)
    system.add_book(admin, "B2", "Emma", "Austen", 1)
    return system
