import os
import shutil
import tempfile
from types import SimpleNamespace

import pytest

# Create a temporary SQLite database file for the whole test session
_TEMP_DIR = tempfile.mkdtemp(prefix="loandesk_tests_")
_DB_FILE = os.path.join(_TEMP_DIR, "test_loandesk.db")
os.environ["LOANDESK_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Initialize a fresh temporary SQLite database for tests and clean it up after."""
    # Import after setting env var so the app uses the temp DB
    from loandesk.database import engine, init_db

    init_db()

    yield

    engine.dispose()
    shutil.rmtree(_TEMP_DIR, ignore_errors=True)


# Every test starts from empty tables; children are deleted before the rows
# they reference.
@pytest.fixture(autouse=True)
def _clean_tables():
    from loandesk.database import Base, SessionLocal

    session = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    finally:
        session.close()


@pytest.fixture
def test_db():
    """Provide a database session for each test with automatic rollback."""
    from loandesk.database import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def seeded(test_db):
    """Reference data shared by the ledger tests.

    Two advisors, one banker, a disbursed lead and a lead still in progress.
    The admin actor matches a real employee so audit columns satisfy their
    foreign keys.
    """
    from loandesk.auth import Actor
    from loandesk.models import Advisor, Bank, Banker, City, Employee, Lead, LeadHistory

    admin = Employee(name="Ledger Admin", department="Accounts")
    advisor = Advisor(name="Asha Rao", advisor_code="ADV001")
    other_advisor = Advisor(name="Vikram Shah", advisor_code="ADV002")
    bank = Bank(name="State Bank")
    city = City(name="Pune", state_name="Maharashtra")
    test_db.add_all([admin, advisor, other_advisor, bank, city])
    test_db.flush()

    banker = Banker(
        banker_name="Meera Iyer",
        designation="Relationship Manager",
        mobile="9000000001",
        email="meera@statebank.example",
        product="Home Loan",
        state_name="Maharashtra",
        bank_id=bank.id,
        city_id=city.id,
    )
    test_db.add(banker)
    test_db.flush()

    lead = Lead(
        lead_no=1001,
        client_name="Ravi Kumar",
        product_type="Home Loan",
        loan_requirement_amount=100000,
        advisor_id=advisor.id,
        banker_id=banker.id,
    )
    pending_lead = Lead(
        lead_no=1002,
        client_name="Neha Singh",
        product_type="Business Loan",
        loan_requirement_amount=250000,
        advisor_id=other_advisor.id,
    )
    test_db.add_all([lead, pending_lead])
    test_db.flush()

    test_db.add_all(
        [
            LeadHistory(lead_id=lead.id, feedback="File Login"),
            LeadHistory(lead_id=lead.id, feedback="Loan Disbursed"),
            LeadHistory(lead_id=pending_lead.id, feedback="File Login"),
        ]
    )
    test_db.commit()

    return SimpleNamespace(
        actor=Actor(id=admin.id, role="admin"),
        admin_id=admin.id,
        advisor_id=advisor.id,
        other_advisor_id=other_advisor.id,
        banker_id=banker.id,
        lead_id=lead.id,
        pending_lead_id=pending_lead.id,
    )
